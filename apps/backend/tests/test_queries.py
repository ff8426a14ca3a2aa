"""Tests for search query generation."""
import pytest

from research.models import ExtractedTitle, ItemMetadata
from research.queries import (
    clean_creator_name,
    extract_main_title,
    extract_year,
    generate_discovery_query,
    generate_optimal_query,
    generate_queries_from_titles,
    generate_query_variations,
)


class TestExtractMainTitle:
    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("Voyage en Suisse – Vintage Poster", "Voyage en Suisse"),
            ("Chemin de Fer du Nord - Original Poster", "Chemin de Fer du Nord"),
            ("Bal Tabarin linen backed", "Bal Tabarin"),
            ("Monaco Grand Prix", "Monaco Grand Prix"),
            ("Job Cigarettes, vintage poster", "Job Cigarettes"),
        ],
    )
    def test_strips_boilerplate(self, raw, expected):
        assert extract_main_title(raw) == expected

    @pytest.mark.parametrize(
        "raw",
        [
            "Voyage en Suisse – Vintage Poster",
            "Bal Tabarin - Poster linen backed",
            "Exposition Universelle 1900 original poster - poster",
            "",
        ],
    )
    def test_idempotent(self, raw):
        once = extract_main_title(raw)
        assert extract_main_title(once) == once

    def test_empty_inputs(self):
        assert extract_main_title(None) == ""
        assert extract_main_title("   ") == ""


class TestExtractYear:
    def test_explicit_year(self):
        assert extract_year("circa 1925") == "1925"

    def test_year_wins_over_decade(self):
        assert extract_year("1920s, printed 1927") == "1927"

    def test_decade_token(self):
        assert extract_year("1930s") == "1930s"

    def test_nothing_found(self):
        assert extract_year("early twentieth century") is None
        assert extract_year(None) is None
        assert extract_year("1700") is None


def test_clean_creator_name_drops_qualifiers():
    assert clean_creator_name("Leonetto Cappiello (attributed)") == "Leonetto Cappiello"
    assert clean_creator_name("Unknown") is None
    assert clean_creator_name(None) is None


class TestGenerateQueryVariations:
    def test_voyage_en_suisse_yields_single_broad_query(self):
        item = ItemMetadata(title="Voyage en Suisse – Vintage Poster")

        variations = generate_query_variations(item)

        assert [(v.query, v.priority) for v in variations] == [('"Voyage en Suisse" poster', 1)]

    def test_exact_title_is_opt_in(self):
        item = ItemMetadata(title="Voyage en Suisse – Vintage Poster")

        variations = generate_query_variations(item, include_exact_title=True)

        assert variations[-1].query == '"Voyage en Suisse – Vintage Poster"'
        assert variations[-1].label == "Exact Title"

    def test_full_metadata_runs_broad_to_specific(self):
        item = ItemMetadata(title="Bal Tabarin - Poster", creator="Jules Chéret (attributed)", date="c. 1905")

        queries = [v.query for v in generate_query_variations(item)]

        assert queries == [
            '"Bal Tabarin" poster',
            '"Bal Tabarin" Jules Chéret poster',
            '"Bal Tabarin" 1905 poster',
            '"Bal Tabarin" Jules Chéret 1905 poster',
        ]

    def test_no_duplicates_and_at_least_one(self):
        for title in ["Poster", "A", "Monaco Grand Prix", "Monaco Grand Prix poster"]:
            variations = generate_query_variations(ItemMetadata(title=title, creator="X", date="1930"))
            queries = [v.query for v in variations]
            assert queries
            assert len(queries) == len(set(queries))

    def test_title_that_is_all_boilerplate_falls_back_to_full_title(self):
        variations = generate_query_variations(ItemMetadata(title="Vintage Poster"))

        assert len(variations) == 1
        assert variations[0].label == "Full Title"
        assert variations[0].query == '"Vintage Poster" poster'

    def test_empty_title(self):
        assert generate_query_variations(ItemMetadata(title="  ")) == []

    def test_custom_keyword(self):
        variations = generate_query_variations(ItemMetadata(title="Le Petit Journal"), keyword="lithograph")
        assert variations[0].query == '"Le Petit Journal" lithograph'


class TestGenerateOptimalQuery:
    def test_confident_creator_included(self):
        item = ItemMetadata(title="Bal Tabarin", creator="Jules Chéret", creator_confidence=80)
        assert generate_optimal_query(item) == '"Bal Tabarin" Jules Chéret poster'

    def test_unconfident_creator_left_out(self):
        item = ItemMetadata(title="Bal Tabarin", creator="Jules Chéret", creator_confidence=40)
        assert generate_optimal_query(item) == '"Bal Tabarin" poster'

    def test_no_title(self):
        assert generate_optimal_query(ItemMetadata()) == "vintage poster"


def test_queries_from_titles_clean_and_add_keyword():
    titles = [
        ExtractedTitle(title="Cappiello: Maurin Quina!", source="ha.com", confidence=0.9),
        ExtractedTitle(title="Maurin Quina poster 1906", source="x.com", confidence=0.5),
        ExtractedTitle(title="Ignored third title", source="y.com", confidence=0.5),
    ]

    queries = generate_queries_from_titles(titles, max_queries=2)

    assert queries == ["Cappiello Maurin Quina poster", "Maurin Quina poster 1906"]


def test_discovery_query_is_localized_with_fallbacks():
    french = generate_discovery_query("poster_dealer", "france", "fr")
    assert "France" in french

    unknown_type = generate_discovery_query("no_such_type", "france", "en")
    assert unknown_type == generate_discovery_query("poster_dealer", "france", "en")

    raw_region = generate_discovery_query("poster_dealer", "Atlantis", "en")
    assert "Atlantis" in raw_region
