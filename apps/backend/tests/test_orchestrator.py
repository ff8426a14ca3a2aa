"""Tests for the multi-stage research search."""
import json

import pytest

from research.models import (
    ExtractedTitle,
    MatchedResult,
    MultiStageSearchOptions,
    VisualMatchResult,
    VisualSearchResponse,
)
from research.orchestrator import (
    MultiStageSearch,
    TextStageInput,
    VisualStageOutput,
    apply_verification,
    extract_titles,
    merge_results,
    rank_results,
)
from research.visual import VisualVerifier

from conftest import CountingDirectory, FakeModel, FakeTextProvider, FakeVisualProvider, make_result

REFERENCE_IMAGE = "https://cdn.example.com/items/42.jpg"


def _lens_response():
    return VisualSearchResponse(
        results=[
            make_result(
                "https://shop.example.com/2",
                title="Voyage en Suisse lithograph 1930",
                source="lens",
                thumbnail="https://thumbs.example.com/2.jpg",
            ),
            make_result(
                "https://posteritati.com/poster/1",
                title="Voyage en Suisse original poster",
                source="lens",
                thumbnail="https://thumbs.example.com/1.jpg",
            ),
            make_result(
                "https://www.ha.com/itm/3",
                title="Voyage en Suisse by Emil Cardinaux",
                source="lens",
                thumbnail="https://thumbs.example.com/3.jpg",
            ),
        ],
        credits_used=1,
    )


def _matched(url, **fields):
    fields.setdefault("title", "Result title here")
    return MatchedResult(url=url, **fields)


def _answer(score, same_image=False):
    return json.dumps({"visualMatch": score, "sameImage": same_image, "sameArtist": False, "explanation": "checked"})


class TestImageOnlyRun:
    @pytest.mark.asyncio
    async def test_lens_results_survive_unconfigured_web_search(self, directory):
        text = FakeTextProvider(configured=False)
        search = MultiStageSearch(text, FakeVisualProvider(_lens_response()), directory)

        response = await search.run(MultiStageSearchOptions(image_url=REFERENCE_IMAGE))

        assert response.configured is True
        assert response.success is True
        assert len(response.results) == 3
        assert 1 <= len(response.extracted_titles) <= 5
        assert any("not configured" in e for e in response.errors)
        assert response.credits_used == 1
        assert response.web_results == []
        assert response.unknown_domains == ["shop.example.com"]

    @pytest.mark.asyncio
    async def test_known_dealers_rank_first(self, directory):
        search = MultiStageSearch(FakeTextProvider(configured=False), FakeVisualProvider(_lens_response()), directory)

        response = await search.run(MultiStageSearchOptions(image_url=REFERENCE_IMAGE, include_web_search=False))

        assert [r.domain for r in response.results] == ["ha.com", "posteritati.com", "shop.example.com"]
        assert response.errors == []

    @pytest.mark.asyncio
    async def test_titles_feed_text_queries(self, directory):
        text = FakeTextProvider(
            results={"Voyage en Suisse by Emil Cardinaux poster": [make_result("https://rubylane.com/item/7")]}
        )
        search = MultiStageSearch(text, FakeVisualProvider(_lens_response()), directory)

        response = await search.run(MultiStageSearchOptions(image_url=REFERENCE_IMAGE, max_web_queries=2))

        assert len(text.calls) == 2
        assert "Voyage en Suisse original poster" in [c["query"] for c in text.calls]
        assert [r.url for r in response.web_results] == ["https://rubylane.com/item/7"]
        assert response.credits_used == 3
        assert response.total_results == 4


class TestRunFailures:
    @pytest.mark.asyncio
    async def test_nothing_configured(self, directory):
        search = MultiStageSearch(
            FakeTextProvider(configured=False),
            FakeVisualProvider(configured=False),
            directory,
        )

        response = await search.run(MultiStageSearchOptions(image_url=REFERENCE_IMAGE, query="Bal Tabarin poster"))

        assert response.configured is False
        assert response.success is False
        assert response.results == []
        assert len(response.errors) == 2

    @pytest.mark.asyncio
    async def test_visual_error_does_not_stop_text_stage(self, directory):
        visual = FakeVisualProvider(
            VisualSearchResponse(error="Daily API quota exceeded.", error_kind="quota", credits_used=0)
        )
        text = FakeTextProvider(results={"Bal Tabarin poster": [make_result("https://www.ha.com/itm/9")]})
        search = MultiStageSearch(text, visual, directory)

        response = await search.run(MultiStageSearchOptions(image_url=REFERENCE_IMAGE, query="Bal Tabarin poster"))

        assert response.configured is True
        assert response.errors == ["Visual search: Daily API quota exceeded."]
        assert [r.dealer_name for r in response.results] == ["Heritage Auctions"]

    @pytest.mark.asyncio
    async def test_failed_query_is_reported(self, directory):
        text = FakeTextProvider(
            results={"a poster": [make_result("https://posteritati.com/1")]},
            errors={"b poster": "Upstream failure"},
        )
        search = MultiStageSearch(text, FakeVisualProvider(), directory)

        response = await search.run(MultiStageSearchOptions(query="a poster", query_variations=["b poster"]))

        assert response.errors == ['Query "b poster": Upstream failure']
        assert len(response.results) == 1
        assert response.credits_used == 2


class TestTextOnlyRun:
    @pytest.mark.asyncio
    async def test_results_per_query_split_evenly(self, directory):
        text = FakeTextProvider()
        search = MultiStageSearch(text, FakeVisualProvider(), directory)

        await search.run(
            MultiStageSearchOptions(query="q one", query_variations=["q two", "q three"], max_web_results=20)
        )

        assert [c["max_results"] for c in text.calls] == [7, 7, 7]

    @pytest.mark.asyncio
    async def test_dealer_ids_limit_known_dealers(self, directory):
        text = FakeTextProvider(
            results={"q": [make_result("https://ha.com/1"), make_result("https://posteritati.com/2")]}
        )
        search = MultiStageSearch(text, FakeVisualProvider(), directory)

        response = await search.run(MultiStageSearchOptions(query="q", dealer_ids=[2]))

        known = [r.domain for r in response.results if r.is_known_dealer]
        assert known == ["posteritati.com"]
        assert response.unknown_domains == ["ha.com"]

    @pytest.mark.asyncio
    async def test_given_snapshot_is_used_without_reading_directory(self, sellers):
        directory = CountingDirectory(sellers)
        text = FakeTextProvider(
            results={"q": [make_result("https://ha.com/1"), make_result("https://posteritati.com/2")]}
        )
        search = MultiStageSearch(text, FakeVisualProvider(), directory)

        response = await search.run(MultiStageSearchOptions(query="q"), sellers=[s for s in sellers if s.id == 2])

        assert directory.reads == 0
        assert [r.domain for r in response.results if r.is_known_dealer] == ["posteritati.com"]
        assert response.unknown_domains == ["ha.com"]

    @pytest.mark.asyncio
    async def test_no_image_and_no_queries(self, directory):
        text = FakeTextProvider()
        search = MultiStageSearch(text, FakeVisualProvider(), directory)

        response = await search.run(MultiStageSearchOptions())

        assert response.results == []
        assert response.configured is True
        assert text.calls == []


class TestVerificationStage:
    @pytest.mark.asyncio
    async def test_threshold_filters_low_scores(self, directory):
        model = FakeModel(
            image_answers={
                "https://thumbs.example.com/2.jpg": _answer(95, same_image=True),
                "https://thumbs.example.com/1.jpg": _answer(30),
            }
        )
        search = MultiStageSearch(
            FakeTextProvider(),
            FakeVisualProvider(_lens_response()),
            directory,
            verifier=VisualVerifier(model),
        )

        response = await search.run(
            MultiStageSearchOptions(
                image_url=REFERENCE_IMAGE,
                include_web_search=False,
                enable_visual_verification=True,
                visual_verification_threshold=50,
            )
        )

        summary = response.visual_verification
        assert summary.performed is True
        assert summary.verified_count == 3
        assert summary.confirmed_count == 1
        assert summary.likely_count == 0
        assert summary.filtered_count == 2
        assert [r.url for r in response.results] == ["https://shop.example.com/2"]
        assert response.results[0].visually_verified is True
        assert response.results[0].same_image is True

    @pytest.mark.asyncio
    async def test_confirmed_match_outranks_known_dealer(self, directory):
        model = FakeModel(
            image_answers={
                "https://thumbs.example.com/1.jpg": _answer(40),
                "https://thumbs.example.com/2.jpg": _answer(88),
                "https://thumbs.example.com/3.jpg": _answer(65),
            }
        )
        search = MultiStageSearch(
            FakeTextProvider(), FakeVisualProvider(_lens_response()), directory, verifier=VisualVerifier(model)
        )

        response = await search.run(
            MultiStageSearchOptions(image_url=REFERENCE_IMAGE, include_web_search=False, enable_visual_verification=True)
        )

        assert [r.domain for r in response.results] == ["shop.example.com", "ha.com", "posteritati.com"]
        assert response.visual_verification.likely_count == 1
        assert response.visual_verification.filtered_count == 0

    @pytest.mark.asyncio
    async def test_unconfigured_verifier_reports_error(self, directory):
        search = MultiStageSearch(
            FakeTextProvider(),
            FakeVisualProvider(_lens_response()),
            directory,
            verifier=VisualVerifier(FakeModel(configured=False)),
        )

        response = await search.run(
            MultiStageSearchOptions(image_url=REFERENCE_IMAGE, include_web_search=False, enable_visual_verification=True)
        )

        assert response.visual_verification.performed is False
        assert len(response.results) == 3
        assert any("Visual verification is not configured" in e for e in response.errors)

    @pytest.mark.asyncio
    async def test_verification_respects_max(self, directory):
        model = FakeModel(image_answers={f"https://thumbs.example.com/{i}.jpg": _answer(50) for i in (1, 2, 3)})
        search = MultiStageSearch(
            FakeTextProvider(), FakeVisualProvider(_lens_response()), directory, verifier=VisualVerifier(model)
        )

        response = await search.run(
            MultiStageSearchOptions(
                image_url=REFERENCE_IMAGE,
                include_web_search=False,
                enable_visual_verification=True,
                max_visual_verifications=2,
            )
        )

        assert len(model.image_calls) == 2
        assert response.visual_verification.verified_count == 2


class TestHelpers:
    def test_merge_keeps_first_occurrence(self):
        lens = [_matched("https://Ha.com/X", source="lens", title="From lens")]
        web = [_matched("https://ha.com/x/", source="web", title="From web"), _matched("https://ha.com/y")]

        merged = merge_results(lens, web)

        assert [r.title for r in merged] == ["From lens", "Result title here"]

    def test_rank_results(self):
        results = [
            _matched("https://a.com/1", source="web"),
            _matched("https://b.com/2", source="lens"),
            _matched("https://c.com/3", is_known_dealer=True, reliability_tier=4),
            _matched("https://d.com/4", is_known_dealer=True, reliability_tier=1),
            _matched("https://e.com/5", is_known_dealer=True, reliability_tier=4, price_value=100.0),
            _matched("https://f.com/6", visually_verified=True, visual_match=90),
        ]

        ranked = [r.url for r in rank_results(results)]

        assert ranked == [
            "https://f.com/6",
            "https://d.com/4",
            "https://e.com/5",
            "https://c.com/3",
            "https://b.com/2",
            "https://a.com/1",
        ]

    def test_extract_titles_skips_short_generic_and_duplicates(self):
        results = [
            _matched("https://a.com/1", title="Short"),
            _matched("https://b.com/2", title="Vintage posters | eBay"),
            _matched("https://c.com/3", title="Affiche Voyage en Suisse"),
            _matched("https://d.com/4", title="affiche voyage en suisse"),
            _matched(
                "https://ha.com/5",
                title="Cardinaux Voyage en Suisse 1910",
                is_known_dealer=True,
                reliability_tier=1,
                dealer_name="Heritage Auctions",
            ),
        ]

        titles = extract_titles(results)

        assert [t.title for t in titles] == ["Cardinaux Voyage en Suisse 1910", "Affiche Voyage en Suisse"]
        assert titles[0].confidence == 0.9
        assert titles[0].source == "Heritage Auctions"
        assert titles[1].confidence == 0.5

    def test_text_stage_input_dedupes_and_caps(self):
        visual = VisualStageOutput(
            extracted_titles=[
                ExtractedTitle(title="Maurin Quina by Cappiello", source="ha.com", confidence=0.9),
                ExtractedTitle(title="Another found title", source="x.com", confidence=0.5),
            ]
        )
        options = MultiStageSearchOptions(query="q1", query_variations=["q1", "q2"], max_web_queries=3)

        built = TextStageInput.build(options, visual)

        assert built.queries == ["q1", "q2", "Maurin Quina by Cappiello poster"]
        assert built.max_results_per_query == 7

    def test_apply_verification_matches_by_thumbnail(self):
        results = [
            _matched("https://a.com/1", thumbnail="https://t/1.jpg"),
            _matched("https://b.com/2"),
        ]
        verifications = {"https://t/1.jpg": VisualMatchResult(visual_match=72, explanation="close")}

        annotated = apply_verification(results, verifications)

        assert annotated[0].visually_verified is True
        assert annotated[0].visual_match == 72
        assert annotated[1].visually_verified is False
