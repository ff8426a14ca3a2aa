"""Tests for dealer discovery."""
import json

import pytest

from exceptions import ParsingError
from research.discovery import DealerDiscovery, discovery_options, preview_query
from research.extraction import StructuredExtractor
from research.models import DiscoveryRequest
from research.queries import generate_discovery_query

from conftest import FakeModel, FakeTextProvider, make_result

REQUEST = DiscoveryRequest(region="france", seller_type="poster_dealer", language="fr")
QUERY = generate_discovery_query("poster_dealer", "france", "fr")


def _discovery(directory, text_provider, answer="[]"):
    model = FakeModel(text=answer)
    return DealerDiscovery(text_provider, directory, StructuredExtractor(model)), model


class TestDiscover:
    @pytest.mark.asyncio
    async def test_suggests_only_new_domains(self, directory):
        text = FakeTextProvider(
            results={
                QUERY: [
                    make_result("https://galeriemontmartre.fr", title="Galerie Montmartre - affiches anciennes"),
                    make_result("https://www.ha.com/c/posters", title="Heritage posters"),
                ]
            }
        )
        answer = json.dumps(
            [
                {"name": "Galerie Montmartre", "website": "https://galeriemontmartre.fr", "confidence": 80},
                {"name": "Heritage", "website": "https://www.ha.com", "confidence": 95},
                {"name": "Closed Gallery", "website": "closedgallery.com", "confidence": 90},
            ]
        )
        discovery, model = _discovery(directory, text, answer)

        response = await discovery.discover(REQUEST)

        assert response.success is True
        assert response.query == QUERY
        assert [s.domain for s in response.suggestions] == ["closedgallery.com", "galeriemontmartre.fr"]
        assert response.total_search_results == 2
        assert response.credits_used == 1
        assert len(model.prompts) == 1

    @pytest.mark.asyncio
    async def test_unconfigured_provider(self, directory):
        discovery, model = _discovery(directory, FakeTextProvider(configured=False))

        response = await discovery.discover(REQUEST)

        assert response.success is False
        assert response.configured is False
        assert response.error_kind == "not_configured"
        assert response.suggestions == []
        assert model.prompts == []

    @pytest.mark.asyncio
    async def test_search_error_is_returned(self, directory):
        discovery, model = _discovery(directory, FakeTextProvider(errors={QUERY: "Upstream failure"}))

        response = await discovery.discover(REQUEST)

        assert response.success is False
        assert response.configured is True
        assert response.error == "Upstream failure"
        assert response.credits_used == 1
        assert model.prompts == []

    @pytest.mark.asyncio
    async def test_max_results_capped_at_ten(self, directory):
        text = FakeTextProvider()
        discovery, _ = _discovery(directory, text)

        await discovery.discover(REQUEST.model_copy(update={"max_results": 40}))

        assert text.calls[0]["max_results"] == 10

    @pytest.mark.asyncio
    async def test_unparseable_suggestions_raise(self, directory):
        text = FakeTextProvider(results={QUERY: [make_result("https://a.fr")]})
        discovery, _ = _discovery(directory, text, answer="No dealers found.")

        with pytest.raises(ParsingError):
            await discovery.discover(REQUEST)

    @pytest.mark.asyncio
    async def test_known_domains_come_from_active_sellers(self, directory):
        discovery, _ = _discovery(directory, FakeTextProvider())

        known = await discovery.known_domains()

        assert known == {"ha.com", "posteritati.com", "rubylane.com"}


def test_options_and_preview():
    options = discovery_options()

    assert set(options) == {"regions", "seller_types", "languages"}
    assert {"value", "label"} <= set(options["regions"][0])
    assert preview_query(REQUEST) == QUERY
