"""API tests for the research and dealer routes."""
import json
from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient

from dependencies import get_directory, get_model, get_settings, get_text_provider, get_visual_provider
from main import app
from research.models import VisualSearchResponse

from conftest import CountingDirectory, FakeModel, FakeTextProvider, FakeVisualProvider, make_result


@pytest.fixture
def deps(settings, directory):
    return SimpleNamespace(
        settings=settings,
        directory=directory,
        text=FakeTextProvider(),
        visual=FakeVisualProvider(),
        model=FakeModel(),
    )


@pytest.fixture
def client(deps):
    app.dependency_overrides[get_settings] = lambda: deps.settings
    app.dependency_overrides[get_directory] = lambda: deps.directory
    app.dependency_overrides[get_text_provider] = lambda: deps.text
    app.dependency_overrides[get_visual_provider] = lambda: deps.visual
    app.dependency_overrides[get_model] = lambda: deps.model
    yield TestClient(app)
    app.dependency_overrides.clear()


def test_health(client):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"
    assert "X-Request-ID" in response.headers


def test_status_reports_configuration(client):
    body = client.get("/api/research/status").json()

    assert body["text_search"] is True
    assert body["llm"] is True
    assert body["health"]["status"] == "healthy"


def test_query_generation_includes_exact_title(client):
    response = client.post(
        "/api/research/queries",
        json={"item": {"title": "Voyage en Suisse – Vintage Poster"}},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["main_title"] == "Voyage en Suisse"
    assert body["optimal_query"] == '"Voyage en Suisse" poster'
    assert [v["label"] for v in body["variations"]] == ["Broad", "Exact Title"]


class TestTextSearch:
    def test_requires_query_or_item(self, client):
        response = client.post("/api/research/search", json={})

        assert response.status_code == 400
        body = response.json()
        assert body["error"] == "ValidationError"
        assert body["request_id"]

    def test_unconfigured_provider(self, client, deps):
        deps.text = FakeTextProvider(configured=False)

        body = client.post("/api/research/search", json={"query": "Bal Tabarin poster"}).json()

        assert body["success"] is False
        assert body["configured"] is False
        assert body["queries"] == ["Bal Tabarin poster"]
        assert deps.text.calls == []

    def test_item_queries_and_dealer_restriction(self, client, deps):
        deps.text = FakeTextProvider(
            results={'"Bal Tabarin" poster': [make_result("https://posteritati.com/poster/9")]}
        )

        body = client.post(
            "/api/research/search",
            json={"item": {"title": "Bal Tabarin", "creator": "Jules Chéret"}, "dealer_ids": [2], "max_queries": 1},
        ).json()

        assert body["queries"] == ['"Bal Tabarin" poster']
        assert deps.text.calls[0]["domains"] == ["posteritati.com"]
        assert body["results"][0]["dealer_name"] == "Posteritati"
        assert body["credits_used"] == 1


class TestSearchUrls:
    def test_links_for_item(self, client):
        response = client.post(
            "/api/research/search-urls",
            json={"item": {"title": "Bal Tabarin"}, "max_tier": 1},
        )

        assert response.status_code == 200
        body = response.json()
        assert body["query"] == '"Bal Tabarin" poster'
        assert [link["dealer_name"] for link in body["links"]] == ["Heritage Auctions"]
        assert body["links"][0]["search_url"].endswith("Ntt=%22Bal%20Tabarin%22%20poster")

    def test_requires_query_or_item(self, client):
        response = client.post("/api/research/search-urls", json={"dealer_ids": [1]})

        assert response.status_code == 400


def test_lens_search_matches_dealers(client, deps):
    deps.visual = FakeVisualProvider(
        VisualSearchResponse(
            results=[
                make_result("https://www.ha.com/itm/1", source="lens"),
                make_result("https://unknown.example.com/2", source="lens"),
            ],
            credits_used=1,
        )
    )

    body = client.post("/api/research/lens", json={"image_url": "https://cdn.example.com/1.jpg"}).json()

    assert body["success"] is True
    assert [r["is_known_dealer"] for r in body["results"]] == [True, False]
    assert body["unknown_domains"] == ["unknown.example.com"]


class TestComprehensive:
    def test_requires_image_or_query(self, client):
        response = client.post("/api/research/comprehensive", json={"extract_findings": True})
        assert response.status_code == 400

    def test_findings_consensus_and_prices(self, client, deps):
        deps.text = FakeTextProvider(
            results={
                "Bal Tabarin poster": [
                    make_result("https://posteritati.com/poster/2", snippet="Original 1904 poster"),
                    make_result("https://www.ha.com/itm/1", snippet="Sold for $2,400"),
                    make_result("https://elsewhere.example.com/3"),
                ]
            }
        )
        deps.model = FakeModel(
            text=json.dumps(
                [
                    {
                        "resultIndex": 0,
                        "matchConfidence": 90,
                        "extractedArtist": "Jules Chéret",
                        "extractedPrice": {"amount": 2400, "currency": "USD", "type": "sold"},
                    }
                ]
            )
        )

        response = client.post(
            "/api/research/comprehensive",
            json={
                "query": "Bal Tabarin poster",
                "extract_findings": True,
                "item": {"title": "Bal Tabarin"},
                "current_artist": "Jules Chéret",
                "current_confidence": 70,
            },
        )

        assert response.status_code == 200
        body = response.json()
        assert len(body["search"]["results"]) == 3
        assert [f["dealer_name"] for f in body["findings"]] == ["Heritage Auctions"]
        assert body["consensus"]["artist"] == "Jules Chéret"
        assert body["comparison"]["agreement"] == "match"
        assert body["price_summary"]["sold_prices"]["count"] == 1
        # Only known dealers are sent for extraction
        assert "elsewhere.example.com" not in deps.model.prompts[0]

    def test_directory_is_read_once_per_run(self, client, deps, sellers):
        deps.directory = CountingDirectory(sellers)
        deps.text = FakeTextProvider(results={"Bal Tabarin poster": [make_result("https://www.ha.com/itm/1")]})
        deps.model = FakeModel(text="[]")

        response = client.post(
            "/api/research/comprehensive",
            json={"query": "Bal Tabarin poster", "extract_findings": True},
        )

        assert response.status_code == 200
        assert deps.directory.reads == 1
        assert response.json()["search"]["results"][0]["is_known_dealer"] is True

    def test_unparseable_model_output_is_502(self, client, deps):
        deps.text = FakeTextProvider(results={"Bal Tabarin poster": [make_result("https://www.ha.com/itm/1")]})
        deps.model = FakeModel(text="Sorry, I cannot help with that.")

        response = client.post(
            "/api/research/comprehensive",
            json={"query": "Bal Tabarin poster", "extract_findings": True},
        )

        assert response.status_code == 502
        assert response.json()["error"] == "ParsingError"

    def test_extraction_unconfigured_is_reported(self, client, deps):
        deps.text = FakeTextProvider(results={"Bal Tabarin poster": [make_result("https://www.ha.com/itm/1")]})
        deps.model = FakeModel(configured=False)

        body = client.post(
            "/api/research/comprehensive",
            json={"query": "Bal Tabarin poster", "extract_findings": True},
        ).json()

        assert body["findings"] == []
        assert any("AI extraction is not configured" in e for e in body["search"]["errors"])


class TestVerify:
    def test_single_comparison(self, client, deps):
        deps.model = FakeModel(image_answers={"https://t/1.jpg": '{"visualMatch": 64, "explanation": "close"}'})

        body = client.post(
            "/api/research/verify",
            json={"image_url": "https://cdn/ref.jpg", "candidate_url": "https://t/1.jpg"},
        ).json()

        assert body["result"]["visual_match"] == 64
        assert body["result"]["tier"] == "likely"
        assert body["result"]["label"] == "Likely same item"

    def test_batch_cap(self, client):
        urls = [f"https://t/{i}.jpg" for i in range(21)]

        response = client.post("/api/research/verify", json={"image_url": "https://cdn/ref.jpg", "candidate_urls": urls})

        assert response.status_code == 400
        assert response.json()["detail"] == {"received": 21}

    def test_unconfigured(self, client, deps):
        deps.model = FakeModel(configured=False)

        body = client.post(
            "/api/research/verify",
            json={"image_url": "https://cdn/ref.jpg", "candidate_url": "https://t/1.jpg"},
        ).json()

        assert body == {
            "success": False,
            "configured": False,
            "error": "Visual verification is not configured. Add an LLM API key to environment variables.",
        }

    def test_requires_candidate(self, client):
        response = client.post("/api/research/verify", json={"image_url": "https://cdn/ref.jpg"})
        assert response.status_code == 400


class TestDealerRoutes:
    def test_list(self, client):
        assert len(client.get("/api/dealers").json()) == 3
        assert len(client.get("/api/dealers", params={"active_only": "false"}).json()) == 4

    def test_discover_options_preview(self, client):
        body = client.get("/api/dealers/discover/options", params={"region": "france", "language": "fr"}).json()

        assert "France" in body["query_preview"]
        assert body["regions"]

    def test_discover_unconfigured(self, client, deps):
        deps.text = FakeTextProvider(configured=False)

        body = client.post("/api/dealers/discover", json={"region": "france"}).json()

        assert body["success"] is False
        assert body["configured"] is False
