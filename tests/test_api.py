"""
Endpoint tests for the /api/bgg routes, using an injected fake BGG client.
"""
import pytest
from fastapi.testclient import TestClient

from app.cache import CacheManager
from app.errors import BGGAPIError, UpstreamErrorKind
from app.main import create_app
from conftest import FakeBGGClient, search_item_xml


@pytest.fixture
def fake():
    return FakeBGGClient()


@pytest.fixture
def client(fake):
    return TestClient(create_app(client=fake, cache=CacheManager()))


class TestBatchGameDetails:

    def test_ordered_results_and_summary(self, client, fake):
        response = client.post("/api/bgg/batch-game-details", json={"gameIds": ["13", "161936", "999999999"]})
        assert response.status_code == 200

        data = response.json()
        assert [entry["gameId"] for entry in data["results"]] == ["13", "161936", "999999999"]
        assert data["results"][0]["game"]["name"] == "CATAN"
        assert data["results"][2]["game"] is None
        assert data["results"][2]["error"] == "Game not found or failed to parse"
        assert data["summary"] == {"total": 3, "successful": 2, "failed": 1, "cached": 0, "fetched": 3}
        assert fake.count("get_batch_metadata") == 1

    def test_cached_id_skipped_upstream(self, client, fake):
        client.get("/api/bgg/game?id=13")
        fake.calls.clear()

        data = client.post("/api/bgg/batch-game-details", json={"gameIds": ["13", "161936", "999999999"]}).json()

        assert fake.calls == [("get_batch_metadata", ["161936", "999999999"])]
        assert [entry["gameId"] for entry in data["results"]] == ["13", "161936", "999999999"]
        assert data["results"][0]["game"]["name"] == "CATAN"
        assert data["results"][2]["error"] == "Game not found or failed to parse"
        assert data["summary"] == {"total": 3, "successful": 2, "failed": 1, "cached": 1, "fetched": 2}

    def test_repeat_request_served_from_cache(self, client):
        client.post("/api/bgg/batch-game-details", json={"gameIds": ["13", "161936"]})
        data = client.post("/api/bgg/batch-game-details", json={"gameIds": ["13", "161936"]}).json()
        assert data["summary"]["cached"] == 2
        assert data["summary"]["fetched"] == 0

    def test_truncates_to_twenty_ids(self, client, fake):
        ids = [str(i) for i in range(30)]
        data = client.post("/api/bgg/batch-game-details", json={"gameIds": ids}).json()

        assert data["summary"]["total"] == 20
        assert fake.calls[0][1] == ids[:20]

    def test_numeric_ids_are_accepted(self, client):
        data = client.post("/api/bgg/batch-game-details", json={"gameIds": [13]}).json()
        assert data["results"][0]["game"]["id"] == "13"

    @pytest.mark.parametrize("body", [{}, {"gameIds": []}])
    def test_missing_ids_is_client_error(self, client, body):
        response = client.post("/api/bgg/batch-game-details", json=body)
        assert response.status_code == 400
        assert response.json() == {"error": "Game IDs array is required"}

    def test_upstream_failure_becomes_per_id_errors(self, client, fake):
        fake.error = BGGAPIError("BGG network error", kind=UpstreamErrorKind.NETWORK)
        response = client.post("/api/bgg/batch-game-details", json={"gameIds": ["13"]})

        assert response.status_code == 200
        assert response.json()["results"][0]["error"].startswith("Network connection issue")


class TestGameEndpoints:

    def test_game_details(self, client):
        response = client.get("/api/bgg/game?id=13")
        assert response.status_code == 200

        game = response.json()["game"]
        assert game["name"] == "CATAN"
        assert game["description"] == "A game about trading & building."
        assert game["type"] == "boardgame"

    def test_game_not_found(self, client):
        response = client.get("/api/bgg/game?id=999999999")
        assert response.status_code == 404
        assert response.json() == {"error": "Game not found."}

    def test_game_requires_id(self, client):
        response = client.get("/api/bgg/game")
        assert response.status_code == 400

    def test_rate_limited_sets_retry_after(self, client, fake):
        fake.error = BGGAPIError("Rate limit exceeded", kind=UpstreamErrorKind.RATE_LIMITED)
        response = client.get("/api/bgg/game?id=13")

        assert response.status_code == 429
        assert response.headers["Retry-After"] == "30"

    def test_timeout_maps_to_408(self, client, fake):
        fake.error = BGGAPIError("BGG request timeout", kind=UpstreamErrorKind.TIMEOUT)
        response = client.get("/api/bgg/game?id=13")

        assert response.status_code == 408
        assert response.json() == {"error": "Request is taking longer than expected. Please try again."}

    def test_unexpected_error_is_internal(self, client, fake):
        fake.error = KeyError("boom")
        response = client.get("/api/bgg/game?id=13")

        assert response.status_code == 500
        assert response.json() == {"error": "Internal server error"}

    def test_game_with_versions_single_upstream_call(self, client, fake):
        data = client.get("/api/bgg/game-with-versions?id=13").json()

        assert data["game"]["id"] == "13"
        assert len(data["versions"]) == 2
        assert data["versions"][0]["version"]["dimensions"]["hasDimensions"] is True
        assert len(fake.calls) == 1

    def test_versions_endpoint(self, client):
        data = client.get("/api/bgg/versions?id=13").json()
        assert data["versions"][0]["languageMatch"] == "exact"

    def test_versions_404_when_game_has_none(self, client):
        response = client.get("/api/bgg/versions?id=161936")
        assert response.status_code == 404
        assert response.json() == {"error": "No versions found for this game"}


class TestSearchEndpoints:

    def test_search(self, client):
        response = client.get("/api/bgg/search?q=catan&type=boardgame")
        assert response.status_code == 200

        results = response.json()["results"]
        assert results[0]["id"] == "13"
        assert results[0]["bggLink"] == "https://boardgamegeek.com/boardgame/13"
        assert results[0]["searchScore"] > 0
        assert response.json()["cached"] is False

    def test_search_reports_cache_hit(self, client, fake):
        client.get("/api/bgg/search?q=catan")
        data = client.get("/api/bgg/search?q=CATAN").json()

        assert data["cached"] is True
        assert fake.count("search_games") == 1

    def test_search_light_reports_cache_hit(self, client):
        first = client.get("/api/bgg/search-light?q=catan").json()
        second = client.get("/api/bgg/search-light?q=catan").json()

        assert first["cached"] is False
        assert second["cached"] is True
        assert second["total"] == first["total"]

    def test_short_query_rejected_without_upstream_call(self, client, fake):
        response = client.get("/api/bgg/search?q=a")

        assert response.status_code == 400
        assert "at least 2 characters" in response.json()["error"]
        assert fake.calls == []

    def test_search_timeout_message(self, client, fake):
        fake.error = BGGAPIError("BGG request timeout", kind=UpstreamErrorKind.TIMEOUT)
        response = client.get("/api/bgg/search-light?q=catan")

        assert response.status_code == 408
        assert response.json()["error"] == (
            "Search is taking longer than expected. Please try a more specific search term."
        )

    def test_search_light(self, fake):
        fake.search_items = [search_item_xml(str(i), f"Catan {i}") for i in range(1, 26)]
        client = TestClient(create_app(client=fake, cache=CacheManager()))

        data = client.get("/api/bgg/search-light?q=catan").json()
        assert len(data["results"]) == 20
        assert data["total"] == 25
        assert data["hasMore"] is True
        assert data["results"][0]["hasMetadata"] is False

    def test_exact_flag_passed_upstream(self, client, fake):
        client.get("/api/bgg/search-light?q=catan&exact=true")
        assert fake.calls[0] == ("search_games", "catan", "boardgame", True)

    def test_enhance_search(self, client):
        response = client.post("/api/bgg/enhance-search", json={"gameIds": ["13", "999"]})
        assert response.status_code == 200

        results = response.json()["results"]
        assert results[0]["hasMetadata"] is True
        assert results[0]["name"] == "CATAN"
        assert results[1]["name"] == "Unknown Game"

    def test_enhance_search_requires_ids(self, client):
        response = client.post("/api/bgg/enhance-search", json={"gameIds": []})
        assert response.status_code == 400


class TestCacheStats:

    def test_stats_shape(self, client):
        client.get("/api/bgg/game?id=13")
        client.get("/api/bgg/game?id=13")

        data = client.get("/api/bgg/cache-stats").json()
        assert data["stats"]["cacheHits"] == 1
        assert data["stats"]["totalQueries"] == 2
        assert data["efficiency"]["metadataHitRate"] == 0.5
        assert "timestamp" in data

    def test_clear_cache(self, client):
        client.get("/api/bgg/game?id=13")

        response = client.delete("/api/bgg/cache-stats")
        assert response.status_code == 200
        assert response.json()["cleared"] == 1

        stats = client.get("/api/bgg/cache-stats").json()["stats"]
        assert stats["size"] == 0
        assert stats["totalQueries"] == 0
