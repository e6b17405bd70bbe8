"""
Transport client tests with a stubbed requests session (no network).
"""
import pytest
import requests
from tenacity import wait_none

from app.bgg_client import BGGClient, EMPTY_ITEMS_XML
from app.errors import BGGAPIError, BGGQueuedError, UpstreamErrorKind
from conftest import CATAN_XML, SEAFARERS_XML, items_xml


class StubResponse:
    def __init__(self, status_code=200, text=""):
        self.status_code = status_code
        self.text = text
        self.encoding = None


class StubSession:
    """Returns queued responses (or raises queued exceptions) in order."""

    def __init__(self, *responses):
        self.headers = {}
        self.responses = list(responses)
        self.requests = []

    def get(self, url, params=None, timeout=None):
        self.requests.append({"url": url, "params": dict(params or {}), "timeout": timeout})
        response = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if isinstance(response, Exception):
            raise response
        return response


def make_client(session, **kwargs):
    kwargs.setdefault("rate_limit_delay", 0)
    return BGGClient(session=session, **kwargs)


OK_XML = items_xml([CATAN_XML])


class TestRequests:

    def test_search_params(self):
        session = StubSession(StubResponse(text=items_xml([])))
        make_client(session).search_games("  Catan ", "boardgameexpansion", exact=True)

        request = session.requests[0]
        assert request["url"] == "https://boardgamegeek.com/xmlapi2/search"
        assert request["params"] == {"query": "Catan", "type": "boardgameexpansion", "exact": "1"}

    def test_game_details_requests_stats_and_versions(self):
        session = StubSession(StubResponse(text=OK_XML))
        assert make_client(session).get_game_details("13") == OK_XML
        assert session.requests[0]["params"] == {"id": "13", "stats": "1", "versions": "1"}

    def test_headers(self):
        session = StubSession(StubResponse(text=OK_XML))
        make_client(session, user_agent="TestAgent/1.0", api_token="secret")

        assert session.headers["User-Agent"] == "TestAgent/1.0"
        assert session.headers["Authorization"] == "Bearer secret"

    def test_timeout_is_passed(self):
        session = StubSession(StubResponse(text=OK_XML))
        make_client(session, timeout=4.5).get_game_details("13")
        assert session.requests[0]["timeout"] == 4.5


class TestBatchMetadata:

    def test_empty_batch_makes_no_request(self):
        session = StubSession(StubResponse(text=OK_XML))
        assert make_client(session).get_batch_metadata([]) == EMPTY_ITEMS_XML
        assert session.requests == []

    def test_ids_are_chunked_and_merged(self):
        session = StubSession(
            StubResponse(text=items_xml([CATAN_XML])),
            StubResponse(text=items_xml([SEAFARERS_XML])),
            StubResponse(text=items_xml([])),
        )
        xml = make_client(session, max_batch_size=2).get_batch_metadata(["13", "325", "1", "2", "3"])

        assert [request["params"]["id"] for request in session.requests] == ["13,325", "1,2", "3"]
        assert 'id="13"' in xml
        assert 'id="325"' in xml


class TestErrors:

    @pytest.mark.parametrize("status,kind", [
        (400, UpstreamErrorKind.INVALID_RESPONSE),
        (404, UpstreamErrorKind.NOT_FOUND),
        (429, UpstreamErrorKind.RATE_LIMITED),
        (500, UpstreamErrorKind.UNAVAILABLE),
        (503, UpstreamErrorKind.UNAVAILABLE),
    ])
    def test_status_codes(self, status, kind):
        session = StubSession(StubResponse(status_code=status, text="<error/>"))
        with pytest.raises(BGGAPIError) as exc_info:
            make_client(session).get_game_details("13")

        assert exc_info.value.kind is kind
        assert exc_info.value.status_code == status

    def test_rate_limit_message_keeps_legacy_text(self):
        session = StubSession(StubResponse(status_code=429))
        with pytest.raises(BGGAPIError, match="Rate limit"):
            make_client(session).get_game_details("13")

    def test_timeout(self):
        session = StubSession(requests.Timeout("read timed out"))
        with pytest.raises(BGGAPIError) as exc_info:
            make_client(session).get_game_details("13")
        assert exc_info.value.kind is UpstreamErrorKind.TIMEOUT

    def test_timeout_is_not_retried(self):
        session = StubSession(requests.Timeout("read timed out"))
        with pytest.raises(BGGAPIError):
            make_client(session).get_game_details("13")
        assert len(session.requests) == 1

    def test_connection_error(self):
        session = StubSession(requests.ConnectionError("refused"))
        with pytest.raises(BGGAPIError) as exc_info:
            make_client(session).get_game_details("13")
        assert exc_info.value.kind is UpstreamErrorKind.NETWORK

    def test_html_body_is_invalid(self):
        session = StubSession(StubResponse(text="<!DOCTYPE html><html><body>Maintenance"))
        with pytest.raises(BGGAPIError) as exc_info:
            make_client(session).get_game_details("13")
        assert exc_info.value.kind is UpstreamErrorKind.INVALID_RESPONSE


class TestQueuedRetry:

    def test_queued_then_ready(self):
        session = StubSession(StubResponse(status_code=202), StubResponse(text=OK_XML))
        client = make_client(session)

        get = BGGClient._get.retry_with(wait=wait_none())
        assert get(client, "/xmlapi2/thing", {"id": "13"}) == OK_XML
        assert len(session.requests) == 2

    def test_queued_gives_up(self):
        session = StubSession(StubResponse(status_code=202))
        client = make_client(session)

        get = BGGClient._get.retry_with(wait=wait_none())
        with pytest.raises(BGGQueuedError):
            get(client, "/xmlapi2/thing", {"id": "13"})
        assert len(session.requests) == 3


class TestThrottle:

    def test_hourly_cap(self):
        session = StubSession(StubResponse(text=OK_XML))
        client = make_client(session, max_requests_per_hour=1)
        client.get_game_details("13")

        with pytest.raises(BGGAPIError) as exc_info:
            client.get_game_details("13")
        assert exc_info.value.kind is UpstreamErrorKind.RATE_LIMITED
        assert client.request_count == 1
