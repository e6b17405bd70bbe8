"""
HTTP client for the BoardGameGeek XML API2.

Returns raw XML for searches and /thing lookups, throttles calls to stay
within BGG's rate limits, and raises BGGAPIError with a structured kind for
every failure.
"""
import logging
import threading
import time
import xml.etree.ElementTree as ET
from typing import Dict, List, Optional

import requests
from dotenv import load_dotenv
from tenacity import (
    retry,
    stop_after_attempt,
    wait_exponential,
    retry_if_exception_type,
)

from app.bgg_parser import clean_xml
from app.errors import BGGAPIError, BGGQueuedError, UpstreamErrorKind
from config.settings import settings

load_dotenv()

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("bgg_client")

# XML API2 endpoints
SEARCH_ENDPOINT = "/xmlapi2/search"
THING_ENDPOINT = "/xmlapi2/thing"

EMPTY_ITEMS_XML = '<?xml version="1.0" encoding="UTF-8"?><items></items>'

# Error messages keep the legacy substrings ("Rate limit", "timeout",
# "network", "not found") so untyped fallbacks still classify correctly
ERROR_MESSAGES = {
    UpstreamErrorKind.RATE_LIMITED: "Rate limit exceeded: BGG API is busy. Please wait a moment and try again.",
    UpstreamErrorKind.TIMEOUT: "BGG request timeout: search is taking longer than expected.",
    UpstreamErrorKind.NETWORK: "BGG network error: connection issue while contacting BGG.",
    UpstreamErrorKind.NOT_FOUND: "Game not found in BGG database.",
    UpstreamErrorKind.INVALID_RESPONSE: "Received invalid data from BGG API.",
    UpstreamErrorKind.UNAVAILABLE: "BGG API is currently unavailable. Please try again later.",
}

_STATUS_TO_KIND = {
    400: UpstreamErrorKind.INVALID_RESPONSE,
    404: UpstreamErrorKind.NOT_FOUND,
    429: UpstreamErrorKind.RATE_LIMITED,
    503: UpstreamErrorKind.UNAVAILABLE,
}


def combine_xml_responses(responses: List[str]) -> str:
    """
    Merge several /thing responses into one <items> document.

    Only top-level items are moved, so nested version items stay with
    their game.
    """
    if len(responses) == 1:
        return responses[0]

    combined = ET.Element("items", {"termsofuse": "https://boardgamegeek.com/xmlapi/termsofuse"})
    for response in responses:
        try:
            root = ET.fromstring(clean_xml(response))
        except ET.ParseError as e:
            logger.warning(f"Dropping unparseable batch chunk: {e}")
            continue
        for item in root.findall("item"):
            combined.append(item)

    if len(combined) == 0:
        return EMPTY_ITEMS_XML
    return '<?xml version="1.0" encoding="UTF-8"?>' + ET.tostring(combined, encoding="unicode")


def _looks_like_xml(text: str) -> bool:
    trimmed = (text or "").strip()
    return trimmed.startswith("<") and ("</" in trimmed or trimmed.endswith("/>"))


class BGGClient:
    """
    Transport client for the BGG XML API.

    One instance is shared by all request handlers; the throttle state is
    guarded by a lock so concurrent handlers queue behind each other instead
    of bursting upstream.
    """

    def __init__(
        self,
        base_url: str = settings.bgg_base_url,
        user_agent: str = settings.bgg_user_agent,
        api_token: Optional[str] = settings.bgg_api_token,
        timeout: float = settings.bgg_timeout_seconds,
        rate_limit_delay: float = settings.bgg_rate_limit_delay_seconds,
        max_requests_per_hour: int = settings.bgg_max_requests_per_hour,
        max_batch_size: int = settings.bgg_max_batch_size,
        session: Optional[requests.Session] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.rate_limit_delay = rate_limit_delay
        self.max_requests_per_hour = max_requests_per_hour
        self.max_batch_size = max_batch_size

        self._session = session or requests.Session()
        self._session.headers.update({
            "User-Agent": user_agent,
            "Accept": "application/xml; charset=utf-8",
        })
        if api_token:
            self._session.headers["Authorization"] = f"Bearer {api_token}"

        self._throttle_lock = threading.Lock()
        self._last_call = 0.0
        self._request_count = 0
        self._window_start = time.monotonic()

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------

    def search_games(
        self,
        query: str,
        game_type: Optional[str] = "boardgame",
        exact: bool = False,
    ) -> str:
        """Search BGG by name. Returns raw /search XML."""
        params = {
            "query": query.strip(),
            "type": game_type or "boardgame",
        }
        if exact:
            params["exact"] = "1"
        logger.info(f"BGG search: {params}")
        return self._get(SEARCH_ENDPOINT, params)

    def get_game_details(self, game_id: str) -> str:
        """Fetch one game with stats and versions in a single call."""
        return self._get(THING_ENDPOINT, {
            "id": str(game_id),
            "stats": "1",
            "versions": "1",
        })

    def get_batch_metadata(self, game_ids: List[str]) -> str:
        """
        Fetch metadata for several games.

        Ids are split into chunks of max_batch_size (BGG times out on large
        /thing requests) and the chunk responses merged into one document.
        """
        if not game_ids:
            return EMPTY_ITEMS_XML

        chunks = [
            game_ids[i:i + self.max_batch_size]
            for i in range(0, len(game_ids), self.max_batch_size)
        ]
        logger.info(f"BGG batch metadata: {len(game_ids)} ids in {len(chunks)} request(s)")

        responses = [
            self._get(THING_ENDPOINT, {
                "id": ",".join(str(game_id) for game_id in chunk),
                "stats": "1",
                "versions": "1",
            })
            for chunk in chunks
        ]
        return combine_xml_responses(responses)

    @property
    def request_count(self) -> int:
        """Requests made in the current hourly window."""
        with self._throttle_lock:
            return self._request_count

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    @retry(
        stop=stop_after_attempt(settings.bgg_queued_retry_attempts),
        wait=wait_exponential(multiplier=1, min=1, max=10),
        retry=retry_if_exception_type(BGGQueuedError),
        reraise=True,
    )
    def _get(self, endpoint: str, params: Dict[str, str]) -> str:
        """
        Make a throttled GET request and return the response body.

        Retries only when BGG answers 202 (request queued). Timeouts and
        rate limits are surfaced to the caller without retrying.
        """
        self._throttle()
        url = f"{self.base_url}{endpoint}"

        try:
            response = self._session.get(url, params=params, timeout=self.timeout)
        except requests.Timeout as e:
            logger.error(f"BGG request timed out: {url} - {e}")
            raise self._error(UpstreamErrorKind.TIMEOUT, url=url) from e
        except requests.RequestException as e:
            logger.error(f"BGG request failed: {url} - {e}")
            raise self._error(UpstreamErrorKind.NETWORK, url=url) from e

        if response.status_code == 202:
            logger.info(f"BGG request queued, retrying: {url}")
            raise BGGQueuedError(url=url)

        if response.status_code != 200:
            kind = _STATUS_TO_KIND.get(response.status_code, UpstreamErrorKind.UNAVAILABLE)
            logger.error(f"BGG API error {response.status_code}: {url}")
            raise self._error(kind, status_code=response.status_code, url=url)

        response.encoding = "utf-8"
        body = response.text
        if not _looks_like_xml(body):
            logger.error(f"Invalid XML response from {url}")
            raise self._error(UpstreamErrorKind.INVALID_RESPONSE, url=url)

        return body

    def _throttle(self) -> None:
        """Enforce the hourly cap and the minimum delay between calls."""
        with self._throttle_lock:
            now = time.monotonic()
            if now - self._window_start > 3600:
                self._request_count = 0
                self._window_start = now

            if self._request_count >= self.max_requests_per_hour:
                logger.warning("Hourly BGG request budget exhausted")
                raise self._error(UpstreamErrorKind.RATE_LIMITED)

            elapsed = now - self._last_call
            if elapsed < self.rate_limit_delay:
                delay = self.rate_limit_delay - elapsed
                logger.debug(f"Rate limiting: sleeping {delay:.2f}s")
                time.sleep(delay)

            self._last_call = time.monotonic()
            self._request_count += 1

    @staticmethod
    def _error(
        kind: UpstreamErrorKind,
        status_code: Optional[int] = None,
        url: Optional[str] = None,
    ) -> BGGAPIError:
        return BGGAPIError(ERROR_MESSAGES[kind], kind=kind, status_code=status_code, url=url)
