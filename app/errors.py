"""
Error types and classification for BGG upstream failures.

The transport client raises BGGAPIError with a structured kind. Every HTTP
entry point maps failures through classify_error() so status codes and user
messages stay consistent. Matching on message text is only a fallback for
exceptions that do not carry a kind.
"""
from enum import Enum
from typing import Optional


class UpstreamErrorKind(Enum):
    """Failure kinds reported by the transport client."""
    RATE_LIMITED = "rate_limited"
    TIMEOUT = "timeout"
    NETWORK = "network"
    NOT_FOUND = "not_found"
    INVALID_RESPONSE = "invalid_response"
    UNAVAILABLE = "unavailable"


# User-facing messages
RATE_LIMIT_MESSAGE = "BGG API is busy. Please wait a moment and try again."
TIMEOUT_MESSAGE = "Request is taking longer than expected. Please try again."
SEARCH_TIMEOUT_MESSAGE = (
    "Search is taking longer than expected. Please try a more specific search term."
)
NETWORK_MESSAGE = "Network connection issue. Please check your internet connection."
NOT_FOUND_MESSAGE = "Game not found."
INTERNAL_MESSAGE = "Internal server error"


class ErrorCategory(Enum):
    """
    Error taxonomy surfaced to HTTP callers.

    Each member carries (status_code, retryable, default message).
    """
    CLIENT_INPUT = (400, False, "Invalid request")
    RATE_LIMITED = (429, True, RATE_LIMIT_MESSAGE)
    TIMEOUT = (408, True, TIMEOUT_MESSAGE)
    NETWORK = (503, True, NETWORK_MESSAGE)
    NOT_FOUND = (404, False, NOT_FOUND_MESSAGE)
    INTERNAL = (500, False, INTERNAL_MESSAGE)

    def __init__(self, status_code: int, retryable: bool, message: str):
        self.status_code = status_code
        self.retryable = retryable
        self.message = message


# ============================================================================
# Exceptions
# ============================================================================

class BGGAPIError(Exception):
    """Raised by the transport client when an upstream call fails."""

    def __init__(
        self,
        message: str,
        kind: UpstreamErrorKind = UpstreamErrorKind.UNAVAILABLE,
        status_code: Optional[int] = None,
        url: Optional[str] = None,
    ):
        super().__init__(message)
        self.kind = kind
        self.status_code = status_code
        self.url = url


class BGGQueuedError(BGGAPIError):
    """BGG accepted the request but has not produced the response yet (HTTP 202)."""

    def __init__(self, url: Optional[str] = None):
        super().__init__(
            "BGG request queued, response not ready before timeout",
            kind=UpstreamErrorKind.TIMEOUT,
            status_code=202,
            url=url,
        )


class InvalidRequestError(Exception):
    """A required parameter is missing or malformed."""
    pass


class InvalidQueryError(InvalidRequestError):
    """Search query is missing or shorter than the minimum length."""
    pass


class GameNotFoundError(Exception):
    """Upstream returned no usable record for a requested game id."""

    def __init__(self, game_id: str, message: str = "Game not found or failed to parse game details"):
        super().__init__(message)
        self.game_id = game_id


# ============================================================================
# Classification
# ============================================================================

_KIND_TO_CATEGORY = {
    UpstreamErrorKind.RATE_LIMITED: ErrorCategory.RATE_LIMITED,
    UpstreamErrorKind.TIMEOUT: ErrorCategory.TIMEOUT,
    UpstreamErrorKind.NETWORK: ErrorCategory.NETWORK,
    UpstreamErrorKind.NOT_FOUND: ErrorCategory.NOT_FOUND,
}

# Fallback signatures, checked in order
_MESSAGE_SIGNATURES = [
    ("rate limit", ErrorCategory.RATE_LIMITED),
    ("timeout", ErrorCategory.TIMEOUT),
    ("timed out", ErrorCategory.TIMEOUT),
    ("network", ErrorCategory.NETWORK),
    ("not found", ErrorCategory.NOT_FOUND),
]


def classify_error(error: BaseException) -> ErrorCategory:
    """
    Map an exception to the error taxonomy.

    Order: domain exceptions, then the structured kind of BGGAPIError, then
    substring matching on the message. Anything else is INTERNAL.
    """
    if isinstance(error, InvalidRequestError):
        return ErrorCategory.CLIENT_INPUT
    if isinstance(error, GameNotFoundError):
        return ErrorCategory.NOT_FOUND

    kind = getattr(error, "kind", None)
    if isinstance(kind, UpstreamErrorKind):
        return _KIND_TO_CATEGORY.get(kind, ErrorCategory.INTERNAL)

    message = str(error).lower()
    for signature, category in _MESSAGE_SIGNATURES:
        if signature in message:
            return category

    return ErrorCategory.INTERNAL


def user_message(error: BaseException, search: bool = False) -> str:
    """
    User-facing message for an exception.

    Client input errors keep their own message; everything else uses the
    category's fixed text so internals are not leaked.
    """
    category = classify_error(error)
    if category is ErrorCategory.CLIENT_INPUT:
        return str(error) or category.message
    if category is ErrorCategory.TIMEOUT and search:
        return SEARCH_TIMEOUT_MESSAGE
    return category.message


def is_retryable(error: BaseException) -> bool:
    """True if the caller may retry the same request later."""
    return classify_error(error).retryable
