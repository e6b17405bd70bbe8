"""
Error classification tests.
"""
import pytest

from app.errors import (
    BGGAPIError,
    BGGQueuedError,
    ErrorCategory,
    GameNotFoundError,
    InvalidQueryError,
    SEARCH_TIMEOUT_MESSAGE,
    TIMEOUT_MESSAGE,
    UpstreamErrorKind,
    classify_error,
    is_retryable,
    user_message,
)


@pytest.mark.parametrize("kind,category", [
    (UpstreamErrorKind.RATE_LIMITED, ErrorCategory.RATE_LIMITED),
    (UpstreamErrorKind.TIMEOUT, ErrorCategory.TIMEOUT),
    (UpstreamErrorKind.NETWORK, ErrorCategory.NETWORK),
    (UpstreamErrorKind.NOT_FOUND, ErrorCategory.NOT_FOUND),
    (UpstreamErrorKind.INVALID_RESPONSE, ErrorCategory.INTERNAL),
    (UpstreamErrorKind.UNAVAILABLE, ErrorCategory.INTERNAL),
])
def test_structured_kind_wins(kind, category):
    # Message deliberately misleading: the kind decides
    assert classify_error(BGGAPIError("network hiccup", kind=kind)) is category


@pytest.mark.parametrize("message,category", [
    ("Rate limit exceeded", ErrorCategory.RATE_LIMITED),
    ("upstream timeout after 15s", ErrorCategory.TIMEOUT),
    ("read timed out", ErrorCategory.TIMEOUT),
    ("network unreachable", ErrorCategory.NETWORK),
    ("thing not found", ErrorCategory.NOT_FOUND),
    ("something else entirely", ErrorCategory.INTERNAL),
])
def test_untyped_errors_fall_back_to_message(message, category):
    assert classify_error(RuntimeError(message)) is category


def test_status_codes():
    assert ErrorCategory.CLIENT_INPUT.status_code == 400
    assert ErrorCategory.RATE_LIMITED.status_code == 429
    assert ErrorCategory.TIMEOUT.status_code == 408
    assert ErrorCategory.NETWORK.status_code == 503
    assert ErrorCategory.NOT_FOUND.status_code == 404
    assert ErrorCategory.INTERNAL.status_code == 500


def test_retryable_categories():
    assert is_retryable(BGGAPIError("x", kind=UpstreamErrorKind.RATE_LIMITED))
    assert is_retryable(BGGQueuedError())
    assert not is_retryable(InvalidQueryError("too short"))
    assert not is_retryable(GameNotFoundError("1"))


def test_client_input_keeps_its_message():
    assert user_message(InvalidQueryError("Query too short")) == "Query too short"


def test_timeout_message_depends_on_endpoint():
    error = BGGAPIError("BGG request timeout", kind=UpstreamErrorKind.TIMEOUT)
    assert user_message(error) == TIMEOUT_MESSAGE
    assert user_message(error, search=True) == SEARCH_TIMEOUT_MESSAGE


def test_internal_details_not_leaked():
    assert user_message(ValueError("db password is hunter2")) == "Internal server error"


def test_queued_response_counts_as_timeout():
    assert classify_error(BGGQueuedError("https://boardgamegeek.com/xmlapi2/thing")) is ErrorCategory.TIMEOUT
