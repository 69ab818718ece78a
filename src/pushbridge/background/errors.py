"""Map hosting failures to the messages shown to users."""

from __future__ import annotations

from ..hosting import HostingApiError

NOT_FOUND_MESSAGE = (
    "Repository not found. Please check that the repository exists and that you have access to it."
)
FORBIDDEN_MESSAGE = "Access denied. Your token or GitHub App may need additional permissions."
UNAUTHORIZED_MESSAGE = "Authentication failed. Please check your GitHub token or app installation."
RATE_LIMIT_MESSAGE = "GitHub API rate limit exceeded"


def _status_of(exc: BaseException) -> int | None:
    status = getattr(exc, "status", None)
    return status if isinstance(status, int) and status > 0 else None


def is_not_found(exc: BaseException) -> bool:
    status = _status_of(exc)
    if status is not None:
        return status == 404
    text = str(exc).lower()
    return "404" in text or "not found" in text


def is_rate_limited(exc: BaseException) -> bool:
    if isinstance(exc, HostingApiError) and exc.rate_limited:
        return True
    if _status_of(exc) == 429:
        return True
    return "rate limit" in str(exc).lower()


def describe_error(exc: BaseException) -> str:
    """Return the user-facing message for a failure."""

    status = _status_of(exc)
    text = str(exc)
    lowered = text.lower()

    if is_rate_limited(exc):
        remaining = getattr(exc, "rate_limit_remaining", None)
        limit = getattr(exc, "rate_limit_limit", None)
        if remaining is not None and limit is not None:
            return f"{RATE_LIMIT_MESSAGE} ({remaining}/{limit} requests remaining)"
        return RATE_LIMIT_MESSAGE
    if is_not_found(exc):
        return NOT_FOUND_MESSAGE
    if status == 401 or (status is None and ("401" in text or "authentication failed" in lowered)):
        return UNAUTHORIZED_MESSAGE
    if status == 403 or (status is None and ("403" in text or "forbidden" in lowered)):
        return FORBIDDEN_MESSAGE
    return text or type(exc).__name__


__all__ = [
    "FORBIDDEN_MESSAGE",
    "NOT_FOUND_MESSAGE",
    "RATE_LIMIT_MESSAGE",
    "UNAUTHORIZED_MESSAGE",
    "describe_error",
    "is_not_found",
    "is_rate_limited",
]
