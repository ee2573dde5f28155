"""Keyword classification of deployment errors."""

from shipctl.recovery.models import ErrorType

QUOTA_KEYWORDS = ("quota", "limit exceeded", "too many requests")
BUILD_KEYWORDS = ("typescript", "compilation", "build failed", "tsc")
NETWORK_KEYWORDS = ("network", "timeout", "timed out", "connection", "enotfound", "econnrefused")
AUTH_KEYWORDS = ("unauthorized", "authentication", "permission", "access denied", "not logged in")
FUNCTION_QUALIFIERS = ("memory", "cold start", "deployment failed")

# Failures no recovery can fix; they abort the whole run
CRITICAL_PATTERNS = (
    "authentication failed",
    "permission denied",
    "project not found",
    "invalid project",
    "billing account required",
)


def classify(message: str, detail: str = "") -> ErrorType:
    """Map error text to exactly one ErrorType.

    Categories are tested in a fixed order and the first match wins.
    `detail` is secondary text such as captured stderr; it only
    contributes to build failure detection.
    """
    text = (message or "").lower()
    extra = (detail or "").lower()

    if any(k in text for k in QUOTA_KEYWORDS):
        return ErrorType.QUOTA_EXCEEDED
    if any(k in text for k in BUILD_KEYWORDS) or "typescript" in extra:
        return ErrorType.BUILD_FAILURE
    if any(k in text for k in NETWORK_KEYWORDS):
        return ErrorType.NETWORK_ISSUE
    if any(k in text for k in AUTH_KEYWORDS):
        return ErrorType.AUTH_PROBLEM
    if "function" in text and any(k in text for k in FUNCTION_QUALIFIERS):
        return ErrorType.FUNCTION_ERROR
    return ErrorType.UNKNOWN_ERROR


def error_text(error: BaseException) -> tuple[str, str]:
    """Message and secondary detail of an exception."""
    message = getattr(error, "message", None) or str(error)
    detail = getattr(error, "stderr", None) or ""
    return message, detail


def classify_error(error: BaseException) -> ErrorType:
    return classify(*error_text(error))


def is_critical(message: str) -> bool:
    """True when the text matches an unrecoverable pattern."""
    text = (message or "").lower()
    return any(p in text for p in CRITICAL_PATTERNS)
