"""
Logging utilities for the webhook Lambda and import pipeline.

Webhook events carry bearer tokens in headers and whole HTML documents in
bodies. Everything that reaches CloudWatch goes through these helpers so
neither credentials nor document content end up in the logs.
"""

import logging
from typing import Any

logger = logging.getLogger(__name__)

# Key substrings whose values are masked. Substring matching catches
# variants such as "access_token" or "X-Authorization".
DEFAULT_SENSITIVE_KEYS = frozenset(
    {
        "token",
        "password",
        "secret",
        "authorization",
        "credential",
        "cookie",
        "api_key",
        "apikey",
        "ciphertext",
        "body",  # Request bodies and body_html
        "html",  # rendered_html, document content
    }
)

# Longest string value logged verbatim
MAX_LOGGED_VALUE_LENGTH = 200


def mask_value(key: str, value: Any, sensitive_keys: frozenset[str] | None = None) -> Any:
    """
    Mask a value if its key marks it as sensitive.

    Args:
        key: Dictionary key or field name
        value: Value to inspect
        sensitive_keys: Key substrings to treat as sensitive

    Returns:
        Masked value if sensitive, otherwise the value with nested
        structures masked recursively
    """
    if sensitive_keys is None:
        sensitive_keys = DEFAULT_SENSITIVE_KEYS

    key_lower = key.lower()

    if any(s in key_lower for s in sensitive_keys):
        if isinstance(value, str):
            # Length only; even a prefix of a token is too much
            return f"***({len(value)} chars)"
        if isinstance(value, (list, dict)):
            return f"[{type(value).__name__}: masked]"
        return "***"

    if isinstance(value, dict):
        return {k: mask_value(k, v, sensitive_keys) for k, v in value.items()}

    if isinstance(value, list):
        return [mask_value(key, item, sensitive_keys) for item in value]

    if isinstance(value, str) and len(value) > MAX_LOGGED_VALUE_LENGTH:
        return f"{value[:MAX_LOGGED_VALUE_LENGTH]}...({len(value)} chars)"

    return value


def safe_log_event(
    event: dict[str, Any],
    sensitive_keys: frozenset[str] | None = None,
) -> dict[str, Any]:
    """
    Return a copy of an API Gateway event that is safe to log.

    Args:
        event: Lambda event or any dictionary
        sensitive_keys: Optional key substrings to treat as sensitive

    Returns:
        Copy of the event with sensitive values masked

    Example:
        ```python
        logger.info(f"Webhook event: {safe_log_event(event)}")
        # {"headers": {"Authorization": "***(40 chars)"}, "body": "***(91 chars)"}
        ```
    """
    if not isinstance(event, dict):
        return {"_raw": str(type(event).__name__)}

    if sensitive_keys is None:
        sensitive_keys = DEFAULT_SENSITIVE_KEYS

    try:
        return {k: mask_value(k, v, sensitive_keys) for k, v in event.items()}
    except Exception as e:
        # Never fall back to logging the raw event
        logger.warning(f"Failed to mask event: {e}")
        return {"_error": "Could not safely serialize event", "_keys": list(event.keys())[:10]}


def log_summary(
    operation: str,
    *,
    success: bool = True,
    duration_ms: float | None = None,
    item_count: int | None = None,
    error: str | None = None,
    **kwargs: Any,
) -> dict[str, Any]:
    """
    Build a structured summary of an operation for logging.

    Args:
        operation: Operation name (e.g. "import_document", "sideload_images")
        success: Whether the operation succeeded
        duration_ms: Optional duration in milliseconds
        item_count: Optional count of items processed
        error: Optional error message, truncated to 500 characters
        **kwargs: Additional fields; only primitives are kept, sequences
            are reduced to their length

    Returns:
        Dictionary suitable for structured logging
    """
    summary: dict[str, Any] = {
        "operation": operation,
        "success": success,
    }

    if duration_ms is not None:
        summary["duration_ms"] = round(duration_ms, 2)

    if item_count is not None:
        summary["item_count"] = item_count

    if error:
        summary["error"] = error[:500]

    for key, value in kwargs.items():
        if isinstance(value, (str, int, float, bool)):
            summary[key] = value
        elif isinstance(value, (list, tuple, set)):
            summary[key] = len(value)

    return summary
