"""
Response Classifier

Labels a failed (or logically failed) generation so the caller can pick
its user-facing message without looking at transport details:
  - HTTP 429, or a body flagged `isRateLimit`   → rate limited
  - no status at all (network/timeout), any non-2xx status,
    or a body carrying `error` / `fallbackRequired` → fallback required
"""

from __future__ import annotations

from typing import Any, Mapping, Optional

from .models import Classification

RATE_LIMIT_STATUS = 429

RATE_LIMIT_NOTICE = "The AI is busy right now. Using curated icebreakers designed just for you."
UNAVAILABLE_NOTICE = "AI temporarily unavailable. Using curated icebreakers instead."


def is_success_status(http_status: Optional[int]) -> bool:
    return http_status is not None and 200 <= http_status < 300


def classify(http_status: Optional[int], body_flags: Optional[Mapping[str, Any]] = None) -> Classification:
    """
    Classify one completion (or endpoint) response.

    Args:
        http_status: Status code of the response, or None when the request
                     never produced one (connection error, timeout).
        body_flags:  Decoded JSON body, if any. Only `error`, `isRateLimit`
                     and `fallbackRequired` are consulted.
    """
    flags = body_flags or {}
    is_rate_limit = http_status == RATE_LIMIT_STATUS or bool(flags.get("isRateLimit"))
    fallback_required = (
        not is_success_status(http_status)
        or is_rate_limit
        or bool(flags.get("error"))
        or bool(flags.get("fallbackRequired"))
    )
    return Classification(is_rate_limit=is_rate_limit, fallback_required=fallback_required)


def notice_for(classification: Classification) -> Optional[str]:
    """User-facing message for a classification; None when nothing failed."""
    if classification.is_rate_limit:
        return RATE_LIMIT_NOTICE
    if classification.fallback_required:
        return UNAVAILABLE_NOTICE
    return None
