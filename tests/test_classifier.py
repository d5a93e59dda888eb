import pytest

from icebreaker.classifier import (
    RATE_LIMIT_NOTICE,
    UNAVAILABLE_NOTICE,
    classify,
    notice_for,
)


def test_rate_limit():
    c = classify(429)
    assert c.is_rate_limit and c.fallback_required
    assert notice_for(c) == RATE_LIMIT_NOTICE


@pytest.mark.parametrize("status", [400, 401, 404, 500, 503, None])
def test_other_failures(status):
    c = classify(status)
    assert not c.is_rate_limit
    assert c.fallback_required
    assert notice_for(c) == UNAVAILABLE_NOTICE


def test_success():
    c = classify(200, {"icebreakers": []})
    assert not c.is_rate_limit and not c.fallback_required
    assert notice_for(c) is None


def test_error_flag_in_successful_body():
    c = classify(200, {"error": "Completion API error: 429", "isRateLimit": True, "fallbackRequired": True})
    assert c.is_rate_limit and c.fallback_required


def test_fallback_flag_alone():
    c = classify(200, {"fallbackRequired": True})
    assert c.fallback_required and not c.is_rate_limit
    assert classify(200, {"error": "boom"}).fallback_required
