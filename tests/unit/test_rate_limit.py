"""Unit tests for the in-memory sliding window limiter."""

from datetime import UTC, datetime, timedelta

from academyhub.api.middleware import RATE_LIMIT_RULES, SlidingWindowLimiter

T0 = datetime(2026, 1, 1, 12, 0, tzinfo=UTC)
MINUTE = timedelta(minutes=1)


def test_allows_up_to_limit():
    limiter = SlidingWindowLimiter()

    results = [limiter.hit("login", "1.2.3.4", MINUTE, 3, now=T0) for _ in range(4)]

    assert results == [False, False, False, True]


def test_window_slides():
    limiter = SlidingWindowLimiter()
    limiter.hit("login", "1.2.3.4", MINUTE, 1, now=T0)

    assert limiter.hit("login", "1.2.3.4", MINUTE, 1, now=T0 + timedelta(seconds=30)) is True
    assert limiter.hit("login", "1.2.3.4", MINUTE, 1, now=T0 + timedelta(seconds=61)) is False


def test_keys_are_independent():
    limiter = SlidingWindowLimiter()
    limiter.hit("login", "1.2.3.4", MINUTE, 1, now=T0)

    assert limiter.hit("login", "5.6.7.8", MINUTE, 1, now=T0) is False
    assert limiter.hit("accept", "1.2.3.4", MINUTE, 1, now=T0) is False


def test_invitation_creation_is_counted_per_user():
    assert RATE_LIMIT_RULES["/api/invitations"].per_user is True
    assert RATE_LIMIT_RULES["/api/invitations/accept"].per_user is False
    assert RATE_LIMIT_RULES["/api/auth/forgot-password"].name == RATE_LIMIT_RULES["/api/auth/login"].name
