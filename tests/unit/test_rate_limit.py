import pytest
from fastapi import HTTPException

from waydown.config import settings
from waydown.services.rate_limit import RATE_LIMIT_MESSAGE, RateLimiter


@pytest.fixture
def limiter(monkeypatch):
    monkeypatch.setattr(settings, "strict_requests_per_window", 2)
    monkeypatch.setattr(settings, "rate_limit_window_seconds", 60)
    return RateLimiter("test", "strict_requests_per_window")


def test_window_fills_up(limiter):
    assert limiter.hit("1.2.3.4", now=0)
    assert limiter.hit("1.2.3.4", now=1)
    assert not limiter.hit("1.2.3.4", now=2)
    # other keys have their own window
    assert limiter.hit("5.6.7.8", now=2)


def test_window_slides(limiter):
    limiter.hit("ip", now=0)
    limiter.hit("ip", now=30)
    assert not limiter.hit("ip", now=59)
    assert limiter.hit("ip", now=61)


def test_expired_keys_are_evicted(limiter):
    limiter.hit("10.0.0.1", now=0)
    limiter.hit("10.0.0.2", now=10)
    limiter.hit("10.0.0.3", now=50)
    assert limiter.tracked_keys() == 3

    # window is 60s: by t=75 only the t=50 client is still inside it
    limiter.hit("10.0.0.4", now=75)
    assert limiter.tracked_keys() == 2
    assert limiter.sweep(window_start=200) == 2
    assert limiter.tracked_keys() == 0


def test_reset(limiter):
    limiter.hit("ip", now=0)
    limiter.hit("ip", now=0)
    limiter.reset()
    assert limiter.hit("ip", now=0)


def test_check_raises_429_when_enabled(limiter, monkeypatch):
    monkeypatch.setattr(settings, "rate_limit_enabled", True)
    limiter._check("ip")
    limiter._check("ip")
    with pytest.raises(HTTPException) as exc:
        limiter._check("ip")
    assert exc.value.status_code == 429
    assert exc.value.detail == RATE_LIMIT_MESSAGE


def test_check_is_noop_when_disabled(limiter, monkeypatch):
    monkeypatch.setattr(settings, "rate_limit_enabled", False)
    for _ in range(5):
        limiter._check("ip")
