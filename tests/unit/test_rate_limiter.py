"""Unit tests for the adaptive delay."""
import pytest

from grade_scraper.config import RateLimitConfig
from grade_scraper.resilience import rate_limiter as rl
from grade_scraper.resilience.rate_limiter import RateLimiter


@pytest.fixture
def sleeps(monkeypatch):
    recorded = []
    monkeypatch.setattr(rl.time, 'sleep', recorded.append)
    return recorded


def make_limiter(**overrides):
    settings = dict(min_delay=1.0, max_delay=10.0, initial_delay=2.0, jitter_percent=0.0,
                    cooldown_threshold=3, cooldown_duration=60.0)
    settings.update(overrides)
    return RateLimiter(RateLimitConfig(**settings))


def test_first_wait_uses_initial_delay(sleeps):
    make_limiter().wait()
    assert sleeps == [pytest.approx(2.0)]


def test_failures_back_off_up_to_max():
    limiter = make_limiter(cooldown_threshold=100)
    for _ in range(10):
        limiter.record_failure()
    assert limiter.get_stats()['current_delay'] == 10.0


def test_success_eases_toward_min():
    limiter = make_limiter()
    for _ in range(20):
        limiter.record_success()
    assert limiter.get_stats()['current_delay'] == 1.0


def test_cooldown_after_failure_streak(sleeps):
    limiter = make_limiter()
    for _ in range(3):
        limiter.record_failure()

    stats = limiter.get_stats()
    assert stats['in_cooldown']
    assert stats['consecutive_failures'] == 0

    limiter.wait()
    assert sleeps[0] == pytest.approx(60.0, abs=1.0)
    assert not limiter.get_stats()['in_cooldown']
