"""
Adaptive politeness delay between unit extractions.
Backs off after failed units and pauses after a streak of failures.
"""

import logging
import random
import time
from typing import Optional

from grade_scraper.config import RateLimitConfig

logger = logging.getLogger(__name__)


class RateLimiter:
    """Spaces out extractions with jitter, backoff and cooldown."""

    def __init__(self, config: Optional[RateLimitConfig] = None):
        """
        Initialize rate limiter with configuration.

        Args:
            config: RateLimitConfig instance, uses defaults if None
        """
        self.config = config or RateLimitConfig()
        self._current_delay = self.config.initial_delay
        self._consecutive_failures = 0
        self._last_extraction: Optional[float] = None
        self._cooldown_until: Optional[float] = None

    def wait(self):
        """Sleep until the next extraction may start."""
        now = time.monotonic()
        if self._cooldown_until is not None:
            if now < self._cooldown_until:
                remaining = self._cooldown_until - now
                logger.info("In cooldown, waiting %.1fs...", remaining)
                time.sleep(remaining)
            self._cooldown_until = None

        jitter_range = self._current_delay * self.config.jitter_percent
        delay = max(
            self.config.min_delay,
            self._current_delay + random.uniform(-jitter_range, jitter_range),
        )

        # Time already spent since the last extraction counts toward the delay
        if self._last_extraction is not None:
            delay -= time.monotonic() - self._last_extraction
        if delay > 0:
            time.sleep(delay)

        self._last_extraction = time.monotonic()

    def record_success(self):
        """Ease the delay back toward the minimum."""
        self._consecutive_failures = 0
        self._current_delay = max(self.config.min_delay, self._current_delay * 0.9)

    def record_failure(self):
        """Back off after a failed extraction and cool down after a streak."""
        self._consecutive_failures += 1
        self._current_delay = min(
            self.config.max_delay,
            self._current_delay * self.config.backoff_factor,
        )
        if self._consecutive_failures >= self.config.cooldown_threshold:
            logger.warning(
                "Entering cooldown for %.0fs after %d consecutive failures",
                self.config.cooldown_duration, self._consecutive_failures,
            )
            self._cooldown_until = time.monotonic() + self.config.cooldown_duration
            self._consecutive_failures = 0

    def get_stats(self) -> dict:
        return {
            'current_delay': self._current_delay,
            'consecutive_failures': self._consecutive_failures,
            'in_cooldown': self._cooldown_until is not None,
        }
