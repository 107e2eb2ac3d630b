"""
Resilience components for the grade conversion scraper.
"""

from .progress_tracker import ProgressTracker, UnitStore
from .rate_limiter import RateLimiter

__all__ = [
    'ProgressTracker',
    'UnitStore',
    'RateLimiter',
]
