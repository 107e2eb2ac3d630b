"""
Configuration dataclasses for the grade conversion scraper.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, List


DEFAULT_BASE_URL = (
    "https://qualifications.pearson.com/en/support/support-topics/"
    "results-certification/understanding-marks-and-grades/"
    "converting-marks-points-and-grades.html"
    "?QualFamily=International%20A%20Level#gcstep1"
)

DEFAULT_QUALIFICATION_TYPE = "International A Level"

@dataclass
class RateLimitConfig:
    """Configuration for the delay between unit extractions."""
    min_delay: float = 1.0
    max_delay: float = 30.0
    initial_delay: float = 1.0
    backoff_factor: float = 1.5
    jitter_percent: float = 0.2
    cooldown_threshold: int = 5
    cooldown_duration: float = 120.0


@dataclass
class ScraperConfig:
    """Main configuration for the scraper system."""
    # Source site
    base_url: str = DEFAULT_BASE_URL
    qualification_type: str = DEFAULT_QUALIFICATION_TYPE

    # Storage locations
    data_dir: Path = Path("data")
    processed_dir: Path = Path("processed_data")
    progress_file: Optional[Path] = None

    # Browser settings
    headless: bool = True
    page_timeout: float = 30.0

    # None or empty list means every subject is scraped
    subject_filter: Optional[List[str]] = None

    rate_limit: RateLimitConfig = field(default_factory=RateLimitConfig)

    def __post_init__(self):
        self.data_dir = Path(self.data_dir)
        self.processed_dir = Path(self.processed_dir)
        if self.progress_file is None:
            self.progress_file = self.data_dir / "progress.json"
        else:
            self.progress_file = Path(self.progress_file)

    @classmethod
    def from_env(cls) -> "ScraperConfig":
        """
        Build configuration from GRADE_SCRAPER_* environment variables.

        Unset variables fall back to the dataclass defaults.
        """
        kwargs = {}

        if os.getenv('GRADE_SCRAPER_BASE_URL'):
            kwargs['base_url'] = os.environ['GRADE_SCRAPER_BASE_URL']
        if os.getenv('GRADE_SCRAPER_QUALIFICATION'):
            kwargs['qualification_type'] = os.environ['GRADE_SCRAPER_QUALIFICATION']
        if os.getenv('GRADE_SCRAPER_DATA_DIR'):
            kwargs['data_dir'] = Path(os.environ['GRADE_SCRAPER_DATA_DIR'])
        if os.getenv('GRADE_SCRAPER_PROCESSED_DIR'):
            kwargs['processed_dir'] = Path(os.environ['GRADE_SCRAPER_PROCESSED_DIR'])
        if os.getenv('GRADE_SCRAPER_PROGRESS_FILE'):
            kwargs['progress_file'] = Path(os.environ['GRADE_SCRAPER_PROGRESS_FILE'])
        if os.getenv('GRADE_SCRAPER_HEADLESS'):
            kwargs['headless'] = os.environ['GRADE_SCRAPER_HEADLESS'].lower() not in ('0', 'false', 'no')
        if os.getenv('GRADE_SCRAPER_PAGE_TIMEOUT'):
            kwargs['page_timeout'] = float(os.environ['GRADE_SCRAPER_PAGE_TIMEOUT'])
        if os.getenv('GRADE_SCRAPER_SUBJECTS') is not None:
            kwargs['subject_filter'] = parse_subject_list(os.environ['GRADE_SCRAPER_SUBJECTS'])

        rate_kwargs = {}
        if os.getenv('GRADE_SCRAPER_DELAY'):
            rate_kwargs['initial_delay'] = float(os.environ['GRADE_SCRAPER_DELAY'])
        if os.getenv('GRADE_SCRAPER_MIN_DELAY'):
            rate_kwargs['min_delay'] = float(os.environ['GRADE_SCRAPER_MIN_DELAY'])
        if os.getenv('GRADE_SCRAPER_COOLDOWN'):
            rate_kwargs['cooldown_duration'] = float(os.environ['GRADE_SCRAPER_COOLDOWN'])
        if rate_kwargs:
            kwargs['rate_limit'] = RateLimitConfig(**rate_kwargs)

        return cls(**kwargs)


def parse_subject_list(value: Optional[str]) -> Optional[List[str]]:
    """
    Split a comma-separated subject filter.

    Returns None when nothing usable is left, which disables filtering.
    """
    if not value:
        return None
    subjects = [s.strip() for s in value.split(',') if s.strip()]
    return subjects or None
