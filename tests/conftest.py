"""Pytest configuration and fixtures."""
import json
from pathlib import Path
from typing import Dict, List, Optional, Tuple

import pytest

from grade_scraper.adapter import ExtractionError, Level, NotFoundError, PageAdapter
from grade_scraper.config import RateLimitConfig, ScraperConfig
from grade_scraper.resilience.progress_tracker import ProgressTracker
from grade_scraper.scraper_controller import ScraperController

QUAL = "International A Level"

SAMPLE_ROWS: List[Tuple[int, int, str]] = [
    (10, 20, 'E'),
    (40, 80, 'A'),
    (25, 50, 'C'),
]


class FakeAdapter(PageAdapter):
    """
    In-memory adapter over a session -> subject -> unit -> rows tree.

    Every call is recorded in ``calls`` as a tuple.
    """

    def __init__(
        self,
        tree: Dict[str, Dict[str, Dict[str, List[Tuple[int, int, str]]]]],
        extra_sessions: Optional[List[str]] = None,
        failing_units: Optional[Dict[str, str]] = None,
        unselectable_subjects: Optional[List[str]] = None,
    ):
        self.tree = tree
        self.extra_sessions = list(extra_sessions or [])
        self.failing_units = dict(failing_units or {})
        self.unselectable_subjects = set(unselectable_subjects or [])
        self.calls: List[tuple] = []
        self.session: Optional[str] = None
        self.subject: Optional[str] = None
        self.unit: Optional[str] = None
        self.is_open = False

    def open(self):
        self.calls.append(('open',))
        self.is_open = True

    def close(self):
        self.calls.append(('close',))
        self.is_open = False

    def list_options(self, level: Level) -> List[str]:
        self.calls.append(('list', level))
        if level is Level.SESSION:
            return self.extra_sessions + list(self.tree)
        if level is Level.SUBJECT:
            return list(self.tree[self.session])
        return list(self.tree[self.session][self.subject])

    def select(self, level: Level, label: str):
        self.calls.append(('select', level, label))
        if level is Level.SESSION:
            if label not in self.tree:
                raise NotFoundError(level, label)
            self.session = label
        elif level is Level.SUBJECT:
            if label not in self.tree[self.session] or label in self.unselectable_subjects:
                raise NotFoundError(level, label)
            self.subject = label
        else:
            if label not in self.tree[self.session][self.subject]:
                raise NotFoundError(level, label)
            self.unit = label

    def select_all_scores(self):
        self.calls.append(('all_scores',))

    def extract_score_table(self):
        self.calls.append(('extract', self.unit))
        if self.unit in self.failing_units:
            raise ExtractionError(self.failing_units[self.unit])
        return list(self.tree[self.session][self.subject][self.unit])

    def work_calls(self) -> List[tuple]:
        """Selections and extractions, ignoring listings and lifecycle."""
        return [c for c in self.calls if c[0] in ('select', 'all_scores', 'extract')]


@pytest.fixture
def sample_tree():
    """Two sessions with two subjects each."""
    return {
        "June 2019": {
            "Physics": {
                "WPH01 - Physics on the Go": SAMPLE_ROWS,
                "WPH02 - Physics at Work": SAMPLE_ROWS,
            },
            "Chemistry": {
                "WCH01 - The Core Principles": SAMPLE_ROWS,
            },
        },
        "October 2019": {
            "Physics": {
                "WPH01 - Physics on the Go": SAMPLE_ROWS,
            },
            "Mathematics (2018)": {
                "WMA01-01 - Pure Mathematics P1": SAMPLE_ROWS,
                "WMA02-01 - Pure Mathematics P2": SAMPLE_ROWS,
            },
        },
    }


@pytest.fixture
def config(tmp_path) -> ScraperConfig:
    """Config writing into a temporary directory without any delays."""
    return ScraperConfig(
        data_dir=tmp_path / "data",
        processed_dir=tmp_path / "processed_data",
        subject_filter=None,
        rate_limit=RateLimitConfig(
            min_delay=0.0,
            initial_delay=0.0,
            jitter_percent=0.0,
            cooldown_duration=0.0,
        ),
    )


@pytest.fixture
def make_controller(config):
    """Factory for controllers sharing the temporary config."""
    def _make(adapter: PageAdapter) -> ScraperController:
        return ScraperController(
            config=config,
            adapter=adapter,
            progress=ProgressTracker(config.progress_file),
        )
    return _make


@pytest.fixture
def write_artifact():
    """Write a minimal artifact file into a raw tree."""
    def _write(root: Path, qual: str, session: str, subject: str, filename: str, marker: str = ""):
        folder = root / qual / session / subject
        folder.mkdir(parents=True, exist_ok=True)
        path = folder / filename
        path.write_text(json.dumps({'metadata': {'subject': subject, 'marker': marker}, 'data': []}))
        return path
    return _write
