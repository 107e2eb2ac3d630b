"""Page-driving adapter interface and the scraper error hierarchy."""
from abc import ABC, abstractmethod
from enum import Enum
from typing import List, Tuple


class ScraperError(Exception):
    """Base class for scraper errors."""


class NotFoundError(ScraperError):
    """A requested session, subject or unit label is not in the current listing."""

    def __init__(self, level: "Level", label: str):
        self.level = level
        self.label = label
        super().__init__(f'{level.value.capitalize()} not found: {label}')


class ExtractionError(ScraperError):
    """The page did not contain a usable score table."""


class NoSessionsError(ScraperError):
    """No valid exam sessions were discovered, so there is nothing to do."""


class AdapterLaunchError(ScraperError):
    """The browser session could not be started."""


class Level(Enum):
    """Hierarchy levels the adapter can list and select."""
    SESSION = 'session'
    SUBJECT = 'subject'
    UNIT = 'unit'


class PageAdapter(ABC):
    """
    Abstract base class for page-driving adapters.

    An adapter holds a single navigable browser state. Calls are not
    parallel-safe; ``select`` may be repeated for the same label.
    """

    @abstractmethod
    def open(self) -> None:
        """Start the browser session and load the entry page."""
        pass

    @abstractmethod
    def close(self) -> None:
        """Dispose of the browser session."""
        pass

    @abstractmethod
    def list_options(self, level: Level) -> List[str]:
        """
        List the labels currently offered at a hierarchy level.

        Args:
            level: Level to list

        Returns:
            Labels in page order
        """
        pass

    @abstractmethod
    def select(self, level: Level, label: str) -> None:
        """
        Select a label at a hierarchy level.

        Raises:
            NotFoundError: If the label is not offered
        """
        pass

    @abstractmethod
    def select_all_scores(self) -> None:
        """
        Switch the selected unit to its "all scores" view.

        Raises:
            ExtractionError: If the view is not available
        """
        pass

    @abstractmethod
    def extract_score_table(self) -> List[Tuple[int, int, str]]:
        """
        Extract (raw mark, scaled mark, grade) rows from the current view.

        Raises:
            ExtractionError: If the page holds no score table
        """
        pass

    def __enter__(self):
        """Context manager entry."""
        self.open()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.close()
