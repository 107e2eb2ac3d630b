"""
Main orchestrator for the grade conversion scraper.
Walks sessions, subjects and units through the page adapter, consulting and
updating the progress ledger so interrupted runs resume where they stopped.
"""

import logging
from datetime import datetime
from typing import Dict, List, Optional

from grade_scraper.adapter import Level, NoSessionsError, PageAdapter
from grade_scraper.config import ScraperConfig
from grade_scraper.data_processor import normalize_rows, save_artifact
from grade_scraper.models import ExtractionResult, FailedUnit, ScoreRow, SubjectResult
from grade_scraper.resilience.progress_tracker import ProgressTracker
from grade_scraper.resilience.rate_limiter import RateLimiter
from grade_scraper.utils import is_valid_session, matches_subject_filter

logger = logging.getLogger(__name__)


class ScraperController:
    """Coordinates the adapter, the progress ledger and artifact storage."""

    def __init__(
        self,
        config: Optional[ScraperConfig] = None,
        adapter: Optional[PageAdapter] = None,
        progress: Optional[ProgressTracker] = None,
        rate_limiter: Optional[RateLimiter] = None,
    ):
        """
        Initialize controller with configuration.

        Args:
            config: ScraperConfig instance, uses defaults if None
            adapter: Page adapter, a PearsonScraper built from config if None
            progress: Progress ledger, one at config.progress_file if None
            rate_limiter: Delay between extractions, built from config if None
        """
        self.config = config or ScraperConfig()
        if adapter is None:
            from grade_scraper.pearson_scraper import PearsonScraper
            adapter = PearsonScraper(
                base_url=self.config.base_url,
                qualification_type=self.config.qualification_type,
                headless=self.config.headless,
                timeout=self.config.page_timeout,
            )
        self.adapter = adapter
        self.progress = progress or ProgressTracker(self.config.progress_file)
        self.rate_limiter = rate_limiter or RateLimiter(config=self.config.rate_limit)

        self._stopped = False
        self._started_at: Optional[str] = None
        self._reset_counters()

    @property
    def qualification(self) -> str:
        return self.config.qualification_type

    def _reset_counters(self):
        self._total_sessions = 0
        self._total_subjects = 0
        self._total_units = 0
        self._discovered = 0
        self._completed = 0
        self._skipped = 0
        self._failed: List[FailedUnit] = []
        self._subject_errors: List[Dict[str, str]] = []
        self._completed_sessions: List[str] = []

    def run(self) -> ExtractionResult:
        """
        Run a full traversal.

        Returns:
            ExtractionResult with statistics and status

        Raises:
            AdapterLaunchError: If the browser cannot be started
            NoSessionsError: If no valid exam session is listed
        """
        self._stopped = False
        self._started_at = datetime.now().isoformat()
        self._reset_counters()

        self.progress.load()
        logger.info("Starting extraction for %s...", self.qualification)

        with self.adapter:
            try:
                sessions = self._discover_sessions()
                self._seed_totals(sessions)

                for session in sessions:
                    if self._stopped:
                        logger.info("Extraction stopped by user")
                        break
                    if self.progress.is_session_completed(self.qualification, session):
                        logger.info("Session %s is already fully processed, skipping", session)
                        continue
                    self._process_session(session)
            finally:
                self.progress.save()

        return self._create_result(success=not self._stopped)

    def _discover_sessions(self) -> List[str]:
        candidates = self.adapter.list_options(Level.SESSION)
        sessions = [s for s in candidates if is_valid_session(s)]
        logger.info(
            "Found %d potential session items, %d valid", len(candidates), len(sessions)
        )
        if not sessions:
            raise NoSessionsError("No valid exam sessions found")
        return sessions

    def _seed_totals(self, sessions: List[str]):
        """Count what the ledger already knows about sessions that will be skipped."""
        self._total_sessions = len(sessions)
        for session in sessions:
            if not self.progress.is_session_completed(self.qualification, session):
                continue
            subjects = set(self.progress.completed.subjects(self.qualification, session))
            subjects.update(self.progress.failed.subjects(self.qualification, session))
            self._total_subjects += len(subjects)
            self._total_units += (
                self.progress.completed.count_units(self.qualification, session)
                + self.progress.failed.count_units(self.qualification, session)
            )
        self._publish_totals()

    def _publish_totals(self):
        """Push running totals to the ledger without ever lowering them."""
        stats = self.progress.stats
        self.progress.update_stats(
            max(stats.total_sessions, self._total_sessions),
            max(stats.total_subjects, self._total_subjects),
            max(stats.total_units, self._total_units),
        )
        self.progress.save()

    def _process_session(self, session: str):
        logger.info("========== Processing exam session: %s ==========", session)
        try:
            self.adapter.select(Level.SESSION, session)
            subjects = self.adapter.list_options(Level.SUBJECT)
        except Exception as e:
            logger.error("Error processing session %s: %s", session, e)
            self._subject_errors.append({'session': session, 'subject': '', 'reason': str(e)})
            return

        filtered = [s for s in subjects if matches_subject_filter(s, self.config.subject_filter)]
        logger.info(
            "Found %d subjects for %s, %d match the filter", len(subjects), session, len(filtered)
        )
        self._total_subjects += len(filtered)
        self._publish_totals()

        session_total = 0
        session_accounted = 0
        subject_errors = 0

        for subject in filtered:
            if self._stopped:
                break
            try:
                result = self.process_subject(session, subject)
            except Exception as e:
                logger.error("Error processing subject %s: %s", subject, e)
                self._subject_errors.append({'session': session, 'subject': subject, 'reason': str(e)})
                subject_errors += 1
                continue
            session_total += result.total_units
            session_accounted += result.accounted_units

        if (
            not self._stopped
            and subject_errors == 0
            and session_total > 0
            and session_accounted == session_total
        ):
            logger.info("All units for session %s have been processed. Marking session as complete.", session)
            self.progress.mark_session_completed(self.qualification, session)
            self.progress.save()
            self._completed_sessions.append(session)

    def process_subject(self, session: str, subject: str) -> SubjectResult:
        """
        Process every unit of one subject.

        The session must already be selected in the adapter.

        Returns:
            SubjectResult with discovered and accounted unit counts
        """
        logger.info("-- Processing subject: %s --", subject)
        self.adapter.select(Level.SUBJECT, subject)
        units = self.adapter.list_options(Level.UNIT)
        logger.info("Found %d units for %s", len(units), subject)

        self._total_units += len(units)
        self._discovered += len(units)
        self._publish_totals()

        result = SubjectResult(total_units=len(units))
        for unit in units:
            if self._stopped:
                break
            if self.progress.is_completed(self.qualification, session, subject, unit):
                logger.debug("Unit already processed: %s", unit)
                self._skipped += 1
            elif self.progress.has_failed(self.qualification, session, subject, unit):
                logger.info("Unit previously failed, skipping: %s", unit)
                self._skipped += 1
            else:
                self.process_unit(session, subject, unit)
            result.accounted_units += 1
        return result

    def process_unit(self, session: str, subject: str, unit: str) -> bool:
        """
        Extract one unit and record the outcome in the ledger.

        Failures are recorded, never raised.

        Returns:
            True if the unit was extracted and saved
        """
        logger.info("- Processing unit: %s -", unit)
        self.rate_limiter.wait()

        try:
            rows = self._extract_unit(unit)
            if not rows:
                self._record_failure(session, subject, unit, "No data extracted")
                return False
            save_artifact(rows, self.config.data_dir, self.qualification, session, subject, unit)
        except Exception as e:
            self._record_failure(session, subject, unit, str(e) or type(e).__name__)
            return False

        self.progress.mark_completed(self.qualification, session, subject, unit)
        self.progress.save()
        self.rate_limiter.record_success()
        self._completed += 1
        logger.info("Successfully processed unit: %s", unit)
        return True

    def _extract_unit(self, unit: str) -> List[ScoreRow]:
        self.adapter.select(Level.UNIT, unit)
        self.adapter.select_all_scores()
        return normalize_rows(self.adapter.extract_score_table())

    def _record_failure(self, session: str, subject: str, unit: str, reason: str):
        self.progress.mark_failed(self.qualification, session, subject, unit, reason)
        self.progress.save()
        self.rate_limiter.record_failure()
        self._failed.append(FailedUnit(session=session, subject=subject, unit=unit, reason=reason))

    def test_unit(self, session: str, subject: str, unit: str) -> List[ScoreRow]:
        """
        Extract a single unit without touching the ledger or the data tree.

        Raises:
            ScraperError: If any level cannot be selected or extracted
        """
        logger.info("Testing extraction for: %s / %s / %s", session, subject, unit)
        with self.adapter:
            self.adapter.select(Level.SESSION, session)
            self.adapter.select(Level.SUBJECT, subject)
            return self._extract_unit(unit)

    def stop(self):
        """Stop after the unit in flight; its outcome is still persisted."""
        logger.info("Stopping extraction gracefully...")
        self._stopped = True

    def _create_result(self, success: bool) -> ExtractionResult:
        """Create ExtractionResult with calculated fields."""
        completed_at = datetime.now().isoformat()

        duration = 0.0
        if self._started_at:
            start = datetime.fromisoformat(self._started_at)
            end = datetime.fromisoformat(completed_at)
            duration = (end - start).total_seconds()

        units_per_hour = 0.0
        if duration > 0:
            units_per_hour = self._completed / (duration / 3600)

        return ExtractionResult(
            success=success,
            started_at=self._started_at or completed_at,
            completed_at=completed_at,
            total_sessions=self._total_sessions,
            total_discovered=self._discovered,
            total_completed=self._completed,
            total_skipped=self._skipped,
            total_failed=len(self._failed),
            completed_sessions=list(self._completed_sessions),
            failed_units=list(self._failed),
            subject_errors=list(self._subject_errors),
            stopped=self._stopped,
            duration_seconds=duration,
            units_per_hour=units_per_hour,
        )
