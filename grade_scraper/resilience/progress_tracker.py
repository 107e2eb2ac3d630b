"""
Progress ledger for resumable extractions.
Persists completed and failed units to disk for recovery after interruptions.
"""

import json
import logging
import math
import os
import shutil
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from grade_scraper.models import LedgerStats

logger = logging.getLogger(__name__)

UnitKey = Tuple[str, str, str, str]


class UnitStore:
    """
    Keyed record of units: qualification -> session -> subject -> units.

    Reads never assume a level exists; writes create missing levels.
    Units under a subject keep insertion order and are unique.
    """

    def __init__(self, data: Optional[Dict[str, Any]] = None):
        self._data: Dict[str, Dict[str, Dict[str, List[str]]]] = {}
        if data:
            self._load(data)

    def _load(self, data: Dict[str, Any]):
        if not isinstance(data, dict):
            raise TypeError(f"Expected an object of qualifications, got {type(data).__name__}")
        for qual, sessions in data.items():
            if not isinstance(sessions, dict):
                raise TypeError(f"Sessions for {qual!r} must be an object")
            for session, subjects in sessions.items():
                if not isinstance(subjects, dict):
                    raise TypeError(f"Subjects for {qual!r}/{session!r} must be an object")
                for subject, units in subjects.items():
                    if not isinstance(units, list):
                        raise TypeError(f"Units for {qual!r}/{session!r}/{subject!r} must be a list")
                    for unit in units:
                        self.add(str(qual), str(session), str(subject), str(unit))

    def contains(self, qual: str, session: str, subject: str, unit: str) -> bool:
        units = self._data.get(qual, {}).get(session, {}).get(subject)
        return units is not None and unit in units

    def add(self, qual: str, session: str, subject: str, unit: str) -> bool:
        """
        Insert a unit.

        Returns:
            True if the unit was not present before
        """
        units = (
            self._data
            .setdefault(qual, {})
            .setdefault(session, {})
            .setdefault(subject, [])
        )
        if unit in units:
            return False
        units.append(unit)
        return True

    def remove(
        self,
        qual: str,
        session: Optional[str] = None,
        subject: Optional[str] = None,
        unit: Optional[str] = None,
    ) -> List[UnitKey]:
        """
        Remove every unit matching the given key prefix.

        Returns:
            Keys of the removed units
        """
        removed: List[UnitKey] = []
        sessions = self._data.get(qual)
        if not sessions:
            return removed

        for sess in list(sessions):
            if session is not None and sess != session:
                continue
            subjects = sessions[sess]
            for subj in list(subjects):
                if subject is not None and subj != subject:
                    continue
                units = subjects[subj]
                kept = []
                for u in units:
                    if unit is None or u == unit:
                        removed.append((qual, sess, subj, u))
                    else:
                        kept.append(u)
                if kept:
                    subjects[subj] = kept
                else:
                    del subjects[subj]
            if not subjects:
                del sessions[sess]
        if not sessions:
            del self._data[qual]
        return removed

    def subjects(self, qual: str, session: str) -> List[str]:
        return list(self._data.get(qual, {}).get(session, {}))

    def count_units(self, qual: str, session: str) -> int:
        return sum(len(units) for units in self._data.get(qual, {}).get(session, {}).values())

    def to_dict(self) -> Dict[str, Dict[str, Dict[str, List[str]]]]:
        return {
            qual: {
                session: {subject: list(units) for subject, units in subjects.items()}
                for session, subjects in sessions.items()
            }
            for qual, sessions in self._data.items()
        }


class ProgressTracker:
    """Manages the persistent record of completed and failed units."""

    def __init__(self, progress_file: Path):
        """
        Initialize tracker with the ledger file path.

        Args:
            progress_file: JSON file holding the ledger
        """
        self.progress_file = Path(progress_file)
        self.failure_reasons: Dict[UnitKey, str] = {}
        self._reset_state()

    def _reset_state(self):
        self.completed = UnitStore()
        self.failed = UnitStore()
        self.completed_sessions: Dict[str, List[str]] = {}
        self.stats = LedgerStats()
        self.last_update: Optional[str] = None

    def _ensure_dir(self):
        self.progress_file.parent.mkdir(parents=True, exist_ok=True)

    def load(self):
        """
        Load the ledger from disk.

        A missing or unreadable file is replaced by a fresh, empty ledger.
        """
        if not self.progress_file.exists():
            logger.info("Creating new progress ledger at %s", self.progress_file)
            self._reset_state()
            self.save()
            return

        try:
            with open(self.progress_file, 'r', encoding='utf-8') as f:
                data = json.load(f)
            self._parse(data)
            logger.info("Progress ledger loaded from %s", self.progress_file)
        except (OSError, ValueError, KeyError, TypeError, AttributeError) as e:
            logger.warning("Progress ledger corrupted (%s), starting a fresh one", e)
            self._backup_file("corrupted")
            self._reset_state()
            self.save()

    def _parse(self, data: Dict[str, Any]):
        completed = UnitStore(data.get('completed') or {})
        failed = UnitStore(data.get('failed') or {})

        completed_sessions: Dict[str, List[str]] = {}
        raw_sessions = data.get('completedSessions') or {}
        if not isinstance(raw_sessions, dict):
            raise TypeError("completedSessions must be an object")
        for qual, sessions in raw_sessions.items():
            if not isinstance(sessions, list):
                raise TypeError(f"Completed sessions for {qual!r} must be a list")
            unique = completed_sessions.setdefault(str(qual), [])
            for session in sessions:
                if str(session) not in unique:
                    unique.append(str(session))

        stats = LedgerStats.from_dict(data.get('stats') or {})

        self.completed = completed
        self.failed = failed
        self.completed_sessions = completed_sessions
        self.stats = stats
        self.last_update = data.get('lastUpdate')

    def _backup_file(self, label: str):
        """Copy the current ledger file aside before it gets replaced."""
        if not self.progress_file.exists():
            return
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        backup_path = self.progress_file.with_name(
            f"{self.progress_file.stem}.{label}.{timestamp}.json"
        )
        try:
            shutil.copy2(self.progress_file, backup_path)
            logger.info("Backed up progress ledger to %s", backup_path)
        except OSError as e:
            logger.warning("Failed to back up progress ledger: %s", e)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'completed': self.completed.to_dict(),
            'failed': self.failed.to_dict(),
            'completedSessions': {q: list(s) for q, s in self.completed_sessions.items()},
            'lastUpdate': self.last_update,
            'stats': self.stats.to_dict(),
        }

    def save(self):
        """Atomically write the ledger to disk."""
        self._ensure_dir()
        self.last_update = datetime.now().isoformat()

        # Atomic write: write to temp file, then replace
        temp_file = self.progress_file.with_name(f"{self.progress_file.stem}.tmp.json")
        try:
            with open(temp_file, 'w', encoding='utf-8') as f:
                json.dump(self.to_dict(), f, indent=2, ensure_ascii=False)
                f.flush()
                os.fsync(f.fileno())
            temp_file.replace(self.progress_file)
        except OSError as e:
            logger.error("Failed to save progress ledger: %s", e)
            if temp_file.exists():
                try:
                    temp_file.unlink()
                except OSError:
                    logger.debug("Could not remove temp file %s", temp_file)
            raise

    def is_completed(self, qual: str, session: str, subject: str, unit: str) -> bool:
        return self.completed.contains(qual, session, subject, unit)

    def has_failed(self, qual: str, session: str, subject: str, unit: str) -> bool:
        return self.failed.contains(qual, session, subject, unit)

    def is_session_completed(self, qual: str, session: str) -> bool:
        return session in self.completed_sessions.get(qual, [])

    def mark_completed(self, qual: str, session: str, subject: str, unit: str):
        """Record a successfully extracted unit."""
        if self.completed.add(qual, session, subject, unit):
            self.stats.completed_units += 1

    def mark_failed(self, qual: str, session: str, subject: str, unit: str, reason: str):
        """
        Record a unit whose extraction failed.

        Failed units are not retried on later runs until cleared.
        """
        self.failure_reasons[(qual, session, subject, unit)] = reason
        if self.failed.add(qual, session, subject, unit):
            self.stats.failed_units += 1
            logger.warning("Unit marked failed: %s / %s / %s (%s)", session, subject, unit, reason)

    def mark_session_completed(self, qual: str, session: str):
        """
        Flag a session as fully processed.

        The caller must have accounted for every discovered unit first.
        """
        sessions = self.completed_sessions.setdefault(qual, [])
        if session not in sessions:
            sessions.append(session)
            self.stats.completed_sessions += 1

    def update_stats(self, total_sessions: int, total_subjects: int, total_units: int):
        self.stats.total_sessions = total_sessions
        self.stats.total_subjects = total_subjects
        self.stats.total_units = total_units

    def clear_failed(
        self,
        qual: str,
        session: Optional[str] = None,
        subject: Optional[str] = None,
        unit: Optional[str] = None,
    ) -> int:
        """
        Remove failed entries so they are attempted again on the next run.

        Sessions that contained a cleared unit lose their completed flag.

        Returns:
            Number of units cleared
        """
        removed = self.failed.remove(qual, session, subject, unit)
        if not removed:
            return 0

        self.stats.failed_units = max(0, self.stats.failed_units - len(removed))
        for key in removed:
            self.failure_reasons.pop(key, None)

        sessions = self.completed_sessions.get(qual, [])
        for affected in {key[1] for key in removed}:
            if affected in sessions:
                sessions.remove(affected)
                self.stats.completed_sessions = max(0, self.stats.completed_sessions - 1)
        if qual in self.completed_sessions and not sessions:
            del self.completed_sessions[qual]

        logger.info("Cleared %d failed unit(s) for retry", len(removed))
        return len(removed)

    def reset(self):
        """Clear all progress (with backup)."""
        self._backup_file("reset")
        if self.progress_file.exists():
            self.progress_file.unlink()
        self.failure_reasons = {}
        self._reset_state()

    def summary(self) -> Dict[str, Any]:
        """
        Get the progress summary.

        Returns:
            Dict with the ledger counters, percentage and last update time
        """
        summary: Dict[str, Any] = self.stats.to_dict()
        if self.stats.total_units > 0:
            percent = self.stats.completed_units / self.stats.total_units * 100
            summary['progress'] = int(math.floor(percent + 0.5))
        else:
            summary['progress'] = 0
        summary['lastUpdate'] = self.last_update
        return summary
