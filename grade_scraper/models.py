"""
Data models for the grade conversion scraper.
"""

from dataclasses import dataclass, field
from typing import List, Dict, Any


@dataclass
class ScoreRow:
    """One row of a grade conversion table."""
    raw: int
    ums: int
    grade: str

    def to_dict(self) -> Dict[str, Any]:
        return {'RAW': self.raw, 'UMS': self.ums, 'GRADE': self.grade}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ScoreRow":
        return cls(raw=int(data['RAW']), ums=int(data['UMS']), grade=str(data['GRADE']))


@dataclass
class ArtifactMetadata:
    """Metadata stored alongside the rows of one unit."""
    qualification_type: str
    session: str
    subject: str
    unit: str
    record_count: int
    timestamp: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            'qualificationType': self.qualification_type,
            'session': self.session,
            'subject': self.subject,
            'unit': self.unit,
            'recordCount': self.record_count,
            'timestamp': self.timestamp,
        }


@dataclass
class ArtifactRecord:
    """Persisted output for one unit."""
    metadata: ArtifactMetadata
    data: List[ScoreRow] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'metadata': self.metadata.to_dict(),
            'data': [row.to_dict() for row in self.data],
        }


@dataclass
class LedgerStats:
    """Aggregate counters kept in the progress ledger."""
    total_sessions: int = 0
    total_subjects: int = 0
    total_units: int = 0
    completed_units: int = 0
    failed_units: int = 0
    completed_sessions: int = 0

    def to_dict(self) -> Dict[str, int]:
        return {
            'totalSessions': self.total_sessions,
            'totalSubjects': self.total_subjects,
            'totalUnits': self.total_units,
            'completedUnits': self.completed_units,
            'failedUnits': self.failed_units,
            'completedSessions': self.completed_sessions,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LedgerStats":
        return cls(
            total_sessions=int(data.get('totalSessions', 0)),
            total_subjects=int(data.get('totalSubjects', 0)),
            total_units=int(data.get('totalUnits', 0)),
            completed_units=int(data.get('completedUnits', 0)),
            failed_units=int(data.get('failedUnits', 0)),
            completed_sessions=int(data.get('completedSessions', 0)),
        )


@dataclass
class FailedUnit:
    """Record of a unit that failed extraction during a run."""
    session: str
    subject: str
    unit: str
    reason: str


@dataclass
class SubjectResult:
    """Unit accounting for one subject."""
    total_units: int = 0
    accounted_units: int = 0


@dataclass
class ExtractionResult:
    """Result of an extraction run."""
    success: bool
    started_at: str
    completed_at: str
    total_sessions: int
    total_discovered: int
    total_completed: int
    total_skipped: int
    total_failed: int
    completed_sessions: List[str] = field(default_factory=list)
    failed_units: List[FailedUnit] = field(default_factory=list)
    subject_errors: List[Dict[str, str]] = field(default_factory=list)
    stopped: bool = False
    duration_seconds: float = 0.0
    units_per_hour: float = 0.0


@dataclass
class OrganizeResult:
    """Result of a merge pass over the raw data tree."""
    files_processed: int = 0
    duplicates_found: int = 0
    unparseable: int = 0
    groups: int = 0

    @property
    def files_emitted(self) -> int:
        return self.files_processed - self.duplicates_found
