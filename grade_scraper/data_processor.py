"""
Normalization and storage of extracted grade conversion tables.
One JSON artifact per unit under data/<qualification>/<session>/<subject>/.
"""

import json
import logging
import os
from datetime import datetime
from pathlib import Path
from typing import Iterable, List, Sequence

from grade_scraper.models import ArtifactMetadata, ArtifactRecord, ScoreRow
from grade_scraper.utils import clean_name

logger = logging.getLogger(__name__)

DATA_FILE_EXTENSION = ".json"


def normalize_rows(rows: Iterable[Sequence]) -> List[ScoreRow]:
    """
    Turn extracted (raw, ums, grade) rows into ScoreRows sorted by UMS descending.

    Rows without two integer marks are dropped.

    Args:
        rows: Rows as returned by PageAdapter.extract_score_table()

    Returns:
        Sorted list of ScoreRow
    """
    data = []
    for row in rows:
        try:
            raw, ums, grade = row[0], row[1], row[2]
            data.append(ScoreRow(raw=int(raw), ums=int(ums), grade=str(grade).strip()))
        except (IndexError, TypeError, ValueError):
            logger.debug("Dropping malformed row: %r", row)

    if 0 < len(data) <= 2:
        logger.warning("Only %d data points found. This may be incomplete data.", len(data))

    data.sort(key=lambda r: r.ums, reverse=True)
    return data


def artifact_path(data_dir: Path, qual: str, session: str, subject: str, unit: str) -> Path:
    """Location of the artifact file for one unit."""
    return (
        Path(data_dir)
        / clean_name(qual)
        / clean_name(session)
        / clean_name(subject)
        / f"{clean_name(unit)}{DATA_FILE_EXTENSION}"
    )


def build_artifact(
    rows: List[ScoreRow], qual: str, session: str, subject: str, unit: str
) -> ArtifactRecord:
    metadata = ArtifactMetadata(
        qualification_type=qual,
        session=session,
        subject=subject,
        unit=unit,
        record_count=len(rows),
        timestamp=datetime.now().isoformat(),
    )
    return ArtifactRecord(metadata=metadata, data=list(rows))


def save_artifact(
    rows: List[ScoreRow],
    data_dir: Path,
    qual: str,
    session: str,
    subject: str,
    unit: str,
) -> Path:
    """
    Write the artifact for one unit.

    Args:
        rows: Normalized rows
        data_dir: Root of the raw data tree
        qual, session, subject, unit: Hierarchy labels as listed by the site

    Returns:
        Path of the written file
    """
    record = build_artifact(rows, qual, session, subject, unit)
    filepath = artifact_path(data_dir, qual, session, subject, unit)
    filepath.parent.mkdir(parents=True, exist_ok=True)

    temp_file = filepath.with_name(filepath.name + ".tmp")
    with open(temp_file, 'w', encoding='utf-8') as f:
        json.dump(record.to_dict(), f, indent=2, ensure_ascii=False)
        f.flush()
        os.fsync(f.fileno())
    temp_file.replace(filepath)

    logger.info("Data saved to %s (%d records)", filepath, len(rows))
    return filepath


def load_artifact(filepath: Path) -> ArtifactRecord:
    """Read an artifact file back into an ArtifactRecord."""
    with open(filepath, 'r', encoding='utf-8') as f:
        data = json.load(f)
    meta = data['metadata']
    metadata = ArtifactMetadata(
        qualification_type=meta['qualificationType'],
        session=meta['session'],
        subject=meta['subject'],
        unit=meta['unit'],
        record_count=int(meta['recordCount']),
        timestamp=meta['timestamp'],
    )
    return ArtifactRecord(
        metadata=metadata,
        data=[ScoreRow.from_dict(row) for row in data['data']],
    )
