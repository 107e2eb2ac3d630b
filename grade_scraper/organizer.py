"""
Consolidates the raw data tree into a canonical, deduplicated tree.

Subject folders that differ only by a year designation are merged, and every
math subject variant is merged into a single Mathematics folder. Within one
canonical folder each unit code is copied once; later files with the same
code are counted as duplicates.
"""

import logging
import os
import shutil
from pathlib import Path
from typing import Dict, List, Set

from grade_scraper.data_processor import DATA_FILE_EXTENSION
from grade_scraper.models import OrganizeResult
from grade_scraper.utils import (
    UNIFIED_MATH_SUBJECT,
    base_subject_name,
    is_math_family,
    parse_unit_code,
)

logger = logging.getLogger(__name__)

# Canonical subject folders are assembled under this suffix before being swapped in
STAGING_SUFFIX = ".staging"


def group_subjects(subjects: List[str]) -> Dict[str, List[str]]:
    """
    Map each canonical subject folder to the raw folders merged into it.

    Keys and variants keep the order in which they are first listed.
    """
    groups: Dict[str, List[str]] = {}
    for subject in subjects:
        groups.setdefault(base_subject_name(subject), []).append(subject)

    targets: Dict[str, List[str]] = {}
    for base_name, variants in groups.items():
        if is_math_family(base_name) or any(is_math_family(v) for v in variants):
            target = UNIFIED_MATH_SUBJECT
        else:
            target = base_name
        targets.setdefault(target, []).extend(variants)
    return targets


class DataOrganizer:
    """Builds the canonical tree from the raw per-unit artifact tree."""

    def __init__(self, source_dir: Path, target_dir: Path):
        """
        Args:
            source_dir: Raw tree, qualification/session/subject/*.json
            target_dir: Canonical tree to write
        """
        self.source_dir = Path(source_dir)
        self.target_dir = Path(target_dir)

    def organize(self) -> OrganizeResult:
        """
        Organize data files by restructuring and removing duplicates.

        Raises:
            FileNotFoundError: If the source tree does not exist
        """
        if not self.source_dir.is_dir():
            raise FileNotFoundError(f"Source directory not found: {self.source_dir}")

        logger.info("Starting data organization: %s -> %s", self.source_dir, self.target_dir)
        result = OrganizeResult()
        self.target_dir.mkdir(parents=True, exist_ok=True)

        for qual in os.listdir(self.source_dir):
            qual_path = self.source_dir / qual
            if not qual_path.is_dir():
                continue
            logger.info("Processing qualification type: %s", qual)

            for session in os.listdir(qual_path):
                session_path = qual_path / session
                if not session_path.is_dir():
                    continue
                logger.info("Processing session: %s", session)
                self._organize_session(session_path, self.target_dir / qual / session, result)

        logger.info(
            "Data organization complete: %d files processed, %d duplicates handled",
            result.files_processed, result.duplicates_found,
        )
        return result

    def _organize_session(self, session_path: Path, target_session: Path, result: OrganizeResult):
        subjects = [name for name in os.listdir(session_path) if (session_path / name).is_dir()]
        targets = group_subjects(subjects)
        for target, variants in targets.items():
            result.groups += 1
            if target == UNIFIED_MATH_SUBJECT and len(variants) > 1:
                logger.info("  Consolidating math subjects into %s folder", target)
            else:
                logger.info("  Processing subject: %s (%d variants)", target, len(variants))
            self._merge_variants(session_path, variants, target_session / target, result)

    def _merge_variants(
        self,
        session_path: Path,
        variants: List[str],
        target_path: Path,
        result: OrganizeResult,
    ):
        """
        Build one canonical subject folder from its raw variants.

        The folder is assembled in a staging sibling and replaces any
        earlier copy as a whole.
        """
        emitted: Set[str] = set()
        staging_path = target_path.with_name(target_path.name + STAGING_SUFFIX)
        if staging_path.exists():
            shutil.rmtree(staging_path)

        for subject in variants:
            subject_path = session_path / subject
            try:
                files = os.listdir(subject_path)
            except OSError as e:
                logger.warning("  Could not read subject directory %s: %s", subject, e)
                continue

            for filename in files:
                if not filename.endswith(DATA_FILE_EXTENSION):
                    continue

                unit_code = parse_unit_code(filename)
                if not unit_code:
                    logger.warning("  Could not parse unit code from %s", filename)
                    result.unparseable += 1
                    continue

                result.files_processed += 1
                if unit_code in emitted:
                    result.duplicates_found += 1
                    logger.info("  Skipping duplicate unit: %s (%s)", filename, unit_code)
                    continue
                try:
                    staging_path.mkdir(parents=True, exist_ok=True)
                    shutil.copy2(subject_path / filename, staging_path / filename)
                except OSError as e:
                    # Not counted, so a later variant may still provide this unit
                    logger.warning("  Could not copy %s/%s: %s", subject, filename, e)
                    result.files_processed -= 1
                    continue
                emitted.add(unit_code)
                logger.debug("  Copied %s/%s to %s/%s", subject, filename, target_path.name, filename)

        if target_path.exists():
            shutil.rmtree(target_path)
        if staging_path.exists():
            os.replace(staging_path, target_path)
