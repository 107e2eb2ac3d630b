"""
Shared utility functions for the scraper and the data organizer.
"""

import re
from typing import Optional, Iterable


UNIT_CODE_PATTERN = re.compile(r'^([A-Z]{2,3}\d{2}(?:-\d{2})?[A-Z]?)')
SESSION_PATTERN = re.compile(r'^(January|June|October)\s+\d{4}$')
YEAR_TOKEN_PATTERN = re.compile(r'\s*\(\d{4}\)\s*')
TRAILING_UNDERSCORES = re.compile(r'_+$')
UNSAFE_PATH_CHARS = re.compile(r'[/\\:*?"<>|]')

MATH_SUBJECTS = frozenset([
    "Mathematics",
    "Further_Mathematics",
    "Pure_Mathematics",
])
UNIFIED_MATH_SUBJECT = "Mathematics"


def parse_unit_code(name: str) -> Optional[str]:
    """
    Extract the unit code from a file or unit name.

    Args:
        name: Name starting with a unit code (e.g., WMA02-01C_Pure.json)

    Returns:
        Unit code (e.g., WMA02-01C) or None if the name has no code prefix
    """
    match = UNIT_CODE_PATTERN.match(name)
    return match.group(1) if match else None


def base_subject_name(name: str) -> str:
    """
    Strip year designations like (2018) and trailing underscores.

    Args:
        name: Subject folder name (e.g., Mathematics_(2018))

    Returns:
        Base subject name (e.g., Mathematics)
    """
    return TRAILING_UNDERSCORES.sub('', YEAR_TOKEN_PATTERN.sub('', name))


def is_math_family(name: str) -> bool:
    """Check whether a raw subject folder name is one of the math subjects."""
    return name in MATH_SUBJECTS


def is_valid_session(label: str) -> bool:
    """Check whether a listing entry looks like an exam session (e.g., June 2019)."""
    return bool(SESSION_PATTERN.match(label))


def clean_name(value: str) -> str:
    """
    Make a label safe to use as a path segment.

    Args:
        value: Session, subject or unit label

    Returns:
        Label with unsafe characters replaced by '-' and whitespace by '_'
    """
    return re.sub(r'\s+', '_', UNSAFE_PATH_CHARS.sub('-', value))


def matches_subject_filter(subject: str, filters: Optional[Iterable[str]]) -> bool:
    """
    Check if a subject matches the configured filter terms.

    An empty or missing filter allows every subject.
    """
    if not filters:
        return True
    subject_lower = subject.lower()
    return any(term.lower() in subject_lower for term in filters)
