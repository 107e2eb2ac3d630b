"""Unit tests for identifier parsing and name helpers."""
import pytest

from grade_scraper.utils import (
    base_subject_name,
    clean_name,
    is_math_family,
    is_valid_session,
    matches_subject_filter,
    parse_unit_code,
)


class TestParseUnitCode:
    """Unit code extraction from file names."""

    @pytest.mark.parametrize("name,expected", [
        ("WMA02-01C_something.json", "WMA02-01C"),
        ("WPH01-01.json", "WPH01-01"),
        ("WPH01_-_Physics_on_the_Go.json", "WPH01"),
        ("XBI11-01.json", "XBI11-01"),
        ("WMA11C.json", "WMA11C"),
    ])
    def test_matches_code_prefix(self, name, expected):
        assert parse_unit_code(name) == expected

    @pytest.mark.parametrize("name", [
        "readme.txt",
        "progress.json",
        "wph01.json",
        "W01.json",
        "Unit_WPH01.json",
    ])
    def test_returns_none_without_code(self, name):
        assert parse_unit_code(name) is None


class TestBaseSubjectName:
    """Year and trailing underscore stripping."""

    @pytest.mark.parametrize("name,expected", [
        ("Mathematics_(2018)", "Mathematics"),
        ("Pure_Mathematics_(2015)", "Pure_Mathematics"),
        ("Physics (2018)", "Physics"),
        ("Physics", "Physics"),
        ("Biology__", "Biology"),
        ("Economics_(2013)_(2018)", "Economics"),
        ("Accounting (2016) Extra", "AccountingExtra"),
    ])
    def test_strips_years(self, name, expected):
        assert base_subject_name(name) == expected

    @pytest.mark.parametrize("name", [
        "Mathematics_(2018)",
        "Further_Mathematics",
        "Business_(2018)__",
        "Chemistry (2013)",
        "",
    ])
    def test_idempotent(self, name):
        once = base_subject_name(name)
        assert base_subject_name(once) == once


class TestMathFamily:

    @pytest.mark.parametrize("name", ["Mathematics", "Further_Mathematics", "Pure_Mathematics"])
    def test_exact_names(self, name):
        assert is_math_family(name)

    @pytest.mark.parametrize("name", ["Mathematics_(2018)", "mathematics", "Statistics", "Further Mathematics"])
    def test_other_names(self, name):
        assert not is_math_family(name)


def test_session_labels():
    assert is_valid_session("June 2019")
    assert is_valid_session("October 2024")
    assert is_valid_session("January 2020")
    assert not is_valid_session("May 2019")
    assert not is_valid_session("June 19")
    assert not is_valid_session("Select a series")


def test_clean_name():
    assert clean_name("WPH01 - Physics on the Go") == "WPH01_-_Physics_on_the_Go"
    assert clean_name("Mathematics (2018)") == "Mathematics_(2018)"
    assert clean_name('a/b\\c:d*e?f"g<h>i|j') == "a-b-c-d-e-f-g-h-i-j"


class TestSubjectFilter:

    def test_no_filter_allows_everything(self):
        assert matches_subject_filter("Physics", None)
        assert matches_subject_filter("Physics", [])

    def test_case_insensitive_substring(self):
        assert matches_subject_filter("Further Mathematics (2018)", ["mathematics"])
        assert matches_subject_filter("PHYSICS", ["Phys"])

    def test_rejects_non_matching(self):
        assert not matches_subject_filter("Geography", ["Physics", "Chemistry"])
