"""Unit tests for the progress ledger."""
import json

import pytest

from grade_scraper.resilience.progress_tracker import ProgressTracker, UnitStore

QUAL = "International A Level"


@pytest.fixture
def ledger_path(tmp_path):
    return tmp_path / "state" / "progress.json"


@pytest.fixture
def tracker(ledger_path):
    t = ProgressTracker(ledger_path)
    t.load()
    return t


class TestUnitStore:

    def test_absent_levels_read_as_missing(self):
        store = UnitStore()
        assert not store.contains("Q", "June 2019", "Physics", "WPH01")
        assert store.subjects("Q", "June 2019") == []
        assert store.count_units("Q", "June 2019") == 0

    def test_add_reports_first_insertion(self):
        store = UnitStore()
        assert store.add("Q", "S", "Physics", "WPH01")
        assert not store.add("Q", "S", "Physics", "WPH01")
        assert store.to_dict() == {"Q": {"S": {"Physics": ["WPH01"]}}}

    def test_remove_by_prefix(self):
        store = UnitStore()
        store.add("Q", "S1", "Physics", "U1")
        store.add("Q", "S1", "Physics", "U2")
        store.add("Q", "S2", "Physics", "U1")

        removed = store.remove("Q", session="S1", unit="U1")

        assert removed == [("Q", "S1", "Physics", "U1")]
        assert store.to_dict() == {"Q": {"S1": {"Physics": ["U2"]}, "S2": {"Physics": ["U1"]}}}

    def test_rejects_wrong_shape(self):
        with pytest.raises(TypeError):
            UnitStore({"Q": {"S": {"Physics": "WPH01"}}})


class TestLoadAndSave:

    def test_first_run_creates_empty_ledger(self, tracker, ledger_path):
        assert ledger_path.exists()
        data = json.loads(ledger_path.read_text())
        assert data['completed'] == {}
        assert data['failed'] == {}
        assert data['completedSessions'] == {}
        assert data['lastUpdate']
        assert data['stats'] == {
            'totalSessions': 0,
            'totalSubjects': 0,
            'totalUnits': 0,
            'completedUnits': 0,
            'failedUnits': 0,
            'completedSessions': 0,
        }

    @pytest.mark.parametrize("content", ["{not json", "[]", '{"completed": {"Q": []}}', ""])
    def test_corrupt_file_is_replaced(self, ledger_path, content):
        ledger_path.parent.mkdir(parents=True)
        ledger_path.write_text(content)

        tracker = ProgressTracker(ledger_path)
        tracker.load()

        data = json.loads(ledger_path.read_text())
        assert data['completed'] == {}
        assert tracker.summary()['completedUnits'] == 0
        backups = list(ledger_path.parent.glob("progress.corrupted.*.json"))
        assert len(backups) == 1
        assert backups[0].read_text() == content

    def test_round_trip(self, tracker, ledger_path):
        tracker.mark_completed(QUAL, "June 2019", "Physics", "WPH01")
        tracker.mark_failed(QUAL, "June 2019", "Physics", "WPH02", "No data extracted")
        tracker.mark_session_completed(QUAL, "June 2019")
        tracker.update_stats(2, 3, 4)
        tracker.save()

        reloaded = ProgressTracker(ledger_path)
        reloaded.load()

        assert reloaded.is_completed(QUAL, "June 2019", "Physics", "WPH01")
        assert reloaded.has_failed(QUAL, "June 2019", "Physics", "WPH02")
        assert reloaded.is_session_completed(QUAL, "June 2019")
        assert reloaded.summary() == tracker.summary()

    def test_save_leaves_no_temp_file(self, tracker, ledger_path):
        tracker.mark_completed(QUAL, "June 2019", "Physics", "WPH01")
        tracker.save()
        assert [p.name for p in ledger_path.parent.iterdir()] == ["progress.json"]

    def test_reset_backs_up_and_clears(self, tracker, ledger_path):
        tracker.mark_completed(QUAL, "June 2019", "Physics", "WPH01")
        tracker.save()

        tracker.reset()

        assert not ledger_path.exists()
        assert not tracker.is_completed(QUAL, "June 2019", "Physics", "WPH01")
        assert len(list(ledger_path.parent.glob("progress.reset.*.json"))) == 1


class TestMarking:

    def test_lookups_on_empty_ledger(self, tracker):
        assert not tracker.is_completed(QUAL, "June 2019", "Physics", "WPH01")
        assert not tracker.has_failed(QUAL, "June 2019", "Physics", "WPH01")
        assert not tracker.is_session_completed(QUAL, "June 2019")
        assert not tracker.is_session_completed("Other", "June 2019")

    def test_marks_are_idempotent(self, tracker):
        for _ in range(3):
            tracker.mark_completed(QUAL, "June 2019", "Physics", "WPH01")
            tracker.mark_failed(QUAL, "June 2019", "Physics", "WPH02", "boom")
            tracker.mark_session_completed(QUAL, "June 2019")

        summary = tracker.summary()
        assert summary['completedUnits'] == 1
        assert summary['failedUnits'] == 1
        assert summary['completedSessions'] == 1
        assert tracker.to_dict()['completed'][QUAL]["June 2019"]["Physics"] == ["WPH01"]

    def test_failure_reason_kept_in_memory(self, tracker):
        tracker.mark_failed(QUAL, "June 2019", "Physics", "WPH02", "No data extracted")
        assert tracker.failure_reasons[(QUAL, "June 2019", "Physics", "WPH02")] == "No data extracted"

    def test_clear_failed_unflags_session(self, tracker):
        tracker.mark_completed(QUAL, "June 2019", "Physics", "WPH01")
        tracker.mark_failed(QUAL, "June 2019", "Physics", "WPH02", "boom")
        tracker.mark_failed(QUAL, "October 2019", "Physics", "WPH02", "boom")
        tracker.mark_session_completed(QUAL, "June 2019")
        tracker.mark_session_completed(QUAL, "October 2019")

        cleared = tracker.clear_failed(QUAL, session="June 2019")

        assert cleared == 1
        assert not tracker.has_failed(QUAL, "June 2019", "Physics", "WPH02")
        assert tracker.has_failed(QUAL, "October 2019", "Physics", "WPH02")
        assert not tracker.is_session_completed(QUAL, "June 2019")
        assert tracker.is_session_completed(QUAL, "October 2019")
        summary = tracker.summary()
        assert summary['failedUnits'] == 1
        assert summary['completedSessions'] == 1

    def test_clear_failed_without_matches(self, tracker):
        assert tracker.clear_failed(QUAL, session="June 2019") == 0


class TestSummary:

    def test_zero_units(self, tracker):
        assert tracker.summary()['progress'] == 0

    @pytest.mark.parametrize("completed,total,expected", [
        (1, 3, 33),
        (2, 3, 67),
        (1, 2, 50),
        (1, 8, 13),
        (3, 3, 100),
    ])
    def test_percentage_rounds_to_nearest(self, tracker, completed, total, expected):
        for i in range(completed):
            tracker.mark_completed(QUAL, "June 2019", "Physics", f"U{i}")
        tracker.update_stats(1, 1, total)
        assert tracker.summary()['progress'] == expected
