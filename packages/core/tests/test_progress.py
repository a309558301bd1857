"""Tests for progress tracking."""

from datetime import timedelta
from unittest.mock import MagicMock

from wtfy_core.progress import AnalysisSteps, ProgressTracker
from wtfy_store.memory import MemoryStore
from wtfy_store.models import ProgressRecord, utcnow


def _tracker(request_id="r1"):
    store = MemoryStore()
    tracker = ProgressTracker(request_id, store)
    tracker.initialize()
    return tracker, store


class TestAnalysisSteps:
    def test_six_ordered_steps(self):
        steps = AnalysisSteps()
        assert steps.total == 6
        assert [s.step for s in (
            steps.extracting_keywords,
            steps.fetching_releases,
            steps.searching_commits,
            steps.analyzing_commits,
            steps.fetching_prs,
            steps.final_analysis,
        )] == [1, 2, 3, 4, 5, 6]
        assert steps.searching_commits.title == "Search Relevant Commits"


class TestProgressTracker:
    def test_initialize_creates_row(self):
        _, store = _tracker()
        record = store.get_progress("r1")
        assert record.current_step == 0
        assert record.total_steps == 6
        assert record.is_completed is False

    def test_update_step(self):
        tracker, store = _tracker()
        tracker.begin(AnalysisSteps().fetching_releases)

        record = store.get_progress("r1")
        assert record.current_step == 2
        assert record.step_title == "Fetch Releases"

    def test_update_with_data_appends_details(self):
        tracker, store = _tracker()
        tracker.update_step_with_data(1, "Extract Keywords", "Extracted", keywords=["django", "asgi"])
        tracker.update_step_with_data(4, "Analyze Commit Messages", "Evaluated", count=3, total=120)

        record = store.get_progress("r1")
        assert record.step_description == "Evaluated (Found: 3) (Total: 120)"
        assert record.step_results == {
            "1": {"title": "Extract Keywords", "description": "Extracted (Keywords: django, asgi)"},
            "4": {"title": "Analyze Commit Messages", "description": "Evaluated (Found: 3) (Total: 120)"},
        }

    def test_zero_count_is_reported(self):
        tracker, store = _tracker()
        tracker.update_step_with_data(3, "Search Relevant Commits", "Searched", keywords=[], count=0)
        assert store.get_progress("r1").step_description == "Searched (Found: 0)"

    def test_complete(self):
        tracker, store = _tracker()
        tracker.complete()

        record = store.get_progress("r1")
        assert record.current_step == 6
        assert record.step_title == "Analysis Complete"
        assert record.is_completed is True
        assert record.error is None

    def test_fail_records_error(self):
        tracker, store = _tracker()
        tracker.fail("GitHub exploded", at_step=3)

        record = store.get_progress("r1")
        assert record.is_completed is True
        assert record.error == "GitHub exploded"
        assert record.current_step == 3
        assert record.step_title == "Analysis Failed"

    def test_store_errors_are_swallowed(self):
        store = MagicMock()
        store.create_progress.side_effect = RuntimeError("db down")
        store.update_progress.side_effect = RuntimeError("db down")
        tracker = ProgressTracker("r1", store)

        tracker.initialize()
        tracker.update_step(1, "Extract Keywords")
        tracker.complete()
        tracker.fail("x")

    def test_get_progress_unknown_request(self):
        assert ProgressTracker.get_progress(MemoryStore(), "nope") is None

    def test_get_progress_store_error_is_none(self):
        store = MagicMock()
        store.get_progress.side_effect = RuntimeError("db down")
        assert ProgressTracker.get_progress(store, "r1") is None

    def test_cleanup_removes_stale_rows(self):
        store = MemoryStore()
        store.create_progress(ProgressRecord(request_id="old", updated_at=utcnow() - timedelta(hours=30)))
        store.create_progress(ProgressRecord(request_id="new"))

        assert ProgressTracker.cleanup(store) == 1
        assert store.get_progress("old") is None
        assert store.get_progress("new") is not None
