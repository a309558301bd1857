"""Per-request progress rows that clients poll while an analysis runs.

Progress is informational. Every write is caught and logged so a broken
store never fails the analysis it describes.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import timedelta
from typing import TYPE_CHECKING

from wtfy_store.models import ProgressRecord, utcnow

if TYPE_CHECKING:
    from wtfy_store.base import BaseStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StepDefinition:
    step: int
    title: str
    description: str


@dataclass(frozen=True)
class AnalysisSteps:
    extracting_keywords: StepDefinition = StepDefinition(
        1, "Extract Keywords", "AI analyzing your issue description for search terms"
    )
    fetching_releases: StepDefinition = StepDefinition(
        2, "Fetch Releases", "Getting all available releases and version information"
    )
    searching_commits: StepDefinition = StepDefinition(
        3, "Search Relevant Commits", "Looking through repository history for relevant changes"
    )
    analyzing_commits: StepDefinition = StepDefinition(
        4, "Analyze Commit Messages", "AI evaluating commit messages for potential fixes"
    )
    fetching_prs: StepDefinition = StepDefinition(
        5, "Fetch and Analyze PRs", "Getting detailed information about relevant pull requests"
    )
    final_analysis: StepDefinition = StepDefinition(
        6, "Combined Analysis", "Combining all findings to determine if issue was fixed"
    )

    @property
    def total(self) -> int:
        return self.final_analysis.step


class ProgressTracker:
    def __init__(self, request_id: str, store: BaseStore, steps: AnalysisSteps | None = None):
        self.request_id = request_id
        self._store = store
        self._steps = steps or AnalysisSteps()
        self._step_results: dict[str, dict[str, str]] = {}

    @property
    def total_steps(self) -> int:
        return self._steps.total

    def initialize(self) -> None:
        record = ProgressRecord(
            request_id=self.request_id,
            total_steps=self.total_steps,
            step_description="Initializing AI-powered issue analysis",
        )
        try:
            self._store.create_progress(record)
        except Exception as e:
            logger.error("Failed to initialize progress for %s: %s", self.request_id, e)

    def update_step(self, step: int, title: str, description: str | None = None) -> None:
        self._write(current_step=step, step_title=title, step_description=description)
        logger.info("Progress %s: step %d/%d - %s", self.request_id, step, self.total_steps, title)

    def begin(self, definition: StepDefinition) -> None:
        self.update_step(definition.step, definition.title, definition.description)

    def update_step_with_data(
        self,
        step: int,
        title: str,
        base_description: str,
        keywords: list[str] | None = None,
        count: int | None = None,
        total: int | None = None,
    ) -> None:
        """Update the step and remember it, with the numbers that make it informative."""
        description = base_description
        if keywords:
            description += f" (Keywords: {', '.join(keywords)})"
        if count is not None:
            description += f" (Found: {count})"
        if total is not None:
            description += f" (Total: {total})"

        self._step_results[str(step)] = {"title": title, "description": description}
        self._write(
            current_step=step,
            step_title=title,
            step_description=description,
            step_results=dict(self._step_results),
        )
        logger.info("Progress %s: step %d/%d - %s", self.request_id, step, self.total_steps, description)

    def complete(self) -> None:
        self._write(
            current_step=self.total_steps,
            step_title="Analysis Complete",
            step_description="Results ready",
            is_completed=True,
        )

    def fail(self, message: str, at_step: int | None = None) -> None:
        # is_completed is set on failure too; pollers stop once either flag appears.
        self._write(
            current_step=at_step or self.total_steps,
            step_title="Analysis Failed",
            step_description="An error occurred during analysis",
            error=message,
            is_completed=True,
        )
        logger.info("Analysis %s failed: %s", self.request_id, message)

    def _write(self, **fields) -> None:
        try:
            self._store.update_progress(self.request_id, **fields)
        except Exception as e:
            logger.error("Failed to update progress for %s: %s", self.request_id, e)

    @classmethod
    def get_progress(cls, store: BaseStore, request_id: str) -> ProgressRecord | None:
        try:
            return store.get_progress(request_id)
        except Exception as e:
            logger.error("Failed to get progress for %s: %s", request_id, e)
            return None

    @classmethod
    def cleanup(cls, store: BaseStore, max_age: timedelta = timedelta(hours=24)) -> int:
        """Delete progress rows not updated within max_age."""
        try:
            removed = store.delete_progress_before(utcnow() - max_age)
        except Exception as e:
            logger.error("Failed to clean up progress entries: %s", e)
            return 0
        logger.info("Removed %d stale progress entr%s", removed, "y" if removed == 1 else "ies")
        return removed
