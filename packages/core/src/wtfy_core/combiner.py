from __future__ import annotations

import logging
import re
from typing import TYPE_CHECKING, Sequence

from wtfy_core.config import CombineWeights
from wtfy_core.models import FIXED, NOT_FIXED, UNKNOWN, CombinedResult
from wtfy_core.prompts import SUMMARY_SYSTEM_PROMPT, build_summary_prompt
from wtfy_core.providers.base import Parsed

if TYPE_CHECKING:
    from wtfy_core.models import PullRequest, Verdict
    from wtfy_core.providers.base import BaseLLMClient

logger = logging.getLogger(__name__)

SUMMARY_FALLBACK = "Unable to generate a summary of the analysis."

_PR_REFERENCE_RE = re.compile(r"#(\d+)")


def combine_status(commit_status: str, pr_status: str) -> str:
    if FIXED in (commit_status, pr_status):
        return FIXED
    if commit_status == NOT_FIXED and pr_status == NOT_FIXED:
        return NOT_FIXED
    return UNKNOWN


def link_pr_references(summary: str, prs: Sequence[PullRequest]) -> str:
    """Turn ``#123`` into a markdown link when PR 123 is one of prs."""
    by_number = {pr.number: pr for pr in prs}

    def _link(match: re.Match) -> str:
        pr = by_number.get(int(match.group(1)))
        if pr is None:
            return match.group(0)
        return f"[#{pr.number}]({pr.url})"

    return _PR_REFERENCE_RE.sub(_link, summary)


class ResultCombiner:
    """Merge the commit-level and PR-level verdicts into the final answer.

    PR verdicts carry more weight (70/30 by default) because PR descriptions
    explain the change, while commit messages are usually one line.
    """

    def __init__(self, llm: BaseLLMClient, weights: CombineWeights | None = None):
        self._llm = llm
        self._weights = weights or CombineWeights()

    def combine(
        self,
        description: str,
        commit_verdict: Verdict,
        pr_verdict: Verdict | None,
        prs: Sequence[PullRequest],
    ) -> CombinedResult:
        if pr_verdict is None:
            # No pull request was fetched: the commit verdict is all there is.
            status = commit_verdict.status
            confidence = commit_verdict.confidence
            relevant_prs: list[PullRequest] = []
            notes = commit_verdict.reasoning
        else:
            status = combine_status(commit_verdict.status, pr_verdict.status)
            confidence = self._weights.commit * commit_verdict.confidence + self._weights.pr * pr_verdict.confidence
            wanted = set(pr_verdict.relevant_ids)
            relevant_prs = [pr for pr in prs if pr.number in wanted]
            notes = "\n".join(r for r in (commit_verdict.reasoning, pr_verdict.reasoning) if r)

        summary = self.summarize(description, notes)
        return CombinedResult(
            status=status,
            confidence=confidence,
            summary=link_pr_references(summary, relevant_prs),
            prs=relevant_prs,
        )

    def summarize(self, description: str, notes: str) -> str:
        """Compress the concatenated shard reasoning into one paragraph. Best-effort."""
        if not notes.strip():
            return SUMMARY_FALLBACK
        response = self._llm.complete(SUMMARY_SYSTEM_PROMPT, build_summary_prompt(description, notes))
        if isinstance(response, Parsed):
            summary = response.data.get("summary")
            if isinstance(summary, str) and summary.strip():
                return summary.strip()
        logger.warning("Summary generation failed; using fallback text")
        return SUMMARY_FALLBACK
