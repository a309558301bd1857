"""Sharded relevance analysis of commits and pull requests.

Long lists hurt the model's recall, and a whole release history does not fit
in one context window anyway. Items are therefore cut into contiguous
batches (100 commits, or 5 pull requests since PR bodies are long), each
batch is judged by its own model call, and the calls run in parallel so a
phase takes as long as its slowest batch.

Partial verdicts are folded in completion order:
  status      fixed if any batch says fixed, not_fixed only if every batch
              does, unknown otherwise
  confidence  running mean acc = (acc*i + new) / (i+1), every batch weighted
              equally; ShardSettings.weighting="size" weights by batch length
  reasoning   newline-joined
  ids         concatenated, duplicates kept
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import TYPE_CHECKING, Callable, Sequence, TypeVar

from wtfy_core.config import ShardSettings
from wtfy_core.models import FIXED, NOT_FIXED, UNKNOWN, Verdict
from wtfy_core.prompts import (
    COMMITS_SYSTEM_PROMPT,
    PULL_REQUESTS_SYSTEM_PROMPT,
    build_commits_prompt,
    build_pull_requests_prompt,
)
from wtfy_core.providers.base import Parsed

if TYPE_CHECKING:
    from wtfy_core.models import Commit, PullRequest
    from wtfy_core.providers.base import BaseLLMClient, LLMResponse

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Confidence when there was nothing to look at: no candidate commits after the
# reported version is evidence against a fix, but weak evidence.
_EMPTY_INPUT_CONFIDENCE = 50
_MIN_SHA_PREFIX = 7


def partition(items: Sequence[T], size: int) -> list[list[T]]:
    """Split items into contiguous batches of at most size."""
    if size < 1:
        raise ValueError(f"Batch size must be positive, got {size}")
    return [list(items[i : i + size]) for i in range(0, len(items), size)]


def parse_verdict(response: LLMResponse, id_key: str, as_int: bool = False) -> Verdict:
    """Turn one model answer into a Verdict, filling in anything missing.

    Unparseable answers become an unknown verdict with zero confidence.
    """
    if not isinstance(response, Parsed):
        return Verdict(status=UNKNOWN, confidence=0, reasoning=f"Analysis unavailable: {response.reason}.")

    data = response.data
    raw_ids = data.get(id_key) or []
    if not isinstance(raw_ids, list):
        raw_ids = [raw_ids]

    relevant_ids: list = []
    for raw in raw_ids:
        if as_int:
            try:
                relevant_ids.append(int(str(raw).strip().lstrip("#")))
            except ValueError:
                logger.debug("Ignoring non-numeric PR id from model: %r", raw)
        elif isinstance(raw, str) and raw.strip():
            relevant_ids.append(raw.strip())

    reasoning = data.get("reasoning")
    return Verdict(
        status=data.get("status", UNKNOWN),
        confidence=data.get("confidence", 0),
        reasoning=reasoning if isinstance(reasoning, str) else "",
        relevant_ids=relevant_ids,
    )


def fold_verdicts(verdicts: Sequence[Verdict], sizes: Sequence[int] | None = None, weighting: str = "equal") -> Verdict:
    if not verdicts:
        return Verdict(status=UNKNOWN, confidence=0)

    statuses = [v.status for v in verdicts]
    if FIXED in statuses:
        status = FIXED
    elif all(s == NOT_FIXED for s in statuses):
        status = NOT_FIXED
    else:
        status = UNKNOWN

    if weighting == "size" and sizes and sum(sizes) > 0:
        confidence = sum(v.confidence * n for v, n in zip(verdicts, sizes)) / sum(sizes)
    else:
        confidence = 0.0
        for i, verdict in enumerate(verdicts):
            confidence = (confidence * i + verdict.confidence) / (i + 1)

    relevant_ids: list = []
    for verdict in verdicts:
        relevant_ids.extend(verdict.relevant_ids)

    return Verdict(
        status=status,
        confidence=confidence,
        reasoning="\n".join(v.reasoning for v in verdicts if v.reasoning),
        relevant_ids=relevant_ids,
    )


class ShardedAnalyzer:
    def __init__(self, llm: BaseLLMClient, settings: ShardSettings | None = None):
        self._llm = llm
        self._settings = settings or ShardSettings()

    def analyze_commits(self, description: str, commits: Sequence[Commit]) -> Verdict:
        if not commits:
            return Verdict(
                status=NOT_FIXED,
                confidence=_EMPTY_INPUT_CONFIDENCE,
                reasoning="No matching commits were found since the reported version.",
            )
        batches = partition(commits, self._settings.commit_batch_size)
        logger.info("Analyzing %d commit(s) in %d shard(s)", len(commits), len(batches))
        return self._run(batches, lambda batch: self._judge_commits(description, batch))

    def analyze_pull_requests(self, description: str, prs: Sequence[PullRequest]) -> Verdict:
        if not prs:
            return Verdict(
                status=NOT_FIXED,
                confidence=_EMPTY_INPUT_CONFIDENCE,
                reasoning="No pull requests were referenced by the relevant commits.",
            )
        batches = partition(prs, self._settings.pr_batch_size)
        logger.info("Analyzing %d pull request(s) in %d shard(s)", len(prs), len(batches))
        return self._run(batches, lambda batch: self._judge_pull_requests(description, batch))

    def _run(self, batches: list[list[T]], judge: Callable[[list[T]], Verdict]) -> Verdict:
        verdicts: list[Verdict] = []
        sizes: list[int] = []
        workers = max(1, min(self._settings.max_workers, len(batches)))

        with ThreadPoolExecutor(max_workers=workers) as executor:
            future_to_size = {executor.submit(judge, batch): len(batch) for batch in batches}

            for future in as_completed(future_to_size):
                try:
                    verdict = future.result()
                except Exception as e:
                    logger.error("Shard analysis failed: %s", e)
                    verdict = Verdict(status=UNKNOWN, confidence=0, reasoning=f"Shard analysis failed: {e}")
                verdicts.append(verdict)
                sizes.append(future_to_size[future])

        return fold_verdicts(verdicts, sizes, self._settings.weighting)

    def _judge_commits(self, description: str, batch: list[Commit]) -> Verdict:
        response = self._llm.complete(COMMITS_SYSTEM_PROMPT, build_commits_prompt(description, batch))
        verdict = parse_verdict(response, "relevantCommitShas")
        verdict.relevant_ids = _resolve_shas(verdict.relevant_ids, batch)
        return verdict

    def _judge_pull_requests(self, description: str, batch: list[PullRequest]) -> Verdict:
        prompt = build_pull_requests_prompt(description, batch, self._settings.max_body_chars)
        response = self._llm.complete(PULL_REQUESTS_SYSTEM_PROMPT, prompt)
        return parse_verdict(response, "relevantPrNumbers", as_int=True)


def _resolve_shas(candidates: list[str], batch: Sequence[Commit]) -> list[str]:
    """Map the SHAs the model returned (possibly abbreviated) onto commits in the batch."""
    resolved = []
    for candidate in candidates:
        candidate = candidate.lower()
        if len(candidate) < _MIN_SHA_PREFIX:
            continue
        match = next((c.sha for c in batch if c.sha.lower().startswith(candidate)), None)
        if match is None:
            logger.debug("Model returned SHA %s that is not in this shard", candidate)
            continue
        resolved.append(match)
    return resolved
