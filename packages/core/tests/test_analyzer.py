"""Tests for sharded commit and pull-request analysis."""

import re
import threading

import pytest

from wtfy_core.analyzer import ShardedAnalyzer, fold_verdicts, parse_verdict, partition
from wtfy_core.config import ShardSettings
from wtfy_core.models import FIXED, NOT_FIXED, UNKNOWN, Commit, PullRequest, Verdict
from wtfy_core.prompts import COMMITS_SYSTEM_PROMPT, PULL_REQUESTS_SYSTEM_PROMPT
from wtfy_core.providers.base import BaseLLMClient, Parsed, Unparseable

DESCRIPTION = "Events are dropped when the transport queue is full"


class _ScriptedLLM(BaseLLMClient):
    """Answers each prompt through a handler and records every call."""

    def __init__(self, handler):
        self.handler = handler
        self.calls = []
        self._lock = threading.Lock()

    def _call_api(self, system_prompt: str, user_prompt: str) -> str:
        raise AssertionError("complete() is stubbed")

    def complete(self, system_prompt, user_prompt):
        with self._lock:
            self.calls.append((system_prompt, user_prompt))
        return self.handler(system_prompt, user_prompt)


def _commits(n):
    return [Commit(sha=f"{i:04d}" + "ab" * 18, message=f"change {i}", authored_at=None, url=f"u{i}") for i in range(n)]


def _batch_size(user_prompt):
    return int(re.search(r"## (?:Commits|Pull Requests) \((\d+)\)", user_prompt).group(1))


class TestPartition:
    def test_contiguous_batches(self):
        batches = partition(list(range(250)), 100)
        assert [len(b) for b in batches] == [100, 100, 50]
        assert batches[1][0] == 100

    def test_empty(self):
        assert partition([], 5) == []

    def test_invalid_size(self):
        with pytest.raises(ValueError):
            partition([1], 0)


class TestParseVerdict:
    def test_unparseable_becomes_unknown(self):
        verdict = parse_verdict(Unparseable(raw="x", reason="invalid JSON"), "relevantCommitShas")
        assert verdict.status == UNKNOWN
        assert verdict.confidence == 0
        assert "invalid JSON" in verdict.reasoning

    def test_missing_fields_defaulted(self):
        verdict = parse_verdict(Parsed({}), "relevantCommitShas")
        assert verdict == Verdict(status=UNKNOWN, confidence=0, reasoning="", relevant_ids=[])

    def test_out_of_range_confidence_clamped(self):
        verdict = parse_verdict(Parsed({"status": "fixed", "confidence": 140}), "relevantCommitShas")
        assert verdict.confidence == 100

    def test_pr_numbers_coerced_to_int(self):
        verdict = parse_verdict(Parsed({"relevantPrNumbers": ["#12", 13, "abc"]}), "relevantPrNumbers", as_int=True)
        assert verdict.relevant_ids == [12, 13]


class TestFoldVerdicts:
    def test_any_fixed_wins(self):
        folded = fold_verdicts([Verdict(NOT_FIXED, 90), Verdict(FIXED, 60), Verdict(UNKNOWN, 10)])
        assert folded.status == FIXED

    def test_all_not_fixed(self):
        assert fold_verdicts([Verdict(NOT_FIXED, 90), Verdict(NOT_FIXED, 70)]).status == NOT_FIXED

    def test_mixed_without_fixed_is_unknown(self):
        assert fold_verdicts([Verdict(NOT_FIXED, 90), Verdict(UNKNOWN, 70)]).status == UNKNOWN

    def test_equal_weight_running_average(self):
        folded = fold_verdicts([Verdict(FIXED, 90), Verdict(NOT_FIXED, 60), Verdict(NOT_FIXED, 30)])
        assert folded.confidence == pytest.approx(60)

    def test_size_weighting(self):
        folded = fold_verdicts([Verdict(FIXED, 90), Verdict(NOT_FIXED, 30)], sizes=[100, 50], weighting="size")
        assert folded.confidence == pytest.approx(70)

    def test_ids_concatenated_and_reasoning_joined(self):
        folded = fold_verdicts([Verdict(FIXED, 90, "a", ["x"]), Verdict(FIXED, 90, "b", ["y", "x"])])
        assert folded.relevant_ids == ["x", "y", "x"]
        assert folded.reasoning == "a\nb"

    def test_empty(self):
        assert fold_verdicts([]) == Verdict(status=UNKNOWN, confidence=0)


class TestAnalyzeCommits:
    def test_no_commits_is_not_fixed_without_model_call(self):
        llm = _ScriptedLLM(lambda s, u: pytest.fail("model must not be called"))
        verdict = ShardedAnalyzer(llm).analyze_commits(DESCRIPTION, [])
        assert verdict.status == NOT_FIXED
        assert verdict.confidence == 50
        assert llm.calls == []

    def test_250_commits_make_three_shards(self):
        llm = _ScriptedLLM(lambda s, u: Parsed({"status": "not_fixed", "confidence": 80}))
        verdict = ShardedAnalyzer(llm).analyze_commits(DESCRIPTION, _commits(250))

        assert sorted(_batch_size(u) for _, u in llm.calls) == [50, 100, 100]
        assert all(s is COMMITS_SYSTEM_PROMPT for s, _ in llm.calls)
        assert verdict.status == NOT_FIXED
        assert verdict.confidence == pytest.approx(80)

    def test_fixed_in_one_shard_marks_fixed(self):
        commits = _commits(150)
        target = commits[120].sha

        def _answer(system_prompt, user_prompt):
            if target in user_prompt:
                return Parsed({"status": "fixed", "confidence": 90, "relevantCommitShas": [target]})
            return Parsed({"status": "not_fixed", "confidence": 70, "relevantCommitShas": []})

        verdict = ShardedAnalyzer(_ScriptedLLM(_answer)).analyze_commits(DESCRIPTION, commits)
        assert verdict.status == FIXED
        assert verdict.relevant_ids == [target]
        assert verdict.confidence == pytest.approx(80)

    def test_abbreviated_shas_resolved_and_unknown_dropped(self):
        commits = _commits(3)
        answer = Parsed({"status": "fixed", "confidence": 90, "relevantCommitShas": [commits[1].sha[:10], "deadbeefcafe", "abc"]})
        verdict = ShardedAnalyzer(_ScriptedLLM(lambda s, u: answer)).analyze_commits(DESCRIPTION, commits)
        assert verdict.relevant_ids == [commits[1].sha]

    def test_unparseable_shard_folds_as_unknown(self):
        commits = _commits(200)

        def _answer(system_prompt, user_prompt):
            if commits[0].sha in user_prompt:
                return Unparseable(raw="oops", reason="invalid JSON")
            return Parsed({"status": "not_fixed", "confidence": 80})

        verdict = ShardedAnalyzer(_ScriptedLLM(_answer)).analyze_commits(DESCRIPTION, commits)
        assert verdict.status == UNKNOWN
        assert verdict.confidence == pytest.approx(40)

    def test_failing_shard_does_not_fail_phase(self):
        def _answer(system_prompt, user_prompt):
            raise RuntimeError("boom")

        verdict = ShardedAnalyzer(_ScriptedLLM(_answer)).analyze_commits(DESCRIPTION, _commits(5))
        assert verdict.status == UNKNOWN
        assert "boom" in verdict.reasoning

    def test_custom_batch_size(self):
        llm = _ScriptedLLM(lambda s, u: Parsed({"status": "not_fixed", "confidence": 80}))
        ShardedAnalyzer(llm, ShardSettings(commit_batch_size=10)).analyze_commits(DESCRIPTION, _commits(25))
        assert len(llm.calls) == 3


class TestAnalyzePullRequests:
    def _prs(self, n):
        return [PullRequest(number=i, title=f"PR {i}", url=f"https://github.com/o/r/pull/{i}", body="body") for i in range(1, n + 1)]

    def test_batches_of_five(self):
        llm = _ScriptedLLM(lambda s, u: Parsed({"status": "not_fixed", "confidence": 60}))
        ShardedAnalyzer(llm).analyze_pull_requests(DESCRIPTION, self._prs(12))

        assert sorted(_batch_size(u) for _, u in llm.calls) == [2, 5, 5]
        assert all(s is PULL_REQUESTS_SYSTEM_PROMPT for s, _ in llm.calls)

    def test_relevant_numbers_collected(self):
        def _answer(system_prompt, user_prompt):
            if "### #7:" in user_prompt:
                return Parsed({"status": "fixed", "confidence": 95, "relevantPrNumbers": [7]})
            return Parsed({"status": "not_fixed", "confidence": 75, "relevantPrNumbers": []})

        verdict = ShardedAnalyzer(_ScriptedLLM(_answer)).analyze_pull_requests(DESCRIPTION, self._prs(10))
        assert verdict.status == FIXED
        assert verdict.relevant_ids == [7]

    def test_long_bodies_truncated(self):
        pr = PullRequest(number=1, title="t", url="u", body="x" * 50)
        llm = _ScriptedLLM(lambda s, u: Parsed({"status": "unknown"}))
        ShardedAnalyzer(llm, ShardSettings(max_body_chars=10)).analyze_pull_requests(DESCRIPTION, [pr])
        assert "x" * 11 not in llm.calls[0][1]
        assert "[body truncated]" in llm.calls[0][1]

    def test_no_prs_is_not_fixed_without_model_call(self):
        llm = _ScriptedLLM(lambda s, u: pytest.fail("model must not be called"))
        verdict = ShardedAnalyzer(llm).analyze_pull_requests(DESCRIPTION, [])
        assert verdict.status == NOT_FIXED
        assert llm.calls == []
