"""End-to-end analysis of one "was my issue fixed?" request.

Workflow (one progress step each):
  1. extract search keywords from the description
  2. list the SDK repository's tags and date the reported version
  3. collect commits since that date, narrowed by the keywords
  4. judge the commits in parallel shards
  5. fetch the pull requests the relevant commits reference and judge them
  6. combine both verdicts into the final answer

Whole results are cached per (sdk, version, description), so a repeated
question is answered without touching GitHub or the model.
"""

from __future__ import annotations

import dataclasses
import logging
from typing import TYPE_CHECKING, Any, Callable

from wtfy_core.analyzer import ShardedAnalyzer
from wtfy_core.cache import CacheNamespace, CacheService
from wtfy_core.combiner import SUMMARY_FALLBACK, ResultCombiner
from wtfy_core.config import Settings, load_settings, require_credentials
from wtfy_core.errors import AnalysisFailedError, InvalidRequestError
from wtfy_core.gh.repository import GitHubService, extract_referenced_pr_numbers
from wtfy_core.keywords import KeywordExtractor
from wtfy_core.models import NOT_FIXED, UNKNOWN_RELEASE, AnalysisOutcome, AnalysisRequest, CombinedResult
from wtfy_core.progress import AnalysisSteps, ProgressTracker
from wtfy_core.providers.factory import get_llm_client
from wtfy_core.rate_limiter import RateLimiter
from wtfy_core.sdks import get_repo_for_sdk
from wtfy_store.models import RequestRecord, ResultRecord

if TYPE_CHECKING:
    from wtfy_core.models import PullRequest, Tag
    from wtfy_core.providers.base import BaseLLMClient
    from wtfy_store.base import BaseStore
    from wtfy_store.models import ProgressRecord

logger = logging.getLogger(__name__)


def best_effort(action: str, fn: Callable[..., Any], *args, **kwargs) -> bool:
    """Run a side effect whose failure must not abort the analysis."""
    try:
        fn(*args, **kwargs)
    except Exception as e:
        logger.warning("Failed to %s: %s", action, e)
        return False
    return True


class AnalysisPipeline:
    def __init__(
        self,
        github: GitHubService,
        llm: BaseLLMClient,
        store: BaseStore,
        cache: CacheService,
        rate_limiter: RateLimiter,
        settings: Settings | None = None,
        steps: AnalysisSteps | None = None,
    ):
        self._settings = settings or Settings()
        self._github = github
        self._store = store
        self._cache = cache
        self._rate_limiter = rate_limiter
        self._steps = steps or AnalysisSteps()
        self._keywords = KeywordExtractor(llm)
        self._analyzer = ShardedAnalyzer(llm, self._settings.shards)
        self._combiner = ResultCombiner(llm, self._settings.weights)

    def submit(self, request_id: str, sdk: str, version: str, description: str, client_id: str) -> AnalysisOutcome:
        """Admit, run and report one request. Failures are reported in the outcome, not raised."""
        admission = self._rate_limiter.admit(client_id)
        if not admission.allowed:
            logger.info("Rate limit exceeded for %s", client_id)
            return AnalysisOutcome(kind="rate_limited", admission=admission, error="Rate limit exceeded")

        try:
            result = self.run_analysis(request_id, sdk, version, description)
        except InvalidRequestError as e:
            return AnalysisOutcome(kind="invalid", admission=admission, error=str(e))
        except AnalysisFailedError as e:
            return AnalysisOutcome(kind="failed", admission=admission, error=str(e))
        return AnalysisOutcome(kind="completed", admission=admission, result=result)

    def run_analysis(self, request_id: str, sdk: str, version: str, description: str) -> CombinedResult:
        request = AnalysisRequest(request_id=request_id, sdk=sdk, version=version, description=description)
        request.validate()

        repo = get_repo_for_sdk(sdk)
        if repo is None:
            raise InvalidRequestError(f"Unsupported SDK: {sdk}")

        cached = self._cached_result(request)
        if cached is not None:
            logger.info("Returning cached analysis for %s %s", sdk, version)
            return cached

        best_effort(
            "record request",
            self._store.save_request,
            RequestRecord(request_id=request_id, sdk=sdk, version=version, description=description),
        )
        tracker = ProgressTracker(request_id, self._store, self._steps)
        tracker.initialize()

        try:
            result = self._perform(request, repo, tracker)
        except Exception as e:
            logger.exception("Analysis %s failed", request_id)
            tracker.fail(str(e))
            raise AnalysisFailedError(request_id, str(e)) from e

        tracker.complete()
        best_effort(
            "record result",
            self._store.save_result,
            ResultRecord(
                request_id=request_id,
                sdk=sdk,
                version=version,
                status=result.status,
                confidence=result.confidence,
                summary=result.summary,
                prs=[pr.to_dict() for pr in result.prs],
            ),
        )
        self._cache.set(CacheNamespace.ANALYSIS, request.cache_params, result.to_dict())
        result.request_id = request_id
        return result

    def get_progress(self, request_id: str) -> ProgressRecord | None:
        return ProgressTracker.get_progress(self._store, request_id)

    def start(self) -> None:
        """Start background upkeep (the rate limiter sweep). Call close() when done."""
        self._rate_limiter.start_sweeper()

    def close(self) -> None:
        self._rate_limiter.stop_sweeper()

    def _cached_result(self, request: AnalysisRequest) -> CombinedResult | None:
        cached = self._cache.get(CacheNamespace.ANALYSIS, request.cache_params)
        if cached is None:
            return None
        try:
            # Cached answers are not tied to this request, so they carry no request id.
            return CombinedResult.from_dict(cached, from_cache=True)
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            logger.warning("Ignoring unreadable cached analysis for %s %s: %s", request.sdk, request.version, e)
            return None

    def _perform(self, request: AnalysisRequest, repo: str, tracker: ProgressTracker) -> CombinedResult:
        steps = self._steps

        # 1. Keywords
        tracker.begin(steps.extracting_keywords)
        keywords = self._keywords.extract(request.description)
        tracker.update_step_with_data(
            steps.extracting_keywords.step,
            steps.extracting_keywords.title,
            "AI extracted search keywords from your issue description",
            keywords=keywords,
        )

        # 2. Releases
        tracker.begin(steps.fetching_releases)
        tags = self._github.list_tags(repo)
        tracker.update_step_with_data(
            steps.fetching_releases.step,
            steps.fetching_releases.title,
            "Fetched all available releases and version information",
            count=len(tags),
        )

        # 3. Commits since the reported version
        tracker.begin(steps.searching_commits)
        since = self._github.resolve_version_date(repo, request.version, tags)
        commits = self._github.commits_since(repo, since, keywords)
        tracker.update_step_with_data(
            steps.searching_commits.step,
            steps.searching_commits.title,
            "Searched repository history for relevant changes",
            count=len(commits),
        )

        # 4. Commit analysis
        tracker.begin(steps.analyzing_commits)
        commit_verdict = self._analyzer.analyze_commits(request.description, commits)
        tracker.update_step_with_data(
            steps.analyzing_commits.step,
            steps.analyzing_commits.title,
            "AI evaluated commit messages for potential fixes",
            count=len(commit_verdict.relevant_ids),
            total=len(commits),
        )

        if commit_verdict.status == NOT_FIXED and not commit_verdict.relevant_ids:
            logger.info("No relevant commits for %s; skipping pull request analysis", request.request_id)
            return CombinedResult(
                status=commit_verdict.status,
                confidence=commit_verdict.confidence,
                summary=commit_verdict.reasoning or SUMMARY_FALLBACK,
            )

        # 5. Pull requests referenced by the relevant commits
        tracker.begin(steps.fetching_prs)
        wanted = set(commit_verdict.relevant_ids)
        relevant_commits = [c for c in commits if c.sha in wanted]
        prs = self._fetch_pull_requests(repo, extract_referenced_pr_numbers(relevant_commits))

        pr_verdict = self._analyzer.analyze_pull_requests(request.description, prs) if prs else None
        tracker.update_step_with_data(
            steps.fetching_prs.step,
            steps.fetching_prs.title,
            "Fetched and analyzed pull requests for relevant fixes",
            count=len(pr_verdict.relevant_ids) if pr_verdict else 0,
            total=len(prs),
        )

        # 6. Combine, then name the release each relevant PR shipped in
        tracker.begin(steps.final_analysis)
        result = self._combiner.combine(request.description, commit_verdict, pr_verdict, prs)
        result.prs = [self._attribute_release(repo, pr, tags) for pr in result.prs]
        return result

    def _attribute_release(self, repo: str, pr: PullRequest, tags: list[Tag]) -> PullRequest:
        release = self._github.find_release(repo, pr.merge_commit_sha, tags) if pr.merge_commit_sha else None
        return dataclasses.replace(pr, release_version=release or UNKNOWN_RELEASE)

    def _fetch_pull_requests(self, repo: str, numbers: list[int]) -> list[PullRequest]:
        logger.info("Fetching %d referenced pull request(s) from %s", len(numbers), repo)
        prs = []
        for number in numbers:
            pr = self._github.get_pull_request(repo, number)
            if pr is not None:
                prs.append(pr)
        return prs


def build_pipeline(config: dict, store: BaseStore) -> AnalysisPipeline:
    """Wire every component from a loaded config and start its background upkeep.

    Raises ConfigurationError on missing credentials. Callers own the returned
    pipeline and should close() it.
    """
    require_credentials(config)
    settings = load_settings(config)
    cache = CacheService(store, settings.cache_ttls)
    pipeline = AnalysisPipeline(
        github=GitHubService(config["github_token"], settings.github, cache),
        llm=get_llm_client(config),
        store=store,
        cache=cache,
        rate_limiter=RateLimiter(settings.rate_limit),
        settings=settings,
    )
    pipeline.start()
    return pipeline
