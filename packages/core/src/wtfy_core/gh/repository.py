"""GitHub access for the analysis pipeline.

Every call goes through _with_retry: a transient failure (rate limit, 5xx
response, or a transport error from requests) is retried once after a fixed
pause. If that fails too, the operation degrades (empty or partial result)
instead of failing the whole analysis. Tag listing is the
exception because nothing can be analysed without a version boundary; it
raises TagListingError.

Pagination is explicit (PaginatedList.get_page) so the hard caps on tags and
commits are enforced per page and a short page ends the walk early.
"""

from __future__ import annotations

import logging
import re
import threading
import time
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from itertools import islice
from typing import TYPE_CHECKING, Callable, Iterable, TypeVar

import requests
from github import Auth, Github, GithubException, RateLimitExceededException, UnknownObjectException

from wtfy_core.cache import CacheNamespace
from wtfy_core.config import GitHubSettings
from wtfy_core.errors import TagListingError
from wtfy_core.models import Commit, PullRequest, Tag

if TYPE_CHECKING:
    from github.Repository import Repository

    from wtfy_core.cache import CacheService

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Anything PyGithub raises when GitHub is unreachable or answers with an error.
_UPSTREAM_ERRORS = (GithubException, requests.exceptions.RequestException)

# Release tags: an optional prefix ("v", "sentry-", "release/"), then dotted numbers and nothing else.
# Pre-release tags (1.2.0-beta.1, 1.2.0rc1) do not match.
_RELEASE_TAG_RE = re.compile(r"^(?:[A-Za-z][A-Za-z_./-]*?[-/_])?v?(\d+(?:\.\d+)*)$")

# "(#1234)" as written by squash merges, "(GH-1234)" used by some SDK changelogs.
_PR_REFERENCE_RE = re.compile(r"\((?:#|GH-)(\d+)\)", re.IGNORECASE)


@dataclass(frozen=True)
class RateLimitStatus:
    remaining: int
    limit: int
    reset_at: datetime


def version_candidates(version: str) -> list[str]:
    """Tag names a version is commonly published under: as given, with and without a leading v."""
    version = version.strip()
    bare = version[1:] if version[:1] in ("v", "V") else version
    candidates = [version, f"v{bare}", bare]
    return list(dict.fromkeys(candidates))


def extract_referenced_pr_numbers(commits: Iterable[Commit]) -> list[int]:
    """Collect PR numbers referenced as (#123) or (GH-123), de-duplicated in first-seen order."""
    numbers: dict[int, None] = {}
    for commit in commits:
        for match in _PR_REFERENCE_RE.finditer(commit.message):
            numbers[int(match.group(1))] = None
    return list(numbers)


def is_transient(error: Exception) -> bool:
    """True for failures worth one more attempt: rate limits, 5xx responses and transport errors."""
    if isinstance(error, RateLimitExceededException):
        return True
    if isinstance(error, GithubException):
        return error.status is not None and error.status >= 500
    return isinstance(error, requests.exceptions.RequestException)


def release_sort_key(tag_name: str) -> tuple[int, ...] | None:
    """Numeric version of a release tag for ordering, or None for pre-releases and other tags."""
    match = _RELEASE_TAG_RE.match(tag_name)
    if match is None:
        return None
    return tuple(int(part) for part in match.group(1).split("."))


def _aware(value: datetime | None) -> datetime | None:
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _to_commit(gh_commit) -> Commit:
    author = gh_commit.commit.author
    return Commit(
        sha=gh_commit.sha,
        message=gh_commit.commit.message or "",
        authored_at=_aware(author.date) if author is not None else None,
        url=gh_commit.html_url,
    )


def _to_pull_request(gh_pull) -> PullRequest:
    return PullRequest(
        number=gh_pull.number,
        title=gh_pull.title or "",
        url=gh_pull.html_url,
        body=gh_pull.body,
        merged_at=_aware(gh_pull.merged_at),
        # GitHub also reports a test-merge SHA for open PRs; only a real merge ships in a release.
        merge_commit_sha=gh_pull.merge_commit_sha if gh_pull.merged_at else None,
    )


class GitHubService:
    def __init__(
        self,
        token: str | None,
        settings: GitHubSettings | None = None,
        cache: CacheService | None = None,
        client: Github | None = None,
    ):
        self._settings = settings or GitHubSettings()
        self._cache = cache
        self._authenticated = bool(token)
        if client is not None:
            self._client = client
        elif token:
            # retry=None: PyGithub's own retry sleeps until the rate limit resets; we back off ourselves.
            self._client = Github(auth=Auth.Token(token), per_page=self._settings.per_page, retry=None)
        else:
            self._client = Github(per_page=self._settings.per_page, retry=None)
        self._repos: dict[str, Repository] = {}
        self._repos_lock = threading.Lock()

    # ------------------------------------------------------------------ #
    # Plumbing                                                            #
    # ------------------------------------------------------------------ #

    def _with_retry(self, fn: Callable[..., T], *args, **kwargs) -> T:
        try:
            return fn(*args, **kwargs)
        except _UPSTREAM_ERRORS as e:
            if not is_transient(e):
                raise
            logger.warning("GitHub unavailable (%s); retrying once in %ss", e, self._settings.backoff_seconds)
            time.sleep(self._settings.backoff_seconds)
            return fn(*args, **kwargs)

    def _repo(self, repo: str) -> Repository:
        with self._repos_lock:
            cached = self._repos.get(repo)
        if cached is not None:
            return cached
        gh_repo = self._with_retry(self._client.get_repo, repo)
        with self._repos_lock:
            self._repos[repo] = gh_repo
        return gh_repo

    def _cache_get(self, namespace: str, params: dict):
        return self._cache.get(namespace, params) if self._cache is not None else None

    def _cache_set(self, namespace: str, params: dict, value) -> None:
        if self._cache is not None:
            self._cache.set(namespace, params, value)

    # ------------------------------------------------------------------ #
    # Tags and versions                                                   #
    # ------------------------------------------------------------------ #

    def list_tags(self, repo: str) -> list[Tag]:
        """Return up to max_tags tags, in the order GitHub lists them (newest first)."""
        params = {"repo": repo, "max_tags": self._settings.max_tags}
        cached = self._cache_get(CacheNamespace.GITHUB_TAGS, params)
        if cached is not None:
            return [Tag.from_dict(t) for t in cached]

        tags: list[Tag] = []
        try:
            paginated = self._repo(repo).get_tags()
            page_number = 0
            while len(tags) < self._settings.max_tags:
                page = self._with_retry(paginated.get_page, page_number)
                tags.extend(Tag(name=t.name, commit_sha=t.commit.sha) for t in page)
                if len(page) < self._settings.per_page:
                    break
                page_number += 1
        except _UPSTREAM_ERRORS as e:
            raise TagListingError(f"Could not list tags for {repo}: {e}") from e

        tags = tags[: self._settings.max_tags]
        logger.info("Fetched %d tag(s) for %s", len(tags), repo)
        self._cache_set(CacheNamespace.GITHUB_TAGS, params, [t.to_dict() for t in tags])
        return tags

    def resolve_version_date(self, repo: str, version: str, tags: list[Tag] | None = None) -> datetime:
        """Return the author date of the commit the version's tag points at.

        Falls back to fallback_lookback_days ago when no tag variant resolves,
        so an unknown version widens the search instead of failing it.
        """
        if tags is None:
            tags = self.list_tags(repo)
        by_name = {t.name: t for t in tags}

        for candidate in version_candidates(version):
            tag = by_name.get(candidate)
            # The commits endpoint also accepts a tag name as ref, which covers
            # tags beyond the max_tags cap.
            ref = tag.commit_sha if tag is not None else candidate
            try:
                gh_commit = self._with_retry(self._repo(repo).get_commit, ref)
            except UnknownObjectException:
                continue
            except _UPSTREAM_ERRORS as e:
                logger.warning("Could not resolve tag %s in %s: %s", candidate, repo, e)
                continue
            date = _to_commit(gh_commit).authored_at
            if date is not None:
                logger.info("Version %s of %s resolved to tag %s (%s)", version, repo, candidate, date.isoformat())
                return date

        fallback = datetime.now(timezone.utc) - timedelta(days=self._settings.fallback_lookback_days)
        logger.warning(
            "No tag found for version %s in %s; searching commits since %s instead",
            version,
            repo,
            fallback.date().isoformat(),
        )
        return fallback

    # ------------------------------------------------------------------ #
    # Commits                                                             #
    # ------------------------------------------------------------------ #

    def commits_since(self, repo: str, since: datetime, keywords: list[str] | None = None) -> list[Commit]:
        """Return commits after since, narrowed to messages containing any keyword."""
        commits = self._all_commits_since(repo, since)
        if not keywords:
            return commits
        lowered = [k.lower() for k in keywords]
        matched = [c for c in commits if any(k in c.message.lower() for k in lowered)]
        logger.info("%d of %d commit(s) match keywords %s", len(matched), len(commits), keywords)
        return matched

    def _all_commits_since(self, repo: str, since: datetime) -> list[Commit]:
        params = {"repo": repo, "since": since.isoformat()}
        cached = self._cache_get(CacheNamespace.GITHUB_COMMITS, params)
        if cached is not None:
            return [Commit.from_dict(c) for c in cached]

        max_commits = self._settings.max_commits
        commits: list[Commit] = []
        complete = False
        try:
            paginated = self._repo(repo).get_commits(since=since)
            page_number = 0
            while len(commits) < max_commits:
                page = self._with_retry(paginated.get_page, page_number)
                commits.extend(_to_commit(c) for c in page)
                if len(page) < self._settings.per_page:
                    complete = True
                    break
                page_number += 1
        except _UPSTREAM_ERRORS as e:
            logger.warning("Commit listing for %s stopped after %d commit(s): %s", repo, len(commits), e)
            return commits

        if not complete:
            logger.warning("Reached the %d commit cap for %s; older commits were not analysed", max_commits, repo)
            commits = commits[:max_commits]

        self._cache_set(CacheNamespace.GITHUB_COMMITS, params, [c.to_dict() for c in commits])
        return commits

    def search_commits(self, repo: str, query: str, limit: int = 100) -> list[Commit]:
        """Search commit messages with GitHub's search API.

        If the authenticated search is refused (403/422) the query is retried
        without credentials, which search allows at a lower rate.
        """
        q = f"repo:{repo} {query}"
        try:
            return self._search(self._client, q, limit)
        except _UPSTREAM_ERRORS as e:
            status = getattr(e, "status", None)
            if not (self._authenticated and status in (403, 422)):
                logger.warning("Commit search failed for %r: %s", q, e)
                return []
            logger.info("Authenticated commit search refused (%s); retrying unauthenticated", status)

        try:
            return self._search(Github(per_page=self._settings.per_page, retry=None), q, limit)
        except _UPSTREAM_ERRORS as e:
            logger.warning("Unauthenticated commit search failed for %r: %s", q, e)
            return []

    def _search(self, client: Github, query: str, limit: int) -> list[Commit]:
        return self._with_retry(lambda: [_to_commit(c) for c in islice(client.search_commits(query), limit)])

    # ------------------------------------------------------------------ #
    # Pull requests                                                       #
    # ------------------------------------------------------------------ #

    def get_pull_request(self, repo: str, number: int) -> PullRequest | None:
        params = {"repo": repo, "number": number}
        cached = self._cache_get(CacheNamespace.GITHUB_PRS, params)
        if cached is not None:
            return PullRequest.from_dict(cached)

        try:
            gh_pull = self._with_retry(self._repo(repo).get_pull, number)
        except UnknownObjectException:
            logger.debug("#%d in %s is not a pull request", number, repo)
            return None
        except _UPSTREAM_ERRORS as e:
            logger.warning("Could not fetch PR #%d in %s: %s", number, repo, e)
            return None

        pr = _to_pull_request(gh_pull)
        self._cache_set(CacheNamespace.GITHUB_PRS, params, pr.to_dict())
        return pr

    # ------------------------------------------------------------------ #
    # Releases                                                            #
    # ------------------------------------------------------------------ #

    def find_release(self, repo: str, commit_sha: str, tags: list[Tag]) -> str | None:
        """Return the lowest-versioned release tag whose history contains commit_sha.

        Release tags are ordered by version and bisected with the compare
        endpoint, on the assumption that a release contains everything the
        releases before it did. Returns None when no release contains the
        commit yet, or when GitHub cannot answer.
        """
        params = {"repo": repo, "release_containing": commit_sha}
        cached = self._cache_get(CacheNamespace.GITHUB_TAGS, params)
        if cached is not None:
            return cached

        releases = sorted(
            (t for t in tags if release_sort_key(t.name) is not None),
            key=lambda t: release_sort_key(t.name),
        )
        lo, hi = 0, len(releases)
        found = None
        while lo < hi:
            mid = (lo + hi) // 2
            contains = self._tag_contains(repo, releases[mid].name, commit_sha)
            if contains is None:
                return None
            if contains:
                found = releases[mid].name
                hi = mid
            else:
                lo = mid + 1

        # Only a hit is stable: a commit not released yet will be in a later tag.
        if found is not None:
            logger.info("Commit %s of %s first released in %s", commit_sha[:7], repo, found)
            self._cache_set(CacheNamespace.GITHUB_TAGS, params, found)
        return found

    def _tag_contains(self, repo: str, tag_name: str, commit_sha: str) -> bool | None:
        try:
            comparison = self._with_retry(self._repo(repo).compare, commit_sha, tag_name)
        except _UPSTREAM_ERRORS as e:
            logger.warning("Could not compare %s with %s in %s: %s", commit_sha[:7], tag_name, repo, e)
            return None
        # compare(base, head): "ahead" means the tag has the commit plus more.
        return comparison.status in ("ahead", "identical")

    extract_referenced_pr_numbers = staticmethod(extract_referenced_pr_numbers)

    def rate_limit_status(self) -> RateLimitStatus:
        remaining, limit = self._client.rate_limiting
        reset_at = datetime.fromtimestamp(self._client.rate_limiting_resettime, tz=timezone.utc)
        return RateLimitStatus(remaining=remaining, limit=limit, reset_at=reset_at)
