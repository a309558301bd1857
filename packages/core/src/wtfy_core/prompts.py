"""Prompt text for every model call the pipeline makes.

Each system prompt pins the exact JSON shape the caller parses. Output
format lives in the system prompt because it is the same for every batch;
the user prompt carries only the data being judged.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from wtfy_core.models import Commit, PullRequest

KEYWORDS_SYSTEM_PROMPT = """You help search a software SDK's git history for fixes to a reported issue.
Read the issue description and pick between 1 and 5 short search terms that are likely
to appear in the commit message of a fix: API names, integration names, error names,
component names. Prefer single words or short identifiers over sentences.

Respond with **only** a JSON object:
{"keywords": ["<term>", ...]}"""

COMMITS_SYSTEM_PROMPT = """You are triaging a bug report against the commit history of the SDK it was reported on.
Decide whether any of the listed commits fixes the reported issue.

Rules:
- "fixed": at least one commit clearly addresses the described problem.
- "not_fixed": none of the commits is related to the problem.
- "unknown": some commits may be related but it is not clear they fix it.
- List every commit that is plausibly related, even if you are unsure it is a fix.
- Use the SHAs exactly as given.

Respond with **only** a JSON object:
{"status": "fixed|not_fixed|unknown", "confidence": <integer 0-100>,
 "reasoning": "<one or two sentences>", "relevantCommitShas": ["<sha>", ...]}"""

PULL_REQUESTS_SYSTEM_PROMPT = """You are triaging a bug report against merged pull requests of the SDK it was reported on.
Decide whether any of the listed pull requests fixes the reported issue.

Rules:
- "fixed": a pull request clearly addresses the described problem.
- "not_fixed": none of the pull requests is related to the problem.
- "unknown": some pull requests may be related but it is not clear they fix it.
- Refer to pull requests as #<number> in your reasoning.

Respond with **only** a JSON object:
{"status": "fixed|not_fixed|unknown", "confidence": <integer 0-100>,
 "reasoning": "<one or two sentences>", "relevantPrNumbers": [<number>, ...]}"""

SUMMARY_SYSTEM_PROMPT = """You write the final answer for a user asking whether their SDK bug has been fixed.
You are given the raw notes of several automated reviewers. They repeat each other.
Merge them into one short, non-repetitive paragraph (at most 4 sentences).
Keep pull request references in the form #<number>. Do not invent facts that are not in the notes.

Respond with **only** a JSON object:
{"summary": "<paragraph>"}"""


def build_keywords_prompt(description: str) -> str:
    return f"""## Issue Description
{description}"""


def build_commits_prompt(description: str, commits: list[Commit]) -> str:
    lines = "\n".join(f"- {c.sha}: {c.title}" for c in commits)
    return f"""## Issue Description
{description}

## Commits ({len(commits)})
{lines}"""


def build_pull_requests_prompt(description: str, prs: list[PullRequest], max_body_chars: int) -> str:
    sections = []
    for pr in prs:
        body = (pr.body or "").strip()
        if len(body) > max_body_chars:
            body = body[:max_body_chars] + "\n... [body truncated]"
        sections.append(f"### #{pr.number}: {pr.title}\n{body or '(no description)'}")
    joined = "\n\n".join(sections)
    return f"""## Issue Description
{description}

## Pull Requests ({len(prs)})
{joined}"""


def build_summary_prompt(description: str, notes: str) -> str:
    return f"""## Issue Description
{description}

## Reviewer Notes
{notes}"""
