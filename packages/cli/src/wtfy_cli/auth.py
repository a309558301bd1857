"""GitHub token resolution for the CLI.

Sources, first hit wins:
  1. GITHUB_TOKEN, then GH_TOKEN (the variable the gh CLI itself reads)
  2. `gh auth token`, the token stored by `gh auth login`

A missing token is not an error here: analyze reports it through
require_credentials, while health and search fall back to anonymous access.
"""

from __future__ import annotations

import logging
import os
import subprocess

logger = logging.getLogger(__name__)

_ENV_VARS = ("GITHUB_TOKEN", "GH_TOKEN")
_GH_TIMEOUT_SECONDS = 5


def _token_from_gh_cli() -> str | None:
    try:
        proc = subprocess.run(
            ["gh", "auth", "token"],
            capture_output=True,
            text=True,
            timeout=_GH_TIMEOUT_SECONDS,
        )
    except (FileNotFoundError, subprocess.TimeoutExpired) as e:
        logger.debug("gh CLI unavailable (%s); no GitHub token resolved.", type(e).__name__)
        return None
    if proc.returncode != 0:
        logger.debug("gh auth token exited with %d", proc.returncode)
        return None
    return proc.stdout.strip() or None


def resolve_github_token() -> str | None:
    """Return a GitHub token, or None when no source has one. Never raises."""
    for name in _ENV_VARS:
        token = os.environ.get(name, "").strip()
        if token:
            logger.debug("Using GitHub token from %s.", name)
            return token
    token = _token_from_gh_cli()
    if token:
        logger.debug("Resolved GitHub token via gh CLI session.")
    return token
