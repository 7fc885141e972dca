# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/kubeseed/secrets/tokens.py

from __future__ import annotations

import logging
import os
import re
from typing import Mapping, Optional

from kubeseed.errors import MissingCredential
from kubeseed.logging.masking import register_secret

log = logging.getLogger("kubeseed")

# first non-empty wins
TOKEN_VARIABLES = ("GH_PAT", "GIT_TOKEN", "GIT_SECRET", "GITHUB_TOKEN")

CI_MARKERS = ("CI", "GITHUB_ACTIONS", "GITLAB_CI")

_REPO = re.compile(r"^[A-Za-z0-9_.-]+/[A-Za-z0-9_.-]+$")


def resolve_token(env: Optional[Mapping[str, str]] = None) -> tuple[str, str]:
    """Return ``(variable, token)`` for the first configured token variable."""
    env = os.environ if env is None else env
    for var in TOKEN_VARIABLES:
        token = (env.get(var) or "").strip()
        if token:
            register_secret(token)
            log.debug("Using GitHub token from %s", var)
            return var, token
    raise MissingCredential(
        "No GitHub token found. Set one of: " + ", ".join(TOKEN_VARIABLES)
    )


def is_ci(env: Optional[Mapping[str, str]] = None) -> bool:
    env = os.environ if env is None else env
    for marker in CI_MARKERS:
        value = (env.get(marker) or "").strip().lower()
        if value and value not in ("0", "false", "no"):
            return True
    return False


def validate_repo(repo: str) -> str:
    if not _REPO.match(repo or ""):
        raise ValueError(f"invalid repository {repo!r}, expected owner/name")
    return repo


def detect_target_repo(
    explicit: Optional[str] = None,
    env: Optional[Mapping[str, str]] = None,
) -> Optional[str]:
    """Explicit argument, then GITHUB_REPOSITORY; None when neither is set."""
    env = os.environ if env is None else env
    repo = explicit or (env.get("GITHUB_REPOSITORY") or "").strip()
    return validate_repo(repo) if repo else None
