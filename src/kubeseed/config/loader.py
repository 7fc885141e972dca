# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/kubeseed/config/loader.py

import logging
import os
from pathlib import Path
from typing import Mapping, Optional

import yaml
from pydantic import SecretStr

from .models import Settings

log = logging.getLogger("kubeseed")

_TRUE = {"1", "true", "yes", "on"}

# env var -> (section, field, kind)
_ENV_OVERRIDES = {
    "NAMESPACE": ("provision", "namespace", "str"),
    "KUBE_CONTEXT": ("provision", "kube_context", "str"),
    "ENABLE_CLEANUP": ("provision", "enable_cleanup", "bool"),
    "ALLOW_DESTRUCTIVE": ("provision", "allow_destructive", "bool"),
    "ROTATE_CREDENTIALS": ("provision", "rotate_credentials", "bool"),
    "DB_NAMESPACE": ("database", "namespace", "str"),
    "POSTGRES_PASSWORD": ("database", "postgres_password", "secret"),
    "REDIS_PASSWORD": ("database", "redis_password", "secret"),
    "POSTGRES_STORAGE_SIZE": ("database", "postgres_storage_size", "str"),
    "REDIS_STORAGE_SIZE": ("database", "redis_storage_size", "str"),
    "ACME_EMAIL": ("cert_manager", "acme_email", "str"),
    "CERT_MANAGER_VERSION": ("cert_manager", "version", "str"),
    "ARGOCD_DOMAIN": ("argocd", "domain", "str"),
    "FORCE_UPGRADE": ("argocd", "force_upgrade", "bool"),
    "SOURCE_SECRETS_REPO": ("propagation", "source_repo", "str"),
    "GITOPS_REPO": ("gitops", "repo", "str"),
}


def _load_yaml(path: Path) -> dict:
    """Load a YAML file, expanding ${ENV_VAR} references."""
    raw = path.read_text()
    expanded = os.path.expandvars(raw)
    return yaml.safe_load(expanded) or {}


def load_config(path: str | Path) -> Settings:
    """
    Load and validate a kubeseed YAML config.

    ``${ENV_VAR}`` placeholders inside the file are resolved at load time
    with ``os.path.expandvars``.
    """
    path = Path(path)
    data = _load_yaml(path)
    log.debug("Loaded config from %s", path)
    return Settings.model_validate(data)


def _coerce(kind: str, raw: str):
    if kind == "bool":
        return raw.strip().lower() in _TRUE
    if kind == "secret":
        return SecretStr(raw)
    return raw


def settings_from_env(
    settings: Optional[Settings] = None,
    env: Optional[Mapping[str, str]] = None,
) -> Settings:
    """
    Apply environment overrides on top of ``settings`` (defaults if None).
    Empty variables are ignored. Called once at startup; everything
    downstream receives the resulting object.
    """
    settings = settings or Settings()
    env = os.environ if env is None else env

    updates: dict[str, dict] = {}
    for var, (section, field, kind) in _ENV_OVERRIDES.items():
        raw = env.get(var)
        if raw in (None, ""):
            continue
        updates.setdefault(section, {})[field] = _coerce(kind, raw)
        log.debug("config override from %s -> %s.%s", var, section, field)

    if not updates:
        return settings

    patched = {
        section: getattr(settings, section).model_copy(update=fields)
        for section, fields in updates.items()
    }
    return settings.model_copy(update=patched)
