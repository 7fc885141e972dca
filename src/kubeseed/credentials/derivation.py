# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/kubeseed/credentials/derivation.py

"""
Deterministic naming for per-service databases, users and secrets.

    derive("game-stats-api")
      -> database_name  = "game_stats"
         database_user  = "game_stats_user"
         secret_name    = "game-stats-api-secrets"
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional

ROLE_SUFFIXES = ("-api", "-ui", "-service", "-backend")

_SERVICE_NAME = re.compile(r"^[a-z0-9]([a-z0-9-]*[a-z0-9])?$")


@dataclass(frozen=True)
class ServiceIdentity:
    service_name: str
    database_name: str
    database_user: str
    secret_name: str


def validate_service_name(service_name: str) -> str:
    if not service_name or len(service_name) > 63 or not _SERVICE_NAME.match(service_name):
        raise ValueError(
            f"invalid service name {service_name!r}: "
            "expected lowercase letters, digits and '-', at most 63 characters"
        )
    return service_name


def database_name_for(service_name: str) -> str:
    base = service_name
    for suffix in ROLE_SUFFIXES:
        # only one suffix is stripped, and never the whole name
        if base.endswith(suffix) and len(base) > len(suffix):
            base = base[: -len(suffix)]
            break
    return base.replace("-", "_")


def derive(
    service_name: str,
    *,
    database_name: Optional[str] = None,
    database_user: Optional[str] = None,
    secret_name: Optional[str] = None,
) -> ServiceIdentity:
    validate_service_name(service_name)
    db = database_name or database_name_for(service_name)
    return ServiceIdentity(
        service_name=service_name,
        database_name=db,
        database_user=database_user or f"{db}_user",
        secret_name=secret_name or f"{service_name}-secrets",
    )
