# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/kubeseed/credentials/store.py

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Optional
from urllib.parse import quote

from kubeseed.logging.masking import register_secret
from kubeseed.credentials.generator import generate_password

log = logging.getLogger("kubeseed")


class CredentialScope(str, Enum):
    CLUSTER_SECRET = "cluster-secret"
    REPOSITORY_SECRET = "repository-secret"


@dataclass(frozen=True)
class Credential:
    key: str
    value: str = field(repr=False)
    scope: CredentialScope = CredentialScope.CLUSTER_SECRET
    generated: bool = False


class CredentialResolver:
    """
    Resolves one credential per key, once per invocation.

    Order: explicit value > existing value (cluster secret) > generated.
    With ``rotate=True`` the existing value is ignored and a new one is
    generated, unless an explicit value was supplied.
    """

    def __init__(
        self,
        *,
        existing: Optional[dict[str, str]] = None,
        loader: Optional[Callable[[], Optional[dict[str, str]]]] = None,
        rotate: bool = False,
        scope: CredentialScope = CredentialScope.CLUSTER_SECRET,
    ):
        self._existing = existing
        self._loader = loader
        self.rotate = rotate
        self.scope = scope
        self._cache: dict[str, Credential] = {}

    @property
    def existing(self) -> dict[str, str]:
        if self._existing is None:
            self._existing = (self._loader() if self._loader else None) or {}
        return self._existing

    def resolve(
        self,
        key: str,
        *,
        explicit: Optional[str] = None,
        generator: Callable[[], str] = generate_password,
    ) -> Credential:
        if key in self._cache:
            return self._cache[key]

        if explicit:
            cred = Credential(key, explicit, self.scope)
        elif self.existing.get(key) and not self.rotate:
            cred = Credential(key, self.existing[key], self.scope)
        else:
            cred = Credential(key, generator(), self.scope, generated=True)
            log.debug("[credentials] generated %s", key)

        register_secret(cred.value)
        self._cache[key] = cred
        return cred

    def value(self, key: str, **kwargs) -> str:
        return self.resolve(key, **kwargs).value


def postgres_url(user: str, password: str, host: str, database: str, port: int = 5432) -> str:
    return f"postgresql://{user}:{quote(password, safe='')}@{host}:{port}/{database}?sslmode=disable"


def redis_url(password: str, host: str, port: int = 6379, db: int = 0) -> str:
    return f"redis://:{quote(password, safe='')}@{host}:{port}/{db}"
