# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/kubeseed/bootstrap/infrastructure/components/postgresql.py

from __future__ import annotations

import logging
from typing import Dict, Optional

from kubeseed.bootstrap.engine.component import ComponentContext, ManagedResource, ResourceKind
from kubeseed.config.models import DatabaseSettings
from kubeseed.credentials.store import CredentialResolver

log = logging.getLogger("kubeseed")

SECRET_NAME = "postgresql"
ADMIN_USER = "admin_user"
SECRET_KEYS = ("password", "postgres-password", "admin-user-password")


def _secret_value(settings_value) -> Optional[str]:
    return settings_value.get_secret_value() if settings_value else None


class PostgresServerResource(ManagedResource):
    """
    Shared PostgreSQL (bitnami/postgresql) backed by the ``postgresql``
    secret. The secret is reused across runs so service credentials stay
    valid after an upgrade.

    The admin role is set up by an initdb script, which only runs on an empty
    data volume. A server brought up on an existing volume keeps the role
    password stored there; if the ``postgresql`` secret was lost, set
    POSTGRES_PASSWORD to that password or recreate the server with cleanup.
    """

    kind = ResourceKind.DATABASE_SERVER
    stateful = True

    chart = "bitnami/postgresql"

    def __init__(self, settings: DatabaseSettings, *, rotate: bool = False):
        super().__init__(settings.postgres_release, settings.namespace)
        self.settings = settings
        self.rotate = rotate
        self._resolver: Optional[CredentialResolver] = None

    # ------------------------------------------------------------
    # Credentials
    # ------------------------------------------------------------
    def credentials(self, ctx: ComponentContext) -> CredentialResolver:
        if self._resolver is None:
            self._resolver = CredentialResolver(
                loader=lambda: ctx.kubectl.secret_data(SECRET_NAME, self.namespace),
                rotate=self.rotate,
            )
        return self._resolver

    def password(self, ctx: ComponentContext) -> str:
        return self.credentials(ctx).value(
            "postgres-password",
            explicit=_secret_value(self.settings.postgres_password),
        )

    def _ensure_secret(self, ctx: ComponentContext) -> None:
        pw = self.password(ctx)
        ctx.kubectl.apply_objects([{
            "apiVersion": "v1",
            "kind": "Secret",
            "metadata": {"name": SECRET_NAME, "namespace": self.namespace},
            "type": "Opaque",
            "stringData": {k: pw for k in SECRET_KEYS},
        }])

    # ------------------------------------------------------------
    # Helm values
    # ------------------------------------------------------------
    def values(self, password: str) -> Dict:
        s = self.settings
        escaped = password.replace("'", "''")
        return {
            "auth": {
                "existingSecret": SECRET_NAME,
                "secretKeys": {
                    "adminPasswordKey": "postgres-password",
                    "userPasswordKey": "password",
                },
            },
            "primary": {
                "persistence": {"size": s.postgres_storage_size},
                "resources": s.postgres_resources.model_dump(),
                "initdb": {
                    "scripts": {
                        "00-admin-user.sql": (
                            f"CREATE ROLE {ADMIN_USER} WITH LOGIN CREATEDB CREATEROLE "
                            f"PASSWORD '{escaped}';\n"
                        ),
                    },
                },
            },
        }

    # ------------------------------------------------------------
    # ManagedResource
    # ------------------------------------------------------------
    def exists(self, ctx: ComponentContext) -> bool:
        return ctx.kubectl.resource_exists("statefulset", self.name, self.namespace)

    def ready(self, ctx: ComponentContext) -> bool:
        return ctx.kubectl.statefulset_ready(self.name, self.namespace)

    def create(self, ctx: ComponentContext) -> None:
        self._ensure_secret(ctx)
        ctx.helm.add_repo(self.settings.repo_name, self.settings.repo_url)
        ctx.helm.install_or_upgrade(
            self.name,
            self.chart,
            self.namespace,
            self.values(self.password(ctx)),
        )

    def delete(self, ctx: ComponentContext) -> None:
        log.warning("[postgresql] removing release, StatefulSet and volumes in %s", self.namespace)
        ctx.helm.uninstall(self.name, self.namespace)
        ctx.kubectl.delete("statefulset", self.name, namespace=self.namespace)
        ctx.kubectl.delete(
            "pvc",
            namespace=self.namespace,
            selector=f"app.kubernetes.io/instance={self.name}",
        )
