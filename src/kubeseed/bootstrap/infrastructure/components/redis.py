# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/kubeseed/bootstrap/infrastructure/components/redis.py

from __future__ import annotations

import logging
from typing import Dict, Optional

from kubeseed.bootstrap.engine.component import ComponentContext, ManagedResource, ResourceKind
from kubeseed.bootstrap.infrastructure.components.postgresql import PostgresServerResource
from kubeseed.config.models import DatabaseSettings
from kubeseed.credentials.store import CredentialResolver

log = logging.getLogger("kubeseed")

SECRET_NAME = "redis"
PASSWORD_KEY = "redis-password"


class RedisServerResource(ManagedResource):
    """Standalone Redis (bitnami/redis, no replicas)."""

    kind = ResourceKind.CACHE_SERVER
    stateful = True

    chart = "bitnami/redis"

    def __init__(
        self,
        settings: DatabaseSettings,
        *,
        postgres: PostgresServerResource,
        rotate: bool = False,
    ):
        # the chart names the primary StatefulSet <release>-master
        super().__init__(f"{settings.redis_release}-master", settings.namespace)
        self.settings = settings
        self.postgres = postgres
        self.rotate = rotate
        self._resolver: Optional[CredentialResolver] = None

    @property
    def release(self) -> str:
        return self.settings.redis_release

    def password(self, ctx: ComponentContext) -> str:
        if self._resolver is None:
            self._resolver = CredentialResolver(
                loader=lambda: ctx.kubectl.secret_data(SECRET_NAME, self.namespace),
                rotate=self.rotate,
            )
        explicit = self.settings.redis_password
        return self._resolver.value(
            PASSWORD_KEY,
            explicit=explicit.get_secret_value() if explicit else None,
            generator=lambda: self.postgres.password(ctx),
        )

    def values(self) -> Dict:
        s = self.settings
        return {
            "auth": {
                "existingSecret": SECRET_NAME,
                "existingSecretPasswordKey": PASSWORD_KEY,
            },
            "master": {
                "persistence": {"size": s.redis_storage_size},
                "resources": s.redis_resources.model_dump(),
            },
            "replica": {"replicaCount": 0},
        }

    def exists(self, ctx: ComponentContext) -> bool:
        return ctx.kubectl.resource_exists("statefulset", self.name, self.namespace)

    def ready(self, ctx: ComponentContext) -> bool:
        return ctx.kubectl.statefulset_ready(self.name, self.namespace)

    def create(self, ctx: ComponentContext) -> None:
        pw = self.password(ctx)
        ctx.kubectl.apply_objects([{
            "apiVersion": "v1",
            "kind": "Secret",
            "metadata": {"name": SECRET_NAME, "namespace": self.namespace},
            "type": "Opaque",
            "stringData": {PASSWORD_KEY: pw},
        }])
        ctx.helm.add_repo(self.settings.repo_name, self.settings.repo_url)
        ctx.helm.install_or_upgrade(self.release, self.chart, self.namespace, self.values())

    def delete(self, ctx: ComponentContext) -> None:
        log.warning("[redis] removing release, StatefulSet and volumes in %s", self.namespace)
        ctx.helm.uninstall(self.release, self.namespace)
        ctx.kubectl.delete("statefulset", self.name, namespace=self.namespace)
        ctx.kubectl.delete(
            "pvc",
            namespace=self.namespace,
            selector=f"app.kubernetes.io/instance={self.release}",
        )
