# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/kubeseed/bootstrap/infrastructure/components/service_secret.py

from __future__ import annotations

from typing import Dict

from kubeseed.bootstrap.engine.component import ComponentContext, ManagedResource, ResourceKind
from kubeseed.bootstrap.infrastructure.components.redis import PASSWORD_KEY, SECRET_NAME as REDIS_SECRET
from kubeseed.bootstrap.infrastructure.components.service_database import (
    PASSWORD_KEY as DB_PASSWORD_KEY,
    ServiceUserResource,
    secret_labels,
)
from kubeseed.config.models import DatabaseSettings
from kubeseed.credentials.derivation import ServiceIdentity
from kubeseed.credentials.generator import generate_password, generate_signing_secret
from kubeseed.credentials.store import CredentialResolver, postgres_url, redis_url
from kubeseed.logging.masking import register_secret

PG_PORT = 5432
REDIS_PORT = 6379


class ServiceSecretResource(ManagedResource):
    """
    ``<service>-secrets`` in the application namespace. Always upserted so
    connection strings follow the current database credentials; signing
    secrets are reused unless rotation was requested.
    """

    kind = ResourceKind.SERVICE_SECRET

    def __init__(
        self,
        identity: ServiceIdentity,
        *,
        namespace: str,
        database: DatabaseSettings,
        user: ServiceUserResource,
        credentials: CredentialResolver,
    ):
        super().__init__(identity.secret_name, namespace)
        self.identity = identity
        self.database = database
        self.user = user
        self.credentials = credentials

    def _redis_password(self, ctx: ComponentContext) -> str:
        explicit = self.database.redis_password
        if explicit:
            return explicit.get_secret_value()
        data = ctx.kubectl.secret_data(REDIS_SECRET, self.database.namespace) or {}
        if data.get(PASSWORD_KEY):
            register_secret(data[PASSWORD_KEY])
            return data[PASSWORD_KEY]
        # no cache server: fall back to the shared database password
        return self.user.psql.admin(ctx)[1]

    def string_data(self, ctx: ComponentContext) -> Dict[str, str]:
        ident = self.identity
        db_password = self.user.password()
        redis_password = self._redis_password(ctx)
        pg_host = self.database.postgres_host
        database_url = postgres_url(ident.database_user, db_password, pg_host, ident.database_name, PG_PORT)
        return {
            "DATABASE_URL": database_url,
            "POSTGRES_URL": database_url,
            "REDIS_URL": redis_url(redis_password, self.database.redis_host, REDIS_PORT),
            "REDIS_PASSWORD": redis_password,
            "JWT_SECRET": self.credentials.value("JWT_SECRET", generator=generate_signing_secret),
            "API_SECRET": self.credentials.value("API_SECRET", generator=generate_password),
            "DB_HOST": pg_host,
            "DB_PORT": str(PG_PORT),
            "DB_NAME": ident.database_name,
            "DB_USER": ident.database_user,
            DB_PASSWORD_KEY: db_password,
        }

    def manifest(self, ctx: ComponentContext) -> dict:
        return {
            "apiVersion": "v1",
            "kind": "Secret",
            "metadata": {
                "name": self.name,
                "namespace": self.namespace,
                "labels": secret_labels(self.identity),
            },
            "type": "Opaque",
            "stringData": self.string_data(ctx),
        }

    def exists(self, ctx: ComponentContext) -> bool:
        return ctx.kubectl.resource_exists("secret", self.name, self.namespace)

    def create(self, ctx: ComponentContext) -> None:
        ctx.kubectl.apply_objects([self.manifest(ctx)])

    def reconcile(self, ctx: ComponentContext) -> None:
        ctx.kubectl.apply_objects([self.manifest(ctx)])

    def delete(self, ctx: ComponentContext) -> None:
        ctx.kubectl.delete("secret", self.name, namespace=self.namespace)
