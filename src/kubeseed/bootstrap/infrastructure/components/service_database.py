# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/kubeseed/bootstrap/infrastructure/components/service_database.py

"""
Per-service database and login role on the shared PostgreSQL server.

SQL is executed with ``kubectl exec ... psql`` inside the server pod and
fed through stdin so passwords never appear on a command line.
"""

from __future__ import annotations

import logging
import re
from typing import Optional

from kubeseed.bootstrap.engine.component import ComponentContext, ManagedResource, ResourceKind
from kubeseed.bootstrap.infrastructure.components.postgresql import ADMIN_USER, SECRET_NAME
from kubeseed.credentials.derivation import ServiceIdentity
from kubeseed.credentials.store import CredentialResolver
from kubeseed.errors import MissingCredential, TransientUnavailable
from kubeseed.kube.kubectl import KubectlError
from kubeseed.logging.masking import register_secret

log = logging.getLogger("kubeseed")

_IDENTIFIER = re.compile(r"^[a-z_][a-z0-9_]{0,62}$")

POD_SELECTORS = ("app.kubernetes.io/name=postgresql", "app=postgresql")

PASSWORD_KEY = "DB_PASSWORD"


def _identifier(value: str) -> str:
    if not _IDENTIFIER.match(value):
        raise ValueError(f"invalid SQL identifier {value!r}")
    return value


def _literal(value: str) -> str:
    return "'" + value.replace("'", "''") + "'"


def secret_labels(identity: ServiceIdentity) -> dict:
    return {
        "app.kubernetes.io/name": identity.service_name,
        "app.kubernetes.io/managed-by": "kubeseed",
    }


class Psql:
    """psql access to the shared server using the admin credentials in the ``postgresql`` secret."""

    def __init__(self, namespace: str, server_name: str = "postgresql"):
        self.namespace = namespace
        self.server_name = server_name
        self._admin: Optional[tuple[str, str]] = None

    def admin(self, ctx: ComponentContext) -> tuple[str, str]:
        if self._admin is None:
            data = ctx.kubectl.secret_data(SECRET_NAME, self.namespace) or {}
            if data.get("admin-user-password"):
                self._admin = (ADMIN_USER, data["admin-user-password"])
            elif data.get("postgres-password") or data.get("password"):
                self._admin = ("postgres", data.get("postgres-password") or data["password"])
            else:
                raise MissingCredential(
                    f"No admin password in secret {self.namespace}/{SECRET_NAME}. "
                    "Provision the database server first."
                )
            register_secret(self._admin[1])
        return self._admin

    def pod(self, ctx: ComponentContext) -> str:
        for selector in POD_SELECTORS:
            pod = ctx.kubectl.first_pod(self.namespace, selector)
            if pod:
                return pod
        raise TransientUnavailable(f"no running PostgreSQL pod in namespace {self.namespace}")

    def run(self, ctx: ComponentContext, sql: str, *, database: str = "postgres") -> str:
        user, password = self.admin(ctx)
        rc, out, err = ctx.kubectl.exec(
            self.namespace,
            self.pod(ctx),
            ["psql", "-v", "ON_ERROR_STOP=1", "-U", user, "-d", database, "-tA"],
            stdin=sql,
            env={"PGPASSWORD": password},
        )
        if rc != 0:
            raise KubectlError(f"psql failed on {database} (rc={rc}): {err.strip()}")
        return out

    def scalar(self, ctx: ComponentContext, sql: str) -> str:
        return self.run(ctx, sql).strip()


class ServiceDatabaseResource(ManagedResource):
    kind = ResourceKind.SERVICE_DATABASE
    stateful = True

    def __init__(self, identity: ServiceIdentity, psql: Psql):
        super().__init__(_identifier(identity.database_name), psql.namespace)
        self.identity = identity
        self.psql = psql

    def exists(self, ctx: ComponentContext) -> bool:
        return self.psql.scalar(
            ctx, f"SELECT 1 FROM pg_database WHERE datname = {_literal(self.name)};"
        ) == "1"

    def create(self, ctx: ComponentContext) -> None:
        self.psql.run(
            ctx,
            f"SELECT 'CREATE DATABASE {self.name}' "
            f"WHERE NOT EXISTS (SELECT FROM pg_database WHERE datname = {_literal(self.name)})\\gexec\n",
        )

    def delete(self, ctx: ComponentContext) -> None:
        self.psql.run(ctx, f"DROP DATABASE IF EXISTS {self.name};")


class ServiceUserResource(ManagedResource):
    """
    Login role owning the service's privileges. The password comes from the
    service secret when one exists, so reruns keep it stable. It is written
    back to that secret before the role is created or altered, so a later
    secret update in another process reads the same value.
    """

    kind = ResourceKind.SERVICE_USER

    def __init__(
        self,
        identity: ServiceIdentity,
        psql: Psql,
        credentials: CredentialResolver,
        *,
        secret_namespace: str,
        explicit_password: Optional[str] = None,
    ):
        super().__init__(_identifier(identity.database_user), psql.namespace)
        self.identity = identity
        self.secret_namespace = secret_namespace
        self.database = _identifier(identity.database_name)
        self.psql = psql
        self.credentials = credentials
        self.explicit_password = explicit_password

    def password(self) -> str:
        return self.credentials.value(PASSWORD_KEY, explicit=self.explicit_password)

    def _store_password(self, ctx: ComponentContext) -> None:
        password = self.password()
        secret = self.identity.secret_name
        current = ctx.kubectl.secret_data(secret, self.secret_namespace) or {}
        if current.get(PASSWORD_KEY) == password:
            return
        log.info("[service-db] storing %s password in secret %s/%s", self.name, self.secret_namespace, secret)
        ctx.kubectl.apply_objects([{
            "apiVersion": "v1",
            "kind": "Secret",
            "metadata": {
                "name": secret,
                "namespace": self.secret_namespace,
                "labels": secret_labels(self.identity),
            },
            "type": "Opaque",
            "stringData": {**current, PASSWORD_KEY: password},
        }])

    def _upsert_sql(self) -> str:
        user, pw = self.name, _literal(self.password())
        return (
            "DO $$\n"
            "BEGIN\n"
            f"    IF NOT EXISTS (SELECT FROM pg_roles WHERE rolname = {_literal(user)}) THEN\n"
            f"        CREATE USER {user} WITH PASSWORD {pw};\n"
            "    ELSE\n"
            f"        ALTER USER {user} WITH PASSWORD {pw};\n"
            "    END IF;\n"
            "END\n"
            "$$;\n"
            f"GRANT ALL PRIVILEGES ON DATABASE {self.database} TO {user};\n"
            f"GRANT CONNECT ON DATABASE {self.database} TO {user};\n"
        )

    def _schema_grants_sql(self) -> str:
        user = self.name
        return (
            f"GRANT ALL ON SCHEMA public TO {user};\n"
            f"GRANT ALL PRIVILEGES ON ALL TABLES IN SCHEMA public TO {user};\n"
            f"GRANT ALL PRIVILEGES ON ALL SEQUENCES IN SCHEMA public TO {user};\n"
            f"ALTER DEFAULT PRIVILEGES IN SCHEMA public GRANT ALL ON TABLES TO {user};\n"
            f"ALTER DEFAULT PRIVILEGES IN SCHEMA public GRANT ALL ON SEQUENCES TO {user};\n"
        )

    def _apply(self, ctx: ComponentContext) -> None:
        self._store_password(ctx)
        self.psql.run(ctx, self._upsert_sql())
        self.psql.run(ctx, self._schema_grants_sql(), database=self.database)

    def exists(self, ctx: ComponentContext) -> bool:
        return self.psql.scalar(
            ctx, f"SELECT 1 FROM pg_roles WHERE rolname = {_literal(self.name)};"
        ) == "1"

    def ready(self, ctx: ComponentContext) -> bool:
        has_db = self.psql.scalar(
            ctx, f"SELECT 1 FROM pg_database WHERE datname = {_literal(self.database)};"
        ) == "1"
        return has_db and self.exists(ctx)

    def create(self, ctx: ComponentContext) -> None:
        self._apply(ctx)

    def reconcile(self, ctx: ComponentContext) -> None:
        # keeps the role password aligned with the service secret
        self._apply(ctx)

    def delete(self, ctx: ComponentContext) -> None:
        self.psql.run(ctx, f"DROP ROLE IF EXISTS {self.name};")
