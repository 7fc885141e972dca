# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/kubeseed/bootstrap/infrastructure/registry.py

from __future__ import annotations

from typing import List

from kubeseed.bootstrap.infrastructure.models import ProvisionStep, TimeoutPolicy
from kubeseed.bootstrap.infrastructure.components.namespace import NamespaceResource
from kubeseed.bootstrap.infrastructure.components.storage_class import StorageClassResource
from kubeseed.bootstrap.infrastructure.components.ingress_nginx import IngressNginxResource
from kubeseed.bootstrap.infrastructure.components.cert_manager import (
    CertManagerResource,
    ClusterIssuerResource,
)
from kubeseed.bootstrap.infrastructure.components.postgresql import PostgresServerResource
from kubeseed.bootstrap.infrastructure.components.redis import RedisServerResource
from kubeseed.bootstrap.infrastructure.components.service_database import (
    Psql,
    ServiceDatabaseResource,
    ServiceUserResource,
)
from kubeseed.bootstrap.infrastructure.components.service_secret import ServiceSecretResource
from kubeseed.bootstrap.infrastructure.components.argocd import ArgoCDResource
from kubeseed.bootstrap.infrastructure.components.app_bootstrap import RootApplicationResource
from kubeseed.config.models import ServiceSettings, Settings
from kubeseed.credentials.derivation import derive
from kubeseed.credentials.store import CredentialResolver
from kubeseed.kube.kubectl import KubectlRunner


def build_service_steps(
    service: ServiceSettings,
    *,
    settings: Settings,
    kubectl: KubectlRunner,
    requires_server: bool = True,
) -> List[ProvisionStep]:
    """service-database:<name> and service-secret:<name> for one service."""
    identity = derive(
        service.name,
        database_name=service.database_name,
        database_user=service.database_user,
        secret_name=service.secret_name,
    )
    app_ns = settings.provision.namespace
    db = settings.database
    interval = settings.provision.poll_interval

    credentials = CredentialResolver(
        loader=lambda: kubectl.secret_data(identity.secret_name, app_ns),
        rotate=settings.provision.rotate_credentials,
    )
    psql = Psql(db.namespace)
    user = ServiceUserResource(
        identity,
        psql,
        credentials,
        secret_namespace=app_ns,
        explicit_password=(
            service.database_password.get_secret_value() if service.database_password else None
        ),
    )

    db_step = f"service-database:{service.name}"
    return [
        ProvisionStep(
            name=db_step,
            # the login role password is kept in the service secret, which lives in app_ns
            resources=[ServiceDatabaseResource(identity, psql), NamespaceResource(app_ns), user],
            requires=["database-server"] if requires_server else [],
            on_timeout=TimeoutPolicy.ABORT,
            timeout_seconds=60,
            poll_interval=interval,
        ),
        ProvisionStep(
            name=f"service-secret:{service.name}",
            resources=[
                NamespaceResource(app_ns),
                ServiceSecretResource(
                    identity,
                    namespace=app_ns,
                    database=db,
                    user=user,
                    credentials=credentials,
                ),
            ],
            requires=[db_step],
            on_timeout=TimeoutPolicy.ABORT,
            timeout_seconds=30,
            poll_interval=interval,
        ),
    ]


def build_steps(*, settings: Settings, kubectl: KubectlRunner) -> List[ProvisionStep]:
    """
    All provisioning steps implied by ``settings``. Disabled components are
    left out and dependencies on them are dropped.
    """
    interval = settings.provision.poll_interval
    rotate = settings.provision.rotate_credentials
    steps: List[ProvisionStep] = []

    if settings.storage.enabled:
        steps.append(ProvisionStep(
            name="storage-class",
            resources=[StorageClassResource(settings.storage)],
            timeout_seconds=settings.storage.timeout_seconds,
            poll_interval=interval,
        ))

    if settings.ingress.enabled:
        steps.append(ProvisionStep(
            name="ingress-controller",
            resources=[IngressNginxResource(settings.ingress)],
            requires=["storage-class"],
            timeout_seconds=settings.ingress.timeout_seconds,
            poll_interval=interval,
        ))

    if settings.cert_manager.enabled:
        cm = settings.cert_manager
        steps.append(ProvisionStep(
            name="cert-manager",
            resources=[CertManagerResource(cm)],
            requires=["ingress-controller"],
            timeout_seconds=cm.timeout_seconds,
            poll_interval=interval,
        ))
        # issuers go through the cert-manager webhook, so they wait for its rollout
        steps.append(ProvisionStep(
            name="certificate-issuer",
            resources=[
                ClusterIssuerResource(name, settings=cm, ingress_class=settings.ingress.ingress_class)
                for name in cm.issuers
            ],
            requires=["ingress-controller", "cert-manager"],
            timeout_seconds=cm.timeout_seconds,
            poll_interval=interval,
        ))

    db = settings.database
    postgres = PostgresServerResource(db, rotate=rotate)
    steps.append(ProvisionStep(
        name="database-server",
        resources=[NamespaceResource(db.namespace), postgres],
        requires=["storage-class"],
        on_timeout=TimeoutPolicy.RETRY_ONCE,
        timeout_seconds=db.timeout_seconds,
        poll_interval=interval,
    ))

    if db.redis_enabled:
        steps.append(ProvisionStep(
            name="cache-server",
            resources=[
                NamespaceResource(db.namespace),
                RedisServerResource(db, postgres=postgres, rotate=rotate),
            ],
            requires=["storage-class"],
            on_timeout=TimeoutPolicy.RETRY_ONCE,
            timeout_seconds=db.timeout_seconds,
            poll_interval=interval,
        ))

    for service in settings.services:
        steps.extend(build_service_steps(service, settings=settings, kubectl=kubectl))

    if settings.argocd.enabled:
        steps.append(ProvisionStep(
            name="gitops-controller",
            resources=[ArgoCDResource(settings.argocd, ingress_class=settings.ingress.ingress_class)],
            requires=["ingress-controller", "certificate-issuer"],
            timeout_seconds=settings.argocd.timeout_seconds,
            poll_interval=interval,
        ))

        if settings.argocd.bootstrap_app is not None:
            steps.append(ProvisionStep(
                name="app-bootstrap",
                resources=[
                    RootApplicationResource(
                        settings.argocd.bootstrap_app,
                        argocd_namespace=settings.argocd.namespace,
                    )
                ],
                requires=["gitops-controller"],
                timeout_seconds=60,
                poll_interval=interval,
            ))

    names = {s.name for s in steps}
    for s in steps:
        s.requires = [r for r in s.requires if r in names]
    return steps
