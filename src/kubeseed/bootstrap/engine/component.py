# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/kubeseed/bootstrap/engine/component.py

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from kubeseed.helm.cli_runner import HelmCliRunner
from kubeseed.kube.kubectl import KubectlRunner


class ResourceKind(str, Enum):
    NAMESPACE = "Namespace"
    STORAGE_CLASS = "StorageClass"
    INGRESS_CONTROLLER = "IngressController"
    CERTIFICATE_MANAGER = "CertificateManager"
    CLUSTER_ISSUER = "ClusterIssuer"
    DATABASE_SERVER = "DatabaseServer"
    CACHE_SERVER = "CacheServer"
    SERVICE_DATABASE = "ServiceDatabase"
    SERVICE_USER = "ServiceUser"
    SERVICE_SECRET = "ServiceSecret"
    GITOPS_CONTROLLER = "GitOpsController"
    APPLICATION = "Application"


@dataclass
class ComponentContext:
    """Cluster tooling handed to every resource call."""

    kubectl: KubectlRunner
    helm: HelmCliRunner


class ManagedResource(ABC):
    """
    A piece of cluster state the orchestrator can probe and converge.

    ``exists`` must be side-effect free. ``create`` and ``delete`` are only
    ever called by the IdempotencyGuard. ``stateful`` marks resources whose
    deletion loses data (databases, their volumes).
    """

    kind: ResourceKind
    stateful: bool = False

    def __init__(self, name: str, namespace: Optional[str] = None):
        self.name = name
        self.namespace = namespace

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.describe()}>"

    def describe(self) -> str:
        if self.namespace:
            return f"{self.kind.value}/{self.namespace}/{self.name}"
        return f"{self.kind.value}/{self.name}"

    @abstractmethod
    def exists(self, ctx: ComponentContext) -> bool:
        ...

    def ready(self, ctx: ComponentContext) -> bool:
        return self.exists(ctx)

    @abstractmethod
    def create(self, ctx: ComponentContext) -> None:
        ...

    def delete(self, ctx: ComponentContext) -> None:
        raise NotImplementedError(f"{self.describe()} cannot be deleted")

    def reconcile(self, ctx: ComponentContext) -> None:
        """Converge an existing resource. Default: leave it alone."""
