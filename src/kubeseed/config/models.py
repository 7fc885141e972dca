# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/kubeseed/config/models.py

from __future__ import annotations

from typing import Dict, List, Optional

from pydantic import BaseModel, Field, SecretStr, field_validator


class ResourceSpec(BaseModel):
    requests: Dict[str, str] = Field(default_factory=dict)
    limits: Dict[str, str] = Field(default_factory=dict)


class ProvisionSettings(BaseModel):
    namespace: str = "default"            # application namespace for service secrets
    kube_context: Optional[str] = None
    kubeconfig: Optional[str] = None
    enable_cleanup: bool = False
    allow_destructive: bool = False
    rotate_credentials: bool = False
    poll_interval: float = 5.0


class StorageSettings(BaseModel):
    enabled: bool = True
    class_name: str = "local-path"
    manifest_url: str = (
        "https://raw.githubusercontent.com/rancher/local-path-provisioner/"
        "master/deploy/local-path-storage.yaml"
    )
    provisioner_namespace: str = "local-path-storage"
    provisioner_deployment: str = "local-path-provisioner"
    timeout_seconds: int = 120


class IngressSettings(BaseModel):
    enabled: bool = True
    namespace: str = "ingress-nginx"
    release_name: str = "ingress-nginx"
    repo_url: str = "https://kubernetes.github.io/ingress-nginx"
    chart_version: Optional[str] = None
    ingress_class: str = "nginx"
    service_type: str = "NodePort"
    http_node_port: int = 30080
    https_node_port: int = 30443
    timeout_seconds: int = 300

    @field_validator("service_type")
    @classmethod
    def _service_type(cls, v: str) -> str:
        if v not in ("NodePort", "LoadBalancer", "ClusterIP"):
            raise ValueError(f"unsupported ingress service type: {v}")
        return v


class CertManagerSettings(BaseModel):
    enabled: bool = True
    namespace: str = "cert-manager"
    version: Optional[str] = None         # None = latest release
    acme_email: Optional[str] = None
    issuers: List[str] = Field(default_factory=lambda: ["letsencrypt-staging", "letsencrypt-prod"])
    timeout_seconds: int = 300

    def manifest_url(self) -> str:
        if self.version:
            return f"https://github.com/cert-manager/cert-manager/releases/download/{self.version}/cert-manager.yaml"
        return "https://github.com/cert-manager/cert-manager/releases/latest/download/cert-manager.yaml"


class DatabaseSettings(BaseModel):
    namespace: str = "infra"
    repo_name: str = "bitnami"
    repo_url: str = "https://charts.bitnami.com/bitnami"
    postgres_release: str = "postgresql"
    redis_release: str = "redis"
    postgres_password: Optional[SecretStr] = None
    redis_password: Optional[SecretStr] = None
    postgres_storage_size: str = "20Gi"
    redis_storage_size: str = "8Gi"
    postgres_resources: ResourceSpec = Field(
        default_factory=lambda: ResourceSpec(
            requests={"memory": "256Mi", "cpu": "100m"},
            limits={"memory": "512Mi", "cpu": "500m"},
        )
    )
    redis_resources: ResourceSpec = Field(
        default_factory=lambda: ResourceSpec(
            requests={"memory": "128Mi", "cpu": "50m"},
            limits={"memory": "256Mi", "cpu": "250m"},
        )
    )
    redis_enabled: bool = True
    timeout_seconds: int = 300

    @property
    def postgres_host(self) -> str:
        return f"postgresql.{self.namespace}.svc.cluster.local"

    @property
    def redis_host(self) -> str:
        return f"redis-master.{self.namespace}.svc.cluster.local"


class ServiceSettings(BaseModel):
    name: str
    database_name: Optional[str] = None
    database_user: Optional[str] = None
    secret_name: Optional[str] = None
    database_password: Optional[SecretStr] = None


class AppBootstrapSettings(BaseModel):
    name: str = "root"
    repo_url: str
    path: str = "apps"
    target_revision: str = "main"
    destination_namespace: str = "argocd"


class ArgoCDSettings(BaseModel):
    enabled: bool = True
    namespace: str = "argocd"
    manifest_url: str = "https://raw.githubusercontent.com/argoproj/argo-cd/stable/manifests/install.yaml"
    domain: Optional[str] = None
    cluster_issuer: str = "letsencrypt-prod"
    force_upgrade: bool = False
    timeout_seconds: int = 300
    bootstrap_app: Optional[AppBootstrapSettings] = None


class PropagationSettings(BaseModel):
    source_repo: Optional[str] = None
    api_url: str = "https://api.github.com"
    event_type: str = "export-secret"
    interval: float = 2.0
    timeout: float = 30.0
    bundle_secret_name: str = "PROPAGATE_SECRETS"

    @field_validator("interval", "timeout")
    @classmethod
    def _positive(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("must be > 0")
        return v


class GitOpsSettings(BaseModel):
    repo: Optional[str] = None            # owner/name
    branch: str = "main"
    workdir: str = "/tmp/kubeseed-gitops"
    author_name: str = "kubeseed-bot"
    author_email: str = "kubeseed-bot@users.noreply.github.com"


class Settings(BaseModel):
    provision: ProvisionSettings = Field(default_factory=ProvisionSettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)
    ingress: IngressSettings = Field(default_factory=IngressSettings)
    cert_manager: CertManagerSettings = Field(default_factory=CertManagerSettings)
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    argocd: ArgoCDSettings = Field(default_factory=ArgoCDSettings)
    services: List[ServiceSettings] = Field(default_factory=list)
    propagation: PropagationSettings = Field(default_factory=PropagationSettings)
    gitops: GitOpsSettings = Field(default_factory=GitOpsSettings)
