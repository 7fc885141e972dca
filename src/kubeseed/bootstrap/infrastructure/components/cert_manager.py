# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/kubeseed/bootstrap/infrastructure/components/cert_manager.py

from __future__ import annotations

import logging

from kubeseed.bootstrap.engine.component import ComponentContext, ManagedResource, ResourceKind
from kubeseed.config.models import CertManagerSettings
from kubeseed.errors import MissingCredential

log = logging.getLogger("kubeseed")

CERT_MANAGER_DEPLOYMENTS = ("cert-manager", "cert-manager-webhook", "cert-manager-cainjector")

ACME_SERVERS = {
    "letsencrypt-staging": "https://acme-staging-v02.api.letsencrypt.org/directory",
    "letsencrypt-prod": "https://acme-v02.api.letsencrypt.org/directory",
}


class CertManagerResource(ManagedResource):
    kind = ResourceKind.CERTIFICATE_MANAGER

    def __init__(self, settings: CertManagerSettings):
        super().__init__("cert-manager", settings.namespace)
        self.settings = settings

    def exists(self, ctx: ComponentContext) -> bool:
        return ctx.kubectl.resource_exists("deployment", "cert-manager", self.namespace)

    def ready(self, ctx: ComponentContext) -> bool:
        return all(ctx.kubectl.deployment_ready(d, self.namespace) for d in CERT_MANAGER_DEPLOYMENTS)

    def create(self, ctx: ComponentContext) -> None:
        url = self.settings.manifest_url()
        log.info("[cert-manager] applying %s", url)
        ctx.kubectl.apply_url(url)

    def delete(self, ctx: ComponentContext) -> None:
        ctx.kubectl.delete("namespace", self.namespace)


class ClusterIssuerResource(ManagedResource):
    """ACME ClusterIssuer solving http01 through the ingress class."""

    kind = ResourceKind.CLUSTER_ISSUER

    def __init__(self, name: str, *, settings: CertManagerSettings, ingress_class: str):
        super().__init__(name)
        if name not in ACME_SERVERS:
            raise ValueError(f"unknown ACME issuer {name!r}; expected one of {sorted(ACME_SERVERS)}")
        self.settings = settings
        self.ingress_class = ingress_class

    def manifest(self) -> dict:
        if not self.settings.acme_email:
            raise MissingCredential(
                f"ClusterIssuer {self.name} needs an ACME account email. Set ACME_EMAIL."
            )
        return {
            "apiVersion": "cert-manager.io/v1",
            "kind": "ClusterIssuer",
            "metadata": {"name": self.name},
            "spec": {
                "acme": {
                    "server": ACME_SERVERS[self.name],
                    "email": self.settings.acme_email,
                    "privateKeySecretRef": {"name": f"{self.name}-key"},
                    "solvers": [
                        {"http01": {"ingress": {"class": self.ingress_class}}},
                    ],
                }
            },
        }

    def exists(self, ctx: ComponentContext) -> bool:
        return ctx.kubectl.resource_exists("clusterissuer", self.name)

    def ready(self, ctx: ComponentContext) -> bool:
        obj = ctx.kubectl.get_object("clusterissuer", self.name)
        if obj is None:
            return False
        for cond in obj.get("status", {}).get("conditions", []) or []:
            if cond.get("type") == "Ready":
                return cond.get("status") == "True"
        return False

    def create(self, ctx: ComponentContext) -> None:
        ctx.kubectl.apply_objects([self.manifest()])

    def delete(self, ctx: ComponentContext) -> None:
        ctx.kubectl.delete("clusterissuer", self.name)
