# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/kubeseed/bootstrap/infrastructure/components/argocd.py

from __future__ import annotations

import logging

from kubeseed.bootstrap.engine.component import ComponentContext, ManagedResource, ResourceKind
from kubeseed.config.models import ArgoCDSettings

log = logging.getLogger("kubeseed")

SERVER_DEPLOYMENT = "argocd-server"


class ArgoCDResource(ManagedResource):
    """
    Argo CD from the upstream install manifest. A healthy install is left
    untouched unless ``force_upgrade`` is set.
    """

    kind = ResourceKind.GITOPS_CONTROLLER

    def __init__(self, settings: ArgoCDSettings, *, ingress_class: str = "nginx"):
        super().__init__(SERVER_DEPLOYMENT, settings.namespace)
        self.settings = settings
        self.ingress_class = ingress_class

    def ingress(self) -> dict:
        s = self.settings
        return {
            "apiVersion": "networking.k8s.io/v1",
            "kind": "Ingress",
            "metadata": {
                "name": "argocd-server",
                "namespace": s.namespace,
                "annotations": {
                    "cert-manager.io/cluster-issuer": s.cluster_issuer,
                    "nginx.ingress.kubernetes.io/ssl-passthrough": "true",
                    "nginx.ingress.kubernetes.io/backend-protocol": "HTTPS",
                },
            },
            "spec": {
                "ingressClassName": self.ingress_class,
                "tls": [{"hosts": [s.domain], "secretName": "argocd-tls"}],
                "rules": [{
                    "host": s.domain,
                    "http": {
                        "paths": [{
                            "path": "/",
                            "pathType": "Prefix",
                            "backend": {
                                "service": {"name": "argocd-server", "port": {"name": "https"}},
                            },
                        }],
                    },
                }],
            },
        }

    def _install(self, ctx: ComponentContext) -> None:
        ctx.kubectl.create_namespace(self.namespace)
        log.info("[argocd] applying %s", self.settings.manifest_url)
        ctx.kubectl.apply_url(self.settings.manifest_url, namespace=self.namespace)
        if self.settings.domain:
            ctx.kubectl.apply_objects([self.ingress()])

    def exists(self, ctx: ComponentContext) -> bool:
        return ctx.kubectl.resource_exists("deployment", self.name, self.namespace)

    def ready(self, ctx: ComponentContext) -> bool:
        return ctx.kubectl.deployment_ready(self.name, self.namespace)

    def create(self, ctx: ComponentContext) -> None:
        self._install(ctx)

    def reconcile(self, ctx: ComponentContext) -> None:
        if self.settings.force_upgrade:
            log.info("[argocd] force upgrade requested")
            self._install(ctx)
        elif not self.ready(ctx):
            log.info("[argocd] installed but unhealthy, re-applying manifest")
            self._install(ctx)
        else:
            log.info("[argocd] healthy, skipping install")

    def delete(self, ctx: ComponentContext) -> None:
        ctx.kubectl.delete("namespace", self.namespace)
