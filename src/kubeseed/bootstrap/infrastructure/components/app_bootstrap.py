# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

from kubeseed.bootstrap.engine.component import ComponentContext, ManagedResource, ResourceKind
from kubeseed.config.models import AppBootstrapSettings


class RootApplicationResource(ManagedResource):
    """Argo CD app-of-apps pointing at the GitOps repository."""

    kind = ResourceKind.APPLICATION

    def __init__(self, settings: AppBootstrapSettings, *, argocd_namespace: str):
        super().__init__(settings.name, argocd_namespace)
        self.settings = settings

    def manifest(self) -> dict:
        s = self.settings
        return {
            "apiVersion": "argoproj.io/v1alpha1",
            "kind": "Application",
            "metadata": {"name": s.name, "namespace": self.namespace},
            "spec": {
                "project": "default",
                "source": {
                    "repoURL": s.repo_url,
                    "path": s.path,
                    "targetRevision": s.target_revision,
                },
                "destination": {
                    "server": "https://kubernetes.default.svc",
                    "namespace": s.destination_namespace,
                },
                "syncPolicy": {
                    "automated": {"prune": True, "selfHeal": True},
                    "syncOptions": ["CreateNamespace=true"],
                },
            },
        }

    def exists(self, ctx: ComponentContext) -> bool:
        return ctx.kubectl.resource_exists("applications.argoproj.io", self.name, self.namespace)

    def create(self, ctx: ComponentContext) -> None:
        ctx.kubectl.apply_objects([self.manifest()])

    def delete(self, ctx: ComponentContext) -> None:
        ctx.kubectl.delete("applications.argoproj.io", self.name, namespace=self.namespace)
