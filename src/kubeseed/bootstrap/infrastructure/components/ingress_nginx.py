# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

from typing import Dict

from kubeseed.bootstrap.engine.component import ComponentContext, ManagedResource, ResourceKind
from kubeseed.config.models import IngressSettings

CONTROLLER_DEPLOYMENT = "ingress-nginx-controller"


class IngressNginxResource(ManagedResource):
    kind = ResourceKind.INGRESS_CONTROLLER

    repo_name = "ingress-nginx"
    chart = "ingress-nginx/ingress-nginx"

    def __init__(self, settings: IngressSettings):
        super().__init__(CONTROLLER_DEPLOYMENT, settings.namespace)
        self.settings = settings

    def values(self) -> Dict:
        s = self.settings
        service: Dict = {"type": s.service_type}
        if s.service_type == "NodePort":
            service["nodePorts"] = {"http": s.http_node_port, "https": s.https_node_port}
        return {
            "controller": {
                "ingressClass": s.ingress_class,
                "ingressClassResource": {
                    "name": s.ingress_class,
                    "enabled": True,
                    "default": True,
                },
                "watchIngressWithoutClass": True,
                "extraArgs": {"enable-ssl-passthrough": "true"},
                "service": service,
            }
        }

    def exists(self, ctx: ComponentContext) -> bool:
        return ctx.kubectl.resource_exists("deployment", self.name, self.namespace)

    def ready(self, ctx: ComponentContext) -> bool:
        return ctx.kubectl.deployment_ready(self.name, self.namespace)

    def create(self, ctx: ComponentContext) -> None:
        s = self.settings
        ctx.helm.add_repo(self.repo_name, s.repo_url)
        ctx.helm.install_or_upgrade(
            s.release_name,
            self.chart,
            s.namespace,
            self.values(),
            version=s.chart_version,
        )

    def delete(self, ctx: ComponentContext) -> None:
        ctx.helm.uninstall(self.settings.release_name, self.namespace)
