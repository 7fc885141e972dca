# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/kubeseed/bootstrap/infrastructure/components/storage_class.py

from __future__ import annotations

import logging
from typing import Optional

from kubeseed.bootstrap.engine.component import ComponentContext, ManagedResource, ResourceKind
from kubeseed.config.models import StorageSettings

log = logging.getLogger("kubeseed")

DEFAULT_CLASS_ANNOTATION = "storageclass.kubernetes.io/is-default-class"


def _is_default(sc: dict) -> bool:
    ann = sc.get("metadata", {}).get("annotations") or {}
    return ann.get(DEFAULT_CLASS_ANNOTATION) == "true"


class StorageClassResource(ManagedResource):
    """
    Any default StorageClass satisfies this resource. Otherwise the
    local-path provisioner is installed (or its class promoted to default).
    """

    kind = ResourceKind.STORAGE_CLASS

    def __init__(self, settings: StorageSettings):
        super().__init__(settings.class_name)
        self.settings = settings

    def default_class(self, ctx: ComponentContext) -> Optional[str]:
        for sc in ctx.kubectl.list_objects("storageclass"):
            if _is_default(sc):
                return sc["metadata"]["name"]
        return None

    def exists(self, ctx: ComponentContext) -> bool:
        default = self.default_class(ctx)
        if default:
            log.debug("[storage] default StorageClass is %s", default)
        return default is not None

    def ready(self, ctx: ComponentContext) -> bool:
        if self.default_class(ctx) is None:
            return False
        s = self.settings
        if ctx.kubectl.resource_exists("deployment", s.provisioner_deployment, s.provisioner_namespace):
            return ctx.kubectl.deployment_ready(s.provisioner_deployment, s.provisioner_namespace)
        return True

    def create(self, ctx: ComponentContext) -> None:
        if not ctx.kubectl.resource_exists("storageclass", self.name):
            log.info("[storage] installing local-path provisioner")
            ctx.kubectl.apply_url(self.settings.manifest_url)
        log.info("[storage] marking %s as default StorageClass", self.name)
        ctx.kubectl.patch(
            "storageclass",
            self.name,
            {"metadata": {"annotations": {DEFAULT_CLASS_ANNOTATION: "true"}}},
        )

    def delete(self, ctx: ComponentContext) -> None:
        ctx.kubectl.delete("storageclass", self.name)
