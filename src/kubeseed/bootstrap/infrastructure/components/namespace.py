# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

from kubeseed.bootstrap.engine.component import ComponentContext, ManagedResource, ResourceKind


class NamespaceResource(ManagedResource):
    kind = ResourceKind.NAMESPACE

    def __init__(self, name: str):
        super().__init__(name)

    def exists(self, ctx: ComponentContext) -> bool:
        return ctx.kubectl.resource_exists("namespace", self.name)

    def create(self, ctx: ComponentContext) -> None:
        ctx.kubectl.apply_objects([
            {"apiVersion": "v1", "kind": "Namespace", "metadata": {"name": self.name}},
        ])

    def delete(self, ctx: ComponentContext) -> None:
        ctx.kubectl.delete("namespace", self.name)
