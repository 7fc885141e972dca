# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/kubeseed/bootstrap/engine/guard.py

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Mapping, Optional

from kubeseed.bootstrap.engine.component import ComponentContext, ManagedResource
from kubeseed.errors import DestructiveOperationRequested, ResourceAlreadyExists
from kubeseed.observers.dispatcher import EventBus
from kubeseed.observers.events import ResourceEnsured, new_ctx

log = logging.getLogger("kubeseed")


class ResourceAction(str, Enum):
    REUSE = "reuse"
    RECREATE = "recreate"
    FAIL_IF_EXISTS = "fail_if_exists"


class EnsureResult(str, Enum):
    CREATED = "created"
    REUSED = "reused"
    RECREATED = "recreated"


@dataclass(frozen=True)
class ActionPolicy:
    """
    Decides the action for every resource once per invocation.

    ``cleanup`` turns stateful resources (database and cache servers) into
    RECREATE. ``overrides`` pin an action by resource name.
    """

    cleanup: bool = False
    allow_destructive: bool = False
    overrides: Mapping[str, ResourceAction] = field(default_factory=dict)

    def action_for(self, resource: ManagedResource) -> ResourceAction:
        if resource.name in self.overrides:
            return self.overrides[resource.name]
        if self.cleanup and resource.stateful:
            return ResourceAction.RECREATE
        return ResourceAction.REUSE


class IdempotencyGuard:
    """The only place cluster mutation is initiated."""

    def __init__(
        self,
        ctx: ComponentContext,
        policy: Optional[ActionPolicy] = None,
        *,
        bus: Optional[EventBus] = None,
        event_ctx: Optional[dict] = None,
    ):
        self.ctx = ctx
        self.policy = policy or ActionPolicy()
        self.bus = bus
        self.event_ctx = event_ctx or new_ctx(env="local", context=None)

    def ensure(
        self,
        resource: ManagedResource,
        action: Optional[ResourceAction] = None,
        *,
        step: str = "",
    ) -> EnsureResult:
        action = action or self.policy.action_for(resource)
        what = resource.describe()

        if action is ResourceAction.RECREATE and resource.stateful and not self.policy.allow_destructive:
            raise DestructiveOperationRequested(
                f"Refusing to recreate stateful resource {what}: it would delete its data. "
                "Set ALLOW_DESTRUCTIVE=true to confirm."
            )

        present = resource.exists(self.ctx)

        if action is ResourceAction.REUSE:
            if present:
                log.info("[guard] %s exists, reusing", what)
                resource.reconcile(self.ctx)
                result = EnsureResult.REUSED
            else:
                log.info("[guard] creating %s", what)
                resource.create(self.ctx)
                result = EnsureResult.CREATED

        elif action is ResourceAction.RECREATE:
            if present:
                log.warning("[guard] recreating %s", what)
                resource.delete(self.ctx)
                resource.create(self.ctx)
                result = EnsureResult.RECREATED
            else:
                log.info("[guard] creating %s", what)
                resource.create(self.ctx)
                result = EnsureResult.CREATED

        elif action is ResourceAction.FAIL_IF_EXISTS:
            if present:
                raise ResourceAlreadyExists(
                    f"{what} already exists. Remove it or run with the reuse policy."
                )
            log.info("[guard] creating %s", what)
            resource.create(self.ctx)
            result = EnsureResult.CREATED

        else:
            raise ValueError(f"unknown action: {action!r}")

        if self.bus:
            self.bus.emit(
                ResourceEnsured(
                    step=step,
                    kind=resource.kind.value,
                    name=resource.name,
                    namespace=resource.namespace,
                    action=action.value,
                    result=result.value,
                    **self.event_ctx,
                )
            )
        return result
