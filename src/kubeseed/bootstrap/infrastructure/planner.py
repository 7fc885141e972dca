# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/kubeseed/bootstrap/infrastructure/planner.py

from __future__ import annotations

from collections import deque
from typing import Dict, List, Optional, Set

from kubeseed.bootstrap.infrastructure.models import ProvisionStep
from kubeseed.observers.dispatcher import EventBus
from kubeseed.observers.events import PlanComputed, PlanFailed, new_ctx


class UnknownDependencyError(ValueError):
    pass


class CyclicDependencyError(ValueError):
    pass


def _validate_dependencies(steps: List[ProvisionStep]) -> None:
    names: Set[str] = {s.name for s in steps}
    if len(names) != len(steps):
        raise ValueError("Duplicate step names in plan")
    for s in steps:
        for d in s.requires:
            if d not in names:
                raise UnknownDependencyError(
                    f"Step '{s.name}' depends on unknown step '{d}'"
                )


def plan(
    steps: List[ProvisionStep],
    bus: Optional[EventBus] = None,
    run_ctx: Optional[dict] = None,
) -> List[ProvisionStep]:
    """
    Stable topological sort of steps based on 'requires'.
    Ties keep the declaration order. Emits PlanComputed / PlanFailed if an
    EventBus is provided.
    """
    ctx = run_ctx or new_ctx(env="local", context=None)
    try:
        _validate_dependencies(steps)

        position = {s.name: i for i, s in enumerate(steps)}
        by_name: Dict[str, ProvisionStep] = {s.name: s for s in steps}
        indeg: Dict[str, int] = {s.name: len(set(s.requires)) for s in steps}

        queue = deque(sorted((n for n, deg in indeg.items() if deg == 0), key=position.get))
        order: List[ProvisionStep] = []

        while queue:
            n = queue.popleft()
            order.append(by_name[n])
            for s in steps:
                if n in s.requires:
                    indeg[s.name] -= 1
                    if indeg[s.name] == 0:
                        queue.append(s.name)
                        queue = deque(sorted(queue, key=position.get))  # deterministic

        if len(order) != len(steps):
            raise CyclicDependencyError("Cyclic dependency detected among steps")

        if bus:
            bus.emit(PlanComputed(order=[s.name for s in order], **ctx))
        return order

    except Exception as e:
        if bus:
            bus.emit(PlanFailed(error=str(e), **ctx))
        raise
