# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/kubeseed/bootstrap/infrastructure/models.py

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Set

from kubeseed.bootstrap.engine.component import ManagedResource
from kubeseed.bootstrap.engine.guard import EnsureResult
from kubeseed.outcome import Outcome

STEP_NAMES = (
    "storage-class",
    "ingress-controller",
    "cert-manager",
    "certificate-issuer",
    "database-server",
    "cache-server",
    "service-database",
    "service-secret",
    "gitops-controller",
    "app-bootstrap",
)


@dataclass(frozen=True)
class InfraSelection:
    """
    Represents which provisioning steps the user wants.
    """
    components: Optional[Set[str]]  # None = all

    def includes(self, step_name: str) -> bool:
        if self.components is None:
            return True
        # per-service steps are named "<step>:<service>"
        return step_name in self.components or step_name.split(":", 1)[0] in self.components


def parse_infra_flag(infra: Optional[str]) -> InfraSelection:
    """
    Parse --only flag.

    --only storage-class
    --only database-server,service-database
    --only all
    --only None  -> all
    """
    if infra is None or infra == "all":
        return InfraSelection(components=None)

    parts = {p.strip().lower() for p in infra.split(",") if p.strip()}
    if not parts:
        return InfraSelection(components=None)

    unknown = {p.split(":", 1)[0] for p in parts} - set(STEP_NAMES)
    if unknown:
        raise ValueError(
            f"Unknown steps: {', '.join(sorted(unknown))}. Valid: {', '.join(STEP_NAMES)}"
        )
    return InfraSelection(components=parts)


class StepState(str, Enum):
    NOT_STARTED = "not_started"
    ENSURING = "ensuring"
    WAITING = "waiting"
    READY = "ready"
    DEGRADED = "degraded"
    FAILED = "failed"
    SKIPPED = "skipped"


class TimeoutPolicy(str, Enum):
    WARN = "warn"               # warn, continue
    RETRY_ONCE = "retry_once"   # wait one more window, then warn
    ABORT = "abort"             # this step fails; independent steps continue


@dataclass
class ProvisionStep:
    name: str
    resources: List[ManagedResource]
    requires: List[str] = field(default_factory=list)
    on_timeout: TimeoutPolicy = TimeoutPolicy.WARN
    timeout_seconds: float = 300
    poll_interval: float = 5


@dataclass
class StepResult:
    name: str
    state: StepState = StepState.NOT_STARTED
    ensured: Dict[str, EnsureResult] = field(default_factory=dict)
    error: Optional[str] = None
    selected: bool = True
    duration_ms: int = 0


@dataclass
class ProvisionReport:
    results: Dict[str, StepResult] = field(default_factory=dict)

    def by_state(self, state: StepState) -> List[str]:
        return [n for n, r in self.results.items() if r.state is state]

    @property
    def outcome(self) -> Outcome:
        if self.by_state(StepState.FAILED):
            return Outcome.FAILED
        # dependents of a failed step are skipped; that alone is a failure
        if any(r.state is StepState.SKIPPED and r.selected for r in self.results.values()):
            return Outcome.FAILED
        if self.by_state(StepState.DEGRADED):
            return Outcome.DEGRADED
        return Outcome.SUCCESS
