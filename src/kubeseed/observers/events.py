# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/kubeseed/observers/events.py

from __future__ import annotations
from dataclasses import dataclass, asdict
from typing import List, Dict, Any, Optional
from datetime import datetime, timezone
import uuid


# ---------------------------------------------------------------------
# Base context and helper
# ---------------------------------------------------------------------
@dataclass(frozen=True)
class BaseEvent:
    ts: str           # ISO timestamp
    run_id: str       # correlates all events in a single invocation
    env: str          # local / ci
    context: Optional[str]  # kube-context or repository

    def dict(self) -> Dict[str, Any]:
        return asdict(self)


def new_ctx(env: str, context: Optional[str], run_id: Optional[str] = None) -> Dict[str, Any]:
    return {
        "ts": datetime.now(timezone.utc).isoformat(timespec="seconds").replace("+00:00", "Z"),
        "run_id": run_id or str(uuid.uuid4()),
        "env": env,
        "context": context,
    }


# ---------------------------------------------------------------------
# Planner
# ---------------------------------------------------------------------
@dataclass(frozen=True)
class PlanComputed(BaseEvent):
    order: List[str]

@dataclass(frozen=True)
class PlanFailed(BaseEvent):
    error: str


# ---------------------------------------------------------------------
# Provisioning steps
# ---------------------------------------------------------------------
@dataclass(frozen=True)
class StepStarted(BaseEvent):
    step: str

@dataclass(frozen=True)
class StepStateChanged(BaseEvent):
    step: str
    state: str

@dataclass(frozen=True)
class ResourceEnsured(BaseEvent):
    step: str
    kind: str
    name: str
    namespace: Optional[str]
    action: str
    result: str

@dataclass(frozen=True)
class StepCompleted(BaseEvent):
    step: str
    state: str
    duration_ms: int
    error: Optional[str] = None

@dataclass(frozen=True)
class ProvisionSummary(BaseEvent):
    outcome: str
    ready: int
    degraded: int
    failed: int
    skipped: int


# ---------------------------------------------------------------------
# Secret propagation
# ---------------------------------------------------------------------
@dataclass(frozen=True)
class SecretsChecked(BaseEvent):
    target_repo: str
    present: List[str]
    missing: List[str]

@dataclass(frozen=True)
class DispatchSent(BaseEvent):
    source_repo: str
    target_repo: str
    secret_name: str
    correlation_token: str

@dataclass(frozen=True)
class DispatchFailed(BaseEvent):
    source_repo: str
    secret_name: str
    error: str

@dataclass(frozen=True)
class PollAttempt(BaseEvent):
    secret_name: str
    attempt: int
    max_attempts: int

@dataclass(frozen=True)
class SecretSynced(BaseEvent):
    secret_name: str
    attempts: int

@dataclass(frozen=True)
class SecretTimedOut(BaseEvent):
    secret_name: str
    attempts: int
    timeout_s: float

@dataclass(frozen=True)
class PropagationSummary(BaseEvent):
    target_repo: str
    outcome: str
    synced: int
    unresolved: int
