# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/kubeseed/bootstrap/infrastructure/manager.py

from __future__ import annotations

import logging
import time
from typing import Callable, Optional

from kubeseed.bootstrap.engine.component import ComponentContext
from kubeseed.bootstrap.engine.guard import IdempotencyGuard
from kubeseed.bootstrap.engine.waiter import wait_for
from kubeseed.bootstrap.infrastructure.models import (
    InfraSelection,
    ProvisionReport,
    ProvisionStep,
    StepResult,
    StepState,
    TimeoutPolicy,
)
from kubeseed.bootstrap.infrastructure.planner import plan
from kubeseed.logging.masking import redact
from kubeseed.observers.dispatcher import EventBus
from kubeseed.observers.events import (
    ProvisionSummary,
    StepCompleted,
    StepStarted,
    StepStateChanged,
    new_ctx,
)

log = logging.getLogger("kubeseed")


class InfrastructureManager:
    """
    Runs provisioning steps in dependency order.

    Each step ensures its resources through the IdempotencyGuard, then waits
    for them to become ready. A timeout is handled by the step's
    TimeoutPolicy. Steps that depend on a FAILED step are SKIPPED; DEGRADED
    dependencies do not block.
    """

    def __init__(
        self,
        *,
        ctx: ComponentContext,
        guard: IdempotencyGuard,
        bus: Optional[EventBus] = None,
        event_ctx: Optional[dict] = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.ctx = ctx
        self.guard = guard
        self.bus = bus or EventBus()
        self.event_ctx = event_ctx or new_ctx(env="local", context=None)
        self.sleep = sleep
        self.clock = clock

    # ------------------------------------------------------------
    def _set_state(self, result: StepResult, state: StepState) -> None:
        result.state = state
        self.bus.emit(StepStateChanged(step=result.name, state=state.value, **self.event_ctx))

    def _all_ready(self, step: ProvisionStep) -> bool:
        return all(r.ready(self.ctx) for r in step.resources)

    def _wait(self, step: ProvisionStep):
        return wait_for(
            lambda: self._all_ready(step),
            step.timeout_seconds,
            step.poll_interval,
            description=f"step {step.name}",
            sleep=self.sleep,
            clock=self.clock,
        )

    def _blocked_by(self, step: ProvisionStep, report: ProvisionReport) -> list[str]:
        blocked = []
        for dep in step.requires:
            r = report.results.get(dep)
            if r is None:
                continue
            if r.state is StepState.FAILED or (r.state is StepState.SKIPPED and r.selected):
                blocked.append(dep)
        return blocked

    def run_step(self, step: ProvisionStep) -> StepResult:
        result = StepResult(name=step.name)
        started = self.clock()
        self.bus.emit(StepStarted(step=step.name, **self.event_ctx))

        try:
            self._set_state(result, StepState.ENSURING)
            for res in step.resources:
                result.ensured[res.describe()] = self.guard.ensure(res, step=step.name)

            self._set_state(result, StepState.WAITING)
            waited = self._wait(step)
            if not waited.ready and step.on_timeout is TimeoutPolicy.RETRY_ONCE:
                log.warning("[provision] %s not ready after %ss, waiting once more", step.name, step.timeout_seconds)
                waited = self._wait(step)

            if waited.ready:
                self._set_state(result, StepState.READY)
            elif step.on_timeout is TimeoutPolicy.ABORT:
                result.error = (
                    f"{step.name} not ready after {step.timeout_seconds}s; "
                    f"check the resources with kubectl and re-run"
                )
                self._set_state(result, StepState.FAILED)
            else:
                result.error = f"{step.name} not ready after {step.timeout_seconds}s; continuing"
                self._set_state(result, StepState.DEGRADED)

        except Exception as e:
            log.error("[provision] %s failed: %s", step.name, e)
            log.debug("[provision] %s traceback", step.name, exc_info=True)
            result.error = redact(str(e))
            self._set_state(result, StepState.FAILED)

        result.duration_ms = int((self.clock() - started) * 1000)
        self.bus.emit(
            StepCompleted(
                step=step.name,
                state=result.state.value,
                duration_ms=result.duration_ms,
                error=result.error,
                **self.event_ctx,
            )
        )
        return result

    def deploy(
        self,
        steps: list[ProvisionStep],
        selection: Optional[InfraSelection] = None,
    ) -> ProvisionReport:
        selection = selection or InfraSelection(components=None)
        report = ProvisionReport()

        for step in plan(steps, bus=self.bus, run_ctx=self.event_ctx):
            if not selection.includes(step.name):
                report.results[step.name] = StepResult(step.name, StepState.SKIPPED, selected=False)
                continue

            blocked = self._blocked_by(step, report)
            if blocked:
                log.warning("[provision] skipping %s: dependency %s did not complete", step.name, ", ".join(blocked))
                res = StepResult(step.name, StepState.SKIPPED, error=f"blocked by {', '.join(blocked)}")
                report.results[step.name] = res
                self.bus.emit(StepStateChanged(step=step.name, state=res.state.value, **self.event_ctx))
                continue

            log.info("[provision] ▶ %s", step.name)
            result = self.run_step(step)
            report.results[step.name] = result
            if result.state is StepState.READY:
                log.info("[provision] ✓ %s ready", step.name)
            elif result.state is StepState.DEGRADED:
                log.warning("[provision] ⚠ %s degraded: %s", step.name, result.error)

        outcome = report.outcome
        self.bus.emit(
            ProvisionSummary(
                outcome=outcome.value,
                ready=len(report.by_state(StepState.READY)),
                degraded=len(report.by_state(StepState.DEGRADED)),
                failed=len(report.by_state(StepState.FAILED)),
                skipped=len(report.by_state(StepState.SKIPPED)),
                **self.event_ctx,
            )
        )
        log.info("[provision] outcome=%s", outcome.value)
        return report
