# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/kubeseed/secrets/propagation.py

"""
Cross-repository secret propagation.

The target repository's secret inventory is checked once. For every
missing name an ``export-secret`` dispatch is sent to the source-of-truth
repository, whose workflow writes the value into the target. The target
inventory is then polled until the name appears or the poll ceiling is
reached. Values never pass through this process.
"""

from __future__ import annotations

import logging
import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, Iterable, List, Mapping, Optional

from kubeseed.config.models import PropagationSettings
from kubeseed.errors import PropagationTimeout
from kubeseed.logging.masking import preview, redact
from kubeseed.observers.dispatcher import EventBus
from kubeseed.observers.events import (
    DispatchFailed,
    DispatchSent,
    PollAttempt,
    PropagationSummary,
    SecretsChecked,
    SecretSynced,
    SecretTimedOut,
    new_ctx,
)
from kubeseed.outcome import Outcome
from kubeseed.secrets.export import validate_secret_name
from kubeseed.secrets.github import GitHubClient, GitHubError
from kubeseed.utils.retry import RetryPolicy

log = logging.getLogger("kubeseed")


class SecretState(str, Enum):
    CHECKING = "checking"
    PRESENT = "present"
    MISSING = "missing"
    DISPATCH_SENT = "dispatch_sent"
    DISPATCH_FAILED = "dispatch_failed"
    POLLING = "polling"
    SYNCED = "synced"
    TIMED_OUT = "timed_out"


RESOLVED = (SecretState.PRESENT, SecretState.SYNCED)


@dataclass
class SecretStatus:
    name: str
    state: SecretState = SecretState.CHECKING
    attempts: int = 0
    correlation_token: Optional[str] = None
    error: Optional[str] = None


@dataclass
class PropagationReport:
    target_repo: Optional[str]
    source_repo: Optional[str]
    statuses: Dict[str, SecretStatus] = field(default_factory=dict)
    outcome: Outcome = Outcome.SUCCESS
    skipped: bool = False

    @property
    def unresolved(self) -> List[str]:
        return [n for n, s in self.statuses.items() if s.state not in RESOLVED]

    @property
    def actions_url(self) -> Optional[str]:
        return f"https://github.com/{self.source_repo}/actions" if self.source_repo else None

    def raise_for_outcome(self) -> None:
        if self.outcome is Outcome.FAILED:
            raise PropagationTimeout(
                f"{len(self.unresolved)} secret(s) not available in {self.target_repo}: "
                f"{', '.join(self.unresolved)}. Check {self.actions_url}",
                unresolved=self.unresolved,
                source_repo=self.source_repo or "",
            )


class SecretPropagator:
    def __init__(
        self,
        client: Optional[GitHubClient],
        *,
        source_repo: str,
        settings: Optional[PropagationSettings] = None,
        ci: bool = False,
        bus: Optional[EventBus] = None,
        event_ctx: Optional[dict] = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
        token_factory: Callable[[], str] = lambda: uuid.uuid4().hex,
    ):
        self.client = client
        self.source_repo = source_repo
        self.settings = settings or PropagationSettings()
        self.ci = ci
        self.bus = bus or EventBus()
        self.event_ctx = event_ctx or new_ctx(env="ci" if ci else "local", context=source_repo)
        self.sleep = sleep
        self.clock = clock
        self.token_factory = token_factory

    @property
    def policy(self) -> RetryPolicy:
        s = self.settings
        return RetryPolicy.from_timeout(s.timeout, s.interval, delay_first=True)

    # ------------------------------------------------------------
    def _dispatch(self, target_repo: str, status: SecretStatus) -> bool:
        token = self.token_factory()
        payload = {
            "secret_name": status.name,
            "target_repo": target_repo,
            "correlation_token": token,
        }
        try:
            code = self.client.dispatch(self.source_repo, self.settings.event_type, payload)
        except GitHubError as e:
            status.state = SecretState.DISPATCH_FAILED
            status.error = redact(str(e))
            log.error("[propagate] dispatch for %s rejected: %s", status.name, e)
            self.bus.emit(DispatchFailed(source_repo=self.source_repo, secret_name=status.name, error=status.error, **self.event_ctx))
            return False

        status.state = SecretState.DISPATCH_SENT
        status.correlation_token = token
        log.info("[propagate] dispatch sent for %s (HTTP %d, token=%s)", status.name, code, token[:8])
        self.bus.emit(
            DispatchSent(
                source_repo=self.source_repo,
                target_repo=target_repo,
                secret_name=status.name,
                correlation_token=token,
                **self.event_ctx,
            )
        )
        return True

    def _poll(self, target_repo: str, status: SecretStatus) -> None:
        policy = self.policy
        status.state = SecretState.POLLING

        def probe() -> bool:
            try:
                return status.name in self.client.list_secret_names(target_repo)
            except GitHubError as e:
                log.debug("[propagate] listing %s failed: %s", target_repo, e)
                return False

        def on_attempt(attempt: int, ok: bool) -> None:
            status.attempts = attempt
            self.bus.emit(PollAttempt(secret_name=status.name, attempt=attempt, max_attempts=policy.max_attempts, **self.event_ctx))
            if not ok and attempt % 3 == 0:
                log.info("[propagate] waiting for %s (%d/%d)", status.name, attempt, policy.max_attempts)

        result = policy.poll(probe, on_attempt=on_attempt, sleep=self.sleep, clock=self.clock)
        status.attempts = result.attempts

        if result.succeeded:
            status.state = SecretState.SYNCED
            log.info("[propagate] %s synced after %d check(s)", status.name, result.attempts)
            self.bus.emit(SecretSynced(secret_name=status.name, attempts=result.attempts, **self.event_ctx))
        else:
            status.state = SecretState.TIMED_OUT
            log.warning(
                "[propagate] %s not present after %d checks (%ss)",
                status.name, result.attempts, self.settings.timeout,
            )
            self.bus.emit(SecretTimedOut(secret_name=status.name, attempts=result.attempts, timeout_s=self.settings.timeout, **self.event_ctx))

    # ------------------------------------------------------------
    def check(self, target_repo: str, names: Iterable[str]) -> tuple[List[str], List[str]]:
        """Split ``names`` into present and missing. An unreadable inventory counts as all missing."""
        try:
            inventory = self.client.list_secret_names(target_repo)
        except GitHubError as e:
            log.warning("[propagate] could not list secrets of %s: %s", target_repo, e)
            inventory = set()
        names = list(dict.fromkeys(names))
        present = [n for n in names if n in inventory]
        missing = [n for n in names if n not in inventory]
        self.bus.emit(SecretsChecked(target_repo=target_repo, present=present, missing=missing, **self.event_ctx))
        return present, missing

    def sync(self, target_repo: Optional[str], names: Iterable[str]) -> PropagationReport:
        names = list(dict.fromkeys(names))
        for n in names:
            if not validate_secret_name(n):
                raise ValueError(f"invalid secret name {n!r}")

        report = PropagationReport(target_repo=target_repo, source_repo=self.source_repo)
        if not target_repo:
            log.warning("[propagate] no target repository detected; skipping secret check")
            report.skipped = True
            return report

        report.statuses = {n: SecretStatus(n) for n in names}
        present, missing = self.check(target_repo, names)
        for n in present:
            report.statuses[n].state = SecretState.PRESENT
        for n in missing:
            report.statuses[n].state = SecretState.MISSING

        log.info(
            "[propagate] %s: %d present, %d missing",
            target_repo, len(present), len(missing),
        )

        for n in missing:
            status = report.statuses[n]
            if self._dispatch(target_repo, status):
                self._poll(target_repo, status)

        unresolved = report.unresolved
        if not unresolved:
            report.outcome = Outcome.SUCCESS
        else:
            report.outcome = Outcome.FAILED if self.ci else Outcome.DEGRADED
            log.log(
                logging.ERROR if self.ci else logging.WARNING,
                "[propagate] unresolved=%d (%s). Check the export workflow at %s",
                len(unresolved), ", ".join(unresolved), report.actions_url,
            )

        self.bus.emit(
            PropagationSummary(
                target_repo=target_repo,
                outcome=report.outcome.value,
                synced=sum(1 for s in report.statuses.values() if s.state is SecretState.SYNCED),
                unresolved=len(unresolved),
                **self.event_ctx,
            )
        )
        return report


@dataclass
class PropagateSummary:
    succeeded: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)

    @property
    def outcome(self) -> Outcome:
        return Outcome.FAILED if self.failed else Outcome.SUCCESS


def propagate(
    client: GitHubClient,
    target_repo: str,
    names: Iterable[str],
    bundle: Mapping[str, str],
) -> PropagateSummary:
    """Write the named values from ``bundle`` directly into ``target_repo``."""
    summary = PropagateSummary()
    for name in dict.fromkeys(names):
        value = bundle.get(name)
        if not value:
            log.warning("[propagate] %s not found in bundle, skipping", name)
            summary.failed.append(name)
            continue
        log.info("[propagate] setting %s in %s (%s)", name, target_repo, preview(name, value))
        try:
            client.put_secret(target_repo, name, value)
        except GitHubError as e:
            log.error("[propagate] failed to set %s: %s", name, e)
            summary.failed.append(name)
            continue
        summary.succeeded.append(name)

    log.info("[propagate] %d succeeded, %d failed", len(summary.succeeded), len(summary.failed))
    return summary
