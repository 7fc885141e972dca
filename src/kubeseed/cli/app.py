# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/kubeseed/cli/app.py

from __future__ import annotations

from pathlib import Path
from typing import List, Optional

import typer

from kubeseed.bootstrap.engine.component import ComponentContext
from kubeseed.bootstrap.engine.guard import ActionPolicy, IdempotencyGuard
from kubeseed.bootstrap.infrastructure.manager import InfrastructureManager
from kubeseed.bootstrap.infrastructure.models import InfraSelection, ProvisionReport, parse_infra_flag
from kubeseed.bootstrap.infrastructure.registry import build_service_steps, build_steps
from kubeseed.config.loader import load_config, settings_from_env
from kubeseed.config.models import ServiceSettings, Settings
from kubeseed.errors import KubeseedError
from kubeseed.gitops.repo import GitOpsRepo, update_helm_values
from kubeseed.helm.cli_runner import HelmCliRunner
from kubeseed.kube.kubectl import KubectlRunner
from kubeseed.logging.log import init_logging
from kubeseed.logging.masking import redact
from kubeseed.observers.dispatcher import EventBus
from kubeseed.observers.events import new_ctx
from kubeseed.observers.jsonfile import JsonFileObserver
from kubeseed.observers.logger import LoggerObserver
from kubeseed.outcome import Outcome
from kubeseed.secrets.export import load_bundle, publish_bundle
from kubeseed.secrets.github import GitHubClient
from kubeseed.secrets.propagation import SecretPropagator, propagate as propagate_secrets
from kubeseed.secrets.tokens import detect_target_repo, is_ci, resolve_token


# ------------------------------------------------------------------------------
# CLI setup
# ------------------------------------------------------------------------------

app = typer.Typer(help="kubeseed: cluster bootstrap and secret propagation")

ConfigOption = typer.Option(None, "--config", "-c", help="kubeseed YAML config")
DebugOption = typer.Option(False, "--debug")


class _Run:
    """Per-invocation wiring: logging, settings, event bus."""

    def __init__(self, config: Optional[Path], debug: bool, *, context: Optional[str] = None):
        self.logger, self.run_id, self.log_path = init_logging(verbose=debug)
        base = load_config(config) if config else None
        self.settings: Settings = settings_from_env(base)
        if context:
            self.settings.provision.kube_context = context
        self.bus = EventBus(observers=[
            LoggerObserver(self.logger),
            JsonFileObserver(self.log_path.parent / f"{self.run_id}.jsonl"),
        ])
        self.ci = is_ci()
        self.event_ctx = new_ctx(
            env="ci" if self.ci else "local",
            context=self.settings.provision.kube_context,
            run_id=self.run_id,
        )

        typer.echo(f"  Run ID   : {self.run_id}")
        typer.echo(f"  Logs     : {self.log_path}")

    def component_ctx(self) -> ComponentContext:
        p = self.settings.provision
        return ComponentContext(
            kubectl=KubectlRunner(kubeconfig=p.kubeconfig, context=p.kube_context),
            helm=HelmCliRunner(kube_context=p.kube_context, kubeconfig=p.kubeconfig),
        )

    def manager(self, ctx: ComponentContext) -> InfrastructureManager:
        p = self.settings.provision
        guard = IdempotencyGuard(
            ctx,
            ActionPolicy(cleanup=p.enable_cleanup, allow_destructive=p.allow_destructive),
            bus=self.bus,
            event_ctx=self.event_ctx,
        )
        return InfrastructureManager(ctx=ctx, guard=guard, bus=self.bus, event_ctx=self.event_ctx)

    def github(self) -> GitHubClient:
        _, token = resolve_token()
        return GitHubClient(token, api_url=self.settings.propagation.api_url)


def _finish(outcome: Outcome, *, unresolved: int = 0) -> None:
    color = {
        Outcome.SUCCESS: typer.colors.GREEN,
        Outcome.DEGRADED: typer.colors.YELLOW,
        Outcome.FAILED: typer.colors.RED,
    }[outcome]
    typer.secho(f"outcome={outcome.value}", fg=color, bold=True)
    if outcome is not Outcome.SUCCESS:
        typer.echo(f"unresolved={unresolved}")
    raise typer.Exit(code=outcome.exit_code)


def _report_provision(report: ProvisionReport) -> None:
    typer.echo("")
    for name, r in report.results.items():
        line = f"  {name:<40} {r.state.value}"
        if r.error:
            line += f"  ({redact(r.error)})"
        typer.echo(line)
    unresolved = sum(
        1 for r in report.results.values()
        if r.selected and r.state.value in ("failed", "degraded", "skipped")
    )
    _finish(report.outcome, unresolved=unresolved)


def _fail(e: Exception) -> None:
    typer.secho(f"error: {redact(str(e))}", fg=typer.colors.RED, err=True)
    raise typer.Exit(code=Outcome.FAILED.exit_code)


# ------------------------------------------------------------------------------
# Provisioning
# ------------------------------------------------------------------------------

@app.command()
def provision(
    config: Optional[Path] = ConfigOption,
    only: Optional[str] = typer.Option(
        None,
        "--only",
        help="Comma-separated steps to run (default: all)",
    ),
    cleanup: bool = typer.Option(False, "--cleanup", help="Recreate database and cache servers"),
    allow_destructive: bool = typer.Option(False, "--allow-destructive"),
    context: Optional[str] = typer.Option(None, "--context"),
    debug: bool = DebugOption,
):
    """Provision cluster infrastructure in dependency order."""
    typer.secho("kubeseed provision", bold=True)
    run = _Run(config, debug, context=context)
    p = run.settings.provision
    p.enable_cleanup = p.enable_cleanup or cleanup
    p.allow_destructive = p.allow_destructive or allow_destructive

    try:
        selection = parse_infra_flag(only)
    except ValueError as e:
        raise typer.BadParameter(str(e))

    ctx = run.component_ctx()
    try:
        steps = build_steps(settings=run.settings, kubectl=ctx.kubectl)
        report = run.manager(ctx).deploy(steps, selection)
    except KubeseedError as e:
        _fail(e)
    _report_provision(report)


@app.command("service-db")
def service_db(
    service: str = typer.Argument(..., help="Service name, e.g. game-stats-api"),
    db_name: Optional[str] = typer.Option(None, "--db-name"),
    db_user: Optional[str] = typer.Option(None, "--db-user"),
    config: Optional[Path] = ConfigOption,
    debug: bool = DebugOption,
):
    """Create (or converge) a service's database and login role."""
    _run_service(service, "service-database", config, debug, database_name=db_name, database_user=db_user)


@app.command("service-secrets")
def service_secrets(
    service: str = typer.Argument(..., help="Service name, e.g. game-stats-api"),
    secret_name: Optional[str] = typer.Option(None, "--secret-name"),
    db_name: Optional[str] = typer.Option(None, "--db-name"),
    db_user: Optional[str] = typer.Option(None, "--db-user"),
    config: Optional[Path] = ConfigOption,
    debug: bool = DebugOption,
):
    """Create (or update) a service's connection secret."""
    _run_service(
        service, "service-secret", config, debug,
        database_name=db_name, database_user=db_user, secret_name=secret_name,
    )


def _run_service(service: str, step: str, config: Optional[Path], debug: bool, **overrides) -> None:
    typer.secho(f"kubeseed {step} {service}", bold=True)
    run = _Run(config, debug)
    ctx = run.component_ctx()
    try:
        svc = ServiceSettings(name=service, **{k: v for k, v in overrides.items() if v})
        steps = build_service_steps(svc, settings=run.settings, kubectl=ctx.kubectl, requires_server=False)
    except ValueError as e:
        raise typer.BadParameter(str(e))
    try:
        report = run.manager(ctx).deploy(steps, InfraSelection(components={step}))
    except KubeseedError as e:
        _fail(e)
    _report_provision(report)


# ------------------------------------------------------------------------------
# Secrets
# ------------------------------------------------------------------------------

@app.command("sync-secrets")
def sync_secrets(
    names: List[str] = typer.Argument(..., help="Secret names the target repository needs"),
    target: Optional[str] = typer.Option(None, "--target", help="owner/name (default: GITHUB_REPOSITORY)"),
    source: Optional[str] = typer.Option(None, "--source", help="Source-of-truth repository"),
    config: Optional[Path] = ConfigOption,
    debug: bool = DebugOption,
):
    """Ensure the target repository holds the named secrets."""
    typer.secho("kubeseed sync-secrets", bold=True)
    run = _Run(config, debug)
    prop = run.settings.propagation
    source_repo = source or prop.source_repo
    if not source_repo:
        _fail(ValueError("source repository not set (--source / SOURCE_SECRETS_REPO)"))

    try:
        target_repo = detect_target_repo(target)
        # no target means nothing to check, so no token is needed
        propagator = SecretPropagator(
            run.github() if target_repo else None,
            source_repo=source_repo,
            settings=prop,
            ci=run.ci,
            bus=run.bus,
            event_ctx=run.event_ctx,
        )
        report = propagator.sync(target_repo, names)
    except (KubeseedError, ValueError) as e:
        _fail(e)

    for name, status in report.statuses.items():
        typer.echo(f"  {name:<32} {status.state.value}")
    if report.unresolved:
        typer.echo(f"Check the export workflow: {report.actions_url}")
    _finish(report.outcome, unresolved=len(report.unresolved))


@app.command()
def propagate(
    target: str = typer.Argument(..., help="owner/name of the target repository"),
    names: List[str] = typer.Argument(..., help="Secret names to copy"),
    bundle: Path = typer.Option(..., "--bundle", "-b", help="Secrets export file"),
    debug: bool = DebugOption,
):
    """Write secrets from an export bundle straight into a repository."""
    typer.secho("kubeseed propagate", bold=True)
    run = _Run(None, debug)
    try:
        summary = propagate_secrets(run.github(), target, names, load_bundle(bundle))
    except (KubeseedError, FileNotFoundError) as e:
        _fail(e)
    typer.echo(f"Summary: {len(summary.succeeded)} succeeded, {len(summary.failed)} failed")
    _finish(summary.outcome, unresolved=len(summary.failed))


@app.command("publish-bundle")
def publish(
    bundle: Path = typer.Argument(..., help="Secrets export file"),
    repo: Optional[str] = typer.Option(None, "--repo", help="Source repository (default: SOURCE_SECRETS_REPO)"),
    config: Optional[Path] = ConfigOption,
    debug: bool = DebugOption,
):
    """Store an export bundle as the source repository's bundle secret."""
    typer.secho("kubeseed publish-bundle", bold=True)
    run = _Run(config, debug)
    prop = run.settings.propagation
    target = repo or prop.source_repo
    if not target:
        _fail(ValueError("repository not set (--repo / SOURCE_SECRETS_REPO)"))
    try:
        publish_bundle(run.github(), target, bundle, secret_name=prop.bundle_secret_name)
    except (KubeseedError, FileNotFoundError) as e:
        _fail(e)
    _finish(Outcome.SUCCESS)


# ------------------------------------------------------------------------------
# GitOps
# ------------------------------------------------------------------------------

@app.command("update-values")
def update_values(
    app_name: str = typer.Option(..., "--app"),
    tag: str = typer.Option(..., "--tag"),
    image_repository: Optional[str] = typer.Option(None, "--repo", help="Image repository"),
    values_path: Optional[str] = typer.Option(None, "--values-path"),
    config: Optional[Path] = ConfigOption,
    debug: bool = DebugOption,
):
    """Bump an application's image tag in the GitOps repository."""
    typer.secho("kubeseed update-values", bold=True)
    run = _Run(config, debug)
    try:
        _, token = resolve_token()
        repo = GitOpsRepo.from_settings(run.settings.gitops, token=token)
        pushed = update_helm_values(
            repo, app_name, tag,
            image_repository=image_repository,
            values_path=values_path,
        )
    except (KubeseedError, ValueError, FileNotFoundError) as e:
        _fail(e)
    typer.echo("pushed" if pushed else "no changes")
    _finish(Outcome.SUCCESS)


if __name__ == "__main__":
    app()
