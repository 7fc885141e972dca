import logging

import pytest
from typer.testing import CliRunner

import kubeseed.cli.app as cli
from kubeseed.bootstrap.engine.component import ManagedResource, ResourceKind
from kubeseed.bootstrap.infrastructure.models import ProvisionStep

runner = CliRunner()


@pytest.fixture(autouse=True)
def _isolated(monkeypatch, tmp_path):
    monkeypatch.setenv("HOME", str(tmp_path))
    for var in ("CI", "GITHUB_ACTIONS", "GITLAB_CI", "GITHUB_REPOSITORY", "GH_PAT", "GIT_TOKEN", "GIT_SECRET", "GITHUB_TOKEN"):
        monkeypatch.delenv(var, raising=False)
    yield
    logger = logging.getLogger("kubeseed")
    for h in list(logger.handlers):
        h.close()
        logger.removeHandler(h)
    logger.propagate = True


class InstantResource(ManagedResource):
    kind = ResourceKind.NAMESPACE

    def __init__(self, name, fail=False):
        super().__init__(name)
        self.fail = fail
        self.present = False

    def exists(self, ctx):
        return self.present

    def create(self, ctx):
        if self.fail:
            raise RuntimeError("boom")
        self.present = True


class FakeGitHub:
    def __init__(self, inventory):
        self.inventory = set(inventory)
        self.dispatches = []

    def list_secret_names(self, repo):
        return set(self.inventory)

    def dispatch(self, repo, event_type, client_payload):
        self.dispatches.append(client_payload["secret_name"])
        return 204


def _config(tmp_path):
    cfg = tmp_path / "kubeseed.yaml"
    cfg.write_text("propagation:\n  source_repo: acme/secrets\n  interval: 0.01\n  timeout: 0.03\n")
    return cfg


def _fake_github(monkeypatch, gh):
    monkeypatch.setenv("GH_PAT", "ghp_example_token_value")
    monkeypatch.setattr(cli, "GitHubClient", lambda token, **kw: gh)


def test_provision_success(monkeypatch):
    monkeypatch.setattr(
        cli, "build_steps",
        lambda settings, kubectl: [ProvisionStep("storage-class", [InstantResource("a")])],
    )
    result = runner.invoke(cli.app, ["provision"])

    assert result.exit_code == 0, result.output
    assert "storage-class" in result.output
    assert "outcome=success" in result.output


def test_provision_failure_exits_1_and_skips_dependents(monkeypatch):
    monkeypatch.setattr(
        cli, "build_steps",
        lambda settings, kubectl: [
            ProvisionStep("database-server", [InstantResource("db", fail=True)]),
            ProvisionStep("service-database:web", [InstantResource("web")], requires=["database-server"]),
        ],
    )
    result = runner.invoke(cli.app, ["provision"])

    assert result.exit_code == 1
    assert "outcome=failed" in result.output
    assert "unresolved=2" in result.output
    assert "blocked by database-server" in result.output


def test_provision_rejects_unknown_step():
    result = runner.invoke(cli.app, ["provision", "--only", "ceph"])
    assert result.exit_code != 0
    assert "outcome=" not in result.output


def test_sync_secrets_all_present(monkeypatch, tmp_path):
    gh = FakeGitHub({"K1", "K2"})
    _fake_github(monkeypatch, gh)

    result = runner.invoke(cli.app, ["sync-secrets", "K1", "K2", "--target", "acme/app", "-c", str(_config(tmp_path))])

    assert result.exit_code == 0, result.output
    assert gh.dispatches == []


@pytest.mark.parametrize("ci,code,outcome", [(True, 1, "failed"), (False, 2, "degraded")])
def test_sync_secrets_timeout(monkeypatch, tmp_path, ci, code, outcome):
    if ci:
        monkeypatch.setenv("CI", "true")
    gh = FakeGitHub({"K1"})
    _fake_github(monkeypatch, gh)

    result = runner.invoke(cli.app, ["sync-secrets", "K1", "K3", "--target", "acme/app", "-c", str(_config(tmp_path))])

    assert result.exit_code == code
    assert gh.dispatches == ["K3"]
    assert f"outcome={outcome}" in result.output
    assert "unresolved=1" in result.output
    assert "https://github.com/acme/secrets/actions" in result.output


def test_sync_secrets_without_token_fails(tmp_path):
    result = runner.invoke(cli.app, ["sync-secrets", "K1", "--target", "acme/app", "-c", str(_config(tmp_path))])
    assert result.exit_code == 1


def test_sync_secrets_without_target_is_skipped(monkeypatch, tmp_path):
    gh = FakeGitHub(set())
    _fake_github(monkeypatch, gh)

    result = runner.invoke(cli.app, ["sync-secrets", "K1", "-c", str(_config(tmp_path))])

    assert result.exit_code == 0
    assert gh.dispatches == []


def test_sync_secrets_without_target_or_token_is_skipped(monkeypatch, tmp_path):
    monkeypatch.setattr(cli, "GitHubClient", lambda token, **kw: pytest.fail("no client expected"))

    result = runner.invoke(cli.app, ["sync-secrets", "K1", "-c", str(_config(tmp_path))])

    assert result.exit_code == 0, result.output
    assert "outcome=success" in result.output


def test_propagate_missing_bundle(monkeypatch, tmp_path):
    _fake_github(monkeypatch, FakeGitHub(set()))
    result = runner.invoke(cli.app, ["propagate", "acme/app", "K1", "--bundle", str(tmp_path / "nope.txt")])
    assert result.exit_code == 1


def test_run_log_never_contains_the_token(monkeypatch, tmp_path):
    gh = FakeGitHub({"K1"})
    _fake_github(monkeypatch, gh)
    runner.invoke(cli.app, ["sync-secrets", "K1", "--target", "acme/app", "-c", str(_config(tmp_path)), "--debug"])

    logs = list((tmp_path / ".kubeseed" / "logs").glob("*.log"))
    assert logs
    assert all("ghp_example_token_value" not in p.read_text() for p in logs)
