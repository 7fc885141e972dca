from kubeseed.bootstrap.engine.component import ComponentContext, ManagedResource, ResourceKind
from kubeseed.bootstrap.engine.guard import ActionPolicy, IdempotencyGuard
from kubeseed.bootstrap.infrastructure.manager import InfrastructureManager
from kubeseed.bootstrap.infrastructure.models import (
    InfraSelection,
    ProvisionStep,
    StepState,
    TimeoutPolicy,
)
from kubeseed.logging.masking import clear_registered, register_secret
from kubeseed.observers.dispatcher import EventBus
from kubeseed.observers.events import ProvisionSummary, StepStateChanged
from kubeseed.observers.jsonfile import JsonFileObserver
from kubeseed.outcome import Outcome


class Capture:
    def __init__(self): self.events = []
    def notify(self, ev): self.events.append(ev)


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def sleep(self, s):
        self.now += s

    def __call__(self):
        return self.now


class FakeResource(ManagedResource):
    kind = ResourceKind.DATABASE_SERVER

    def __init__(self, name, *, clock, ready_after=0.0, fail_create=False):
        super().__init__(name, "infra")
        self.clock = clock
        self.ready_after = ready_after
        self.fail_create = fail_create
        self.present = False
        self.created_at = None

    def exists(self, ctx):
        return self.present

    def ready(self, ctx):
        return self.present and self.clock.now - self.created_at >= self.ready_after

    def create(self, ctx):
        if self.fail_create:
            raise RuntimeError(f"helm failed for {self.name}")
        self.present = True
        self.created_at = self.clock.now


def _manager(clock, cap=None):
    ctx = ComponentContext(kubectl=None, helm=None)
    bus = EventBus([cap]) if cap else None
    return InfrastructureManager(
        ctx=ctx,
        guard=IdempotencyGuard(ctx, ActionPolicy()),
        bus=bus,
        sleep=clock.sleep,
        clock=clock,
    )


def _step(name, res, *requires, on_timeout=TimeoutPolicy.WARN, timeout=10):
    return ProvisionStep(
        name=name,
        resources=[res],
        requires=list(requires),
        on_timeout=on_timeout,
        timeout_seconds=timeout,
        poll_interval=1,
    )


def test_all_steps_ready_is_success_and_state_machine_is_visited():
    clock, cap = FakeClock(), Capture()
    steps = [
        _step("storage-class", FakeResource("sc", clock=clock)),
        _step("database-server", FakeResource("pg", clock=clock, ready_after=3), "storage-class"),
    ]
    report = _manager(clock, cap).deploy(steps)

    assert report.outcome is Outcome.SUCCESS
    assert report.by_state(StepState.READY) == ["storage-class", "database-server"]
    states = [e.state for e in cap.events if isinstance(e, StepStateChanged) and e.step == "database-server"]
    assert states == ["ensuring", "waiting", "ready"]
    summary = next(e for e in cap.events if isinstance(e, ProvisionSummary))
    assert summary.outcome == "success"


def test_warn_on_timeout_degrades_and_continues():
    clock = FakeClock()
    steps = [
        _step("ingress-controller", FakeResource("ing", clock=clock, ready_after=1000)),
        _step("gitops-controller", FakeResource("argo", clock=clock), "ingress-controller"),
    ]
    report = _manager(clock).deploy(steps)

    assert report.results["ingress-controller"].state is StepState.DEGRADED
    # degraded pre-conditions do not block
    assert report.results["gitops-controller"].state is StepState.READY
    assert report.outcome is Outcome.DEGRADED


def test_retry_once_waits_a_second_window():
    clock = FakeClock()
    steps = [
        _step("database-server", FakeResource("pg", clock=clock, ready_after=15),
              on_timeout=TimeoutPolicy.RETRY_ONCE, timeout=10),
    ]
    report = _manager(clock).deploy(steps)
    assert report.results["database-server"].state is StepState.READY


def test_retry_once_then_warns():
    clock = FakeClock()
    steps = [
        _step("cache-server", FakeResource("redis", clock=clock, ready_after=1000),
              on_timeout=TimeoutPolicy.RETRY_ONCE, timeout=10),
    ]
    report = _manager(clock).deploy(steps)
    assert report.results["cache-server"].state is StepState.DEGRADED
    assert report.outcome is Outcome.DEGRADED


def test_abort_step_fails_and_skips_dependents_only():
    clock = FakeClock()
    steps = [
        _step("database-server", FakeResource("pg", clock=clock)),
        _step("service-database:a", FakeResource("a_db", clock=clock, ready_after=1000),
              "database-server", on_timeout=TimeoutPolicy.ABORT),
        _step("service-secret:a", FakeResource("a-secrets", clock=clock), "service-database:a"),
        _step("service-database:b", FakeResource("b_db", clock=clock),
              "database-server", on_timeout=TimeoutPolicy.ABORT),
    ]
    report = _manager(clock).deploy(steps)

    assert report.results["service-database:a"].state is StepState.FAILED
    assert "not ready" in report.results["service-database:a"].error
    assert report.results["service-secret:a"].state is StepState.SKIPPED
    assert report.results["service-database:b"].state is StepState.READY
    assert report.outcome is Outcome.FAILED


def test_error_during_ensure_fails_the_step():
    clock = FakeClock()
    steps = [
        _step("ingress-controller", FakeResource("ing", clock=clock, fail_create=True)),
        _step("certificate-issuer", FakeResource("issuer", clock=clock), "ingress-controller"),
    ]
    report = _manager(clock).deploy(steps)
    assert report.results["ingress-controller"].state is StepState.FAILED
    assert "helm failed" in report.results["ingress-controller"].error
    assert report.results["certificate-issuer"].state is StepState.SKIPPED


def test_unselected_steps_are_skipped_without_blocking():
    clock = FakeClock()
    sc = FakeResource("sc", clock=clock)
    steps = [
        _step("storage-class", sc),
        _step("database-server", FakeResource("pg", clock=clock), "storage-class"),
    ]
    report = _manager(clock).deploy(steps, InfraSelection(components={"database-server"}))

    assert report.results["storage-class"].state is StepState.SKIPPED
    assert not report.results["storage-class"].selected
    assert not sc.present
    assert report.results["database-server"].state is StepState.READY
    assert report.outcome is Outcome.SUCCESS


def test_rerun_converges_without_recreating():
    clock = FakeClock()
    pg = FakeResource("pg", clock=clock)
    steps = [_step("database-server", pg)]
    mgr = _manager(clock)
    first = mgr.deploy(steps)
    created_at = pg.created_at
    clock.now += 100
    second = mgr.deploy(steps)

    assert first.outcome is second.outcome is Outcome.SUCCESS
    assert pg.created_at == created_at
    assert list(second.results["database-server"].ensured.values())[0].value == "reused"


class RacingUserResource(FakeResource):
    def create(self, ctx):
        raise RuntimeError(
            'psql failed on postgres (rc=1): ERROR:  role "game_stats_user" already exists\n'
            'CONTEXT:  SQL statement "CREATE USER game_stats_user WITH PASSWORD \'Zq9pLm3xVb7tRw2K\'"'
        )


def test_failed_step_error_is_redacted_in_report_and_jsonl(tmp_path):
    register_secret("Zq9pLm3xVb7tRw2K")
    try:
        clock, cap = FakeClock(), Capture()
        path = tmp_path / "run.jsonl"
        ctx = ComponentContext(kubectl=None, helm=None)
        mgr = InfrastructureManager(
            ctx=ctx,
            guard=IdempotencyGuard(ctx, ActionPolicy()),
            bus=EventBus([cap, JsonFileObserver(path)]),
            sleep=clock.sleep,
            clock=clock,
        )

        report = mgr.deploy([_step("service-database:game-stats-api", RacingUserResource("game_stats_user", clock=clock))])

        result = report.results["service-database:game-stats-api"]
        assert result.state is StepState.FAILED
        assert "already exists" in result.error
        assert "Zq9pLm3xVb7tRw2K" not in result.error
        assert "Zq9pLm3xVb7tRw2K" not in path.read_text()
        assert "already exists" in path.read_text()
    finally:
        clear_registered()
