import pytest

from kubeseed.bootstrap.engine.component import ComponentContext, ManagedResource, ResourceKind
from kubeseed.bootstrap.engine.guard import (
    ActionPolicy,
    EnsureResult,
    IdempotencyGuard,
    ResourceAction,
)
from kubeseed.errors import DestructiveOperationRequested, ResourceAlreadyExists
from kubeseed.observers.dispatcher import EventBus
from kubeseed.observers.events import ResourceEnsured


class Capture:
    def __init__(self): self.events = []
    def notify(self, ev): self.events.append(ev)


class FakeResource(ManagedResource):
    kind = ResourceKind.SERVICE_SECRET

    def __init__(self, name="thing", *, present=False, stateful=False):
        super().__init__(name, "ns")
        self.present = present
        self.stateful = stateful
        self.calls = []

    def exists(self, ctx):
        self.calls.append("exists")
        return self.present

    def create(self, ctx):
        self.calls.append("create")
        self.present = True

    def delete(self, ctx):
        self.calls.append("delete")
        self.present = False

    def reconcile(self, ctx):
        self.calls.append("reconcile")


def _ctx():
    return ComponentContext(kubectl=None, helm=None)


def test_reuse_is_idempotent():
    res = FakeResource()
    guard = IdempotencyGuard(_ctx())
    assert guard.ensure(res) is EnsureResult.CREATED
    assert guard.ensure(res) is EnsureResult.REUSED
    assert guard.ensure(res) is EnsureResult.REUSED
    assert res.calls.count("create") == 1
    assert "delete" not in res.calls


def test_recreate_deletes_then_creates():
    res = FakeResource(present=True)
    guard = IdempotencyGuard(_ctx())
    assert guard.ensure(res, ResourceAction.RECREATE) is EnsureResult.RECREATED
    assert res.calls == ["exists", "delete", "create"]


def test_recreate_of_absent_resource_reports_created():
    res = FakeResource(present=False)
    guard = IdempotencyGuard(_ctx())
    assert guard.ensure(res, ResourceAction.RECREATE) is EnsureResult.CREATED


def test_recreate_stateful_requires_opt_in():
    res = FakeResource(present=True, stateful=True)
    guard = IdempotencyGuard(_ctx(), ActionPolicy(cleanup=True))
    with pytest.raises(DestructiveOperationRequested):
        guard.ensure(res)
    # nothing touched, not even probed
    assert res.calls == []


def test_cleanup_policy_recreates_stateful_when_allowed():
    res = FakeResource(present=True, stateful=True)
    guard = IdempotencyGuard(_ctx(), ActionPolicy(cleanup=True, allow_destructive=True))
    assert guard.ensure(res) is EnsureResult.RECREATED


def test_cleanup_policy_leaves_stateless_resources_alone():
    res = FakeResource(present=True)
    policy = ActionPolicy(cleanup=True)
    assert policy.action_for(res) is ResourceAction.REUSE


def test_fail_if_exists():
    guard = IdempotencyGuard(_ctx())
    with pytest.raises(ResourceAlreadyExists):
        guard.ensure(FakeResource(present=True), ResourceAction.FAIL_IF_EXISTS)
    assert guard.ensure(FakeResource(), ResourceAction.FAIL_IF_EXISTS) is EnsureResult.CREATED


def test_override_by_name_wins():
    policy = ActionPolicy(overrides={"special": ResourceAction.FAIL_IF_EXISTS})
    assert policy.action_for(FakeResource("special")) is ResourceAction.FAIL_IF_EXISTS
    assert policy.action_for(FakeResource("other")) is ResourceAction.REUSE


def test_ensure_emits_event():
    cap = Capture()
    guard = IdempotencyGuard(_ctx(), bus=EventBus([cap]))
    guard.ensure(FakeResource(), step="s1")
    ev = cap.events[0]
    assert isinstance(ev, ResourceEnsured)
    assert (ev.step, ev.action, ev.result) == ("s1", "reuse", "created")
