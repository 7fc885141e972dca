import pytest

from kubeseed.bootstrap.infrastructure.models import ProvisionStep
from kubeseed.bootstrap.infrastructure.planner import (
    CyclicDependencyError,
    UnknownDependencyError,
    plan,
)
from kubeseed.observers.dispatcher import EventBus
from kubeseed.observers.events import PlanComputed, PlanFailed


class Capture:
    def __init__(self): self.events = []
    def notify(self, ev): self.events.append(ev)


def _step(name, *requires):
    return ProvisionStep(name=name, resources=[], requires=list(requires))


def test_plan_orders_dependencies_and_emits_event():
    cap = Capture()
    ordered = plan([_step("c", "b"), _step("b", "a"), _step("a")], bus=EventBus([cap]))
    assert [s.name for s in ordered] == ["a", "b", "c"]
    pc = next(e for e in cap.events if isinstance(e, PlanComputed))
    assert pc.order == ["a", "b", "c"]


def test_plan_keeps_declaration_order_for_independent_steps():
    steps = [
        _step("storage-class"),
        _step("ingress-controller", "storage-class"),
        _step("database-server", "storage-class"),
        _step("cache-server", "storage-class"),
    ]
    assert [s.name for s in plan(steps)] == [
        "storage-class", "ingress-controller", "database-server", "cache-server",
    ]


def test_plan_unknown_dep_raises_and_emits_failure():
    cap = Capture()
    with pytest.raises(UnknownDependencyError):
        plan([_step("x", "missing")], bus=EventBus([cap]))
    pf = next(e for e in cap.events if isinstance(e, PlanFailed))
    assert "unknown step" in pf.error


def test_plan_cycle_detected_and_emits_failure():
    cap = Capture()
    with pytest.raises(CyclicDependencyError):
        plan([_step("a", "b"), _step("b", "a")], bus=EventBus([cap]))
    assert any(isinstance(e, PlanFailed) for e in cap.events)
