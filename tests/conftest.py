from __future__ import annotations

import pytest

from plnr.core.options import PlanOptions, reset_options
from plnr.core.plan import Plan

from plan_fixtures import load_cases


@pytest.fixture(autouse=True)
def _clean_options(monkeypatch):
    for name in ("PLNR_VERBOSE", "PLNR_PROGRESS", "PLNR_MAX_WORKERS", "PLNR_PARALLEL_BACKEND"):
        monkeypatch.delenv(name, raising=False)
    reset_options()
    yield
    reset_options()


@pytest.fixture()
def messages() -> list[str]:
    return []


@pytest.fixture()
def plan(messages: list[str]) -> Plan:
    plan = Plan(options=PlanOptions(), logger=messages.append)
    plan.add_data("cases", fn=load_cases)
    plan.add_data("threshold", direct=3)
    return plan
