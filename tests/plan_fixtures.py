"""Module-level analysis and loader functions.

These live in an importable module so the process backend can pickle them by
reference.
"""

from __future__ import annotations

import os

import pandas as pd

from plnr.core.plan import Plan


def load_cases(registry, n: int = 4) -> pd.DataFrame:
    return pd.DataFrame(
        {
            "region": ["north", "south"] * (n // 2),
            "cases": list(range(1, n + 1)),
        }
    )


def scaled_sum(data, argset) -> int:
    cases = data["cases"]
    subset = cases[cases["region"] == argset["region"]]
    return int(subset["cases"].sum()) * int(argset["scale"])


def fail_on_south(data, argset) -> int:
    if argset["region"] == "south":
        raise ValueError("south is broken")
    return scaled_sum(data, argset)


def crash_worker(data, argset) -> None:
    os._exit(3)


def build_plan() -> Plan:
    plan = Plan()
    plan.add_data("cases", fn=load_cases)
    plan.add_analysis_from_list(
        [
            {"name": "north_1", "region": "north", "scale": 1},
            {"name": "south_2", "region": "south", "scale": 2},
        ],
        fn=scaled_sum,
        name_field="name",
    )
    return plan


def build_failing_plan() -> Plan:
    plan = build_plan()
    plan.apply_analysis_fn_to_all(fn=fail_on_south)
    return plan


PLAN = build_plan()
