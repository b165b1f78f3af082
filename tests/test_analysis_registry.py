from __future__ import annotations

import pandas as pd
import pytest

from plnr.core.errors import DuplicateKeyError, NotFoundError, UnresolvedReferenceError
from plnr.core.plan import Plan

from plan_fixtures import scaled_sum


def test_add_analysis_with_inline_fields_creates_argset(plan):
    name = plan.add_analysis("north", fn=scaled_sum, region="north", scale=2)
    assert name == "north"
    assert plan.get_argset("north") == {"region": "north", "scale": 2}
    resolved = plan.get_analysis("north")
    assert resolved.fn is scaled_sum
    assert resolved.argset_name == "north"
    assert resolved.argset == {"region": "north", "scale": 2}


def test_add_analysis_binds_same_named_argset_by_default(plan):
    plan.add_analysis("north", fn=scaled_sum)
    plan.add_argset("north", region="north", scale=1)
    assert plan.get_analysis("north").argset_name == "north"


def test_add_analysis_explicit_argset(plan):
    plan.add_argset("shared", region="south", scale=1)
    plan.add_analysis("a", fn=scaled_sum, argset_name="shared")
    plan.add_analysis("b", fn=scaled_sum, argset_name="shared")
    assert plan.get_analysis("a").argset is plan.get_analysis("b").argset


def test_add_analysis_rejects_argset_name_and_fields(plan):
    with pytest.raises(ValueError):
        plan.add_analysis("a", fn=scaled_sum, argset_name="x", region="north")


def test_add_analysis_rejects_fn_and_fn_name(plan):
    with pytest.raises(ValueError):
        plan.add_analysis("a", fn=scaled_sum, fn_name="plan_fixtures:scaled_sum")


def test_duplicate_analysis_name_rejected(plan):
    plan.add_analysis("a", fn=scaled_sum, argset_name="x")
    with pytest.raises(DuplicateKeyError):
        plan.add_analysis("a", fn=scaled_sum, argset_name="y")


def test_get_analysis_unknown(plan):
    with pytest.raises(NotFoundError):
        plan.get_analysis("missing")


def test_unresolved_argset_detected_on_lookup_not_registration(plan):
    plan.add_analysis("a", fn=scaled_sum, argset_name="later")
    with pytest.raises(UnresolvedReferenceError) as excinfo:
        plan.get_analysis("a")
    assert isinstance(excinfo.value, NotFoundError)
    assert excinfo.value.name == "later"


def test_missing_function_is_unresolved(plan):
    plan.add_analysis("a", region="north", scale=1)
    with pytest.raises(UnresolvedReferenceError):
        plan.get_analysis("a")


def test_bad_entrypoint_is_unresolved(plan):
    plan.add_analysis("a", fn_name="plan_fixtures:does_not_exist", region="n", scale=1)
    with pytest.raises(UnresolvedReferenceError):
        plan.get_analysis("a")


def test_add_analysis_from_df_creates_inline_argsets():
    plan = Plan()
    df = pd.DataFrame({"region": ["north", "south"], "scale": [1, 2]})
    names = plan.add_analysis_from_df(df, fn=scaled_sum)
    assert names == ["analysis_000001", "analysis_000002"]
    assert plan.get_argset("analysis_000002") == {"region": "south", "scale": 2}
    assert plan.get_analysis("analysis_000001").argset_name == "analysis_000001"


def test_add_analysis_from_list_with_argset_binding():
    plan = Plan()
    plan.add_argset_from_list(
        [{"id": "n", "region": "north", "scale": 1}, {"id": "s", "region": "south", "scale": 1}],
        name_field="id",
    )
    names = plan.add_analysis_from_list(
        [{"name": "first", "argset": "n"}, {"name": "second", "argset": "s"}],
        fn_name="plan_fixtures:scaled_sum",
        name_field="name",
        argset_name_field="argset",
    )
    assert names == ["first", "second"]
    assert plan.get_analysis("second").argset == {"region": "south", "scale": 1}
    assert plan.get_analysis("second").fn is scaled_sum


def test_argset_binding_rows_cannot_carry_fields():
    plan = Plan()
    with pytest.raises(ValueError):
        plan.add_analysis_from_list(
            [{"argset": "n", "scale": 3}], fn=scaled_sum, argset_name_field="argset"
        )
    assert len(plan) == 0


def test_name_column_without_name_field_goes_into_inline_argset():
    plan = Plan()
    names = plan.add_analysis_from_list(
        [{"region": "north", "scale": 1}, {"name": "x", "region": "south", "scale": 2}],
        fn=scaled_sum,
    )
    assert names == ["analysis_000001", "analysis_000002"]
    assert plan.get_argset("analysis_000002") == {"name": "x", "region": "south", "scale": 2}
    assert plan.get_analysis("analysis_000002").argset["name"] == "x"

    df = pd.DataFrame({"name": ["y"], "region": ["north"], "scale": [3]})
    assert plan.add_analysis_from_df(df, fn=scaled_sum) == ["analysis_000003"]
    assert plan.get_argset("analysis_000003")["name"] == "y"
    assert len(plan) == 3


def test_missing_argset_binding_is_rejected():
    plan = Plan()
    plan.add_argset("n", region="north", scale=1)
    with pytest.raises(ValueError):
        plan.add_analysis_from_list(
            [{"argset": "n"}, {"argset": float("nan")}],
            fn=scaled_sum,
            argset_name_field="argset",
        )
    df = pd.DataFrame({"argset": pd.Series(["n", None], dtype="string")})
    with pytest.raises(ValueError):
        plan.add_analysis_from_df(df, fn=scaled_sum, argset_name_field="argset")
    assert len(plan) == 0
    assert plan.argsets.names() == ["n"]


def test_batch_analysis_name_clash_with_existing_argset():
    plan = Plan()
    plan.add_argset("taken", region="north")
    with pytest.raises(DuplicateKeyError):
        plan.add_analysis_from_list(
            [{"name": "free", "region": "n"}, {"name": "taken", "region": "s"}],
            fn=scaled_sum,
            name_field="name",
        )
    assert len(plan) == 0


def test_synthesized_analysis_names_skip_existing_argsets():
    plan = Plan()
    plan.add_argset("analysis_000001", region="north")
    name = plan.add_analysis(fn=scaled_sum, region="south", scale=1)
    assert name == "analysis_000002"


def test_apply_analysis_fn_to_all():
    plan = Plan()
    plan.add_analysis_from_list([{"region": "north", "scale": 1}, {"region": "south", "scale": 1}])

    def analysis(data, argset):
        return argset["region"]

    plan.apply_analysis_fn_to_all(fn=analysis)
    assert all(plan.get_analysis(name).fn is analysis for name in plan.analysis_names())
    with pytest.raises(ValueError):
        plan.apply_analysis_fn_to_all()


def test_get_analyses_as_df():
    plan = Plan()
    plan.add_analysis("a", fn_name="plan_fixtures:scaled_sum", argset_name="x")
    df = plan.get_analyses_as_df()
    assert df.to_dict(orient="records") == [
        {"name": "a", "fn": "plan_fixtures:scaled_sum", "argset_name": "x"}
    ]
