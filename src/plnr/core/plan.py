from __future__ import annotations

from typing import Any, Callable, Iterable, Mapping

import pandas as pd

from .analysis_registry import AnalysisRegistry
from .argset_registry import ArgsetRegistry
from .data_registry import DataRegistry
from .execution import ExecutionEngine, RunState
from .options import PlanOptions, get_options
from .types import Outcome, ResolvedAnalysis


class Plan:
    """Data, argsets and analyses, plus the engine that runs them.

    Every analysis function is called as `fn(data, argset)`: `data` is the full
    name -> value mapping of registered datasets and `argset` is the field
    mapping the analysis is bound to.

    Typical use::

        plan = Plan()
        plan.add_data("cases", fn=load_cases)
        plan.add_argset_from_list(expand_list(region=["north", "south"], lag=[1, 7]))
        plan.add_analysis_from_list(..., fn=summarise)
        outcomes = plan.run_all_parallel()
    """

    def __init__(
        self,
        options: PlanOptions | None = None,
        logger: Callable[[str], None] | None = None,
    ) -> None:
        self._options = options or get_options()
        self.logger = logger or self._default_logger
        self.data = DataRegistry(logger=self._log)
        self.argsets = ArgsetRegistry()
        self.analyses = AnalysisRegistry(self.argsets)
        self.engine = ExecutionEngine(self.data, self.analyses, self._options, self._log)

    def _default_logger(self, msg: str) -> None:
        if self._options.verbose:
            print(msg, flush=True)

    def _log(self, msg: str) -> None:
        self.logger(msg)

    @property
    def options(self) -> PlanOptions:
        return self._options

    @options.setter
    def options(self, value: PlanOptions) -> None:
        self._options = value
        self.engine.options = value

    @property
    def state(self) -> RunState:
        return self.engine.state

    def __len__(self) -> int:
        return len(self.analyses)

    def __repr__(self) -> str:
        return (
            f"Plan(data={len(self.data)}, argsets={len(self.argsets)}, "
            f"analyses={len(self.analyses)})"
        )

    # data

    def add_data(
        self,
        name: str,
        fn: Callable[..., Any] | None = None,
        fn_name: str | None = None,
        **kwargs: Any,
    ) -> str:
        return self.data.add_data(name, fn=fn, fn_name=fn_name, **kwargs)

    def get_data(self, name: str) -> Any:
        return self.data.get_data(name)

    def get_all_data(self) -> dict[str, Any]:
        return self.data.get_all_data()

    def hash_data(self) -> dict[str, Any]:
        return self.data.hash_data()

    # argsets

    def add_argset(self, name: str | None = None, **fields: Any) -> str:
        return self.argsets.add_argset(name, **fields)

    def add_argset_from_df(self, df: pd.DataFrame, name_field: str | None = None) -> list[str]:
        return self.argsets.add_argset_from_df(df, name_field=name_field)

    def add_argset_from_list(
        self, items: Iterable[Mapping[str, Any]], name_field: str | None = None
    ) -> list[str]:
        return self.argsets.add_argset_from_list(items, name_field=name_field)

    def get_argset(self, name: str) -> dict[str, Any]:
        return self.argsets.get_argset(name)

    def apply_action_fn_to_all_argsets(
        self, fn: Callable[[dict[str, Any]], Mapping[str, Any]]
    ) -> None:
        self.argsets.apply_action_fn_to_all_argsets(fn)

    def get_argsets_as_df(self) -> pd.DataFrame:
        return self.argsets.get_argsets_as_df()

    # analyses

    def add_analysis(
        self,
        name: str | None = None,
        fn: Callable[..., Any] | None = None,
        fn_name: str | None = None,
        argset_name: str | None = None,
        **fields: Any,
    ) -> str:
        return self.analyses.add_analysis(
            name, fn=fn, fn_name=fn_name, argset_name=argset_name, **fields
        )

    def add_analysis_from_df(
        self,
        df: pd.DataFrame,
        fn: Callable[..., Any] | None = None,
        fn_name: str | None = None,
        name_field: str | None = None,
        argset_name_field: str | None = None,
    ) -> list[str]:
        return self.analyses.add_analysis_from_df(
            df,
            fn=fn,
            fn_name=fn_name,
            name_field=name_field,
            argset_name_field=argset_name_field,
        )

    def add_analysis_from_list(
        self,
        items: Iterable[Mapping[str, Any]],
        fn: Callable[..., Any] | None = None,
        fn_name: str | None = None,
        name_field: str | None = None,
        argset_name_field: str | None = None,
    ) -> list[str]:
        return self.analyses.add_analysis_from_list(
            items,
            fn=fn,
            fn_name=fn_name,
            name_field=name_field,
            argset_name_field=argset_name_field,
        )

    def apply_analysis_fn_to_all(
        self, fn: Callable[..., Any] | None = None, fn_name: str | None = None
    ) -> None:
        self.analyses.apply_analysis_fn_to_all(fn=fn, fn_name=fn_name)

    def get_analysis(self, name: str) -> ResolvedAnalysis:
        return self.analyses.get_analysis(name)

    def analysis_names(self) -> list[str]:
        return self.analyses.names()

    def get_analyses_as_df(self) -> pd.DataFrame:
        return self.analyses.get_analyses_as_df()

    # execution

    def run_one(self, name: str) -> Any:
        return self.engine.run_one(name)

    def run_all(self) -> dict[str, Outcome]:
        return self.engine.run_all()

    def run_all_parallel(
        self, max_workers: int | None = None, backend: str | None = None
    ) -> dict[str, Outcome]:
        return self.engine.run_all_parallel(max_workers=max_workers, backend=backend)

    def reset(self) -> None:
        self.analyses.clear()
        self.argsets.clear()
        self.data.clear()
        self.engine.state = RunState.IDLE
