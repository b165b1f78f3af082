from __future__ import annotations

import os
import time
import traceback
from concurrent.futures import Executor, Future, ProcessPoolExecutor, ThreadPoolExecutor
from concurrent.futures.process import BrokenProcessPool
from enum import Enum
from typing import Any, Callable, Mapping

from .analysis_registry import AnalysisRegistry
from .data_registry import DataRegistry
from .errors import AnalysisExecutionError, PlanError, WorkerFailureError
from .options import BACKENDS, PlanOptions
from .types import FunctionRef, Outcome, ResolvedAnalysis


class RunState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"


def isolate(
    name: str, fn: Callable[..., Any], data: Mapping[str, Any], argset: Mapping[str, Any]
) -> Outcome:
    """Call `fn(data, argset)` and fold any exception into the Outcome."""

    start = time.perf_counter()
    try:
        value = fn(data, argset)
    except Exception as exc:
        return Outcome(
            analysis_name=name,
            status="error",
            error=AnalysisExecutionError(name, exc, traceback.format_exc()),
            elapsed_s=round(time.perf_counter() - start, 6),
        )
    return Outcome(
        analysis_name=name,
        status="ok",
        value=value,
        elapsed_s=round(time.perf_counter() - start, 6),
    )


def isolate_ref(
    name: str, fn_ref: FunctionRef, data: Mapping[str, Any], argset: Mapping[str, Any]
) -> Outcome:
    # Process workers receive the reference and import the function themselves.
    try:
        fn = fn_ref.resolve()
    except Exception as exc:
        return Outcome(
            analysis_name=name,
            status="error",
            error=AnalysisExecutionError(name, exc, traceback.format_exc()),
        )
    return isolate(name, fn, data, argset)


def worker_failure(name: str, reason: str) -> Outcome:
    return Outcome(
        analysis_name=name,
        status="error",
        error=WorkerFailureError(name, reason),
    )


class ExecutionEngine:
    def __init__(
        self,
        data: DataRegistry,
        analyses: AnalysisRegistry,
        options: PlanOptions,
        logger: Callable[[str], None],
    ) -> None:
        self._data = data
        self._analyses = analyses
        self.options = options
        self.logger = logger
        self.state = RunState.IDLE

    def _begin(self) -> None:
        if self.state is RunState.RUNNING:
            raise PlanError("A run is already in progress")
        self.state = RunState.RUNNING

    def _log_start(self, name: str) -> None:
        if self.options.progress:
            self.logger(f"[RUN] {name}")

    def _log_outcome(self, outcome: Outcome) -> None:
        if outcome.ok:
            if self.options.progress:
                self.logger(f"[OK] {outcome.analysis_name} {outcome.elapsed_s or 0.0:.3f}s")
        else:
            self.logger(f"[ERROR] {outcome.error}")

    def _resolve_all(self) -> list[ResolvedAnalysis]:
        # Fail fast on dangling argset/function references before anything runs.
        return [self._analyses.get_analysis(name) for name in self._analyses.names()]

    def max_workers(self, count: int, requested: int | None = None) -> int:
        cap = requested or self.options.max_workers or os.cpu_count() or 1
        cap = max(1, int(cap))
        return min(max(1, int(count)), cap)

    def run_one(self, name: str) -> Any:
        resolved = self._analyses.get_analysis(name)
        self._begin()
        try:
            self._log_start(name)
            return resolved.fn(self._data.lazy_view(), resolved.argset)
        finally:
            self.state = RunState.COMPLETED

    def run_all(self) -> dict[str, Outcome]:
        resolved = self._resolve_all()
        self._begin()
        try:
            data = self._data.get_all_data()
            outcomes: dict[str, Outcome] = {}
            for item in resolved:
                self._log_start(item.name)
                outcome = isolate(item.name, item.fn, data, item.argset)
                self._log_outcome(outcome)
                outcomes[item.name] = outcome
            return outcomes
        finally:
            self.state = RunState.COMPLETED

    def run_all_parallel(
        self, max_workers: int | None = None, backend: str | None = None
    ) -> dict[str, Outcome]:
        backend = (backend or self.options.parallel_backend).strip().lower()
        if backend not in BACKENDS:
            raise ValueError(f"Unknown parallel backend: {backend}")
        if max_workers is not None and max_workers < 1:
            raise ValueError("max_workers must be >= 1")
        resolved = self._resolve_all()
        self._begin()
        try:
            data = self._data.get_all_data()
            if not resolved:
                return {}
            workers = self.max_workers(len(resolved), max_workers)
            executor: Executor
            if backend == "process":
                executor = ProcessPoolExecutor(max_workers=workers)
            else:
                executor = ThreadPoolExecutor(max_workers=workers)
            slots: dict[str, Outcome | None] = {item.name: None for item in resolved}
            futures: dict[str, Future] = {}
            with executor:
                for item in resolved:
                    self._log_start(item.name)
                    try:
                        futures[item.name] = self._submit(executor, backend, item, data)
                    except BrokenProcessPool as exc:
                        slots[item.name] = worker_failure(
                            item.name, f"{type(exc).__name__}: {exc}"
                        )
                for name, future in futures.items():
                    slots[name] = self._collect(name, future)
            outcomes: dict[str, Outcome] = {}
            for name, outcome in slots.items():
                if outcome is None:
                    outcome = worker_failure(name, "no outcome reported")
                self._log_outcome(outcome)
                outcomes[name] = outcome
            return outcomes
        finally:
            self.state = RunState.COMPLETED

    def _submit(
        self,
        executor: Executor,
        backend: str,
        item: ResolvedAnalysis,
        data: dict[str, Any],
    ) -> Future:
        if backend == "process":
            fn_ref = self._analyses.entry(item.name).fn_ref
            if fn_ref is not None and fn_ref.fn is None:
                return executor.submit(isolate_ref, item.name, fn_ref, data, item.argset)
        return executor.submit(isolate, item.name, item.fn, data, item.argset)

    @staticmethod
    def _collect(name: str, future: Future) -> Outcome:
        exc = future.exception()
        if exc is not None:
            return worker_failure(name, f"{type(exc).__name__}: {exc}")
        outcome = future.result()
        if not isinstance(outcome, Outcome):
            return worker_failure(name, f"unexpected payload {type(outcome).__name__}")
        return outcome
