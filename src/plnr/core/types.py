from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable

from .errors import PlanError
from .utils import load_entrypoint


@dataclass(frozen=True)
class FunctionRef:
    """A callable given directly or as an importable `module:attr` string."""

    fn: Callable[..., Any] | None = None
    fn_name: str | None = None

    @classmethod
    def of(
        cls, fn: Callable[..., Any] | None = None, fn_name: str | None = None
    ) -> "FunctionRef | None":
        if fn is not None and fn_name is not None:
            raise ValueError("Pass either fn or fn_name, not both")
        if fn is None and fn_name is None:
            return None
        if fn is not None and not callable(fn):
            raise TypeError(f"fn must be callable, got {type(fn).__name__}")
        return cls(fn=fn, fn_name=fn_name)

    @property
    def label(self) -> str:
        if self.fn_name is not None:
            return self.fn_name
        module = getattr(self.fn, "__module__", None) or ""
        qualname = getattr(self.fn, "__qualname__", None) or repr(self.fn)
        return f"{module}:{qualname}" if module else qualname

    def resolve(self) -> Callable[..., Any]:
        if self.fn is not None:
            return self.fn
        assert self.fn_name is not None
        target = load_entrypoint(self.fn_name)
        if not callable(target):
            raise TypeError(f"{self.fn_name} is not callable")
        return target


class LoadState(str, Enum):
    UNLOADED = "unloaded"
    LOADING = "loading"
    LOADED = "loaded"


@dataclass
class DataEntry:
    name: str
    fn_ref: FunctionRef | None = None
    direct: Any = None
    kwargs: dict[str, Any] = field(default_factory=dict)
    state: LoadState = LoadState.UNLOADED
    value: Any = None
    value_hash: str | None = None

    @property
    def kind(self) -> str:
        return "fn" if self.fn_ref is not None else "direct"


@dataclass
class ArgsetEntry:
    name: str
    fields: dict[str, Any]


@dataclass
class AnalysisEntry:
    name: str
    fn_ref: FunctionRef | None
    argset_name: str


@dataclass(frozen=True)
class ResolvedAnalysis:
    name: str
    fn: Callable[..., Any]
    argset_name: str
    argset: dict[str, Any]


@dataclass
class Outcome:
    analysis_name: str
    status: str
    value: Any = None
    error: PlanError | None = None
    elapsed_s: float | None = field(default=None, compare=False)

    @property
    def ok(self) -> bool:
        return self.status == "ok"

    def unwrap(self) -> Any:
        if self.error is not None:
            raise self.error
        return self.value

    def summary(self) -> dict[str, Any]:
        return {
            "status": self.status,
            "error": str(self.error) if self.error is not None else None,
            "elapsed_s": self.elapsed_s,
        }
