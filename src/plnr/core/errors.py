from __future__ import annotations


class PlanError(Exception):
    pass


class DuplicateKeyError(PlanError, ValueError):
    def __init__(self, kind: str, name: str) -> None:
        super().__init__(f"Duplicate {kind} name: {name}")
        self.kind = kind
        self.name = name

    def __reduce__(self):
        return (type(self), (self.kind, self.name))


class NotFoundError(PlanError, LookupError):
    def __init__(self, kind: str, name: str) -> None:
        super().__init__(f"Unknown {kind}: {name}")
        self.kind = kind
        self.name = name

    def __reduce__(self):
        return (type(self), (self.kind, self.name))


class UnresolvedReferenceError(NotFoundError):
    """An analysis points at an argset (or function) that does not exist."""

    def __init__(self, analysis_name: str, kind: str, name: str) -> None:
        PlanError.__init__(
            self, f"Analysis {analysis_name!r} references unknown {kind}: {name}"
        )
        self.analysis_name = analysis_name
        self.kind = kind
        self.name = name

    def __reduce__(self):
        return (type(self), (self.analysis_name, self.kind, self.name))


class AnalysisExecutionError(PlanError):
    """Wraps an exception raised inside a user analysis function."""

    def __init__(
        self, analysis_name: str, original: BaseException, traceback: str = ""
    ) -> None:
        super().__init__(
            f"{analysis_name}: {type(original).__name__}: {original}"
        )
        self.analysis_name = analysis_name
        self.original = original
        self.traceback = traceback

    def __reduce__(self):
        return (type(self), (self.analysis_name, self.original, self.traceback))

    def _key(self) -> tuple:
        original = self.original
        return (type(self), self.analysis_name, type(original), str(original))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, AnalysisExecutionError):
            return NotImplemented
        return self._key() == other._key()

    def __hash__(self) -> int:
        return hash(self._key())


class WorkerFailureError(PlanError):
    """A parallel worker ended without reporting an outcome."""

    def __init__(self, analysis_name: str, reason: str) -> None:
        super().__init__(f"{analysis_name}: worker failed: {reason}")
        self.analysis_name = analysis_name
        self.reason = reason

    def __reduce__(self):
        return (type(self), (self.analysis_name, self.reason))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, WorkerFailureError):
            return NotImplemented
        return (self.analysis_name, self.reason) == (other.analysis_name, other.reason)

    def __hash__(self) -> int:
        return hash((type(self), self.analysis_name, self.reason))


class DataLoadCycleError(PlanError):
    def __init__(self, chain: list[str]) -> None:
        super().__init__(f"Cycle detected while loading data: {' -> '.join(chain)}")
        self.chain = list(chain)

    def __reduce__(self):
        return (type(self), (self.chain,))


class OptionsError(PlanError, ValueError):
    pass
