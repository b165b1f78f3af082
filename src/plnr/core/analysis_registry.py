from __future__ import annotations

from typing import Any, Callable, Iterable, Mapping

import pandas as pd

from .argset_registry import (
    ArgsetRegistry,
    is_missing,
    records_from_df,
    records_from_list,
    split_names,
)
from .errors import DuplicateKeyError, NotFoundError, UnresolvedReferenceError
from .hashing import NameSequence
from .types import AnalysisEntry, FunctionRef, ResolvedAnalysis


class AnalysisRegistry:
    """Named (function, argset name) bindings.

    The argset is looked up by name only when the analysis is resolved, so
    analyses may be declared before their argsets.
    """

    def __init__(self, argsets: ArgsetRegistry) -> None:
        self._entries: dict[str, AnalysisEntry] = {}
        self._argsets = argsets
        self._names = NameSequence("analysis")

    def __contains__(self, name: object) -> bool:
        return name in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def names(self) -> list[str]:
        return list(self._entries)

    def _next_name(self) -> str:
        taken = set(self._entries) | set(self._argsets.names())
        return self._names.next(taken)

    def _register(
        self,
        name: str | None,
        fn_ref: FunctionRef | None,
        argset_name: str | None,
        inline: dict[str, Any] | None,
    ) -> str:
        if name is None:
            name = self._next_name()
        elif not isinstance(name, str) or not name:
            raise ValueError("Analysis name must be a non-empty string")
        elif name in self._entries:
            raise DuplicateKeyError("analysis", name)
        if inline is not None:
            self._argsets.insert(name, inline)
            argset_name = name
        elif argset_name is None:
            argset_name = name
        self._entries[name] = AnalysisEntry(
            name=name, fn_ref=fn_ref, argset_name=str(argset_name)
        )
        return name

    def add_analysis(
        self,
        name: str | None = None,
        fn: Callable[..., Any] | None = None,
        fn_name: str | None = None,
        argset_name: str | None = None,
        **fields: Any,
    ) -> str:
        """Register one analysis.

        Keyword `fields` create an argset named like the analysis. Without
        fields or `argset_name` the analysis binds to the argset of its own name.
        """

        if fields and argset_name is not None:
            raise ValueError("Pass either argset_name or inline argset fields, not both")
        fn_ref = FunctionRef.of(fn, fn_name)
        return self._register(name, fn_ref, argset_name, dict(fields) if fields else None)

    def _add_records(
        self,
        records: list[dict[str, Any]],
        fn_ref: FunctionRef | None,
        name_field: str | None,
        argset_name_field: str | None,
    ) -> list[str]:
        bindings: list[str | None] = []
        if argset_name_field is not None:
            for idx, record in enumerate(records):
                if argset_name_field not in record:
                    raise ValueError(f"Row {idx} has no {argset_name_field!r} field")
                extra = set(record) - {argset_name_field, name_field}
                if extra:
                    raise ValueError(
                        f"Row {idx} binds an argset by name but also has fields: "
                        f"{sorted(extra)}"
                    )
                bound = record[argset_name_field]
                if is_missing(bound) or not str(bound):
                    raise ValueError(f"Row {idx} has an empty {argset_name_field!r}")
                bindings.append(str(bound))
            records = [
                {k: v for k, v in record.items() if k != argset_name_field}
                for record in records
            ]
        else:
            bindings = [None] * len(records)

        def taken(name: str) -> bool:
            if name in self._entries:
                return True
            return argset_name_field is None and name in self._argsets

        rows = split_names("analysis", records, name_field, taken)
        names: list[str] = []
        for (name, fields), argset_name in zip(rows, bindings):
            if argset_name is None:
                names.append(self._register(name, fn_ref, None, fields))
            else:
                names.append(self._register(name, fn_ref, argset_name, None))
        return names

    def add_analysis_from_df(
        self,
        df: pd.DataFrame,
        fn: Callable[..., Any] | None = None,
        fn_name: str | None = None,
        name_field: str | None = None,
        argset_name_field: str | None = None,
    ) -> list[str]:
        return self._add_records(
            records_from_df(df), FunctionRef.of(fn, fn_name), name_field, argset_name_field
        )

    def add_analysis_from_list(
        self,
        items: Iterable[Mapping[str, Any]],
        fn: Callable[..., Any] | None = None,
        fn_name: str | None = None,
        name_field: str | None = None,
        argset_name_field: str | None = None,
    ) -> list[str]:
        return self._add_records(
            records_from_list(items), FunctionRef.of(fn, fn_name), name_field, argset_name_field
        )

    def apply_analysis_fn_to_all(
        self, fn: Callable[..., Any] | None = None, fn_name: str | None = None
    ) -> None:
        fn_ref = FunctionRef.of(fn, fn_name)
        if fn_ref is None:
            raise ValueError("Pass fn or fn_name")
        for entry in self._entries.values():
            entry.fn_ref = fn_ref

    def entry(self, name: str) -> AnalysisEntry:
        try:
            return self._entries[name]
        except KeyError:
            raise NotFoundError("analysis", name) from None

    def get_analysis(self, name: str) -> ResolvedAnalysis:
        entry = self.entry(name)
        if entry.fn_ref is None:
            raise UnresolvedReferenceError(name, "function", "<unset>")
        if entry.argset_name not in self._argsets:
            raise UnresolvedReferenceError(name, "argset", entry.argset_name)
        try:
            fn = entry.fn_ref.resolve()
        except (ImportError, AttributeError, TypeError, ValueError) as exc:
            raise UnresolvedReferenceError(name, "function", entry.fn_ref.label) from exc
        return ResolvedAnalysis(
            name=name,
            fn=fn,
            argset_name=entry.argset_name,
            argset=self._argsets.get_argset(entry.argset_name),
        )

    def get_analyses_as_df(self) -> pd.DataFrame:
        rows = [
            {
                "name": entry.name,
                "fn": entry.fn_ref.label if entry.fn_ref is not None else None,
                "argset_name": entry.argset_name,
            }
            for entry in self._entries.values()
        ]
        return pd.DataFrame(rows, columns=["name", "fn", "argset_name"])

    def clear(self) -> None:
        self._entries.clear()
        self._names.reset()
