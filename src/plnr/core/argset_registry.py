from __future__ import annotations

from typing import Any, Callable, Iterable, Mapping

import pandas as pd

from .errors import DuplicateKeyError, NotFoundError
from .hashing import NameSequence
from .types import ArgsetEntry


def records_from_df(df: pd.DataFrame) -> list[dict[str, Any]]:
    if not isinstance(df, pd.DataFrame):
        raise TypeError(f"Expected a pandas DataFrame, got {type(df).__name__}")
    return [
        {str(key): value for key, value in row.items()}
        for row in df.to_dict(orient="records")
    ]


def records_from_list(items: Iterable[Mapping[str, Any]]) -> list[dict[str, Any]]:
    records: list[dict[str, Any]] = []
    for idx, item in enumerate(items):
        if not isinstance(item, Mapping):
            raise TypeError(f"Item {idx} is not a mapping: {type(item).__name__}")
        records.append(dict(item))
    return records


def is_missing(value: Any) -> bool:
    return value is None or (pd.api.types.is_scalar(value) and bool(pd.isna(value)))


def split_names(
    kind: str,
    records: list[dict[str, Any]],
    name_field: str | None,
    taken: Callable[[str], bool],
) -> list[tuple[str | None, dict[str, Any]]]:
    """Pop `name_field` from every record and check the names are free.

    Returns (name, remaining fields) pairs; name is None when it is to be
    synthesized. Raises before anything is inserted so batches are all-or-nothing.
    """

    out: list[tuple[str | None, dict[str, Any]]] = []
    seen: set[str] = set()
    for idx, record in enumerate(records):
        fields = dict(record)
        name: str | None = None
        if name_field is not None:
            if name_field not in fields:
                raise ValueError(f"Row {idx} has no {name_field!r} field")
            raw = fields.pop(name_field)
            if is_missing(raw):
                raise ValueError(f"Row {idx} has an empty {name_field!r}")
            name = str(raw)
            if not name:
                raise ValueError(f"Row {idx} has an empty {name_field!r}")
            if name in seen or taken(name):
                raise DuplicateKeyError(kind, name)
            seen.add(name)
        out.append((name, fields))
    return out


class ArgsetRegistry:
    def __init__(self) -> None:
        self._entries: dict[str, ArgsetEntry] = {}
        self._names = NameSequence("argset")

    def __contains__(self, name: object) -> bool:
        return name in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def names(self) -> list[str]:
        return list(self._entries)

    def next_name(self) -> str:
        return self._names.next(self._entries)

    def add_argset(self, name: str | None = None, **fields: Any) -> str:
        return self.insert(name, fields)

    def insert(self, name: str | None, fields: Mapping[str, Any]) -> str:
        # Fields arrive as a mapping so a column called "name" stays a field.
        if name is None:
            name = self.next_name()
        elif not isinstance(name, str) or not name:
            raise ValueError("Argset name must be a non-empty string")
        elif name in self._entries:
            raise DuplicateKeyError("argset", name)
        self._entries[name] = ArgsetEntry(name=name, fields=dict(fields))
        return name

    def _add_records(
        self, records: list[dict[str, Any]], name_field: str | None
    ) -> list[str]:
        rows = split_names("argset", records, name_field, self.__contains__)
        return [self.insert(name, fields) for name, fields in rows]

    def add_argset_from_df(
        self, df: pd.DataFrame, name_field: str | None = None
    ) -> list[str]:
        return self._add_records(records_from_df(df), name_field)

    def add_argset_from_list(
        self, items: Iterable[Mapping[str, Any]], name_field: str | None = None
    ) -> list[str]:
        return self._add_records(records_from_list(items), name_field)

    def get_argset(self, name: str) -> dict[str, Any]:
        try:
            return self._entries[name].fields
        except KeyError:
            raise NotFoundError("argset", name) from None

    def apply_action_fn_to_all_argsets(
        self, fn: Callable[[dict[str, Any]], Mapping[str, Any]]
    ) -> None:
        for name in list(self._entries):
            entry = self._entries.get(name)
            if entry is None:
                continue
            updated = fn(entry.fields)
            if not isinstance(updated, Mapping):
                raise TypeError(
                    f"Action fn returned {type(updated).__name__} for argset {name!r}"
                )
            entry.fields = dict(updated)

    def get_argsets_as_df(self) -> pd.DataFrame:
        rows = [{"name": entry.name, **entry.fields} for entry in self._entries.values()]
        if not rows:
            return pd.DataFrame(columns=["name"])
        return pd.DataFrame(rows)

    def clear(self) -> None:
        self._entries.clear()
        self._names.reset()
