from __future__ import annotations

import threading
from typing import Any, Callable, Iterator, Mapping

from .errors import DataLoadCycleError, DuplicateKeyError, NotFoundError
from .hashing import hash_elements, hash_value
from .types import DataEntry, FunctionRef, LoadState


_MISSING = object()


def _noop_logger(msg: str) -> None:
    pass


class LazyDataView(Mapping[str, Any]):
    """Read-only mapping over a registry; entries load on first access."""

    def __init__(self, registry: "DataRegistry") -> None:
        self._registry = registry

    def __getitem__(self, name: str) -> Any:
        if name not in self._registry:
            raise KeyError(name)
        return self._registry.get_data(name)

    def __iter__(self) -> Iterator[str]:
        return iter(self._registry.names())

    def __len__(self) -> int:
        return len(self._registry)


class DataRegistry:
    """Named datasets, each materialized at most once.

    A loader is either a function called as `fn(registry, **kwargs)` (so it can
    pull other datasets through `registry.get_data`) or a direct value returned
    unchanged. Duplicate names are always rejected.
    """

    def __init__(self, logger: Callable[[str], None] | None = None) -> None:
        self._entries: dict[str, DataEntry] = {}
        self._lock = threading.RLock()
        self._loading: list[str] = []
        self.logger = logger or _noop_logger

    def __contains__(self, name: object) -> bool:
        return name in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def names(self) -> list[str]:
        return list(self._entries)

    def add_data(
        self,
        name: str,
        fn: Callable[..., Any] | None = None,
        fn_name: str | None = None,
        direct: Any = _MISSING,
        **kwargs: Any,
    ) -> str:
        if not isinstance(name, str) or not name:
            raise ValueError("Data name must be a non-empty string")
        given = sum(1 for item in (fn, fn_name) if item is not None) + (
            0 if direct is _MISSING else 1
        )
        if given != 1:
            raise ValueError(
                f"Data {name!r}: pass exactly one of fn, fn_name or direct"
            )
        if direct is not _MISSING and kwargs:
            raise ValueError(f"Data {name!r}: extra arguments need a loader function")
        if name in self._entries:
            raise DuplicateKeyError("data", name)
        if direct is _MISSING:
            entry = DataEntry(
                name=name, fn_ref=FunctionRef.of(fn, fn_name), kwargs=dict(kwargs)
            )
        else:
            entry = DataEntry(name=name, direct=direct)
        self._entries[name] = entry
        return name

    def entry(self, name: str) -> DataEntry:
        try:
            return self._entries[name]
        except KeyError:
            raise NotFoundError("data", name) from None

    def get_data(self, name: str) -> Any:
        entry = self.entry(name)
        if entry.state is LoadState.LOADED:
            return entry.value
        with self._lock:
            if entry.state is LoadState.LOADED:
                return entry.value
            if entry.state is LoadState.LOADING:
                start = self._loading.index(name) if name in self._loading else 0
                raise DataLoadCycleError(self._loading[start:] + [name])
            entry.state = LoadState.LOADING
            self._loading.append(name)
            loaded = False
            try:
                value = self._materialize(entry)
                loaded = True
            finally:
                self._loading.pop()
                if not loaded:
                    entry.state = LoadState.UNLOADED
            entry.value = value
            entry.state = LoadState.LOADED
            self.logger(f"[DATA] loaded {name} ({entry.kind})")
        return value

    def _materialize(self, entry: DataEntry) -> Any:
        if entry.fn_ref is None:
            return entry.direct
        loader = entry.fn_ref.resolve()
        return loader(self, **entry.kwargs)

    def get_all_data(self) -> dict[str, Any]:
        return {name: self.get_data(name) for name in self.names()}

    def lazy_view(self) -> LazyDataView:
        return LazyDataView(self)

    def data_hash(self, name: str) -> str:
        entry = self.entry(name)
        entry.value_hash = hash_value(self.get_data(name))
        return entry.value_hash

    def hash_data(self) -> dict[str, Any]:
        hashes = hash_elements(self.get_all_data())
        for name, digest in hashes["current_elements"].items():
            self._entries[name].value_hash = digest
        return hashes

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self._loading.clear()
