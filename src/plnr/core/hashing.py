"""Structural content hashing.

`hash_value` walks a value and feeds a tagged, canonical byte encoding into
sha256. Equal values hash equal across calls and processes; sequences and
mappings are order-sensitive, sets are not. `NameSequence` hands out the
synthesized names used for argsets and analyses registered without one.
"""

from __future__ import annotations

import dataclasses
import hashlib
from typing import Any, Container, Mapping

import numpy as np
import pandas as pd


_HASH_KEY = "plnr_hash_key000"


def _feed(hasher: Any, value: Any) -> None:
    if value is None:
        hasher.update(b"N;")
        return
    if isinstance(value, (bool, np.bool_)):
        hasher.update(b"B1;" if value else b"B0;")
        return
    if isinstance(value, (int, np.integer)):
        hasher.update(f"I{int(value)};".encode("utf-8"))
        return
    if isinstance(value, (float, np.floating)):
        hasher.update(f"F{float(value)!r};".encode("utf-8"))
        return
    if isinstance(value, str):
        encoded = value.encode("utf-8")
        hasher.update(f"S{len(encoded)}:".encode("utf-8"))
        hasher.update(encoded)
        return
    if isinstance(value, (bytes, bytearray)):
        hasher.update(f"Y{len(value)}:".encode("utf-8"))
        hasher.update(bytes(value))
        return
    if isinstance(value, pd.DataFrame):
        _feed_frame(hasher, value)
        return
    if isinstance(value, (pd.Series, pd.Index)):
        hasher.update(b"PS")
        _feed(hasher, str(value.dtype))
        _feed(hasher, value.name)
        _feed_pandas_values(hasher, value)
        return
    if isinstance(value, np.ndarray):
        hasher.update(b"A")
        _feed(hasher, str(value.dtype))
        _feed(hasher, list(value.shape))
        if value.dtype == object:
            _feed(hasher, value.ravel().tolist())
        else:
            hasher.update(np.ascontiguousarray(value).tobytes())
        return
    if isinstance(value, Mapping):
        hasher.update(f"M{len(value)}:".encode("utf-8"))
        for key, item in value.items():
            _feed(hasher, key)
            _feed(hasher, item)
        return
    if isinstance(value, (list, tuple)):
        tag = "L" if isinstance(value, list) else "T"
        hasher.update(f"{tag}{len(value)}:".encode("utf-8"))
        for item in value:
            _feed(hasher, item)
        return
    if isinstance(value, (set, frozenset)):
        digests = sorted(hash_value(item) for item in value)
        hasher.update(f"E{len(digests)}:".encode("utf-8"))
        for digest in digests:
            hasher.update(digest.encode("ascii"))
        return
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        hasher.update(b"D")
        _feed(hasher, type(value).__qualname__)
        _feed(hasher, {f.name: getattr(value, f.name) for f in dataclasses.fields(value)})
        return
    if callable(value) and hasattr(value, "__qualname__"):
        hasher.update(b"C")
        _feed(hasher, f"{getattr(value, '__module__', '')}:{value.__qualname__}")
        return
    if hasattr(value, "__dict__"):
        hasher.update(b"O")
        _feed(hasher, type(value).__qualname__)
        _feed(hasher, dict(vars(value)))
        return
    hasher.update(b"R")
    _feed(hasher, f"{type(value).__qualname__}:{value!r}")


def _feed_frame(hasher: Any, frame: pd.DataFrame) -> None:
    hasher.update(f"PF{frame.shape[0]}x{frame.shape[1]}:".encode("utf-8"))
    _feed(hasher, [str(col) for col in frame.columns])
    _feed(hasher, [str(dtype) for dtype in frame.dtypes])
    _feed_pandas_values(hasher, frame)


def _feed_pandas_values(hasher: Any, obj: Any) -> None:
    try:
        row_hashes = pd.util.hash_pandas_object(obj, index=True, hash_key=_HASH_KEY)
    except TypeError:
        # Unhashable cells (lists, dicts); fall back to a structural walk.
        if isinstance(obj, pd.DataFrame):
            _feed(hasher, obj.to_dict(orient="list"))
            _feed(hasher, obj.index.tolist())
        else:
            _feed(hasher, obj.tolist())
        return
    hasher.update(np.ascontiguousarray(row_hashes.to_numpy(dtype="uint64")).tobytes())


def hash_value(value: Any) -> str:
    """Return a hex sha256 digest of `value`'s structure and content."""

    hasher = hashlib.sha256()
    _feed(hasher, value)
    return hasher.hexdigest()


def hash_elements(values: Mapping[str, Any]) -> dict[str, Any]:
    elements = {name: hash_value(item) for name, item in values.items()}
    return {"current": hash_value(elements), "current_elements": elements}


class NameSequence:
    """Deterministic synthesized names: `<prefix>_000001`, `<prefix>_000002`, ..."""

    def __init__(self, prefix: str) -> None:
        self.prefix = prefix
        self._counter = 0

    def next(self, taken: Container[str] = ()) -> str:
        while True:
            self._counter += 1
            name = f"{self.prefix}_{self._counter:06d}"
            if name not in taken:
                return name

    def reset(self) -> None:
        self._counter = 0
