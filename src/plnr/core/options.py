"""Process-wide options.

Resolution order for `get_options()`: values passed to `set_options`, then
PLNR_* environment variables, then schema defaults. Option files (YAML or JSON)
are validated against `plnr/schemas/options.schema.json`.
"""

from __future__ import annotations

import copy
import json
import os
from dataclasses import asdict, dataclass, replace
from pathlib import Path
from typing import Any

import yaml
from jsonschema import ValidationError, validate

from .errors import OptionsError
from .utils import env_flag, parse_int_env, read_json, resolve_env_placeholders


SCHEMA_PATH = Path(__file__).resolve().parents[1] / "schemas" / "options.schema.json"
BACKENDS = ("thread", "process")


@dataclass(frozen=True)
class PlanOptions:
    verbose: bool = False
    max_workers: int | None = None
    parallel_backend: str = "thread"
    progress: bool = True


_schema_cache: dict[str, Any] | None = None
_current: PlanOptions | None = None


def load_schema() -> dict[str, Any]:
    global _schema_cache
    if _schema_cache is None:
        _schema_cache = read_json(SCHEMA_PATH)
    return _schema_cache


def _apply_defaults(schema: dict[str, Any], instance: dict[str, Any]) -> dict[str, Any]:
    resolved = copy.deepcopy(instance)
    for key, prop in sorted((schema.get("properties") or {}).items()):
        if key not in resolved and isinstance(prop, dict) and "default" in prop:
            resolved[key] = copy.deepcopy(prop["default"])
    return resolved


def options_from_mapping(data: Any) -> PlanOptions:
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise OptionsError(f"Options must be a mapping, got {type(data).__name__}")
    try:
        payload = resolve_env_placeholders(data)
    except ValueError as exc:
        raise OptionsError(str(exc)) from exc
    schema = load_schema()
    payload = _apply_defaults(schema, payload)
    try:
        validate(instance=payload, schema=schema)
    except ValidationError as exc:
        raise OptionsError(f"Invalid options: {exc.message}") from exc
    return PlanOptions(**payload)


def options_from_env(base: PlanOptions | None = None) -> PlanOptions:
    options = base or PlanOptions()
    changes: dict[str, Any] = {}
    verbose = env_flag("PLNR_VERBOSE")
    if verbose is not None:
        changes["verbose"] = verbose
    progress = env_flag("PLNR_PROGRESS")
    if progress is not None:
        changes["progress"] = progress
    max_workers = parse_int_env("PLNR_MAX_WORKERS")
    if max_workers is not None:
        changes["max_workers"] = max(1, max_workers)
    backend = os.environ.get("PLNR_PARALLEL_BACKEND", "").strip().lower()
    if backend:
        if backend not in BACKENDS:
            raise OptionsError(f"Invalid PLNR_PARALLEL_BACKEND: {backend}")
        changes["parallel_backend"] = backend
    return replace(options, **changes) if changes else options


def load_options(path: str | Path) -> PlanOptions:
    path = Path(path)
    try:
        content = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise OptionsError(f"Cannot read options file {path}: {exc}") from exc
    try:
        if path.suffix == ".json":
            data = json.loads(content)
        else:
            data = yaml.safe_load(content)
    except (json.JSONDecodeError, yaml.YAMLError) as exc:
        raise OptionsError(f"Cannot parse options file {path}: {exc}") from exc
    return options_from_mapping(data)


def get_options() -> PlanOptions:
    if _current is not None:
        return _current
    return options_from_env()


def set_options(**changes: Any) -> PlanOptions:
    global _current
    merged = {**asdict(get_options()), **changes}
    _current = options_from_mapping(merged)
    return _current


def reset_options() -> None:
    global _current
    _current = None
