from __future__ import annotations

import argparse
from pathlib import Path
from typing import Any

import yaml

from plnr.core.helpers import expand_list
from plnr.core.options import load_options, options_from_env
from plnr.core.plan import Plan
from plnr.core.utils import json_dumps, load_entrypoint


def load_plan(entrypoint: str) -> Plan:
    """Import `module:attr` naming a Plan or a zero-argument factory returning one."""

    try:
        target = load_entrypoint(entrypoint)
    except (ImportError, AttributeError, ValueError) as exc:
        raise SystemExit(f"Cannot load {entrypoint}: {type(exc).__name__}: {exc}")
    if not isinstance(target, Plan) and callable(target):
        target = target()
    if not isinstance(target, Plan):
        raise SystemExit(f"{entrypoint} is not a Plan (got {type(target).__name__})")
    return target


def cmd_run(
    entrypoint: str,
    parallel: bool = False,
    workers: int | None = None,
    backend: str | None = None,
    settings_path: str | None = None,
    out: str | None = None,
) -> None:
    plan = load_plan(entrypoint)
    if settings_path:
        plan.options = options_from_env(load_options(settings_path))
    if parallel:
        outcomes = plan.run_all_parallel(max_workers=workers, backend=backend)
    else:
        outcomes = plan.run_all()
    summary = {name: outcome.summary() for name, outcome in outcomes.items()}
    payload = json_dumps(summary)
    if out:
        Path(out).write_text(payload + "\n", encoding="utf-8")
    else:
        print(payload)
    failed = [name for name, outcome in outcomes.items() if not outcome.ok]
    if failed:
        raise SystemExit(1)


def cmd_describe(entrypoint: str) -> None:
    plan = load_plan(entrypoint)
    print(repr(plan))
    print("")
    print("argsets:")
    print(plan.get_argsets_as_df().to_string(index=False))
    print("")
    print("analyses:")
    print(plan.get_analyses_as_df().to_string(index=False))


def _parse_axis(text: str) -> tuple[str, list[Any]]:
    key, sep, raw = text.partition("=")
    if not sep or not key:
        raise SystemExit(f"Expected KEY=V1,V2,... got {text!r}")
    values = [yaml.safe_load(item) for item in raw.split(",") if item != ""]
    return key, values


def cmd_expand(axes: list[str]) -> None:
    named = dict(_parse_axis(axis) for axis in axes)
    print(json_dumps(expand_list(**named)))


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(prog="plnr")
    sub = parser.add_subparsers(dest="command", required=True)

    run_parser = sub.add_parser("run")
    run_parser.add_argument("entrypoint")
    run_parser.add_argument("--parallel", action="store_true")
    run_parser.add_argument("--workers", type=int)
    run_parser.add_argument("--backend", choices=["thread", "process"])
    run_parser.add_argument("--settings")
    run_parser.add_argument("--out")

    describe_parser = sub.add_parser("describe")
    describe_parser.add_argument("entrypoint")

    expand_parser = sub.add_parser("expand")
    expand_parser.add_argument("axes", nargs="+")

    args = parser.parse_args(argv)

    if args.command == "run":
        cmd_run(
            args.entrypoint,
            parallel=bool(args.parallel),
            workers=args.workers,
            backend=args.backend,
            settings_path=args.settings,
            out=args.out,
        )
    elif args.command == "describe":
        cmd_describe(args.entrypoint)
    elif args.command == "expand":
        cmd_expand(args.axes)
    else:
        raise SystemExit(2)


if __name__ == "__main__":
    main()
