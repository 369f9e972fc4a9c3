"""Command line entry: regenerate and check a configuration file.

Usage:
    python -m tweakcore check --schema schema.yaml [--config config.yaml]
    python -m tweakcore render --schema schema.yaml

``check`` reconciles the user file against the schema (writing it back when
it changed) and prints every violation; exit code 1 when any were found.
``render`` prints the all-defaults document without touching disk.
"""
from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import List, Optional

from tweakcore.config import (
    CoreSettings,
    load_config,
    load_schema,
    reconcile,
    render,
)
from tweakcore.errors import SchemaError


def _cmd_check(args: argparse.Namespace) -> int:
    schema = load_schema(args.schema)
    settings = CoreSettings.from_env()
    if args.config:
        settings = settings.model_copy(update={"config_path": Path(args.config)})
    if args.no_backup:
        settings = settings.model_copy(update={"backups": False})
    state = load_config(schema, settings)
    load = state.load
    if load is not None and load.written:
        print(f"wrote {settings.config_path}")
    for v in state.violations:
        print(f"{v.path}: {v.reason} (got {v.observed!r}, using {v.substituted!r})")
    if state.violations:
        print(f"{len(state.violations)} violation(s)")
        return 1
    print("ok")
    return 0


def _cmd_render(args: argparse.Namespace) -> int:
    schema = load_schema(args.schema)
    sys.stdout.write(render(reconcile({}, schema), schema))
    return 0


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(prog="tweakcore")
    sub = ap.add_subparsers(dest="command", required=True)
    check = sub.add_parser("check", help="reconcile + validate a config file")
    check.add_argument("--schema", required=True, help="schema YAML document")
    check.add_argument("--config", help="user config (default: env/config.yaml)")
    check.add_argument("--no-backup", action="store_true")
    check.set_defaults(func=_cmd_check)
    rend = sub.add_parser("render", help="print the default document")
    rend.add_argument("--schema", required=True)
    rend.set_defaults(func=_cmd_render)
    return ap


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        return args.func(args)
    except (SchemaError, OSError) as e:
        print(f"error: {e}", file=sys.stderr)
        return 2


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
