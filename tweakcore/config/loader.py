"""Configuration pipeline: reconcile → persist → env overrides → validate.

Settings of the core itself come from the environment:
    TWEAKS_CONFIG_PATH     user document location (default: config.yaml)
    TWEAKS_CONFIG_BACKUPS  "false" disables backups before rewrites
    TWEAKS__Section__Key   per-run override of one schema leaf; applied
                           after persistence so it never reaches the file

Override paths match schema names case-insensitively.
"""
from __future__ import annotations

import copy
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

import yaml
from pydantic import BaseModel

from tweakcore import metrics
from tweakcore.logutil import ModLogger, create_logger

from .migrator import CONFIG_LOG_TAG, ConfigStore, LoadResult
from .schema import Kind, SchemaNode
from .validator import Violation, validate
from .view import FrozenConfig

DEFAULT_CONFIG_PATH = "config.yaml"
ENV_PREFIX = "TWEAKS__"


class CoreSettings(BaseModel):
    config_path: Path = Path(DEFAULT_CONFIG_PATH)
    backups: bool = True
    env_overrides: bool = True

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "CoreSettings":
        env = os.environ if environ is None else environ
        backups = env.get("TWEAKS_CONFIG_BACKUPS", "true").lower()
        return cls(
            config_path=Path(env.get("TWEAKS_CONFIG_PATH", DEFAULT_CONFIG_PATH)),
            backups=backups not in {"0", "false", "no"},
        )


def _cast(value: str, kind: Kind) -> Any:
    """Convert an env string to the leaf's kind; unconvertible stays a string."""
    if kind is Kind.STRING:
        return value
    if kind is Kind.BOOLEAN:
        if value.lower() in {"true", "false"}:
            return value.lower() == "true"
        return value
    if kind is Kind.COLOR:
        # flow mapping, e.g. "{R: 255, G: 0, B: 0}"
        try:
            return yaml.safe_load(value)
        except yaml.YAMLError:
            return value
    try:
        return int(value)
    except ValueError:
        try:
            return float(value)
        except ValueError:
            return value


def apply_env_overrides(
    doc: Dict[str, Any],
    schema: SchemaNode,
    environ: Optional[Mapping[str, str]] = None,
    log: Optional[ModLogger] = None,
) -> List[str]:
    """Apply ``TWEAKS__A__B=value`` overrides in place; returns paths set."""
    env = os.environ if environ is None else environ
    applied: List[str] = []
    prefix_len = len(ENV_PREFIX)
    for env_key, value in sorted(env.items()):
        if not env_key.startswith(ENV_PREFIX):
            continue
        parts = env_key[prefix_len:].split("__")
        node = schema
        target = doc
        names: List[str] = []
        for i, part in enumerate(parts):
            match = next(
                (n for n in node.children if n.lower() == part.lower()), None
            )
            if match is None:
                node = None
                break
            node = node.children[match]
            names.append(match)
            if i < len(parts) - 1:
                if not node.is_group:
                    node = None
                    break
                target = target.setdefault(match, {})
        if node is None or node.is_group:
            if log is not None:
                log.warning_once("Ignoring unknown override %s", env_key)
            continue
        target[names[-1]] = _cast(value, node.kind)
        dotted = ".".join(names)
        applied.append(dotted)
        metrics.inc("env_override_total", {"path": dotted})
        if log is not None:
            log.info("Override %s=*** from environment", dotted)
    return applied


@dataclass
class ConfigState:
    config: FrozenConfig
    violations: List[Violation] = field(default_factory=list)
    load: Optional[LoadResult] = None
    overrides: List[str] = field(default_factory=list)


def load_config(
    schema: SchemaNode,
    settings: Optional[CoreSettings] = None,
    environ: Optional[Mapping[str, str]] = None,
    log: Optional[ModLogger] = None,
) -> ConfigState:
    """Run the full startup configuration pass. Never raises on bad input."""
    settings = settings or CoreSettings.from_env(environ)
    log = log or create_logger(CONFIG_LOG_TAG)
    store = ConfigStore(settings.config_path, backups=settings.backups, log=log)
    result = store.ensure(schema)
    doc = copy.deepcopy(result.document)
    overrides: List[str] = []
    if settings.env_overrides:
        overrides = apply_env_overrides(doc, schema, environ, log)
    config, violations = validate(doc, schema, log)
    return ConfigState(
        config=config, violations=violations, load=result, overrides=overrides
    )


__all__ = [
    "CoreSettings",
    "ConfigState",
    "apply_env_overrides",
    "load_config",
    "DEFAULT_CONFIG_PATH",
    "ENV_PREFIX",
]
