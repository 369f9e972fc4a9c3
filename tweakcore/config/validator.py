"""Schema validation of a reconciled document.

``validate`` never raises and never aborts: every leaf that fails its kind
or constraints is replaced by the schema default (or trimmed, for ``trim``
strings) and reported as one ``Violation``.
"""
from __future__ import annotations

import copy
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from tweakcore import metrics
from tweakcore.errors import validate_error_type
from tweakcore.logutil import ModLogger

from .schema import Kind, SchemaNode
from .view import Color, FrozenConfig

_MISSING = object()


@dataclass(frozen=True)
class Violation:
    path: str
    reason: str
    observed: Any
    substituted: Any

    def describe(self) -> str:
        return (
            f"Invalid {self.path} ({self.reason}: {self.observed!r}), "
            f"using {self.substituted!r}"
        )

    def as_dict(self) -> Dict[str, Any]:
        return {
            "path": self.path,
            "reason": self.reason,
            "observed": self.observed,
            "substituted": self.substituted,
        }


def _typed(node: SchemaNode, value: Any) -> Any:
    if node.kind is Kind.COLOR:
        return Color.from_value(value)
    return copy.deepcopy(value)


def _walk(
    node: SchemaNode,
    doc: Dict[str, Any],
    prefix: str,
    violations: List[Violation],
) -> FrozenConfig:
    out: Dict[str, Any] = {}
    for name, child in node.children.items():
        path = f"{prefix}.{name}" if prefix else name
        raw = doc.get(name, _MISSING)
        if child.is_group:
            sub = raw
            if raw is _MISSING:
                sub = {}
            elif not isinstance(raw, dict):
                violations.append(
                    Violation(path, "wrong-type", raw, child.defaults())
                )
                sub = {}
            out[name] = _walk(child, sub, path, violations)
            continue
        if raw is _MISSING:
            out[name] = _typed(child, child.default)
            continue
        try:
            value, reason = child.check(raw)
        except Exception:  # noqa: BLE001 - exotic values (e.g. unorderable)
            value, reason = child.default, "wrong-type"
        if reason is not None:
            violations.append(Violation(path, reason, raw, value))
        out[name] = _typed(child, value)
    return FrozenConfig(out)


def validate(
    doc: Optional[Dict[str, Any]],
    schema: SchemaNode,
    log: Optional[ModLogger] = None,
) -> Tuple[FrozenConfig, List[Violation]]:
    """Validate ``doc`` against ``schema``.

    Returns the typed read-only configuration and the list of violations in
    schema order. When ``log`` is given each violation is reported as a
    warning.
    """
    violations: List[Violation] = []
    if not isinstance(doc, dict):
        doc = {}
    typed = _walk(schema, doc, "", violations)
    code = validate_error_type("config-violation")
    for v in violations:
        metrics.inc(
            "config_violations_total", {"path": v.path, "reason": v.reason}
        )
        if log is not None:
            log.warning("%s [%s]", v.describe(), code)
    return typed, violations


__all__ = ["Violation", "validate"]
