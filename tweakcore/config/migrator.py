"""Reconciliation of a user document against the current schema.

The schema is the only source of truth for shape:

- a leaf the user has set keeps the user's value verbatim (validation is a
  separate, later pass);
- a leaf or group the user lacks is filled from defaults;
- keys the schema no longer declares are dropped, which prunes renamed and
  removed options on upgrade.

``render`` writes the reconciled document back as YAML in declaration order
with each description inlined as ``#`` comments above its entry. Rendering a
reconciled document, parsing it and reconciling again yields the same bytes.
"""
from __future__ import annotations

import contextlib
import copy
import os
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

import yaml

from tweakcore import metrics
from tweakcore.errors import validate_error_type
from tweakcore.logutil import ModLogger, create_logger

from .schema import SchemaNode

CONFIG_LOG_TAG = "TweakCore|Config"
INDENT = "  "
HEADER = (
    "# Configuration file. Edit values freely; missing entries are restored\n"
    "# from defaults and unknown entries are removed on the next start.\n"
)


def reconcile(existing: Optional[Dict[str, Any]], schema: SchemaNode) -> Dict[str, Any]:
    """Merge ``existing`` into the shape of ``schema`` (declaration order)."""
    if not isinstance(existing, dict):
        existing = {}
    out: Dict[str, Any] = {}
    for name, child in schema.children.items():
        if child.is_group:
            sub = existing.get(name)
            out[name] = reconcile(sub if isinstance(sub, dict) else {}, child)
        elif name in existing:
            out[name] = copy.deepcopy(existing[name])
        else:
            out[name] = child.defaults()
    return out


def missing_paths(existing: Optional[Dict[str, Any]], schema: SchemaNode) -> List[str]:
    """Leaf paths of ``schema`` that ``existing`` does not set."""
    doc = existing if isinstance(existing, dict) else {}
    out = []
    for path, _ in schema.iter_leaves():
        node: Any = doc
        for part in path.split("."):
            if not isinstance(node, dict) or part not in node:
                out.append(path)
                break
            node = node[part]
    return out


def stale_paths(
    existing: Optional[Dict[str, Any]], schema: SchemaNode, prefix: str = ""
) -> List[str]:
    """Paths present in ``existing`` that the schema does not declare."""
    if not isinstance(existing, dict):
        return []
    out = []
    for key, value in existing.items():
        path = f"{prefix}.{key}" if prefix else str(key)
        child = schema.children.get(key) if isinstance(key, str) else None
        if child is None:
            out.append(path)
        elif child.is_group:
            out.extend(stale_paths(value, child, path))
    return out


# --- rendering -------------------------------------------------------------

def _scalar(value: Any) -> str:
    text = yaml.safe_dump(
        [value],
        default_flow_style=True,
        allow_unicode=True,
        width=float("inf"),
    )
    return text.strip()[1:-1]


def _needs_escape(ch: str) -> bool:
    return ord(ch) < 0x20 or ch in "\x7f\x85\u2028\u2029"


def _flow(value: Any) -> str:
    """Single-line YAML flow rendering of any loaded value."""
    if isinstance(value, dict):
        items = ", ".join(f"{_flow(k)}: {_flow(v)}" for k, v in value.items())
        return "{" + items + "}"
    if isinstance(value, (list, tuple)):
        return "[" + ", ".join(_flow(v) for v in value) + "]"
    if isinstance(value, str) and any(_needs_escape(ch) for ch in value):
        out = ['"']
        for ch in value:
            if ch in '"\\':
                out.append("\\" + ch)
            elif _needs_escape(ch):
                out.append(f"\\u{ord(ch):04x}")
            else:
                out.append(ch)
        out.append('"')
        return "".join(out)
    return _scalar(value)


def _comment_lines(description: str, indent: str) -> List[str]:
    if not description:
        return []
    return [
        f"{indent}# {line}".rstrip() for line in description.splitlines()
    ]


def _render_group(
    doc: Dict[str, Any], node: SchemaNode, depth: int, lines: List[str]
) -> None:
    indent = INDENT * depth
    first = True
    for name, child in node.children.items():
        if depth == 0 and not first:
            lines.append("")
        first = False
        lines.extend(_comment_lines(child.description, indent))
        key = _flow(name)
        value = doc.get(name)
        if child.is_group:
            if not child.children:
                lines.append(f"{indent}{key}: {{}}")
                continue
            lines.append(f"{indent}{key}:")
            _render_group(
                value if isinstance(value, dict) else {}, child, depth + 1, lines
            )
        else:
            lines.append(f"{indent}{key}: {_flow(value)}")


def render(reconciled: Dict[str, Any], schema: SchemaNode) -> str:
    """Serialize a reconciled document in schema order with descriptions."""
    lines: List[str] = HEADER.splitlines()
    lines.extend(_comment_lines(schema.description, ""))
    lines.append("")
    _render_group(reconciled, schema, 0, lines)
    return "\n".join(lines) + "\n"


def _has_cycle(value: Any, ancestors: Tuple[int, ...] = ()) -> bool:
    """True when a container holds itself (YAML ``&a [*a]``)."""
    if isinstance(value, dict):
        items: Any = value.values()
    elif isinstance(value, list):
        items = value
    else:
        return False
    if id(value) in ancestors:
        return True
    ancestors = ancestors + (id(value),)
    return any(_has_cycle(v, ancestors) for v in items)


def parse_document(text: str) -> Tuple[Dict[str, Any], Optional[str]]:
    """Parse stored text; returns ``(doc, error)`` and never raises."""
    try:
        data = yaml.safe_load(text)
        cyclic = _has_cycle(data)
    except yaml.YAMLError as e:
        return {}, f"invalid YAML: {e}"
    except RecursionError:
        return {}, "document is nested too deeply"
    if cyclic:
        return {}, "document contains a self-referencing alias"
    if data is None:
        return {}, None
    if not isinstance(data, dict):
        return {}, f"top level must be a mapping, got {type(data).__name__}"
    return data, None


# --- storage ---------------------------------------------------------------

@dataclass
class LoadResult:
    document: Dict[str, Any]
    text: str
    existed: bool = False
    parse_error: Optional[str] = None
    written: bool = False
    write_error: Optional[str] = None
    backup_path: Optional[Path] = None
    added: List[str] = field(default_factory=list)
    pruned: List[str] = field(default_factory=list)


def backup_path_for(path: Path) -> Path:
    stamp = datetime.now().strftime("%Y-%m-%d_%H%M%S")
    candidate = path.with_name(f"{path.name}.{stamp}.backup")
    n = 1
    while candidate.exists():
        candidate = path.with_name(f"{path.name}.{stamp}-{n}.backup")
        n += 1
    return candidate


class ConfigStore:
    """The user configuration file at a fixed path."""

    def __init__(
        self,
        path: Union[str, Path],
        backups: bool = True,
        log: Optional[ModLogger] = None,
    ):
        self.path = Path(path)
        self.backups = backups
        self.log = log or create_logger(CONFIG_LOG_TAG)

    def _backup(self, raw: bytes) -> Optional[Path]:
        target = backup_path_for(self.path)
        try:
            target.write_bytes(raw)
        except OSError as e:
            self.log.error("Could not write backup %s: %s", target, e)
            return None
        return target

    def _write(self, text: str) -> Optional[str]:
        tmp = self.path.with_name(self.path.name + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp.write_text(text, encoding="utf-8")
            os.replace(tmp, self.path)
        except OSError as e:
            with contextlib.suppress(OSError):
                tmp.unlink(missing_ok=True)
            return str(e)
        return None

    def ensure(self, schema: SchemaNode) -> LoadResult:
        """Load, reconcile and persist the user document.

        A missing file behaves as an empty document (first-run generation).
        An unreadable or unparseable file is backed up, treated as empty and
        reported once. Nothing here raises on I/O or parse problems.
        """
        existing: Dict[str, Any] = {}
        raw: Optional[bytes] = None
        old_text: Optional[str] = None
        parse_error: Optional[str] = None
        backup: Optional[Path] = None
        existed = self.path.exists()
        if existed:
            try:
                raw = self.path.read_bytes()
                old_text = raw.decode("utf-8")
            except (OSError, UnicodeDecodeError) as e:
                parse_error = f"unreadable: {e}"
            else:
                existing, parse_error = parse_document(old_text)
        if parse_error is not None:
            metrics.inc("config_parse_errors_total")
            code = validate_error_type("config-parse-error")
            # raw bytes, so undecodable files are kept as-is
            if raw is not None:
                backup = self._backup(raw)
            self.log.warning(
                "%s is invalid (%s), using defaults%s [%s]",
                self.path.name,
                parse_error,
                f"; original saved to {backup.name}" if backup else "",
                code,
            )

        reconciled = reconcile(existing, schema)
        text = render(reconciled, schema)
        result = LoadResult(
            document=reconciled,
            text=text,
            existed=existed,
            parse_error=parse_error,
            backup_path=backup,
            added=missing_paths(existing, schema),
            pruned=stale_paths(existing, schema),
        )
        if text == old_text:
            return result

        if (
            self.backups
            and raw is not None
            and parse_error is None
            and old_text.strip()
        ):
            result.backup_path = self._backup(raw)
        err = self._write(text)
        if err is not None:
            code = validate_error_type("config-write-failed")
            result.write_error = err
            self.log.error("Failed to write %s: %s [%s]", self.path, err, code)
            return result
        result.written = True
        if not existed or parse_error is not None:
            self.log.info("Created %s from defaults", self.path.name)
        else:
            self.log.info(
                "Updated %s (%d added, %d removed)",
                self.path.name,
                len(result.added),
                len(result.pruned),
            )
        return result


__all__ = [
    "reconcile",
    "render",
    "parse_document",
    "missing_paths",
    "stale_paths",
    "ConfigStore",
    "LoadResult",
]
