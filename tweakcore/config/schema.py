"""Schema tree: typed description of every configuration key.

A schema is a tree of ``SchemaNode``. Leaves carry a kind, a default,
optional constraints and a description; groups carry an ordered mapping of
named children. Declaration order is on-disk order, lookups are by name.

Two ways to declare a schema:

    group({
        "Feature": group({
            "Enabled": boolean(True, "Turns the feature on"),
            "Threshold": number(0.25, "Trigger point", min=0, max=1),
        }, "Feature section"),
    })

or a YAML document with the same shape (``kind`` / ``default`` /
``description`` / constraint keys / ``children``) read via ``load_schema``.
Malformed declarations raise ``SchemaError``; they are authoring bugs, not
runtime conditions.
"""
from __future__ import annotations

import math
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, List, Optional, Tuple, Union

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from tweakcore.errors import SchemaError

COLOR_CHANNELS = ("R", "G", "B")
ALPHA_CHANNEL = "A"


class Kind(str, Enum):
    BOOLEAN = "boolean"
    NUMBER = "number"
    STRING = "string"
    COLOR = "color"
    GROUP = "group"


class Constraints(BaseModel):
    min: Optional[float] = None
    max: Optional[float] = None
    choices: Optional[List[str]] = None
    min_length: Optional[int] = None
    max_length: Optional[int] = None
    trim: bool = False
    # None: alpha optional; True: required; False: forbidden
    alpha: Optional[bool] = None

    model_config = ConfigDict(extra="forbid", frozen=True)


# FrozenConfig methods; cfg.<name> would return the method, not the value
RESERVED_NAMES = frozenset({"get", "keys", "items", "values", "get_path", "to_dict"})

_KIND_CONSTRAINTS = {
    Kind.BOOLEAN: set(),
    Kind.NUMBER: {"min", "max"},
    Kind.STRING: {"choices", "min_length", "max_length", "trim"},
    Kind.COLOR: {"alpha"},
    Kind.GROUP: set(),
}


def _is_number(value: Any) -> bool:
    return (
        isinstance(value, (int, float))
        and not isinstance(value, bool)
        and math.isfinite(value)
    )


class SchemaNode(BaseModel):
    kind: Kind
    default: Any = None
    description: str = ""
    constraints: Constraints = Constraints()
    children: Dict[str, SchemaNode] = Field(default_factory=dict)

    model_config = ConfigDict(extra="forbid")

    @model_validator(mode="after")
    def _check_declaration(self) -> "SchemaNode":
        if self.kind is Kind.GROUP:
            if self.default is not None:
                raise SchemaError("group nodes derive defaults from children")
            for name in self.children:
                if not isinstance(name, str) or not name or "." in name:
                    raise SchemaError(f"invalid child name: {name!r}")
                if name.startswith("_") or name in RESERVED_NAMES:
                    raise SchemaError(
                        f"child name {name!r} is shadowed by attribute access "
                        "on the validated config"
                    )
            return self
        if self.children:
            raise SchemaError(f"{self.kind.value} node cannot have children")
        used = {
            k for k in self.constraints.model_fields_set
            if getattr(self.constraints, k) not in (None, False)
        }
        stray = used - _KIND_CONSTRAINTS[self.kind]
        if stray:
            raise SchemaError(
                f"constraints {sorted(stray)} not valid for {self.kind.value}"
            )
        c = self.constraints
        if c.min is not None and c.max is not None and c.min > c.max:
            raise SchemaError(f"min {c.min} > max {c.max}")
        if (
            c.min_length is not None
            and c.max_length is not None
            and c.min_length > c.max_length
        ):
            raise SchemaError("min_length > max_length")
        _, reason = self.check(self.default)
        if reason is not None:
            raise SchemaError(
                f"default {self.default!r} invalid for {self.kind.value}: "
                f"{reason}"
            )
        return self

    # --- leaf checks -----------------------------------------------------
    def check(self, value: Any) -> Tuple[Any, Optional[str]]:
        """Check a leaf value.

        Returns ``(value, None)`` when valid, else ``(substitute, reason)``
        where substitute is the default (or the trimmed string for
        ``trim`` string leaves).
        """
        if self.kind is Kind.BOOLEAN:
            if not isinstance(value, bool):
                return self.default, "wrong-type"
            return value, None
        if self.kind is Kind.NUMBER:
            if not _is_number(value):
                return self.default, "wrong-type"
            c = self.constraints
            if (c.min is not None and value < c.min) or (
                c.max is not None and value > c.max
            ):
                return self.default, "out-of-range"
            return value, None
        if self.kind is Kind.STRING:
            return self._check_string(value)
        if self.kind is Kind.COLOR:
            if not self._is_valid_color(value):
                return self.default, "malformed-color"
            return value, None
        return self.default, "wrong-type"

    def _check_string(self, value: Any) -> Tuple[Any, Optional[str]]:
        if not isinstance(value, str):
            return self.default, "wrong-type"
        c = self.constraints
        if c.choices is not None and value not in c.choices:
            return self.default, "not-in-choices"
        if c.max_length is not None and len(value) > c.max_length:
            if c.trim:
                return value[: c.max_length], "bad-length"
            return self.default, "bad-length"
        if c.min_length is not None and len(value) < c.min_length:
            return self.default, "bad-length"
        return value, None

    def _is_valid_color(self, value: Any) -> bool:
        if not isinstance(value, dict):
            return False
        allowed = set(COLOR_CHANNELS) | {ALPHA_CHANNEL}
        if set(value) - allowed:
            return False
        for ch in COLOR_CHANNELS:
            if ch not in value:
                return False
            v = value[ch]
            if not _is_number(v) or not 0 <= v <= 255:
                return False
        has_alpha = ALPHA_CHANNEL in value
        if self.constraints.alpha is True and not has_alpha:
            return False
        if self.constraints.alpha is False and has_alpha:
            return False
        if has_alpha:
            a = value[ALPHA_CHANNEL]
            if not _is_number(a) or not 0.0 <= a <= 1.0:
                return False
        return True

    # --- tree helpers ----------------------------------------------------
    @property
    def is_group(self) -> bool:
        return self.kind is Kind.GROUP

    def defaults(self) -> Any:
        """Default value (a nested dict in declaration order for groups)."""
        if self.is_group:
            return {
                name: child.defaults() for name, child in self.children.items()
            }
        if isinstance(self.default, dict):
            return dict(self.default)
        return self.default

    def find(self, path: str) -> Optional["SchemaNode"]:
        node: Optional[SchemaNode] = self
        for part in path.split("."):
            if node is None or not node.is_group:
                return None
            node = node.children.get(part)
        return node

    def iter_leaves(self, prefix: str = "") -> Iterator[Tuple[str, "SchemaNode"]]:
        for name, child in self.children.items():
            path = f"{prefix}.{name}" if prefix else name
            if child.is_group:
                yield from child.iter_leaves(path)
            else:
                yield path, child


SchemaNode.model_rebuild()


# --- builders ------------------------------------------------------------

def boolean(default: bool = False, description: str = "") -> SchemaNode:
    return _build(kind=Kind.BOOLEAN, default=default, description=description)


def number(
    default: float,
    description: str = "",
    min: Optional[float] = None,  # noqa: A002
    max: Optional[float] = None,  # noqa: A002
) -> SchemaNode:
    return _build(
        kind=Kind.NUMBER,
        default=default,
        description=description,
        constraints=Constraints(min=min, max=max),
    )


def string(
    default: str = "",
    description: str = "",
    choices: Optional[Iterable[str]] = None,
    min_length: Optional[int] = None,
    max_length: Optional[int] = None,
    trim: bool = False,
) -> SchemaNode:
    return _build(
        kind=Kind.STRING,
        default=default,
        description=description,
        constraints=Constraints(
            choices=list(choices) if choices is not None else None,
            min_length=min_length,
            max_length=max_length,
            trim=trim,
        ),
    )


def color(
    default: Dict[str, float],
    description: str = "",
    alpha: Optional[bool] = None,
) -> SchemaNode:
    return _build(
        kind=Kind.COLOR,
        default=dict(default),
        description=description,
        constraints=Constraints(alpha=alpha),
    )


ChildSpec = Union[Dict[str, SchemaNode], Iterable[Tuple[str, SchemaNode]]]


def group(children: ChildSpec, description: str = "") -> SchemaNode:
    """Group node; ``children`` is a mapping or an iterable of pairs."""
    if isinstance(children, dict):
        pairs = list(children.items())
    else:
        pairs = list(children)
    ordered: Dict[str, SchemaNode] = {}
    for name, node in pairs:
        if name in ordered:
            raise SchemaError(f"duplicate child name: {name}")
        ordered[name] = node
    return _build(kind=Kind.GROUP, children=ordered, description=description)


def _build(**fields: Any) -> SchemaNode:
    try:
        return SchemaNode(**fields)
    except ValidationError as e:
        raise SchemaError(str(e)) from e


# --- declarative schema documents ----------------------------------------

class _UniqueKeyLoader(yaml.SafeLoader):
    pass


def _construct_unique_mapping(loader, node, deep=False):
    seen = set()
    for key_node, _ in node.value:
        key = loader.construct_object(key_node, deep=deep)
        if key in seen:
            raise SchemaError(f"duplicate key in schema document: {key}")
        seen.add(key)
    return loader.construct_mapping(node, deep=deep)


_UniqueKeyLoader.add_constructor(
    yaml.resolver.BaseResolver.DEFAULT_MAPPING_TAG, _construct_unique_mapping
)

_CONSTRAINT_KEYS = set(Constraints.model_fields)


def schema_from_document(doc: Dict[str, Any]) -> SchemaNode:
    """Build a root group from a declarative mapping.

    Each entry is ``{kind, default?, description?, <constraints>...,
    children?}``; constraint keys may sit flat on the entry or under
    ``constraints``.
    """
    if not isinstance(doc, dict):
        raise SchemaError("schema document must be a mapping")
    return group(
        [(name, _node_from_entry(name, entry)) for name, entry in doc.items()]
    )


def _node_from_entry(name: str, entry: Any) -> SchemaNode:
    if not isinstance(entry, dict) or "kind" not in entry:
        raise SchemaError(f"schema entry '{name}' needs a 'kind'")
    fields = dict(entry)
    constraints = dict(fields.pop("constraints", None) or {})
    for key in list(fields):
        if key in _CONSTRAINT_KEYS:
            constraints[key] = fields.pop(key)
    children = fields.pop("children", None) or {}
    if not isinstance(children, dict):
        raise SchemaError(f"children of '{name}' must be a mapping")
    if fields.get("kind") == Kind.GROUP.value:
        return group(
            [(n, _node_from_entry(f"{name}.{n}", e)) for n, e in children.items()],
            fields.get("description", ""),
        )
    if children:
        raise SchemaError(f"leaf '{name}' cannot have children")
    try:
        constraints_model = Constraints(**constraints)
    except ValidationError as e:
        raise SchemaError(f"bad constraints for '{name}': {e}") from e
    return _build(constraints=constraints_model, **fields)


def load_schema(path: Union[str, Path]) -> SchemaNode:
    """Read the default schema document (YAML) from ``path``."""
    text = Path(path).read_text(encoding="utf-8")
    try:
        data = yaml.load(text, Loader=_UniqueKeyLoader) or {}
    except yaml.YAMLError as e:
        raise SchemaError(f"invalid schema document {path}: {e}") from e
    return schema_from_document(data)


__all__ = [
    "Kind",
    "Constraints",
    "SchemaNode",
    "boolean",
    "number",
    "string",
    "color",
    "group",
    "schema_from_document",
    "load_schema",
]
