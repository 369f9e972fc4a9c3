"""Read-only typed configuration handed to modules."""
from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Dict, Iterator, Optional


@dataclass(frozen=True)
class Color:
    """RGB(A) colour; channels 0-255, alpha 0.0-1.0 (None when undeclared)."""

    r: float
    g: float
    b: float
    a: Optional[float] = None

    @classmethod
    def from_value(cls, value: Dict[str, float]) -> "Color":
        return cls(value["R"], value["G"], value["B"], value.get("A"))

    def normalized(self) -> tuple[float, float, float, float]:
        """Channels scaled to 0..1 with alpha defaulting to 1.0."""
        a = 1.0 if self.a is None else float(self.a)
        return (self.r / 255, self.g / 255, self.b / 255, a)

    def as_dict(self) -> Dict[str, float]:
        out = {"R": self.r, "G": self.g, "B": self.b}
        if self.a is not None:
            out["A"] = self.a
        return out


class FrozenConfig(Mapping):
    """Immutable nested mapping with attribute access.

    ``cfg.Feature.Threshold`` and ``cfg["Feature"]["Threshold"]`` are
    equivalent; ``cfg.get_path("Feature.Threshold")`` walks dotted paths.
    """

    __slots__ = ("_data",)

    def __init__(self, data: Dict[str, Any]):
        object.__setattr__(self, "_data", dict(data))

    def __getitem__(self, key: str) -> Any:
        return self._data[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def __getattr__(self, name: str) -> Any:
        if name.startswith("_"):
            raise AttributeError(name)
        try:
            return self._data[name]
        except KeyError:
            raise AttributeError(name) from None

    def __setattr__(self, name: str, value: Any) -> None:
        raise AttributeError("configuration is read-only")

    def __repr__(self) -> str:
        return f"FrozenConfig({self.to_dict()!r})"

    def get_path(self, path: str, default: Any = None) -> Any:
        node: Any = self
        for part in path.split("."):
            if not isinstance(node, FrozenConfig) or part not in node:
                return default
            node = node[part]
        return node

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {}
        for k, v in self._data.items():
            if isinstance(v, FrozenConfig):
                out[k] = v.to_dict()
            elif isinstance(v, Color):
                out[k] = v.as_dict()
            else:
                out[k] = v
        return out


__all__ = ["Color", "FrozenConfig"]
