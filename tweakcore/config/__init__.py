"""Config subsystem public API.

Provides:
    SchemaNode + builders  -> declare configuration shape and defaults
    reconcile / render     -> merge a user document into the schema shape
    validate               -> typed read-only config + violations
    load_config            -> the whole startup pass against a file
"""

from .schema import (  # noqa: F401
    Kind,
    Constraints,
    SchemaNode,
    boolean,
    number,
    string,
    color,
    group,
    schema_from_document,
    load_schema,
)
from .view import Color, FrozenConfig  # noqa: F401
from .validator import Violation, validate  # noqa: F401
from .migrator import (  # noqa: F401
    ConfigStore,
    LoadResult,
    parse_document,
    reconcile,
    render,
)
from .loader import (  # noqa: F401
    ConfigState,
    CoreSettings,
    apply_env_overrides,
    load_config,
)

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
    "Color",
    "FrozenConfig",
    "Violation",
    "validate",
    "ConfigStore",
    "LoadResult",
    "parse_document",
    "reconcile",
    "render",
    "ConfigState",
    "CoreSettings",
    "apply_env_overrides",
    "load_config",
]
