"""Central error taxonomy and exception types."""
from __future__ import annotations

_ALLOWED_ERROR_TYPES = {
    # config
    "config-parse-error",
    "config-violation",
    "config-write-failed",
    # modules
    "module-init-failed",
    "module-cleanup-failed",
    "module-world-failed",
    # hooks
    "hook-callback-failed",
    "hook-subscribe-failed",
}


class TweakCoreError(Exception):
    pass


class SchemaError(TweakCoreError):
    """Raised for malformed schema declarations (authoring-time only)."""


class ModuleRegistrationError(TweakCoreError):
    pass


def validate_error_type(code: str) -> str:
    assert (
        code in _ALLOWED_ERROR_TYPES
    ), f"Unknown error_type '{code}' (not in taxonomy)"
    return code


__all__ = [
    "TweakCoreError",
    "SchemaError",
    "ModuleRegistrationError",
    "validate_error_type",
]
