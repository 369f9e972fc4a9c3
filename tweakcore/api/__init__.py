"""Admin HTTP surface (FastAPI) over a running LifecycleManager."""
from .app import create_app  # noqa: F401

__all__ = ["create_app"]
