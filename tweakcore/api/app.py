"""FastAPI application factory for the admin surface.

Read-only views of module state, validated configuration, violations,
hook table and metrics, plus two actions: hot-reload and world transition.
"""
from __future__ import annotations

from typing import Any, Optional

from fastapi import FastAPI
from pydantic import BaseModel

from tweakcore import metrics
from tweakcore.modules.lifecycle import LifecycleManager


class WorldTransitionRequest(BaseModel):
    world: Optional[str] = None


def create_app(manager: LifecycleManager) -> FastAPI:
    app = FastAPI(
        title="tweakcore admin",
        version="0.1.0",
        docs_url=None,
        redoc_url=None,
    )

    @app.get("/health")
    def health():  # noqa: D401
        return {"status": "ok", "started": manager.started}

    @app.get("/modules")
    def modules():  # noqa: D401
        return {
            "modules": manager.status(),
            "init_order": manager.init_order,
        }

    @app.get("/config")
    def config():  # noqa: D401
        cfg = manager.config
        state = manager.config_state
        load = state.load if state else None
        return {
            "config": cfg.to_dict() if cfg is not None else None,
            "path": str(manager.settings.config_path),
            "parse_error": load.parse_error if load else None,
            "overrides": state.overrides if state else [],
        }

    @app.get("/violations")
    def violations():  # noqa: D401
        state = manager.config_state
        items: list[dict[str, Any]] = (
            [v.as_dict() for v in state.violations] if state else []
        )
        return {"violations": items, "count": len(items)}

    @app.get("/hooks")
    def hooks():  # noqa: D401
        return {"hooks": manager.hooks.snapshot()}

    @app.get("/metrics")
    def metrics_snapshot():  # noqa: D401
        return metrics.snapshot()

    @app.post("/reload")
    def reload():  # noqa: D401
        state = manager.reload()
        return {
            "status": "reloaded",
            "violations": len(state.violations),
            "modules": manager.status(),
        }

    @app.post("/world-transition")
    def world_transition(req: WorldTransitionRequest):  # noqa: D401
        manager.world_transition(req.world)
        return {"status": "ok", "modules": manager.status()}

    return app
