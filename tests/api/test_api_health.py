from fastapi.testclient import TestClient

from tweakcore.api import create_app
from tweakcore.config import boolean, group, number
from tweakcore.hooks import HookMultiplexer, LocalHost
from tweakcore.modules import LifecycleManager, ModuleRegistry


def _manager():
    reg = ModuleRegistry()

    def init(ctx):
        ctx.hook("OnTick", lambda: None)

    reg.register_module(
        "Vignette",
        group({
            "Enabled": boolean(True),
            "Threshold": number(0.25, min=0, max=1),
        }),
        "Enabled",
        init,
    )
    return LifecycleManager(reg, HookMultiplexer(LocalHost()))


def test_api_health_ok():
    mgr = _manager()
    client = TestClient(create_app(mgr))
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json() == {"status": "ok", "started": False}
    mgr.start()
    assert client.get("/health").json()["started"] is True


def test_api_modules_config_hooks(config_path):
    mgr = _manager()
    mgr.start()
    client = TestClient(create_app(mgr))
    mods = client.get("/modules").json()
    assert mods["init_order"] == ["Vignette"]
    assert mods["modules"][0]["status"] == "initialized"
    cfg = client.get("/config").json()
    assert cfg["config"]["Vignette"] == {"Enabled": True, "Threshold": 0.25}
    assert cfg["path"] == str(config_path)
    hooks = client.get("/hooks").json()["hooks"]
    assert hooks == {"OnTick": {"subscribed": True, "modules": ["Vignette"]}}
    assert "counters" in client.get("/metrics").json()


def test_api_violations_and_reload(config_path):
    mgr = _manager()
    mgr.start()
    client = TestClient(create_app(mgr))
    assert client.get("/violations").json() == {"violations": [], "count": 0}
    text = config_path.read_text(encoding="utf-8")
    config_path.write_text(
        text.replace("Threshold: 0.25", "Threshold: 3"), encoding="utf-8"
    )
    r = client.post("/reload")
    assert r.status_code == 200
    assert r.json()["violations"] == 1
    v = client.get("/violations").json()["violations"][0]
    assert v["path"] == "Vignette.Threshold"
    assert v["reason"] == "out-of-range"
    assert client.get("/hooks").json()["hooks"]["OnTick"]["modules"] == ["Vignette"]


def test_api_world_transition():
    mgr = _manager()
    mgr.start()
    client = TestClient(create_app(mgr))
    r = client.post("/world-transition", json={"world": "Map2"})
    assert r.status_code == 200
    assert r.json()["modules"][0]["status"] == "cleaned"
