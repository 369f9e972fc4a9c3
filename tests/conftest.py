"""Pytest configuration ensuring project root is importable.

Adds repository root to sys.path explicitly to avoid interpreter/path quirks.
"""
from __future__ import annotations

import os
import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


@pytest.fixture(autouse=True)
def _isolate_env(tmp_path, monkeypatch):  # noqa: D401
    """Keep env overrides, config location and metrics per-test.

    - Drop any TWEAKS__* override inherited from the shell
    - Point TWEAKS_CONFIG_PATH into the test's tmp dir
    - Reset metric counters before and after
    """
    from tweakcore import metrics  # local import

    for key in list(os.environ):
        if key.startswith("TWEAKS"):
            monkeypatch.delenv(key, raising=False)
    monkeypatch.setenv("TWEAKS_CONFIG_PATH", str(tmp_path / "config.yaml"))
    metrics.reset_for_tests()
    try:
        yield
    finally:
        metrics.reset_for_tests()


@pytest.fixture
def config_path(tmp_path) -> Path:
    return tmp_path / "config.yaml"


@pytest.fixture
def feature_schema():
    from tweakcore.config import boolean, group, number

    return group({
        "Feature": group({
            "Enabled": boolean(True, "Turns the feature on"),
            "Threshold": number(0.25, "Trigger point", min=0, max=1),
        }, "Feature section"),
    })
