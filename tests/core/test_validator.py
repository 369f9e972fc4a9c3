import logging

import pytest

from tweakcore import metrics
from tweakcore.config import (
    Color,
    FrozenConfig,
    boolean,
    color,
    group,
    number,
    string,
    validate,
)
from tweakcore.logutil import create_logger


def _schema():
    return group({
        "Indicator": group({
            "Enabled": boolean(True),
            "Icon": string("icon_hackingdevice"),
            "IconColor": color({"R": 114, "G": 242, "B": 255}),
            "Text": string("[DistPad]", max_length=12, trim=True),
            "Mode": string("icon", choices=["icon", "text", "both"]),
        }),
        "Vignette": group({
            "Threshold": number(0.25, min=0.01, max=1.1),
            "Color": color({"R": 128, "G": 0, "B": 0, "A": 0.3}, alpha=True),
        }),
    })


def test_out_of_range_threshold_replaced_by_default(feature_schema):
    cfg, violations = validate(
        {"Feature": {"Enabled": False, "Threshold": 5}}, feature_schema
    )
    assert cfg.to_dict() == {"Feature": {"Enabled": False, "Threshold": 0.25}}
    assert len(violations) == 1
    v = violations[0]
    assert v.path == "Feature.Threshold"
    assert v.reason == "out-of-range"
    assert v.observed == 5
    assert v.substituted == 0.25


@pytest.mark.parametrize(
    "path,bad,reason",
    [
        ("Indicator.Enabled", "yes", "wrong-type"),
        ("Indicator.Enabled", 1, "wrong-type"),
        ("Indicator.Icon", 42, "wrong-type"),
        ("Indicator.Mode", "sparkles", "not-in-choices"),
        ("Indicator.IconColor", {"R": 256, "G": 0, "B": 0}, "malformed-color"),
        ("Indicator.IconColor", {"R": 1, "G": 2}, "malformed-color"),
        ("Indicator.IconColor", [1, 2, 3], "malformed-color"),
        ("Vignette.Threshold", True, "wrong-type"),
        ("Vignette.Threshold", float("nan"), "wrong-type"),
        ("Vignette.Threshold", 0.0, "out-of-range"),
        ("Vignette.Color", {"R": 1, "G": 2, "B": 3, "A": 1.5}, "malformed-color"),
        ("Vignette.Color", {"R": 1, "G": 2, "B": 3}, "malformed-color"),
    ],
)
def test_malformed_leaf_falls_back_to_default(path, bad, reason):
    schema = _schema()
    section, key = path.split(".")
    doc = schema.defaults()
    doc[section][key] = bad
    cfg, violations = validate(doc, schema)
    assert [v.path for v in violations] == [path]
    assert violations[0].reason == reason
    default = schema.find(path).default
    got = cfg.get_path(path)
    if isinstance(got, Color):
        got = got.as_dict()
    assert got == default


def test_long_string_trimmed_when_declared():
    schema = _schema()
    doc = schema.defaults()
    doc["Indicator"]["Text"] = "[Distribution Pad]"
    cfg, violations = validate(doc, schema)
    assert cfg.Indicator.Text == "[Distributio"
    assert len(cfg.Indicator.Text) == 12
    assert violations[0].reason == "bad-length"
    assert violations[0].substituted == cfg.Indicator.Text


def test_missing_group_means_all_defaults():
    schema = _schema()
    cfg, violations = validate({}, schema)
    assert violations == []
    assert cfg.Vignette.Threshold == 0.25
    assert cfg.Indicator.IconColor == Color(114, 242, 255)


def test_group_replaced_by_scalar_reports_once():
    schema = _schema()
    cfg, violations = validate({"Vignette": 7}, schema)
    assert [v.path for v in violations] == ["Vignette"]
    assert cfg.Vignette.Threshold == 0.25


def test_validate_never_raises_on_garbage():
    schema = _schema()
    for doc in (None, [], "text", {"Indicator": {"Enabled": object()}}):
        cfg, _ = validate(doc, schema)
        assert isinstance(cfg, FrozenConfig)
        assert cfg.Indicator.Enabled is True


def test_color_normalized():
    cfg, _ = validate({}, _schema())
    r, g, b, a = cfg.Vignette.Color.normalized()
    assert r == pytest.approx(128 / 255)
    assert (g, b) == (0.0, 0.0)
    assert a == pytest.approx(0.3)
    assert cfg.Indicator.IconColor.normalized()[3] == 1.0


def test_config_is_read_only():
    cfg, _ = validate({}, _schema())
    with pytest.raises(AttributeError):
        cfg.Indicator = {}
    with pytest.raises(TypeError):
        cfg["Indicator"] = {}  # type: ignore[index]


def test_violation_logged_and_counted(caplog):
    log = create_logger("QoL Tweaks (Config)")
    with caplog.at_level(logging.WARNING, logger="tweakcore"):
        validate({"Feature": {"Threshold": "high"}}, group({
            "Feature": group({"Threshold": number(0.25, min=0, max=1)}),
        }), log)
    assert any(
        m.startswith("[QoL Tweaks (Config)] WARNING: Invalid Feature.Threshold")
        for m in caplog.messages
    )
    counters = metrics.snapshot()["counters"]
    assert counters[
        "config_violations_total{path=Feature.Threshold,reason=wrong-type}"
    ] == 1
