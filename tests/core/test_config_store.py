import logging

import yaml

from tweakcore import metrics
from tweakcore.config import ConfigStore
from tweakcore.logutil import ModLogger


def _store(path, backups=True, tag="Store"):
    return ConfigStore(path, backups=backups, log=ModLogger(tag))


def test_missing_file_is_created_from_defaults(config_path, feature_schema, caplog):
    with caplog.at_level(logging.INFO, logger="tweakcore"):
        res = _store(config_path).ensure(feature_schema)
    assert res.existed is False
    assert res.written is True
    assert res.backup_path is None
    assert config_path.exists()
    assert yaml.safe_load(config_path.read_text(encoding="utf-8")) == {
        "Feature": {"Enabled": True, "Threshold": 0.25}
    }
    assert "[Store] Created config.yaml from defaults" in caplog.messages


def test_unchanged_file_is_not_rewritten(config_path, feature_schema):
    store = _store(config_path)
    store.ensure(feature_schema)
    before = config_path.stat().st_mtime_ns
    res = store.ensure(feature_schema)
    assert res.written is False
    assert res.backup_path is None
    assert config_path.stat().st_mtime_ns == before
    assert list(config_path.parent.glob("*.backup")) == []


def test_invalid_yaml_backed_up_and_replaced(config_path, feature_schema, caplog):
    broken = "Feature: [Enabled: true\n"
    config_path.write_text(broken, encoding="utf-8")
    with caplog.at_level(logging.WARNING, logger="tweakcore"):
        res = _store(config_path, backups=False).ensure(feature_schema)
    assert res.parse_error
    assert res.backup_path is not None
    assert res.backup_path.read_text(encoding="utf-8") == broken
    assert res.document == feature_schema.defaults()
    assert res.written is True
    assert any(
        m.startswith("[Store] WARNING: config.yaml is invalid")
        and m.endswith("[config-parse-error]")
        for m in caplog.messages
    )
    assert metrics.get("config_parse_errors_total") == 1


def test_non_mapping_top_level_treated_as_empty(config_path, feature_schema):
    config_path.write_text("- 1\n- 2\n", encoding="utf-8")
    res = _store(config_path).ensure(feature_schema)
    assert "mapping" in res.parse_error
    assert res.document == feature_schema.defaults()


def test_rewrite_keeps_backup_of_previous_text(config_path, feature_schema, caplog):
    old = "Feature:\n  Threshold: 0.5\n  Legacy: 3\n"
    config_path.write_text(old, encoding="utf-8")
    with caplog.at_level(logging.INFO, logger="tweakcore"):
        res = _store(config_path).ensure(feature_schema)
    assert res.written is True
    assert res.backup_path is not None
    assert res.backup_path.name.startswith("config.yaml.")
    assert res.backup_path.name.endswith(".backup")
    assert res.backup_path.read_text(encoding="utf-8") == old
    assert res.added == ["Feature.Enabled"]
    assert res.pruned == ["Feature.Legacy"]
    assert "[Store] Updated config.yaml (1 added, 1 removed)" in caplog.messages
    doc = yaml.safe_load(config_path.read_text(encoding="utf-8"))
    assert doc == {"Feature": {"Enabled": True, "Threshold": 0.5}}


def test_backups_can_be_disabled(config_path, feature_schema):
    config_path.write_text("Feature:\n  Threshold: 0.5\n", encoding="utf-8")
    res = _store(config_path, backups=False).ensure(feature_schema)
    assert res.written is True
    assert res.backup_path is None
    assert list(config_path.parent.glob("*.backup")) == []


def test_write_failure_is_logged_not_raised(tmp_path, feature_schema, caplog):
    blocker = tmp_path / "blocker"
    blocker.write_text("", encoding="utf-8")
    target = blocker / "config.yaml"
    with caplog.at_level(logging.ERROR, logger="tweakcore"):
        res = _store(target).ensure(feature_schema)
    assert res.written is False
    assert res.write_error
    assert res.document == feature_schema.defaults()
    assert any(m.endswith("[config-write-failed]") for m in caplog.messages)


def test_out_of_range_value_survives_on_disk(config_path, feature_schema):
    config_path.write_text(
        "Feature:\n  Enabled: false\n  Threshold: 5\n", encoding="utf-8"
    )
    _store(config_path).ensure(feature_schema)
    doc = yaml.safe_load(config_path.read_text(encoding="utf-8"))
    assert doc["Feature"]["Threshold"] == 5


def test_undecodable_file_backed_up_byte_for_byte(config_path, feature_schema):
    raw = b"Feature:\n  Threshold: 0.5  # caf\xe9\n"
    config_path.write_bytes(raw)
    res = _store(config_path, backups=False).ensure(feature_schema)
    assert res.parse_error.startswith("unreadable")
    assert res.backup_path is not None
    assert res.backup_path.read_bytes() == raw
    assert res.written is True
    assert res.document == feature_schema.defaults()


def test_self_referencing_alias_treated_as_invalid(config_path, feature_schema):
    text = "Feature:\n  Threshold: &a [*a]\n"
    config_path.write_text(text, encoding="utf-8")
    res = _store(config_path).ensure(feature_schema)
    assert "self-referencing" in res.parse_error
    assert res.document == feature_schema.defaults()
    assert res.backup_path.read_text(encoding="utf-8") == text


def test_failed_replace_leaves_no_temp_file(
    config_path, feature_schema, monkeypatch
):
    def _refuse(src, dst):
        raise PermissionError("locked")

    monkeypatch.setattr("tweakcore.config.migrator.os.replace", _refuse)
    res = _store(config_path).ensure(feature_schema)
    assert res.written is False
    assert "locked" in res.write_error
    assert list(config_path.parent.iterdir()) == []
