import logging

from tweakcore.logutil import ModLogger, create_logger, get_logger


def test_prefixes_and_tag(caplog):
    log = ModLogger("Flashlight Flicker")
    with caplog.at_level(logging.DEBUG, logger="tweakcore"):
        log.info("Loaded %d presets", 3)
        log.warning("odd value %s", "x")
        log.error("broken")
    assert caplog.messages == [
        "[Flashlight Flicker] Loaded 3 presets",
        "[Flashlight Flicker] WARNING: odd value x",
        "[Flashlight Flicker] ERROR: broken",
    ]


def test_debug_gated_by_flag(caplog):
    quiet = ModLogger("QuietMod")
    loud = ModLogger("LoudMod", debug_enabled=True)
    with caplog.at_level(logging.DEBUG, logger="tweakcore"):
        quiet.debug("hidden")
        loud.debug("shown")
    assert caplog.messages == ["[LoudMod] shown"]


def test_once_variants_dedupe_by_level_and_template(caplog):
    log = ModLogger("OnceMod", debug_enabled=True)
    with caplog.at_level(logging.DEBUG, logger="tweakcore"):
        for i in range(3):
            log.warning_once("Failed to read %s", i)
            log.error_once("Failed to read %s", i)
            log.info_once("ready")
            log.debug_once("tick")
    assert caplog.messages == [
        "[OnceMod] WARNING: Failed to read 0",
        "[OnceMod] ERROR: Failed to read 0",
        "[OnceMod] ready",
        "[OnceMod] tick",
    ]


def test_bad_format_args_fall_back_to_template(caplog):
    log = ModLogger("FmtMod")
    with caplog.at_level(logging.INFO, logger="tweakcore"):
        log.info("needs two %s %s", "only-one")
    assert caplog.messages == ["[FmtMod] needs two %s %s"]


def test_create_logger_refreshes_debug_flag():
    a = create_logger("CachedMod")
    assert a.debug_enabled is False
    b = create_logger("CachedMod", debug_enabled=True)
    assert a is b and b.debug_enabled is True
    assert get_logger("CachedMod") is a
    create_logger("CachedMod", False)
