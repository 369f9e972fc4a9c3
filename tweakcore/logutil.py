"""Per-module tagged loggers.

Every line reaching the host log has the shape ``[ModName] message``;
warnings and errors carry a ``WARNING: `` / ``ERROR: `` prefix after the tag.
Debug lines are dropped unless the module's debug flag is on. The ``*_once``
variants log a given (level, message template) pair at most once per logger.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, Set

ROOT_LOGGER_NAME = "tweakcore"

_PREFIX = {
    logging.WARNING: "WARNING: ",
    logging.ERROR: "ERROR: ",
}

_loggers: Dict[str, "ModLogger"] = {}


def _root_logger() -> logging.Logger:
    logger = logging.getLogger(ROOT_LOGGER_NAME)
    if not logger.handlers:
        h = logging.StreamHandler()
        h.setFormatter(logging.Formatter("%(message)s"))
        logger.addHandler(h)
        logger.setLevel(logging.DEBUG)
    return logger


def _format(message: str, args: tuple) -> str:
    if args:
        try:
            return message % args
        except (TypeError, ValueError):
            return str(message)
    return str(message)


class ModLogger:
    """Logger bound to one module tag and its debug flag."""

    def __init__(self, mod_name: str, debug_enabled: bool = False) -> None:
        self.mod_name = mod_name
        self.debug_enabled = bool(debug_enabled)
        self._logged_once: Set[str] = set()
        _root_logger()
        self._logger = logging.getLogger(f"{ROOT_LOGGER_NAME}.{mod_name}")

    def _log(self, level: int, once: bool, message: str, args: tuple) -> None:
        if level == logging.DEBUG and not self.debug_enabled:
            return
        if once:
            key = f"{level}:{message}"
            if key in self._logged_once:
                return
            self._logged_once.add(key)
        text = _format(message, args)
        self._logger.log(
            level, "[%s] %s%s", self.mod_name, _PREFIX.get(level, ""), text
        )

    def debug(self, message: str, *args: Any) -> None:
        self._log(logging.DEBUG, False, message, args)

    def info(self, message: str, *args: Any) -> None:
        self._log(logging.INFO, False, message, args)

    def warning(self, message: str, *args: Any) -> None:
        self._log(logging.WARNING, False, message, args)

    def error(self, message: str, *args: Any) -> None:
        self._log(logging.ERROR, False, message, args)

    def debug_once(self, message: str, *args: Any) -> None:
        self._log(logging.DEBUG, True, message, args)

    def info_once(self, message: str, *args: Any) -> None:
        self._log(logging.INFO, True, message, args)

    def warning_once(self, message: str, *args: Any) -> None:
        self._log(logging.WARNING, True, message, args)

    def error_once(self, message: str, *args: Any) -> None:
        self._log(logging.ERROR, True, message, args)


def create_logger(mod_name: str, debug_enabled: bool = False) -> ModLogger:
    """Create (or refresh the debug flag of) the logger for ``mod_name``."""
    logger = _loggers.get(mod_name)
    if logger is None:
        logger = ModLogger(mod_name, debug_enabled)
        _loggers[mod_name] = logger
    else:
        logger.debug_enabled = bool(debug_enabled)
    return logger


def get_logger(mod_name: str) -> ModLogger:
    return _loggers.get(mod_name) or create_logger(mod_name)


__all__ = ["ModLogger", "create_logger", "get_logger", "ROOT_LOGGER_NAME"]
