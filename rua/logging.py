# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Logging setup for the `rua` logger namespace.

Library code only ever calls `get_logger(__name__)`; handlers are installed
once by the driver via `configure_logging`. Records below ERROR go to stdout,
ERROR and above to stderr, and an optional `[logging] file` mirrors
everything at `file_level`.
"""

from __future__ import annotations

import logging as _logging
import os
import sys
from dataclasses import dataclass
from typing import Any, Mapping, Optional, TextIO

NAMESPACE = "rua"

_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s:%(lineno)d | %(message)s"
_DATEFMT = "%Y-%m-%d %H:%M:%S"

_LEVEL_COLORS = {
	_logging.DEBUG: "36",
	_logging.INFO: "37",
	_logging.WARNING: "33",
	_logging.ERROR: "31",
	_logging.CRITICAL: "41",
}


@dataclass(frozen=True)
class LogSettings:
	"""What the last `configure_logging` call installed."""

	console_level: int
	file_level: int
	log_file: Optional[str] = None


_active: Optional[LogSettings] = None


def _level(value: Any, default: int) -> int:
	"""`"debug"`, `"10"`, `10` or None (-> default) to a numeric level."""
	if value is None:
		return default
	if isinstance(value, int) and not isinstance(value, bool):
		return value
	text = str(value).strip().upper()
	if text.isdigit():
		return int(text)
	level = _logging.getLevelName(text)
	if not isinstance(level, int):
		raise ValueError(f"Unknown log level: {value}")
	return level


class _ConsoleFormatter(_logging.Formatter):
	def __init__(self, colored: bool) -> None:
		super().__init__(fmt=_FORMAT, datefmt=_DATEFMT)
		self.colored = colored

	def format(self, record: _logging.LogRecord) -> str:
		text = super().format(record)
		code = _LEVEL_COLORS.get(record.levelno) if self.colored else None
		return f"\033[{code}m{text}\033[0m" if code else text


class _BelowLevel(_logging.Filter):
	"""Pass only records strictly below `ceiling`."""

	def __init__(self, ceiling: int) -> None:
		super().__init__()
		self.ceiling = ceiling

	def filter(self, record: _logging.LogRecord) -> bool:
		return record.levelno < self.ceiling


def _console_handler(stream: TextIO, level: int, *, ceiling: Optional[int], color: bool) -> _logging.Handler:
	handler = _logging.StreamHandler(stream=stream)
	handler.setLevel(level)
	if ceiling is not None:
		handler.addFilter(_BelowLevel(ceiling))
	handler.setFormatter(_ConsoleFormatter(color and stream.isatty()))
	return handler


def get_logger(name: Optional[str] = None) -> _logging.Logger:
	"""The `rua` logger, or a child of it (`rua.` is prefixed when missing)."""
	if not name or name == NAMESPACE:
		return _logging.getLogger(NAMESPACE)
	if not name.startswith(NAMESPACE + "."):
		name = f"{NAMESPACE}.{name}"
	return _logging.getLogger(name)


def configure_logging(
	config: Optional[Mapping[str, Any]] = None,
	*,
	console_level_override: Optional[str] = None,
	disable_color: bool = False,
	force_reconfigure: bool = False,
) -> LogSettings:
	"""
	Install console (and optional file) handlers on the `rua` logger.

	`config` is the `[logging]` table of ruaconf.toml (keys: console_level,
	file_level, file, color). Calling again is a no-op unless
	`force_reconfigure` is set.
	"""
	global _active

	root = get_logger()
	if _active is not None and root.handlers and not force_reconfigure:
		return _active

	cfg = dict(config or {})
	console_level = _level(console_level_override, _level(cfg.get("console_level"), _logging.INFO))
	file_level = _level(cfg.get("file_level"), _logging.DEBUG)
	color = bool(cfg.get("color", True)) and not disable_color
	log_file = os.path.abspath(cfg["file"]) if cfg.get("file") else None

	for old in list(root.handlers):
		root.removeHandler(old)
		old.close()
	root.propagate = False
	root.setLevel(min(console_level, file_level) if log_file else console_level)

	root.addHandler(_console_handler(sys.stdout, console_level, ceiling=_logging.ERROR, color=color))
	root.addHandler(_console_handler(sys.stderr, max(console_level, _logging.ERROR), ceiling=None, color=color))
	if log_file:
		os.makedirs(os.path.dirname(log_file), exist_ok=True)
		file_handler = _logging.FileHandler(log_file, encoding="utf-8")
		file_handler.setLevel(file_level)
		file_handler.setFormatter(_logging.Formatter(_FORMAT, _DATEFMT))
		root.addHandler(file_handler)

	_active = LogSettings(console_level=console_level, file_level=file_level, log_file=log_file)
	return _active


__all__ = ["LogSettings", "NAMESPACE", "configure_logging", "get_logger"]
