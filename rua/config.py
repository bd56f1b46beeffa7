# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
ruaconf.toml: project configuration.

Lookup order: an explicit path, then $RUA_CONFIG, then the first
`ruaconf.toml` found walking up from the working directory.

  [rua]
  native_entry = "native"
  platform_entry = "lib"
  target = "dart"                 # built-in name or capabilities JSON path
  target_word_bits = 64
  workers = 1
  export_markers = ["rua::export", "rua_export"]

  [ownership]
  "crate::buf::take" = { return = "transferred_out", buf = "transferred_in" }

  [logging]
  console_level = "INFO"
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping, Optional

import tomli as toml

from .abi_resolver import OwnershipHints, parse_mode
from .collector import DEFAULT_EXPORT_MARKERS
from .core.errors import ConfigError
from .core.layout import OwnershipMode
from .logging import get_logger

logger = get_logger(__name__)

CONFIG_NAME = "ruaconf.toml"
CONFIG_ENV = "RUA_CONFIG"
DEFAULT_NATIVE_ENTRY = "native"
DEFAULT_PLATFORM_ENTRY = "lib"
DEFAULT_TARGET = "dart"

_RUA_KEYS = {"native_entry", "platform_entry", "target", "target_word_bits", "workers", "export_markers"}
_LOGGING_KEYS = {"console_level", "file_level", "file", "color"}
_TOP_KEYS = {"rua", "ownership", "logging"}


@dataclass(frozen=True)
class RuaConfig:
	root_dir: str
	native_entry: str = DEFAULT_NATIVE_ENTRY
	platform_entry: str = DEFAULT_PLATFORM_ENTRY
	target: str = DEFAULT_TARGET
	target_word_bits: int = 64
	workers: int = 1
	export_markers: tuple[str, ...] = DEFAULT_EXPORT_MARKERS
	ownership: OwnershipHints = field(default_factory=dict)
	logging: Mapping[str, Any] = field(default_factory=dict)
	path: Optional[str] = None  # None when running on defaults

	def resolve_target(self) -> str:
		"""A built-in target name as-is; a capability file relative to the config root."""
		if self.target.endswith(".json") and not os.path.isabs(self.target):
			return os.path.join(self.root_dir, self.target)
		return self.target


def _fail(message: str, path: Optional[str], where: str) -> ConfigError:
	return ConfigError(message=message, path=path, where=where)


def _table(data: Mapping[str, Any], key: str, path: Optional[str]) -> Mapping[str, Any]:
	val = data.get(key, {})
	if not isinstance(val, dict):
		raise _fail("must be a table", path, key)
	return val


def _ownership(raw: Mapping[str, Any], path: Optional[str]) -> dict[str, dict[str, OwnershipMode]]:
	out: dict[str, dict[str, OwnershipMode]] = {}
	for item, slots in raw.items():
		if not isinstance(slots, dict) or not slots:
			raise _fail("must be a non-empty inline table of slot = mode", path, f"ownership.{item}")
		modes: dict[str, OwnershipMode] = {}
		for slot, mode_name in slots.items():
			if not isinstance(mode_name, str):
				raise _fail("ownership mode must be a string", path, f"ownership.{item}.{slot}")
			try:
				modes[slot] = parse_mode(mode_name)
			except ValueError as err:
				raise _fail(str(err), path, f"ownership.{item}.{slot}") from err
		out[item] = modes
	return out


def config_from_obj(data: Mapping[str, Any], *, root_dir: str, path: Optional[str] = None) -> RuaConfig:
	"""Validate a decoded ruaconf.toml document."""
	unknown = sorted(set(data.keys()) - _TOP_KEYS)
	if unknown:
		raise _fail(f"unknown tables: {', '.join(unknown)}", path, "$")
	rua = _table(data, "rua", path)
	unknown = sorted(set(rua.keys()) - _RUA_KEYS)
	if unknown:
		raise _fail(f"unknown keys: {', '.join(unknown)}", path, "rua")
	for key in ("native_entry", "platform_entry", "target"):
		if key in rua and (not isinstance(rua[key], str) or not rua[key]):
			raise _fail("must be a non-empty string", path, f"rua.{key}")
	word_bits = rua.get("target_word_bits", 64)
	if not isinstance(word_bits, int) or isinstance(word_bits, bool) or word_bits not in (32, 64):
		raise _fail("must be 32 or 64", path, "rua.target_word_bits")
	workers = rua.get("workers", 1)
	if not isinstance(workers, int) or isinstance(workers, bool) or workers < 1:
		raise _fail("must be a positive integer", path, "rua.workers")
	markers = rua.get("export_markers", list(DEFAULT_EXPORT_MARKERS))
	if not isinstance(markers, list) or any(not isinstance(m, str) or not m for m in markers):
		raise _fail("must be a list of non-empty strings", path, "rua.export_markers")

	logging_cfg = _table(data, "logging", path)
	unknown = sorted(set(logging_cfg.keys()) - _LOGGING_KEYS)
	if unknown:
		raise _fail(f"unknown keys: {', '.join(unknown)}", path, "logging")

	return RuaConfig(
		root_dir=root_dir,
		native_entry=rua.get("native_entry", DEFAULT_NATIVE_ENTRY),
		platform_entry=rua.get("platform_entry", DEFAULT_PLATFORM_ENTRY),
		target=rua.get("target", DEFAULT_TARGET),
		target_word_bits=word_bits,
		workers=workers,
		export_markers=tuple(markers),
		ownership=_ownership(_table(data, "ownership", path), path),
		logging=dict(logging_cfg),
		path=path,
	)


def find_config(start: Optional[Path] = None) -> Optional[Path]:
	"""First ruaconf.toml in `start` (default: cwd) or any parent directory."""
	current = (start or Path.cwd()).resolve()
	for directory in (current, *current.parents):
		candidate = directory / CONFIG_NAME
		if candidate.is_file():
			return candidate
	return None


def load_config(path: Path | str) -> RuaConfig:
	path = Path(path).expanduser()
	if not path.is_file():
		raise _fail("config file not found", str(path), "$")
	try:
		with open(path, "rb") as f:
			data = toml.load(f)
	except toml.TOMLDecodeError as err:
		raise _fail(f"invalid TOML: {err}", str(path), "$") from err
	return config_from_obj(data, root_dir=str(path.resolve().parent), path=str(path))


def default_config(root_dir: Optional[str] = None) -> RuaConfig:
	return RuaConfig(root_dir=root_dir or os.getcwd())


def load_config_or_default(config_file: Optional[str] = None, *, start: Optional[Path] = None) -> RuaConfig:
	"""
	Explicit file, then $RUA_CONFIG, then a walk up from `start`.

	An explicit or environment-named file must exist; when nothing is found
	by walking up, a warning is logged and defaults are used.
	"""
	if config_file:
		return load_config(config_file)
	env_candidate = os.environ.get(CONFIG_ENV)
	if env_candidate:
		env_path = Path(env_candidate).expanduser()
		if not env_path.is_file():
			raise _fail(f"${CONFIG_ENV} does not point to a readable file", env_candidate, "$")
		return load_config(env_path)
	found = find_config(start)
	if found is None:
		logger.warning("Failed to find %s, using default configuration", CONFIG_NAME)
		return default_config(str((start or Path.cwd()).resolve()))
	return load_config(found)


__all__ = [
	"CONFIG_ENV",
	"CONFIG_NAME",
	"RuaConfig",
	"config_from_obj",
	"default_config",
	"find_config",
	"load_config",
	"load_config_or_default",
]
