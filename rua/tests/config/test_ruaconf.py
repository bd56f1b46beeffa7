# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
from __future__ import annotations

import logging
import os
from pathlib import Path

import pytest

from rua.config import (
	CONFIG_ENV,
	config_from_obj,
	default_config,
	find_config,
	load_config,
	load_config_or_default,
)
from rua.core.errors import ConfigError
from rua.core.layout import OwnershipMode

_FULL = """
[rua]
native_entry = "rust"
platform_entry = "dart_lib"
target = "caps/swift.json"
target_word_bits = 32
workers = 4
export_markers = ["ffi::expose"]

[ownership]
"crate::buf::take" = { return = "transferred_out", buf = "TransferredIn" }

[logging]
console_level = "DEBUG"
"""


def _write(directory: Path, text: str) -> Path:
	directory.mkdir(parents=True, exist_ok=True)
	path = directory / "ruaconf.toml"
	path.write_text(text, encoding="utf-8")
	return path


def test_full_config_is_loaded(tmp_path: Path) -> None:
	path = _write(tmp_path, _FULL)
	cfg = load_config(path)
	assert cfg.native_entry == "rust"
	assert cfg.platform_entry == "dart_lib"
	assert cfg.target_word_bits == 32
	assert cfg.workers == 4
	assert cfg.export_markers == ("ffi::expose",)
	assert cfg.ownership == {
		"crate::buf::take": {"return": OwnershipMode.TRANSFERRED_OUT, "buf": OwnershipMode.TRANSFERRED_IN}
	}
	assert cfg.logging == {"console_level": "DEBUG"}
	assert cfg.path == str(path)
	assert cfg.resolve_target() == os.path.join(str(tmp_path.resolve()), "caps/swift.json")


def test_empty_config_uses_defaults(tmp_path: Path) -> None:
	cfg = load_config(_write(tmp_path, ""))
	assert (cfg.native_entry, cfg.platform_entry, cfg.target) == ("native", "lib", "dart")
	assert cfg.target_word_bits == 64
	assert cfg.workers == 1
	assert cfg.resolve_target() == "dart"


def test_find_config_walks_up(tmp_path: Path) -> None:
	path = _write(tmp_path, "")
	nested = tmp_path / "a" / "b"
	nested.mkdir(parents=True)
	assert find_config(nested) == path.resolve()


@pytest.mark.parametrize(
	"data,where",
	[
		({"build": {}}, "$"),
		({"rua": []}, "rua"),
		({"rua": {"color": True}}, "rua"),
		({"rua": {"target": ""}}, "rua.target"),
		({"rua": {"target_word_bits": 16}}, "rua.target_word_bits"),
		({"rua": {"target_word_bits": 64.0}}, "rua.target_word_bits"),
		({"rua": {"target_word_bits": True}}, "rua.target_word_bits"),
		({"rua": {"workers": 0}}, "rua.workers"),
		({"rua": {"workers": True}}, "rua.workers"),
		({"rua": {"export_markers": "rua::export"}}, "rua.export_markers"),
		({"ownership": {"crate::f": {}}}, "ownership.crate::f"),
		({"ownership": {"crate::f": {"return": 1}}}, "ownership.crate::f.return"),
		({"ownership": {"crate::f": {"return": "leaked"}}}, "ownership.crate::f.return"),
		({"logging": {"verbose": True}}, "logging"),
	],
)
def test_invalid_config_is_rejected_with_location(data: dict, where: str) -> None:
	with pytest.raises(ConfigError) as info:
		config_from_obj(data, root_dir="/proj", path="/proj/ruaconf.toml")
	assert info.value.where == where


def test_missing_and_malformed_files(tmp_path: Path) -> None:
	with pytest.raises(ConfigError, match="config file not found"):
		load_config(tmp_path / "nope.toml")
	with pytest.raises(ConfigError, match="invalid TOML"):
		load_config(_write(tmp_path, "[rua\n"))


def test_lookup_order(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
	walked = _write(tmp_path / "proj", '[rua]\ntarget = "walked"\n')
	env = _write(tmp_path / "env", '[rua]\ntarget = "env"\n')
	explicit = _write(tmp_path / "explicit", '[rua]\ntarget = "explicit"\n')
	monkeypatch.setenv(CONFIG_ENV, str(env))
	assert load_config_or_default(str(explicit)).target == "explicit"
	assert load_config_or_default(start=walked.parent).target == "env"
	monkeypatch.delenv(CONFIG_ENV)
	assert load_config_or_default(start=walked.parent).target == "walked"

	monkeypatch.setenv(CONFIG_ENV, str(tmp_path / "missing.toml"))
	with pytest.raises(ConfigError, match="RUA_CONFIG"):
		load_config_or_default(start=walked.parent)


def test_defaults_with_warning_when_nothing_is_found(
	tmp_path: Path, monkeypatch: pytest.MonkeyPatch, caplog: pytest.LogCaptureFixture
) -> None:
	monkeypatch.delenv(CONFIG_ENV, raising=False)
	monkeypatch.setattr("rua.config.find_config", lambda start=None: None)
	with caplog.at_level(logging.WARNING, logger="rua"):
		cfg = load_config_or_default(start=tmp_path)
	assert cfg.path is None
	assert cfg.root_dir == str(tmp_path.resolve())
	assert cfg == default_config(str(tmp_path.resolve()))
	assert "Failed to find ruaconf.toml" in caplog.text
