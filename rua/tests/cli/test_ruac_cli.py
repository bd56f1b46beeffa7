# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Driver behavior: exit codes, human and JSON output, model emission.
"""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from rua.config import CONFIG_ENV
from rua.logging import configure_logging
from rua.ruac import EXIT_DIAGNOSTICS, EXIT_OK, EXIT_USAGE, main


@pytest.fixture(autouse=True)
def _isolated_cwd(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
	monkeypatch.chdir(tmp_path)
	monkeypatch.delenv(CONFIG_ENV, raising=False)


def _fn(name: str, ret: str | None = None, params: list[tuple[str, str]] = (), **extra) -> dict:
	obj = {
		"kind": "fn",
		"name": name,
		"visibility": "pub",
		"params": [{"name": n, "type": t} for n, t in params],
		"ret": ret,
	}
	obj.update(extra)
	return obj


def _write_module(path: Path, items: list[dict]) -> Path:
	doc = {"format": "rua-native-module", "version": 0, "module": {"name": "crate", "items": items}}
	path.write_text(json.dumps(doc), encoding="utf-8")
	return path


def test_check_success_prints_summary(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
	mod = _write_module(tmp_path / "native.json", [_fn("make", "Vec<u8>"), _fn("len", "usize", [("s", "&str")])])
	assert main(["check", str(mod)]) == EXIT_OK
	out = capsys.readouterr().out
	assert "crate: 2 item(s) ready for target dart" in out


def test_check_failure_reports_diagnostics_on_stderr(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
	span = {"file": "src/lib.rs", "line": 12, "column": 1}
	mod = _write_module(tmp_path / "native.json", [_fn("alloc", "*mut u8", span=span)])
	assert main(["check", str(mod)]) == EXIT_DIAGNOSTICS
	err = capsys.readouterr().err
	assert "error: src/lib.rs:12:1: AmbiguousOwnership in `crate::alloc`" in err
	assert "note: declare it in ruaconf.toml" in err


def test_check_json_output(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
	mod = _write_module(tmp_path / "native.json", [_fn("big", "u128"), _fn("ok", "u8")])
	assert main(["check", str(mod), "--json"]) == EXIT_DIAGNOSTICS
	payload = json.loads(capsys.readouterr().out)
	assert payload["exit_code"] == EXIT_DIAGNOSTICS
	assert "model" not in payload
	(diag,) = payload["diagnostics"]
	assert diag["kind"] == "Unsupported"
	assert diag["item"] == "crate::big"
	assert diag["file"] == str(mod)
	assert diag["line"] is None
	assert diag["severity"] == "error"


def test_emit_model_and_json_success(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
	mod = _write_module(tmp_path / "native.json", [_fn("make", "Vec<u8>")])
	out = tmp_path / "build" / "model.json"
	code = main(["check", str(mod), "--json", "--word-bits", "32", "--workers", "2", "--emit-model", str(out)])
	assert code == EXIT_OK
	payload = json.loads(capsys.readouterr().out)
	assert payload["diagnostics"] == []
	assert payload["model"]["word_bits"] == 32
	written = json.loads(out.read_text(encoding="utf-8"))
	assert written == payload["model"]
	(item,) = written["items"]
	assert item["slots"]["children"][0]["obligation"]["release"] == "rua_free_seq_u8"


def test_config_supplies_hints_and_target(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
	caps = {
		"format": "rua-capabilities",
		"version": 0,
		"target": "tiny",
		"entries": {
			"Primitive": {"Borrowed": {}},
			"Function": {"Borrowed": {}},
			"Pointer": {"Borrowed": {}, "TransferredOut": {"release": "tiny_free_{symbol}"}},
		},
	}
	(tmp_path / "tiny.json").write_text(json.dumps(caps), encoding="utf-8")
	(tmp_path / "ruaconf.toml").write_text(
		'[rua]\ntarget = "tiny.json"\n\n[ownership]\n"crate::alloc" = { return = "transferred_out" }\n',
		encoding="utf-8",
	)
	mod = _write_module(tmp_path / "native.json", [_fn("alloc", "*mut u8", [("n", "u32")])])
	assert main(["check", str(mod)]) == EXIT_OK
	assert "ready for target tiny" in capsys.readouterr().out


def test_malformed_module_is_a_usage_error(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
	bad = tmp_path / "native.json"
	bad.write_text(json.dumps({"format": "rua-native-module", "version": 0, "module": {"name": "crate", "items": 3}}))
	assert main(["check", str(bad)]) == EXIT_USAGE
	assert "rua: error: [native-module-format]" in capsys.readouterr().err

	assert main(["check", str(bad), "--json"]) == EXIT_USAGE
	payload = json.loads(capsys.readouterr().out)
	assert payload["error"]["reason_code"] == "native-module-format"
	assert payload["error"]["where"] == "$.module.items"


def test_json_stdout_stays_clean_under_verbose_logging(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
	configure_logging({"console_level": "DEBUG"}, force_reconfigure=True)
	mod = _write_module(tmp_path / "native.json", [_fn("ok", "u8")])
	assert main(["check", str(mod), "--json"]) == EXIT_OK
	out = capsys.readouterr().out
	assert "Failed to find" not in out
	assert json.loads(out)["exit_code"] == EXIT_OK


def test_unknown_log_level_is_a_usage_error(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
	mod = _write_module(tmp_path / "native.json", [])
	assert main(["--log-level", "chatty", "check", str(mod)]) == EXIT_USAGE
	assert "Unknown log level: chatty" in capsys.readouterr().err


def test_missing_explicit_config_is_a_usage_error(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
	mod = _write_module(tmp_path / "native.json", [])
	assert main(["--config", str(tmp_path / "nope.toml"), "check", str(mod)]) == EXIT_USAGE
	assert "config file not found" in capsys.readouterr().err


def test_caps_prints_table(capsys: pytest.CaptureFixture[str]) -> None:
	assert main(["caps"]) == EXIT_OK
	table = json.loads(capsys.readouterr().out)
	assert table["target"] == "dart"
	assert table["entries"]["Pointer"]["SharedCounted"]["retain"] == "rua_retain_{symbol}"


def test_bad_workers_is_rejected_by_the_parser(tmp_path: Path) -> None:
	mod = _write_module(tmp_path / "native.json", [])
	with pytest.raises(SystemExit) as info:
		main(["check", str(mod), "--workers", "0"])
	assert info.value.code == EXIT_USAGE
