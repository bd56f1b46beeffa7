# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Thin driver around the pipeline.

  python -m rua check native.json [--target dart|caps.json] [--word-bits N]
                                  [--workers N] [--json] [--emit-model out.json]
                                  [--config ruaconf.toml]
  python -m rua caps [dart|caps.json]

Exit codes: 0 success, 1 diagnostics, 2 usage/config/input errors.
"""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Any, Optional

from .config import RuaConfig, load_config_or_default
from .core.diagnostics import Diagnostic
from .core.errors import ConfigError, RuaError
from .emitters.base import ModelEmitter
from .emitters.capabilities import load_capabilities
from .logging import configure_logging, get_logger
from .native.loader import load_native_module
from .pipeline import PipelineResult, hand_off, run_pipeline

logger = get_logger(__name__)

EXIT_OK = 0
EXIT_DIAGNOSTICS = 1
EXIT_USAGE = 2


def _diag_to_json(diag: Diagnostic, source: Path) -> dict:
	"""Render a Diagnostic to a structured JSON-friendly dict."""
	obj = diag.to_obj()
	obj["file"] = diag.span.file or str(source)
	obj["line"] = diag.span.line
	obj["column"] = diag.span.column
	obj["severity"] = "error"
	return obj


def _print_diagnostics(result: PipelineResult, source: Path) -> None:
	for d in result.diagnostics:
		loc = "" if d.span.is_known() else f"{source}:?:?: "
		print(f"{loc}error: {d.render()}", file=sys.stderr)


def _error_payload(err: RuaError) -> dict[str, Any]:
	return {"exit_code": EXIT_USAGE, "error": err.to_dict(), "diagnostics": []}


def _build_parser() -> argparse.ArgumentParser:
	parser = argparse.ArgumentParser(prog="rua", description="rua interface compiler core")
	parser.add_argument("--config", type=Path, help="Path to ruaconf.toml (default: search upward from cwd)")
	parser.add_argument("--log-level", default=None, help="Console log level (DEBUG, INFO, ...)")
	parser.add_argument("--no-color", action="store_true", help="Disable colored log output")
	sub = parser.add_subparsers(dest="command", required=True)

	check = sub.add_parser("check", help="Resolve a native module and report diagnostics")
	check.add_argument("module", type=Path, help="Native module JSON produced by the upstream parser")
	check.add_argument("--target", help="Built-in target name or capability table JSON")
	check.add_argument("--word-bits", type=int, choices=(32, 64), help="Target word size in bits")
	check.add_argument("--workers", type=int, help="Threads used to build and resolve items")
	check.add_argument("--json", action="store_true", help="Print the result as JSON on stdout")
	check.add_argument("--emit-model", type=Path, help="Write the resolved JSON model on success")

	caps = sub.add_parser("caps", help="Print a capability table as JSON")
	caps.add_argument("target", nargs="?", default=None, help="Built-in target name or capability JSON")
	return parser


def _setup(args: argparse.Namespace, quiet: bool) -> RuaConfig:
	override = args.log_level or ("ERROR" if quiet else None)
	# Quiet first: config discovery may log, and --json owns stdout.
	try:
		configure_logging(None, console_level_override=override, disable_color=args.no_color, force_reconfigure=True)
	except ValueError as err:
		raise ConfigError(message=str(err), where="--log-level") from err
	config = load_config_or_default(str(args.config) if args.config else None)
	try:
		configure_logging(
			dict(config.logging),
			console_level_override=override,
			disable_color=args.no_color,
			force_reconfigure=True,
		)
	except ValueError as err:
		raise ConfigError(message=str(err), path=config.path, where="logging") from err
	if config.path:
		logger.debug("using configuration %s", config.path)
	return config


def _check(args: argparse.Namespace, config: RuaConfig) -> int:
	target = args.target or config.resolve_target()
	word_bits = args.word_bits or config.target_word_bits
	workers = args.workers or config.workers

	capabilities = load_capabilities(target)
	module = load_native_module(args.module)
	result = run_pipeline(
		module,
		capabilities,
		word_bits=word_bits,
		workers=workers,
		export_markers=config.export_markers,
		hints=config.ownership,
	)
	model: Optional[dict[str, Any]] = None
	if result.ok:
		model = hand_off(result, ModelEmitter(capabilities, args.emit_model))

	exit_code = EXIT_OK if result.ok else EXIT_DIAGNOSTICS
	if args.json:
		payload: dict[str, Any] = {
			"exit_code": exit_code,
			"diagnostics": [_diag_to_json(d, args.module) for d in result.diagnostics],
		}
		if model is not None:
			payload["model"] = model
		print(json.dumps(payload, sort_keys=True))
	elif result.ok:
		print(f"{module.name}: {len(result.items)} item(s) ready for target {capabilities.target}")
	else:
		_print_diagnostics(result, args.module)
	return exit_code


def _caps(args: argparse.Namespace, config: RuaConfig) -> int:
	table = load_capabilities(args.target or config.resolve_target())
	print(json.dumps(table.to_obj(), indent=2, sort_keys=True))
	return EXIT_OK


def main(argv: list[str] | None = None) -> int:
	"""CLI entrypoint; returns the process exit code."""
	parser = _build_parser()
	args = parser.parse_args(argv)
	if getattr(args, "workers", None) is not None and args.workers < 1:
		parser.error("--workers must be a positive integer")
	as_json = bool(getattr(args, "json", False))
	try:
		config = _setup(args, quiet=as_json or args.command == "caps")
		if args.command == "caps":
			return _caps(args, config)
		return _check(args, config)
	except RuaError as err:
		if as_json:
			print(json.dumps(_error_payload(err), sort_keys=True))
		else:
			print(f"rua: error: {err.format_human()}", file=sys.stderr)
		return EXIT_USAGE


__all__ = ["main"]
