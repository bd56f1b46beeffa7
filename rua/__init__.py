# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
rua: native-to-foreign interface compiler core.

Stages:
  collector:     select exportable items from a parsed native module
  type_builder:  native type expressions -> canonical interface types
  abi_resolver:  layouts + per-position ownership modes
  validator:     all-or-nothing gate before emitters see anything

The pipeline entrypoint is `rua.pipeline.run_pipeline`; the CLI driver is
`rua.ruac:main` (also `python -m rua`).
"""

__all__ = ["core", "native", "collector", "type_builder", "abi_resolver", "validator", "emitters", "pipeline"]
