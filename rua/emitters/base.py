# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
What emitters receive, and the protocol they implement.

An EmissionBundle only ever holds validated items: the pipeline builds one
after the validator reports `ok`, never before. `to_obj()` is a deterministic
JSON model (stable key order, collection order for items) for emitters that
run out of process.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Protocol

from ..abi_resolver import ResolvedItem
from ..core.types_core import NominalEntry, render_type
from .capabilities import CapabilityTable

MODEL_FORMAT = "rua-model"
MODEL_VERSION = 0


@dataclass(frozen=True)
class EmissionBundle:
	items: tuple[ResolvedItem, ...]
	capabilities: CapabilityTable
	word_bits: int
	nominals: tuple[NominalEntry, ...] = ()

	@property
	def target(self) -> str:
		return self.capabilities.target

	def to_obj(self) -> dict[str, Any]:
		items: list[dict[str, Any]] = []
		for r in self.items:
			items.append(
				{
					"name": r.item.qualified_name,
					"kind": r.item.kind.value,
					"symbol": r.item.symbol,
					"index": r.item.index,
					"type": render_type(r.type),
					"mode": r.mode.value,
					"layout": r.layout.to_obj(),
					"slots": r.root.to_obj(),
				}
			)
		return {
			"format": MODEL_FORMAT,
			"version": MODEL_VERSION,
			"target": self.target,
			"word_bits": self.word_bits,
			"items": items,
			"nominals": [{"handle": n.handle_id, "name": n.name} for n in self.nominals],
			"capabilities": self.capabilities.to_obj(),
		}


class Emitter(Protocol):
	"""A per-language binding generator fed by the pipeline."""

	target: str

	def capabilities(self) -> CapabilityTable:
		"""The table the resolver and validator check every slot against."""
		...

	def emit(self, bundle: EmissionBundle) -> Any:
		"""Render bindings for a validated bundle."""
		...


class ModelEmitter:
	"""
	Writes the bundle's JSON model, for an emitter living in another process.

	The capability table is whatever that emitter declared (built-in or JSON).
	"""

	def __init__(self, capabilities: CapabilityTable, out_path: Path | str | None = None) -> None:
		self._capabilities = capabilities
		self.target = capabilities.target
		self.out_path = Path(out_path) if out_path is not None else None

	def capabilities(self) -> CapabilityTable:
		return self._capabilities

	def emit(self, bundle: EmissionBundle) -> dict[str, Any]:
		obj = bundle.to_obj()
		if self.out_path is not None:
			self.out_path.parent.mkdir(parents=True, exist_ok=True)
			self.out_path.write_text(json.dumps(obj, indent=2, sort_keys=True) + "\n", encoding="utf-8")
		return obj


__all__ = ["EmissionBundle", "Emitter", "MODEL_FORMAT", "MODEL_VERSION", "ModelEmitter"]
