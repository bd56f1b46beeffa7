# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Emitter capability tables.

An emitter declares, before resolution runs, which (IT variant, ownership
mode) pairs it can render and which runtime helpers release/retain values
in each mode. The resolver consults the table for every slot, so the same
module can validate against one target and fail against another.

JSON form (v0), for emitters that run out of process:

  {
    "format": "rua-capabilities",
    "version": 0,
    "target": "swift",
    "int_bits": [8, 16, 32, 64],
    "float_bits": [32, 64],
    "text_encodings": ["utf8"],
    "entries": {
      "Sequence": {
        "Borrowed": {},
        "TransferredOut": {"release": "rt_free_{symbol}"}
      },
      ...
    }
  }

`{symbol}` in helper names expands to the IT's mangled symbol
(`rua_free_{symbol}` -> `rua_free_seq_u8`).
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping, Optional

from ..core.errors import CapabilityFormatError
from ..core.layout import NO_OBLIGATION, OBLIGATION_FOR_MODE, Obligation, ObligationKind, OwnershipMode
from ..core.types_core import (
	InterfaceType,
	Primitive,
	PrimitiveKind,
	Text,
	TextEncoding,
	TypeKind,
	type_symbol,
)

FORMAT = "rua-capabilities"
VERSION = 0


@dataclass(frozen=True)
class CapabilityEntry:
	supported: bool = True
	release: Optional[str] = None  # helper name template, may contain {symbol}
	retain: Optional[str] = None


@dataclass(frozen=True)
class CapabilityTable:
	target: str
	entries: Mapping[tuple[TypeKind, OwnershipMode], CapabilityEntry] = field(default_factory=dict)
	int_bits: frozenset[int] = frozenset({8, 16, 32, 64})
	float_bits: frozenset[int] = frozenset({32, 64})
	text_encodings: frozenset[TextEncoding] = frozenset({TextEncoding.UTF8})

	def entry(self, kind: TypeKind, mode: OwnershipMode) -> Optional[CapabilityEntry]:
		found = self.entries.get((kind, mode))
		if found is None or not found.supported:
			return None
		return found

	def check(self, ty: InterfaceType, mode: OwnershipMode) -> Optional[str]:
		"""Why this target cannot render `ty` in `mode` (None when it can)."""
		if isinstance(ty, Primitive):
			if ty.kind is PrimitiveKind.INT and ty.bits not in self.int_bits:
				return f"target `{self.target}` has no {ty.bits}-bit integers"
			if ty.kind is PrimitiveKind.FLOAT and ty.bits not in self.float_bits:
				return f"target `{self.target}` has no {ty.bits}-bit floats"
		if isinstance(ty, Text) and ty.encoding not in self.text_encodings:
			return f"target `{self.target}` cannot render {ty.encoding.value} text"
		if self.entry(ty.type_kind, mode) is None:
			return f"target `{self.target}` cannot render {ty.type_kind.value} values as {mode.value}"
		return None

	def obligation(self, ty: InterfaceType, mode: OwnershipMode) -> Obligation:
		"""The release/retain duty for `ty` in `mode`, helper names expanded."""
		kind = OBLIGATION_FOR_MODE[mode]
		if kind is ObligationKind.NONE:
			return NO_OBLIGATION
		entry = self.entry(ty.type_kind, mode)
		if entry is None:
			return Obligation(kind)
		symbol = type_symbol(ty)
		release = entry.release.format(symbol=symbol) if entry.release else None
		retain = entry.retain.format(symbol=symbol) if entry.retain and kind is ObligationKind.RETAIN_RELEASE else None
		return Obligation(kind=kind, release_fn=release, retain_fn=retain)

	def to_obj(self) -> dict[str, Any]:
		entries: dict[str, dict[str, Any]] = {}
		for (kind, mode), entry in sorted(self.entries.items(), key=lambda kv: (kv[0][0].value, kv[0][1].value)):
			if not entry.supported:
				continue
			obj: dict[str, Any] = {}
			if entry.release:
				obj["release"] = entry.release
			if entry.retain:
				obj["retain"] = entry.retain
			entries.setdefault(kind.value, {})[mode.value] = obj
		return {
			"format": FORMAT,
			"version": VERSION,
			"target": self.target,
			"int_bits": sorted(self.int_bits),
			"float_bits": sorted(self.float_bits),
			"text_encodings": sorted(e.value for e in self.text_encodings),
			"entries": entries,
		}


def _dart_entries() -> dict[tuple[TypeKind, OwnershipMode], CapabilityEntry]:
	free = CapabilityEntry(release="rua_free_{symbol}")
	counted = CapabilityEntry(release="rua_release_{symbol}", retain="rua_retain_{symbol}")
	borrowed = CapabilityEntry()
	out: dict[tuple[TypeKind, OwnershipMode], CapabilityEntry] = {
		(TypeKind.PRIMITIVE, OwnershipMode.BORROWED): borrowed,
	}
	for kind in (TypeKind.POINTER, TypeKind.SEQUENCE, TypeKind.TEXT, TypeKind.RECORD, TypeKind.TAGGED_UNION):
		out[(kind, OwnershipMode.BORROWED)] = borrowed
		out[(kind, OwnershipMode.TRANSFERRED_OUT)] = free
		out[(kind, OwnershipMode.TRANSFERRED_IN)] = free
	for kind in (TypeKind.FUNCTION, TypeKind.OPAQUE):
		out[(kind, OwnershipMode.BORROWED)] = borrowed
		out[(kind, OwnershipMode.TRANSFERRED_OUT)] = CapabilityEntry(release="rua_drop_{symbol}")
		out[(kind, OwnershipMode.TRANSFERRED_IN)] = CapabilityEntry(release="rua_drop_{symbol}")
		out[(kind, OwnershipMode.SHARED_COUNTED)] = counted
	out[(TypeKind.POINTER, OwnershipMode.SHARED_COUNTED)] = counted
	return out


def dart_capabilities() -> CapabilityTable:
	"""Dart FFI: no 128-bit integers; all four ownership modes via `rua_*` helpers."""
	return CapabilityTable(
		target="dart",
		entries=_dart_entries(),
		int_bits=frozenset({8, 16, 32, 64}),
		float_bits=frozenset({32, 64}),
		text_encodings=frozenset({TextEncoding.UTF8, TextEncoding.C_STRING}),
	)


BUILTIN_TABLES = {"dart": dart_capabilities}

_MODE_NAMES = {m.value: m for m in OwnershipMode}
_KIND_NAMES = {k.value: k for k in TypeKind}


def _fail(message: str, path: Optional[str], where: str) -> CapabilityFormatError:
	return CapabilityFormatError(message=message, path=path, where=where)


def _int_set(data: Mapping[str, Any], key: str, path: Optional[str], default: frozenset[int]) -> frozenset[int]:
	if key not in data:
		return default
	val = data[key]
	if not isinstance(val, list) or any(not isinstance(b, int) or isinstance(b, bool) or b <= 0 for b in val):
		raise _fail("must be a list of positive integers", path, f"$.{key}")
	return frozenset(val)


def capabilities_from_obj(data: Any, *, path: Optional[str] = None) -> CapabilityTable:
	"""Validate and convert a decoded capability document."""
	if not isinstance(data, dict):
		raise _fail("capability table must be a JSON object", path, "$")
	if data.get("format") != FORMAT or data.get("version") != VERSION:
		raise _fail("unsupported capability table format/version", path, "$")
	allowed_top = {"format", "version", "target", "int_bits", "float_bits", "text_encodings", "entries", "x"}
	unknown_top = sorted(set(data.keys()) - allowed_top)
	if unknown_top:
		raise _fail(f"unknown top-level fields: {', '.join(unknown_top)}", path, "$")
	target = data.get("target")
	if not isinstance(target, str) or not target:
		raise _fail("must be a non-empty string", path, "$.target")

	encodings_raw = data.get("text_encodings", ["utf8"])
	if not isinstance(encodings_raw, list):
		raise _fail("must be a list", path, "$.text_encodings")
	encodings: set[TextEncoding] = set()
	for idx, enc in enumerate(encodings_raw):
		try:
			encodings.add(TextEncoding(enc))
		except ValueError as err:
			raise _fail(f"unknown text encoding '{enc}'", path, f"$.text_encodings[{idx}]") from err

	entries_raw = data.get("entries")
	if not isinstance(entries_raw, dict):
		raise _fail("must be an object", path, "$.entries")
	entries: dict[tuple[TypeKind, OwnershipMode], CapabilityEntry] = {}
	for kind_name, modes in entries_raw.items():
		kind = _KIND_NAMES.get(kind_name)
		if kind is None:
			raise _fail(f"unknown interface type variant '{kind_name}'", path, f"$.entries.{kind_name}")
		if not isinstance(modes, dict):
			raise _fail("must be an object", path, f"$.entries.{kind_name}")
		for mode_name, raw in modes.items():
			where = f"$.entries.{kind_name}.{mode_name}"
			mode = _MODE_NAMES.get(mode_name)
			if mode is None:
				raise _fail(f"unknown ownership mode '{mode_name}'", path, where)
			if not isinstance(raw, dict):
				raise _fail("must be an object", path, where)
			unknown = sorted(set(raw.keys()) - {"supported", "release", "retain"})
			if unknown:
				raise _fail(f"unknown fields: {', '.join(unknown)}", path, where)
			supported = raw.get("supported", True)
			release = raw.get("release")
			retain = raw.get("retain")
			if not isinstance(supported, bool):
				raise _fail("'supported' must be a boolean", path, where)
			for key, val in (("release", release), ("retain", retain)):
				if val is not None and (not isinstance(val, str) or not val):
					raise _fail(f"'{key}' must be a non-empty string", path, where)
			entries[(kind, mode)] = CapabilityEntry(supported=supported, release=release, retain=retain)

	return CapabilityTable(
		target=target,
		entries=entries,
		int_bits=_int_set(data, "int_bits", path, frozenset({8, 16, 32, 64})),
		float_bits=_int_set(data, "float_bits", path, frozenset({32, 64})),
		text_encodings=frozenset(encodings),
	)


def load_capabilities(source: str | Path) -> CapabilityTable:
	"""A built-in table by name (`dart`) or a JSON capability file."""
	name = str(source)
	if name in BUILTIN_TABLES:
		return BUILTIN_TABLES[name]()
	path = Path(source)
	if not path.is_file():
		raise _fail(f"no built-in target '{name}' and no such capability file", name, "$")
	try:
		data = json.loads(path.read_text(encoding="utf-8"))
	except json.JSONDecodeError as err:
		raise _fail(f"invalid JSON: {err}", str(path), "$") from err
	return capabilities_from_obj(data, path=str(path))


__all__ = [
	"BUILTIN_TABLES",
	"CapabilityEntry",
	"CapabilityTable",
	"capabilities_from_obj",
	"dart_capabilities",
	"load_capabilities",
]
