# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Boundary layouts: AbiLayout geometry per IT, ownership modes per position.

Geometry is a property of the IT alone (one AbiLayout per IT, computed once
and cached). Ownership is a property of a *position*: the same record may be
Borrowed as a parameter and TransferredOut as a return value, so modes and
their obligations live on resolved slots, not on the layout.

All layouts are C-compatible: declaration order, natural alignment, padding
inserted before a field to satisfy its alignment and at the end to round the
size up to the aggregate alignment. No reordering, no randomization.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict

from .errors import InternalFault
from .types_core import (
	Function,
	InterfaceType,
	LengthEncoding,
	Opaque,
	Pointer,
	Primitive,
	PrimitiveKind,
	Record,
	Sequence,
	TaggedUnion,
	Text,
	render_type,
)


class OwnershipMode(Enum):
	BORROWED = "Borrowed"  # caller retains; callee must not free or outlive the call
	TRANSFERRED_OUT = "TransferredOut"  # callee allocates; caller owns and releases
	TRANSFERRED_IN = "TransferredIn"  # caller allocates; callee owns and releases
	SHARED_COUNTED = "SharedCounted"  # crossing retains; release decrements


class ObligationKind(Enum):
	NONE = "none"
	RELEASE_BY_CALLER = "release_by_caller"
	RELEASE_BY_CALLEE = "release_by_callee"
	RETAIN_RELEASE = "retain_release"


OBLIGATION_FOR_MODE = {
	OwnershipMode.BORROWED: ObligationKind.NONE,
	OwnershipMode.TRANSFERRED_OUT: ObligationKind.RELEASE_BY_CALLER,
	OwnershipMode.TRANSFERRED_IN: ObligationKind.RELEASE_BY_CALLEE,
	OwnershipMode.SHARED_COUNTED: ObligationKind.RETAIN_RELEASE,
}


@dataclass(frozen=True)
class Obligation:
	"""The concrete release/retain duty attached to an ownership mode."""

	kind: ObligationKind
	release_fn: str | None = None
	retain_fn: str | None = None

	def is_concrete(self) -> bool:
		if self.kind is ObligationKind.NONE:
			return True
		if self.kind is ObligationKind.RETAIN_RELEASE:
			return bool(self.release_fn) and bool(self.retain_fn)
		return bool(self.release_fn)

	def to_obj(self) -> dict[str, Any]:
		return {"kind": self.kind.value, "release": self.release_fn, "retain": self.retain_fn}


NO_OBLIGATION = Obligation(ObligationKind.NONE)


@dataclass(frozen=True)
class FieldLayout:
	name: str
	offset: int
	size: int
	align: int


@dataclass(frozen=True)
class DiscriminantLayout:
	offset: int
	width: int  # bytes: 1, 2, 4 or 8
	signed: bool


@dataclass(frozen=True)
class VariantLayout:
	name: str
	tag: int
	payload_offset: int  # identical for every variant of one union
	payload_size: int
	payload_align: int
	fields: tuple[FieldLayout, ...] = ()


@dataclass(frozen=True)
class AbiLayout:
	size: int
	align: int
	fields: tuple[FieldLayout, ...] = ()
	discriminant: DiscriminantLayout | None = None
	variants: tuple[VariantLayout, ...] = ()

	def field(self, name: str) -> FieldLayout:
		for f in self.fields:
			if f.name == name:
				return f
		raise KeyError(name)

	def to_obj(self) -> dict[str, Any]:
		obj: dict[str, Any] = {
			"size": self.size,
			"align": self.align,
			"fields": [{"name": f.name, "offset": f.offset, "size": f.size, "align": f.align} for f in self.fields],
		}
		if self.discriminant is not None:
			obj["discriminant"] = {
				"offset": self.discriminant.offset,
				"width": self.discriminant.width,
				"signed": self.discriminant.signed,
			}
			obj["variants"] = [
				{
					"name": v.name,
					"tag": v.tag,
					"payload_offset": v.payload_offset,
					"payload_size": v.payload_size,
					"fields": [{"name": f.name, "offset": f.offset, "size": f.size, "align": f.align} for f in v.fields],
				}
				for v in self.variants
			]
		return obj


def align_up(value: int, align: int) -> int:
	if align <= 1:
		return value
	return ((value + align - 1) // align) * align


def discriminant_for_tags(tags: list[int]) -> DiscriminantLayout:
	"""Smallest integer width (bytes) able to represent every tag."""
	signed = any(t < 0 for t in tags)
	lo = min(tags, default=0)
	hi = max(tags, default=0)
	for width in (1, 2, 4, 8):
		bits = width * 8
		if signed:
			fits = -(1 << (bits - 1)) <= lo and hi < (1 << (bits - 1))
		else:
			fits = hi < (1 << bits)
		if fits:
			return DiscriminantLayout(offset=0, width=width, signed=signed)
	raise InternalFault(message=f"enum tags out of 64-bit range: {lo}..{hi}")


def check_layout(ty: InterfaceType, layout: AbiLayout) -> list[str]:
	"""
	Geometry self-consistency problems for `layout` (empty when sound).

	Checked for records and every union payload: offsets respect field
	alignment, fields do not overlap, and the size is the last field end
	rounded up to the alignment.
	"""
	problems: list[str] = []

	def _check_run(label: str, fields: tuple[FieldLayout, ...], start: int) -> int:
		end = start
		for f in fields:
			if f.align > 1 and f.offset % f.align != 0:
				problems.append(f"{label}field `{f.name}` at offset {f.offset} violates alignment {f.align}")
			if f.offset < end:
				problems.append(f"{label}field `{f.name}` overlaps the previous field")
			end = f.offset + f.size
		return end

	if layout.align < 1 or layout.align & (layout.align - 1):
		problems.append(f"alignment {layout.align} is not a power of two")
	if isinstance(ty, Record):
		end = _check_run("", layout.fields, 0)
		if align_up(end, layout.align) != layout.size:
			problems.append(f"size {layout.size} != aligned end of last field {align_up(end, layout.align)}")
	if isinstance(ty, TaggedUnion):
		if layout.discriminant is None:
			problems.append("tagged union without discriminant")
			return problems
		offsets = {v.payload_offset for v in layout.variants}
		if len(offsets) > 1:
			problems.append(f"payload offset differs across variants: {sorted(offsets)}")
		for v in layout.variants:
			if v.payload_offset < layout.discriminant.offset + layout.discriminant.width:
				problems.append(f"variant `{v.name}` payload overlaps the discriminant")
			end = _check_run(f"variant `{v.name}` ", v.fields, v.payload_offset)
			if end > layout.size:
				problems.append(f"variant `{v.name}` payload exceeds union size {layout.size}")
	return problems


class LayoutEngine:
	"""
	Computes and caches one AbiLayout per IT for a target word size.

	Keys are the canonical IT objects from the TypeTable; structurally equal
	ITs share one entry.
	"""

	def __init__(self, *, word_bits: int = 64) -> None:
		if word_bits not in (32, 64):
			raise ValueError(f"unsupported target word size: {word_bits}")
		self.word_bits = word_bits
		self.word = word_bits // 8
		self._cache: Dict[InterfaceType, AbiLayout] = {}
		self._lock = threading.RLock()

	def layout_of(self, ty: InterfaceType) -> AbiLayout:
		with self._lock:
			cached = self._cache.get(ty)
			if cached is not None:
				return cached
			out = self._compute(ty)
			self._cache[ty] = out
			return out

	def has_layout(self, ty: InterfaceType) -> bool:
		with self._lock:
			return ty in self._cache

	def _word_pair(self) -> AbiLayout:
		w = self.word
		return AbiLayout(
			size=2 * w,
			align=w,
			fields=(FieldLayout("ptr", 0, w, w), FieldLayout("len", w, w, w)),
		)

	def _struct_run(self, named: list[tuple[str, InterfaceType]], start: int) -> tuple[tuple[FieldLayout, ...], int, int]:
		"""Lay fields out from `start`; return (fields, end offset, max alignment)."""
		offset = start
		max_align = 1
		out: list[FieldLayout] = []
		for name, fty in named:
			fl = self.layout_of(fty)
			offset = align_up(offset, fl.align)
			out.append(FieldLayout(name=name, offset=offset, size=fl.size, align=fl.align))
			offset += fl.size
			max_align = max(max_align, fl.align)
		return tuple(out), offset, max_align

	def _compute(self, ty: InterfaceType) -> AbiLayout:
		if isinstance(ty, Primitive):
			if ty.kind is PrimitiveKind.UNIT:
				return AbiLayout(size=0, align=1)
			size = max(1, ty.bits // 8)
			return AbiLayout(size=size, align=size)
		if isinstance(ty, (Pointer, Opaque, Function)):
			return AbiLayout(size=self.word, align=self.word)
		if isinstance(ty, Text):
			return self._word_pair()
		if isinstance(ty, Sequence):
			if ty.encoding is LengthEncoding.FIXED:
				el = self.layout_of(ty.element)
				stride = align_up(el.size, el.align)
				return AbiLayout(size=stride * int(ty.length or 0), align=el.align)
			return self._word_pair()
		if isinstance(ty, Record):
			fields, end, max_align = self._struct_run([(f.name, f.type) for f in ty.fields], 0)
			return AbiLayout(size=align_up(end, max_align), align=max_align, fields=fields)
		if isinstance(ty, TaggedUnion):
			disc = discriminant_for_tags([v.tag for v in ty.variants])
			# First pass: each variant payload as a standalone C struct.
			payloads: list[tuple[int, int]] = []
			for v in ty.variants:
				_, end, al = self._struct_run([(f.name, f.type) for f in v.fields], 0)
				payloads.append((align_up(end, al), al))
			payload_align = max((al for _, al in payloads), default=1)
			payload_size = max((sz for sz, _ in payloads), default=0)
			union_align = max(disc.width, payload_align)
			payload_offset = align_up(disc.offset + disc.width, payload_align)
			variants: list[VariantLayout] = []
			for v, (sz, al) in zip(ty.variants, payloads):
				fields, _, _ = self._struct_run([(f.name, f.type) for f in v.fields], payload_offset)
				variants.append(
					VariantLayout(
						name=v.name,
						tag=v.tag,
						payload_offset=payload_offset,
						payload_size=sz,
						payload_align=al,
						fields=fields,
					)
				)
			return AbiLayout(
				size=align_up(payload_offset + payload_size, union_align),
				align=union_align,
				discriminant=disc,
				variants=tuple(variants),
			)
		raise InternalFault(message=f"no layout rule for {render_type(ty)}")


__all__ = [
	"AbiLayout",
	"DiscriminantLayout",
	"FieldLayout",
	"LayoutEngine",
	"NO_OBLIGATION",
	"OBLIGATION_FOR_MODE",
	"Obligation",
	"ObligationKind",
	"OwnershipMode",
	"VariantLayout",
	"align_up",
	"check_layout",
	"discriminant_for_tags",
]
