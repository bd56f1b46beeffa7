# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Interface types (ITs): the canonical, language-neutral model of every value
that crosses the boundary, plus the TypeTable that interns them.

ITs are frozen dataclasses compared structurally. The TypeTable keeps one
canonical object per structural class, so within a run two occurrences of
the same native type resolve to the *same* IT object and reference sharing
is preserved. Recursive nominal types are broken with `Opaque` handles that
index the table's nominal registry.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterator, Union

from .names import to_snake_case


class TypeKind(Enum):
	"""IT variants; also the first key of emitter capability entries."""

	PRIMITIVE = "Primitive"
	POINTER = "Pointer"
	SEQUENCE = "Sequence"
	TEXT = "Text"
	RECORD = "Record"
	TAGGED_UNION = "TaggedUnion"
	FUNCTION = "Function"
	OPAQUE = "Opaque"


class PrimitiveKind(Enum):
	INT = "int"
	FLOAT = "float"
	BOOL = "bool"
	CHAR = "char"
	UNIT = "unit"


class LengthEncoding(Enum):
	POINTER_LENGTH = "ptr_len"  # (pointer, length) pair
	FIXED = "fixed"  # inline, length known statically


class TextEncoding(Enum):
	UTF8 = "utf8"
	C_STRING = "c_string"  # NUL-terminated bytes


class Holding(Enum):
	"""
	How the native side holds a value. Input to ownership inference; part of
	structural identity (`Vec<u8>` and `&[u8]` are different ITs).
	"""

	VALUE = "value"  # inline, copied
	BORROWED = "borrowed"  # &T, &[T], &str, &dyn Fn
	OWNED = "owned"  # Box<T>, Vec<T>, String, Box<dyn Fn>
	RAW = "raw"  # *const T / *mut T
	COUNTED = "counted"  # Arc<T> / Rc<T>
	OPTIONAL = "optional"  # Option<T> where T has no null niche


@dataclass(frozen=True)
class Primitive:
	kind: PrimitiveKind
	bits: int
	signed: bool = False

	type_kind = TypeKind.PRIMITIVE


@dataclass(frozen=True)
class Pointer:
	target: "InterfaceType"
	nullable: bool = False
	holding: Holding = Holding.BORROWED
	mutable: bool = False

	type_kind = TypeKind.POINTER


@dataclass(frozen=True)
class Sequence:
	element: "InterfaceType"
	encoding: LengthEncoding = LengthEncoding.POINTER_LENGTH
	holding: Holding = Holding.OWNED
	length: int | None = None  # only for LengthEncoding.FIXED

	type_kind = TypeKind.SEQUENCE

	def __post_init__(self) -> None:
		if (self.encoding is LengthEncoding.FIXED) != (self.length is not None):
			raise ValueError("Sequence.length is required for FIXED encoding and only for it")


@dataclass(frozen=True)
class Text:
	encoding: TextEncoding = TextEncoding.UTF8
	holding: Holding = Holding.OWNED

	type_kind = TypeKind.TEXT


@dataclass(frozen=True)
class Field:
	name: str
	type: "InterfaceType"


@dataclass(frozen=True)
class Record:
	name: str  # qualified nominal name; "" for tuples
	fields: tuple[Field, ...] = ()

	type_kind = TypeKind.RECORD


@dataclass(frozen=True)
class Variant:
	name: str
	tag: int
	fields: tuple[Field, ...] = ()


@dataclass(frozen=True)
class TaggedUnion:
	name: str
	variants: tuple[Variant, ...] = ()

	type_kind = TypeKind.TAGGED_UNION


@dataclass(frozen=True)
class Function:
	params: tuple["InterfaceType", ...] = ()
	ret: "InterfaceType" = field(default_factory=lambda: UNIT)
	throws: bool = False
	error: "InterfaceType | None" = None
	holding: Holding = Holding.VALUE  # fn pointer; BORROWED for &dyn Fn, OWNED for Box<dyn Fn>

	type_kind = TypeKind.FUNCTION

	def __post_init__(self) -> None:
		if self.error is not None and not self.throws:
			raise ValueError("Function.error requires throws=True")


@dataclass(frozen=True)
class Opaque:
	handle_id: int  # index into TypeTable's nominal registry
	name: str

	type_kind = TypeKind.OPAQUE


InterfaceType = Union[Primitive, Pointer, Sequence, Text, Record, TaggedUnion, Function, Opaque]
IT_CLASSES: tuple[type, ...] = (Primitive, Pointer, Sequence, Text, Record, TaggedUnion, Function, Opaque)

UNIT = Primitive(PrimitiveKind.UNIT, 0, False)
BOOL = Primitive(PrimitiveKind.BOOL, 8, False)
CHAR = Primitive(PrimitiveKind.CHAR, 32, False)


def int_type(bits: int, signed: bool) -> Primitive:
	return Primitive(PrimitiveKind.INT, bits, signed)


def float_type(bits: int) -> Primitive:
	return Primitive(PrimitiveKind.FLOAT, bits, True)


def children_of(ty: InterfaceType) -> list[tuple[str, InterfaceType]]:
	"""
	Direct sub-ITs with a position label. Opaque has none: it is the cycle
	breaker and is never expanded.
	"""
	if isinstance(ty, Pointer):
		return [("*", ty.target)]
	if isinstance(ty, Sequence):
		return [("[]", ty.element)]
	if isinstance(ty, Record):
		return [(f.name, f.type) for f in ty.fields]
	if isinstance(ty, TaggedUnion):
		return [(f"{v.name}.{f.name}", f.type) for v in ty.variants for f in v.fields]
	if isinstance(ty, Function):
		out: list[tuple[str, InterfaceType]] = [(f"arg{i}", p) for i, p in enumerate(ty.params)]
		out.append(("return", ty.ret))
		if ty.error is not None:
			out.append(("error", ty.error))
		return out
	return []


def iter_graph(root: InterfaceType) -> Iterator[InterfaceType]:
	"""Yield every IT reachable from `root` once (preorder, deterministic)."""
	seen: set[int] = set()
	stack = [root]
	while stack:
		ty = stack.pop()
		if id(ty) in seen:
			continue
		seen.add(id(ty))
		yield ty
		stack.extend(child for _, child in reversed(children_of(ty)))


def callback_depth(ty: InterfaceType) -> int:
	"""Deepest nesting of Function types inside `ty` (a bare Function counts 1)."""
	best = 0
	for _, child in children_of(ty):
		best = max(best, callback_depth(child))
	if isinstance(ty, Function):
		return best + 1
	return best


def render_type(ty: InterfaceType) -> str:
	"""Compact, stable rendering used in diagnostics and JSON output."""
	if isinstance(ty, Primitive):
		if ty.kind is PrimitiveKind.INT:
			return f"{'i' if ty.signed else 'u'}{ty.bits}"
		if ty.kind is PrimitiveKind.FLOAT:
			return f"f{ty.bits}"
		return ty.kind.value
	if isinstance(ty, Pointer):
		mark = "?" if ty.nullable else ""
		return f"Pointer<{render_type(ty.target)}, {ty.holding.value}>{mark}"
	if isinstance(ty, Sequence):
		if ty.encoding is LengthEncoding.FIXED:
			return f"Sequence<{render_type(ty.element)}; {ty.length}>"
		return f"Sequence<{render_type(ty.element)}, {ty.holding.value}>"
	if isinstance(ty, Text):
		return f"Text<{ty.encoding.value}, {ty.holding.value}>"
	if isinstance(ty, Record):
		if ty.name:
			return ty.name
		return "(" + ", ".join(render_type(f.type) for f in ty.fields) + ")"
	if isinstance(ty, TaggedUnion):
		return ty.name
	if isinstance(ty, Function):
		params = ", ".join(render_type(p) for p in ty.params)
		ret = render_type(ty.ret)
		if ty.throws:
			ret += " throws"
			if ty.error is not None:
				ret += f" {render_type(ty.error)}"
		return f"fn({params}) -> {ret}"
	if isinstance(ty, Opaque):
		return f"Opaque#{ty.handle_id}<{ty.name}>"
	raise TypeError(f"not an interface type: {ty!r}")


def type_symbol(ty: InterfaceType) -> str:
	"""
	Mangled identifier for an IT, used to expand `{symbol}` in runtime helper
	names (e.g. `rua_free_{symbol}` -> `rua_free_seq_u8`).
	"""
	if isinstance(ty, Primitive):
		return render_type(ty)
	if isinstance(ty, Pointer):
		return f"ptr_{type_symbol(ty.target)}"
	if isinstance(ty, Sequence):
		if ty.encoding is LengthEncoding.FIXED:
			return f"arr{ty.length}_{type_symbol(ty.element)}"
		return f"seq_{type_symbol(ty.element)}"
	if isinstance(ty, Text):
		return "str" if ty.encoding is TextEncoding.UTF8 else "cstr"
	if isinstance(ty, (Record, TaggedUnion)):
		if not ty.name:
			parts = [type_symbol(f.type) for f in getattr(ty, "fields", ())]
			return "tuple_" + "_".join(parts) if parts else "unit"
		return to_snake_case(ty.name.replace("crate::", ""))
	if isinstance(ty, Function):
		return "fn_" + "_".join([type_symbol(p) for p in ty.params] + [type_symbol(ty.ret)])
	if isinstance(ty, Opaque):
		return to_snake_case(ty.name.replace("crate::", ""))
	raise TypeError(f"not an interface type: {ty!r}")


@dataclass(frozen=True)
class NominalEntry:
	"""One slot of the nominal registry; Opaque.handle_id indexes these."""

	handle_id: int
	name: str


class TypeTable:
	"""
	Interning registry for ITs of one compilation run.

	Thread-safe: stages may build independent items concurrently, and a type
	discovered from two items must land on one canonical object.
	"""

	def __init__(self) -> None:
		self._lock = threading.RLock()
		self._canon: dict[InterfaceType, InterfaceType] = {}
		self._order: list[InterfaceType] = []
		self._nominals: list[NominalEntry] = []
		self._handles: dict[str, int] = {}

	def intern(self, ty: InterfaceType) -> InterfaceType:
		"""Return the canonical object structurally equal to `ty`, registering it if new."""
		if not isinstance(ty, IT_CLASSES):
			raise TypeError(f"not an interface type: {ty!r}")
		with self._lock:
			existing = self._canon.get(ty)
			if existing is not None:
				return existing
			self._canon[ty] = ty
			self._order.append(ty)
			return ty

	def reserve_handle(self, name: str) -> int:
		"""Return the stable handle id for a nominal type name, allocating it once."""
		with self._lock:
			handle = self._handles.get(name)
			if handle is None:
				handle = len(self._nominals)
				self._nominals.append(NominalEntry(handle_id=handle, name=name))
				self._handles[name] = handle
			return handle

	def opaque(self, name: str) -> Opaque:
		return self.intern(Opaque(handle_id=self.reserve_handle(name), name=name))  # type: ignore[return-value]

	def nominal(self, handle_id: int) -> NominalEntry:
		return self._nominals[handle_id]

	def nominals(self) -> tuple[NominalEntry, ...]:
		with self._lock:
			return tuple(self._nominals)

	def __contains__(self, ty: object) -> bool:
		with self._lock:
			return isinstance(ty, IT_CLASSES) and self._canon.get(ty) is ty  # type: ignore[arg-type]

	def __len__(self) -> int:
		return len(self._order)

	def __iter__(self) -> Iterator[InterfaceType]:
		with self._lock:
			return iter(list(self._order))


__all__ = [
	"BOOL",
	"CHAR",
	"Field",
	"Function",
	"Holding",
	"IT_CLASSES",
	"InterfaceType",
	"LengthEncoding",
	"NominalEntry",
	"Opaque",
	"Pointer",
	"Primitive",
	"PrimitiveKind",
	"Record",
	"Sequence",
	"TaggedUnion",
	"Text",
	"TextEncoding",
	"TypeKind",
	"TypeTable",
	"UNIT",
	"Variant",
	"callback_depth",
	"children_of",
	"float_type",
	"int_type",
	"iter_graph",
	"render_type",
	"type_symbol",
]
