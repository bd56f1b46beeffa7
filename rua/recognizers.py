# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Ranked recognizers: native type expression -> interface type.

Each recognizer is a (rank, predicate, builder) triple. The set is evaluated
in ascending rank order and the first predicate that matches decides; the set
refuses duplicate ranks so two recognizers can never tie. Recognizers report
problems through `ctx.fail(...)`, which records an Unsupported problem and
returns None; a None child makes the parent None without stopping siblings,
so every problem inside an item is reported.

`ctx` is the builder's BuildContext (see rua.type_builder).
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import TYPE_CHECKING, Callable, Iterable, Iterator, Optional

from .core.types_core import (
	BOOL,
	CHAR,
	UNIT,
	Field,
	Holding,
	InterfaceType,
	LengthEncoding,
	Pointer,
	Record,
	Sequence,
	Text,
	TextEncoding,
	float_type,
	int_type,
)
from .native.ast import NativeStruct, TypeExpr, TypeExprKind

if TYPE_CHECKING:
	from .type_builder import BuildContext

Predicate = Callable[[TypeExpr, "BuildContext"], bool]
Builder = Callable[[TypeExpr, "BuildContext"], Optional[InterfaceType]]


@dataclass(frozen=True)
class Recognizer:
	rank: int
	name: str
	matches: Predicate
	build: Builder


class RecognizerSet:
	"""An immutable, rank-ordered collection of recognizers."""

	def __init__(self, recognizers: Iterable[Recognizer]) -> None:
		ordered = sorted(recognizers, key=lambda r: r.rank)
		ranks: dict[int, str] = {}
		names: set[str] = set()
		for r in ordered:
			if r.rank in ranks:
				raise ValueError(f"recognizers '{ranks[r.rank]}' and '{r.name}' share rank {r.rank}")
			if r.name in names:
				raise ValueError(f"duplicate recognizer name '{r.name}'")
			ranks[r.rank] = r.name
			names.add(r.name)
		self._ordered: tuple[Recognizer, ...] = tuple(ordered)

	def __iter__(self) -> Iterator[Recognizer]:
		return iter(self._ordered)

	def __len__(self) -> int:
		return len(self._ordered)

	def with_recognizer(self, recognizer: Recognizer) -> "RecognizerSet":
		return RecognizerSet((*self._ordered, recognizer))

	def recognize(self, expr: TypeExpr, ctx: "BuildContext") -> Optional[Recognizer]:
		for r in self._ordered:
			if r.matches(expr, ctx):
				return r
		return None


# --- path helpers -------------------------------------------------------------

_STD_ROOTS = frozenset({"std", "core", "alloc", "libc"})


def std_name(expr: TypeExpr) -> Optional[str]:
	"""Last segment name for bare or std/core/alloc/libc-rooted paths."""
	if expr.kind is not TypeExprKind.PATH or not expr.segments:
		return None
	if len(expr.segments) == 1 or expr.segments[0].name in _STD_ROOTS:
		return expr.segments[-1].name
	return None


def type_args(expr: TypeExpr) -> tuple[TypeExpr, ...]:
	seg = expr.last_segment()
	return seg.args if seg is not None else ()


def _wrapper(expr: TypeExpr, names: Iterable[str], arity: int = 1) -> Optional[tuple[TypeExpr, ...]]:
	"""Generic args of `Name<..>` when `Name` is one of `names` with `arity` args."""
	name = std_name(expr)
	if name is None or name not in names:
		return None
	seg = expr.last_segment()
	if seg is None or seg.fn_sugar:
		return None
	args = seg.args
	if len(args) != arity:
		return None
	return args


def _is_path(expr: TypeExpr, *names: str) -> bool:
	name = std_name(expr)
	return name in names and not type_args(expr)


def is_callable_trait(expr: TypeExpr) -> bool:
	if expr.kind not in (TypeExprKind.TRAIT_OBJECT, TypeExprKind.IMPL_TRAIT):
		return False
	return any(b and b[-1].name in ("Fn", "FnMut", "FnOnce") and b[-1].fn_sugar for b in expr.bounds)


def callable_bound(expr: TypeExpr):
	for b in expr.bounds:
		if b and b[-1].name in ("Fn", "FnMut", "FnOnce") and b[-1].fn_sugar:
			return b[-1]
	return None


# --- primitives -----------------------------------------------------------------

WORD = -1  # width follows the target word size

# name -> (kind, bits, signed); kind is "int", "float", "bool" or "char"
PRIMITIVES: dict[str, tuple[str, int, bool]] = {
	"i8": ("int", 8, True),
	"i16": ("int", 16, True),
	"i32": ("int", 32, True),
	"i64": ("int", 64, True),
	"i128": ("int", 128, True),
	"isize": ("int", WORD, True),
	"u8": ("int", 8, False),
	"u16": ("int", 16, False),
	"u32": ("int", 32, False),
	"u64": ("int", 64, False),
	"u128": ("int", 128, False),
	"usize": ("int", WORD, False),
	"f32": ("float", 32, True),
	"f64": ("float", 64, True),
	"bool": ("bool", 8, False),
	"char": ("char", 32, False),
	# C aliases (LP64 model for long)
	"c_char": ("int", 8, True),
	"c_schar": ("int", 8, True),
	"c_uchar": ("int", 8, False),
	"c_short": ("int", 16, True),
	"c_ushort": ("int", 16, False),
	"c_int": ("int", 32, True),
	"c_uint": ("int", 32, False),
	"c_long": ("int", WORD, True),
	"c_ulong": ("int", WORD, False),
	"c_longlong": ("int", 64, True),
	"c_ulonglong": ("int", 64, False),
	"c_float": ("float", 32, True),
	"c_double": ("float", 64, True),
	"size_t": ("int", WORD, False),
	"ssize_t": ("int", WORD, True),
}


def _match_unit(expr: TypeExpr, ctx: "BuildContext") -> bool:
	if expr.kind is TypeExprKind.TUPLE and not expr.elements:
		return True
	return _is_path(expr, "c_void")


def _build_unit(expr: TypeExpr, ctx: "BuildContext") -> InterfaceType:
	return ctx.intern(UNIT)


def _match_primitive(expr: TypeExpr, ctx: "BuildContext") -> bool:
	name = std_name(expr)
	return name in PRIMITIVES and not type_args(expr)


def _build_primitive(expr: TypeExpr, ctx: "BuildContext") -> InterfaceType:
	kind, bits, signed = PRIMITIVES[std_name(expr) or ""]
	if bits == WORD:
		bits = ctx.word_bits
	if kind == "bool":
		return ctx.intern(BOOL)
	if kind == "char":
		return ctx.intern(CHAR)
	if kind == "float":
		return ctx.intern(float_type(bits))
	return ctx.intern(int_type(bits, signed))


def _match_never(expr: TypeExpr, ctx: "BuildContext") -> bool:
	return expr.kind is TypeExprKind.NEVER


def _build_never(expr: TypeExpr, ctx: "BuildContext") -> None:
	return ctx.fail("the never type `!` has no values to marshal", expr)


# --- text -----------------------------------------------------------------------


def _text_form(expr: TypeExpr) -> Optional[tuple[TextEncoding, Holding]]:
	if _is_path(expr, "String"):
		return TextEncoding.UTF8, Holding.OWNED
	if _is_path(expr, "CString"):
		return TextEncoding.C_STRING, Holding.OWNED
	boxed = _wrapper(expr, ("Box",))
	if boxed is not None:
		if _is_path(boxed[0], "str"):
			return TextEncoding.UTF8, Holding.OWNED
		if _is_path(boxed[0], "CStr"):
			return TextEncoding.C_STRING, Holding.OWNED
	if expr.kind is TypeExprKind.REFERENCE and expr.inner is not None:
		if _is_path(expr.inner, "str"):
			return TextEncoding.UTF8, Holding.BORROWED
		if _is_path(expr.inner, "CStr"):
			return TextEncoding.C_STRING, Holding.BORROWED
	return None


def _match_text(expr: TypeExpr, ctx: "BuildContext") -> bool:
	return _text_form(expr) is not None or _is_path(expr, "str", "CStr")


def _build_text(expr: TypeExpr, ctx: "BuildContext") -> Optional[InterfaceType]:
	form = _text_form(expr)
	if form is None:
		return ctx.fail(f"unsized text `{expr.render()}` must be behind a reference or Box", expr)
	encoding, holding = form
	return ctx.intern(Text(encoding=encoding, holding=holding))


# --- sequences ------------------------------------------------------------------


def _match_sequence(expr: TypeExpr, ctx: "BuildContext") -> bool:
	if expr.kind in (TypeExprKind.ARRAY, TypeExprKind.SLICE):
		return True
	if expr.kind is TypeExprKind.REFERENCE and expr.inner is not None and expr.inner.kind is TypeExprKind.SLICE:
		return True
	if _wrapper(expr, ("Vec",)) is not None:
		return True
	boxed = _wrapper(expr, ("Box",))
	return boxed is not None and boxed[0].kind is TypeExprKind.SLICE


def _build_sequence(expr: TypeExpr, ctx: "BuildContext") -> Optional[InterfaceType]:
	if expr.kind is TypeExprKind.ARRAY:
		assert expr.inner is not None
		elem = ctx.build(expr.inner)
		if elem is None:
			return None
		return ctx.intern(
			Sequence(element=elem, encoding=LengthEncoding.FIXED, holding=Holding.VALUE, length=expr.length)
		)
	if expr.kind is TypeExprKind.SLICE:
		return ctx.fail(f"unsized slice `{expr.render()}` must be behind a reference or Box", expr)
	if expr.kind is TypeExprKind.REFERENCE:
		assert expr.inner is not None and expr.inner.inner is not None
		elem_expr, holding = expr.inner.inner, Holding.BORROWED
	else:
		vec = _wrapper(expr, ("Vec",))
		if vec is not None:
			elem_expr = vec[0]
		else:
			boxed = _wrapper(expr, ("Box",))
			assert boxed is not None and boxed[0].inner is not None
			elem_expr = boxed[0].inner
		holding = Holding.OWNED
	elem = ctx.build(elem_expr, indirection="sequence")
	if elem is None:
		return None
	return ctx.intern(Sequence(element=elem, encoding=LengthEncoding.POINTER_LENGTH, holding=holding))


_LENGTH_NAMES = frozenset({"len", "length", "size", "count", "n", "num"})
_CAPACITY_NAMES = frozenset({"cap", "capacity"})


def _structural_sequence(expr: TypeExpr, ctx: "BuildContext") -> Optional[tuple[TypeExpr, bool, tuple[str, ...]]]:
	"""(element expr, owned, scope) when `expr` names a (ptr, len[, cap]) struct."""
	if expr.kind is not TypeExprKind.PATH or type_args(expr):
		return None
	ref = ctx.lookup(expr)
	if ref is None or not isinstance(ref.decl, NativeStruct) or ref.decl.generics:
		return None
	fields = ref.decl.fields
	if len(fields) not in (2, 3) or any(f.name is None for f in fields):
		return None
	ptr, length = fields[0], fields[1]
	if ptr.type.kind is not TypeExprKind.POINTER or ptr.type.inner is None:
		return None
	if (length.name or "").lower() not in _LENGTH_NAMES or not _is_path(length.type, "usize"):
		return None
	if len(fields) == 3:
		cap = fields[2]
		if (cap.name or "").lower() not in _CAPACITY_NAMES or not _is_path(cap.type, "usize"):
			return None
	return ptr.type.inner, ptr.type.mutable, ref.scope


def _match_structural_sequence(expr: TypeExpr, ctx: "BuildContext") -> bool:
	return _structural_sequence(expr, ctx) is not None


def _build_structural_sequence(expr: TypeExpr, ctx: "BuildContext") -> Optional[InterfaceType]:
	found = _structural_sequence(expr, ctx)
	assert found is not None
	elem_expr, owned, scope = found
	elem = ctx.build(elem_expr, indirection="sequence", scope=scope)
	if elem is None:
		return None
	holding = Holding.OWNED if owned else Holding.BORROWED
	return ctx.intern(Sequence(element=elem, encoding=LengthEncoding.POINTER_LENGTH, holding=holding))


# --- callables ------------------------------------------------------------------


def _callable_form(expr: TypeExpr) -> Optional[tuple[TypeExpr, Holding]]:
	"""(fn-like expr, holding) for fn pointers and callable trait objects."""
	if expr.kind is TypeExprKind.FN:
		return expr, Holding.VALUE
	if expr.kind is TypeExprKind.IMPL_TRAIT and is_callable_trait(expr):
		return expr, Holding.VALUE
	if expr.kind is TypeExprKind.REFERENCE and expr.inner is not None and is_callable_trait(expr.inner):
		return expr.inner, Holding.BORROWED
	boxed = _wrapper(expr, ("Box",))
	if boxed is not None and is_callable_trait(boxed[0]):
		return boxed[0], Holding.OWNED
	counted = _wrapper(expr, ("Arc", "Rc"))
	if counted is not None and is_callable_trait(counted[0]):
		return counted[0], Holding.COUNTED
	return None


def _match_callable(expr: TypeExpr, ctx: "BuildContext") -> bool:
	return _callable_form(expr) is not None or is_callable_trait(expr)


def _build_callable(expr: TypeExpr, ctx: "BuildContext") -> Optional[InterfaceType]:
	form = _callable_form(expr)
	if form is None:
		return ctx.fail(f"unsized callable `{expr.render()}` must be behind a reference or Box", expr)
	fn_expr, holding = form
	if fn_expr.kind is TypeExprKind.FN:
		params, ret = fn_expr.elements, fn_expr.ret
	else:
		seg = callable_bound(fn_expr)
		assert seg is not None
		params, ret = seg.args, seg.ret
	return ctx.function(params, ret, holding=holding)


# --- optional / result / pointers -----------------------------------------------


def _match_optional(expr: TypeExpr, ctx: "BuildContext") -> bool:
	return _wrapper(expr, ("Option",)) is not None


# References and owning pointers are never null, so `None` can reuse null.
_NULL_NICHE = frozenset({Holding.BORROWED, Holding.OWNED, Holding.COUNTED})


def _build_optional(expr: TypeExpr, ctx: "BuildContext") -> Optional[InterfaceType]:
	args = _wrapper(expr, ("Option",))
	assert args is not None
	inner = ctx.build(args[0])
	if inner is None:
		return None
	if isinstance(inner, Pointer) and inner.holding is Holding.RAW:
		return ctx.fail("`Option` of a raw pointer has no representation distinct from a null pointer", expr)
	if isinstance(inner, Pointer) and not inner.nullable and inner.holding in _NULL_NICHE:
		return ctx.intern(replace(inner, nullable=True))
	return ctx.intern(Pointer(target=inner, nullable=True, holding=Holding.OPTIONAL))


def _match_result(expr: TypeExpr, ctx: "BuildContext") -> bool:
	return std_name(expr) == "Result"


def _build_result(expr: TypeExpr, ctx: "BuildContext") -> None:
	return ctx.fail("`Result` is only supported as a function return type", expr)


_POINTER_WRAPPERS = {"Box": (Holding.OWNED, True), "Arc": (Holding.COUNTED, False), "Rc": (Holding.COUNTED, False)}


def _match_pointer(expr: TypeExpr, ctx: "BuildContext") -> bool:
	if expr.kind in (TypeExprKind.REFERENCE, TypeExprKind.POINTER):
		return True
	return _wrapper(expr, tuple(_POINTER_WRAPPERS)) is not None


def _build_pointer(expr: TypeExpr, ctx: "BuildContext") -> Optional[InterfaceType]:
	if expr.kind is TypeExprKind.REFERENCE:
		target_expr, holding, nullable, mutable = expr.inner, Holding.BORROWED, False, expr.mutable
	elif expr.kind is TypeExprKind.POINTER:
		target_expr, holding, nullable, mutable = expr.inner, Holding.RAW, True, expr.mutable
	else:
		args = _wrapper(expr, tuple(_POINTER_WRAPPERS))
		assert args is not None
		holding, mutable = _POINTER_WRAPPERS[std_name(expr) or ""]
		target_expr, nullable = args[0], False
	assert target_expr is not None
	target = ctx.build(target_expr, indirection="pointer")
	if target is None:
		return None
	return ctx.intern(Pointer(target=target, nullable=nullable, holding=holding, mutable=mutable))


# --- tuples, nominals, fallback -------------------------------------------------


def _match_tuple(expr: TypeExpr, ctx: "BuildContext") -> bool:
	return expr.kind is TypeExprKind.TUPLE and bool(expr.elements)


def _build_tuple(expr: TypeExpr, ctx: "BuildContext") -> Optional[InterfaceType]:
	fields: list[Field] = []
	ok = True
	for i, el in enumerate(expr.elements):
		it = ctx.build(el)
		if it is None:
			ok = False
			continue
		fields.append(Field(name=str(i), type=it))
	if not ok:
		return None
	return ctx.intern(Record(name="", fields=tuple(fields)))


def _match_nominal(expr: TypeExpr, ctx: "BuildContext") -> bool:
	return expr.kind is TypeExprKind.PATH and ctx.lookup(expr) is not None


def _build_nominal(expr: TypeExpr, ctx: "BuildContext") -> Optional[InterfaceType]:
	ref = ctx.lookup(expr)
	assert ref is not None
	return ctx.nominal(ref, expr)


def _match_any(expr: TypeExpr, ctx: "BuildContext") -> bool:
	return True


def _build_unknown(expr: TypeExpr, ctx: "BuildContext") -> None:
	if expr.kind is TypeExprKind.PATH:
		problem = ctx.lookup_problem(expr)
		if problem:
			return ctx.fail(problem, expr)
		if type_args(expr):
			return ctx.fail(f"generic type `{expr.render()}` has no marshaling rule", expr)
		return ctx.fail(f"unknown type `{expr.render()}`", expr)
	if expr.kind in (TypeExprKind.TRAIT_OBJECT, TypeExprKind.IMPL_TRAIT):
		return ctx.fail(f"trait object `{expr.render()}` is not callable", expr)
	return ctx.fail(f"type `{expr.render()}` has no marshaling rule", expr)


def default_recognizers() -> RecognizerSet:
	"""The standard set, in priority order."""
	return RecognizerSet(
		[
			Recognizer(10, "unit", _match_unit, _build_unit),
			Recognizer(20, "primitive", _match_primitive, _build_primitive),
			Recognizer(25, "never", _match_never, _build_never),
			Recognizer(30, "text", _match_text, _build_text),
			Recognizer(40, "sequence", _match_sequence, _build_sequence),
			Recognizer(50, "callable", _match_callable, _build_callable),
			Recognizer(60, "optional", _match_optional, _build_optional),
			Recognizer(70, "result", _match_result, _build_result),
			Recognizer(80, "pointer", _match_pointer, _build_pointer),
			Recognizer(90, "tuple", _match_tuple, _build_tuple),
			Recognizer(95, "structural_sequence", _match_structural_sequence, _build_structural_sequence),
			Recognizer(100, "nominal", _match_nominal, _build_nominal),
			Recognizer(1000, "unknown", _match_any, _build_unknown),
		]
	)


__all__ = [
	"PRIMITIVES",
	"Recognizer",
	"RecognizerSet",
	"callable_bound",
	"default_recognizers",
	"is_callable_trait",
	"std_name",
	"type_args",
]
