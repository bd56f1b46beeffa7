# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Immutable model of a parsed native module.

This is the upstream parser's output as rua sees it: declarations with their
visibility, attributes and *unresolved* type expressions. Nothing here knows
about interface types; the type builder resolves TypeExprs later.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Union

from ..core.span import Span


class Visibility(Enum):
	PUBLIC = "pub"
	CRATE = "pub(crate)"
	RESTRICTED = "pub(restricted)"  # pub(super), pub(in path)
	PRIVATE = "private"

	def crosses_boundary(self) -> bool:
		return self is Visibility.PUBLIC


class TypeExprKind(Enum):
	PATH = "path"  # Vec<u8>, crate::geom::Point, i32
	REFERENCE = "reference"  # &T, &'a mut T
	POINTER = "pointer"  # *const T, *mut T
	SLICE = "slice"  # [T]
	ARRAY = "array"  # [T; N]
	TUPLE = "tuple"  # (), (A, B)
	FN = "fn"  # fn(A) -> R, extern "C" fn(A)
	TRAIT_OBJECT = "trait_object"  # dyn Trait
	IMPL_TRAIT = "impl_trait"  # impl Trait
	NEVER = "never"  # !
	INFER = "infer"  # _
	MACRO = "macro"  # my_type!(..)
	UNPARSED = "unparsed"  # anything the decoder could not read


@dataclass(frozen=True)
class PathSegment:
	"""
	One `::`-separated path segment.

	`args` holds generic type arguments. Parenthesized Fn-sugar
	(`Fn(i32) -> bool`) sets `fn_sugar` and stores the inputs in `args` and
	the output in `ret`.
	"""

	name: str
	args: tuple["TypeExpr", ...] = ()
	lifetimes: tuple[str, ...] = ()
	const_args: tuple[str, ...] = ()
	fn_sugar: bool = False
	ret: Optional["TypeExpr"] = None

	def render(self) -> str:
		if self.fn_sugar:
			out = f"{self.name}(" + ", ".join(a.render() for a in self.args) + ")"
			if self.ret is not None:
				out += f" -> {self.ret.render()}"
			return out
		parts = [*self.lifetimes, *(a.render() for a in self.args), *self.const_args]
		if not parts:
			return self.name
		return f"{self.name}<" + ", ".join(parts) + ">"


@dataclass(frozen=True)
class TypeExpr:
	"""
	A native type expression as written in a signature.

	Field usage by kind:
	  PATH: segments
	  REFERENCE: inner, mutable, lifetime
	  POINTER: inner, mutable
	  SLICE: inner
	  ARRAY: inner, length (None when the length is not a literal), length_text
	  TUPLE: elements
	  FN: elements (params), ret, abi, unsafe
	  TRAIT_OBJECT / IMPL_TRAIT: bounds (one path per `+`), lifetimes
	  MACRO / UNPARSED: text
	"""

	kind: TypeExprKind
	segments: tuple[PathSegment, ...] = ()
	inner: Optional["TypeExpr"] = None
	elements: tuple["TypeExpr", ...] = ()
	ret: Optional["TypeExpr"] = None
	mutable: bool = False
	lifetime: Optional[str] = None
	length: Optional[int] = None
	length_text: Optional[str] = None
	abi: Optional[str] = None
	unsafe: bool = False
	bounds: tuple[tuple[PathSegment, ...], ...] = ()
	lifetimes: tuple[str, ...] = ()
	text: str = ""

	def path_name(self) -> str:
		"""`crate::geom::Point` for PATH types; "" otherwise."""
		if self.kind is not TypeExprKind.PATH:
			return ""
		return "::".join(seg.name for seg in self.segments)

	def last_segment(self) -> PathSegment | None:
		if self.kind is not TypeExprKind.PATH or not self.segments:
			return None
		return self.segments[-1]

	def render(self) -> str:
		"""Canonical spelling (stable; used in diagnostics and as a cache key)."""
		k = self.kind
		if k is TypeExprKind.PATH:
			return "::".join(seg.render() for seg in self.segments)
		if k is TypeExprKind.REFERENCE:
			lt = f"{self.lifetime} " if self.lifetime else ""
			mut = "mut " if self.mutable else ""
			return f"&{lt}{mut}{self.inner.render() if self.inner else '?'}"
		if k is TypeExprKind.POINTER:
			return f"*{'mut' if self.mutable else 'const'} {self.inner.render() if self.inner else '?'}"
		if k is TypeExprKind.SLICE:
			return f"[{self.inner.render() if self.inner else '?'}]"
		if k is TypeExprKind.ARRAY:
			n = self.length if self.length is not None else self.length_text
			return f"[{self.inner.render() if self.inner else '?'}; {n}]"
		if k is TypeExprKind.TUPLE:
			if len(self.elements) == 1:
				return f"({self.elements[0].render()},)"
			return "(" + ", ".join(e.render() for e in self.elements) + ")"
		if k is TypeExprKind.FN:
			head = ""
			if self.unsafe:
				head += "unsafe "
			if self.abi is not None:
				head += f'extern "{self.abi}" '
			out = head + "fn(" + ", ".join(e.render() for e in self.elements) + ")"
			if self.ret is not None:
				out += f" -> {self.ret.render()}"
			return out
		if k in (TypeExprKind.TRAIT_OBJECT, TypeExprKind.IMPL_TRAIT):
			kw = "dyn" if k is TypeExprKind.TRAIT_OBJECT else "impl"
			parts = ["::".join(seg.render() for seg in b) for b in self.bounds]
			parts.extend(self.lifetimes)
			return f"{kw} " + " + ".join(parts)
		if k is TypeExprKind.NEVER:
			return "!"
		if k is TypeExprKind.INFER:
			return "_"
		return self.text

	def __str__(self) -> str:
		return self.render()


def path_type(*names: str, args: tuple[TypeExpr, ...] = ()) -> TypeExpr:
	"""Convenience: a PATH TypeExpr whose last segment carries `args`."""
	segs = [PathSegment(name=n) for n in names]
	if segs and args:
		segs[-1] = PathSegment(name=segs[-1].name, args=args)
	return TypeExpr(kind=TypeExprKind.PATH, segments=tuple(segs))


@dataclass(frozen=True)
class NativeParam:
	name: str
	type: TypeExpr


@dataclass(frozen=True)
class NativeFn:
	name: str
	params: tuple[NativeParam, ...] = ()
	ret: Optional[TypeExpr] = None  # None is `()`
	visibility: Visibility = Visibility.PRIVATE
	generics: tuple[str, ...] = ()
	receiver: Optional[str] = None  # "self", "&self", "&mut self" for methods
	is_async: bool = False
	is_unsafe: bool = False
	abi: Optional[str] = None  # extern "C" fn -> "C"
	attrs: tuple[str, ...] = ()
	span: Span = field(default_factory=Span)

	item_kind = "fn"


class StructStyle(Enum):
	NAMED = "named"
	TUPLE = "tuple"
	UNIT = "unit"


@dataclass(frozen=True)
class NativeField:
	name: Optional[str]  # None for positional (tuple struct) fields
	type: TypeExpr
	visibility: Visibility = Visibility.PRIVATE


@dataclass(frozen=True)
class NativeStruct:
	name: str
	fields: tuple[NativeField, ...] = ()
	style: StructStyle = StructStyle.NAMED
	visibility: Visibility = Visibility.PRIVATE
	generics: tuple[str, ...] = ()
	attrs: tuple[str, ...] = ()
	span: Span = field(default_factory=Span)

	item_kind = "struct"


@dataclass(frozen=True)
class NativeVariant:
	name: str
	fields: tuple[NativeField, ...] = ()
	style: StructStyle = StructStyle.UNIT
	discriminant: Optional[int] = None


@dataclass(frozen=True)
class NativeEnum:
	name: str
	variants: tuple[NativeVariant, ...] = ()
	visibility: Visibility = Visibility.PRIVATE
	generics: tuple[str, ...] = ()
	attrs: tuple[str, ...] = ()
	span: Span = field(default_factory=Span)

	item_kind = "enum"


@dataclass(frozen=True)
class NativeAlias:
	name: str
	target: TypeExpr
	visibility: Visibility = Visibility.PRIVATE
	generics: tuple[str, ...] = ()
	attrs: tuple[str, ...] = ()
	span: Span = field(default_factory=Span)

	item_kind = "alias"


OTHER_KINDS = ("const", "static", "trait", "impl", "macro", "union", "use")


@dataclass(frozen=True)
class NativeOther:
	"""A declaration that never crosses the boundary (const, trait, impl, ...)."""

	name: str
	kind: str
	visibility: Visibility = Visibility.PRIVATE
	attrs: tuple[str, ...] = ()
	span: Span = field(default_factory=Span)

	item_kind = "other"


NativeItem = Union[NativeFn, NativeStruct, NativeEnum, NativeAlias, NativeOther]


@dataclass(frozen=True)
class NativeModule:
	name: str
	items: tuple[NativeItem, ...] = ()
	children: tuple["NativeModule", ...] = ()
	visibility: Visibility = Visibility.PUBLIC
	span: Span = field(default_factory=Span)


def attr_path(attr: str) -> str:
	"""`rua::export(name = "x")` -> `rua::export`; whitespace-insensitive."""
	head = attr.split("(", 1)[0].split("=", 1)[0]
	return "".join(head.split())


__all__ = [
	"NativeAlias",
	"NativeEnum",
	"NativeField",
	"NativeFn",
	"NativeItem",
	"NativeModule",
	"NativeOther",
	"NativeParam",
	"NativeStruct",
	"NativeVariant",
	"OTHER_KINDS",
	"PathSegment",
	"StructStyle",
	"TypeExpr",
	"TypeExprKind",
	"Visibility",
	"attr_path",
	"path_type",
]
