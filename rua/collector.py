# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Signature collector: select the native items that cross the boundary.

Pure selection over the immutable module. An item is collected iff it is
visible from outside the crate (the item and every enclosing module are
`pub`), has a supported shape (free, non-generic, non-async functions;
non-generic structs, enums and aliases) and every type in its signature is
syntactically enumerable. Ineligible items are dropped silently unless they
carry an export marker, in which case one Unsupported diagnostic lists every
reason.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, Iterator, Sequence

from .core.diagnostics import Diagnostic, unsupported
from .core.names import export_symbol
from .core.span import Span
from .logging import get_logger
from .native.ast import (
	NativeAlias,
	NativeEnum,
	NativeFn,
	NativeItem,
	NativeModule,
	NativeOther,
	NativeStruct,
	TypeExpr,
	TypeExprKind,
	Visibility,
	attr_path,
)
from .native.type_expr import UNIT_EXPR

logger = get_logger(__name__)

DEFAULT_EXPORT_MARKERS: tuple[str, ...] = ("rua::export", "rua_export")
SKIP_MARKERS: tuple[str, ...] = ("rua::skip", "rua_skip")
CALLABLE_TRAITS = frozenset({"Fn", "FnMut", "FnOnce"})


class ItemKind(Enum):
	FUNCTION = "function"
	STRUCT = "struct"
	ENUM = "enum"
	ALIAS = "alias"


_KIND_OF = {"fn": ItemKind.FUNCTION, "struct": ItemKind.STRUCT, "enum": ItemKind.ENUM, "alias": ItemKind.ALIAS}


@dataclass(frozen=True)
class ExportItem:
	"""One collected declaration; immutable once the collector hands it out."""

	qualified_name: str  # crate::geom::Point
	kind: ItemKind
	visibility: Visibility
	type_refs: tuple[tuple[str, TypeExpr], ...]  # label -> type, declaration order
	explicit: bool  # carries an export marker
	symbol: str  # C symbol: <module path>_<item>, snake_case
	index: int  # position in collection order
	module_path: tuple[str, ...]
	decl: NativeItem
	span: Span = field(default_factory=Span)

	@property
	def name(self) -> str:
		return self.qualified_name.rsplit("::", 1)[-1]


@dataclass
class CollectResult:
	items: list[ExportItem] = field(default_factory=list)
	diagnostics: list[Diagnostic] = field(default_factory=list)


def type_refs_of(decl: NativeItem) -> tuple[tuple[str, TypeExpr], ...]:
	"""Labelled type references of a declaration, in declaration order."""
	if isinstance(decl, NativeFn):
		refs = [(p.name, p.type) for p in decl.params]
		refs.append(("return", decl.ret if decl.ret is not None else UNIT_EXPR))
		return tuple(refs)
	if isinstance(decl, NativeStruct):
		return tuple((f.name if f.name is not None else str(i), f.type) for i, f in enumerate(decl.fields))
	if isinstance(decl, NativeEnum):
		return tuple(
			(f"{v.name}.{f.name if f.name is not None else i}", f.type)
			for v in decl.variants
			for i, f in enumerate(v.fields)
		)
	if isinstance(decl, NativeAlias):
		return (("target", decl.target),)
	return ()


def _children(ty: TypeExpr) -> Iterator[TypeExpr]:
	if ty.inner is not None:
		yield ty.inner
	yield from ty.elements
	if ty.ret is not None:
		yield ty.ret
	for seg in ty.segments:
		yield from seg.args
		if seg.ret is not None:
			yield seg.ret
	for bound in ty.bounds:
		for seg in bound:
			yield from seg.args
			if seg.ret is not None:
				yield seg.ret


def non_enumerable_reasons(ty: TypeExpr, generics: Sequence[str] = ()) -> list[str]:
	"""Why `ty` cannot be enumerated from its spelling alone (empty if it can)."""
	reasons: list[str] = []
	stack = [ty]
	while stack:
		cur = stack.pop()
		kind = cur.kind
		if kind is TypeExprKind.MACRO:
			reasons.append(f"type `{cur.text}` requires macro expansion")
			continue
		if kind is TypeExprKind.UNPARSED:
			reasons.append(f"type `{cur.text}` could not be decoded")
			continue
		if kind is TypeExprKind.INFER:
			reasons.append("`_` is not a concrete type")
			continue
		if kind is TypeExprKind.PATH:
			head = cur.segments[0].name if cur.segments else ""
			if len(cur.segments) == 1 and head in generics:
				reasons.append(f"generic parameter `{head}` is not a concrete type")
			elif head == "Self":
				reasons.append("`Self` does not name a type outside an impl")
		if kind is TypeExprKind.ARRAY and cur.length is None:
			reasons.append(f"array length `{cur.length_text}` is not a literal")
		if kind in (TypeExprKind.TRAIT_OBJECT, TypeExprKind.IMPL_TRAIT):
			callable_bounds = [b for b in cur.bounds if b and b[-1].name in CALLABLE_TRAITS and b[-1].fn_sugar]
			if not callable_bounds:
				reasons.append(f"trait object `{cur.render()}` is not callable")
		stack.extend(reversed(list(_children(cur))))
	return reasons


def _shape_reasons(decl: NativeItem) -> list[str]:
	if isinstance(decl, NativeOther):
		return [f"`{decl.kind}` items cannot cross the boundary"]
	reasons: list[str] = []
	if isinstance(decl, NativeFn):
		if decl.receiver is not None:
			reasons.append(f"methods (receiver `{decl.receiver}`) cannot cross the boundary")
		if decl.is_async:
			reasons.append("async functions are not supported")
	if decl.generics:
		reasons.append("generic items are not supported (" + ", ".join(f"`{g}`" for g in decl.generics) + ")")
	return reasons


def _dedupe(reasons: Iterable[str]) -> list[str]:
	seen: set[str] = set()
	out: list[str] = []
	for r in reasons:
		if r not in seen:
			seen.add(r)
			out.append(r)
	return out


class SignatureCollector:
	"""Depth-first walk over a native module tree in declaration order."""

	def __init__(self, *, export_markers: Sequence[str] = DEFAULT_EXPORT_MARKERS) -> None:
		self.export_markers = frozenset(attr_path(m) for m in export_markers)
		self.skip_markers = frozenset(SKIP_MARKERS)

	def _marked(self, attrs: Sequence[str], markers: frozenset[str]) -> bool:
		return any(attr_path(a) in markers for a in attrs)

	def collect(self, module: NativeModule) -> CollectResult:
		result = CollectResult()
		self._walk(module, (module.name,), (), result, [])
		logger.debug("collected %d item(s), %d diagnostic(s)", len(result.items), len(result.diagnostics))
		return result

	def _walk(
		self,
		module: NativeModule,
		qual: tuple[str, ...],
		mod_path: tuple[str, ...],
		result: CollectResult,
		private_parents: list[str],
	) -> None:
		for decl in module.items:
			self._consider(decl, qual, mod_path, result, private_parents)
		for child in module.children:
			hidden = list(private_parents)
			if not child.visibility.crosses_boundary():
				hidden.append("::".join((*qual, child.name)))
			self._walk(child, (*qual, child.name), (*mod_path, child.name), result, hidden)

	def _consider(
		self,
		decl: NativeItem,
		qual: tuple[str, ...],
		mod_path: tuple[str, ...],
		result: CollectResult,
		private_parents: list[str],
	) -> None:
		qualified = "::".join((*qual, decl.name))
		if self._marked(decl.attrs, self.skip_markers):
			logger.debug("skip %s: marked skip", qualified)
			return
		explicit = self._marked(decl.attrs, self.export_markers)

		reasons: list[str] = []
		if not decl.visibility.crosses_boundary():
			reasons.append(f"item is not `pub` (visibility `{decl.visibility.value}`)")
		for parent in private_parents:
			reasons.append(f"enclosing module `{parent}` is not `pub`")
		reasons.extend(_shape_reasons(decl))
		generics = getattr(decl, "generics", ())
		for label, ty in type_refs_of(decl):
			for r in non_enumerable_reasons(ty, generics):
				reasons.append(f"`{label}`: {r}")
		reasons = _dedupe(reasons)

		if reasons:
			if explicit:
				result.diagnostics.append(
					unsupported(
						f"item is marked for export but cannot cross the boundary: {reasons[0]}",
						item=qualified,
						stage="collector",
						span=decl.span,
						notes=tuple(reasons[1:]),
					)
				)
			else:
				logger.debug("skip %s: %s", qualified, "; ".join(reasons))
			return

		result.items.append(
			ExportItem(
				qualified_name=qualified,
				kind=_KIND_OF[decl.item_kind],
				visibility=decl.visibility,
				type_refs=type_refs_of(decl),
				explicit=explicit,
				symbol=export_symbol(mod_path, decl.name),
				index=len(result.items),
				module_path=mod_path,
				decl=decl,
				span=decl.span,
			)
		)


def collect_exports(module: NativeModule, *, export_markers: Sequence[str] = DEFAULT_EXPORT_MARKERS) -> CollectResult:
	return SignatureCollector(export_markers=export_markers).collect(module)


__all__ = [
	"CALLABLE_TRAITS",
	"CollectResult",
	"DEFAULT_EXPORT_MARKERS",
	"ExportItem",
	"ItemKind",
	"SKIP_MARKERS",
	"SignatureCollector",
	"collect_exports",
	"non_enumerable_reasons",
	"type_refs_of",
]
