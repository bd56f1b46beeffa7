# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Type model builder: native type expressions -> canonical interface types.

Every collected item's type references run through the ranked recognizer set
(rua.recognizers). Resulting ITs are interned in the run's TypeTable, so the
same native type used by two items yields the same IT object.

User-defined structs and enums become Records and TaggedUnions. Recursion is
decided on the nominal dependency graph before anything is built:

  - a nominal in a cycle made only of by-value references has infinite size
    and is Unsupported;
  - inside a recursive component, a reference to another member through a
    pointer becomes `Pointer(Opaque(handle))`;
  - a reference to a member through a sequence element or a callback
    signature is Unsupported.

Because these decisions depend only on the graph (not on which item happened
to be built first), results are identical for any build order and worker
count. Opaque handles are reserved up front in declaration order.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Iterable, Iterator, Optional, Sequence as Seq, Union

from .collector import ExportItem, ItemKind
from .core.diagnostics import Diagnostic, unsupported
from .core.types_core import (
	Field,
	Function,
	Holding,
	InterfaceType,
	Opaque,
	Record,
	TaggedUnion,
	TypeTable,
	Variant,
	callback_depth,
	render_type,
)
from .logging import get_logger
from .native.ast import (
	NativeAlias,
	NativeEnum,
	NativeModule,
	NativeStruct,
	TypeExpr,
	TypeExprKind,
	Visibility,
	path_type,
)
from .native.type_expr import UNIT_EXPR
from .recognizers import RecognizerSet, default_recognizers, std_name, type_args

logger = get_logger(__name__)

NominalDeclType = Union[NativeStruct, NativeEnum, NativeAlias]


@dataclass(frozen=True)
class NominalRef:
	"""A user-defined type declaration and the module scope it lives in."""

	qualified_name: str
	scope: tuple[str, ...]
	decl: NominalDeclType
	index: int  # declaration order across the whole module tree


@dataclass(frozen=True)
class Problem:
	"""An Unsupported condition not yet attributed to an export item."""

	message: str
	type_repr: Optional[str] = None
	notes: tuple[str, ...] = ()


class NominalIndex:
	"""Qualified-name lookup of every struct, enum and alias in a module tree."""

	def __init__(self, module: NativeModule) -> None:
		self.root = module.name
		self._by_name: dict[str, NominalRef] = {}
		self._order: list[NominalRef] = []
		self._add(module, (module.name,))

	def _add(self, module: NativeModule, scope: tuple[str, ...]) -> None:
		for decl in module.items:
			if isinstance(decl, (NativeStruct, NativeEnum, NativeAlias)):
				qn = "::".join((*scope, decl.name))
				if qn in self._by_name:
					continue
				ref = NominalRef(qualified_name=qn, scope=scope, decl=decl, index=len(self._order))
				self._by_name[qn] = ref
				self._order.append(ref)
		for child in module.children:
			self._add(child, (*scope, child.name))

	def __iter__(self) -> Iterator[NominalRef]:
		return iter(self._order)

	def get(self, qualified_name: str) -> Optional[NominalRef]:
		return self._by_name.get(qualified_name)

	def resolve(self, names: Seq[str], scope: Seq[str]) -> tuple[Optional[NominalRef], Optional[str]]:
		"""
		Resolve a path from `scope`: (ref, None), (None, problem) or (None, None).

		`crate::`/`self::`/`super::` are honoured; a bare path is tried in the
		current module and its ancestors, then as a unique suffix anywhere.
		"""
		names = list(names)
		if not names:
			return None, None
		scope = tuple(scope)
		if names[0] in ("crate", self.root):
			return self._by_name.get("::".join((self.root, *names[1:]))), None
		if names[0] in ("self", "super"):
			base = scope
			while names and names[0] in ("self", "super"):
				if names.pop(0) == "super":
					base = base[:-1]
			return self._by_name.get("::".join((*base, *names))), None
		for depth in range(len(scope), 0, -1):
			ref = self._by_name.get("::".join((*scope[:depth], *names)))
			if ref is not None:
				return ref, None
		suffix = "::" + "::".join(names)
		hits = [r for r in self._order if r.qualified_name.endswith(suffix)]
		if len(hits) == 1:
			return hits[0], None
		if len(hits) > 1:
			return None, f"ambiguous type `{'::'.join(names)}` (candidates: {', '.join(h.qualified_name for h in hits)})"
		return None, None


# --- nominal dependency graph -----------------------------------------------------

VALUE, POINTER, SEQUENCE, FUNCTION = "value", "pointer", "sequence", "function"


def _type_edges(
	expr: TypeExpr, scope: tuple[str, ...], index: NominalIndex, via: str, seen_aliases: frozenset[str]
) -> Iterator[tuple[str, str]]:
	"""(target qualified name, edge kind) for every nominal mentioned in `expr`."""
	k = expr.kind
	if k in (TypeExprKind.REFERENCE, TypeExprKind.POINTER):
		if expr.inner is not None:
			yield from _type_edges(expr.inner, scope, index, POINTER, seen_aliases)
		return
	if k is TypeExprKind.SLICE:
		if expr.inner is not None:
			yield from _type_edges(expr.inner, scope, index, SEQUENCE, seen_aliases)
		return
	if k is TypeExprKind.ARRAY:
		if expr.inner is not None:
			yield from _type_edges(expr.inner, scope, index, via, seen_aliases)
		return
	if k is TypeExprKind.TUPLE:
		for el in expr.elements:
			yield from _type_edges(el, scope, index, via, seen_aliases)
		return
	if k is TypeExprKind.FN:
		for el in (*expr.elements, *([expr.ret] if expr.ret is not None else [])):
			yield from _type_edges(el, scope, index, FUNCTION, seen_aliases)
		return
	if k in (TypeExprKind.TRAIT_OBJECT, TypeExprKind.IMPL_TRAIT):
		for bound in expr.bounds:
			for seg in bound:
				for el in (*seg.args, *([seg.ret] if seg.ret is not None else [])):
					yield from _type_edges(el, scope, index, FUNCTION, seen_aliases)
		return
	if k is not TypeExprKind.PATH:
		return
	name = std_name(expr)
	args = type_args(expr)
	if name in ("Box", "Arc", "Rc"):
		inner_via = POINTER
	elif name == "Vec":
		inner_via = SEQUENCE
	else:
		inner_via = via
	ref, _ = index.resolve([s.name for s in expr.segments], scope)
	if ref is not None:
		if isinstance(ref.decl, NativeAlias):
			if ref.qualified_name not in seen_aliases:
				yield from _type_edges(ref.decl.target, ref.scope, index, via, seen_aliases | {ref.qualified_name})
		else:
			yield ref.qualified_name, via
	for arg in args:
		yield from _type_edges(arg, scope, index, inner_via, seen_aliases)


def _decl_exprs(decl: NominalDeclType) -> list[TypeExpr]:
	if isinstance(decl, NativeStruct):
		return [f.type for f in decl.fields]
	if isinstance(decl, NativeEnum):
		return [f.type for v in decl.variants for f in v.fields]
	return [decl.target]


def _tarjan(nodes: list[str], edges: dict[str, list[str]]) -> list[list[str]]:
	"""Strongly connected components, deterministic for a fixed node order."""
	counter = 0
	indices: dict[str, int] = {}
	low: dict[str, int] = {}
	stack: list[str] = []
	on_stack: set[str] = set()
	out: list[list[str]] = []

	def visit(v: str) -> None:
		nonlocal counter
		indices[v] = low[v] = counter
		counter += 1
		stack.append(v)
		on_stack.add(v)
		for w in edges.get(v, ()):
			if w not in indices:
				visit(w)
				low[v] = min(low[v], low[w])
			elif w in on_stack:
				low[v] = min(low[v], indices[w])
		if low[v] == indices[v]:
			comp: list[str] = []
			while True:
				w = stack.pop()
				on_stack.discard(w)
				comp.append(w)
				if w == v:
					break
			out.append(comp)

	for n in nodes:
		if n not in indices:
			visit(n)
	return out


@dataclass
class NominalGraph:
	component: dict[str, int] = field(default_factory=dict)  # qualified name -> SCC id
	recursive: set[int] = field(default_factory=set)  # SCC ids containing a cycle
	value_cyclic: set[str] = field(default_factory=set)  # nominals on a by-value cycle

	@classmethod
	def build(cls, index: NominalIndex) -> "NominalGraph":
		nodes = [r.qualified_name for r in index if not isinstance(r.decl, NativeAlias)]
		all_edges: dict[str, list[str]] = {}
		value_edges: dict[str, list[str]] = {}
		self_loops: set[str] = set()
		value_self_loops: set[str] = set()
		for ref in index:
			if isinstance(ref.decl, NativeAlias):
				continue
			qn = ref.qualified_name
			for expr in _decl_exprs(ref.decl):
				for target, via in _type_edges(expr, ref.scope, index, VALUE, frozenset()):
					all_edges.setdefault(qn, []).append(target)
					if target == qn:
						self_loops.add(qn)
					if via == VALUE:
						value_edges.setdefault(qn, []).append(target)
						if target == qn:
							value_self_loops.add(qn)
		graph = cls()
		for cid, comp in enumerate(_tarjan(nodes, all_edges)):
			for qn in comp:
				graph.component[qn] = cid
			if len(comp) > 1 or comp[0] in self_loops:
				graph.recursive.add(cid)
		for comp in _tarjan(nodes, value_edges):
			if len(comp) > 1 or comp[0] in value_self_loops:
				graph.value_cyclic.update(comp)
		return graph

	def same_recursive_component(self, a: Optional[str], b: str) -> bool:
		if a is None:
			return False
		ca = self.component.get(a)
		return ca is not None and ca == self.component.get(b) and ca in self.recursive


def _has_private_fields(decl: NominalDeclType) -> bool:
	return isinstance(decl, NativeStruct) and any(f.visibility is not Visibility.PUBLIC for f in decl.fields)


# --- building ---------------------------------------------------------------------


class BuildContext:
	"""
	What recognizers see while building one type expression.

	`owner` is the nominal whose declaration is being expanded (None for
	item signatures); `indirection` is the innermost indirection crossed since
	entering that declaration (None, "pointer", "sequence" or "function").
	"""

	def __init__(
		self,
		builder: "TypeModelBuilder",
		problems: list[Problem],
		*,
		scope: tuple[str, ...],
		owner: Optional[str] = None,
		indirection: Optional[str] = None,
		declaration: bool = False,
		aliases: frozenset[str] = frozenset(),
	) -> None:
		self.builder = builder
		self.problems = problems
		self.scope = scope
		self.owner = owner
		self.indirection = indirection
		self.declaration = declaration
		self.aliases = aliases

	@property
	def word_bits(self) -> int:
		return self.builder.word_bits

	def intern(self, ty: InterfaceType) -> InterfaceType:
		return self.builder.table.intern(ty)

	def fail(self, message: str, expr: Optional[TypeExpr] = None, notes: tuple[str, ...] = ()) -> None:
		self.problems.append(Problem(message=message, type_repr=expr.render() if expr is not None else None, notes=notes))
		return None

	def _child(self, **changes) -> "BuildContext":
		params = dict(
			scope=self.scope,
			owner=self.owner,
			indirection=self.indirection,
			declaration=False,
			aliases=self.aliases,
		)
		params.update(changes)
		return BuildContext(self.builder, self.problems, **params)

	def build(
		self,
		expr: TypeExpr,
		*,
		indirection: Optional[str] = None,
		scope: Optional[tuple[str, ...]] = None,
	) -> Optional[InterfaceType]:
		ctx = self._child(
			indirection=indirection if indirection is not None else self.indirection,
			scope=scope if scope is not None else self.scope,
		)
		return self.builder.recognizers_for(expr, ctx)

	def lookup(self, expr: TypeExpr) -> Optional[NominalRef]:
		if expr.kind is not TypeExprKind.PATH:
			return None
		ref, _ = self.builder.resolve(expr, self.scope)
		return ref

	def lookup_problem(self, expr: TypeExpr) -> Optional[str]:
		_, problem = self.builder.resolve(expr, self.scope)
		return problem

	def function(
		self,
		params: Seq[TypeExpr],
		ret: Optional[TypeExpr],
		*,
		holding: Holding,
	) -> Optional[InterfaceType]:
		"""Function IT; a `Result<T, E>` return becomes `ret=T, throws, error=E`."""
		ctx = self._child(indirection=FUNCTION if self.owner is not None else self.indirection)
		ok = True
		built: list[InterfaceType] = []
		for p in params:
			it = ctx.build(p)
			if it is None:
				ok = False
			else:
				built.append(it)
		throws = False
		error: Optional[InterfaceType] = None
		ret_expr = ret if ret is not None else UNIT_EXPR
		if std_name(ret_expr) == "Result":
			args = type_args(ret_expr)
			if len(args) != 2:
				ctx.fail(f"`{ret_expr.render()}` must name both the value and the error type", ret_expr)
				ok = False
				ret_it = None
			else:
				ret_it = ctx.build(args[0])
				error = ctx.build(args[1])
				throws = True
				if error is None:
					ok = False
		else:
			ret_it = ctx.build(ret_expr)
		if ret_it is None or not ok:
			return None
		return self.intern(Function(params=tuple(built), ret=ret_it, throws=throws, error=error, holding=holding))

	def nominal(self, ref: NominalRef, expr: TypeExpr) -> Optional[InterfaceType]:
		return self.builder.nominal_type(ref, expr, self)


class TypeModelBuilder:
	"""
	Builds the IT of every collected item against one TypeTable.

	Safe to share between worker threads: the table interns under its own
	lock and nominal results are cached under ours.
	"""

	def __init__(
		self,
		module: NativeModule,
		table: TypeTable,
		*,
		word_bits: int = 64,
		recognizers: Optional[RecognizerSet] = None,
	) -> None:
		self.module = module
		self.table = table
		self.word_bits = word_bits
		self.recognizers = recognizers if recognizers is not None else default_recognizers()
		self.index = NominalIndex(module)
		self.graph = NominalGraph.build(self.index)
		self._lock = threading.RLock()
		self._nominals: dict[str, tuple[Optional[InterfaceType], tuple[Problem, ...]]] = {}
		self._resolved: dict[tuple[tuple[str, ...], tuple[str, ...]], tuple[Optional[NominalRef], Optional[str]]] = {}
		# Handles are assigned here, in declaration order, so they never depend
		# on which item reaches a nominal first.
		for ref in self.index:
			if isinstance(ref.decl, NativeAlias):
				continue
			cid = self.graph.component.get(ref.qualified_name)
			if cid in self.graph.recursive or _has_private_fields(ref.decl):
				table.reserve_handle(ref.qualified_name)

	# -- lookups --

	def resolve(self, expr: TypeExpr, scope: tuple[str, ...]) -> tuple[Optional[NominalRef], Optional[str]]:
		key = (tuple(s.name for s in expr.segments), scope)
		with self._lock:
			hit = self._resolved.get(key)
			if hit is None:
				hit = self.index.resolve(key[0], scope)
				self._resolved[key] = hit
			return hit

	def recognizers_for(self, expr: TypeExpr, ctx: BuildContext) -> Optional[InterfaceType]:
		rec = self.recognizers.recognize(expr, ctx)
		if rec is None:
			return ctx.fail(f"type `{expr.render()}` has no marshaling rule", expr)
		return rec.build(expr, ctx)

	# -- nominals --

	def _opaque(self, ref: NominalRef) -> InterfaceType:
		return self.table.opaque(ref.qualified_name)

	def nominal_type(self, ref: NominalRef, expr: TypeExpr, ctx: BuildContext) -> Optional[InterfaceType]:
		decl = ref.decl
		qn = ref.qualified_name
		if decl.generics:
			return ctx.fail(f"generic type `{qn}` cannot cross the boundary", expr)
		if type_args(expr):
			return ctx.fail(f"type `{qn}` takes no generic arguments", expr)
		if isinstance(decl, NativeAlias):
			if qn in ctx.aliases:
				return ctx.fail(f"type alias `{qn}` refers to itself", expr)
			alias_ctx = ctx._child(scope=ref.scope, aliases=ctx.aliases | {qn}, declaration=ctx.declaration)
			return self.recognizers_for(decl.target, alias_ctx)

		if self.graph.same_recursive_component(ctx.owner, qn):
			if ctx.indirection == POINTER:
				return self._opaque(ref)
			if ctx.indirection == SEQUENCE:
				return ctx.fail(f"recursive type `{qn}` recurs through a sequence element", expr)
			if ctx.indirection == FUNCTION:
				return ctx.fail(f"recursive type `{qn}` recurs through a callback signature", expr)
		if _has_private_fields(decl):
			if ctx.declaration or ctx.indirection == POINTER:
				return self._opaque(ref)
			return ctx.fail(f"struct `{qn}` has private fields and can only cross behind a pointer", expr)
		if qn in self.graph.value_cyclic:
			return ctx.fail(f"recursive type `{qn}` has infinite size (it contains itself by value)", expr)

		with self._lock:
			cached = self._nominals.get(qn)
		if cached is None:
			problems: list[Problem] = []
			inner = BuildContext(self, problems, scope=ref.scope, owner=qn)
			it = self._expand(ref, inner)
			cached = (it, tuple(problems))
			with self._lock:
				cached = self._nominals.setdefault(qn, cached)
		it, problems_seen = cached
		ctx.problems.extend(problems_seen)
		return it

	def _expand(self, ref: NominalRef, ctx: BuildContext) -> Optional[InterfaceType]:
		decl = ref.decl
		qn = ref.qualified_name
		if isinstance(decl, NativeStruct):
			fields: list[Field] = []
			ok = True
			for i, f in enumerate(decl.fields):
				it = ctx.build(f.type)
				if it is None:
					ok = False
					continue
				fields.append(Field(name=f.name if f.name is not None else str(i), type=it))
			if not ok:
				return None
			return ctx.intern(Record(name=qn, fields=tuple(fields)))
		assert isinstance(decl, NativeEnum)
		if not decl.variants:
			return ctx.fail(f"enum `{qn}` has no variants")
		variants: list[Variant] = []
		tags: dict[int, str] = {}
		ok = True
		next_tag = 0
		for v in decl.variants:
			tag = v.discriminant if v.discriminant is not None else next_tag
			next_tag = tag + 1
			if tag in tags:
				ctx.fail(f"enum `{qn}`: variants `{tags[tag]}` and `{v.name}` share discriminant {tag}")
				ok = False
			tags[tag] = v.name
			vfields: list[Field] = []
			for i, f in enumerate(v.fields):
				it = ctx.build(f.type)
				if it is None:
					ok = False
					continue
				vfields.append(Field(name=f.name if f.name is not None else str(i), type=it))
			variants.append(Variant(name=v.name, tag=tag, fields=tuple(vfields)))
		lo, hi = min(tags), max(tags)
		if hi >= (1 << 64) or (lo < 0 and (lo < -(1 << 63) or hi >= (1 << 63))):
			ctx.fail(f"enum `{qn}`: discriminants {lo}..{hi} do not fit a 64-bit tag")
			ok = False
		if not ok:
			return None
		return ctx.intern(TaggedUnion(name=qn, variants=tuple(variants)))

	# -- items --

	def build_item(self, item: ExportItem) -> tuple[Optional[InterfaceType], list[Diagnostic]]:
		"""IT for one item plus its Unsupported diagnostics (IT is None when any)."""
		problems: list[Problem] = []
		scope = tuple(item.qualified_name.split("::")[:-1])
		ctx = BuildContext(self, problems, scope=scope)
		it: Optional[InterfaceType]
		if item.kind is ItemKind.FUNCTION:
			params = [ty for label, ty in item.type_refs if label != "return"]
			ret = dict(item.type_refs).get("return")
			it = ctx.function(params, ret, holding=Holding.VALUE)
			if it is not None:
				labels = [label for label, _ in item.type_refs]
				assert isinstance(it, Function)
				for label, sub in zip(labels, (*it.params, it.ret)):
					self._check_callbacks(label, sub, problems)
				if it.error is not None:
					self._check_callbacks("error", it.error, problems)
		elif item.kind is ItemKind.ALIAS:
			it = ctx.build(item.type_refs[0][1])
			if it is not None:
				self._check_callbacks("target", it, problems)
		else:
			decl_ctx = BuildContext(self, problems, scope=scope, declaration=True)
			it = self.recognizers_for(path_type(*item.qualified_name.split("::")), decl_ctx)
			if it is not None and not isinstance(it, Opaque):
				self._check_callbacks(item.name, it, problems)
		diags = self._diagnostics(item, problems)
		if diags:
			logger.debug("build %s: %d problem(s)", item.qualified_name, len(diags))
			return None, diags
		assert it is not None
		logger.debug("build %s -> %s", item.qualified_name, render_type(it))
		return it, []

	def _check_callbacks(self, label: str, it: InterfaceType, problems: list[Problem]) -> None:
		if callback_depth(it) > 1:
			problems.append(
				Problem(
					message=f"`{label}`: a callback whose signature contains another callback is not supported",
					type_repr=render_type(it),
					notes=("only one level of callback nesting can cross the boundary",),
				)
			)

	def _diagnostics(self, item: ExportItem, problems: Iterable[Problem]) -> list[Diagnostic]:
		seen: set[Problem] = set()
		out: list[Diagnostic] = []
		for p in problems:
			if p in seen:
				continue
			seen.add(p)
			out.append(
				unsupported(
					p.message,
					item=item.qualified_name,
					type_repr=p.type_repr,
					stage="type_builder",
					span=item.span,
					notes=p.notes,
				)
			)
		return out


__all__ = [
	"BuildContext",
	"NominalGraph",
	"NominalIndex",
	"NominalRef",
	"Problem",
	"TypeModelBuilder",
]
