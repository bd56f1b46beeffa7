# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
ABI resolver: layouts per IT, ownership modes per boundary position.

An item's IT graph is walked into a tree of ResolvedSlots. Each slot gets the
IT's (shared, cached) AbiLayout and an OwnershipMode decided from how the
native side holds the value and the slot's role:

  role                 owned value        raw pointer
  parameter            TransferredIn      Borrowed
  return               TransferredOut     ambiguous
  declaration          TransferredOut     Borrowed
  callback parameter   TransferredOut     Borrowed
  callback return      TransferredIn      ambiguous

Borrowed references are Borrowed, counted wrappers SharedCounted, and plain
values (primitives, fn pointers, aggregates that own nothing) are Borrowed
with no obligation. Below a slot:

  - a borrowed or counted reference exposes borrowed views only;
  - a transferred value hands its transfer down; a borrowed reference found
    there is a LayoutConflict and a raw pointer is ambiguous;
  - callback signatures start fresh positions with callback roles.

Ambiguous raw pointers become AmbiguousOwnership diagnostics unless an
ownership hint (ruaconf.toml `[ownership]`) names the mode for that slot.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping, Optional

from .collector import ExportItem, ItemKind
from .core.diagnostics import Diagnostic, ambiguous_ownership, layout_conflict, unsupported
from .core.layout import AbiLayout, LayoutEngine, NO_OBLIGATION, Obligation, OwnershipMode
from .core.types_core import (
	Function,
	Holding,
	InterfaceType,
	Opaque,
	Pointer,
	Primitive,
	Sequence,
	Text,
	children_of,
	render_type,
)
from .emitters.capabilities import CapabilityTable
from .logging import get_logger

logger = get_logger(__name__)


class Role(Enum):
	PARAMETER = "parameter"
	RETURN = "return"
	DECLARATION = "declaration"
	CALLBACK_PARAMETER = "callback_parameter"
	CALLBACK_RETURN = "callback_return"


# Direction of an owned value crossing at each role.
_TRANSFER_FOR_ROLE = {
	Role.PARAMETER: OwnershipMode.TRANSFERRED_IN,
	Role.CALLBACK_RETURN: OwnershipMode.TRANSFERRED_IN,
	Role.RETURN: OwnershipMode.TRANSFERRED_OUT,
	Role.DECLARATION: OwnershipMode.TRANSFERRED_OUT,
	Role.CALLBACK_PARAMETER: OwnershipMode.TRANSFERRED_OUT,
}
_RAW_BORROWS = frozenset({Role.PARAMETER, Role.DECLARATION, Role.CALLBACK_PARAMETER})
_TRANSFERRED = frozenset({OwnershipMode.TRANSFERRED_IN, OwnershipMode.TRANSFERRED_OUT})

_MODE_ALIASES = {
	"borrowed": OwnershipMode.BORROWED,
	"transferred_out": OwnershipMode.TRANSFERRED_OUT,
	"transferred_in": OwnershipMode.TRANSFERRED_IN,
	"shared_counted": OwnershipMode.SHARED_COUNTED,
}


def parse_mode(name: str) -> OwnershipMode:
	"""`transferred_out` / `TransferredOut` -> OwnershipMode.TRANSFERRED_OUT."""
	mode = _MODE_ALIASES.get(name.lower())
	if mode is not None:
		return mode
	for m in OwnershipMode:
		if m.value == name:
			return m
	raise ValueError(f"unknown ownership mode '{name}'")


@dataclass(frozen=True)
class ResolvedSlot:
	label: str
	path: str  # dotted position inside the item (e.g. `return.*`)
	type: InterfaceType
	layout: AbiLayout
	mode: OwnershipMode
	obligation: Obligation
	role: Role
	children: tuple["ResolvedSlot", ...] = ()

	def walk(self):
		yield self
		for child in self.children:
			yield from child.walk()

	def to_obj(self) -> dict[str, Any]:
		return {
			"label": self.label,
			"path": self.path,
			"type": render_type(self.type),
			"role": self.role.value,
			"mode": self.mode.value,
			"obligation": self.obligation.to_obj(),
			"size": self.layout.size,
			"align": self.layout.align,
			"children": [c.to_obj() for c in self.children],
		}


@dataclass(frozen=True)
class ResolvedItem:
	item: ExportItem
	type: InterfaceType
	layout: AbiLayout
	mode: OwnershipMode
	root: ResolvedSlot

	def slots(self):
		return self.root.walk()


def holding_of(ty: InterfaceType) -> Holding:
	if isinstance(ty, (Pointer, Sequence, Text, Function)):
		return ty.holding
	return Holding.VALUE


def borrows(ty: InterfaceType, _seen: Optional[set[int]] = None) -> bool:
	"""True when a value of `ty` refers to memory it does not own."""
	h = holding_of(ty)
	if h is Holding.BORROWED:
		return True
	if h in (Holding.OWNED, Holding.COUNTED, Holding.RAW) or isinstance(ty, (Function, Opaque)):
		return False
	seen = _seen if _seen is not None else set()
	if id(ty) in seen:
		return False
	seen.add(id(ty))
	return any(borrows(child, seen) for _, child in children_of(ty))


def owns_resources(ty: InterfaceType, _seen: Optional[set[int]] = None) -> bool:
	"""True when releasing a value of `ty` has to free something."""
	h = holding_of(ty)
	if h is Holding.OPTIONAL:
		# `None` or an allocated copy of the target; a borrowed target stays a view.
		assert isinstance(ty, Pointer)
		return not borrows(ty.target)
	if h in (Holding.OWNED, Holding.COUNTED):
		return True
	if h in (Holding.BORROWED, Holding.RAW):
		return False
	seen = _seen if _seen is not None else set()
	if id(ty) in seen:
		return False
	seen.add(id(ty))
	if isinstance(ty, Function):
		return False
	return any(owns_resources(child, seen) for _, child in children_of(ty))


@dataclass(frozen=True)
class _Ctx:
	"""How a slot is reached: at a position, as a view, or inside a transfer."""

	kind: str  # "position" | "view" | "transfer"
	role: Role
	mode: Optional[OwnershipMode] = None


OwnershipHints = Mapping[str, Mapping[str, OwnershipMode]]


@dataclass
class AbiResolver:
	"""
	Resolves built items against one capability table and word size.

	`hints` maps a qualified item name to {slot path: mode}; slot paths are
	the dotted labels used in ResolvedSlot.path (`return`, `buf`, `return.*`).
	"""

	capabilities: CapabilityTable
	layouts: LayoutEngine
	hints: OwnershipHints = field(default_factory=dict)
	_applied: set[tuple[str, str]] = field(default_factory=set, init=False, repr=False)
	_lock: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False)

	def unused_hints(self) -> list[tuple[str, str]]:
		"""(item, slot path) of every hint no raw pointer slot has consumed yet."""
		with self._lock:
			applied = set(self._applied)
		return sorted((name, path) for name, paths in self.hints.items() for path in paths if (name, path) not in applied)

	def resolve_item(self, item: ExportItem, ty: InterfaceType) -> tuple[Optional[ResolvedItem], list[Diagnostic]]:
		diags: list[Diagnostic] = []
		item_hints = self.hints.get(item.qualified_name, {})
		if item.kind is ItemKind.FUNCTION:
			assert isinstance(ty, Function)
			root = self._function_root(item, ty, item_hints, diags)
		else:
			root = self._slot(item, ty, item.name, "", _Ctx("position", Role.DECLARATION), item_hints, diags)
		if diags or root is None:
			logger.debug("resolve %s: %d diagnostic(s)", item.qualified_name, len(diags))
			return None, diags
		logger.debug("resolve %s: %d slot(s)", item.qualified_name, sum(1 for _ in root.walk()))
		return ResolvedItem(item=item, type=ty, layout=root.layout, mode=root.mode, root=root), []

	def _function_root(
		self, item: ExportItem, fn: Function, hints: Mapping[str, OwnershipMode], diags: list[Diagnostic]
	) -> Optional[ResolvedSlot]:
		labels = [label for label, _ in item.type_refs if label != "return"]
		children = self._signature(item, fn, labels, "", Role.PARAMETER, Role.RETURN, hints, diags)
		self._capability(item, fn, OwnershipMode.BORROWED, "", diags)
		if children is None:
			return None
		return ResolvedSlot(
			label=item.name,
			path="",
			type=fn,
			layout=self.layouts.layout_of(fn),
			mode=OwnershipMode.BORROWED,
			obligation=NO_OBLIGATION,
			role=Role.DECLARATION,
			children=children,
		)

	def _signature(
		self,
		item: ExportItem,
		fn: Function,
		labels: list[str],
		base: str,
		param_role: Role,
		ret_role: Role,
		hints: Mapping[str, OwnershipMode],
		diags: list[Diagnostic],
	) -> Optional[tuple[ResolvedSlot, ...]]:
		out: list[ResolvedSlot] = []
		ok = True
		positions = [(labels[i] if i < len(labels) else f"arg{i}", p, param_role) for i, p in enumerate(fn.params)]
		positions.append(("return", fn.ret, ret_role))
		if fn.error is not None:
			positions.append(("error", fn.error, ret_role))
		for label, ty, role in positions:
			path = f"{base}.{label}" if base else label
			slot = self._slot(item, ty, label, path, _Ctx("position", role), hints, diags)
			if slot is None:
				ok = False
			else:
				out.append(slot)
		return tuple(out) if ok else None

	def _mode(
		self,
		item: ExportItem,
		ty: InterfaceType,
		path: str,
		ctx: _Ctx,
		hints: Mapping[str, OwnershipMode],
		diags: list[Diagnostic],
	) -> Optional[OwnershipMode]:
		h = holding_of(ty)
		where = path or item.name
		if h is Holding.OPTIONAL and borrows(ty.target):
			h = Holding.BORROWED
		if ctx.kind == "view":
			return OwnershipMode.BORROWED
		if h is Holding.RAW:
			hinted = hints.get(path)
			if hinted is not None:
				with self._lock:
					self._applied.add((item.qualified_name, path))
				return hinted
			if ctx.kind == "position" and ctx.role in _RAW_BORROWS:
				return OwnershipMode.BORROWED
			context = "inside a transferred value" if ctx.kind == "transfer" else f"as a {ctx.role.value.replace('_', ' ')}"
			diags.append(
				ambiguous_ownership(
					f"`{where}`: ownership of a raw pointer {context} cannot be inferred",
					item=item.qualified_name,
					type_repr=render_type(ty),
					stage="abi_resolver",
					span=item.span,
					notes=(f"declare it in ruaconf.toml: [ownership] \"{item.qualified_name}\" = {{ \"{path}\" = \"transferred_out\" }}",),
				)
			)
			return None
		if h is Holding.COUNTED:
			return OwnershipMode.SHARED_COUNTED
		if ctx.kind == "transfer":
			assert ctx.mode is not None
			if h is Holding.BORROWED:
				diags.append(
					layout_conflict(
						f"`{where}`: borrowed reference inside a value transferred as {ctx.mode.value}",
						item=item.qualified_name,
						type_repr=render_type(ty),
						stage="abi_resolver",
						span=item.span,
						notes=("a transferred value must own everything it points to",),
					)
				)
				return None
			if h is Holding.VALUE and not owns_resources(ty):
				return OwnershipMode.BORROWED
			return ctx.mode
		if h is Holding.BORROWED:
			return OwnershipMode.BORROWED
		if h is Holding.VALUE and not owns_resources(ty):
			return OwnershipMode.BORROWED
		return _TRANSFER_FOR_ROLE[ctx.role]

	def _capability(
		self, item: ExportItem, ty: InterfaceType, mode: OwnershipMode, path: str, diags: list[Diagnostic]
	) -> bool:
		problem = self.capabilities.check(ty, mode)
		if problem is None:
			return True
		diags.append(
			unsupported(
				f"`{path or item.name}`: {problem}",
				item=item.qualified_name,
				type_repr=render_type(ty),
				stage="abi_resolver",
				span=item.span,
			)
		)
		return False

	def _child_ctx(self, ty: InterfaceType, mode: OwnershipMode, ctx: _Ctx) -> _Ctx:
		if mode in _TRANSFERRED:
			return _Ctx("transfer", ctx.role, mode)
		if mode is OwnershipMode.SHARED_COUNTED:
			return _Ctx("view", ctx.role)
		if ctx.kind == "view":
			return ctx
		# Borrowed: plain values keep the context they were reached in.
		if holding_of(ty) is Holding.VALUE:
			return ctx
		return _Ctx("view", ctx.role)

	def _slot(
		self,
		item: ExportItem,
		ty: InterfaceType,
		label: str,
		path: str,
		ctx: _Ctx,
		hints: Mapping[str, OwnershipMode],
		diags: list[Diagnostic],
	) -> Optional[ResolvedSlot]:
		mode = self._mode(item, ty, path, ctx, hints, diags)
		if mode is None:
			return None
		ok = self._capability(item, ty, mode, path, diags)
		layout = self.layouts.layout_of(ty)

		children: list[ResolvedSlot] = []
		if isinstance(ty, Function):
			sig = self._signature(
				item, ty, [], path, Role.CALLBACK_PARAMETER, Role.CALLBACK_RETURN, hints, diags
			)
			if sig is None:
				ok = False
			else:
				children.extend(sig)
		elif not isinstance(ty, (Primitive, Text, Opaque)):
			child_ctx = self._child_ctx(ty, mode, ctx)
			for child_label, child_ty in children_of(ty):
				child_path = f"{path}.{child_label}" if path else child_label
				slot = self._slot(item, child_ty, child_label, child_path, child_ctx, hints, diags)
				if slot is None:
					ok = False
				else:
					children.append(slot)
		if not ok:
			return None
		return ResolvedSlot(
			label=label,
			path=path,
			type=ty,
			layout=layout,
			mode=mode,
			obligation=self.capabilities.obligation(ty, mode),
			role=ctx.role,
			children=tuple(children),
		)


__all__ = [
	"AbiResolver",
	"OwnershipHints",
	"ResolvedItem",
	"ResolvedSlot",
	"Role",
	"borrows",
	"holding_of",
	"owns_resources",
	"parse_mode",
]
