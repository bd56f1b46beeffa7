# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Compatibility validator: the all-or-nothing gate before emitters.

Two classes of failure are kept apart:

  - Diagnostics: a slot whose (variant, mode) has no capability entry, or a
    non-borrowed mode without a concrete release (and, for SharedCounted,
    retain) helper. Reported in full; `ok` is False.
  - Internal faults: an IT without a layout, a layout that is not the cached
    one or fails its geometry checks, a slot without an ownership mode, or a
    non-IT object in the graph. These mean the earlier stages are broken and
    raise InternalFault immediately.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Optional

from .abi_resolver import ResolvedItem, ResolvedSlot
from .core.diagnostics import Diagnostic, unsupported
from .core.errors import InternalFault
from .core.layout import LayoutEngine, ObligationKind, OwnershipMode, check_layout
from .core.types_core import IT_CLASSES, InterfaceType, TypeTable, iter_graph, render_type
from .emitters.capabilities import CapabilityTable
from .logging import get_logger

logger = get_logger(__name__)


@dataclass
class ValidationReport:
	ok: bool
	items: list[ResolvedItem] = field(default_factory=list)
	diagnostics: list[Diagnostic] = field(default_factory=list)


class CompatibilityValidator:
	def __init__(self, capabilities: CapabilityTable, layouts: LayoutEngine, table: Optional[TypeTable] = None) -> None:
		self.capabilities = capabilities
		self.layouts = layouts
		self.table = table

	def _check_type(self, owner: str, ty: object) -> None:
		if not isinstance(ty, IT_CLASSES):
			raise InternalFault(message=f"non-IT object {ty!r} in the type graph", where=owner)
		if self.table is not None and ty not in self.table:
			raise InternalFault(message=f"IT `{render_type(ty)}` was not interned in this run's table", where=owner)  # type: ignore[arg-type]
		if not self.layouts.has_layout(ty):  # type: ignore[arg-type]
			raise InternalFault(message=f"IT `{render_type(ty)}` reached the validator without a layout", where=owner)  # type: ignore[arg-type]
		layout = self.layouts.layout_of(ty)  # type: ignore[arg-type]
		problems = check_layout(ty, layout)  # type: ignore[arg-type]
		if problems:
			raise InternalFault(
				message=f"inconsistent layout for `{render_type(ty)}`: {'; '.join(problems)}",  # type: ignore[arg-type]
				where=owner,
			)

	def _check_slot(self, resolved: ResolvedItem, slot: ResolvedSlot, diags: list[Diagnostic]) -> None:
		owner = resolved.item.qualified_name
		where = f"{owner}:{slot.path or '<root>'}"
		if not isinstance(slot.mode, OwnershipMode):
			raise InternalFault(message="slot has no ownership mode", where=where)
		if slot.layout is not self.layouts.layout_of(slot.type):
			raise InternalFault(message="slot layout is not the IT's single layout", where=where)
		ty: InterfaceType = slot.type
		if self.capabilities.entry(ty.type_kind, slot.mode) is None:
			diags.append(
				unsupported(
					f"`{slot.path or slot.label}`: no capability entry for {ty.type_kind.value} as {slot.mode.value}",
					item=owner,
					type_repr=render_type(ty),
					stage="validator",
					span=resolved.item.span,
				)
			)
			return
		ob = slot.obligation
		if ob.kind is not ObligationKind.NONE and not ob.is_concrete():
			missing = "retain/release" if ob.kind is ObligationKind.RETAIN_RELEASE else "release"
			diags.append(
				unsupported(
					f"`{slot.path or slot.label}`: {slot.mode.value} requires a {missing} helper for `{render_type(ty)}`",
					item=owner,
					type_repr=render_type(ty),
					stage="validator",
					span=resolved.item.span,
					notes=(f"target `{self.capabilities.target}` declares no helper name for this combination",),
				)
			)

	def validate(self, resolved: Iterable[ResolvedItem]) -> ValidationReport:
		items = list(resolved)
		diags: list[Diagnostic] = []
		for r in items:
			for ty in iter_graph(r.type):
				self._check_type(r.item.qualified_name, ty)
			for slot in r.slots():
				self._check_slot(r, slot, diags)
		ok = not diags
		logger.debug("validated %d item(s): %s", len(items), "ok" if ok else f"{len(diags)} diagnostic(s)")
		return ValidationReport(ok=ok, items=items if ok else [], diagnostics=diags)


__all__ = ["CompatibilityValidator", "ValidationReport"]
