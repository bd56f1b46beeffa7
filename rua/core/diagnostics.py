# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Diagnostic records produced by the collector, builder, resolver and validator.

Diagnostics are accumulated, never thrown: every stage appends to a list and
keeps going with the remaining items so one run reports every problem in the
module. Ordering is the order items were collected, then stage order.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from .span import Span


class DiagnosticKind(Enum):
	"""Taxonomy of boundary problems."""

	UNSUPPORTED = "Unsupported"  # no marshaling rule for a type/ownership combination
	AMBIGUOUS_OWNERSHIP = "AmbiguousOwnership"  # not inferable and not declared
	LAYOUT_CONFLICT = "LayoutConflict"  # same IT under incompatible ABI constraints


@dataclass(frozen=True)
class Diagnostic:
	"""A single problem attached to an export item (and optionally one of its types)."""

	kind: DiagnosticKind
	message: str
	item: str | None = None  # qualified name of the offending ExportItem
	type_repr: str | None = None  # rendering of the offending native type / IT
	stage: str | None = None  # collector | type_builder | abi_resolver | validator
	span: Span = field(default_factory=Span)
	notes: tuple[str, ...] = ()

	def __post_init__(self) -> None:
		# Normalize missing spans to the sentinel Span() so renderers can rely
		# on a structured object.
		if self.span is None:  # type: ignore[unreachable]
			object.__setattr__(self, "span", Span())

	def render(self) -> str:
		head = f"{self.kind.value}"
		if self.item:
			head += f" in `{self.item}`"
		text = f"{head}: {self.message}"
		if self.type_repr:
			text += f" (type `{self.type_repr}`)"
		if self.span.is_known():
			text = f"{self.span.render()}: {text}"
		for note in self.notes:
			text += f"\n  note: {note}"
		return text

	def to_obj(self) -> dict[str, Any]:
		return {
			"kind": self.kind.value,
			"message": self.message,
			"item": self.item,
			"type": self.type_repr,
			"stage": self.stage,
			"span": self.span.to_obj(),
			"notes": list(self.notes),
		}


def unsupported(message: str, **kwargs: Any) -> Diagnostic:
	return Diagnostic(kind=DiagnosticKind.UNSUPPORTED, message=message, **kwargs)


def ambiguous_ownership(message: str, **kwargs: Any) -> Diagnostic:
	return Diagnostic(kind=DiagnosticKind.AMBIGUOUS_OWNERSHIP, message=message, **kwargs)


def layout_conflict(message: str, **kwargs: Any) -> Diagnostic:
	return Diagnostic(kind=DiagnosticKind.LAYOUT_CONFLICT, message=message, **kwargs)


__all__ = ["Diagnostic", "DiagnosticKind", "unsupported", "ambiguous_ownership", "layout_conflict"]
