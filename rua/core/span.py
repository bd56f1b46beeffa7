# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Source span attached to native declarations and diagnostics.

The upstream parser owns source locations; we only carry what it hands us
(file/line/column, optionally an end position) so diagnostics can point back
into the native crate.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional


@dataclass(frozen=True)
class Span:
	"""Best-effort file/line/column location (Span() denotes unknown)."""

	file: Optional[str] = None
	line: Optional[int] = None
	column: Optional[int] = None
	end_line: Optional[int] = None
	end_column: Optional[int] = None

	@classmethod
	def from_obj(cls, obj: Any) -> "Span":
		"""
		Build a Span from the loader's JSON shape.

		Accepts None (unknown), an existing Span, or a mapping with any of the
		keys file/line/column/end_line/end_column. Integer fields that are not
		ints are dropped rather than guessed.
		"""
		if obj is None:
			return cls()
		if isinstance(obj, cls):
			return obj
		if not isinstance(obj, dict):
			raise TypeError(f"span must be an object, got {type(obj).__name__}")

		def _int(key: str) -> Optional[int]:
			val = obj.get(key)
			return val if isinstance(val, int) and not isinstance(val, bool) else None

		file = obj.get("file")
		return cls(
			file=file if isinstance(file, str) and file else None,
			line=_int("line"),
			column=_int("column"),
			end_line=_int("end_line"),
			end_column=_int("end_column"),
		)

	def is_known(self) -> bool:
		return self.file is not None or self.line is not None

	def render(self) -> str:
		"""Render as `file:line:column` with unknown parts omitted."""
		if not self.is_known():
			return "<unknown>"
		parts = [self.file or "<unknown>"]
		if self.line is not None:
			parts.append(str(self.line))
			if self.column is not None:
				parts.append(str(self.column))
		return ":".join(parts)

	def to_obj(self) -> dict[str, Any]:
		return {
			"file": self.file,
			"line": self.line,
			"column": self.column,
		}


__all__ = ["Span"]
