# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Exception hierarchy for rua.

Boundary problems in the native module are Diagnostics, not exceptions. The
exceptions here cover malformed inputs (module JSON, capability tables,
configuration) and internal invariant violations, which abort a run.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class RuaError(Exception):
	"""A structured, serializable error with a stable reason code."""

	reason_code: str
	message: str
	path: str | None = None  # file the error refers to, when there is one
	where: str | None = None  # dotted location inside the document

	def __str__(self) -> str:
		return self.format_human()

	def to_dict(self) -> dict[str, Any]:
		return {
			"reason_code": self.reason_code,
			"message": self.message,
			"path": self.path,
			"where": self.where,
		}

	def format_human(self) -> str:
		parts: list[str] = [f"[{self.reason_code}] {self.message}"]
		if self.path:
			parts.append(f"path={self.path}")
		if self.where:
			parts.append(f"at={self.where}")
		return " ".join(parts)


@dataclass(frozen=True)
class ConfigError(RuaError):
	reason_code: str = "config"
	message: str = ""


@dataclass(frozen=True)
class NativeModuleFormatError(RuaError):
	reason_code: str = "native-module-format"
	message: str = ""


@dataclass(frozen=True)
class CapabilityFormatError(RuaError):
	reason_code: str = "capability-format"
	message: str = ""


@dataclass(frozen=True)
class InternalFault(RuaError):
	"""
	A programming fault inside the core (e.g. an IT without a layout reaching
	the validator). Never converted into a Diagnostic.
	"""

	reason_code: str = "internal-fault"
	message: str = ""


__all__ = ["RuaError", "ConfigError", "NativeModuleFormatError", "CapabilityFormatError", "InternalFault"]
