"""
rua.core: shared model types used across stages.

Modules:
  - span: source locations carried from the upstream parser
  - diagnostics: accumulated Diagnostic records
  - errors: exception hierarchy (RuaError, InternalFault, ...)
  - names: snake/camel/Pascal case helpers for symbols
  - types_core: interface types and the interning TypeTable
  - layout: AbiLayout geometry, ownership modes and obligations
"""

__all__ = [
	"span",
	"diagnostics",
	"errors",
	"names",
	"types_core",
	"layout",
]
