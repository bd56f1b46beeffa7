"""
rua.native: the parsed native module as rua consumes it.

Modules:
  - ast: immutable declarations and TypeExpr
  - type_expr: lark decoder for serialized type spellings
  - loader: strict JSON loader for the upstream parser's output
"""

from .ast import (
	NativeAlias,
	NativeEnum,
	NativeField,
	NativeFn,
	NativeModule,
	NativeOther,
	NativeParam,
	NativeStruct,
	NativeVariant,
	PathSegment,
	StructStyle,
	TypeExpr,
	TypeExprKind,
	Visibility,
)
from .loader import load_native_module, native_module_from_obj
from .type_expr import parse_type_expr

__all__ = [
	"NativeAlias",
	"NativeEnum",
	"NativeField",
	"NativeFn",
	"NativeModule",
	"NativeOther",
	"NativeParam",
	"NativeStruct",
	"NativeVariant",
	"PathSegment",
	"StructStyle",
	"TypeExpr",
	"TypeExprKind",
	"Visibility",
	"load_native_module",
	"native_module_from_obj",
	"parse_type_expr",
]
