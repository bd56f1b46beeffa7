# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Builders for native modules in tests.

Types are written the way the upstream parser prints them and decoded with
the real type-expression decoder, so tests exercise the same path as JSON
input. Items default to `pub`; struct fields default to `pub` as well.
"""

from __future__ import annotations

from typing import Iterable, Optional

from .native.ast import (
	NativeAlias,
	NativeEnum,
	NativeField,
	NativeFn,
	NativeItem,
	NativeModule,
	NativeParam,
	NativeStruct,
	NativeVariant,
	StructStyle,
	Visibility,
)
from .native.type_expr import parse_type_expr


def fn(
	name: str,
	params: Iterable[tuple[str, str]] = (),
	ret: Optional[str] = None,
	*,
	visibility: Visibility = Visibility.PUBLIC,
	attrs: Iterable[str] = (),
	**kwargs,
) -> NativeFn:
	return NativeFn(
		name=name,
		params=tuple(NativeParam(n, parse_type_expr(t)) for n, t in params),
		ret=parse_type_expr(ret) if ret is not None else None,
		visibility=visibility,
		attrs=tuple(attrs),
		**kwargs,
	)


def struct(
	name: str,
	fields: Iterable[tuple[Optional[str], str]] = (),
	*,
	visibility: Visibility = Visibility.PUBLIC,
	field_visibility: Visibility = Visibility.PUBLIC,
	attrs: Iterable[str] = (),
	generics: Iterable[str] = (),
) -> NativeStruct:
	built = tuple(NativeField(n, parse_type_expr(t), field_visibility) for n, t in fields)
	if not built:
		style = StructStyle.UNIT
	elif all(f.name is None for f in built):
		style = StructStyle.TUPLE
	else:
		style = StructStyle.NAMED
	return NativeStruct(
		name=name,
		fields=built,
		style=style,
		visibility=visibility,
		generics=tuple(generics),
		attrs=tuple(attrs),
	)


def variant(name: str, fields: Iterable[tuple[Optional[str], str]] = (), discriminant: Optional[int] = None) -> NativeVariant:
	built = tuple(NativeField(n, parse_type_expr(t), Visibility.PUBLIC) for n, t in fields)
	style = StructStyle.UNIT if not built else (StructStyle.TUPLE if built[0].name is None else StructStyle.NAMED)
	return NativeVariant(name=name, fields=built, style=style, discriminant=discriminant)


def enum(
	name: str,
	variants: Iterable[NativeVariant],
	*,
	visibility: Visibility = Visibility.PUBLIC,
	attrs: Iterable[str] = (),
) -> NativeEnum:
	return NativeEnum(name=name, variants=tuple(variants), visibility=visibility, attrs=tuple(attrs))


def alias(name: str, target: str, *, visibility: Visibility = Visibility.PUBLIC) -> NativeAlias:
	return NativeAlias(name=name, target=parse_type_expr(target), visibility=visibility)


def module(
	items: Iterable[NativeItem] = (),
	*,
	name: str = "crate",
	children: Iterable[NativeModule] = (),
	visibility: Visibility = Visibility.PUBLIC,
) -> NativeModule:
	return NativeModule(name=name, items=tuple(items), children=tuple(children), visibility=visibility)


__all__ = ["alias", "enum", "fn", "module", "struct", "variant"]
