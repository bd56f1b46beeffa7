# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Native module JSON (v0).

The upstream parser serializes the crate surface as:

  {
    "format": "rua-native-module",
    "version": 0,
    "module": {
      "name": "crate", "visibility": "pub",
      "items": [ {"kind": "fn", "name": "make", "params": [...], "ret": "Vec<u8>", ...}, ... ],
      "children": [ {module}, ... ]
    }
  }

Loading is strict: unknown fields, wrong shapes and unknown kinds raise
`NativeModuleFormatError` with a dotted location. Type strings are decoded
with `parse_type_expr`, which never fails (bad text becomes UNPARSED).
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Mapping

from ..core.errors import NativeModuleFormatError
from ..core.span import Span
from .ast import (
	OTHER_KINDS,
	NativeAlias,
	NativeEnum,
	NativeField,
	NativeFn,
	NativeItem,
	NativeModule,
	NativeOther,
	NativeParam,
	NativeStruct,
	NativeVariant,
	StructStyle,
	TypeExpr,
	Visibility,
)
from .type_expr import parse_type_expr

FORMAT = "rua-native-module"
VERSION = 0

_VISIBILITY = {
	"pub": Visibility.PUBLIC,
	"pub(crate)": Visibility.CRATE,
	"pub(super)": Visibility.RESTRICTED,
	"pub(self)": Visibility.PRIVATE,
	"private": Visibility.PRIVATE,
	"": Visibility.PRIVATE,
}

_COMMON_ITEM_FIELDS = {"kind", "name", "visibility", "attrs", "span", "x"}
_ITEM_FIELDS = {
	"fn": _COMMON_ITEM_FIELDS | {"params", "ret", "generics", "receiver", "async", "unsafe", "abi"},
	"struct": _COMMON_ITEM_FIELDS | {"fields", "style", "generics"},
	"enum": _COMMON_ITEM_FIELDS | {"variants", "generics"},
	"alias": _COMMON_ITEM_FIELDS | {"target", "generics"},
}
_MODULE_FIELDS = {"name", "visibility", "items", "children", "span", "x"}


class _Reader:
	"""Carries the source path so every error names the file it came from."""

	def __init__(self, path: str | None) -> None:
		self.path = path

	def fail(self, where: str, message: str) -> NativeModuleFormatError:
		return NativeModuleFormatError(message=message, path=self.path, where=where)

	def obj(self, raw: Any, where: str, allowed: set[str]) -> Mapping[str, Any]:
		if not isinstance(raw, dict):
			raise self.fail(where, "must be an object")
		unknown = sorted(set(raw.keys()) - allowed)
		if unknown:
			raise self.fail(where, f"unknown fields: {', '.join(unknown)}")
		return raw

	def string(self, raw: Mapping[str, Any], key: str, where: str, *, required: bool = True, default: str = "") -> str:
		val = raw.get(key)
		if val is None and not required:
			return default
		if not isinstance(val, str) or (required and not val):
			raise self.fail(f"{where}.{key}", "must be a non-empty string")
		return val

	def opt_string(self, raw: Mapping[str, Any], key: str, where: str) -> str | None:
		val = raw.get(key)
		if val is None:
			return None
		if not isinstance(val, str):
			raise self.fail(f"{where}.{key}", "must be a string or null")
		return val

	def flag(self, raw: Mapping[str, Any], key: str, where: str) -> bool:
		val = raw.get(key, False)
		if not isinstance(val, bool):
			raise self.fail(f"{where}.{key}", "must be a boolean")
		return val

	def strings(self, raw: Mapping[str, Any], key: str, where: str) -> tuple[str, ...]:
		val = raw.get(key, [])
		if not isinstance(val, list) or any(not isinstance(v, str) or not v for v in val):
			raise self.fail(f"{where}.{key}", "must be a list of non-empty strings")
		return tuple(val)

	def items_list(self, raw: Mapping[str, Any], key: str, where: str) -> list[Any]:
		val = raw.get(key, [])
		if not isinstance(val, list):
			raise self.fail(f"{where}.{key}", "must be a list")
		return val

	def visibility(self, raw: Mapping[str, Any], where: str, default: Visibility) -> Visibility:
		val = raw.get("visibility")
		if val is None:
			return default
		if not isinstance(val, str):
			raise self.fail(f"{where}.visibility", "must be a string")
		vis = _VISIBILITY.get(val.replace(" ", ""))
		if vis is None:
			if val.startswith("pub(in"):
				return Visibility.RESTRICTED
			raise self.fail(f"{where}.visibility", f"unknown visibility '{val}'")
		return vis

	def type_expr(self, raw: Mapping[str, Any], key: str, where: str) -> TypeExpr:
		val = raw.get(key)
		if not isinstance(val, str):
			raise self.fail(f"{where}.{key}", "must be a type string")
		return parse_type_expr(val)

	def span(self, raw: Mapping[str, Any], where: str) -> Span:
		try:
			return Span.from_obj(raw.get("span"))
		except TypeError as err:
			raise self.fail(f"{where}.span", str(err)) from err

	def style(self, raw: Mapping[str, Any], where: str, default: StructStyle) -> StructStyle:
		val = raw.get("style")
		if val is None:
			return default
		try:
			return StructStyle(val)
		except ValueError as err:
			raise self.fail(f"{where}.style", f"unknown style '{val}'") from err

	def fields(self, raw: Mapping[str, Any], where: str, default_vis: Visibility) -> tuple[NativeField, ...]:
		out: list[NativeField] = []
		for idx, f in enumerate(self.items_list(raw, "fields", where)):
			fw = f"{where}.fields[{idx}]"
			fo = self.obj(f, fw, {"name", "type", "visibility", "x"})
			name = fo.get("name")
			if name is not None and (not isinstance(name, str) or not name):
				raise self.fail(f"{fw}.name", "must be a non-empty string or null")
			out.append(
				NativeField(
					name=name,
					type=self.type_expr(fo, "type", fw),
					visibility=self.visibility(fo, fw, default_vis),
				)
			)
		return tuple(out)

	def item(self, raw: Any, where: str) -> NativeItem:
		if not isinstance(raw, dict):
			raise self.fail(where, "must be an object")
		kind = raw.get("kind")
		if kind in OTHER_KINDS:
			ro = self.obj(raw, where, _COMMON_ITEM_FIELDS)
			return NativeOther(
				name=self.string(ro, "name", where, required=False, default="_"),
				kind=kind,
				visibility=self.visibility(ro, where, Visibility.PRIVATE),
				attrs=self.strings(ro, "attrs", where),
				span=self.span(ro, where),
			)
		if kind not in _ITEM_FIELDS:
			raise self.fail(f"{where}.kind", f"unknown item kind '{kind}'")
		ro = self.obj(raw, where, _ITEM_FIELDS[kind])
		name = self.string(ro, "name", where)
		vis = self.visibility(ro, where, Visibility.PRIVATE)
		attrs = self.strings(ro, "attrs", where)
		span = self.span(ro, where)
		generics = self.strings(ro, "generics", where)
		if kind == "fn":
			params: list[NativeParam] = []
			for idx, p in enumerate(self.items_list(ro, "params", where)):
				pw = f"{where}.params[{idx}]"
				po = self.obj(p, pw, {"name", "type", "x"})
				params.append(NativeParam(name=self.string(po, "name", pw), type=self.type_expr(po, "type", pw)))
			ret = self.type_expr(ro, "ret", where) if ro.get("ret") is not None else None
			return NativeFn(
				name=name,
				params=tuple(params),
				ret=ret,
				visibility=vis,
				generics=generics,
				receiver=self.opt_string(ro, "receiver", where),
				is_async=self.flag(ro, "async", where),
				is_unsafe=self.flag(ro, "unsafe", where),
				abi=self.opt_string(ro, "abi", where),
				attrs=attrs,
				span=span,
			)
		if kind == "struct":
			fields = self.fields(ro, where, Visibility.PRIVATE)
			default_style = StructStyle.NAMED if fields else StructStyle.UNIT
			return NativeStruct(
				name=name,
				fields=fields,
				style=self.style(ro, where, default_style),
				visibility=vis,
				generics=generics,
				attrs=attrs,
				span=span,
			)
		if kind == "enum":
			variants: list[NativeVariant] = []
			for idx, v in enumerate(self.items_list(ro, "variants", where)):
				vw = f"{where}.variants[{idx}]"
				vo = self.obj(v, vw, {"name", "fields", "style", "discriminant", "x"})
				disc = vo.get("discriminant")
				if disc is not None and (not isinstance(disc, int) or isinstance(disc, bool)):
					raise self.fail(f"{vw}.discriminant", "must be an integer or null")
				# Enum variant fields inherit the enum's visibility.
				vfields = self.fields(vo, vw, Visibility.PUBLIC)
				variants.append(
					NativeVariant(
						name=self.string(vo, "name", vw),
						fields=vfields,
						style=self.style(vo, vw, StructStyle.NAMED if vfields else StructStyle.UNIT),
						discriminant=disc,
					)
				)
			return NativeEnum(name=name, variants=tuple(variants), visibility=vis, generics=generics, attrs=attrs, span=span)
		return NativeAlias(
			name=name,
			target=self.type_expr(ro, "target", where),
			visibility=vis,
			generics=generics,
			attrs=attrs,
			span=span,
		)

	def module(self, raw: Any, where: str) -> NativeModule:
		ro = self.obj(raw, where, _MODULE_FIELDS)
		items = tuple(self.item(it, f"{where}.items[{i}]") for i, it in enumerate(self.items_list(ro, "items", where)))
		children = tuple(
			self.module(ch, f"{where}.children[{i}]") for i, ch in enumerate(self.items_list(ro, "children", where))
		)
		return NativeModule(
			name=self.string(ro, "name", where),
			items=items,
			children=children,
			visibility=self.visibility(ro, where, Visibility.PUBLIC),
			span=self.span(ro, where),
		)


def native_module_from_obj(data: Any, *, path: str | None = None) -> NativeModule:
	"""Validate and convert an already-decoded native module document."""
	reader = _Reader(path)
	top = reader.obj(data, "$", {"format", "version", "module", "x"})
	if top.get("format") != FORMAT or top.get("version") != VERSION:
		raise reader.fail("$", "unsupported native module format/version")
	if "module" not in top:
		raise reader.fail("$.module", "missing root module")
	return reader.module(top["module"], "$.module")


def load_native_module(source: str | Path | Mapping[str, Any]) -> NativeModule:
	"""Load a native module from a JSON file path or a decoded mapping."""
	if isinstance(source, Mapping):
		return native_module_from_obj(dict(source))
	path = Path(source)
	if not path.is_file():
		raise NativeModuleFormatError(message="native module file not found", path=str(path))
	try:
		data = json.loads(path.read_text(encoding="utf-8"))
	except json.JSONDecodeError as err:
		raise NativeModuleFormatError(message=f"invalid JSON: {err}", path=str(path)) from err
	return native_module_from_obj(data, path=str(path))


__all__ = ["FORMAT", "VERSION", "load_native_module", "native_module_from_obj"]
