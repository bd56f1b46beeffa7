# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Native module JSON loading is strict and error messages point at the field.
"""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from rua.core.errors import NativeModuleFormatError
from rua.native.ast import NativeEnum, NativeFn, NativeOther, NativeStruct, StructStyle, TypeExprKind, Visibility
from rua.native.loader import load_native_module, native_module_from_obj


def _doc(module: dict) -> dict:
	return {"format": "rua-native-module", "version": 0, "module": module}


def test_loads_items_children_and_spans(tmp_path: Path) -> None:
	doc = _doc(
		{
			"name": "crate",
			"items": [
				{
					"kind": "fn",
					"name": "make",
					"visibility": "pub",
					"params": [{"name": "n", "type": "usize"}],
					"ret": "Vec<u8>",
					"attrs": ["rua::export"],
					"span": {"file": "src/lib.rs", "line": 3, "column": 1},
				},
				{"kind": "const", "name": "LIMIT", "visibility": "pub"},
			],
			"children": [
				{
					"name": "geom",
					"visibility": "pub(crate)",
					"items": [
						{
							"kind": "struct",
							"name": "Point",
							"visibility": "pub",
							"fields": [{"name": "x", "type": "f64", "visibility": "pub"}, {"name": "y", "type": "f64"}],
						},
						{
							"kind": "enum",
							"name": "Shape",
							"visibility": "pub",
							"variants": [
								{"name": "Dot"},
								{"name": "Circle", "fields": [{"name": "r", "type": "f32"}], "discriminant": 7},
							],
						},
					],
				}
			],
		}
	)
	path = tmp_path / "native.json"
	path.write_text(json.dumps(doc), encoding="utf-8")
	mod = load_native_module(path)

	make, limit = mod.items
	assert isinstance(make, NativeFn)
	assert make.visibility is Visibility.PUBLIC
	assert make.params[0].type.path_name() == "usize"
	assert make.ret.render() == "Vec<u8>"
	assert make.attrs == ("rua::export",)
	assert make.span.file == "src/lib.rs"
	assert make.span.line == 3
	assert isinstance(limit, NativeOther)
	assert limit.kind == "const"

	(geom,) = mod.children
	assert geom.visibility is Visibility.CRATE
	point, shape = geom.items
	assert isinstance(point, NativeStruct)
	assert point.style is StructStyle.NAMED
	assert [f.visibility for f in point.fields] == [Visibility.PUBLIC, Visibility.PRIVATE]
	assert isinstance(shape, NativeEnum)
	assert shape.variants[0].style is StructStyle.UNIT
	assert shape.variants[1].discriminant == 7
	# Variant fields are as visible as the enum itself.
	assert shape.variants[1].fields[0].visibility is Visibility.PUBLIC


def test_mapping_input_and_missing_return_type() -> None:
	mod = load_native_module(_doc({"name": "crate", "items": [{"kind": "fn", "name": "tick", "visibility": "pub"}]}))
	(tick,) = mod.items
	assert tick.ret is None
	assert tick.params == ()


def test_bad_type_text_is_kept_as_unparsed() -> None:
	mod = native_module_from_obj(
		_doc({"name": "crate", "items": [{"kind": "alias", "name": "T", "target": "Vec<", "visibility": "pub"}]})
	)
	assert mod.items[0].target.kind is TypeExprKind.UNPARSED


@pytest.mark.parametrize(
	"doc,where",
	[
		({"format": "other", "version": 0, "module": {"name": "crate"}}, "$"),
		({"format": "rua-native-module", "version": 0}, "$.module"),
		(_doc({"name": "crate", "extra": 1}), "$.module"),
		(_doc({"name": "crate", "items": [{"kind": "trait_alias", "name": "X"}]}), "$.module.items[0].kind"),
		(_doc({"name": "crate", "items": [{"kind": "fn", "name": "f", "params": [{"name": "a"}]}]}), "$.module.items[0].params[0].type"),
		(_doc({"name": "crate", "items": [{"kind": "fn", "name": "f", "async": "yes"}]}), "$.module.items[0].async"),
		(_doc({"name": "crate", "items": [{"kind": "struct", "name": "S", "visibility": "public"}]}), "$.module.items[0].visibility"),
		(
			_doc({"name": "crate", "items": [{"kind": "enum", "name": "E", "variants": [{"name": "A", "discriminant": 1.5}]}]}),
			"$.module.items[0].variants[0].discriminant",
		),
	],
)
def test_malformed_documents_are_rejected(doc: dict, where: str) -> None:
	with pytest.raises(NativeModuleFormatError) as excinfo:
		native_module_from_obj(doc, path="native.json")
	assert excinfo.value.where == where
	assert excinfo.value.path == "native.json"
	assert excinfo.value.reason_code == "native-module-format"


def test_invalid_json_and_missing_file(tmp_path: Path) -> None:
	broken = tmp_path / "broken.json"
	broken.write_text("{not json", encoding="utf-8")
	with pytest.raises(NativeModuleFormatError, match="invalid JSON"):
		load_native_module(broken)
	with pytest.raises(NativeModuleFormatError, match="not found"):
		load_native_module(tmp_path / "missing.json")
