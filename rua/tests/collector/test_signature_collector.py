# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Export selection: visibility, shape and enumerability of signatures.
"""

from __future__ import annotations

from rua.collector import ItemKind, SignatureCollector, collect_exports
from rua.core.diagnostics import DiagnosticKind
from rua.native.ast import NativeOther, Visibility
from rua.test_helpers import alias, enum, fn, module, struct, variant


def test_collects_public_items_in_declaration_order() -> None:
	geom = module(
		[struct("Point", [("x", "f64"), ("y", "f64")]), fn("makePoint", [("x", "f64")], "Point")],
		name="geom",
	)
	mod = module(
		[fn("tick"), enum("Mode", [variant("On"), variant("Off")]), alias("Id", "u64")],
		children=[geom],
	)
	result = collect_exports(mod)
	assert result.diagnostics == []
	names = [i.qualified_name for i in result.items]
	assert names == ["crate::tick", "crate::Mode", "crate::Id", "crate::geom::Point", "crate::geom::makePoint"]
	assert [i.index for i in result.items] == [0, 1, 2, 3, 4]
	kinds = [i.kind for i in result.items]
	assert kinds == [ItemKind.FUNCTION, ItemKind.ENUM, ItemKind.ALIAS, ItemKind.STRUCT, ItemKind.FUNCTION]
	make = result.items[-1]
	assert make.symbol == "geom_make_point"
	assert make.name == "makePoint"
	assert make.module_path == ("geom",)
	assert [label for label, _ in make.type_refs] == ["x", "return"]


def test_function_without_return_type_returns_unit() -> None:
	(tick,) = collect_exports(module([fn("tick")])).items
	assert tick.type_refs[-1][0] == "return"
	assert tick.type_refs[-1][1].render() == "()"


def test_private_items_and_private_modules_are_silently_skipped() -> None:
	hidden = module([fn("inner")], name="detail", visibility=Visibility.PRIVATE)
	mod = module(
		[fn("private_fn", visibility=Visibility.PRIVATE), fn("crate_fn", visibility=Visibility.CRATE), fn("ok")],
		children=[hidden],
	)
	result = collect_exports(mod)
	assert [i.qualified_name for i in result.items] == ["crate::ok"]
	assert result.diagnostics == []


def test_marked_but_ineligible_item_reports_every_reason() -> None:
	bad = fn(
		"process",
		[("x", "T"), ("cb", "dyn Display")],
		"my_type!(u8)",
		attrs=["rua::export"],
		generics=("T",),
		is_async=True,
	)
	result = collect_exports(module([bad]))
	assert result.items == []
	(diag,) = result.diagnostics
	assert diag.kind is DiagnosticKind.UNSUPPORTED
	assert diag.stage == "collector"
	assert diag.item == "crate::process"
	reasons = [diag.message, *diag.notes]
	assert any("async" in r for r in reasons)
	assert any("generic items" in r for r in reasons)
	assert any("generic parameter `T`" in r for r in reasons)
	assert any("not callable" in r for r in reasons)
	assert any("macro expansion" in r for r in reasons)


def test_marked_private_item_is_a_diagnostic() -> None:
	result = collect_exports(module([fn("hidden", visibility=Visibility.PRIVATE, attrs=["rua_export"])]))
	(diag,) = result.diagnostics
	assert "not `pub`" in diag.message


def test_methods_other_items_and_skip_marker() -> None:
	mod = module(
		[
			fn("area", receiver="&self", attrs=["rua::export"]),
			NativeOther(name="Shape", kind="trait", visibility=Visibility.PUBLIC, attrs=("rua::export",)),
			fn("debug_only", attrs=["rua::skip"]),
			fn("kept"),
		]
	)
	result = collect_exports(mod)
	assert [i.qualified_name for i in result.items] == ["crate::kept"]
	assert [d.item for d in result.diagnostics] == ["crate::area", "crate::Shape"]
	assert "receiver `&self`" in result.diagnostics[0].message
	assert "`trait` items" in result.diagnostics[1].message


def test_non_literal_array_length_and_infer_are_not_enumerable() -> None:
	mod = module([fn("a", [("buf", "[u8; N]")]), fn("b", [], "_"), fn("c", [("f", "&dyn Fn(u8)")])])
	result = collect_exports(mod)
	assert [i.qualified_name for i in result.items] == ["crate::c"]


def test_custom_export_markers_and_attribute_arguments() -> None:
	collector = SignatureCollector(export_markers=("ffi::expose",))
	mod = module([fn("f", visibility=Visibility.PRIVATE, attrs=['ffi :: expose(name = "g")'])])
	result = collector.collect(mod)
	assert len(result.diagnostics) == 1
	assert collect_exports(mod).diagnostics == []


def test_struct_and_enum_type_refs_are_labelled() -> None:
	mod = module(
		[
			struct("Pair", [(None, "u8"), (None, "u16")]),
			enum("Msg", [variant("Quit"), variant("Move", [("x", "i32"), ("y", "i32")]), variant("Say", [(None, "String")])]),
		]
	)
	pair, msg = collect_exports(mod).items
	assert [label for label, _ in pair.type_refs] == ["0", "1"]
	assert [label for label, _ in msg.type_refs] == ["Move.x", "Move.y", "Say.0"]
	assert pair.explicit is False
