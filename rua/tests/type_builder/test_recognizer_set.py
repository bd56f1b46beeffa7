# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
from __future__ import annotations

import pytest

from rua.collector import collect_exports
from rua.core.types_core import Holding, Pointer, TypeTable, int_type
from rua.recognizers import Recognizer, RecognizerSet, default_recognizers, std_name
from rua.native.type_expr import parse_type_expr
from rua.test_helpers import fn, module
from rua.type_builder import TypeModelBuilder


def test_default_set_is_rank_ordered_and_unique() -> None:
	recs = list(default_recognizers())
	ranks = [r.rank for r in recs]
	assert ranks == sorted(ranks)
	assert len(set(ranks)) == len(ranks)
	assert recs[-1].name == "unknown"


def test_duplicate_rank_or_name_is_refused() -> None:
	base = default_recognizers()
	with pytest.raises(ValueError, match="share rank 20"):
		base.with_recognizer(Recognizer(20, "other", lambda e, c: False, lambda e, c: None))
	with pytest.raises(ValueError, match="duplicate recognizer name"):
		base.with_recognizer(Recognizer(21, "primitive", lambda e, c: False, lambda e, c: None))


def test_std_name_accepts_bare_and_std_rooted_paths() -> None:
	assert std_name(parse_type_expr("Vec<u8>")) == "Vec"
	assert std_name(parse_type_expr("std::vec::Vec<u8>")) == "Vec"
	assert std_name(parse_type_expr("libc::c_int")) == "c_int"
	assert std_name(parse_type_expr("crate::Vec")) is None
	assert std_name(parse_type_expr("&u8")) is None


def test_custom_recognizer_wins_by_rank() -> None:
	def _is_handle(expr, ctx) -> bool:
		return std_name(expr) == "RawHandle"

	def _build_handle(expr, ctx):
		return ctx.intern(Pointer(int_type(8, False), nullable=True, holding=Holding.RAW))

	recs = default_recognizers().with_recognizer(Recognizer(15, "raw_handle", _is_handle, _build_handle))
	mod = module([fn("get", [], "RawHandle")])
	table = TypeTable()
	builder = TypeModelBuilder(mod, table, recognizers=recs)
	(item,) = collect_exports(mod).items
	it, diags = builder.build_item(item)
	assert diags == []
	assert it.ret.holding is Holding.RAW

	# Without it the name is simply unknown.
	it, diags = TypeModelBuilder(mod, TypeTable()).build_item(item)
	assert it is None
	assert "unknown type `RawHandle`" in diags[0].message


def test_unsized_forms_are_rejected() -> None:
	mod = module([fn("a", [("s", "str")]), fn("b", [("xs", "[u8]")]), fn("c", [("f", "dyn Fn()")]), fn("d", [], "!")])
	builder = TypeModelBuilder(mod, TypeTable())
	messages = {}
	for item in collect_exports(mod).items:
		it, diags = builder.build_item(item)
		assert it is None
		messages[item.name] = diags[0].message
	assert "unsized text" in messages["a"]
	assert "unsized slice" in messages["b"]
	assert "unsized callable" in messages["c"]
	assert "never type" in messages["d"]
