# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Serialized native type spellings decode into TypeExpr trees.
"""

from __future__ import annotations

import pytest

from rua.native.ast import TypeExprKind
from rua.native.type_expr import parse_type_expr


def test_plain_and_qualified_paths() -> None:
	ty = parse_type_expr("u32")
	assert ty.kind is TypeExprKind.PATH
	assert ty.path_name() == "u32"

	q = parse_type_expr("crate::geom::Point")
	assert [s.name for s in q.segments] == ["crate", "geom", "Point"]
	assert q.render() == "crate::geom::Point"


def test_generic_arguments_nest() -> None:
	ty = parse_type_expr("Vec<Option<Box<u8>>>")
	assert ty.path_name() == "Vec"
	(opt,) = ty.last_segment().args
	assert opt.path_name() == "Option"
	(boxed,) = opt.last_segment().args
	assert boxed.render() == "Box<u8>"


def test_lifetime_and_const_generic_arguments_are_kept_apart() -> None:
	ty = parse_type_expr("Buf<'a, u8, 4>")
	seg = ty.last_segment()
	assert seg.lifetimes == ("'a",)
	assert [a.render() for a in seg.args] == ["u8"]
	assert seg.const_args == ("4",)


def test_references_and_raw_pointers() -> None:
	ref = parse_type_expr("&'a mut [Point]")
	assert ref.kind is TypeExprKind.REFERENCE
	assert ref.mutable is True
	assert ref.lifetime == "'a"
	assert ref.inner.kind is TypeExprKind.SLICE
	assert ref.inner.inner.path_name() == "Point"

	ptr = parse_type_expr("*const u8")
	assert ptr.kind is TypeExprKind.POINTER
	assert ptr.mutable is False
	assert parse_type_expr("*mut c_void").mutable is True


def test_arrays_with_literal_and_named_lengths() -> None:
	lit = parse_type_expr("[u8; 16]")
	assert lit.kind is TypeExprKind.ARRAY
	assert lit.length == 16

	suffixed = parse_type_expr("[f32; 3usize]")
	assert suffixed.length == 3

	named = parse_type_expr("[u8; N]")
	assert named.length is None
	assert named.length_text == "N"


def test_unit_parens_and_tuples() -> None:
	assert parse_type_expr("()").kind is TypeExprKind.TUPLE
	assert parse_type_expr("()").elements == ()
	assert parse_type_expr("(u8)").path_name() == "u8"
	single = parse_type_expr("(u8,)")
	assert single.kind is TypeExprKind.TUPLE
	assert len(single.elements) == 1
	pair = parse_type_expr("(i32, String)")
	assert [e.render() for e in pair.elements] == ["i32", "String"]


def test_function_pointers() -> None:
	ty = parse_type_expr('unsafe extern "C" fn(i32, *const u8) -> bool')
	assert ty.kind is TypeExprKind.FN
	assert ty.unsafe is True
	assert ty.abi == "C"
	assert [e.render() for e in ty.elements] == ["i32", "*const u8"]
	assert ty.ret.render() == "bool"

	bare = parse_type_expr("fn()")
	assert bare.elements == ()
	assert bare.ret is None


def test_trait_objects_with_fn_sugar() -> None:
	ty = parse_type_expr("Box<dyn Fn(u32) -> String + Send + 'static>")
	(obj,) = ty.last_segment().args
	assert obj.kind is TypeExprKind.TRAIT_OBJECT
	first = obj.bounds[0][-1]
	assert first.name == "Fn"
	assert first.fn_sugar is True
	assert [a.render() for a in first.args] == ["u32"]
	assert first.ret.render() == "String"
	assert obj.bounds[1][-1].name == "Send"
	assert obj.lifetimes == ("'static",)

	imp = parse_type_expr("impl FnMut(&str)")
	assert imp.kind is TypeExprKind.IMPL_TRAIT


def test_never_and_infer() -> None:
	assert parse_type_expr("!").kind is TypeExprKind.NEVER
	assert parse_type_expr("_").kind is TypeExprKind.INFER


@pytest.mark.parametrize("text", ["my_type!(u8)", "vec_of![u32]"])
def test_macro_invocations_are_flagged(text: str) -> None:
	ty = parse_type_expr(text)
	assert ty.kind is TypeExprKind.MACRO
	assert ty.text == text


@pytest.mark.parametrize("text", ["", "   ", "Vec<", "&&&", "[u8; ]"])
def test_unreadable_text_is_unparsed_not_an_error(text: str) -> None:
	assert parse_type_expr(text).kind is TypeExprKind.UNPARSED


def test_render_is_canonical_and_decoding_is_stable() -> None:
	ty = parse_type_expr("&  'a   mut   Vec< u8 >")
	assert ty.render() == "&'a mut Vec<u8>"
	assert parse_type_expr(ty.render()) == ty
