# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Decoder for serialized native type expressions.

The upstream parser hands us types as printed strings (`Vec<u8>`,
`&'a mut [Point]`, `extern "C" fn(i32) -> bool`). We read them with a small
lark LALR grammar and build `TypeExpr` trees by walking the parse tree.

Decoding never raises for bad input: text the grammar cannot read becomes a
MACRO TypeExpr when it looks like a macro invocation, an UNPARSED one
otherwise. Both are rejected later as not syntactically enumerable.
"""

from __future__ import annotations

import re
from functools import lru_cache
from pathlib import Path
from typing import List

from lark import Lark, Token, Tree
from lark.exceptions import LarkError

from .ast import PathSegment, TypeExpr, TypeExprKind

_GRAMMAR_PATH = Path(__file__).with_name("grammar.lark")
_GRAMMAR_SRC = _GRAMMAR_PATH.read_text()

_PARSER = Lark(
	_GRAMMAR_SRC,
	parser="lalr",
	lexer="basic",
	start="start",
	maybe_placeholders=False,
)

_MACRO_RE = re.compile(r"[A-Za-z_][A-Za-z0-9_:]*\s*!\s*[(\[{]")

UNIT_EXPR = TypeExpr(kind=TypeExprKind.TUPLE)


def _name(node: Tree | Token) -> str:
	if isinstance(node, Tree):
		data = node.data
		if isinstance(data, Token):
			return data.value
		return data
	return node.type


def _subtrees(tree: Tree) -> List[Tree]:
	return [c for c in tree.children if isinstance(c, Tree)]


def _tokens(tree: Tree, kind: str) -> List[Token]:
	return [c for c in tree.children if isinstance(c, Token) and c.type == kind]


def _int_literal(text: str) -> int:
	digits = re.match(r"[0-9_]+", text)
	return int(digits.group(0).replace("_", "")) if digits else 0


def _build_segment(tree: Tree) -> PathSegment:
	name_tok = tree.children[0]
	assert isinstance(name_tok, Token)
	if _name(tree) == "fn_sugar_segment":
		params: tuple[TypeExpr, ...] = ()
		ret = None
		for child in _subtrees(tree):
			if _name(child) == "type_list":
				params = tuple(_build(t) for t in _subtrees(child))
			elif _name(child) == "fn_ret":
				ret = _build(_subtrees(child)[0])
		return PathSegment(name=name_tok.value, args=params, fn_sugar=True, ret=ret)
	args: list[TypeExpr] = []
	lifetimes: list[str] = []
	consts: list[str] = []
	for ga in _subtrees(tree):
		for arg in ga.children:
			if isinstance(arg, Token):
				continue
			kind = _name(arg)
			if kind == "lifetime_arg":
				lifetimes.append(arg.children[0].value)  # type: ignore[union-attr]
			elif kind == "const_arg":
				consts.append(arg.children[0].value)  # type: ignore[union-attr]
			else:
				args.append(_build(arg))
	return PathSegment(name=name_tok.value, args=tuple(args), lifetimes=tuple(lifetimes), const_args=tuple(consts))


def _build_path(tree: Tree) -> tuple[PathSegment, ...]:
	return tuple(_build_segment(seg) for seg in _subtrees(tree))


def _build_bounds(tree: Tree) -> tuple[tuple[tuple[PathSegment, ...], ...], tuple[str, ...]]:
	paths: list[tuple[PathSegment, ...]] = []
	lifetimes: list[str] = []
	for bound in _subtrees(tree):
		kind = _name(bound)
		if kind == "path":
			paths.append(_build_path(bound))
		elif kind == "lifetime_bound":
			lifetimes.append(bound.children[0].value)  # type: ignore[union-attr]
		elif kind == "maybe_bound":
			# `?Sized` relaxes a bound; it names no trait the value implements.
			continue
	return tuple(paths), tuple(lifetimes)


def _build(tree: Tree) -> TypeExpr:
	kind = _name(tree)
	if kind == "path_type":
		return TypeExpr(kind=TypeExprKind.PATH, segments=_build_path(_subtrees(tree)[0]))
	if kind == "path":
		return TypeExpr(kind=TypeExprKind.PATH, segments=_build_path(tree))
	if kind == "ref_type":
		lifetime = _tokens(tree, "LIFETIME")
		return TypeExpr(
			kind=TypeExprKind.REFERENCE,
			inner=_build(_subtrees(tree)[0]),
			mutable=bool(_tokens(tree, "MUT")),
			lifetime=lifetime[0].value if lifetime else None,
		)
	if kind == "ptr_type":
		return TypeExpr(kind=TypeExprKind.POINTER, inner=_build(_subtrees(tree)[0]), mutable=bool(_tokens(tree, "MUT")))
	if kind == "slice_type":
		return TypeExpr(kind=TypeExprKind.SLICE, inner=_build(_subtrees(tree)[0]))
	if kind == "array_type":
		elem, len_tree = _subtrees(tree)
		tok = len_tree.children[0]
		assert isinstance(tok, Token)
		length = _int_literal(tok.value) if tok.type == "INT" else None
		return TypeExpr(kind=TypeExprKind.ARRAY, inner=_build(elem), length=length, length_text=tok.value)
	if kind == "unit_type":
		return UNIT_EXPR
	if kind == "paren_type":
		return _build(_subtrees(tree)[0])
	if kind == "tuple_type":
		return TypeExpr(kind=TypeExprKind.TUPLE, elements=tuple(_build(t) for t in _subtrees(tree)))
	if kind == "fn_type":
		params: tuple[TypeExpr, ...] = ()
		ret = None
		abi = None
		for child in _subtrees(tree):
			name = _name(child)
			if name == "type_list":
				params = tuple(_build(t) for t in _subtrees(child))
			elif name == "fn_ret":
				ret = _build(_subtrees(child)[0])
			elif name == "extern_abi":
				strings = _tokens(child, "STRING")
				abi = strings[0].value[1:-1] if strings else "C"
		return TypeExpr(kind=TypeExprKind.FN, elements=params, ret=ret, abi=abi, unsafe=bool(_tokens(tree, "UNSAFE")))
	if kind in ("dyn_type", "impl_type"):
		bounds, lifetimes = _build_bounds(_subtrees(tree)[0])
		return TypeExpr(
			kind=TypeExprKind.TRAIT_OBJECT if kind == "dyn_type" else TypeExprKind.IMPL_TRAIT,
			bounds=bounds,
			lifetimes=lifetimes,
		)
	if kind == "never_type":
		return TypeExpr(kind=TypeExprKind.NEVER)
	if kind == "infer_type":
		return TypeExpr(kind=TypeExprKind.INFER)
	raise ValueError(f"unexpected type node '{kind}'")


@lru_cache(maxsize=4096)
def parse_type_expr(text: str) -> TypeExpr:
	"""
	Decode one serialized type expression.

	Identical text always yields an equal TypeExpr; results are cached since
	the same spellings recur across a module.
	"""
	src = text.strip()
	if not src:
		return TypeExpr(kind=TypeExprKind.UNPARSED, text=text)
	try:
		tree = _PARSER.parse(src)
	except LarkError:
		if _MACRO_RE.search(src):
			return TypeExpr(kind=TypeExprKind.MACRO, text=src)
		return TypeExpr(kind=TypeExprKind.UNPARSED, text=src)
	return _build(tree)


__all__ = ["UNIT_EXPR", "parse_type_expr"]
