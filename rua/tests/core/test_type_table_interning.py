# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
from __future__ import annotations

import threading

import pytest

from rua.core.types_core import (
	Field,
	Function,
	Holding,
	LengthEncoding,
	Pointer,
	Record,
	Sequence,
	Text,
	TypeTable,
	callback_depth,
	int_type,
	iter_graph,
	render_type,
	type_symbol,
)

U8 = int_type(8, False)
I32 = int_type(32, True)


def test_structurally_equal_types_intern_to_one_object() -> None:
	table = TypeTable()
	a = table.intern(Record("crate::P", (Field("x", I32),)))
	b = table.intern(Record("crate::P", (Field("x", I32),)))
	assert a is b
	assert a in table
	assert Record("crate::P", (Field("x", I32),)) not in TypeTable()
	assert len(table) == 1


def test_holding_is_part_of_identity() -> None:
	table = TypeTable()
	owned = table.intern(Sequence(U8, holding=Holding.OWNED))
	borrowed = table.intern(Sequence(U8, holding=Holding.BORROWED))
	assert owned is not borrowed
	assert render_type(owned) == "Sequence<u8, owned>"
	assert render_type(borrowed) == "Sequence<u8, borrowed>"


def test_handles_are_stable_per_name() -> None:
	table = TypeTable()
	first = table.reserve_handle("crate::Node")
	second = table.reserve_handle("crate::Edge")
	assert table.reserve_handle("crate::Node") == first
	assert (first, second) == (0, 1)
	op = table.opaque("crate::Edge")
	assert op.handle_id == 1
	assert table.opaque("crate::Edge") is op
	assert [n.name for n in table.nominals()] == ["crate::Node", "crate::Edge"]


def test_interning_is_thread_safe() -> None:
	table = TypeTable()
	seen: list[object] = []
	lock = threading.Lock()

	def worker() -> None:
		ty = table.intern(Pointer(Record("crate::Big", tuple(Field(f"f{i}", I32) for i in range(32)))))
		with lock:
			seen.append(ty)

	threads = [threading.Thread(target=worker) for _ in range(8)]
	for t in threads:
		t.start()
	for t in threads:
		t.join()
	assert all(ty is seen[0] for ty in seen)


def test_non_interface_objects_are_refused() -> None:
	with pytest.raises(TypeError):
		TypeTable().intern("u8")  # type: ignore[arg-type]


def test_sequence_length_matches_encoding() -> None:
	with pytest.raises(ValueError):
		Sequence(U8, encoding=LengthEncoding.FIXED)
	with pytest.raises(ValueError):
		Sequence(U8, length=4)


def test_graph_walk_depth_and_symbols() -> None:
	cb = Function((I32,), U8)
	outer = Function((cb,), Text())
	assert callback_depth(cb) == 1
	assert callback_depth(outer) == 2
	assert list(iter_graph(outer))[0] is outer
	assert I32 in list(iter_graph(outer))
	assert type_symbol(Sequence(U8)) == "seq_u8"
	assert type_symbol(Record("crate::geom::Point")) == "geom_point"
	assert type_symbol(Text()) == "str"
