# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Case helpers used to derive exported symbol names.

Native items keep their own spelling in the model; emitters and the runtime
contract need stable derived spellings (`geom_make_point` for the C symbol,
`GeomPoint` / `makePoint` for foreign declarations).
"""

from __future__ import annotations

import re
from enum import Enum

_SNAKE_RE = re.compile(r"^[a-z0-9]+(_[a-z0-9]+)*$")


class Case(Enum):
	SNAKE = "snake_case"
	CAMEL = "camelCase"
	PASCAL = "PascalCase"

	def convert(self, name: str) -> str:
		if self is Case.SNAKE:
			return to_snake_case(name)
		if self is Case.CAMEL:
			return to_camel_case(name)
		return to_pascal_case(name)

	def check(self, name: str) -> bool:
		if self is Case.SNAKE:
			return is_snake_case(name)
		if self is Case.CAMEL:
			return is_camel_case(name)
		return is_pascal_case(name)


def is_snake_case(name: str) -> bool:
	return bool(name) and _SNAKE_RE.match(name) is not None


def is_camel_case(name: str) -> bool:
	if not name or "_" in name or is_snake_case(name):
		return False
	return name[0].islower() and name.isalnum()


def is_pascal_case(name: str) -> bool:
	if not name or "_" in name:
		return False
	return name[0].isupper() and name.isalnum()


def detect_case(name: str) -> Case | None:
	for case in (Case.SNAKE, Case.CAMEL, Case.PASCAL):
		if case.check(name):
			return case
	return None


def _words(name: str) -> list[str]:
	"""
	Split an identifier into lowercase words.

	Boundaries: underscores, `::`, lower->upper transitions (`makePoint`), and the
	last capital of an acronym run (`HTTPServer` -> http, server).
	"""
	words: list[str] = []
	for chunk in re.split(r"[_:\s]+", name):
		if not chunk:
			continue
		current = chunk[0]
		for prev, ch, nxt in zip(chunk, chunk[1:], chunk[2:] + " "):
			boundary = False
			if ch.isupper() and (prev.islower() or prev.isdigit()):
				boundary = True
			elif ch.isupper() and prev.isupper() and nxt.islower():
				boundary = True
			if boundary:
				words.append(current.lower())
				current = ch
			else:
				current += ch
		words.append(current.lower())
	return words


def to_snake_case(name: str) -> str:
	return "_".join(_words(name))


def to_camel_case(name: str) -> str:
	words = _words(name)
	if not words:
		return ""
	return words[0] + "".join(w[:1].upper() + w[1:] for w in words[1:])


def to_pascal_case(name: str) -> str:
	return "".join(w[:1].upper() + w[1:] for w in _words(name))


def export_symbol(module_path: tuple[str, ...], name: str) -> str:
	"""C-ABI symbol for an exported item: `<module path>_<name>` in snake case."""
	return "_".join(to_snake_case(part) for part in (*module_path, name) if part)


__all__ = [
	"Case",
	"detect_case",
	"export_symbol",
	"is_camel_case",
	"is_pascal_case",
	"is_snake_case",
	"to_camel_case",
	"to_pascal_case",
	"to_snake_case",
]
