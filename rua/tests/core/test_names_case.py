# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
from __future__ import annotations

import pytest

from rua.core.names import (
	Case,
	detect_case,
	export_symbol,
	to_camel_case,
	to_pascal_case,
	to_snake_case,
)


@pytest.mark.parametrize(
	"name,snake,camel,pascal",
	[
		("make_point", "make_point", "makePoint", "MakePoint"),
		("makePoint", "make_point", "makePoint", "MakePoint"),
		("HTTPServer", "http_server", "httpServer", "HttpServer"),
		("geom::Point", "geom_point", "geomPoint", "GeomPoint"),
		("v2_api", "v2_api", "v2Api", "V2Api"),
	],
)
def test_case_conversions(name: str, snake: str, camel: str, pascal: str) -> None:
	assert to_snake_case(name) == snake
	assert to_camel_case(name) == camel
	assert to_pascal_case(name) == pascal
	assert Case.CAMEL.convert(name) == camel


def test_detect_case() -> None:
	assert detect_case("make_point") is Case.SNAKE
	assert detect_case("makePoint") is Case.CAMEL
	assert detect_case("MakePoint") is Case.PASCAL
	assert detect_case("Make_Point") is None


def test_export_symbol_joins_module_path() -> None:
	assert export_symbol(("geom",), "makePoint") == "geom_make_point"
	assert export_symbol((), "tick") == "tick"
	assert export_symbol(("net", "HttpClient"), "open") == "net_http_client_open"
