# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
import logging

import pytest

from rua.core.layout import LayoutEngine
from rua.core.types_core import TypeTable
from rua.emitters.capabilities import dart_capabilities


@pytest.fixture(autouse=True)
def _reset_rua_logger():
	"""
	The CLI installs its own handlers and stops propagation; undo that after
	each test so caplog keeps seeing `rua.*` records.
	"""
	yield
	logger = logging.getLogger("rua")
	for handler in list(logger.handlers):
		logger.removeHandler(handler)
		handler.close()
	logger.propagate = True
	logger.setLevel(logging.NOTSET)


@pytest.fixture
def dart():
	return dart_capabilities()


@pytest.fixture
def table():
	return TypeTable()


@pytest.fixture
def layouts():
	return LayoutEngine(word_bits=64)
