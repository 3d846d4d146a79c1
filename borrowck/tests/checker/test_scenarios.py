#!/usr/bin/env python3
# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Reference scenarios, built directly from IR statements.

Each one is checked with both lexical and precise borrow extents; the
expected outcome does not depend on the mode.
"""

import pytest

from borrowck import ir
from borrowck.checker import analyze_unit
from borrowck.config import CheckerConfig
from borrowck.core.diagnostics import DiagnosticKind

_MODES = [CheckerConfig(), CheckerConfig(precise_borrow_extents=True)]


@pytest.mark.parametrize("config", _MODES)
def test_use_after_move(config):
	unit = ir.Unit("a", [ir.Bind("x"), ir.Bind("y", move_from="x"), ir.Read("x")])
	result = analyze_unit(unit, config)
	assert [d.kind for d in result.diagnostics] == [DiagnosticKind.USE_AFTER_MOVE]
	diag = result.diagnostics[0]
	assert diag.place == "x"
	assert diag.point == 2
	assert "moved out" in diag.message


@pytest.mark.parametrize("config", _MODES)
def test_shared_borrows_coexist(config):
	unit = ir.Unit(
		"b",
		[
			ir.Bind("x"),
			ir.BorrowShared("y", "x"),
			ir.BorrowShared("z", "x"),
			ir.Read("y"),
			ir.Read("z"),
		],
	)
	result = analyze_unit(unit, config)
	assert result.diagnostics == []
	assert result.accepted


@pytest.mark.parametrize("config", _MODES)
def test_exclusive_borrow_write_then_owner_read(config):
	unit = ir.Unit(
		"c",
		[
			ir.Bind("x", mutable=True),
			ir.BorrowExclusive("y", "x"),
			ir.WriteThrough("y"),
			ir.Read("x"),
		],
	)
	assert analyze_unit(unit, config).diagnostics == []


@pytest.mark.parametrize("config", _MODES)
def test_shared_borrow_conflicts_with_exclusive(config):
	unit = ir.Unit(
		"d",
		[
			ir.Bind("x", mutable=True),
			ir.BorrowExclusive("y", "x"),
			ir.BorrowShared("z", "x"),
			ir.Read("y"),
		],
	)
	result = analyze_unit(unit, config)
	assert [d.kind for d in result.diagnostics] == [DiagnosticKind.CONFLICTING_BORROW]
	assert result.diagnostics[0].place == "z"
	assert result.diagnostics[0].point == 2


@pytest.mark.parametrize("config", _MODES)
def test_reference_escaping_its_scope_dangles(config):
	unit = ir.Unit(
		"e",
		[
			ir.ScopeEnter(),
			ir.Bind("x"),
			ir.BorrowShared("y", "x"),
			ir.ScopeExit(),
			ir.Read("y"),
		],
	)
	result = analyze_unit(unit, config)
	assert [d.kind for d in result.diagnostics] == [DiagnosticKind.DANGLING_REFERENCE]
	diag = result.diagnostics[0]
	assert diag.place == "y"
	assert diag.point == 4
	assert diag.borrow == 0
