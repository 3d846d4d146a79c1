#!/usr/bin/env python3
# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""Textual IR reader."""

from pathlib import Path

import pytest

from borrowck import ir
from borrowck.core.errors import IRSyntaxError, MalformedProgram
from borrowck.ir_text import load_program, parse_program, parse_unit


def test_every_statement_form():
	unit = parse_unit(
		"""
		bind x;
		bind mut copy m;
		bind y = move x;
		shadow y;
		declare mut d;
		move d = m;
		borrow r = &y;
		borrow w = &mut d;
		read r;
		write w;
		consume y;
		{
		enter;
		exit;
		}
		"""
	)
	assert [type(s) for s in unit.statements] == [
		ir.Bind,
		ir.Bind,
		ir.Bind,
		ir.Bind,
		ir.Declare,
		ir.Move,
		ir.BorrowShared,
		ir.BorrowExclusive,
		ir.Read,
		ir.WriteThrough,
		ir.Consume,
		ir.ScopeEnter,
		ir.ScopeEnter,
		ir.ScopeExit,
		ir.ScopeExit,
	]
	stmts = unit.statements
	assert stmts[1] == ir.Bind("m", mutable=True, copy=True, loc=stmts[1].loc)
	assert stmts[2].move_from == "x"
	assert stmts[3].shadow and stmts[3].place == "y"
	assert stmts[4].mutable
	assert (stmts[5].dest, stmts[5].src) == ("d", "m")
	assert (stmts[7].dest, stmts[7].ref) == ("w", "d")


def test_units_and_spans():
	program = parse_program(
		"unit first:\n"
		"  bind x;\n"
		"  read x;  # trailing comment\n"
		"unit second:\n"
		"  bind y;\n",
		file="prog.bir",
	)
	assert [u.name for u in program.units] == ["first", "second"]
	read = program.unit("first").statements[1]
	assert read.loc.file == "prog.bir"
	assert (read.loc.line, read.loc.column) == (3, 3)
	assert program.unit("second").statements[0].loc.line == 5


def test_leading_statements_form_default_unit():
	program = parse_program("bind x;\nunit other:\nbind y;\n", default_name="lead")
	assert [u.name for u in program.units] == ["lead", "other"]


def test_empty_text_is_one_empty_unit():
	program = parse_program("# nothing here\n")
	assert len(program.units) == 1
	assert program.units[0].statements == []


def test_syntax_error_has_location():
	with pytest.raises(IRSyntaxError) as exc:
		parse_program("bind x\nread x;\n", file="bad.bir")
	assert exc.value.reason_code == "E-IR-SYNTAX"
	assert exc.value.span.file == "bad.bir"
	assert exc.value.span.line == 2
	assert "read" in exc.value.message


def test_unexpected_character():
	with pytest.raises(IRSyntaxError) as exc:
		parse_unit("bind x;\nread $;\n")
	assert exc.value.span.line == 2


def test_truncated_input():
	with pytest.raises(IRSyntaxError):
		parse_unit("borrow r = &")


def test_load_program_by_suffix(tmp_path: Path):
	text_path = tmp_path / "demo.bir"
	text_path.write_text("bind x;\nread x;\n")
	program = load_program(text_path)
	assert [u.name for u in program.units] == ["demo"]
	assert program.units[0].statements[0].loc.file == str(text_path)

	json_path = tmp_path / "demo.json"
	json_path.write_text(ir.program_to_json(ir.Program(units=[ir.Unit("j", [ir.Bind("x")])])))
	assert load_program(json_path).unit("j").statements == [ir.Bind("x")]

	bad_json = tmp_path / "bad.json"
	bad_json.write_text("[1, 2]")
	with pytest.raises(MalformedProgram):
		load_program(bad_json)
