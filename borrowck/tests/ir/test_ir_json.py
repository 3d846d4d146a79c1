#!/usr/bin/env python3
# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""JSON form of the IR."""

import json

import pytest

from borrowck import ir
from borrowck.core.errors import MalformedProgram


def test_stmt_to_dict_omits_defaults():
	assert ir.stmt_to_dict(ir.Bind("x")) == {"op": "bind", "place": "x"}
	assert ir.stmt_to_dict(ir.Bind("y", mutable=True, move_from="x")) == {
		"op": "bind",
		"place": "y",
		"mutable": True,
		"move_from": "x",
	}
	assert ir.stmt_to_dict(ir.BorrowExclusive("r", "x")) == {"op": "borrow_exclusive", "dest": "r", "ref": "x"}
	assert ir.stmt_to_dict(ir.ScopeEnter()) == {"op": "enter"}


def test_program_from_json_accepts_every_container_shape():
	unit = {"name": "u", "statements": [{"op": "bind", "place": "x"}, {"op": "read", "place": "x"}]}
	for text in (json.dumps({"units": [unit]}), json.dumps([unit]), json.dumps(unit)):
		program = ir.program_from_json(text)
		assert [u.name for u in program.units] == ["u"]
		assert program.unit("u").statements == [ir.Bind("x"), ir.Read("x")]


def test_program_json_text_is_stable():
	program = ir.Program(
		units=[
			ir.Unit(
				"u",
				[
					ir.Bind("x", mutable=True),
					ir.ScopeEnter(),
					ir.BorrowShared("r", "x"),
					ir.ScopeExit(),
					ir.Consume("x"),
				],
			)
		]
	)
	text = ir.program_to_json(program)
	assert ir.program_to_json(ir.program_from_json(text)) == text


def test_unknown_op_is_malformed():
	with pytest.raises(MalformedProgram) as exc:
		ir.program_from_json('[{"name": "u", "statements": [{"op": "jump"}]}]')
	assert exc.value.point == 0
	assert "jump" in exc.value.message


def test_unknown_field_is_malformed():
	with pytest.raises(MalformedProgram):
		ir.program_from_json('[{"name": "u", "statements": [{"op": "read", "place": "x", "into": "y"}]}]')


def test_missing_field_is_malformed():
	with pytest.raises(MalformedProgram):
		ir.program_from_json('[{"name": "u", "statements": [{"op": "move", "dest": "y"}]}]')


def test_invalid_json_is_malformed():
	with pytest.raises(MalformedProgram):
		ir.program_from_json("{not json")


def test_unit_without_name_is_malformed():
	with pytest.raises(MalformedProgram):
		ir.program_from_json('[{"statements": []}]')


def test_unit_lookup_and_end_point():
	program = ir.Program(units=[ir.Unit("a", [ir.Bind("x")]), ir.Unit("b")])
	assert program.unit("a").end_point == 1
	assert len(program.unit("b")) == 0
	with pytest.raises(KeyError):
		program.unit("c")


def test_operands():
	assert ir.Bind("y", move_from="x").operands() == ["x"]
	assert ir.Bind("y").operands() == []
	assert ir.Move("y", "x").operands() == ["x"]
	assert ir.BorrowShared("r", "x").operands() == ["x"]
	assert ir.ScopeExit().operands() == []
