#!/usr/bin/env python3
# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""Move tracking, initialization and rebinding."""

from borrowck.checker import analyze_unit
from borrowck.config import CheckerConfig
from borrowck.core.diagnostics import DiagnosticKind
from borrowck.ir_text import parse_unit
from borrowck.ownership import OwnershipState


def _check(src: str, **config):
	return analyze_unit(parse_unit(src), CheckerConfig(**config), record_states=True)


def _kinds(result) -> list:
	return [d.kind for d in result.diagnostics]


def test_move_then_move_again():
	result = _check("bind x;\nbind y = move x;\nbind z = move x;\n")
	assert _kinds(result) == [DiagnosticKind.USE_AFTER_MOVE]
	assert "cannot move 'x'" in result.diagnostics[0].message


def test_consume_moves_the_value():
	result = _check("bind s;\nconsume s;\nread s;\n")
	assert _kinds(result) == [DiagnosticKind.USE_AFTER_MOVE]
	assert result.diagnostics[0].point == 2


def test_move_statement_into_fresh_place():
	result = _check("bind a;\nmove b = a;\nread b;\nread a;\n")
	assert _kinds(result) == [DiagnosticKind.USE_AFTER_MOVE]
	assert result.diagnostics[0].place == "a"


def test_read_of_uninitialized_place():
	result = _check("declare x;\nread x;\n")
	assert _kinds(result) == [DiagnosticKind.USE_OF_UNINITIALIZED]
	assert "not initialized" in result.diagnostics[0].message


def test_deferred_initialization_by_move():
	result = _check("declare x;\nbind v;\nmove x = v;\nread x;\n")
	assert result.accepted


def test_duplicate_binding_in_same_scope():
	result = _check("bind x;\nbind x;\nread x;\n")
	assert _kinds(result) == [DiagnosticKind.DUPLICATE_BINDING]
	diag = result.diagnostics[0]
	assert diag.place == "x"
	assert diag.point == 1
	assert any("point 0" in note for note in diag.notes)


def test_rebinding_after_move_is_not_a_duplicate():
	result = _check("bind x;\nbind y = move x;\nbind x;\nread x;\n")
	assert result.accepted


def test_shadowing_is_not_a_duplicate():
	result = _check("bind x;\nshadow x;\nread x;\n")
	assert result.accepted


def test_inner_scope_binding_is_not_a_duplicate():
	result = _check("bind x;\n{\nbind x;\n}\nread x;\n")
	assert result.accepted


def test_move_inside_scope_is_visible_after_exit():
	result = _check("bind x;\n{\nbind y = move x;\n}\nread x;\n")
	assert _kinds(result) == [DiagnosticKind.USE_AFTER_MOVE]
	assert result.diagnostics[0].point == 4


def test_copy_place_stays_owned_after_move():
	result = _check("bind copy n;\nbind m = move n;\nread n;\nconsume n;\nread n;\n")
	assert result.accepted


def test_second_assignment_to_deferred_immutable_place():
	result = _check("declare x;\nbind a;\nbind b;\nmove x = a;\nmove x = b;\n")
	assert _kinds(result) == [DiagnosticKind.MUTABILITY_VIOLATION]
	assert result.diagnostics[0].point == 4


def test_reassigning_mutable_place():
	result = _check("bind mut x;\nbind a;\nmove x = a;\nread x;\nread a;\n")
	assert _kinds(result) == [DiagnosticKind.USE_AFTER_MOVE]
	assert result.diagnostics[0].place == "a"


def test_write_to_immutable_owner():
	result = _check("bind x;\nwrite x;\n")
	assert _kinds(result) == [DiagnosticKind.MUTABILITY_VIOLATION]


def test_write_to_mutable_owner():
	assert _check("bind mut x;\nwrite x;\n").accepted


def test_checking_continues_after_each_violation():
	result = _check("bind x;\nbind y = move x;\nread x;\nread x;\ndeclare u;\nread u;\n")
	assert _kinds(result) == [
		DiagnosticKind.USE_AFTER_MOVE,
		DiagnosticKind.USE_AFTER_MOVE,
		DiagnosticKind.USE_OF_UNINITIALIZED,
	]
	assert [d.point for d in result.diagnostics] == [2, 3, 5]


def test_recorded_states_follow_moves():
	result = _check("bind x;\nbind y = move x;\n{\nbind z;\n}\n")
	states = result.states
	assert len(states) == 5
	assert states[0] == {"x#0": OwnershipState.OWNED}
	assert states[1] == {"x#0": OwnershipState.MOVED_OUT, "y#1": OwnershipState.OWNED}
	assert states[3]["z#2"] is OwnershipState.OWNED
	assert "z#2" not in states[4]


def test_value_rebound_over_consumed_reference():
	result = _check("bind x;\nborrow r = &x;\nconsume r;\nbind r;\nread r;\n")
	assert result.error is None
	assert result.accepted


def test_value_bound_over_live_reference_is_a_duplicate():
	result = _check("bind x;\nborrow r = &x;\nbind r;\nread r;\n")
	assert result.error is None
	assert _kinds(result) == [DiagnosticKind.DUPLICATE_BINDING]
	assert result.diagnostics[0].place == "r"
	assert result.diagnostics[0].point == 2
	# the old reference is dropped, so x is free again
	assert result.borrows[0].valid_extent == range(1, 2)


def test_duplicate_binding_of_borrowed_place_is_one_diagnostic():
	result = _check("bind x;\nborrow r = &x;\nbind x;\nread r;\n")
	assert _kinds(result) == [DiagnosticKind.DUPLICATE_BINDING]
	notes = result.diagnostics[0].notes
	assert any("borrow held by 'r'" in note for note in notes)
	assert any("still borrowed" in note for note in notes)
