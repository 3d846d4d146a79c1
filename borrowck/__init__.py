# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
borrowck: a static ownership and borrow verifier for a small ownership IR.

Typical use:

    from borrowck import analyze_unit, parse_unit
    result = analyze_unit(parse_unit("bind x; bind y = move x; read x;"))
    assert [d.code for d in result.diagnostics] == ["E-USE-AFTER-MOVE"]
"""

from borrowck.checker import BorrowChecker, UnitResult, analyze_program, analyze_unit
from borrowck.config import CheckerConfig, load_config
from borrowck.core import (
	BorrowckError,
	ConfigError,
	Diagnostic,
	DiagnosticKind,
	IRSyntaxError,
	MalformedProgram,
	Span,
	UnbalancedScope,
	UnitTooLarge,
)
from borrowck.ir import Program, Unit, program_from_json
from borrowck.ir_text import load_program, parse_program, parse_unit

__all__ = [
	"BorrowChecker",
	"UnitResult",
	"analyze_unit",
	"analyze_program",
	"CheckerConfig",
	"load_config",
	"BorrowckError",
	"ConfigError",
	"Diagnostic",
	"DiagnosticKind",
	"IRSyntaxError",
	"MalformedProgram",
	"Span",
	"UnbalancedScope",
	"UnitTooLarge",
	"Program",
	"Unit",
	"program_from_json",
	"load_program",
	"parse_program",
	"parse_unit",
]
