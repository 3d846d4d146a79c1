# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""Shared core records: spans, diagnostics, fatal errors."""

from .span import Span
from .diagnostics import Diagnostic, DiagnosticKind, DiagnosticSink
from .errors import (
	BorrowckError,
	ConfigError,
	IRSyntaxError,
	MalformedProgram,
	UnbalancedScope,
	UnitTooLarge,
)

__all__ = [
	"Span",
	"Diagnostic",
	"DiagnosticKind",
	"DiagnosticSink",
	"BorrowckError",
	"ConfigError",
	"IRSyntaxError",
	"MalformedProgram",
	"UnbalancedScope",
	"UnitTooLarge",
]
