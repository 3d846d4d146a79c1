# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Diagnostic records emitted by the ownership/borrow trackers.

Diagnostics are values: once emitted they are never mutated. A unit is
accepted exactly when its checker produced no diagnostics.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterator, List, Optional, Tuple

from .span import Span

logger = logging.getLogger(__name__)


class DiagnosticKind(Enum):
	"""Semantic violations reported by the checker (value = stable code)."""

	DUPLICATE_BINDING = "E-DUPLICATE-BINDING"
	USE_AFTER_MOVE = "E-USE-AFTER-MOVE"
	USE_OF_UNINITIALIZED = "E-USE-OF-UNINITIALIZED"
	MOVE_WHILE_BORROWED = "E-MOVE-WHILE-BORROWED"
	CONFLICTING_BORROW = "E-CONFLICTING-BORROW"
	DANGLING_REFERENCE = "E-DANGLING-REFERENCE"
	MUTABILITY_VIOLATION = "E-MUTABILITY-VIOLATION"
	WRITE_WHILE_BORROWED = "E-WRITE-WHILE-BORROWED"

	@property
	def code(self) -> str:
		return self.value


@dataclass(frozen=True)
class Diagnostic:
	"""A borrow-check error anchored at a program point."""

	kind: DiagnosticKind
	message: str
	point: int
	place: Optional[str] = None
	borrow: Optional[int] = None
	severity: str = "error"
	phase: str = "borrowcheck"
	span: Span = field(default_factory=Span)
	notes: Tuple[str, ...] = ()

	@property
	def code(self) -> str:
		return self.kind.code

	def to_dict(self) -> dict:
		"""Render to a JSON-friendly dict (shape shared with the CLI `--json` output)."""
		return {
			"phase": self.phase,
			"code": self.code,
			"message": self.message,
			"severity": self.severity,
			"point": self.point,
			"place": self.place,
			"borrow": self.borrow,
			"file": self.span.file,
			"line": self.span.line,
			"column": self.span.column,
			"notes": list(self.notes),
		}

	def format_human(self) -> str:
		text = f"{self.span}: {self.severity}[{self.code}] at point {self.point}: {self.message}"
		for note in self.notes:
			text += f"\n  note: {note}"
		return text


@dataclass
class DiagnosticSink:
	"""
	Ordered collector for one analyzed unit.

	Trackers never abort on a violation; they report here and keep going, so
	the sink ends up with every detectable violation in program order.
	"""

	diagnostics: List[Diagnostic] = field(default_factory=list)

	def emit(
		self,
		kind: DiagnosticKind,
		message: str,
		point: int,
		*,
		place: Optional[str] = None,
		borrow: Optional[int] = None,
		span: Span | None = None,
		notes: Tuple[str, ...] = (),
	) -> Diagnostic:
		diag = Diagnostic(
			kind=kind,
			message=message,
			point=point,
			place=place,
			borrow=borrow,
			span=span or Span(),
			notes=tuple(notes),
		)
		logger.debug("diagnostic %s at point %d: %s", kind.code, point, message)
		self.diagnostics.append(diag)
		return diag

	def __iter__(self) -> Iterator[Diagnostic]:
		return iter(self.diagnostics)

	def __len__(self) -> int:
		return len(self.diagnostics)


__all__ = ["Diagnostic", "DiagnosticKind", "DiagnosticSink"]
