# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Fatal errors: structural defects in the input, or guard rejections.

Unlike diagnostics these stop the analysis of a unit immediately; no partial
diagnostic list is produced for it.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional

from .span import Span


@dataclass(frozen=True)
class BorrowckError(Exception):
	"""A structured, serializable fatal error with a stable reason code."""

	reason_code: str
	message: str
	point: Optional[int] = None
	place: Optional[str] = None
	unit: Optional[str] = None
	span: Optional[Span] = None

	def __str__(self) -> str:
		return self.format_human()

	def to_dict(self) -> dict[str, Any]:
		span = self.span or Span()
		return {
			"reason_code": self.reason_code,
			"message": self.message,
			"point": self.point,
			"place": self.place,
			"unit": self.unit,
			"file": span.file,
			"line": span.line,
			"column": span.column,
		}

	def format_human(self) -> str:
		parts: list[str] = [f"[{self.reason_code}] {self.message}"]
		if self.unit is not None:
			parts.append(f"unit: {self.unit}")
		if self.point is not None:
			parts.append(f"point: {self.point}")
		if self.span is not None and self.span.is_known():
			parts.append(f"at: {self.span}")
		return "\n".join(parts)


class MalformedProgram(BorrowckError):
	def __init__(self, message: str, **kwargs: Any) -> None:
		super().__init__("E-MALFORMED-PROGRAM", message, **kwargs)


class UnbalancedScope(BorrowckError):
	def __init__(self, message: str, **kwargs: Any) -> None:
		super().__init__("E-UNBALANCED-SCOPE", message, **kwargs)


class UnitTooLarge(BorrowckError):
	def __init__(self, message: str, **kwargs: Any) -> None:
		super().__init__("E-UNIT-TOO-LARGE", message, **kwargs)


class IRSyntaxError(BorrowckError):
	"""The text IR reader rejected its input."""

	def __init__(self, message: str, **kwargs: Any) -> None:
		super().__init__("E-IR-SYNTAX", message, **kwargs)


class ConfigError(BorrowckError):
	def __init__(self, message: str, **kwargs: Any) -> None:
		super().__init__("E-CONFIG", message, **kwargs)


__all__ = [
	"BorrowckError",
	"MalformedProgram",
	"UnbalancedScope",
	"UnitTooLarge",
	"IRSyntaxError",
	"ConfigError",
]
