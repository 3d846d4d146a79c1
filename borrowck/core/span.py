# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Source span attached to IR statements.

Units built in code have no location; units read from a text IR file carry
the line/column of each statement so diagnostics can point back at it.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional


@dataclass(frozen=True)
class Span:
	"""Best-effort file/line/column of a statement (Span() denotes unknown)."""

	file: Optional[str] = None
	line: Optional[int] = None
	column: Optional[int] = None
	end_line: Optional[int] = None
	end_column: Optional[int] = None

	@classmethod
	def from_meta(cls, meta: Any, file: Optional[str] = None) -> "Span":
		"""
		Construct a Span from a lark `Meta` (or any object with the same fields).

		Lark leaves `meta.empty` set when position propagation found no tokens;
		that maps to the unknown span.
		"""
		if meta is None or getattr(meta, "empty", False):
			return cls(file=file)
		return cls(
			file=file,
			line=getattr(meta, "line", None),
			column=getattr(meta, "column", None),
			end_line=getattr(meta, "end_line", None),
			end_column=getattr(meta, "end_column", None),
		)

	def is_known(self) -> bool:
		return self.line is not None

	def __str__(self) -> str:
		file = self.file or "<unit>"
		if self.line is None:
			return f"{file}:?:?"
		return f"{file}:{self.line}:{self.column if self.column is not None else '?'}"


__all__ = ["Span"]
