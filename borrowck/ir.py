# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Ownership IR: the program model consumed by the borrow checker.

Pipeline placement:
  front end (external) / text IR (ir_text.py) / JSON → IR (this file)
    → scope tree (scopes.py) → borrow check (checker.py)

A unit is a flat, ordered list of statements. Nesting is expressed with
explicit `ScopeEnter`/`ScopeExit` markers rather than a tree so that every
statement (markers included) has a single integer program point: its index
in `Unit.statements`. The implicit end of the unit is `len(statements)`.

Guiding rules:
- Statements name places by string; resolution (shadowing, escapes) happens
  in the scope tree builder, never here.
- No side effects: the IR is pure data and is never mutated by analysis.
"""

from __future__ import annotations

import json
from dataclasses import MISSING, dataclass, field, fields
from typing import Any, Dict, Iterator, List, Optional

from borrowck.core.errors import MalformedProgram
from borrowck.core.span import Span


class IRNode:
	"""Base class for all IR nodes."""


class Stmt(IRNode):
	"""Base class for all unit statements."""

	loc: Span

	def operands(self) -> List[str]:
		"""Place names this statement *uses* (reads, moves from, or borrows)."""
		return []


@dataclass
class Bind(Stmt):
	"""
	Declare `place` and initialize it.

	The value is fresh unless `move_from` names a place whose value is moved
	in (`let y = x`). `shadow` forces a new place even when one of the same
	name already exists in the current scope. `copy` marks the place's value as
	duplicable: moving out of it leaves it owned.
	"""

	place: str
	mutable: bool = False
	move_from: Optional[str] = None
	shadow: bool = False
	copy: bool = False
	loc: Span = field(default_factory=Span)

	def operands(self) -> List[str]:
		return [self.move_from] if self.move_from is not None else []


@dataclass
class Declare(Stmt):
	"""Declare `place` without an initializer (`let x;`)."""

	place: str
	mutable: bool = False
	copy: bool = False
	loc: Span = field(default_factory=Span)


@dataclass
class Move(Stmt):
	"""Transfer ownership from `src` into `dest`."""

	dest: str
	src: str
	loc: Span = field(default_factory=Span)

	def operands(self) -> List[str]:
		return [self.src]


@dataclass
class BorrowShared(Stmt):
	"""`dest = &ref`"""

	dest: str
	ref: str
	loc: Span = field(default_factory=Span)

	def operands(self) -> List[str]:
		return [self.ref]


@dataclass
class BorrowExclusive(Stmt):
	"""`dest = &mut ref`"""

	dest: str
	ref: str
	loc: Span = field(default_factory=Span)

	def operands(self) -> List[str]:
		return [self.ref]


@dataclass
class WriteThrough(Stmt):
	"""Mutate `place`: directly when it owns a value, through it when it holds a borrow."""

	place: str
	loc: Span = field(default_factory=Span)

	def operands(self) -> List[str]:
		return [self.place]


@dataclass
class Read(Stmt):
	place: str
	loc: Span = field(default_factory=Span)

	def operands(self) -> List[str]:
		return [self.place]


@dataclass
class Consume(Stmt):
	"""Hand the value of `place` to a callee that takes ownership (`take(s)`)."""

	place: str
	loc: Span = field(default_factory=Span)

	def operands(self) -> List[str]:
		return [self.place]


@dataclass
class ScopeEnter(Stmt):
	loc: Span = field(default_factory=Span)


@dataclass
class ScopeExit(Stmt):
	loc: Span = field(default_factory=Span)


Borrow = BorrowShared | BorrowExclusive


@dataclass
class Unit:
	"""A single analyzable function-like body."""

	name: str
	statements: List[Stmt] = field(default_factory=list)

	def __len__(self) -> int:
		return len(self.statements)

	def __iter__(self) -> Iterator[Stmt]:
		return iter(self.statements)

	@property
	def end_point(self) -> int:
		"""Program point of the implicit end of the unit (root scope exit)."""
		return len(self.statements)


@dataclass
class Program:
	"""Independent units; each one is checked in isolation."""

	units: List[Unit] = field(default_factory=list)

	def unit(self, name: str) -> Unit:
		for u in self.units:
			if u.name == name:
				return u
		raise KeyError(name)


# JSON form
#
# A unit is `{"name": ..., "statements": [{"op": "bind", "place": "x"}, ...]}`;
# a program is `{"units": [...]}` or a bare list of units.

_OPS: Dict[str, type] = {
	"bind": Bind,
	"declare": Declare,
	"move": Move,
	"borrow_shared": BorrowShared,
	"borrow_exclusive": BorrowExclusive,
	"write": WriteThrough,
	"read": Read,
	"consume": Consume,
	"enter": ScopeEnter,
	"exit": ScopeExit,
}
_OP_NAMES: Dict[type, str] = {cls: op for op, cls in _OPS.items()}


def stmt_to_dict(stmt: Stmt) -> Dict[str, Any]:
	out: Dict[str, Any] = {"op": _OP_NAMES[type(stmt)]}
	for name, default in _FIELD_DEFAULTS[type(stmt)].items():
		value = getattr(stmt, name)
		if value != default:
			out[name] = value
	return out


def stmt_from_dict(data: Dict[str, Any], *, point: Optional[int] = None) -> Stmt:
	if not isinstance(data, dict):
		raise MalformedProgram(f"statement must be an object, got {type(data).__name__}", point=point)
	op = data.get("op")
	cls = _OPS.get(op) if isinstance(op, str) else None
	if cls is None:
		raise MalformedProgram(f"unknown statement op {op!r}", point=point)
	allowed = _FIELD_DEFAULTS[cls]
	kwargs: Dict[str, Any] = {}
	for key, value in data.items():
		if key == "op":
			continue
		if key not in allowed:
			raise MalformedProgram(f"unexpected field '{key}' for '{op}'", point=point)
		kwargs[key] = value
	try:
		return cls(**kwargs)
	except TypeError as exc:
		raise MalformedProgram(f"bad '{op}' statement: {exc}", point=point) from exc


def unit_to_dict(unit: Unit) -> Dict[str, Any]:
	return {"name": unit.name, "statements": [stmt_to_dict(s) for s in unit.statements]}


def unit_from_dict(data: Dict[str, Any]) -> Unit:
	if not isinstance(data, dict) or not isinstance(data.get("name"), str):
		raise MalformedProgram("unit must be an object with a string 'name'")
	raw = data.get("statements", [])
	if not isinstance(raw, list):
		raise MalformedProgram("'statements' must be a list", unit=data["name"])
	stmts = [stmt_from_dict(s, point=i) for i, s in enumerate(raw)]
	return Unit(name=data["name"], statements=stmts)


def program_from_json(text: str) -> Program:
	try:
		data = json.loads(text)
	except json.JSONDecodeError as exc:
		raise MalformedProgram(f"invalid JSON: {exc}") from exc
	if isinstance(data, dict) and "units" in data:
		data = data["units"]
	elif isinstance(data, dict):
		data = [data]
	if not isinstance(data, list):
		raise MalformedProgram("expected a unit, a list of units, or {\"units\": [...]}")
	return Program(units=[unit_from_dict(u) for u in data])


def program_to_json(program: Program) -> str:
	return json.dumps({"units": [unit_to_dict(u) for u in program.units]}, indent=2)


def _defaults(cls: type) -> Dict[str, Any]:
	return {f.name: (_REQUIRED if f.default is MISSING else f.default) for f in fields(cls) if f.name != "loc"}


_REQUIRED = object()
_FIELD_DEFAULTS: Dict[type, Dict[str, Any]] = {cls: _defaults(cls) for cls in _OPS.values()}


__all__ = [
	"IRNode",
	"Stmt",
	"Bind",
	"Declare",
	"Move",
	"BorrowShared",
	"BorrowExclusive",
	"Borrow",
	"WriteThrough",
	"Read",
	"Consume",
	"ScopeEnter",
	"ScopeExit",
	"Unit",
	"Program",
	"stmt_to_dict",
	"stmt_from_dict",
	"unit_to_dict",
	"unit_from_dict",
	"program_from_json",
	"program_to_json",
]
