# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Reader for the textual IR (see ir.lark).

The lark tree is walked by hand into `ir` statements; every statement gets
the span of its source text so diagnostics can point back at the file.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional

from lark import Lark, Token, Tree
from lark.exceptions import UnexpectedInput

from borrowck import ir
from borrowck.core.errors import IRSyntaxError
from borrowck.core.span import Span

logger = logging.getLogger(__name__)

_GRAMMAR_PATH = Path(__file__).with_name("ir.lark")
_GRAMMAR_SRC = _GRAMMAR_PATH.read_text()

_PARSER = Lark(
	_GRAMMAR_SRC,
	parser="lalr",
	start="start",
	propagate_positions=True,
	maybe_placeholders=False,
)

DEFAULT_UNIT_NAME = "main"


def parse_program(source: str, file: Optional[str] = None, default_name: str = DEFAULT_UNIT_NAME) -> ir.Program:
	"""
	Parse textual IR into a Program.

	Statements that precede the first `unit` header form a unit called
	`default_name`; it is kept when non-empty or when the text declares no
	units at all.
	"""
	try:
		tree = _PARSER.parse(source)
	except UnexpectedInput as err:
		# lark reports -1 for positions at end of input
		line = getattr(err, "line", -1)
		column = getattr(err, "column", -1)
		span = Span(file=file, line=line, column=column) if line > 0 else Span(file=file)
		raise IRSyntaxError(_syntax_message(err), span=span) from err
	program = _build_program(tree, file, default_name)
	logger.debug("parsed %d unit(s) from %s", len(program.units), file or "<string>")
	return program


def parse_unit(source: str, name: str = DEFAULT_UNIT_NAME) -> ir.Unit:
	"""Parse a single anonymous unit (no `unit` header)."""
	program = parse_program(source, default_name=name)
	if len(program.units) != 1:
		raise IRSyntaxError(f"expected exactly one unit, found {len(program.units)}")
	return program.units[0]


def load_program(path: Path) -> ir.Program:
	"""Read a `.json` or textual IR file; the anonymous unit is named after the file."""
	text = path.read_text()
	if path.suffix == ".json":
		return ir.program_from_json(text)
	return parse_program(text, file=str(path), default_name=path.stem)


def _syntax_message(err: UnexpectedInput) -> str:
	token = getattr(err, "token", None)
	if token is not None:
		if token.type == "$END":
			return "unexpected end of input"
		return f"unexpected {token.value!r}"
	char = getattr(err, "char", None)
	if char is not None:
		return f"unexpected character {char!r}"
	return str(err).splitlines()[0]


def _build_program(tree: Tree, file: Optional[str], default_name: str) -> ir.Program:
	body, *unit_nodes = tree.children
	units: List[ir.Unit] = []
	anonymous = _build_body(body, file)
	if anonymous or not unit_nodes:
		units.append(ir.Unit(name=default_name, statements=anonymous))
	for node in unit_nodes:
		units.append(_build_unit(node, file))
	return ir.Program(units=units)


def _build_unit(tree: Tree, file: Optional[str]) -> ir.Unit:
	_kw, name_tok, body = tree.children
	return ir.Unit(name=name_tok.value, statements=_build_body(body, file))


def _build_body(tree: Tree, file: Optional[str]) -> List[ir.Stmt]:
	return [_build_stmt(child, file) for child in tree.children]


def _build_stmt(tree: Tree, file: Optional[str]) -> ir.Stmt:
	kind = _name(tree)
	loc = Span.from_meta(tree.meta, file)
	if kind in ("bind_stmt", "shadow_stmt"):
		return _build_bind(tree, loc, shadow=kind == "shadow_stmt")
	if kind == "declare_stmt":
		mutable, copy = _flags(tree)
		return ir.Declare(place=_names(tree)[0], mutable=mutable, copy=copy, loc=loc)
	if kind == "move_stmt":
		dest, src = _names(tree)
		return ir.Move(dest=dest, src=src, loc=loc)
	if kind == "borrow_stmt":
		dest, ref = _names(tree)
		exclusive = any(isinstance(c, Token) and c.type == "MUT" for c in tree.children)
		if exclusive:
			return ir.BorrowExclusive(dest=dest, ref=ref, loc=loc)
		return ir.BorrowShared(dest=dest, ref=ref, loc=loc)
	if kind == "read_stmt":
		return ir.Read(place=_names(tree)[0], loc=loc)
	if kind == "write_stmt":
		return ir.WriteThrough(place=_names(tree)[0], loc=loc)
	if kind == "consume_stmt":
		return ir.Consume(place=_names(tree)[0], loc=loc)
	if kind == "enter_stmt":
		return ir.ScopeEnter(loc=loc)
	if kind == "exit_stmt":
		return ir.ScopeExit(loc=loc)
	raise IRSyntaxError(f"unsupported statement node '{kind}'", span=loc)


def _build_bind(tree: Tree, loc: Span, *, shadow: bool) -> ir.Bind:
	mutable, copy = _flags(tree)
	move_from = None
	for child in tree.children:
		if isinstance(child, Tree) and _name(child) == "move_from":
			move_from = _names(child)[0]
	return ir.Bind(
		place=_names(tree)[0],
		mutable=mutable,
		move_from=move_from,
		shadow=shadow,
		copy=copy,
		loc=loc,
	)


def _flags(tree: Tree) -> tuple[bool, bool]:
	mutable = copy = False
	for child in tree.children:
		if isinstance(child, Tree) and _name(child) == "flag":
			flag = child.children[0]
			if flag.type == "MUT":
				mutable = True
			elif flag.type == "COPY":
				copy = True
	return mutable, copy


def _names(tree: Tree) -> List[str]:
	"""NAME tokens directly under `tree`, in order."""
	return [c.value for c in tree.children if isinstance(c, Token) and c.type == "NAME"]


def _name(node: Tree | Token) -> str:
	if isinstance(node, Tree):
		data = node.data
		if isinstance(data, Token):
			return data.value
		return data
	if isinstance(node, Token):
		return node.type
	return str(node)


__all__ = ["parse_program", "parse_unit", "load_program", "DEFAULT_UNIT_NAME"]
