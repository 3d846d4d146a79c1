# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Scope tree builder: flat statements -> nested lexical scopes + resolved places.

The builder is the only place that maps names to places. It answers, for
every statement, which `PlaceDecl` each operand refers to, whether the
statement declares a new place (and which older place that shadows), and
which scope a `ScopeExit` closes. The trackers never look at names again.

Resolution rules:
  * `Bind(x)` reuses `x` when it is already declared in the *current* scope
    (re-initialization or duplicate binding, decided later by ownership
    state); otherwise it declares a new place. When the name's place holds the
    other kind (a value bound over a reference), a new place is declared and
    the statement is flagged `rebinds`.
  * `Bind(x, shadow=True)` and `Declare(x)` always declare a new place.
  * `Move`/`Borrow*` destinations assign a visible place that is mutable or
    declared without initializer; otherwise they declare a new place.
  * Operands must resolve to a visible place. A reference place whose scope
    already closed resolves as an *escaped* use; any other miss is fatal.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Union

from borrowck import ir
from borrowck.core.errors import MalformedProgram, UnbalancedScope

logger = logging.getLogger(__name__)

PlaceId = int
ScopeId = int


@dataclass
class PlaceDecl:
	"""A storage location. Shadowing always yields a distinct PlaceDecl."""

	id: PlaceId
	name: str
	scope_id: ScopeId
	decl_point: int
	mutable: bool = False
	copy: bool = False
	deferred: bool = False
	# None until the place is first given a value; True when it holds borrows.
	is_ref: Optional[bool] = None

	@property
	def holds_ref(self) -> bool:
		return self.is_ref is True


@dataclass
class ScopeNode:
	"""
	A lexical block.

	`items` interleaves statement points and child scopes in program order.
	`places` lists places declared directly in this scope in declaration order;
	scope exit invalidates them in reverse.
	"""

	id: ScopeId
	parent: Optional[ScopeId]
	depth: int
	enter_point: int
	exit_point: Optional[int] = None
	children: List[ScopeId] = field(default_factory=list)
	items: List[Union[int, "ScopeNode"]] = field(default_factory=list)
	places: List[PlaceId] = field(default_factory=list)
	_bindings: Dict[str, PlaceId] = field(default_factory=dict, repr=False)


@dataclass(frozen=True)
class PlaceUse:
	"""An operand resolved to a place; `escaped` = used after its scope closed."""

	place: PlaceId
	escaped: bool = False


@dataclass
class ResolvedStmt:
	"""Per-statement resolution facts consumed by the checker."""

	point: int
	stmt: ir.Stmt
	scope_id: ScopeId
	target: Optional[PlaceId] = None
	declares: bool = False
	shadowed: Optional[PlaceId] = None
	# Bind without shadow that still had to declare: `shadowed` is the reused name's place
	rebinds: bool = False
	source: Optional[PlaceUse] = None
	closes: Optional[ScopeId] = None


@dataclass
class ScopeTree:
	"""Output of the builder; owned by one checker run."""

	unit: ir.Unit
	scopes: List[ScopeNode]
	places: List[PlaceDecl]
	resolved: List[ResolvedStmt]

	@property
	def root(self) -> ScopeNode:
		return self.scopes[0]

	def scope(self, scope_id: ScopeId) -> ScopeNode:
		return self.scopes[scope_id]

	def place(self, place_id: PlaceId) -> PlaceDecl:
		return self.places[place_id]

	def exit_point(self, scope_id: ScopeId) -> int:
		"""Exit point of a scope (the root closes at the unit's end point)."""
		node = self.scopes[scope_id]
		return node.exit_point if node.exit_point is not None else self.unit.end_point

	def is_ancestor(self, anc: ScopeId, scope_id: ScopeId) -> bool:
		"""True when `anc` is `scope_id` itself or encloses it."""
		cur: Optional[ScopeId] = scope_id
		while cur is not None:
			if cur == anc:
				return True
			cur = self.scopes[cur].parent
		return False


class ScopeTreeBuilder:
	"""Single linear scan with a stack of open scopes."""

	def __init__(self, unit: ir.Unit) -> None:
		self.unit = unit
		self.scopes: List[ScopeNode] = [ScopeNode(id=0, parent=None, depth=0, enter_point=0)]
		self.places: List[PlaceDecl] = []
		self.resolved: List[ResolvedStmt] = []
		self._stack: List[ScopeNode] = [self.scopes[0]]
		self._closed: Dict[str, PlaceId] = {}

	def build(self) -> ScopeTree:
		for point, stmt in enumerate(self.unit.statements):
			top = self._stack[-1]
			res = ResolvedStmt(point=point, stmt=stmt, scope_id=top.id)
			if isinstance(stmt, ir.ScopeEnter):
				node = ScopeNode(id=len(self.scopes), parent=top.id, depth=top.depth + 1, enter_point=point)
				self.scopes.append(node)
				top.children.append(node.id)
				top.items.append(node)
				self._stack.append(node)
			elif isinstance(stmt, ir.ScopeExit):
				if len(self._stack) == 1:
					raise UnbalancedScope(
						"scope exit without a matching scope enter", point=point, unit=self.unit.name, span=stmt.loc
					)
				node = self._stack.pop()
				node.exit_point = point
				res.closes = node.id
				res.scope_id = node.id
				for pid in node.places:
					self._closed[self.places[pid].name] = pid
			else:
				top.items.append(point)
				self._resolve(stmt, res, top)
			self.resolved.append(res)
		if len(self._stack) > 1:
			open_scope = self._stack[-1]
			raise UnbalancedScope(
				f"{len(self._stack) - 1} scope(s) still open at end of unit "
				f"(innermost entered at point {open_scope.enter_point})",
				point=self.unit.end_point,
				unit=self.unit.name,
			)
		self.scopes[0].exit_point = self.unit.end_point
		tree = ScopeTree(unit=self.unit, scopes=self.scopes, places=self.places, resolved=self.resolved)
		logger.debug(
			"unit %s: %d scope(s), %d place(s)", self.unit.name, len(self.scopes), len(self.places)
		)
		return tree

	def _lookup(self, name: str) -> Optional[PlaceDecl]:
		for node in reversed(self._stack):
			pid = node._bindings.get(name)
			if pid is not None:
				return self.places[pid]
		return None

	def _use(self, name: str, point: int, stmt: ir.Stmt) -> PlaceUse:
		decl = self._lookup(name)
		if decl is not None:
			return PlaceUse(decl.id)
		closed = self._closed.get(name)
		if closed is not None:
			if self.places[closed].holds_ref:
				return PlaceUse(closed, escaped=True)
			raise MalformedProgram(
				f"place '{name}' used after its scope ended", point=point, place=name, unit=self.unit.name, span=stmt.loc
			)
		raise MalformedProgram(
			f"place '{name}' is not declared", point=point, place=name, unit=self.unit.name, span=stmt.loc
		)

	def _declare(
		self,
		name: str,
		scope: ScopeNode,
		point: int,
		res: ResolvedStmt,
		*,
		mutable: bool = False,
		copy: bool = False,
		deferred: bool = False,
	) -> PlaceDecl:
		decl = PlaceDecl(
			id=len(self.places),
			name=name,
			scope_id=scope.id,
			decl_point=point,
			mutable=mutable,
			copy=copy,
			deferred=deferred,
		)
		self.places.append(decl)
		res.shadowed = scope._bindings.get(name)
		scope._bindings[name] = decl.id
		scope.places.append(decl.id)
		res.target = decl.id
		res.declares = True
		return decl

	def _assignable(self, name: str, scope: ScopeNode, point: int, res: ResolvedStmt) -> PlaceDecl:
		decl = self._lookup(name)
		if decl is not None and (decl.mutable or decl.deferred):
			res.target = decl.id
			return decl
		return self._declare(name, scope, point, res)

	def _kind_changes(self, place: PlaceId, is_ref: Optional[bool]) -> bool:
		known = self.places[place].is_ref
		return is_ref is not None and known is not None and known != is_ref

	def _mark(self, decl: PlaceDecl, is_ref: Optional[bool], point: int, stmt: ir.Stmt) -> None:
		"""Record what `decl` holds; an assignment of the other kind is a structural defect."""
		if is_ref is None:
			return
		if decl.is_ref is not None and decl.is_ref != is_ref:
			raise MalformedProgram(
				f"place '{decl.name}' holds both owned values and references",
				point=point,
				place=decl.name,
				unit=self.unit.name,
				span=stmt.loc,
			)
		decl.is_ref = is_ref

	def _resolve(self, stmt: ir.Stmt, res: ResolvedStmt, scope: ScopeNode) -> None:
		point = res.point
		operands = stmt.operands()
		if operands:
			res.source = self._use(operands[0], point, stmt)
		if isinstance(stmt, ir.Bind):
			kind: Optional[bool] = False
			if res.source is not None:
				kind = self.places[res.source.place].is_ref
			existing = scope._bindings.get(stmt.place)
			if existing is not None and not stmt.shadow and not self._kind_changes(existing, kind):
				res.target = existing
				decl = self.places[existing]
			else:
				decl = self._declare(stmt.place, scope, point, res, mutable=stmt.mutable, copy=stmt.copy)
				# a value bound over a reference (or the reverse) gets its own place
				res.rebinds = existing is not None and not stmt.shadow
			self._mark(decl, kind, point, stmt)
		elif isinstance(stmt, ir.Declare):
			self._declare(stmt.place, scope, point, res, mutable=stmt.mutable, copy=stmt.copy, deferred=True)
		elif isinstance(stmt, ir.Move):
			decl = self._assignable(stmt.dest, scope, point, res)
			self._mark(decl, self.places[res.source.place].is_ref, point, stmt)
		elif isinstance(stmt, (ir.BorrowShared, ir.BorrowExclusive)):
			decl = self._assignable(stmt.dest, scope, point, res)
			self._mark(decl, True, point, stmt)
		elif not isinstance(stmt, (ir.Read, ir.WriteThrough, ir.Consume)):
			raise MalformedProgram(
				f"unsupported statement {type(stmt).__name__}", point=point, unit=self.unit.name, span=stmt.loc
			)


def build_scope_tree(unit: ir.Unit) -> ScopeTree:
	"""Build the scope tree for `unit` (raises MalformedProgram / UnbalancedScope)."""
	return ScopeTreeBuilder(unit).build()


__all__ = [
	"PlaceId",
	"ScopeId",
	"PlaceDecl",
	"ScopeNode",
	"PlaceUse",
	"ResolvedStmt",
	"ScopeTree",
	"ScopeTreeBuilder",
	"build_scope_tree",
]
