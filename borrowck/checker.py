# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Borrow-check pass: ownership, borrows and lifetimes in one forward walk.

Scope:
- Operates on one unit at a time (a flat statement list with scope markers);
  units are straight-line, so a single forward pass visits every point once.
- The ownership tracker, borrow tracker and lifetime resolver share the walk
  because borrow and lifetime validity depend on ownership state at each point.
- Never stops at the first violation: every statement's checks run, the
  offending transition is applied, and the walk continues.
- Loan lifetimes: lexical by default (retired at the holder's scope exit);
  with `precise_borrow_extents`, also retired right after the holder's last use.

Structural defects (undeclared places, unbalanced scopes) and the size guard
are fatal and raised before any diagnostic is produced.
"""

from __future__ import annotations

import logging
import os
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from borrowck import ir
from borrowck.config import CheckerConfig
from borrowck.core.diagnostics import Diagnostic, DiagnosticKind, DiagnosticSink
from borrowck.core.errors import BorrowckError, UnitTooLarge
from borrowck.lifetimes import LifetimeResolver
from borrowck.liveness import compute_ref_liveness
from borrowck.loans import Borrow, BorrowKind, BorrowTracker
from borrowck.ownership import OwnershipState, OwnershipTracker
from borrowck.scopes import PlaceId, PlaceUse, ResolvedStmt, ScopeId, ScopeTree, build_scope_tree

logger = logging.getLogger(__name__)


@dataclass
class UnitResult:
	"""Outcome for one unit: diagnostics, or the fatal error that stopped it."""

	unit: str
	diagnostics: List[Diagnostic] = field(default_factory=list)
	error: Optional[BorrowckError] = None
	borrows: List[Borrow] = field(default_factory=list)
	# states[p] = ownership state of every live place *after* point p (by name#id).
	states: Optional[List[Dict[str, OwnershipState]]] = None

	@property
	def accepted(self) -> bool:
		return self.error is None and not self.diagnostics

	def of_kind(self, kind: DiagnosticKind) -> List[Diagnostic]:
		return [d for d in self.diagnostics if d.kind is kind]


@dataclass
class BorrowChecker:
	"""
	Checker for a single unit. Not reusable across threads; `check_unit` resets
	all per-unit state, so calling it twice on the same unit gives the same result.
	"""

	config: CheckerConfig = field(default_factory=CheckerConfig)
	record_states: bool = False
	diagnostics: List[Diagnostic] = field(default_factory=list)
	_tree: Optional[ScopeTree] = field(init=False, default=None, repr=False)
	_sink: DiagnosticSink = field(init=False, default_factory=DiagnosticSink, repr=False)
	_own: Optional[OwnershipTracker] = field(init=False, default=None, repr=False)
	_loans: Optional[BorrowTracker] = field(init=False, default=None, repr=False)
	_life: Optional[LifetimeResolver] = field(init=False, default=None, repr=False)
	_states: Optional[List[Dict[str, OwnershipState]]] = field(init=False, default=None, repr=False)

	def check_unit(self, unit: ir.Unit) -> List[Diagnostic]:
		"""Check `unit`; returns the ordered diagnostics (empty = accepted)."""
		limit = self.config.max_statements
		if limit is not None and len(unit.statements) > limit:
			raise UnitTooLarge(
				f"unit has {len(unit.statements)} statements; the limit is {limit}",
				unit=unit.name,
			)
		tree = build_scope_tree(unit)
		self._tree = tree
		self._sink = DiagnosticSink()
		self._own = OwnershipTracker(tree, self._sink)
		self._loans = BorrowTracker(tree, self._sink)
		liveness = compute_ref_liveness(tree) if self.config.precise_borrow_extents else None
		self._life = LifetimeResolver(tree, self._sink, self._loans, liveness)
		self._states = [] if self.record_states else None
		logger.debug(
			"checking unit %s (%d statements, %s extents)",
			unit.name,
			len(unit.statements),
			"precise" if liveness is not None else "lexical",
		)

		for res in tree.resolved:
			self._step(res)
			if liveness is not None:
				self._retire_dead_borrows(res.point)
			self._snapshot()
		self._exit_scope(tree.root.id, unit.end_point)

		self.diagnostics = list(self._sink)
		logger.debug("unit %s: %d diagnostic(s)", unit.name, len(self.diagnostics))
		return self.diagnostics

	@property
	def tree(self) -> Optional[ScopeTree]:
		return self._tree

	@property
	def borrows(self) -> List[Borrow]:
		return list(self._loans.borrows) if self._loans is not None else []

	@property
	def lifetimes(self) -> Optional[LifetimeResolver]:
		return self._life

	@property
	def states(self) -> Optional[List[Dict[str, OwnershipState]]]:
		return self._states

	def _name(self, place: PlaceId) -> str:
		return self._tree.place(place).name

	def _snapshot(self) -> None:
		if self._states is None:
			return
		self._states.append(
			{f"{self._name(pid)}#{pid}": st for pid, st in self._own.live_states().items()}
		)

	def _step(self, res: ResolvedStmt) -> None:
		stmt = res.stmt
		if isinstance(stmt, ir.ScopeEnter):
			return
		if isinstance(stmt, ir.ScopeExit):
			self._exit_scope(res.closes, res.point, res)
		elif isinstance(stmt, ir.Bind):
			self._bind(res, stmt)
		elif isinstance(stmt, ir.Declare):
			self._declare_target(res)
		elif isinstance(stmt, ir.Move):
			self._move(res, stmt)
		elif isinstance(stmt, ir.BorrowShared):
			self._borrow(res, BorrowKind.SHARED)
		elif isinstance(stmt, ir.BorrowExclusive):
			self._borrow(res, BorrowKind.EXCLUSIVE)
		elif isinstance(stmt, ir.Read):
			self._read(res)
		elif isinstance(stmt, ir.WriteThrough):
			self._write(res)
		elif isinstance(stmt, ir.Consume):
			if self._live_use(res.source, res):
				self._consume_source(res.source.place, res, "consume")
				# the callee cannot retain a reference past the call
				self._loans.retire_held_by(res.source.place, res.point + 1)

	# Shared helpers

	def _live_use(self, use: PlaceUse, res: ResolvedStmt) -> bool:
		"""Route escaped uses to the lifetime resolver; True for ordinary uses."""
		if use.escaped:
			self._life.check_escaped_use(use.place, res.point, res.stmt.loc)
			return False
		return True

	def _consume_source(self, place: PlaceId, res: ResolvedStmt, action: str) -> None:
		"""Move the value out of `place` (moves, move-binds, consumes)."""
		if self._own.require_owned(place, res.point, action, res.stmt.loc):
			active = self._loans.active_on(place)
			if active and not self._own.record(place).copy:
				name = self._name(place)
				self._sink.emit(
					DiagnosticKind.MOVE_WHILE_BORROWED,
					f"cannot move out of '{name}' while it is borrowed",
					res.point,
					place=name,
					borrow=active[0].id,
					span=res.stmt.loc,
					notes=self._loans.notes_for(active[0]),
				)
		self._own.move_out(place)

	def _drop_place(self, place: PlaceId, point: int, res: Optional[ResolvedStmt] = None) -> None:
		"""Invalidate `place`: release what it holds, then check what borrows it."""
		span = res.stmt.loc if res is not None else None
		self._loans.retire_held_by(place, point)
		self._life.check_drop(place, point, span)
		self._own.drop(place)

	def _overwrite(self, place: PlaceId, res: ResolvedStmt) -> None:
		"""The old value of `place` is replaced: it must not be borrowed."""
		active = self._loans.active_on(place)
		if active:
			name = self._name(place)
			self._sink.emit(
				DiagnosticKind.WRITE_WHILE_BORROWED,
				f"cannot assign to '{name}' while it is borrowed",
				res.point,
				place=name,
				borrow=active[0].id,
				span=res.stmt.loc,
				notes=self._loans.notes_for(active[0]),
			)
		self._loans.retire_held_by(place, res.point)

	def _borrow_notes(self, place: PlaceId) -> tuple[str, ...]:
		active = self._loans.active_on(place)
		if not active:
			return ()
		return self._loans.notes_for(active[0]) + (f"'{self._name(place)}' is still borrowed here",)

	def _declare_target(self, res: ResolvedStmt) -> None:
		if res.shadowed is not None:
			self._drop_place(res.shadowed, res.point, res)
		self._own.declare(res.target)

	def _assign_target(self, res: ResolvedStmt) -> None:
		"""Make `res.target` own a new value (declaration or assignment)."""
		if res.declares:
			self._declare_target(res)
			self._own.initialize(res.target)
			return
		self._overwrite(res.target, res)
		self._own.assign(res.target, res.point, res.stmt.loc)

	# Statements

	def _bind(self, res: ResolvedStmt, stmt: ir.Bind) -> None:
		src_is_ref = False
		if res.source is not None and self._live_use(res.source, res):
			self._consume_source(res.source.place, res, "move")
			src_is_ref = self._tree.place(res.source.place).holds_ref
		notes: tuple[str, ...] = ()
		if res.declares:
			if res.rebinds and self._own.state_of(res.shadowed) is OwnershipState.OWNED:
				self._own.report_duplicate(res.shadowed, res.point, stmt.loc, self._borrow_notes(res.shadowed))
			self._declare_target(res)
		elif self._own.state_of(res.target) is OwnershipState.OWNED:
			# duplicate binding: the old value is dropped before rebinding
			notes = self._borrow_notes(res.target)
			self._loans.retire_held_by(res.target, res.point)
		self._own.bind(
			res.target,
			res.point,
			mutable=stmt.mutable,
			copy=stmt.copy,
			fresh=res.declares,
			span=stmt.loc,
			notes=notes,
		)
		if src_is_ref:
			self._loans.transfer(res.source.place, res.target)

	def _move(self, res: ResolvedStmt, stmt: ir.Move) -> None:
		src_is_ref = False
		if self._live_use(res.source, res):
			self._consume_source(res.source.place, res, "move")
			src_is_ref = self._tree.place(res.source.place).holds_ref
		self._assign_target(res)
		if src_is_ref:
			self._loans.transfer(res.source.place, res.target)

	def _borrow(self, res: ResolvedStmt, kind: BorrowKind) -> None:
		referent = res.source.place
		usable = self._live_use(res.source, res)
		if usable:
			self._own.require_owned(referent, res.point, "borrow", res.stmt.loc)
			if kind is BorrowKind.EXCLUSIVE and not self._own.is_mutable(referent):
				name = self._name(referent)
				self._sink.emit(
					DiagnosticKind.MUTABILITY_VIOLATION,
					f"cannot borrow '{name}' as exclusive: it is not declared mutable",
					res.point,
					place=name,
					span=res.stmt.loc,
				)
		self._assign_target(res)
		if usable:
			self._loans.borrow(referent, kind, res.target, res.point, res.stmt.loc)

	def _read(self, res: ResolvedStmt) -> None:
		if self._live_use(res.source, res):
			self._own.require_owned(res.source.place, res.point, "read", res.stmt.loc)

	def _write(self, res: ResolvedStmt) -> None:
		place = res.source.place
		if not self._live_use(res.source, res):
			return
		if not self._own.require_owned(place, res.point, "write to", res.stmt.loc):
			return
		name = self._name(place)
		is_ref = self._tree.place(place).holds_ref
		if not is_ref and not self._own.is_mutable(place):
			self._sink.emit(
				DiagnosticKind.MUTABILITY_VIOLATION,
				f"cannot write to '{name}': it is not declared mutable",
				res.point,
				place=name,
				span=res.stmt.loc,
			)
		# a reference that is itself borrowed (reborrowed) is frozen like any owner
		active = self._loans.active_on(place)
		if active:
			verb = "write through" if is_ref else "write to"
			self._sink.emit(
				DiagnosticKind.WRITE_WHILE_BORROWED,
				f"cannot {verb} '{name}' while it is borrowed",
				res.point,
				place=name,
				borrow=active[0].id,
				span=res.stmt.loc,
				notes=self._loans.notes_for(active[0]),
			)
			return
		if is_ref:
			self._write_through_ref(place, name, res)

	def _write_through_ref(self, holder: PlaceId, name: str, res: ResolvedStmt) -> None:
		for b in self._loans.held_by(holder):
			if b.kind is BorrowKind.SHARED:
				self._sink.emit(
					DiagnosticKind.MUTABILITY_VIOLATION,
					f"cannot write through '{name}': it is a shared borrow",
					res.point,
					place=name,
					borrow=b.id,
					span=res.stmt.loc,
					notes=self._loans.notes_for(b),
				)
				continue
			others = [o for o in self._loans.active_on(b.referent) if o is not b]
			if others:
				self._sink.emit(
					DiagnosticKind.CONFLICTING_BORROW,
					f"cannot write through '{name}': '{self._name(b.referent)}' has other active borrows",
					res.point,
					place=name,
					borrow=others[0].id,
					span=res.stmt.loc,
					notes=self._loans.notes_for(others[0]),
				)

	# Retirement

	def _exit_scope(self, scope_id: ScopeId, point: int, res: Optional[ResolvedStmt] = None) -> None:
		"""Drop every place of the scope in reverse declaration order."""
		node = self._tree.scope(scope_id)
		live = [pid for pid in node.places if self._own.state_of(pid) is not OwnershipState.DROPPED]
		# holders of this scope die together with their referents
		for pid in live:
			self._loans.retire_held_by(pid, point)
		for pid in reversed(live):
			self._drop_place(pid, point, res)

	def _retire_dead_borrows(self, point: int) -> None:
		liveness = self._life.liveness
		for b in self._loans.active():
			if not liveness.live_after(b.holder, point):
				self._loans.retire(b, point + 1)


def analyze_unit(
	unit: ir.Unit,
	config: Optional[CheckerConfig] = None,
	*,
	record_states: bool = False,
) -> UnitResult:
	"""
	Check one unit with a fresh checker.

	Fatal errors are returned in `UnitResult.error` (with no diagnostics)
	instead of being raised.
	"""
	checker = BorrowChecker(config=config or CheckerConfig(), record_states=record_states)
	try:
		diags = checker.check_unit(unit)
	except BorrowckError as exc:
		logger.debug("unit %s rejected: %s", unit.name, exc.reason_code)
		return UnitResult(unit=unit.name, error=exc)
	return UnitResult(unit=unit.name, diagnostics=diags, borrows=checker.borrows, states=checker.states)


def analyze_program(
	program: ir.Program,
	config: Optional[CheckerConfig] = None,
	*,
	jobs: Optional[int] = None,
) -> List[UnitResult]:
	"""
	Check every unit of `program`; results come back in unit order.

	Units share nothing, so with more than one worker each unit is analyzed by
	its own checker on a thread pool.
	"""
	config = config or CheckerConfig()
	workers = jobs or config.jobs or os.cpu_count() or 1
	if workers <= 1 or len(program.units) <= 1:
		return [analyze_unit(u, config) for u in program.units]
	with ThreadPoolExecutor(max_workers=min(workers, len(program.units))) as executor:
		futures = [executor.submit(analyze_unit, u, config) for u in program.units]
		return [f.result() for f in futures]


__all__ = ["BorrowChecker", "UnitResult", "analyze_unit", "analyze_program"]
