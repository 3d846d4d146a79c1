# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Lifetime resolver: a borrow must not outlive the scope of its referent.

Statically, `valid_extent(b) ⊆ lifetime(referent)` holds when the referent's
scope is an ancestor of (or equal to) the scope of every place that uses or
retains the borrow. Dynamically the checker asks two questions:

  * a place is being dropped: is any borrow of it still held elsewhere?
  * an escaped reference is being used: was its dangling borrow reported?

Each offending borrow is reported once, as DanglingReference on the holder.
"""

from __future__ import annotations

from typing import Optional, Set

from borrowck.core.diagnostics import DiagnosticKind, DiagnosticSink
from borrowck.core.span import Span
from borrowck.liveness import RefLiveness
from borrowck.loans import Borrow, BorrowTracker
from borrowck.scopes import PlaceId, ScopeTree


class LifetimeResolver:
	def __init__(
		self,
		tree: ScopeTree,
		sink: DiagnosticSink,
		borrows: BorrowTracker,
		liveness: Optional[RefLiveness] = None,
	) -> None:
		self.tree = tree
		self.sink = sink
		self.borrows = borrows
		self.liveness = liveness
		self._escape_reported: Set[PlaceId] = set()

	def referent_lifetime(self, borrow: Borrow) -> range:
		decl = self.tree.place(borrow.referent)
		return range(decl.decl_point, self.tree.exit_point(decl.scope_id))

	def required_extent(self, borrow: Borrow) -> range:
		"""
		Points over which the borrow must stay valid for its holder.

		Lexical: until the holder's scope exits. Precise: until just after the
		holder's last use (or just after creation when never used).
		"""
		if self.liveness is not None:
			last = self.liveness.last_use.get(borrow.holder, borrow.created_at)
			return range(borrow.created_at, max(last, borrow.created_at) + 1)
		return range(borrow.created_at, self.tree.exit_point(borrow.holder_scope))

	def extent_of(self, borrow: Borrow) -> range:
		"""Actual extent once retired; the required extent while still active."""
		if borrow.valid_extent is not None:
			return borrow.valid_extent
		return self.required_extent(borrow)

	def extent_within(self, borrow: Borrow) -> bool:
		"""True when the borrow's required extent stays inside its referent's lifetime."""
		referent_scope = self.tree.place(borrow.referent).scope_id
		if self.tree.is_ancestor(referent_scope, borrow.holder_scope):
			return True
		extent = self.required_extent(borrow)
		life = self.referent_lifetime(borrow)
		return extent.start >= life.start and extent.stop <= life.stop

	def check_drop(self, place: PlaceId, point: int, span: Span | None = None) -> int:
		"""
		`place` is being dropped at `point`; every borrow of it that is still
		active outlives its referent. Reports and retires them; returns the count.
		"""
		dangling = self.borrows.active_on(place)
		ref_name = self.tree.place(place).name
		for b in dangling:
			holder = self.tree.place(b.holder)
			b.dangling = True
			self.sink.emit(
				DiagnosticKind.DANGLING_REFERENCE,
				f"'{ref_name}' does not live long enough: still borrowed by '{holder.name}'",
				point,
				place=holder.name,
				borrow=b.id,
				span=span,
				notes=self.borrows.notes_for(b)
				+ (f"'{ref_name}' dropped here while '{holder.name}' is still alive",),
			)
			self.borrows.retire(b, point)
		return len(dangling)

	def check_escaped_use(self, holder: PlaceId, point: int, span: Span | None = None) -> None:
		"""A reference place is used after its own scope closed."""
		if holder in self._escape_reported:
			return
		self._escape_reported.add(holder)
		history = self.borrows.ever_held_by(holder)
		if any(b.dangling for b in history):
			return
		decl = self.tree.place(holder)
		notes: tuple[str, ...] = (
			f"'{decl.name}' went out of scope at point {self.tree.exit_point(decl.scope_id)}",
		)
		borrow_id = None
		if history:
			last = history[-1]
			last.dangling = True
			borrow_id = last.id
			notes = self.borrows.notes_for(last) + notes
		self.sink.emit(
			DiagnosticKind.DANGLING_REFERENCE,
			f"reference '{decl.name}' used after the scope it was declared in ended",
			point,
			place=decl.name,
			borrow=borrow_id,
			span=span,
			notes=notes,
		)


__all__ = ["LifetimeResolver"]
