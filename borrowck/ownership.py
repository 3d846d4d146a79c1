# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Ownership tracker: a small state machine per place.

    Uninitialized --bind--> Owned --move--> MovedOut --rebind--> Owned
          any --scope exit / shadow--> Dropped (terminal)

Every check reports into the shared sink and then applies the transition
anyway, so later statements are checked against a consistent state.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, auto
from typing import Dict, Optional, Tuple

from borrowck.core.diagnostics import DiagnosticKind, DiagnosticSink
from borrowck.core.span import Span
from borrowck.scopes import PlaceId, ScopeTree


class OwnershipState(Enum):
	UNINITIALIZED = auto()
	OWNED = auto()
	MOVED_OUT = auto()
	DROPPED = auto()


@dataclass
class OwnershipRecord:
	"""Current state of a place plus the binding flags in force."""

	state: OwnershipState = OwnershipState.UNINITIALIZED
	mutable: bool = False
	copy: bool = False


class OwnershipTracker:
	"""Per-unit ownership state; one instance per checker run."""

	def __init__(self, tree: ScopeTree, sink: DiagnosticSink) -> None:
		self.tree = tree
		self.sink = sink
		self._records: Dict[PlaceId, OwnershipRecord] = {}

	def record(self, place: PlaceId) -> OwnershipRecord:
		rec = self._records.get(place)
		if rec is None:
			decl = self.tree.place(place)
			rec = OwnershipRecord(mutable=decl.mutable, copy=decl.copy)
			self._records[place] = rec
		return rec

	def state_of(self, place: PlaceId) -> OwnershipState:
		return self.record(place).state

	def is_mutable(self, place: PlaceId) -> bool:
		return self.record(place).mutable

	def live_states(self) -> Dict[PlaceId, OwnershipState]:
		return {pid: rec.state for pid, rec in self._records.items() if rec.state is not OwnershipState.DROPPED}

	def declare(self, place: PlaceId) -> None:
		decl = self.tree.place(place)
		self._records[place] = OwnershipRecord(mutable=decl.mutable, copy=decl.copy)

	def require_owned(self, place: PlaceId, point: int, action: str, span: Span | None = None) -> bool:
		"""
		Check that `place` currently owns its value.

		`action` is a verb for the message ("read", "move", "borrow", ...).
		Returns False (after reporting) when the place is moved-out or
		uninitialized.
		"""
		state = self.state_of(place)
		name = self.tree.place(place).name
		if state is OwnershipState.MOVED_OUT:
			self.sink.emit(
				DiagnosticKind.USE_AFTER_MOVE,
				f"cannot {action} '{name}': value was moved out",
				point,
				place=name,
				span=span,
			)
			return False
		if state is OwnershipState.UNINITIALIZED:
			self.sink.emit(
				DiagnosticKind.USE_OF_UNINITIALIZED,
				f"cannot {action} '{name}': place is not initialized",
				point,
				place=name,
				span=span,
			)
			return False
		return True

	def move_out(self, place: PlaceId) -> None:
		rec = self.record(place)
		if rec.copy and rec.state is OwnershipState.OWNED:
			return
		rec.state = OwnershipState.MOVED_OUT

	def bind(
		self,
		place: PlaceId,
		point: int,
		*,
		mutable: bool,
		copy: bool,
		fresh: bool,
		span: Span | None = None,
		notes: Tuple[str, ...] = (),
	) -> bool:
		"""
		Apply a `Bind` to `place`.

		A fresh place goes Uninitialized -> Owned. Reusing a place of the current
		scope is a redeclaration when its value is gone, and a DuplicateBinding
		when it still owns one (recovery: the old value is dropped and the place
		owns the new one). Returns True when the old value was overwritten.
		"""
		rec = self.record(place)
		clobbered = False
		if not fresh and rec.state is OwnershipState.OWNED:
			self.report_duplicate(place, point, span, notes)
			clobbered = True
		rec.state = OwnershipState.OWNED
		rec.mutable = mutable
		rec.copy = copy
		return clobbered

	def report_duplicate(
		self,
		place: PlaceId,
		point: int,
		span: Span | None = None,
		notes: Tuple[str, ...] = (),
	) -> None:
		"""`place` still owns a value and its name is bound again in the same scope."""
		decl = self.tree.place(place)
		self.sink.emit(
			DiagnosticKind.DUPLICATE_BINDING,
			f"'{decl.name}' is already bound in this scope",
			point,
			place=decl.name,
			span=span,
			notes=(f"previous binding declared at point {decl.decl_point}",) + tuple(notes),
		)

	def assign(self, place: PlaceId, point: int, span: Span | None = None) -> bool:
		"""
		Store a new value into an existing place (`dest = ...`).

		Assigning an initialized place requires it to be mutable; a place declared
		without initializer may be assigned once. Returns True when a previously
		owned value is overwritten (and so dropped).
		"""
		rec = self.record(place)
		if rec.state is not OwnershipState.UNINITIALIZED and not rec.mutable:
			name = self.tree.place(place).name
			self.sink.emit(
				DiagnosticKind.MUTABILITY_VIOLATION,
				f"cannot assign twice to immutable place '{name}'",
				point,
				place=name,
				span=span,
			)
		clobbered = rec.state is OwnershipState.OWNED
		rec.state = OwnershipState.OWNED
		return clobbered

	def initialize(self, place: PlaceId) -> None:
		self.record(place).state = OwnershipState.OWNED

	def drop(self, place: PlaceId) -> Optional[OwnershipState]:
		"""Make `place` terminal; returns the state it had (OWNED = value dropped)."""
		rec = self.record(place)
		prev = rec.state
		rec.state = OwnershipState.DROPPED
		return prev


__all__ = ["OwnershipState", "OwnershipRecord", "OwnershipTracker"]
