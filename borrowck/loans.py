# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Borrow tracker: live borrow sets per place.

Each referent place owns a `BorrowSet`; each borrow is also indexed by its
holder (the place the reference was stored into) because retirement is
driven by the holder: it dies with the holder's scope, when the holder is
overwritten, or (precise extents) after the holder's last use.

The exclusivity invariant is enforced on insertion and never relaxed during
error recovery: a conflicting borrow is reported and simply not added.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Dict, Iterator, List, Optional

from borrowck.core.diagnostics import DiagnosticKind, DiagnosticSink
from borrowck.core.span import Span
from borrowck.scopes import PlaceId, ScopeId, ScopeTree


class BorrowKind(Enum):
	SHARED = auto()
	EXCLUSIVE = auto()

	def describe(self) -> str:
		return "shared" if self is BorrowKind.SHARED else "exclusive"


@dataclass(eq=False)
class Borrow:
	"""A reference to `referent` held by `holder`, created at `created_at`."""

	id: int
	referent: PlaceId
	kind: BorrowKind
	created_at: int
	holder: PlaceId
	holder_scope: ScopeId
	origin_span: Span = field(default_factory=Span)
	retired_at: Optional[int] = None
	dangling: bool = False

	@property
	def active(self) -> bool:
		return self.retired_at is None

	@property
	def valid_extent(self) -> Optional[range]:
		"""Half-open range of points where the borrow was usable (None while active)."""
		if self.retired_at is None:
			return None
		return range(self.created_at, self.retired_at)


@dataclass
class BorrowSet:
	"""Active borrows of one place: empty, N shared, or exactly one exclusive."""

	borrows: List[Borrow] = field(default_factory=list)

	def __iter__(self) -> Iterator[Borrow]:
		return iter(self.borrows)

	def __len__(self) -> int:
		return len(self.borrows)

	def is_empty(self) -> bool:
		return not self.borrows

	def exclusive(self) -> Optional[Borrow]:
		for b in self.borrows:
			if b.kind is BorrowKind.EXCLUSIVE:
				return b
		return None

	def conflict_for(self, kind: BorrowKind) -> Optional[Borrow]:
		"""Return an active borrow that forbids adding a new borrow of `kind`."""
		if kind is BorrowKind.SHARED:
			return self.exclusive()
		return self.borrows[0] if self.borrows else None

	def add(self, borrow: Borrow) -> None:
		self.borrows.append(borrow)
		if not self.is_valid():
			self.borrows.pop()
			raise AssertionError("borrow set invariant violated (borrow tracker bug)")

	def remove(self, borrow: Borrow) -> None:
		self.borrows.remove(borrow)

	def is_valid(self) -> bool:
		n_excl = sum(1 for b in self.borrows if b.kind is BorrowKind.EXCLUSIVE)
		return n_excl == 0 or (n_excl == 1 and len(self.borrows) == 1)


class BorrowTracker:
	"""Per-unit borrow state; one instance per checker run."""

	def __init__(self, tree: ScopeTree, sink: DiagnosticSink) -> None:
		self.tree = tree
		self.sink = sink
		self.borrows: List[Borrow] = []
		self._sets: Dict[PlaceId, BorrowSet] = {}
		self._held: Dict[PlaceId, List[Borrow]] = {}

	def set_for(self, place: PlaceId) -> BorrowSet:
		return self._sets.setdefault(place, BorrowSet())

	def active_on(self, place: PlaceId) -> List[Borrow]:
		return list(self.set_for(place))

	def held_by(self, holder: PlaceId) -> List[Borrow]:
		return list(self._held.get(holder, []))

	def ever_held_by(self, holder: PlaceId) -> List[Borrow]:
		return [b for b in self.borrows if b.holder == holder]

	def active(self) -> List[Borrow]:
		return [b for b in self.borrows if b.active]

	def borrow(
		self,
		referent: PlaceId,
		kind: BorrowKind,
		holder: PlaceId,
		point: int,
		span: Span | None = None,
	) -> Optional[Borrow]:
		"""
		Take a borrow of `referent`, enforcing shared/exclusive coexistence.

		On conflict a ConflictingBorrow diagnostic is emitted and None returned;
		the holder then holds nothing.
		"""
		bset = self.set_for(referent)
		conflict = bset.conflict_for(kind)
		if conflict is not None:
			ref_name = self.tree.place(referent).name
			holder_name = self.tree.place(holder).name
			if kind is BorrowKind.SHARED:
				msg = f"cannot borrow '{ref_name}' as shared while it is exclusively borrowed"
			else:
				msg = f"cannot borrow '{ref_name}' as exclusive while it is already borrowed"
			self.sink.emit(
				DiagnosticKind.CONFLICTING_BORROW,
				msg,
				point,
				place=holder_name,
				borrow=conflict.id,
				span=span,
				notes=self.notes_for(conflict),
			)
			return None
		b = Borrow(
			id=len(self.borrows),
			referent=referent,
			kind=kind,
			created_at=point,
			holder=holder,
			holder_scope=self.tree.place(holder).scope_id,
			origin_span=span or Span(),
		)
		self.borrows.append(b)
		bset.add(b)
		self._held.setdefault(holder, []).append(b)
		return b

	def retire(self, borrow: Borrow, point: int) -> None:
		if not borrow.active:
			return
		borrow.retired_at = point
		self.set_for(borrow.referent).remove(borrow)
		held = self._held.get(borrow.holder)
		if held is not None and borrow in held:
			held.remove(borrow)

	def retire_held_by(self, holder: PlaceId, point: int) -> List[Borrow]:
		retired = self.held_by(holder)
		for b in retired:
			self.retire(b, point)
		return retired

	def transfer(self, src_holder: PlaceId, dst_holder: PlaceId) -> None:
		"""Move every borrow held by `src_holder` into `dst_holder` (reference moved)."""
		if src_holder == dst_holder:
			return
		moved = self._held.pop(src_holder, [])
		scope = self.tree.place(dst_holder).scope_id
		for b in moved:
			b.holder = dst_holder
			b.holder_scope = scope
		self._held.setdefault(dst_holder, []).extend(moved)

	def notes_for(self, borrow: Borrow) -> tuple[str, ...]:
		ref_name = self.tree.place(borrow.referent).name
		holder_name = self.tree.place(borrow.holder).name
		return (
			f"{borrow.kind.describe()} borrow of '{ref_name}' created at point {borrow.created_at}",
			f"borrow held by '{holder_name}'",
		)


__all__ = ["BorrowKind", "Borrow", "BorrowSet", "BorrowTracker"]
