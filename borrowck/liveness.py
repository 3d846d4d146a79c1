# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Last-use analysis for reference places (precise borrow extents).

Units are straight-line, so liveness reduces to "the last point at which a
place is used". A reborrow `z = &y` keeps `y` alive for as long as `z` is
alive, so last uses are propagated backwards along reborrow edges. Moves of a
reference need no edge: the borrows themselves move to the new holder.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict

from borrowck import ir
from borrowck.scopes import PlaceId, ScopeTree


@dataclass
class RefLiveness:
	"""last_use[p] = last program point that uses reference place p."""

	last_use: Dict[PlaceId, int] = field(default_factory=dict)

	def live_after(self, place: PlaceId, point: int) -> bool:
		return self.last_use.get(place, -1) > point


def compute_ref_liveness(tree: ScopeTree) -> RefLiveness:
	live = RefLiveness()
	for res in tree.resolved:
		if res.source is None:
			continue
		pid = res.source.place
		if tree.place(pid).holds_ref:
			live.last_use[pid] = max(live.last_use.get(pid, -1), res.point)
	for res in reversed(tree.resolved):
		if not isinstance(res.stmt, (ir.BorrowShared, ir.BorrowExclusive)):
			continue
		if res.source is None or res.target is None:
			continue
		src = res.source.place
		if not tree.place(src).holds_ref:
			continue
		dst_last = live.last_use.get(res.target)
		if dst_last is not None and dst_last > live.last_use.get(src, -1):
			live.last_use[src] = dst_last
	return live


__all__ = ["RefLiveness", "compute_ref_liveness"]
