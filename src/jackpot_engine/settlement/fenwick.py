"""Fixed-capacity Fenwick tree mapping participant slots to ticket weight."""

from __future__ import annotations

from .constants import MAX_PARTICIPANTS
from .errors import checked_add, checked_sub


class TicketLedger:
    """1-indexed binary indexed tree over ``capacity`` participant slots.

    Updates and prefix lookups run in O(log capacity). Updates are staged and
    only written once every touched node passed its checked arithmetic, so a
    failed ``add``/``subtract`` leaves the tree exactly as it was.
    """

    __slots__ = ("capacity", "_nodes")

    def __init__(self, capacity: int = MAX_PARTICIPANTS) -> None:
        if capacity <= 0:
            raise ValueError("capacity must be > 0")
        self.capacity = capacity
        self._nodes = [0] * (capacity + 1)

    def add(self, index: int, delta: int) -> None:
        self._apply(index, delta, checked_add)

    def subtract(self, index: int, delta: int) -> None:
        self._apply(index, delta, checked_sub)

    def prefix_sum(self, index: int) -> int:
        if index < 0 or index > self.capacity:
            raise IndexError(f"slot {index} outside 0..{self.capacity}")
        total = 0
        i = index
        while i > 0:
            total += self._nodes[i]
            i -= i & -i
        return total

    def total(self) -> int:
        return self.prefix_sum(self.capacity)

    def slot_weight(self, index: int) -> int:
        return self.prefix_sum(index) - self.prefix_sum(index - 1)

    def find_prefix(self, target: int) -> int:
        """Return the first slot whose prefix sum is >= ``target``.

        Callers must pass ``1 <= target <= total()``; any other target yields
        ``capacity + 1`` (or a slot whose range does not contain the target)
        and the caller is expected to reject it.
        """
        step = 1
        while step <= self.capacity:
            step <<= 1
        idx = 0
        cur = 0
        while step > 0:
            nxt = idx + step
            if nxt <= self.capacity:
                candidate = checked_add(cur, self._nodes[nxt])
                if candidate < target:
                    idx = nxt
                    cur = candidate
            step >>= 1
        return idx + 1

    def clear(self) -> None:
        for i in range(len(self._nodes)):
            self._nodes[i] = 0

    def _apply(self, index: int, delta: int, op) -> None:
        if index <= 0 or index > self.capacity:
            raise IndexError(f"slot {index} outside 1..{self.capacity}")
        staged: list[tuple[int, int]] = []
        i = index
        while i <= self.capacity:
            staged.append((i, op(self._nodes[i], delta)))
            i += i & -i
        for node, value in staged:
            self._nodes[node] = value
