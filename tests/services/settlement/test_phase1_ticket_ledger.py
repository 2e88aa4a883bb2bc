from __future__ import annotations

import random

import pytest

from jackpot_engine.settlement.constants import MAX_PARTICIPANTS, U64_MAX
from jackpot_engine.settlement.errors import ArithmeticOverflow
from jackpot_engine.settlement.fenwick import TicketLedger


def _naive_find(weights: list[int], target: int) -> int:
    running = 0
    for slot, weight in enumerate(weights, start=1):
        running += weight
        if running >= target:
            return slot
    return len(weights) + 1


def test_add_updates_prefix_sums_and_total() -> None:
    ledger = TicketLedger()
    ledger.add(1, 5)
    ledger.add(3, 7)
    ledger.add(200, 2)
    assert ledger.prefix_sum(1) == 5
    assert ledger.prefix_sum(2) == 5
    assert ledger.prefix_sum(3) == 12
    assert ledger.total() == 14
    assert ledger.slot_weight(3) == 7
    assert ledger.capacity == MAX_PARTICIPANTS


def test_find_prefix_returns_first_slot_reaching_target() -> None:
    ledger = TicketLedger(capacity=8)
    for slot, weight in enumerate([3, 0, 4, 1, 0, 0, 2, 5], start=1):
        if weight:
            ledger.add(slot, weight)
    assert ledger.find_prefix(1) == 1
    assert ledger.find_prefix(3) == 1
    assert ledger.find_prefix(4) == 3
    assert ledger.find_prefix(7) == 3
    assert ledger.find_prefix(8) == 4
    assert ledger.find_prefix(9) == 7
    assert ledger.find_prefix(15) == 8


def test_find_prefix_past_total_is_out_of_range() -> None:
    ledger = TicketLedger(capacity=4)
    ledger.add(2, 3)
    assert ledger.find_prefix(4) == 5


def test_random_add_subtract_sequences_keep_total_in_sync() -> None:
    rng = random.Random(7)
    ledger = TicketLedger()
    weights = [0] * MAX_PARTICIPANTS
    tracked_total = 0
    for _ in range(2000):
        slot = rng.randint(1, MAX_PARTICIPANTS)
        if weights[slot - 1] and rng.random() < 0.3:
            removed = weights[slot - 1]
            ledger.subtract(slot, removed)
            weights[slot - 1] = 0
            tracked_total -= removed
        else:
            delta = rng.randint(1, 50)
            ledger.add(slot, delta)
            weights[slot - 1] += delta
            tracked_total += delta
        assert ledger.total() == tracked_total
    for target in range(1, tracked_total + 1, 37):
        assert ledger.find_prefix(target) == _naive_find(weights, target)


def test_subtract_underflow_leaves_tree_untouched() -> None:
    ledger = TicketLedger(capacity=16)
    ledger.add(5, 4)
    ledger.add(6, 1)
    before = [ledger.prefix_sum(i) for i in range(17)]
    with pytest.raises(ArithmeticOverflow, match="MATH_OVERFLOW"):
        ledger.subtract(5, 5)
    assert [ledger.prefix_sum(i) for i in range(17)] == before


def test_add_overflow_leaves_tree_untouched() -> None:
    ledger = TicketLedger(capacity=8)
    ledger.add(8, U64_MAX)
    with pytest.raises(ArithmeticOverflow):
        ledger.add(1, 1)
    assert ledger.total() == U64_MAX
    assert ledger.prefix_sum(1) == 0


def test_slot_bounds_are_enforced() -> None:
    ledger = TicketLedger(capacity=4)
    with pytest.raises(IndexError):
        ledger.add(0, 1)
    with pytest.raises(IndexError):
        ledger.add(5, 1)
    with pytest.raises(ValueError):
        TicketLedger(capacity=0)


def test_clear_zeroes_every_node() -> None:
    ledger = TicketLedger(capacity=4)
    ledger.add(1, 3)
    ledger.add(4, 9)
    ledger.clear()
    assert ledger.total() == 0
