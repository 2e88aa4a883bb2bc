"""Lifecycle enums, transition tables and mutable settlement records."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, IntEnum

from .constants import (
    DEFAULT_ADDRESS_SALT,
    DEGEN_CANDIDATE_WINDOW,
    MAX_PARTICIPANTS,
    NO_CANDIDATE_RANK,
    NO_TOKEN_INDEX,
)
from .fenwick import TicketLedger


class RoundStatus(str, Enum):
    OPEN = "OPEN"
    LOCKED = "LOCKED"
    VRF_REQUESTED = "VRF_REQUESTED"
    SETTLED = "SETTLED"
    CLAIMED = "CLAIMED"
    CANCELLED = "CANCELLED"
    CLOSED = "CLOSED"


class DegenMode(str, Enum):
    NONE = "NONE"
    VRF_REQUESTED = "VRF_REQUESTED"
    VRF_READY = "VRF_READY"
    EXECUTING = "EXECUTING"
    CLAIMED = "CLAIMED"


class DegenClaimStatus(str, Enum):
    VRF_REQUESTED = "VRF_REQUESTED"
    VRF_READY = "VRF_READY"
    EXECUTING = "EXECUTING"
    CLAIMED_SWAPPED = "CLAIMED_SWAPPED"
    CLAIMED_FALLBACK = "CLAIMED_FALLBACK"


class FallbackReason(IntEnum):
    NONE = 0
    NO_VIABLE_ROUTE = 1
    TIMEOUT = 2
    CANDIDATES_EXHAUSTED = 3


ROUND_TRANSITIONS: dict[RoundStatus, frozenset[RoundStatus]] = {
    RoundStatus.OPEN: frozenset({RoundStatus.LOCKED, RoundStatus.CANCELLED}),
    RoundStatus.LOCKED: frozenset({RoundStatus.VRF_REQUESTED, RoundStatus.CANCELLED}),
    RoundStatus.VRF_REQUESTED: frozenset({RoundStatus.SETTLED, RoundStatus.CANCELLED}),
    RoundStatus.SETTLED: frozenset({RoundStatus.CLAIMED}),
    RoundStatus.CLAIMED: frozenset({RoundStatus.CLOSED}),
    RoundStatus.CANCELLED: frozenset({RoundStatus.CLOSED}),
    RoundStatus.CLOSED: frozenset(),
}

DEGEN_MODE_TRANSITIONS: dict[DegenMode, frozenset[DegenMode]] = {
    DegenMode.NONE: frozenset({DegenMode.VRF_REQUESTED}),
    DegenMode.VRF_REQUESTED: frozenset({DegenMode.VRF_READY}),
    DegenMode.VRF_READY: frozenset({DegenMode.EXECUTING, DegenMode.CLAIMED}),
    DegenMode.EXECUTING: frozenset({DegenMode.CLAIMED}),
    DegenMode.CLAIMED: frozenset(),
}

DEGEN_CLAIM_TRANSITIONS: dict[DegenClaimStatus, frozenset[DegenClaimStatus]] = {
    DegenClaimStatus.VRF_REQUESTED: frozenset({DegenClaimStatus.VRF_READY}),
    DegenClaimStatus.VRF_READY: frozenset({DegenClaimStatus.EXECUTING, DegenClaimStatus.CLAIMED_FALLBACK}),
    DegenClaimStatus.EXECUTING: frozenset({DegenClaimStatus.CLAIMED_SWAPPED, DegenClaimStatus.CLAIMED_FALLBACK}),
    DegenClaimStatus.CLAIMED_SWAPPED: frozenset(),
    DegenClaimStatus.CLAIMED_FALLBACK: frozenset(),
}

TERMINAL_ROUND_STATUSES = frozenset({RoundStatus.CLAIMED, RoundStatus.CANCELLED})


def _check_transition(table: dict, current: Enum, next_state: Enum) -> None:
    if next_state not in table.get(current, frozenset()):
        raise RuntimeError(f"Invalid transition {current.value} -> {next_state.value}")


@dataclass
class Round:
    round_id: int
    address: str
    salt: int = DEFAULT_ADDRESS_SALT
    status: RoundStatus = RoundStatus.OPEN
    start_ts: int = 0
    end_ts: int = 0
    first_deposit_ts: int | None = None
    total_pot: int = 0
    total_tickets: int = 0
    participant_count: int = 0
    ticket_ledger: TicketLedger = field(default_factory=TicketLedger)
    slots: list[str] = field(default_factory=list)
    randomness: bytes = b""
    winning_ticket: int = 0
    winner: str | None = None
    vrf_payer: str | None = None
    vrf_reimbursed: bool = False
    degen_mode: DegenMode = DegenMode.NONE

    def advance(self, next_status: RoundStatus) -> None:
        _check_transition(ROUND_TRANSITIONS, self.status, next_status)
        self.status = next_status

    def advance_degen(self, next_mode: DegenMode) -> None:
        _check_transition(DEGEN_MODE_TRANSITIONS, self.degen_mode, next_mode)
        self.degen_mode = next_mode

    def slot_owner(self, index: int) -> str | None:
        if index < 1 or index > len(self.slots):
            return None
        return self.slots[index - 1]

    @property
    def is_full(self) -> bool:
        return self.participant_count >= MAX_PARTICIPANTS

    def wipe(self) -> None:
        """Zero every field so a closed round cannot be read back as live."""
        self.start_ts = 0
        self.end_ts = 0
        self.first_deposit_ts = None
        self.total_pot = 0
        self.total_tickets = 0
        self.participant_count = 0
        self.ticket_ledger.clear()
        self.slots = []
        self.randomness = b""
        self.winning_ticket = 0
        self.winner = None
        self.vrf_payer = None
        self.vrf_reimbursed = False
        self.degen_mode = DegenMode.NONE


@dataclass
class Participant:
    round_address: str
    user: str
    address: str
    index: int
    contributed: int = 0
    tickets: int = 0
    deposit_count: int = 0

    @property
    def is_empty(self) -> bool:
        return self.contributed == 0 and self.tickets == 0

    def zero(self) -> None:
        self.contributed = 0
        self.tickets = 0


@dataclass
class DegenClaim:
    round_address: str
    round_id: int
    winner: str
    address: str
    salt: int = DEFAULT_ADDRESS_SALT
    status: DegenClaimStatus = DegenClaimStatus.VRF_REQUESTED
    randomness: bytes = b""
    selected_candidate_rank: int = NO_CANDIDATE_RANK
    fallback_reason: FallbackReason = FallbackReason.NONE
    token_index: int = NO_TOKEN_INDEX
    pool_version: int = 0
    candidate_window: int = DEGEN_CANDIDATE_WINDOW
    token_asset: str | None = None
    requested_at: int = 0
    fulfilled_at: int = 0
    claimed_at: int = 0
    fallback_after_ts: int = 0
    payout: int = 0
    min_out: int = 0
    receiver_pre_balance: int = 0
    executor: str | None = None
    receiver_account: str | None = None
    route_hash: bytes = b""

    def advance(self, next_status: DegenClaimStatus) -> None:
        _check_transition(DEGEN_CLAIM_TRANSITIONS, self.status, next_status)
        self.status = next_status

    def reset_execution(self) -> None:
        self.selected_candidate_rank = NO_CANDIDATE_RANK
        self.fallback_reason = FallbackReason.NONE
        self.token_index = NO_TOKEN_INDEX
        self.token_asset = None
        self.claimed_at = 0
        self.min_out = 0
        self.receiver_pre_balance = 0
        self.executor = None
        self.receiver_account = None
        self.route_hash = b""
