"""Audit event records handed to the event sink after committed transitions."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any


@dataclass(frozen=True)
class SettlementEvent:
    def as_dict(self) -> dict[str, Any]:
        payload = asdict(self)
        for key, value in payload.items():
            if isinstance(value, bytes):
                payload[key] = value.hex()
        payload["event_type"] = type(self).__name__
        return payload


@dataclass(frozen=True)
class RoundStarted(SettlementEvent):
    round_id: int
    round_address: str
    start_ts: int


@dataclass(frozen=True)
class Deposit(SettlementEvent):
    round_id: int
    user: str
    amount: int
    tickets_added: int
    total_pot: int
    total_tickets: int
    end_ts: int


@dataclass(frozen=True)
class RoundLocked(SettlementEvent):
    round_id: int
    total_pot: int
    total_tickets: int
    participant_count: int


@dataclass(frozen=True)
class VrfRequested(SettlementEvent):
    round_id: int
    payer: str


@dataclass(frozen=True)
class RoundSettled(SettlementEvent):
    round_id: int
    winner: str
    winning_ticket: int
    randomness: bytes


@dataclass(frozen=True)
class Claimed(SettlementEvent):
    round_id: int
    winner: str
    payout: int
    fee: int
    vrf_reimburse: int


@dataclass(frozen=True)
class CancelRefund(SettlementEvent):
    round_id: int
    user: str
    amount: int
    round_cancelled: bool


@dataclass(frozen=True)
class ForceCancel(SettlementEvent):
    round_id: int
    admin: str
    previous_status: str


@dataclass(frozen=True)
class RoundClosed(SettlementEvent):
    round_id: int
    final_status: str


@dataclass(frozen=True)
class AdminTransferred(SettlementEvent):
    previous_admin: str
    new_admin: str


@dataclass(frozen=True)
class TreasuryUpdated(SettlementEvent):
    previous_treasury: str
    new_treasury: str


@dataclass(frozen=True)
class DegenVrfRequested(SettlementEvent):
    round_id: int
    winner: str
    claim_address: str
    pool_version: int


@dataclass(frozen=True)
class DegenVrfFulfilled(SettlementEvent):
    round_id: int
    winner: str
    payout: int
    fallback_after_ts: int


@dataclass(frozen=True)
class DegenExecutionStarted(SettlementEvent):
    round_id: int
    executor: str
    candidate_rank: int
    token_index: int
    token_asset: str
    payout: int
    min_out: int


@dataclass(frozen=True)
class DegenExecutionFinalized(SettlementEvent):
    round_id: int
    winner: str
    token_asset: str
    received: int


@dataclass(frozen=True)
class DegenFallbackClaimed(SettlementEvent):
    round_id: int
    winner: str
    reason: int
    payout: int
