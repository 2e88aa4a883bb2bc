"""Tagged settlement commands and the static handler table that routes them."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any, Callable, Union

if TYPE_CHECKING:
    from .engine import JackpotEngine


class CommandKind(str, Enum):
    START_ROUND = "START_ROUND"
    DEPOSIT = "DEPOSIT"
    LOCK_ROUND = "LOCK_ROUND"
    REQUEST_RANDOMNESS = "REQUEST_RANDOMNESS"
    FULFILL_ROUND_RANDOMNESS = "FULFILL_ROUND_RANDOMNESS"
    CLAIM = "CLAIM"
    CANCEL_ROUND = "CANCEL_ROUND"
    ADMIN_FORCE_CANCEL = "ADMIN_FORCE_CANCEL"
    CLAIM_REFUND = "CLAIM_REFUND"
    CLOSE_ROUND = "CLOSE_ROUND"
    CLOSE_PARTICIPANT = "CLOSE_PARTICIPANT"
    REQUEST_DEGEN_RANDOMNESS = "REQUEST_DEGEN_RANDOMNESS"
    FULFILL_DEGEN_RANDOMNESS = "FULFILL_DEGEN_RANDOMNESS"
    BEGIN_DEGEN_EXECUTION = "BEGIN_DEGEN_EXECUTION"
    FINALIZE_DEGEN_SUCCESS = "FINALIZE_DEGEN_SUCCESS"
    CLAIM_DEGEN_FALLBACK = "CLAIM_DEGEN_FALLBACK"


@dataclass(frozen=True)
class StartRound:
    payer: str
    round_id: int
    now: int
    kind: CommandKind = CommandKind.START_ROUND


@dataclass(frozen=True)
class DepositCommand:
    user: str
    round_id: int
    amount: int
    now: int
    kind: CommandKind = CommandKind.DEPOSIT


@dataclass(frozen=True)
class LockRound:
    round_id: int
    now: int
    kind: CommandKind = CommandKind.LOCK_ROUND


@dataclass(frozen=True)
class RequestRandomness:
    payer: str
    round_id: int
    now: int
    kind: CommandKind = CommandKind.REQUEST_RANDOMNESS


@dataclass(frozen=True)
class FulfillRoundRandomness:
    oracle_identity: str
    round_address: str
    randomness: bytes
    now: int
    kind: CommandKind = CommandKind.FULFILL_ROUND_RANDOMNESS


@dataclass(frozen=True)
class ClaimCommand:
    winner: str
    round_id: int
    now: int
    kind: CommandKind = CommandKind.CLAIM


@dataclass(frozen=True)
class CancelRound:
    user: str
    round_id: int
    now: int
    kind: CommandKind = CommandKind.CANCEL_ROUND


@dataclass(frozen=True)
class AdminForceCancel:
    admin: str
    round_id: int
    now: int
    kind: CommandKind = CommandKind.ADMIN_FORCE_CANCEL


@dataclass(frozen=True)
class ClaimRefund:
    user: str
    round_id: int
    now: int
    kind: CommandKind = CommandKind.CLAIM_REFUND


@dataclass(frozen=True)
class CloseRound:
    round_id: int
    now: int
    kind: CommandKind = CommandKind.CLOSE_ROUND


@dataclass(frozen=True)
class CloseParticipant:
    user: str
    round_id: int
    kind: CommandKind = CommandKind.CLOSE_PARTICIPANT


@dataclass(frozen=True)
class RequestDegenRandomness:
    winner: str
    round_id: int
    now: int
    kind: CommandKind = CommandKind.REQUEST_DEGEN_RANDOMNESS


@dataclass(frozen=True)
class FulfillDegenRandomness:
    oracle_identity: str
    round_address: str
    claim_address: str
    randomness: bytes
    now: int
    kind: CommandKind = CommandKind.FULFILL_DEGEN_RANDOMNESS


@dataclass(frozen=True)
class BeginDegenExecution:
    executor: str
    round_id: int
    candidate_rank: int
    token_index: int
    min_out: int
    route_hash: bytes
    receiver_account: str
    now: int
    kind: CommandKind = CommandKind.BEGIN_DEGEN_EXECUTION


@dataclass(frozen=True)
class FinalizeDegenSuccess:
    executor: str
    round_id: int
    receiver_account: str
    now: int
    kind: CommandKind = CommandKind.FINALIZE_DEGEN_SUCCESS


@dataclass(frozen=True)
class ClaimDegenFallback:
    caller: str
    round_id: int
    reason: int
    now: int
    kind: CommandKind = CommandKind.CLAIM_DEGEN_FALLBACK


Command = Union[
    StartRound,
    DepositCommand,
    LockRound,
    RequestRandomness,
    FulfillRoundRandomness,
    ClaimCommand,
    CancelRound,
    AdminForceCancel,
    ClaimRefund,
    CloseRound,
    CloseParticipant,
    RequestDegenRandomness,
    FulfillDegenRandomness,
    BeginDegenExecution,
    FinalizeDegenSuccess,
    ClaimDegenFallback,
]


_HANDLERS: dict[CommandKind, Callable[["JackpotEngine", Any], Any]] = {
    CommandKind.START_ROUND: lambda e, c: e.rounds.start_round(c.payer, c.round_id, c.now),
    CommandKind.DEPOSIT: lambda e, c: e.rounds.deposit(c.user, c.round_id, c.amount, c.now),
    CommandKind.LOCK_ROUND: lambda e, c: e.rounds.lock_round(c.round_id, c.now),
    CommandKind.REQUEST_RANDOMNESS: lambda e, c: e.rounds.request_randomness(c.payer, c.round_id, c.now),
    CommandKind.FULFILL_ROUND_RANDOMNESS: lambda e, c: e.rounds.fulfill_round_randomness(
        c.oracle_identity, c.round_address, c.randomness, c.now
    ),
    CommandKind.CLAIM: lambda e, c: e.rounds.claim(c.winner, c.round_id, c.now),
    CommandKind.CANCEL_ROUND: lambda e, c: e.rounds.cancel_round(c.user, c.round_id, c.now),
    CommandKind.ADMIN_FORCE_CANCEL: lambda e, c: e.rounds.admin_force_cancel(c.admin, c.round_id, c.now),
    CommandKind.CLAIM_REFUND: lambda e, c: e.rounds.claim_refund(c.user, c.round_id, c.now),
    CommandKind.CLOSE_ROUND: lambda e, c: e.rounds.close_round(c.round_id, c.now),
    CommandKind.CLOSE_PARTICIPANT: lambda e, c: e.rounds.close_participant(c.user, c.round_id),
    CommandKind.REQUEST_DEGEN_RANDOMNESS: lambda e, c: e.degen.request_degen_randomness(c.winner, c.round_id, c.now),
    CommandKind.FULFILL_DEGEN_RANDOMNESS: lambda e, c: e.degen.fulfill_degen_randomness(
        c.oracle_identity, c.round_address, c.claim_address, c.randomness, c.now
    ),
    CommandKind.BEGIN_DEGEN_EXECUTION: lambda e, c: e.degen.begin_degen_execution(
        c.executor,
        c.round_id,
        c.candidate_rank,
        c.token_index,
        c.min_out,
        c.route_hash,
        c.receiver_account,
        c.now,
    ),
    CommandKind.FINALIZE_DEGEN_SUCCESS: lambda e, c: e.degen.finalize_degen_success(
        c.executor, c.round_id, c.receiver_account, c.now
    ),
    CommandKind.CLAIM_DEGEN_FALLBACK: lambda e, c: e.degen.claim_degen_fallback(c.caller, c.round_id, c.reason, c.now),
}


def dispatch(engine: "JackpotEngine", command: Command) -> Any:
    handler = _HANDLERS.get(command.kind)
    if handler is None:
        raise ValueError(f"unsupported command kind: {command.kind}")
    return handler(engine, command)
