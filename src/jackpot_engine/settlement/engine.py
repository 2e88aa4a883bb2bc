"""Settlement engine: record stores, collaborator wiring and the atomic operation scope."""

from __future__ import annotations

from contextlib import contextmanager
import copy
from dataclasses import fields
import logging
from typing import Any, Iterator

from .admin import AdminService
from .candidates import CandidatePool
from .collaborators import EventSink, FundsLedger, RandomnessOracle, RandomnessRequest, RecordingEventSink, Transfer
from .config import DegenConfig, ProtocolConfig, validate_degen_config, validate_protocol_config
from .constants import DEFAULT_ADDRESS_SALT
from .degen import DegenStateMachine
from .errors import ErrorCode, StateGuardError
from .events import SettlementEvent
from .ids import DEFAULT_PROGRAM_ID, participant_address, round_address, vault_account
from .rounds import RoundStateMachine
from .state import DegenClaim, Participant, Round


logger = logging.getLogger("jackpot_engine.settlement.engine")


class OperationScope:
    """Side effects collected by one operation and released only on commit."""

    def __init__(self) -> None:
        self.transfers: list[Transfer] = []
        self.randomness_requests: list[RandomnessRequest] = []
        self.events: list[SettlementEvent] = []

    def transfer(self, source: str, destination: str, asset: str, amount: int) -> None:
        if amount:
            self.transfers.append(Transfer(source=source, destination=destination, asset=asset, amount=amount))

    def request_randomness(self, request: RandomnessRequest) -> None:
        self.randomness_requests.append(request)

    def emit(self, event: SettlementEvent) -> None:
        self.events.append(event)


class JackpotEngine:
    def __init__(
        self,
        funds: FundsLedger,
        oracle: RandomnessOracle,
        oracle_identity: str,
        *,
        events: EventSink | None = None,
        config: ProtocolConfig | None = None,
        degen_config: DegenConfig | None = None,
        candidate_pool: CandidatePool | None = None,
        program_id: str = DEFAULT_PROGRAM_ID,
    ) -> None:
        self.funds = funds
        self.oracle = oracle
        self.oracle_identity = oracle_identity
        self.events = events or RecordingEventSink()
        self.config = validate_protocol_config(config) if config is not None else None
        self.degen_config = validate_degen_config(degen_config) if degen_config is not None else None
        self.candidate_pool = candidate_pool
        self.program_id = program_id
        self._rounds: dict[str, Round] = {}
        self._participants: dict[str, dict[str, Participant]] = {}
        self._claims: dict[str, DegenClaim] = {}
        self.rounds = RoundStateMachine(self)
        self.degen = DegenStateMachine(self)
        self.admin = AdminService(self)

    @contextmanager
    def operation(self, round_addr: str | None = None) -> Iterator[OperationScope]:
        """Run one operation as an all-or-nothing transition.

        Records for ``round_addr`` and both configs are snapshotted first. If the
        body or the funds settlement raises, the snapshot is restored and the
        error propagates; events are only emitted after a successful commit.
        """
        snapshot = self._snapshot(round_addr)
        scope = OperationScope()
        try:
            yield scope
            self.funds.settle(scope.transfers)
            for request in scope.randomness_requests:
                self.oracle.request_randomness(request)
        except Exception:
            self._restore(round_addr, snapshot)
            raise
        for event in scope.events:
            self.events.emit(event)

    def _snapshot(self, round_addr: str | None) -> dict[str, Any]:
        snapshot: dict[str, Any] = {"config": self.config, "degen_config": self.degen_config}
        if round_addr is not None:
            record = self._rounds.get(round_addr)
            members = self._participants.get(round_addr)
            claim = self._claims.get(round_addr)
            snapshot["round"] = (record, copy.deepcopy(record))
            snapshot["participants"] = (
                members,
                {user: (item, copy.deepcopy(item)) for user, item in (members or {}).items()},
            )
            snapshot["claim"] = (claim, copy.deepcopy(claim))
        return snapshot

    def _restore(self, round_addr: str | None, snapshot: dict[str, Any]) -> None:
        """Put the pre-operation values back into the same objects callers already hold."""
        self.config = snapshot["config"]
        self.degen_config = snapshot["degen_config"]
        if round_addr is None:
            return
        _put_back(self._rounds, round_addr, *snapshot["round"])
        _put_back(self._claims, round_addr, *snapshot["claim"])
        members, saved_members = snapshot["participants"]
        if members is None:
            self._participants.pop(round_addr, None)
        else:
            members.clear()
            for user, (item, saved) in saved_members.items():
                _restore_fields(item, saved)
                members[user] = item
            self._participants[round_addr] = members
        logger.info("operation rolled back round_address=%s", round_addr)

    def require_config(self) -> ProtocolConfig:
        if self.config is None:
            raise StateGuardError(ErrorCode.CONFIG_NOT_INITIALIZED)
        return self.config

    def round_address_for(self, round_id: int, salt: int = DEFAULT_ADDRESS_SALT) -> str:
        return round_address(self.program_id, round_id, salt)

    def find_round(self, round_addr: str) -> Round | None:
        return self._rounds.get(round_addr)

    def get_round(self, round_id: int) -> Round:
        record = self._rounds.get(self.round_address_for(round_id))
        if record is None:
            raise StateGuardError(ErrorCode.ROUND_NOT_FOUND, f"round {round_id} does not exist")
        return record

    def put_round(self, record: Round) -> None:
        self._rounds[record.address] = record
        self._participants[record.address] = {}
        self._claims.pop(record.address, None)

    def vault_of(self, record: Round) -> str:
        return vault_account(record.address)

    def participant(self, record: Round, user: str) -> Participant | None:
        return self._participants.get(record.address, {}).get(user)

    def add_participant(self, record: Round, user: str, index: int) -> Participant:
        participant = Participant(
            round_address=record.address,
            user=user,
            address=participant_address(self.program_id, record.address, user),
            index=index,
        )
        self._participants.setdefault(record.address, {})[user] = participant
        return participant

    def remove_participant(self, record: Round, user: str) -> None:
        self._participants.get(record.address, {}).pop(user, None)

    def participants(self, round_id: int) -> list[Participant]:
        record = self.get_round(round_id)
        return sorted(self._participants.get(record.address, {}).values(), key=lambda item: item.index)

    def degen_claim_for(self, record: Round) -> DegenClaim | None:
        return self._claims.get(record.address)

    def put_degen_claim(self, claim: DegenClaim) -> None:
        self._claims[claim.round_address] = claim


def _restore_fields(target: Any, saved: Any) -> None:
    for item in fields(target):
        setattr(target, item.name, getattr(saved, item.name))


def _put_back(store: dict[str, Any], key: str, live: Any, saved: Any) -> None:
    if live is None:
        store.pop(key, None)
        return
    _restore_fields(live, saved)
    store[key] = live
