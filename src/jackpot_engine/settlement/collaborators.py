"""External collaborator seams (funds ledger, randomness oracle, event sink) and in-memory implementations."""

from __future__ import annotations

from dataclasses import dataclass
import json
import logging
from typing import Iterable, Protocol

from .errors import AccountingError, ErrorCode, checked_add, checked_sub
from .events import SettlementEvent
from .logging_utils import AUDIT_LOGGER


logger = logging.getLogger("jackpot_engine.settlement.collaborators")


@dataclass(frozen=True)
class Transfer:
    source: str
    destination: str
    asset: str
    amount: int


@dataclass(frozen=True)
class RandomnessRequest:
    kind: str
    round_id: int
    target_address: str
    caller_seed: bytes


class FundsLedger(Protocol):
    def settle(self, transfers: Iterable[Transfer]) -> None:
        ...

    def balance_of(self, account: str, asset: str) -> int:
        ...


class RandomnessOracle(Protocol):
    def request_randomness(self, request: RandomnessRequest) -> None:
        ...


class EventSink(Protocol):
    def emit(self, event: SettlementEvent) -> None:
        ...


class InMemoryFundsLedger:
    """Balances keyed by ``(account, asset)``; a batch either fully applies or not at all."""

    def __init__(self) -> None:
        self._balances: dict[tuple[str, str], int] = {}
        self.history: list[Transfer] = []

    def mint(self, account: str, asset: str, amount: int) -> None:
        key = (account, asset)
        self._balances[key] = checked_add(self._balances.get(key, 0), amount)

    def balance_of(self, account: str, asset: str) -> int:
        return self._balances.get((account, asset), 0)

    def settle(self, transfers: Iterable[Transfer]) -> None:
        batch = [item for item in transfers if item.amount]
        staged = dict(self._balances)
        for transfer in batch:
            if transfer.amount < 0:
                raise AccountingError(ErrorCode.INSUFFICIENT_FUNDS, f"negative transfer amount: {transfer.amount}")
            source_key = (transfer.source, transfer.asset)
            available = staged.get(source_key, 0)
            if available < transfer.amount:
                raise AccountingError(
                    ErrorCode.INSUFFICIENT_FUNDS,
                    f"{transfer.source} holds {available} {transfer.asset}, needs {transfer.amount}",
                )
            staged[source_key] = checked_sub(available, transfer.amount)
            dest_key = (transfer.destination, transfer.asset)
            staged[dest_key] = checked_add(staged.get(dest_key, 0), transfer.amount)
        self._balances = staged
        self.history.extend(batch)
        if batch:
            logger.debug("funds settled transfers=%d", len(batch))


class RecordingOracle:
    def __init__(self) -> None:
        self.requests: list[RandomnessRequest] = []

    def request_randomness(self, request: RandomnessRequest) -> None:
        self.requests.append(request)


class RecordingEventSink:
    def __init__(self) -> None:
        self.events: list[SettlementEvent] = []

    def emit(self, event: SettlementEvent) -> None:
        self.events.append(event)

    def of_type(self, event_type: type) -> list[SettlementEvent]:
        return [event for event in self.events if isinstance(event, event_type)]


class LoggingEventSink:
    """Write each committed event as one JSON line on the audit logger."""

    def __init__(self, logger_name: str = AUDIT_LOGGER) -> None:
        self._logger = logging.getLogger(logger_name)

    def emit(self, event: SettlementEvent) -> None:
        self._logger.info(json.dumps(event.as_dict(), sort_keys=True), extra={"narrative": True})
