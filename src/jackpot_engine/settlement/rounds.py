"""Round lifecycle: deposits, lock, randomness settlement, claim, cancel, refund and close."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from .collaborators import RandomnessRequest
from .constants import DEFAULT_ADDRESS_SALT, MAX_PARTICIPANTS, RANDOMNESS_LEN
from .errors import (
    AccountingError,
    AuthorizationError,
    ErrorCode,
    StateGuardError,
    checked_add,
    checked_sub,
    checked_u64,
)
from .events import (
    CancelRefund,
    Claimed,
    Deposit,
    ForceCancel,
    RoundClosed,
    RoundLocked,
    RoundSettled,
    RoundStarted,
    VrfRequested,
)
from .ids import round_address, round_caller_seed
from .payouts import compute_claim_amounts
from .state import TERMINAL_ROUND_STATUSES, DegenMode, Participant, Round, RoundStatus

if TYPE_CHECKING:
    from .config import ProtocolConfig
    from .engine import JackpotEngine


logger = logging.getLogger("jackpot_engine.settlement.rounds")


def winning_ticket_from_randomness(randomness: bytes, total_tickets: int) -> int:
    value = int.from_bytes(bytes(randomness[:16]), "little")
    return value % total_tickets + 1


def _require_status(record: Round, status: RoundStatus, code: ErrorCode) -> None:
    if record.status != status:
        raise StateGuardError(code, f"round {record.round_id} is {record.status.value}")


def _require_minimums(record: Round, cfg: "ProtocolConfig") -> None:
    if record.participant_count < cfg.min_participants:
        raise StateGuardError(
            ErrorCode.NOT_ENOUGH_PARTICIPANTS,
            f"{record.participant_count} participants, need {cfg.min_participants}",
        )
    if record.total_tickets < cfg.min_total_tickets:
        raise StateGuardError(
            ErrorCode.NOT_ENOUGH_TICKETS,
            f"{record.total_tickets} tickets, need {cfg.min_total_tickets}",
        )


class RoundStateMachine:
    def __init__(self, engine: "JackpotEngine") -> None:
        self.engine = engine

    def start_round(self, payer: str, round_id: int, now: int) -> Round:
        cfg = self.engine.require_config()
        if cfg.paused:
            raise StateGuardError(ErrorCode.PAUSED)
        checked_u64(round_id, "round_id")
        address = self.engine.round_address_for(round_id)
        existing = self.engine.find_round(address)
        if existing is not None and existing.status != RoundStatus.CLOSED:
            raise StateGuardError(ErrorCode.ROUND_ALREADY_EXISTS, f"round {round_id} already exists")
        with self.engine.operation(address) as op:
            record = Round(round_id=round_id, address=address, salt=DEFAULT_ADDRESS_SALT, start_ts=now)
            self.engine.put_round(record)
            op.emit(RoundStarted(round_id=round_id, round_address=address, start_ts=now))
        logger.info("round started round_id=%s payer=%s address=%s", round_id, payer, address)
        return record

    def deposit(self, user: str, round_id: int, amount: int, now: int) -> Participant:
        cfg = self.engine.require_config()
        record = self.engine.get_round(round_id)
        with self.engine.operation(record.address) as op:
            if cfg.paused:
                raise StateGuardError(ErrorCode.PAUSED)
            _require_status(record, RoundStatus.OPEN, ErrorCode.ROUND_NOT_OPEN)
            if record.first_deposit_ts is not None and now >= record.end_ts:
                raise StateGuardError(ErrorCode.ROUND_EXPIRED)
            if amount <= 0:
                raise StateGuardError(ErrorCode.DEPOSIT_TOO_SMALL)
            checked_u64(amount, "amount")
            tickets_added = amount // cfg.ticket_unit
            if tickets_added <= 0:
                raise StateGuardError(
                    ErrorCode.DEPOSIT_TOO_SMALL,
                    f"{amount} is below ticket_unit {cfg.ticket_unit}",
                )

            participant = self.engine.participant(record, user)
            if participant is None:
                slot = record.participant_count + 1
                if slot > MAX_PARTICIPANTS:
                    raise StateGuardError(ErrorCode.MAX_PARTICIPANTS_REACHED)
                participant = self.engine.add_participant(record, user, slot)
                record.participant_count = slot
                record.slots.append(user)

            if record.first_deposit_ts is None:
                record.first_deposit_ts = now
                record.end_ts = checked_add(now, cfg.round_duration_sec)

            new_contributed = checked_add(participant.contributed, amount)
            if cfg.max_deposit_per_user > 0 and new_contributed > cfg.max_deposit_per_user:
                raise StateGuardError(
                    ErrorCode.MAX_DEPOSIT_EXCEEDED,
                    f"{new_contributed} exceeds cap {cfg.max_deposit_per_user}",
                )

            participant.tickets = checked_add(participant.tickets, tickets_added)
            participant.contributed = new_contributed
            participant.deposit_count = checked_add(participant.deposit_count, 1)
            record.total_tickets = checked_add(record.total_tickets, tickets_added)
            record.total_pot = checked_add(record.total_pot, amount)
            record.ticket_ledger.add(participant.index, tickets_added)

            op.transfer(user, self.engine.vault_of(record), cfg.settlement_asset, amount)
            op.emit(
                Deposit(
                    round_id=round_id,
                    user=user,
                    amount=amount,
                    tickets_added=tickets_added,
                    total_pot=record.total_pot,
                    total_tickets=record.total_tickets,
                    end_ts=record.end_ts,
                )
            )
        logger.info(
            "deposit round_id=%s user=%s amount=%s tickets=%s total_pot=%s",
            round_id,
            user,
            amount,
            tickets_added,
            record.total_pot,
        )
        return participant

    def lock_round(self, round_id: int, now: int) -> Round:
        cfg = self.engine.require_config()
        record = self.engine.get_round(round_id)
        with self.engine.operation(record.address) as op:
            _require_status(record, RoundStatus.OPEN, ErrorCode.ROUND_NOT_OPEN)
            if record.first_deposit_ts is None:
                raise StateGuardError(ErrorCode.NO_DEPOSITS_YET)
            _require_minimums(record, cfg)
            if now < record.end_ts:
                raise StateGuardError(ErrorCode.ROUND_NOT_ENDED, f"now={now} end_ts={record.end_ts}")
            record.advance(RoundStatus.LOCKED)
            op.emit(
                RoundLocked(
                    round_id=round_id,
                    total_pot=record.total_pot,
                    total_tickets=record.total_tickets,
                    participant_count=record.participant_count,
                )
            )
        logger.info("round locked round_id=%s tickets=%s", round_id, record.total_tickets)
        return record

    def request_randomness(self, payer: str, round_id: int, now: int) -> Round:
        cfg = self.engine.require_config()
        record = self.engine.get_round(round_id)
        with self.engine.operation(record.address) as op:
            _require_status(record, RoundStatus.LOCKED, ErrorCode.ROUND_NOT_LOCKED)
            _require_minimums(record, cfg)
            op.request_randomness(
                RandomnessRequest(
                    kind="round",
                    round_id=round_id,
                    target_address=record.address,
                    caller_seed=round_caller_seed(round_id),
                )
            )
            record.vrf_payer = payer
            record.advance(RoundStatus.VRF_REQUESTED)
            op.emit(VrfRequested(round_id=round_id, payer=payer))
        logger.info("round randomness requested round_id=%s payer=%s", round_id, payer)
        return record

    def fulfill_round_randomness(self, oracle_identity: str, round_addr: str, randomness: bytes, now: int) -> Round:
        """Oracle callback: pick the winner for the round stored at ``round_addr``.

        The callback carries no round id, so the stored id and salt are used to
        re-derive the address and the result must match the one targeted.
        """
        cfg = self.engine.require_config()
        if oracle_identity != self.engine.oracle_identity:
            logger.warning("rejected round randomness from %s", oracle_identity)
            raise AuthorizationError(ErrorCode.UNAUTHORIZED, "caller is not the randomness oracle")
        record = self.engine.find_round(round_addr)
        if record is None or round_address(self.engine.program_id, record.round_id, record.salt) != round_addr:
            logger.warning("rejected round randomness for unknown address %s", round_addr)
            raise AuthorizationError(ErrorCode.UNAUTHORIZED, "round address does not match stored id")
        if len(randomness) != RANDOMNESS_LEN:
            raise StateGuardError(ErrorCode.INVALID_RANDOMNESS, f"expected {RANDOMNESS_LEN} bytes")
        with self.engine.operation(record.address) as op:
            _require_status(record, RoundStatus.VRF_REQUESTED, ErrorCode.ROUND_NOT_VRF_REQUESTED)
            _require_minimums(record, cfg)
            winning_ticket = winning_ticket_from_randomness(randomness, record.total_tickets)
            slot = record.ticket_ledger.find_prefix(winning_ticket)
            winner = record.slot_owner(slot)
            if slot > record.participant_count or winner is None:
                raise StateGuardError(ErrorCode.WINNER_SLOT_OUT_OF_RANGE, f"slot {slot}")
            record.randomness = bytes(randomness)
            record.winning_ticket = winning_ticket
            record.winner = winner
            record.advance(RoundStatus.SETTLED)
            op.emit(
                RoundSettled(
                    round_id=record.round_id,
                    winner=winner,
                    winning_ticket=winning_ticket,
                    randomness=record.randomness,
                )
            )
        logger.info(
            "round settled round_id=%s winning_ticket=%s winner=%s",
            record.round_id,
            winning_ticket,
            winner,
        )
        return record

    def claim(self, winner: str, round_id: int, now: int) -> Round:
        cfg = self.engine.require_config()
        record = self.engine.get_round(round_id)
        with self.engine.operation(record.address) as op:
            _require_status(record, RoundStatus.SETTLED, ErrorCode.ROUND_NOT_SETTLED)
            if record.degen_mode != DegenMode.NONE:
                raise StateGuardError(ErrorCode.DEGEN_CLAIM_LOCKED)
            if winner != record.winner:
                raise AuthorizationError(ErrorCode.ONLY_WINNER_CAN_CLAIM)
            reimburse = record.vrf_payer is not None and not record.vrf_reimbursed
            amounts = compute_claim_amounts(record.total_pot, cfg.fee_bps, reimburse)
            vault = self.engine.vault_of(record)
            if amounts.vrf_reimburse:
                op.transfer(vault, record.vrf_payer, cfg.settlement_asset, amounts.vrf_reimburse)
            op.transfer(vault, winner, cfg.settlement_asset, amounts.payout)
            op.transfer(vault, cfg.treasury_account, cfg.settlement_asset, amounts.fee)
            record.advance(RoundStatus.CLAIMED)
            if amounts.vrf_reimburse:
                record.vrf_reimbursed = True
            op.emit(
                Claimed(
                    round_id=round_id,
                    winner=winner,
                    payout=amounts.payout,
                    fee=amounts.fee,
                    vrf_reimburse=amounts.vrf_reimburse,
                )
            )
        logger.info("round claimed round_id=%s winner=%s amounts=%s", round_id, winner, amounts.as_dict())
        return record

    def cancel_round(self, user: str, round_id: int, now: int) -> Round:
        cfg = self.engine.require_config()
        record = self.engine.get_round(round_id)
        participant = self._require_participant(record, user)
        with self.engine.operation(record.address) as op:
            refund = participant.contributed
            if refund <= 0:
                raise StateGuardError(ErrorCode.NO_DEPOSIT_TO_REFUND)
            _require_status(record, RoundStatus.OPEN, ErrorCode.ROUND_NOT_CANCELLABLE)
            if record.total_pot != refund:
                raise StateGuardError(ErrorCode.CANCEL_NOT_ALLOWED)
            cancelled_tickets = participant.tickets
            record.ticket_ledger.subtract(participant.index, cancelled_tickets)
            record.total_pot = checked_sub(record.total_pot, refund)
            record.total_tickets = checked_sub(record.total_tickets, cancelled_tickets)
            participant.zero()
            if record.total_pot == 0:
                record.advance(RoundStatus.CANCELLED)
            op.transfer(self.engine.vault_of(record), user, cfg.settlement_asset, refund)
            op.emit(
                CancelRefund(
                    round_id=round_id,
                    user=user,
                    amount=refund,
                    round_cancelled=record.status == RoundStatus.CANCELLED,
                )
            )
        logger.info("round self-cancelled round_id=%s user=%s refund=%s", round_id, user, refund)
        return record

    def admin_force_cancel(self, admin: str, round_id: int, now: int) -> Round:
        cfg = self.engine.require_config()
        if admin != cfg.admin:
            raise AuthorizationError(ErrorCode.UNAUTHORIZED, "caller is not the admin")
        record = self.engine.get_round(round_id)
        with self.engine.operation(record.address) as op:
            previous = record.status
            if previous not in (RoundStatus.OPEN, RoundStatus.LOCKED, RoundStatus.VRF_REQUESTED):
                raise StateGuardError(ErrorCode.ROUND_NOT_CANCELLABLE, f"round is {previous.value}")
            record.advance(RoundStatus.CANCELLED)
            op.emit(ForceCancel(round_id=round_id, admin=admin, previous_status=previous.value))
        logger.info("round force-cancelled round_id=%s previous=%s", round_id, previous.value)
        return record

    def claim_refund(self, user: str, round_id: int, now: int) -> Participant:
        cfg = self.engine.require_config()
        record = self.engine.get_round(round_id)
        participant = self._require_participant(record, user)
        with self.engine.operation(record.address) as op:
            refund = participant.contributed
            if refund <= 0:
                raise StateGuardError(ErrorCode.NO_DEPOSIT_TO_REFUND)
            _require_status(record, RoundStatus.CANCELLED, ErrorCode.ROUND_NOT_CANCELLABLE)
            participant.zero()
            op.transfer(self.engine.vault_of(record), user, cfg.settlement_asset, refund)
            op.emit(CancelRefund(round_id=round_id, user=user, amount=refund, round_cancelled=True))
        logger.info("refund claimed round_id=%s user=%s refund=%s", round_id, user, refund)
        return participant

    def close_round(self, round_id: int, now: int) -> Round:
        cfg = self.engine.require_config()
        record = self.engine.get_round(round_id)
        with self.engine.operation(record.address) as op:
            final_status = record.status
            if final_status not in TERMINAL_ROUND_STATUSES:
                raise StateGuardError(ErrorCode.ROUND_NOT_CLOSEABLE, f"round is {final_status.value}")
            remaining = self.engine.funds.balance_of(self.engine.vault_of(record), cfg.settlement_asset)
            if remaining != 0:
                raise AccountingError(ErrorCode.VAULT_NOT_EMPTY, f"vault holds {remaining}")
            record.wipe()
            record.advance(RoundStatus.CLOSED)
            op.emit(RoundClosed(round_id=round_id, final_status=final_status.value))
        logger.info("round closed round_id=%s final_status=%s", round_id, final_status.value)
        return record

    def close_participant(self, user: str, round_id: int) -> None:
        record = self.engine.get_round(round_id)
        with self.engine.operation(record.address):
            if record.status not in TERMINAL_ROUND_STATUSES:
                raise StateGuardError(ErrorCode.ROUND_NOT_CLOSEABLE, f"round is {record.status.value}")
            participant = self._require_participant(record, user)
            if participant.round_address != record.address:
                raise AuthorizationError(ErrorCode.PARTICIPANT_ROUND_MISMATCH)
            if record.status == RoundStatus.CANCELLED and not participant.is_empty:
                raise StateGuardError(ErrorCode.PARTICIPANT_NOT_EMPTY)
            self.engine.remove_participant(record, user)
        logger.info("participant closed round_id=%s user=%s", round_id, user)

    def _require_participant(self, record: Round, user: str) -> Participant:
        participant = self.engine.participant(record, user)
        if participant is None:
            raise StateGuardError(ErrorCode.PARTICIPANT_NOT_FOUND, f"{user} has no deposits in round {record.round_id}")
        return participant
