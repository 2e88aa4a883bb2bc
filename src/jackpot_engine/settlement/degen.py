"""Degen claim lifecycle: swap randomness, candidate execution, finalize and fallback."""

from __future__ import annotations

from dataclasses import dataclass
import logging
from typing import TYPE_CHECKING

from .candidates import CandidatePool, derive_candidate_index_at_rank, derive_candidate_indices
from .collaborators import RandomnessRequest
from .config import DegenConfig
from .constants import (
    DEFAULT_ADDRESS_SALT,
    DEFAULT_DEGEN_FALLBACK_TIMEOUT_SEC,
    DEGEN_CANDIDATE_WINDOW,
    RANDOMNESS_LEN,
    ROUTE_HASH_LEN,
)
from .errors import AccountingError, AuthorizationError, ErrorCode, StateGuardError, checked_add, checked_u64
from .events import (
    DegenExecutionFinalized,
    DegenExecutionStarted,
    DegenFallbackClaimed,
    DegenVrfFulfilled,
    DegenVrfRequested,
)
from .ids import custody_account, degen_caller_seed, degen_claim_address, round_address
from .payouts import compute_claim_amounts
from .state import DegenClaim, DegenClaimStatus, DegenMode, FallbackReason, Round, RoundStatus

if TYPE_CHECKING:
    from .engine import JackpotEngine


logger = logging.getLogger("jackpot_engine.settlement.degen")


@dataclass(frozen=True)
class DegenCandidate:
    rank: int
    token_index: int
    asset: str


class DegenStateMachine:
    def __init__(self, engine: "JackpotEngine") -> None:
        self.engine = engine

    def request_degen_randomness(self, winner: str, round_id: int, now: int) -> DegenClaim:
        record = self.engine.get_round(round_id)
        pool = self._require_pool()
        with self.engine.operation(record.address) as op:
            if record.status != RoundStatus.SETTLED:
                raise StateGuardError(ErrorCode.ROUND_NOT_SETTLED, f"round is {record.status.value}")
            if winner != record.winner:
                raise AuthorizationError(ErrorCode.ONLY_WINNER_CAN_CLAIM)
            if record.degen_mode == DegenMode.VRF_REQUESTED:
                raise StateGuardError(ErrorCode.DEGEN_ALREADY_REQUESTED)
            if record.degen_mode in (DegenMode.VRF_READY, DegenMode.CLAIMED):
                raise StateGuardError(ErrorCode.DEGEN_ALREADY_CLAIMED)
            if record.degen_mode != DegenMode.NONE:
                raise StateGuardError(ErrorCode.DEGEN_CLAIM_LOCKED)
            existing = self.engine.degen_claim_for(record)
            if existing is not None:
                if existing.winner != winner or existing.round_id != round_id:
                    raise AuthorizationError(ErrorCode.INVALID_DEGEN_CLAIM)
                if existing.status == DegenClaimStatus.VRF_REQUESTED:
                    raise StateGuardError(ErrorCode.DEGEN_ALREADY_REQUESTED)
                raise StateGuardError(ErrorCode.DEGEN_ALREADY_CLAIMED)

            claim = DegenClaim(
                round_address=record.address,
                round_id=round_id,
                winner=winner,
                address=degen_claim_address(self.engine.program_id, round_id, winner, DEFAULT_ADDRESS_SALT),
                salt=DEFAULT_ADDRESS_SALT,
                pool_version=pool.version,
                candidate_window=DEGEN_CANDIDATE_WINDOW,
                requested_at=now,
            )
            self.engine.put_degen_claim(claim)
            op.request_randomness(
                RandomnessRequest(
                    kind="degen",
                    round_id=round_id,
                    target_address=claim.address,
                    caller_seed=degen_caller_seed(round_id, winner),
                )
            )
            record.advance_degen(DegenMode.VRF_REQUESTED)
            op.emit(
                DegenVrfRequested(
                    round_id=round_id,
                    winner=winner,
                    claim_address=claim.address,
                    pool_version=pool.version,
                )
            )
        logger.info("degen randomness requested round_id=%s winner=%s", round_id, winner)
        return claim

    def fulfill_degen_randomness(
        self,
        oracle_identity: str,
        round_addr: str,
        claim_addr: str,
        randomness: bytes,
        now: int,
    ) -> DegenClaim:
        cfg = self.engine.require_config()
        if oracle_identity != self.engine.oracle_identity:
            logger.warning("rejected degen randomness from %s", oracle_identity)
            raise AuthorizationError(ErrorCode.UNAUTHORIZED, "caller is not the randomness oracle")
        record = self.engine.find_round(round_addr)
        if record is None or round_address(self.engine.program_id, record.round_id, record.salt) != round_addr:
            logger.warning("rejected degen randomness for unknown round address %s", round_addr)
            raise AuthorizationError(ErrorCode.UNAUTHORIZED, "round address does not match stored id")
        claim = self.engine.degen_claim_for(record)
        if (
            claim is None
            or claim.address != claim_addr
            or degen_claim_address(self.engine.program_id, record.round_id, claim.winner, claim.salt) != claim_addr
            or claim.round_address != record.address
            or claim.round_id != record.round_id
            or claim.winner != record.winner
        ):
            logger.warning("rejected degen randomness for claim %s", claim_addr)
            raise AuthorizationError(ErrorCode.INVALID_DEGEN_CLAIM)
        if len(randomness) != RANDOMNESS_LEN:
            raise StateGuardError(ErrorCode.INVALID_RANDOMNESS, f"expected {RANDOMNESS_LEN} bytes")
        with self.engine.operation(record.address) as op:
            if claim.status != DegenClaimStatus.VRF_REQUESTED:
                raise StateGuardError(ErrorCode.DEGEN_VRF_NOT_REQUESTED)
            if record.status != RoundStatus.SETTLED:
                raise StateGuardError(ErrorCode.ROUND_NOT_SETTLED)
            if record.degen_mode != DegenMode.VRF_REQUESTED:
                raise StateGuardError(ErrorCode.DEGEN_VRF_NOT_REQUESTED)
            timeout = _fallback_timeout(self.engine.degen_config)
            fallback_after_ts = checked_add(now, timeout)
            amounts = compute_claim_amounts(record.total_pot, cfg.fee_bps, _reimburse_due(record))

            claim.reset_execution()
            claim.randomness = bytes(randomness)
            claim.candidate_window = DEGEN_CANDIDATE_WINDOW
            claim.fulfilled_at = now
            claim.fallback_after_ts = fallback_after_ts
            claim.payout = amounts.payout
            claim.advance(DegenClaimStatus.VRF_READY)
            record.advance_degen(DegenMode.VRF_READY)
            op.emit(
                DegenVrfFulfilled(
                    round_id=record.round_id,
                    winner=claim.winner,
                    payout=amounts.payout,
                    fallback_after_ts=fallback_after_ts,
                )
            )
        logger.info(
            "degen randomness fulfilled round_id=%s payout=%s fallback_after_ts=%s",
            record.round_id,
            claim.payout,
            claim.fallback_after_ts,
        )
        return claim

    def list_degen_candidates(self, round_id: int) -> list[DegenCandidate]:
        """Return the ranked candidates an executor may attempt for this round's claim."""
        record = self.engine.get_round(round_id)
        pool = self._require_pool()
        claim = self._require_ready_claim(record)
        if claim.pool_version != pool.version:
            raise StateGuardError(ErrorCode.INVALID_DEGEN_CANDIDATE, "pool version changed since request")
        indices = derive_candidate_indices(claim.randomness, claim.pool_version, len(pool), claim.candidate_window)
        return [
            DegenCandidate(rank=rank, token_index=index, asset=pool.assets[index])
            for rank, index in enumerate(indices)
        ]

    def begin_degen_execution(
        self,
        executor: str,
        round_id: int,
        candidate_rank: int,
        token_index: int,
        min_out: int,
        route_hash: bytes,
        receiver_account: str,
        now: int,
    ) -> DegenClaim:
        cfg = self.engine.require_config()
        degen_cfg = self._require_degen_config()
        if executor != degen_cfg.executor:
            raise AuthorizationError(ErrorCode.UNAUTHORIZED_DEGEN_EXECUTOR)
        custody = custody_account(executor)
        held = self.engine.funds.balance_of(custody, cfg.settlement_asset)
        if held != 0:
            raise AccountingError(ErrorCode.INVALID_DEGEN_EXECUTOR_ACCOUNT, f"executor custody holds {held}")
        record = self.engine.get_round(round_id)
        pool = self._require_pool()
        with self.engine.operation(record.address) as op:
            claim = self._require_ready_claim(record)
            if record.status != RoundStatus.SETTLED:
                raise StateGuardError(ErrorCode.ROUND_NOT_SETTLED)
            if record.degen_mode != DegenMode.VRF_READY or claim.status != DegenClaimStatus.VRF_READY:
                raise StateGuardError(ErrorCode.DEGEN_VRF_NOT_READY)
            if candidate_rank < 0 or candidate_rank >= claim.candidate_window:
                raise StateGuardError(ErrorCode.INVALID_DEGEN_CANDIDATE, f"rank {candidate_rank} outside window")
            if claim.pool_version != pool.version:
                raise StateGuardError(ErrorCode.INVALID_DEGEN_CANDIDATE, "pool version changed since request")
            if candidate_rank >= len(pool):
                raise StateGuardError(ErrorCode.INVALID_DEGEN_CANDIDATE, f"rank {candidate_rank} exceeds pool")
            expected_index = derive_candidate_index_at_rank(claim.randomness, claim.pool_version, len(pool), candidate_rank)
            if expected_index != token_index:
                raise StateGuardError(
                    ErrorCode.INVALID_DEGEN_CANDIDATE,
                    f"rank {candidate_rank} maps to index {expected_index}, got {token_index}",
                )
            asset = pool.asset_at(token_index)
            if asset is None:
                raise StateGuardError(ErrorCode.INVALID_DEGEN_CANDIDATE, f"index {token_index} not in pool")
            if len(route_hash) != ROUTE_HASH_LEN:
                raise StateGuardError(ErrorCode.INVALID_DEGEN_EXECUTION_STATE, f"route_hash must be {ROUTE_HASH_LEN} bytes")
            checked_u64(min_out, "min_out")
            if receiver_account != record.winner:
                raise AuthorizationError(ErrorCode.INVALID_DEGEN_RECEIVER_ACCOUNT, "receiver must belong to the winner")

            amounts = compute_claim_amounts(record.total_pot, cfg.fee_bps, _reimburse_due(record))
            vault = self.engine.vault_of(record)
            if amounts.vrf_reimburse:
                op.transfer(vault, record.vrf_payer, cfg.settlement_asset, amounts.vrf_reimburse)
                record.vrf_reimbursed = True
            op.transfer(vault, custody, cfg.settlement_asset, amounts.payout)
            op.transfer(vault, cfg.treasury_account, cfg.settlement_asset, amounts.fee)
            record.advance_degen(DegenMode.EXECUTING)

            claim.selected_candidate_rank = candidate_rank
            claim.fallback_reason = FallbackReason.NONE
            claim.token_index = token_index
            claim.token_asset = asset
            claim.executor = executor
            claim.receiver_account = receiver_account
            claim.receiver_pre_balance = self.engine.funds.balance_of(receiver_account, asset)
            claim.min_out = min_out
            claim.payout = amounts.payout
            claim.route_hash = bytes(route_hash)
            claim.claimed_at = 0
            claim.advance(DegenClaimStatus.EXECUTING)
            op.emit(
                DegenExecutionStarted(
                    round_id=round_id,
                    executor=executor,
                    candidate_rank=candidate_rank,
                    token_index=token_index,
                    token_asset=asset,
                    payout=amounts.payout,
                    min_out=min_out,
                )
            )
        logger.info(
            "degen execution started round_id=%s rank=%s asset=%s payout=%s",
            round_id,
            candidate_rank,
            asset,
            claim.payout,
        )
        return claim

    def finalize_degen_success(self, executor: str, round_id: int, receiver_account: str, now: int) -> DegenClaim:
        cfg = self.engine.require_config()
        degen_cfg = self._require_degen_config()
        if executor != degen_cfg.executor:
            raise AuthorizationError(ErrorCode.UNAUTHORIZED_DEGEN_EXECUTOR)
        record = self.engine.get_round(round_id)
        with self.engine.operation(record.address) as op:
            claim = self.engine.degen_claim_for(record)
            if claim is None or claim.status != DegenClaimStatus.EXECUTING:
                raise StateGuardError(ErrorCode.INVALID_DEGEN_EXECUTION_STATE)
            if record.status != RoundStatus.SETTLED:
                raise StateGuardError(ErrorCode.ROUND_NOT_SETTLED)
            if record.degen_mode != DegenMode.EXECUTING:
                raise StateGuardError(ErrorCode.INVALID_DEGEN_EXECUTION_STATE)
            if claim.executor != executor:
                raise AuthorizationError(ErrorCode.UNAUTHORIZED_DEGEN_EXECUTOR)
            if receiver_account != claim.receiver_account or receiver_account != record.winner:
                raise AuthorizationError(ErrorCode.INVALID_DEGEN_RECEIVER_ACCOUNT)
            pool = self._require_pool()
            if claim.token_asset is None or pool.asset_at(claim.token_index) != claim.token_asset:
                raise AuthorizationError(ErrorCode.INVALID_DEGEN_RECEIVER_ACCOUNT, "receiver asset does not match claim")
            received = self.engine.funds.balance_of(receiver_account, claim.token_asset)
            required = claim.receiver_pre_balance + claim.min_out
            if received < required:
                raise AccountingError(
                    ErrorCode.DEGEN_OUTPUT_NOT_RECEIVED,
                    f"receiver holds {received}, needs at least {required}",
                )
            held = self.engine.funds.balance_of(custody_account(executor), cfg.settlement_asset)
            if held != 0:
                raise AccountingError(ErrorCode.INVALID_DEGEN_EXECUTOR_ACCOUNT, f"executor custody holds {held}")

            record.advance(RoundStatus.CLAIMED)
            record.advance_degen(DegenMode.CLAIMED)
            claim.advance(DegenClaimStatus.CLAIMED_SWAPPED)
            claim.claimed_at = now
            op.emit(
                DegenExecutionFinalized(
                    round_id=round_id,
                    winner=record.winner,
                    token_asset=claim.token_asset,
                    received=received - claim.receiver_pre_balance,
                )
            )
        logger.info("degen execution finalized round_id=%s asset=%s", round_id, claim.token_asset)
        return claim

    def claim_degen_fallback(self, caller: str, round_id: int, reason: int, now: int) -> DegenClaim:
        """Pay the plain payout to the winner once the fallback deadline has passed.

        From VRF_READY the whole split leaves the round vault. From EXECUTING the
        fee and reimbursement are already settled, so only the payout returns
        from the executor custody account.

        If the executor already spent the custody funds on a swap that
        delivered less than ``min_out``, the custody transfer fails with
        ``INSUFFICIENT_FUNDS`` and the claim stays EXECUTING. It can be
        settled once the executor refunds the payout into custody.
        """
        cfg = self.engine.require_config()
        fallback_reason = _parse_fallback_reason(reason)
        record = self.engine.get_round(round_id)
        with self.engine.operation(record.address) as op:
            claim = self.engine.degen_claim_for(record)
            if claim is None or claim.status not in (DegenClaimStatus.VRF_READY, DegenClaimStatus.EXECUTING):
                raise StateGuardError(ErrorCode.INVALID_DEGEN_EXECUTION_STATE)
            if now < claim.fallback_after_ts:
                raise StateGuardError(
                    ErrorCode.DEGEN_FALLBACK_TOO_EARLY,
                    f"now={now} fallback_after_ts={claim.fallback_after_ts}",
                )
            if record.status != RoundStatus.SETTLED:
                raise StateGuardError(ErrorCode.ROUND_NOT_SETTLED)
            degen_cfg = self.engine.degen_config
            if caller != record.winner and (degen_cfg is None or caller != degen_cfg.executor):
                raise AuthorizationError(ErrorCode.ONLY_WINNER_CAN_CLAIM)

            fee = 0
            if claim.status == DegenClaimStatus.VRF_READY:
                if record.degen_mode != DegenMode.VRF_READY:
                    raise StateGuardError(ErrorCode.DEGEN_VRF_NOT_READY)
                amounts = compute_claim_amounts(record.total_pot, cfg.fee_bps, _reimburse_due(record))
                vault = self.engine.vault_of(record)
                if amounts.vrf_reimburse:
                    op.transfer(vault, record.vrf_payer, cfg.settlement_asset, amounts.vrf_reimburse)
                    record.vrf_reimbursed = True
                op.transfer(vault, record.winner, cfg.settlement_asset, amounts.payout)
                op.transfer(vault, cfg.treasury_account, cfg.settlement_asset, amounts.fee)
                payout = amounts.payout
                fee = amounts.fee
            else:
                if record.degen_mode != DegenMode.EXECUTING:
                    raise StateGuardError(ErrorCode.INVALID_DEGEN_EXECUTION_STATE)
                payout = claim.payout
                op.transfer(custody_account(claim.executor), record.winner, cfg.settlement_asset, payout)

            record.advance(RoundStatus.CLAIMED)
            record.advance_degen(DegenMode.CLAIMED)
            claim.advance(DegenClaimStatus.CLAIMED_FALLBACK)
            claim.reset_execution()
            claim.fallback_reason = fallback_reason
            claim.claimed_at = now
            claim.payout = payout
            op.emit(
                DegenFallbackClaimed(
                    round_id=round_id,
                    winner=record.winner,
                    reason=int(fallback_reason),
                    payout=payout,
                )
            )
        logger.info(
            "degen fallback claimed round_id=%s reason=%s payout=%s fee=%s",
            round_id,
            fallback_reason.name,
            payout,
            fee,
        )
        return claim

    def _require_pool(self) -> CandidatePool:
        if self.engine.candidate_pool is None:
            raise StateGuardError(ErrorCode.DEGEN_NOT_CONFIGURED, "no candidate pool loaded")
        return self.engine.candidate_pool

    def _require_degen_config(self) -> DegenConfig:
        if self.engine.degen_config is None:
            raise StateGuardError(ErrorCode.DEGEN_NOT_CONFIGURED)
        return self.engine.degen_config

    def _require_ready_claim(self, record: Round) -> DegenClaim:
        claim = self.engine.degen_claim_for(record)
        if claim is None or claim.status == DegenClaimStatus.VRF_REQUESTED:
            raise StateGuardError(ErrorCode.DEGEN_VRF_NOT_READY)
        return claim


def _reimburse_due(record: Round) -> bool:
    return record.vrf_payer is not None and not record.vrf_reimbursed


def _fallback_timeout(degen_cfg: DegenConfig | None) -> int:
    if degen_cfg is None:
        return DEFAULT_DEGEN_FALLBACK_TIMEOUT_SEC
    return degen_cfg.effective_timeout()


def _parse_fallback_reason(reason: int) -> FallbackReason:
    try:
        parsed = FallbackReason(int(reason))
    except ValueError as exc:
        raise StateGuardError(ErrorCode.INVALID_DEGEN_FALLBACK_REASON, f"unknown reason {reason}") from exc
    if parsed == FallbackReason.NONE:
        raise StateGuardError(ErrorCode.INVALID_DEGEN_FALLBACK_REASON, "a fallback reason is required")
    return parsed
