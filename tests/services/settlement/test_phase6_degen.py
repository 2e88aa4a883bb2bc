from __future__ import annotations

import pytest

from jackpot_engine.settlement.candidates import CandidatePool, derive_candidate_indices
from jackpot_engine.settlement.collaborators import InMemoryFundsLedger, RecordingEventSink, RecordingOracle, Transfer
from jackpot_engine.settlement.config import DegenConfig, ProtocolConfig
from jackpot_engine.settlement.constants import NO_CANDIDATE_RANK, NO_TOKEN_INDEX
from jackpot_engine.settlement.engine import JackpotEngine
from jackpot_engine.settlement.errors import AccountingError, AuthorizationError, StateGuardError
from jackpot_engine.settlement.events import DegenExecutionFinalized, DegenFallbackClaimed
from jackpot_engine.settlement.ids import custody_account, degen_caller_seed
from jackpot_engine.settlement.state import DegenClaimStatus, DegenMode, FallbackReason, RoundStatus

ASSET = "USDC"
STARTING_BALANCE = 10_000_000
PAYOUT = 1_047_375
ROUTE = b"\x01" * 32


def _engine(with_degen_config: bool = True) -> tuple[JackpotEngine, InMemoryFundsLedger, RecordingOracle, RecordingEventSink]:
    funds = InMemoryFundsLedger()
    for user in ("alice", "bob", "carol"):
        funds.mint(user, ASSET, STARTING_BALANCE)
    oracle = RecordingOracle()
    sink = RecordingEventSink()
    engine = JackpotEngine(
        funds,
        oracle,
        "oracle",
        events=sink,
        config=ProtocolConfig(
            admin="admin",
            settlement_asset=ASSET,
            treasury_account="treasury",
            fee_bps=25,
            ticket_unit=10_000,
            round_duration_sec=60,
        ),
        degen_config=DegenConfig(executor="exec", fallback_timeout_sec=300) if with_degen_config else None,
        candidate_pool=CandidatePool.build(1, [f"TOKEN{i}" for i in range(16)]),
    )
    engine.rounds.start_round("alice", 1, 0)
    engine.rounds.deposit("alice", 1, 1_000_000, 0)
    engine.rounds.deposit("bob", 1, 250_000, 0)
    engine.rounds.lock_round(1, 60)
    engine.rounds.request_randomness("carol", 1, 61)
    engine.rounds.fulfill_round_randomness("oracle", engine.get_round(1).address, bytes(32), 62)
    return engine, funds, oracle, sink


def _ready(engine: JackpotEngine, fulfilled_at: int = 1_000) -> None:
    claim = engine.degen.request_degen_randomness("alice", 1, 900)
    engine.degen.fulfill_degen_randomness("oracle", claim.round_address, claim.address, b"\x07" * 32, fulfilled_at)


def _begin(engine: JackpotEngine, min_out: int = 500, now: int = 1_010) -> None:
    first = engine.degen.list_degen_candidates(1)[0]
    engine.degen.begin_degen_execution("exec", 1, first.rank, first.token_index, min_out, ROUTE, "alice", now)


def test_request_opens_claim_and_locks_classic_claim() -> None:
    engine, _, oracle, _ = _engine()
    with pytest.raises(AuthorizationError, match="ONLY_WINNER_CAN_CLAIM"):
        engine.degen.request_degen_randomness("bob", 1, 900)
    claim = engine.degen.request_degen_randomness("alice", 1, 900)
    record = engine.get_round(1)
    assert claim.status == DegenClaimStatus.VRF_REQUESTED
    assert claim.selected_candidate_rank == NO_CANDIDATE_RANK
    assert claim.pool_version == 1
    assert claim.requested_at == 900
    assert record.degen_mode == DegenMode.VRF_REQUESTED
    assert oracle.requests[-1].kind == "degen"
    assert oracle.requests[-1].caller_seed == degen_caller_seed(1, "alice")
    with pytest.raises(StateGuardError, match="DEGEN_ALREADY_REQUESTED"):
        engine.degen.request_degen_randomness("alice", 1, 901)
    with pytest.raises(StateGuardError, match="DEGEN_CLAIM_LOCKED"):
        engine.rounds.claim("alice", 1, 901)
    with pytest.raises(StateGuardError, match="DEGEN_VRF_NOT_READY"):
        engine.degen.list_degen_candidates(1)


def test_fulfill_sets_fallback_deadline_and_payout() -> None:
    engine, _, _, _ = _engine()
    claim = engine.degen.request_degen_randomness("alice", 1, 900)
    with pytest.raises(AuthorizationError, match="UNAUTHORIZED"):
        engine.degen.fulfill_degen_randomness("mallory", claim.round_address, claim.address, bytes(32), 1_000)
    with pytest.raises(AuthorizationError, match="INVALID_DEGEN_CLAIM"):
        engine.degen.fulfill_degen_randomness("oracle", claim.round_address, "f" * 32, bytes(32), 1_000)
    engine.degen.fulfill_degen_randomness("oracle", claim.round_address, claim.address, b"\x07" * 32, 1_000)
    claim = engine.degen_claim_for(engine.get_round(1))
    assert claim.status == DegenClaimStatus.VRF_READY
    assert claim.fulfilled_at == 1_000
    assert claim.fallback_after_ts == 1_300
    assert claim.payout == PAYOUT
    assert claim.token_index == NO_TOKEN_INDEX
    assert engine.get_round(1).degen_mode == DegenMode.VRF_READY
    with pytest.raises(StateGuardError, match="DEGEN_VRF_NOT_REQUESTED"):
        engine.degen.fulfill_degen_randomness("oracle", claim.round_address, claim.address, bytes(32), 1_001)
    with pytest.raises(StateGuardError, match="DEGEN_ALREADY_CLAIMED"):
        engine.degen.request_degen_randomness("alice", 1, 1_002)


def test_candidate_listing_is_ranked_and_distinct() -> None:
    engine, _, _, _ = _engine()
    _ready(engine)
    candidates = engine.degen.list_degen_candidates(1)
    assert [item.rank for item in candidates] == list(range(10))
    assert [item.token_index for item in candidates] == derive_candidate_indices(b"\x07" * 32, 1, 16, 10)
    assert len({item.token_index for item in candidates}) == 10
    assert all(item.asset == f"TOKEN{item.token_index}" for item in candidates)


def test_fallback_deadline_is_inclusive() -> None:
    engine, funds, _, sink = _engine()
    _ready(engine, fulfilled_at=1_000)
    with pytest.raises(StateGuardError, match="DEGEN_FALLBACK_TOO_EARLY"):
        engine.degen.claim_degen_fallback("alice", 1, FallbackReason.TIMEOUT, 1_299)
    claim = engine.degen.claim_degen_fallback("alice", 1, FallbackReason.TIMEOUT, 1_300)
    record = engine.get_round(1)
    assert claim.status == DegenClaimStatus.CLAIMED_FALLBACK
    assert claim.fallback_reason == FallbackReason.TIMEOUT
    assert claim.claimed_at == 1_300
    assert record.status == RoundStatus.CLAIMED
    assert record.degen_mode == DegenMode.CLAIMED
    assert funds.balance_of("alice", ASSET) == STARTING_BALANCE - 1_000_000 + PAYOUT
    assert funds.balance_of("carol", ASSET) == STARTING_BALANCE + 200_000
    assert funds.balance_of("treasury", ASSET) == 2_625
    assert funds.balance_of(engine.vault_of(record), ASSET) == 0
    assert sink.of_type(DegenFallbackClaimed)[0].reason == 2


def test_fallback_validates_reason_and_caller() -> None:
    engine, _, _, _ = _engine()
    _ready(engine)
    with pytest.raises(StateGuardError, match="INVALID_DEGEN_FALLBACK_REASON"):
        engine.degen.claim_degen_fallback("alice", 1, 0, 2_000)
    with pytest.raises(StateGuardError, match="INVALID_DEGEN_FALLBACK_REASON"):
        engine.degen.claim_degen_fallback("alice", 1, 9, 2_000)
    with pytest.raises(AuthorizationError, match="ONLY_WINNER_CAN_CLAIM"):
        engine.degen.claim_degen_fallback("bob", 1, 1, 2_000)
    claim = engine.degen.claim_degen_fallback("exec", 1, FallbackReason.CANDIDATES_EXHAUSTED, 2_000)
    assert claim.fallback_reason == FallbackReason.CANDIDATES_EXHAUSTED


def test_begin_execution_moves_payout_into_custody() -> None:
    engine, funds, _, _ = _engine()
    _ready(engine)
    candidates = engine.degen.list_degen_candidates(1)
    with pytest.raises(AuthorizationError, match="UNAUTHORIZED_DEGEN_EXECUTOR"):
        engine.degen.begin_degen_execution("mallory", 1, 0, candidates[0].token_index, 500, ROUTE, "alice", 1_010)
    with pytest.raises(StateGuardError, match="INVALID_DEGEN_CANDIDATE"):
        engine.degen.begin_degen_execution("exec", 1, 0, candidates[1].token_index, 500, ROUTE, "alice", 1_010)
    with pytest.raises(StateGuardError, match="INVALID_DEGEN_CANDIDATE"):
        engine.degen.begin_degen_execution("exec", 1, 10, candidates[0].token_index, 500, ROUTE, "alice", 1_010)
    with pytest.raises(AuthorizationError, match="INVALID_DEGEN_RECEIVER_ACCOUNT"):
        engine.degen.begin_degen_execution("exec", 1, 0, candidates[0].token_index, 500, ROUTE, "bob", 1_010)

    claim = engine.degen.begin_degen_execution("exec", 1, 2, candidates[2].token_index, 500, ROUTE, "alice", 1_010)
    assert claim.status == DegenClaimStatus.EXECUTING
    assert claim.selected_candidate_rank == 2
    assert claim.token_asset == candidates[2].asset
    assert claim.receiver_pre_balance == 0
    assert claim.route_hash == ROUTE
    assert engine.get_round(1).degen_mode == DegenMode.EXECUTING
    assert engine.get_round(1).vrf_reimbursed is True
    assert funds.balance_of(custody_account("exec"), ASSET) == PAYOUT
    assert funds.balance_of("treasury", ASSET) == 2_625
    assert funds.balance_of("carol", ASSET) == STARTING_BALANCE + 200_000
    assert funds.balance_of(engine.vault_of(engine.get_round(1)), ASSET) == 0


def test_begin_requires_empty_custody_and_degen_config() -> None:
    engine, funds, _, _ = _engine()
    _ready(engine)
    funds.mint(custody_account("exec"), ASSET, 1)
    with pytest.raises(AccountingError, match="INVALID_DEGEN_EXECUTOR_ACCOUNT"):
        _begin(engine)

    unconfigured, _, _, _ = _engine(with_degen_config=False)
    _ready(unconfigured)
    with pytest.raises(StateGuardError, match="DEGEN_NOT_CONFIGURED"):
        _begin(unconfigured)


def test_finalize_requires_observed_output() -> None:
    engine, funds, _, sink = _engine()
    _ready(engine)
    _begin(engine, min_out=800)
    claim = engine.degen_claim_for(engine.get_round(1))
    asset = claim.token_asset
    custody = custody_account("exec")

    with pytest.raises(AccountingError, match="DEGEN_OUTPUT_NOT_RECEIVED"):
        engine.degen.finalize_degen_success("exec", 1, "alice", 1_020)
    assert engine.degen_claim_for(engine.get_round(1)).status == DegenClaimStatus.EXECUTING

    funds.mint("dex", asset, 10_000)
    funds.settle([Transfer(custody, "dex", ASSET, PAYOUT), Transfer("dex", "alice", asset, 799)])
    with pytest.raises(AccountingError, match="DEGEN_OUTPUT_NOT_RECEIVED"):
        engine.degen.finalize_degen_success("exec", 1, "alice", 1_021)
    funds.settle([Transfer("dex", "alice", asset, 1)])

    with pytest.raises(AuthorizationError, match="INVALID_DEGEN_RECEIVER_ACCOUNT"):
        engine.degen.finalize_degen_success("exec", 1, "bob", 1_022)
    with pytest.raises(AuthorizationError, match="UNAUTHORIZED_DEGEN_EXECUTOR"):
        engine.degen.finalize_degen_success("mallory", 1, "alice", 1_022)

    claim = engine.degen.finalize_degen_success("exec", 1, "alice", 1_023)
    record = engine.get_round(1)
    assert claim.status == DegenClaimStatus.CLAIMED_SWAPPED
    assert claim.claimed_at == 1_023
    assert record.status == RoundStatus.CLAIMED
    assert record.degen_mode == DegenMode.CLAIMED
    assert sink.of_type(DegenExecutionFinalized)[0].received == 800
    with pytest.raises(StateGuardError, match="INVALID_DEGEN_EXECUTION_STATE"):
        engine.degen.claim_degen_fallback("alice", 1, FallbackReason.TIMEOUT, 5_000)
    with pytest.raises(StateGuardError, match="INVALID_DEGEN_EXECUTION_STATE"):
        engine.degen.finalize_degen_success("exec", 1, "alice", 1_024)


def test_finalize_rejects_unswapped_custody() -> None:
    engine, funds, _, _ = _engine()
    _ready(engine)
    _begin(engine, min_out=10)
    asset = engine.degen_claim_for(engine.get_round(1)).token_asset
    funds.mint("alice", asset, 10)
    with pytest.raises(AccountingError, match="INVALID_DEGEN_EXECUTOR_ACCOUNT"):
        engine.degen.finalize_degen_success("exec", 1, "alice", 1_020)


def test_fallback_from_executing_returns_custody_payout() -> None:
    engine, funds, _, _ = _engine()
    _ready(engine, fulfilled_at=1_000)
    _begin(engine)
    with pytest.raises(StateGuardError, match="DEGEN_FALLBACK_TOO_EARLY"):
        engine.degen.claim_degen_fallback("exec", 1, FallbackReason.NO_VIABLE_ROUTE, 1_299)
    claim = engine.degen.claim_degen_fallback("exec", 1, FallbackReason.NO_VIABLE_ROUTE, 1_300)
    assert claim.status == DegenClaimStatus.CLAIMED_FALLBACK
    assert claim.selected_candidate_rank == NO_CANDIDATE_RANK
    assert claim.token_index == NO_TOKEN_INDEX
    assert claim.executor is None
    assert funds.balance_of(custody_account("exec"), ASSET) == 0
    assert funds.balance_of("alice", ASSET) == STARTING_BALANCE - 1_000_000 + PAYOUT
    assert funds.balance_of("treasury", ASSET) == 2_625
    assert engine.get_round(1).status == RoundStatus.CLAIMED
    with pytest.raises(StateGuardError, match="INVALID_DEGEN_EXECUTION_STATE"):
        engine.degen.finalize_degen_success("exec", 1, "alice", 1_301)


def test_fallback_waits_for_spent_custody_to_be_refunded() -> None:
    engine, funds, _, _ = _engine()
    _ready(engine, fulfilled_at=1_000)
    _begin(engine, min_out=800)
    asset = engine.degen_claim_for(engine.get_round(1)).token_asset
    custody = custody_account("exec")
    funds.mint("dex", asset, 100)
    funds.settle([Transfer(custody, "dex", ASSET, PAYOUT), Transfer("dex", "alice", asset, 100)])

    with pytest.raises(AccountingError, match="DEGEN_OUTPUT_NOT_RECEIVED"):
        engine.degen.finalize_degen_success("exec", 1, "alice", 1_020)
    with pytest.raises(AccountingError, match="INSUFFICIENT_FUNDS"):
        engine.degen.claim_degen_fallback("exec", 1, FallbackReason.NO_VIABLE_ROUTE, 1_300)
    assert engine.degen_claim_for(engine.get_round(1)).status == DegenClaimStatus.EXECUTING
    assert engine.get_round(1).status == RoundStatus.SETTLED

    funds.settle([Transfer("dex", custody, ASSET, PAYOUT)])
    claim = engine.degen.claim_degen_fallback("exec", 1, FallbackReason.NO_VIABLE_ROUTE, 1_301)
    assert claim.status == DegenClaimStatus.CLAIMED_FALLBACK
    assert funds.balance_of(custody, ASSET) == 0
    assert funds.balance_of("alice", ASSET) == STARTING_BALANCE - 1_000_000 + PAYOUT
