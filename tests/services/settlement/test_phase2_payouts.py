from __future__ import annotations

import pytest

from jackpot_engine.settlement.constants import U64_MAX, VRF_REIMBURSEMENT
from jackpot_engine.settlement.errors import ArithmeticOverflow
from jackpot_engine.settlement.payouts import compute_claim_amounts


def test_reference_split_with_reimbursement() -> None:
    amounts = compute_claim_amounts(1_250_000, 25, True)
    assert amounts.vrf_reimburse == 200_000
    assert amounts.fee == 2_625
    assert amounts.payout == 1_047_375
    assert amounts.total == 1_250_000


def test_split_without_reimbursement() -> None:
    amounts = compute_claim_amounts(1_250_000, 25, False)
    assert amounts.vrf_reimburse == 0
    assert amounts.fee == 3_125
    assert amounts.payout == 1_246_875


def test_reimbursement_is_capped_at_pot() -> None:
    amounts = compute_claim_amounts(150_000, 500, True)
    assert amounts.vrf_reimburse == 150_000
    assert amounts.fee == 0
    assert amounts.payout == 0


@pytest.mark.parametrize(
    "pot,fee_bps,reimburse",
    [
        (0, 0, True),
        (1, 10_000, False),
        (199_999, 1, True),
        (200_001, 9_999, True),
        (987_654_321, 333, True),
        (U64_MAX, 10_000, True),
        (U64_MAX, 1, False),
    ],
)
def test_split_always_sums_to_pot(pot: int, fee_bps: int, reimburse: bool) -> None:
    amounts = compute_claim_amounts(pot, fee_bps, reimburse)
    assert amounts.fee + amounts.payout + amounts.vrf_reimburse == pot
    assert amounts.vrf_reimburse <= VRF_REIMBURSEMENT


def test_full_fee_leaves_nothing_for_winner() -> None:
    amounts = compute_claim_amounts(1_000_000, 10_000, True)
    assert amounts.payout == 0
    assert amounts.fee == 800_000
    assert amounts.as_dict() == {"fee": 800_000, "payout": 0, "vrf_reimburse": 200_000}


def test_out_of_range_inputs_raise_overflow() -> None:
    with pytest.raises(ArithmeticOverflow):
        compute_claim_amounts(U64_MAX + 1, 25, False)
    with pytest.raises(ArithmeticOverflow):
        compute_claim_amounts(1_000, 10_001, False)
    with pytest.raises(ArithmeticOverflow):
        compute_claim_amounts(-1, 25, False)
