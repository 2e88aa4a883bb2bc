"""Claim amount arithmetic shared by the classic and degen payout paths."""

from __future__ import annotations

from dataclasses import dataclass

from .constants import BPS_DENOMINATOR, VRF_REIMBURSEMENT
from .errors import ArithmeticOverflow, checked_sub, checked_u64


@dataclass(frozen=True)
class ClaimAmounts:
    fee: int
    payout: int
    vrf_reimburse: int

    @property
    def total(self) -> int:
        return self.fee + self.payout + self.vrf_reimburse

    def as_dict(self) -> dict[str, int]:
        return {"fee": self.fee, "payout": self.payout, "vrf_reimburse": self.vrf_reimburse}


def compute_claim_amounts(total_pot: int, fee_bps: int, reimburse: bool) -> ClaimAmounts:
    """Split ``total_pot`` into VRF reimbursement, protocol fee and winner payout.

    The reimbursement is capped at the pot, the fee is floored on what is left,
    and the payout takes the remainder, so the three always sum to the pot.
    """
    checked_u64(total_pot, "total_pot")
    if fee_bps < 0 or fee_bps > BPS_DENOMINATOR:
        raise ArithmeticOverflow(f"fee_bps out of range: {fee_bps}")
    vrf_reimburse = min(VRF_REIMBURSEMENT, total_pot) if reimburse else 0
    remaining = checked_sub(total_pot, vrf_reimburse)
    fee = (remaining * fee_bps) // BPS_DENOMINATOR
    payout = checked_sub(remaining, fee)
    return ClaimAmounts(fee=fee, payout=payout, vrf_reimburse=vrf_reimburse)
