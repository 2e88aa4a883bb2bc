"""Deterministic address derivation for rounds, participants and degen claims."""

from __future__ import annotations

import hashlib

from .constants import SEED_CUSTODY, SEED_DEGEN_CLAIM, SEED_PARTICIPANT, SEED_ROUND, SEED_VAULT


DEFAULT_PROGRAM_ID = "jackpot.settlement.v1"


def _hex32_from_parts(*parts: bytes) -> str:
    digest = hashlib.sha256()
    for part in parts:
        digest.update(len(part).to_bytes(2, "little"))
        digest.update(part)
    return digest.hexdigest()[:32]


def _u64_le(value: int) -> bytes:
    return int(value).to_bytes(8, "little")


def round_address(program_id: str, round_id: int, salt: int) -> str:
    return _hex32_from_parts(
        program_id.encode("utf-8"),
        SEED_ROUND.encode("utf-8"),
        _u64_le(round_id),
        bytes([salt & 0xFF]),
    )


def participant_address(program_id: str, round_addr: str, user: str) -> str:
    return _hex32_from_parts(
        program_id.encode("utf-8"),
        SEED_PARTICIPANT.encode("utf-8"),
        round_addr.encode("utf-8"),
        user.encode("utf-8"),
    )


def degen_claim_address(program_id: str, round_id: int, winner: str, salt: int) -> str:
    return _hex32_from_parts(
        program_id.encode("utf-8"),
        SEED_DEGEN_CLAIM.encode("utf-8"),
        _u64_le(round_id),
        winner.encode("utf-8"),
        bytes([salt & 0xFF]),
    )


def vault_account(round_addr: str) -> str:
    return f"{SEED_VAULT}:{round_addr}"


def custody_account(executor: str) -> str:
    return f"{SEED_CUSTODY}:{executor}"


def round_caller_seed(round_id: int) -> bytes:
    return _u64_le(round_id) + bytes(24)


def degen_caller_seed(round_id: int, winner: str) -> bytes:
    winner_digest = hashlib.sha256(winner.encode("utf-8")).digest()
    return _u64_le(round_id) + winner_digest[:24]
