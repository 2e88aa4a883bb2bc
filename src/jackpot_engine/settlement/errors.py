"""Settlement error taxonomy and checked u64 arithmetic."""

from __future__ import annotations

from enum import Enum

from .constants import U64_MAX


class ErrorCode(str, Enum):
    PAUSED = "PAUSED"
    CONFIG_NOT_INITIALIZED = "CONFIG_NOT_INITIALIZED"
    CONFIG_ALREADY_INITIALIZED = "CONFIG_ALREADY_INITIALIZED"
    INVALID_CONFIG = "INVALID_CONFIG"
    INVALID_FEE_BPS = "INVALID_FEE_BPS"
    INVALID_TICKET_UNIT = "INVALID_TICKET_UNIT"
    INVALID_ROUND_DURATION = "INVALID_ROUND_DURATION"
    ROUND_ALREADY_EXISTS = "ROUND_ALREADY_EXISTS"
    ROUND_NOT_FOUND = "ROUND_NOT_FOUND"
    ROUND_NOT_OPEN = "ROUND_NOT_OPEN"
    ROUND_NOT_LOCKED = "ROUND_NOT_LOCKED"
    ROUND_NOT_VRF_REQUESTED = "ROUND_NOT_VRF_REQUESTED"
    ROUND_NOT_SETTLED = "ROUND_NOT_SETTLED"
    ROUND_NOT_ENDED = "ROUND_NOT_ENDED"
    ROUND_EXPIRED = "ROUND_EXPIRED"
    ROUND_NOT_CANCELLABLE = "ROUND_NOT_CANCELLABLE"
    ROUND_NOT_CLOSEABLE = "ROUND_NOT_CLOSEABLE"
    NO_DEPOSITS_YET = "NO_DEPOSITS_YET"
    NOT_ENOUGH_PARTICIPANTS = "NOT_ENOUGH_PARTICIPANTS"
    NOT_ENOUGH_TICKETS = "NOT_ENOUGH_TICKETS"
    DEPOSIT_TOO_SMALL = "DEPOSIT_TOO_SMALL"
    MAX_PARTICIPANTS_REACHED = "MAX_PARTICIPANTS_REACHED"
    MAX_DEPOSIT_EXCEEDED = "MAX_DEPOSIT_EXCEEDED"
    PARTICIPANT_NOT_FOUND = "PARTICIPANT_NOT_FOUND"
    NO_DEPOSIT_TO_REFUND = "NO_DEPOSIT_TO_REFUND"
    CANCEL_NOT_ALLOWED = "CANCEL_NOT_ALLOWED"
    WINNER_SLOT_OUT_OF_RANGE = "WINNER_SLOT_OUT_OF_RANGE"
    MATH_OVERFLOW = "MATH_OVERFLOW"
    UNAUTHORIZED = "UNAUTHORIZED"
    INVALID_ADMIN = "INVALID_ADMIN"
    INVALID_TREASURY = "INVALID_TREASURY"
    ONLY_WINNER_CAN_CLAIM = "ONLY_WINNER_CAN_CLAIM"
    PARTICIPANT_ROUND_MISMATCH = "PARTICIPANT_ROUND_MISMATCH"
    INVALID_RANDOMNESS = "INVALID_RANDOMNESS"
    VAULT_NOT_EMPTY = "VAULT_NOT_EMPTY"
    PARTICIPANT_NOT_EMPTY = "PARTICIPANT_NOT_EMPTY"
    INSUFFICIENT_FUNDS = "INSUFFICIENT_FUNDS"
    DEGEN_CLAIM_LOCKED = "DEGEN_CLAIM_LOCKED"
    DEGEN_VRF_NOT_REQUESTED = "DEGEN_VRF_NOT_REQUESTED"
    DEGEN_VRF_NOT_READY = "DEGEN_VRF_NOT_READY"
    DEGEN_ALREADY_REQUESTED = "DEGEN_ALREADY_REQUESTED"
    DEGEN_ALREADY_CLAIMED = "DEGEN_ALREADY_CLAIMED"
    DEGEN_NOT_CONFIGURED = "DEGEN_NOT_CONFIGURED"
    INVALID_DEGEN_CLAIM = "INVALID_DEGEN_CLAIM"
    INVALID_DEGEN_CANDIDATE = "INVALID_DEGEN_CANDIDATE"
    INVALID_DEGEN_EXECUTION_STATE = "INVALID_DEGEN_EXECUTION_STATE"
    INVALID_DEGEN_FALLBACK_REASON = "INVALID_DEGEN_FALLBACK_REASON"
    UNAUTHORIZED_DEGEN_EXECUTOR = "UNAUTHORIZED_DEGEN_EXECUTOR"
    INVALID_DEGEN_EXECUTOR_ACCOUNT = "INVALID_DEGEN_EXECUTOR_ACCOUNT"
    INVALID_DEGEN_RECEIVER_ACCOUNT = "INVALID_DEGEN_RECEIVER_ACCOUNT"
    DEGEN_OUTPUT_NOT_RECEIVED = "DEGEN_OUTPUT_NOT_RECEIVED"
    DEGEN_FALLBACK_TOO_EARLY = "DEGEN_FALLBACK_TOO_EARLY"


_MESSAGES: dict[ErrorCode, str] = {
    ErrorCode.PAUSED: "protocol is paused",
    ErrorCode.INVALID_FEE_BPS: "fee_bps must be within 0..10000",
    ErrorCode.INVALID_TICKET_UNIT: "ticket_unit must be > 0",
    ErrorCode.INVALID_ROUND_DURATION: "round_duration_sec must be > 0",
    ErrorCode.ROUND_NOT_ENDED: "round countdown has not ended",
    ErrorCode.ROUND_EXPIRED: "round timer has expired, no more deposits accepted",
    ErrorCode.DEPOSIT_TOO_SMALL: "deposit too small to mint at least one ticket",
    ErrorCode.CANCEL_NOT_ALLOWED: "other participants have deposits in this round",
    ErrorCode.MATH_OVERFLOW: "math overflow",
    ErrorCode.VAULT_NOT_EMPTY: "round vault still holds funds",
    ErrorCode.DEGEN_CLAIM_LOCKED: "classic claim is locked because degen mode was selected",
    ErrorCode.DEGEN_OUTPUT_NOT_RECEIVED: "degen output was not received",
    ErrorCode.DEGEN_FALLBACK_TOO_EARLY: "degen fallback is not yet available",
}


class JackpotError(Exception):
    """Base error for every rejected settlement operation."""

    def __init__(self, code: ErrorCode, detail: str | None = None) -> None:
        self.code = code
        self.detail = detail or _MESSAGES.get(code, code.value.lower().replace("_", " "))
        super().__init__(f"{code.value}: {self.detail}")


class StateGuardError(JackpotError):
    """Wrong status, time not yet elapsed, or thresholds unmet."""


class ArithmeticOverflow(JackpotError):
    """Raised on any u64 overflow or underflow in ticket, pot, or fee math."""

    def __init__(self, detail: str | None = None) -> None:
        super().__init__(ErrorCode.MATH_OVERFLOW, detail)


class AuthorizationError(JackpotError):
    """Wrong signer, admin, executor, or mismatched derived address."""


class AccountingError(JackpotError):
    """Balances that must be empty are not, or delivered output is short."""


class ConfigError(JackpotError, ValueError):
    """Raised when protocol or degen configuration values are invalid."""


def checked_add(a: int, b: int) -> int:
    result = a + b
    if result > U64_MAX or result < 0:
        raise ArithmeticOverflow(f"{a} + {b} exceeds u64")
    return result


def checked_sub(a: int, b: int) -> int:
    result = a - b
    if result < 0 or result > U64_MAX:
        raise ArithmeticOverflow(f"{a} - {b} underflows u64")
    return result


def checked_u64(value: int, field_name: str) -> int:
    if value < 0 or value > U64_MAX:
        raise ArithmeticOverflow(f"{field_name} out of u64 range: {value}")
    return value
