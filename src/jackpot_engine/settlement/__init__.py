"""Round settlement, payout and degen swap state machines."""

from .candidates import (
    CandidatePool,
    derive_candidate_index_at_rank,
    derive_candidate_indices,
    load_candidate_pool,
    pool_snapshot_hash,
)
from .collaborators import (
    EventSink,
    FundsLedger,
    InMemoryFundsLedger,
    LoggingEventSink,
    RandomnessOracle,
    RandomnessRequest,
    RecordingEventSink,
    RecordingOracle,
    Transfer,
)
from .commands import CommandKind, dispatch
from .config import DegenConfig, ProtocolConfig, load_degen_config, load_protocol_config
from .degen import DegenCandidate, DegenStateMachine
from .engine import JackpotEngine
from .errors import (
    AccountingError,
    ArithmeticOverflow,
    AuthorizationError,
    ConfigError,
    ErrorCode,
    JackpotError,
    StateGuardError,
)
from .fenwick import TicketLedger
from .payouts import ClaimAmounts, compute_claim_amounts
from .rounds import RoundStateMachine
from .state import DegenClaim, DegenClaimStatus, DegenMode, FallbackReason, Participant, Round, RoundStatus

__all__ = [
    "AccountingError",
    "ArithmeticOverflow",
    "AuthorizationError",
    "CandidatePool",
    "ClaimAmounts",
    "CommandKind",
    "ConfigError",
    "DegenCandidate",
    "DegenClaim",
    "DegenClaimStatus",
    "DegenConfig",
    "DegenMode",
    "DegenStateMachine",
    "ErrorCode",
    "EventSink",
    "FallbackReason",
    "FundsLedger",
    "InMemoryFundsLedger",
    "LoggingEventSink",
    "JackpotEngine",
    "JackpotError",
    "Participant",
    "ProtocolConfig",
    "RandomnessOracle",
    "RandomnessRequest",
    "RecordingEventSink",
    "RecordingOracle",
    "Round",
    "RoundStateMachine",
    "RoundStatus",
    "StateGuardError",
    "TicketLedger",
    "Transfer",
    "compute_claim_amounts",
    "derive_candidate_index_at_rank",
    "derive_candidate_indices",
    "dispatch",
    "load_candidate_pool",
    "load_degen_config",
    "load_protocol_config",
    "pool_snapshot_hash",
]
