"""Protocol constants shared by the settlement state machines."""

from __future__ import annotations


MAX_PARTICIPANTS = 200
BPS_DENOMINATOR = 10_000
U64_MAX = (1 << 64) - 1

# Fixed reimbursement for whoever paid the round VRF request (0.20 in 6-decimal units).
VRF_REIMBURSEMENT = 200_000

RANDOMNESS_LEN = 32
ROUTE_HASH_LEN = 32

DEGEN_CANDIDATE_WINDOW = 10
DEFAULT_DEGEN_FALLBACK_TIMEOUT_SEC = 300
NO_CANDIDATE_RANK = 255
NO_TOKEN_INDEX = 0xFFFF_FFFF

SEED_ROUND = "round"
SEED_PARTICIPANT = "p"
SEED_DEGEN_CLAIM = "degen_claim"
SEED_VAULT = "vault"
SEED_CUSTODY = "custody"
DEFAULT_ADDRESS_SALT = 255
