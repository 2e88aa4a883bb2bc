"""Degen candidate pool and deterministic candidate sampling."""

from __future__ import annotations

from dataclasses import dataclass
import hashlib
import json
from pathlib import Path
from typing import Any, Iterable

import yaml

from .constants import RANDOMNESS_LEN
from .errors import ConfigError, ErrorCode


@dataclass(frozen=True)
class CandidatePool:
    """Immutable, versioned list of swap target assets addressed by u32 index."""

    version: int
    assets: tuple[str, ...]
    snapshot_sha256: str

    @classmethod
    def build(cls, version: int, assets: Iterable[str]) -> "CandidatePool":
        items = tuple(str(item).strip() for item in assets)
        if version < 0 or version > 0xFFFF_FFFF:
            raise ConfigError(ErrorCode.INVALID_DEGEN_CANDIDATE, "pool version must fit in u32")
        if not items or any(not item for item in items):
            raise ConfigError(ErrorCode.INVALID_DEGEN_CANDIDATE, "pool assets must be non-empty strings")
        if len(set(items)) != len(items):
            raise ConfigError(ErrorCode.INVALID_DEGEN_CANDIDATE, "pool assets must be unique")
        return cls(version=version, assets=items, snapshot_sha256=pool_snapshot_hash(version, items))

    def __len__(self) -> int:
        return len(self.assets)

    def asset_at(self, index: int) -> str | None:
        if index < 0 or index >= len(self.assets):
            return None
        return self.assets[index]


def pool_snapshot_hash(version: int, assets: Iterable[str]) -> str:
    canonical = json.dumps(
        {"version": int(version), "assets": list(assets)},
        sort_keys=True,
        ensure_ascii=True,
        separators=(",", ":"),
    )
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def load_candidate_pool(path: Path) -> CandidatePool:
    payload: Any = yaml.safe_load(Path(path).read_text(encoding="utf-8"))
    if not isinstance(payload, dict):
        raise ConfigError(ErrorCode.INVALID_DEGEN_CANDIDATE, "candidate pool file must be a mapping")
    assets = payload.get("assets")
    if not isinstance(assets, list):
        raise ConfigError(ErrorCode.INVALID_DEGEN_CANDIDATE, "assets must be a list")
    pool = CandidatePool.build(int(payload.get("version", 0)), assets)
    expected = payload.get("snapshot_sha256")
    if expected and str(expected) != pool.snapshot_sha256:
        raise ConfigError(ErrorCode.INVALID_DEGEN_CANDIDATE, "snapshot_sha256 does not match pool contents")
    return pool


def derive_candidate_indices(randomness: bytes, pool_version: int, pool_len: int, count: int) -> list[int]:
    """Pick ``count`` distinct pool indices by rejection sampling.

    Each rank hashes ``randomness || version || rank || nonce`` (u32 little
    endian) and bumps the nonce on collision. Earlier ranks are not a uniform
    permutation; that bias is accepted for pools much larger than the window.
    """
    if len(randomness) != RANDOMNESS_LEN:
        raise ValueError(f"randomness must be {RANDOMNESS_LEN} bytes")
    if pool_len <= 0:
        raise ValueError("pool_len must be > 0")
    limit = min(max(count, 0), pool_len)
    version_le = int(pool_version).to_bytes(4, "little")
    selected: list[int] = []
    seen: set[int] = set()
    for rank in range(limit):
        rank_le = rank.to_bytes(4, "little")
        nonce = 0
        while True:
            digest = hashlib.sha256(
                bytes(randomness) + version_le + rank_le + nonce.to_bytes(4, "little")
            ).digest()
            index = int.from_bytes(digest[:4], "little") % pool_len
            if index not in seen:
                seen.add(index)
                selected.append(index)
                break
            nonce += 1
    return selected


def derive_candidate_index_at_rank(randomness: bytes, pool_version: int, pool_len: int, rank: int) -> int:
    indices = derive_candidate_indices(randomness, pool_version, pool_len, rank + 1)
    if rank >= len(indices):
        raise ValueError(f"rank {rank} exceeds pool length {pool_len}")
    return indices[rank]
