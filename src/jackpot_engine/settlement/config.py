"""Protocol and degen configuration models and YAML loaders."""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, field_validator

from .constants import BPS_DENOMINATOR, DEFAULT_DEGEN_FALLBACK_TIMEOUT_SEC, U64_MAX
from .errors import ConfigError, ErrorCode

_VAR_PATTERN = re.compile(r"\$\{([^}]+)\}")


class ProtocolConfig(BaseModel):
    admin: str
    settlement_asset: str = "USDC"
    treasury_account: str
    fee_bps: int
    ticket_unit: int
    round_duration_sec: int
    min_participants: int = 1
    min_total_tickets: int = 1
    max_deposit_per_user: int = 0
    paused: bool = False

    @field_validator("min_participants", "min_total_tickets")
    @classmethod
    def _at_least_one(cls, value: int) -> int:
        return max(int(value), 1)


class DegenConfig(BaseModel):
    executor: str
    fallback_timeout_sec: int = DEFAULT_DEGEN_FALLBACK_TIMEOUT_SEC

    @field_validator("fallback_timeout_sec")
    @classmethod
    def _default_timeout(cls, value: int) -> int:
        return int(value) or DEFAULT_DEGEN_FALLBACK_TIMEOUT_SEC

    def effective_timeout(self) -> int:
        return self.fallback_timeout_sec or DEFAULT_DEGEN_FALLBACK_TIMEOUT_SEC


def validate_protocol_config(config: ProtocolConfig) -> ProtocolConfig:
    if not config.admin.strip():
        raise ConfigError(ErrorCode.INVALID_ADMIN, "admin must be non-empty")
    if not config.treasury_account.strip():
        raise ConfigError(ErrorCode.INVALID_TREASURY, "treasury_account must be non-empty")
    if config.fee_bps < 0 or config.fee_bps > BPS_DENOMINATOR:
        raise ConfigError(ErrorCode.INVALID_FEE_BPS)
    if config.ticket_unit <= 0 or config.ticket_unit > U64_MAX:
        raise ConfigError(ErrorCode.INVALID_TICKET_UNIT)
    if config.round_duration_sec <= 0 or config.round_duration_sec > 0xFFFF_FFFF:
        raise ConfigError(ErrorCode.INVALID_ROUND_DURATION)
    if config.max_deposit_per_user < 0 or config.max_deposit_per_user > U64_MAX:
        raise ConfigError(ErrorCode.MAX_DEPOSIT_EXCEEDED, "max_deposit_per_user out of u64 range")
    return config


def validate_degen_config(config: DegenConfig) -> DegenConfig:
    if not config.executor.strip():
        raise ConfigError(ErrorCode.UNAUTHORIZED_DEGEN_EXECUTOR, "executor must be non-empty")
    if config.fallback_timeout_sec < 0 or config.fallback_timeout_sec > 0xFFFF_FFFF:
        raise ConfigError(ErrorCode.INVALID_DEGEN_EXECUTION_STATE, "fallback_timeout_sec out of u32 range")
    return config


def _expand_str(value: str) -> str:
    def replacer(match: re.Match[str]) -> str:
        token = match.group(1)
        if ":-" in token:
            key, default = token.split(":-", 1)
            actual = os.getenv(key, "")
            return actual if actual.strip() else default
        actual = os.getenv(token, "")
        if not actual.strip():
            raise ValueError(f"missing environment variable: {token}")
        return actual

    return _VAR_PATTERN.sub(replacer, value)


def _expand_payload(value: Any) -> Any:
    if isinstance(value, str):
        return _expand_str(value)
    if isinstance(value, list):
        return [_expand_payload(item) for item in value]
    if isinstance(value, dict):
        return {str(key): _expand_payload(item) for key, item in value.items()}
    return value


def _read_mapping(path: Path) -> dict[str, Any]:
    data = yaml.safe_load(Path(path).read_text(encoding="utf-8"))
    if not isinstance(data, dict):
        raise ValueError(f"{path} must contain a mapping")
    return _expand_payload(data)


def load_protocol_config(path: Path) -> ProtocolConfig:
    return validate_protocol_config(ProtocolConfig(**_read_mapping(path)))


def load_degen_config(path: Path) -> DegenConfig:
    return validate_degen_config(DegenConfig(**_read_mapping(path)))
