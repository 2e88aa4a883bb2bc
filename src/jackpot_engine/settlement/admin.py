"""Admin surface: protocol config lifecycle, pause, admin/treasury rotation and degen executor config."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError

from .config import DegenConfig, ProtocolConfig, validate_degen_config, validate_protocol_config
from .errors import AuthorizationError, ConfigError, ErrorCode, StateGuardError
from .events import AdminTransferred, TreasuryUpdated

if TYPE_CHECKING:
    from .engine import JackpotEngine


logger = logging.getLogger("jackpot_engine.settlement.admin")

UPDATABLE_FIELDS: frozenset[str] = frozenset(
    {
        "fee_bps",
        "ticket_unit",
        "round_duration_sec",
        "min_participants",
        "min_total_tickets",
        "max_deposit_per_user",
        "paused",
    }
)


def _build_config(payload: dict[str, Any]) -> ProtocolConfig:
    try:
        config = ProtocolConfig(**payload)
    except ValidationError as exc:
        raise ConfigError(ErrorCode.INVALID_CONFIG, str(exc)) from exc
    return validate_protocol_config(config)


class AdminService:
    def __init__(self, engine: "JackpotEngine") -> None:
        self.engine = engine

    def init_config(self, admin: str, config: ProtocolConfig) -> ProtocolConfig:
        if self.engine.config is not None:
            raise StateGuardError(ErrorCode.CONFIG_ALREADY_INITIALIZED)
        payload = config.model_dump()
        payload["admin"] = admin
        payload["paused"] = False
        with self.engine.operation():
            self.engine.config = _build_config(payload)
        logger.info("protocol config initialised admin=%s fee_bps=%s", admin, self.engine.config.fee_bps)
        return self.engine.config

    def update_config(self, admin: str, /, **changes: Any) -> ProtocolConfig:
        """Apply a partial update; fields passed as ``None`` are left unchanged."""
        current = self._require_admin(admin)
        unknown = set(changes) - UPDATABLE_FIELDS
        if unknown:
            raise ConfigError(ErrorCode.INVALID_CONFIG, f"fields not updatable: {sorted(unknown)}")
        updates = {key: value for key, value in changes.items() if value is not None}
        with self.engine.operation():
            self.engine.config = _build_config({**current.model_dump(), **updates})
        logger.info("protocol config updated fields=%s", sorted(updates))
        return self.engine.config

    def set_paused(self, admin: str, paused: bool) -> ProtocolConfig:
        return self.update_config(admin, paused=bool(paused))

    def transfer_admin(self, admin: str, new_admin: str) -> ProtocolConfig:
        current = self._require_admin(admin)
        if not new_admin or not new_admin.strip():
            raise ConfigError(ErrorCode.INVALID_ADMIN, "new admin must be non-empty")
        if new_admin == current.admin:
            raise ConfigError(ErrorCode.INVALID_ADMIN, "new admin equals current admin")
        with self.engine.operation() as op:
            self.engine.config = _build_config({**current.model_dump(), "admin": new_admin})
            op.emit(AdminTransferred(previous_admin=current.admin, new_admin=new_admin))
        logger.info("admin transferred from=%s to=%s", current.admin, new_admin)
        return self.engine.config

    def set_treasury_account(self, admin: str, new_treasury: str) -> ProtocolConfig:
        current = self._require_admin(admin)
        if not new_treasury or not new_treasury.strip():
            raise ConfigError(ErrorCode.INVALID_TREASURY, "treasury account must be non-empty")
        if new_treasury == current.treasury_account:
            raise ConfigError(ErrorCode.INVALID_TREASURY, "treasury account unchanged")
        with self.engine.operation() as op:
            self.engine.config = _build_config({**current.model_dump(), "treasury_account": new_treasury})
            op.emit(TreasuryUpdated(previous_treasury=current.treasury_account, new_treasury=new_treasury))
        logger.info("treasury updated from=%s to=%s", current.treasury_account, new_treasury)
        return self.engine.config

    def upsert_degen_config(self, admin: str, executor: str, fallback_timeout_sec: int = 0) -> DegenConfig:
        self._require_admin(admin)
        if not executor or not executor.strip():
            raise ConfigError(ErrorCode.UNAUTHORIZED_DEGEN_EXECUTOR, "executor must be non-empty")
        with self.engine.operation():
            self.engine.degen_config = validate_degen_config(
                DegenConfig(executor=executor, fallback_timeout_sec=fallback_timeout_sec)
            )
        logger.info(
            "degen config upserted executor=%s fallback_timeout_sec=%s",
            executor,
            self.engine.degen_config.fallback_timeout_sec,
        )
        return self.engine.degen_config

    def _require_admin(self, admin: str) -> ProtocolConfig:
        current = self.engine.require_config()
        if admin != current.admin:
            raise AuthorizationError(ErrorCode.UNAUTHORIZED, "caller is not the admin")
        return current
