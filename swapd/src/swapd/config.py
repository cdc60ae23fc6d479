"""
Configuration management using pydantic-settings.
"""

from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel, Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from swapcore.constants import (
    DEFAULT_CONF_TARGET,
    DEFAULT_LOCK_DELTA,
    DEFAULT_MAX_FEE_PER_KW,
    FEE_PER_KW_FLOOR,
    MAX_CONF_TARGET,
    STANDARD_DUST_LIMIT,
)
from swapcore.models import NetworkType


class SwapPolicy(BaseModel):
    """Per-swapper knobs for lock heights, fee rates and output sizes."""

    lock_delta: int = Field(
        default=DEFAULT_LOCK_DELTA,
        ge=1,
        description="Blocks between swap creation and the refund path opening",
    )
    conf_target: int = Field(
        default=DEFAULT_CONF_TARGET,
        ge=1,
        le=MAX_CONF_TARGET,
        description="Confirmation target used when the caller passes 0",
    )
    dust_limit: int = Field(
        default=STANDARD_DUST_LIMIT,
        ge=0,
        description="Smallest settlement output accepted (satoshis)",
    )
    max_fee_per_kw: int = Field(
        default=DEFAULT_MAX_FEE_PER_KW,
        description="Highest explicit fee rate accepted (sat per 1000 weight units)",
    )

    model_config = {"frozen": True}

    @model_validator(mode="after")
    def validate_policy(self) -> SwapPolicy:
        if self.max_fee_per_kw < FEE_PER_KW_FLOOR:
            raise ValueError(
                f"max_fee_per_kw ({self.max_fee_per_kw}) is below the relay floor "
                f"({FEE_PER_KW_FLOOR})"
            )
        return self


class SwapdSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="SWAPD_", env_file=".env", env_file_encoding="utf-8", case_sensitive=False
    )

    network: NetworkType = NetworkType.MAINNET

    rpc_url: str = "http://127.0.0.1:8332"
    rpc_user: str = ""
    rpc_password: str = ""

    mnemonic: str | None = None
    data_dir: Path = Path.home() / ".subswap"

    lock_delta: int = DEFAULT_LOCK_DELTA
    conf_target: int = DEFAULT_CONF_TARGET
    dust_limit: int = STANDARD_DUST_LIMIT
    max_fee_per_kw: int = DEFAULT_MAX_FEE_PER_KW

    log_level: str = "INFO"

    @property
    def records_dir(self) -> Path:
        return self.data_dir / "swaps"

    @property
    def wallet_state_file(self) -> Path:
        return self.data_dir / "wallet.json"

    def policy(self) -> SwapPolicy:
        return SwapPolicy(
            lock_delta=self.lock_delta,
            conf_target=self.conf_target,
            dust_limit=self.dust_limit,
            max_fee_per_kw=self.max_fee_per_kw,
        )


def get_settings() -> SwapdSettings:
    return SwapdSettings()
