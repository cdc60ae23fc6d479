"""
Core data models using Pydantic for validation and serialization.

Byte fields are carried as lowercase hex strings so records serialize to JSON
unchanged; the ``*_bytes`` properties give the raw values.
"""

from __future__ import annotations

from enum import Enum

from coincurve import PublicKey
from pydantic import BaseModel, Field, field_validator, model_validator

from swapcore.constants import LOCKTIME_THRESHOLD, MAX_MONEY

HEX32_PATTERN = r"^[0-9a-f]{64}$"
PUBKEY_PATTERN = r"^0[23][0-9a-f]{64}$"


class NetworkType(str, Enum):
    MAINNET = "mainnet"
    TESTNET = "testnet"
    SIGNET = "signet"
    REGTEST = "regtest"


class SwapParameters(BaseModel):
    """Immutable parameters that fully determine a swap script."""

    payment_hash: str = Field(..., pattern=HEX32_PATTERN)
    client_pubkey: str = Field(..., pattern=PUBKEY_PATTERN)
    service_pubkey: str = Field(..., pattern=PUBKEY_PATTERN)
    lock_height: int = Field(..., gt=0, lt=LOCKTIME_THRESHOLD)

    model_config = {"frozen": True}

    @field_validator("payment_hash", "client_pubkey", "service_pubkey", mode="before")
    @classmethod
    def normalize_hex(cls, v: str | bytes) -> str:
        if isinstance(v, bytes | bytearray):
            return bytes(v).hex()
        return v.lower() if isinstance(v, str) else v

    @field_validator("client_pubkey", "service_pubkey")
    @classmethod
    def validate_curve_point(cls, v: str) -> str:
        try:
            PublicKey(bytes.fromhex(v))
        except ValueError as e:
            raise ValueError(f"Public key is not a valid curve point: {v}") from e
        return v

    @property
    def hash_bytes(self) -> bytes:
        return bytes.fromhex(self.payment_hash)

    @property
    def client_pubkey_bytes(self) -> bytes:
        return bytes.fromhex(self.client_pubkey)

    @property
    def service_pubkey_bytes(self) -> bytes:
        return bytes.fromhex(self.service_pubkey)


class SwapRecord(BaseModel):
    """Persisted swap, keyed by payment hash. Read-only after creation."""

    params: SwapParameters
    address: str = Field(..., min_length=14, max_length=90)
    creation_height: int = Field(..., ge=0)
    network: NetworkType = NetworkType.MAINNET

    model_config = {"frozen": True}

    @model_validator(mode="after")
    def lock_after_creation(self) -> SwapRecord:
        if self.params.lock_height <= self.creation_height:
            raise ValueError(
                f"lock_height {self.params.lock_height} must be above "
                f"creation_height {self.creation_height}"
            )
        return self

    @property
    def payment_hash(self) -> str:
        return self.params.payment_hash

    @property
    def lock_height(self) -> int:
        return self.params.lock_height


class Utxo(BaseModel):
    txid: str = Field(..., pattern=HEX32_PATTERN)
    vout: int = Field(..., ge=0)
    value: int = Field(..., ge=0, le=MAX_MONEY)
    height: int = Field(..., ge=0)

    model_config = {"frozen": True}

    @property
    def outpoint(self) -> str:
        return f"{self.txid}:{self.vout}"


class SwapState(str, Enum):
    INITIALIZED = "initialized"
    FUNDED = "funded"
    REDEEMED = "redeemed"
    REFUNDED = "refunded"


class SettlementKind(str, Enum):
    REDEEM = "redeem"
    REFUND = "refund"


class SettlementTransaction(BaseModel):
    """A fully signed, unbroadcast spend of the swap outputs."""

    kind: SettlementKind
    payment_hash: str = Field(..., pattern=HEX32_PATTERN)
    txid: str = Field(..., pattern=HEX32_PATTERN)
    raw: str
    fee: int = Field(..., ge=0)
    amount: int = Field(..., gt=0)
    destination: str
    inputs: list[Utxo]
    weight: int = Field(..., gt=0)
    locktime: int = Field(default=0, ge=0)

    @property
    def raw_bytes(self) -> bytes:
        return bytes.fromhex(self.raw)

    @property
    def total_input(self) -> int:
        return sum(u.value for u in self.inputs)


class UnspentSummary(BaseModel):
    address: str
    total_amount: int = Field(..., ge=0)
    lock_height: int
    creation_height: int
    utxos: list[Utxo] = Field(default_factory=list)


class ClientInitResult(BaseModel):
    preimage: str = Field(..., pattern=HEX32_PATTERN)
    payment_hash: str = Field(..., pattern=HEX32_PATTERN)
    private_key: str = Field(..., pattern=HEX32_PATTERN)
    pubkey: str = Field(..., pattern=PUBKEY_PATTERN)


class ServiceInitResult(BaseModel):
    address: str
    service_pubkey: str = Field(..., pattern=PUBKEY_PATTERN)
    lock_height: int


class ClientWatchResult(BaseModel):
    address: str
    script: str
