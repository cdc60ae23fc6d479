"""
swapcore - Core library for submarine swaps

Provides swap models, script derivation, the swap index and event fan-out.
"""

__version__ = "0.3.0"

from swapcore.broker import Broker, BrokerClosedError, Subscription
from swapcore.errors import (
    ChainQueryError,
    CorruptRecordError,
    DuplicateSwapError,
    FeeEstimationUnavailableError,
    InsufficientFundsError,
    InvalidParametersError,
    InvalidPreimageError,
    LockNotExpiredError,
    PermissionDeniedError,
    SwapError,
    SwapNotFoundError,
)
from swapcore.index import FileRecordStore, MemoryRecordStore, RecordStore, SwapIndex
from swapcore.models import (
    NetworkType,
    SettlementKind,
    SettlementTransaction,
    SwapParameters,
    SwapRecord,
    SwapState,
    UnspentSummary,
    Utxo,
)
from swapcore.script import build_swap_script, derive_swap, parse_swap_script, swap_address

__all__ = [
    "Broker",
    "BrokerClosedError",
    "ChainQueryError",
    "CorruptRecordError",
    "DuplicateSwapError",
    "FeeEstimationUnavailableError",
    "FileRecordStore",
    "InsufficientFundsError",
    "InvalidParametersError",
    "InvalidPreimageError",
    "LockNotExpiredError",
    "MemoryRecordStore",
    "NetworkType",
    "PermissionDeniedError",
    "RecordStore",
    "SettlementKind",
    "SettlementTransaction",
    "Subscription",
    "SwapError",
    "SwapIndex",
    "SwapNotFoundError",
    "SwapParameters",
    "SwapRecord",
    "SwapState",
    "UnspentSummary",
    "Utxo",
    "build_swap_script",
    "derive_swap",
    "parse_swap_script",
    "swap_address",
]
