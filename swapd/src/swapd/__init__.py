"""
swapd - Submarine swap engine

Scans swap addresses, resolves fee rates and builds signed redeem and refund
transactions on top of swapcore and swapwallet.
"""

__version__ = "0.3.0"

from swapd.config import SwapdSettings, SwapPolicy
from swapd.coordinator import SubmarineSwapper
from swapd.settlement import SettlementBuilder
from swapd.scanner import UtxoScanner

__all__ = [
    "SettlementBuilder",
    "SubmarineSwapper",
    "SwapPolicy",
    "SwapdSettings",
    "UtxoScanner",
]
