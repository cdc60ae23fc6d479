"""
swapwallet - Chain backends and signing wallet for submarine swaps
"""

__version__ = "0.3.0"
