"""
HD signing wallet, BIP143 signing and transaction serialization.
"""

from swapwallet.wallet.bip32 import HDKey, mnemonic_to_seed
from swapwallet.wallet.service import SigningWallet, WalletService
from swapwallet.wallet.signing import (
    TransactionSigningError,
    compute_sighash_segwit,
    sign_segwit_input,
    verify_segwit_signature,
)
from swapwallet.wallet.transaction import (
    Transaction,
    TransactionParseError,
    TxInput,
    TxOutput,
    deserialize_transaction,
)

__all__ = [
    "HDKey",
    "mnemonic_to_seed",
    "SigningWallet",
    "WalletService",
    "TransactionSigningError",
    "compute_sighash_segwit",
    "sign_segwit_input",
    "verify_segwit_signature",
    "Transaction",
    "TransactionParseError",
    "TxInput",
    "TxOutput",
    "deserialize_transaction",
]
