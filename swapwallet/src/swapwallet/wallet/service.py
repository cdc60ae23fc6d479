"""
Swap signing wallet backed by a BIP32 seed.
"""

from __future__ import annotations

import os
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path

from coincurve import PrivateKey
from loguru import logger
from pydantic import BaseModel, Field
from swapcore.errors import InvalidParametersError
from swapcore.models import NetworkType

from swapwallet.wallet.bip32 import HDKey, mnemonic_to_seed
from swapwallet.wallet.signing import TransactionSigningError, sign_segwit_input
from swapwallet.wallet.transaction import Transaction

RECEIVE_BRANCH = 0
SWAP_KEY_BRANCH = 3


class SigningWallet(ABC):
    """
    Key custody for swap settlements.

    Callers only ever see public keys; signatures are produced inside the wallet.
    """

    @abstractmethod
    def new_address(self) -> str:
        """Fresh P2WPKH receive address"""

    @abstractmethod
    def new_swap_key(self) -> bytes:
        """Fresh compressed pubkey for the service side of a swap"""

    @abstractmethod
    def import_key(self, private_key: bytes) -> bytes:
        """Register an externally generated key, returns its compressed pubkey"""

    @abstractmethod
    def has_key(self, pubkey: bytes) -> bool:
        pass

    @abstractmethod
    def sign_input(
        self,
        tx: Transaction,
        input_index: int,
        script_code: bytes,
        value: int,
        pubkey: bytes,
    ) -> bytes:
        """BIP143 signature (DER + sighash byte) for input_index using the key for pubkey"""


class WalletState(BaseModel):
    next_receive_index: int = Field(default=0, ge=0)
    next_swap_index: int = Field(default=0, ge=0)
    imported_keys: list[str] = Field(default_factory=list)


class WalletService(SigningWallet):
    """
    BIP84 wallet with a dedicated branch for swap keys.

    Derivation paths:
    - receive addresses: m/84'/{coin}'/0'/0/{index}
    - swap keys:         m/84'/{coin}'/0'/3/{index}

    When state_file is set, derivation indices and imported keys survive restarts.
    """

    def __init__(
        self,
        mnemonic: str,
        network: NetworkType | str = NetworkType.MAINNET,
        state_file: Path | str | None = None,
    ):
        self.network = NetworkType(network)
        self.state_file = Path(state_file) if state_file else None

        self.master_key = HDKey.from_seed(mnemonic_to_seed(mnemonic))
        coin_type = 0 if self.network == NetworkType.MAINNET else 1
        self.account_path = f"m/84'/{coin_type}'/0'"

        self._keys: dict[bytes, PrivateKey] = {}
        self.state = self._load_state()

        for index in range(self.state.next_swap_index):
            self._remember(self._derive(SWAP_KEY_BRANCH, index).private_key)
        for secret_hex in self.state.imported_keys:
            self._remember(PrivateKey(bytes.fromhex(secret_hex)))

        logger.info(
            f"Initialized swap wallet on {self.network.value} "
            f"({len(self._keys)} swap key(s) loaded)"
        )

    def _derive(self, branch: int, index: int) -> HDKey:
        return self.master_key.derive(f"{self.account_path}/{branch}/{index}")

    def _remember(self, private_key: PrivateKey) -> bytes:
        pubkey = private_key.public_key.format(compressed=True)
        self._keys[pubkey] = private_key
        return pubkey

    def _load_state(self) -> WalletState:
        if self.state_file is None or not self.state_file.exists():
            return WalletState()
        return WalletState.model_validate_json(self.state_file.read_text())

    def _save_state(self) -> None:
        if self.state_file is None:
            return
        self.state_file.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=self.state_file.parent, suffix=".tmp")
        try:
            with os.fdopen(fd, "w") as f:
                f.write(self.state.model_dump_json(indent=2))
            os.chmod(tmp_name, 0o600)
            os.replace(tmp_name, self.state_file)
        except OSError:
            os.unlink(tmp_name)
            raise

    def get_address(self, index: int) -> str:
        return self._derive(RECEIVE_BRANCH, index).get_address(self.network)

    def new_address(self) -> str:
        address = self.get_address(self.state.next_receive_index)
        self.state.next_receive_index += 1
        self._save_state()
        logger.debug(f"New receive address: {address}")
        return address

    def new_swap_key(self) -> bytes:
        index = self.state.next_swap_index
        pubkey = self._remember(self._derive(SWAP_KEY_BRANCH, index).private_key)
        self.state.next_swap_index += 1
        self._save_state()
        logger.debug(f"Derived swap key #{index}: {pubkey.hex()}")
        return pubkey

    def import_key(self, private_key: bytes) -> bytes:
        if len(private_key) != 32:
            raise InvalidParametersError("Private key must be 32 bytes")
        try:
            key = PrivateKey(private_key)
        except ValueError as e:
            raise InvalidParametersError("Private key is out of range") from e

        pubkey = key.public_key.format(compressed=True)
        if pubkey not in self._keys:
            self._remember(key)
            self.state.imported_keys.append(private_key.hex())
            self._save_state()
            logger.debug(f"Imported swap key {pubkey.hex()}")
        return pubkey

    def has_key(self, pubkey: bytes) -> bool:
        return pubkey in self._keys

    def sign_input(
        self,
        tx: Transaction,
        input_index: int,
        script_code: bytes,
        value: int,
        pubkey: bytes,
    ) -> bytes:
        private_key = self._keys.get(pubkey)
        if private_key is None:
            raise TransactionSigningError(f"No private key for {pubkey.hex()}")
        return sign_segwit_input(tx, input_index, script_code, value, private_key)
