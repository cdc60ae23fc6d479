"""
Submarine swap coordinator.

Ties the swap index, chain scanner, fee policy, settlement builder and signing
wallet together behind the operations exposed to clients and the service.
"""

from __future__ import annotations

import os

from loguru import logger
from pydantic import ValidationError
from swapcore.address import script_to_p2wsh_address
from swapcore.constants import FEE_PER_KW_FLOOR
from swapcore.crypto import KeyPair, generate_preimage, ripemd160, sha256, validate_pubkey
from swapcore.errors import (
    CorruptRecordError,
    DuplicateSwapError,
    InvalidParametersError,
    SwapNotFoundError,
)
from swapcore.index import SwapIndex
from swapcore.models import (
    ClientInitResult,
    ClientWatchResult,
    NetworkType,
    ServiceInitResult,
    SettlementKind,
    SettlementTransaction,
    SwapRecord,
    SwapState,
    UnspentSummary,
)
from swapcore.notifier import BackupNotifier
from swapcore.permissions import AuthorizationGate
from swapcore.script import build_swap_script, derive_swap, parse_swap_script
from swapwallet.backends.base import BlockchainBackend
from swapwallet.wallet.service import SigningWallet

from swapd.config import SwapPolicy
from swapd.fees import resolve_fee_per_kw, sat_per_vbyte_to_per_kw
from swapd.scanner import UtxoScanner
from swapd.settlement import SettlementBuilder

# Environment variable to enable sensitive logging (preimages, private keys)
SENSITIVE_LOGGING = os.environ.get("SENSITIVE_LOGGING", "").lower() in ("1", "true", "yes")

SETTLED_STATES = {
    SettlementKind.REDEEM: SwapState.REDEEMED,
    SettlementKind.REFUND: SwapState.REFUNDED,
}


def _hex_bytes(value: bytes | str, name: str) -> bytes:
    if isinstance(value, bytes | bytearray):
        return bytes(value)
    try:
        return bytes.fromhex(value)
    except ValueError as e:
        raise InvalidParametersError(f"{name} is not valid hex") from e


class SubmarineSwapper:
    """
    Request/response swap engine.

    State is observed from the chain, never driven: nothing here polls,
    schedules or retries. Byte arguments also accept hex strings.
    """

    def __init__(
        self,
        backend: BlockchainBackend,
        wallet: SigningWallet,
        index: SwapIndex,
        policy: SwapPolicy | None = None,
        network: NetworkType | str = NetworkType.MAINNET,
        gate: AuthorizationGate | None = None,
        backup_notifier: BackupNotifier | None = None,
    ):
        self.backend = backend
        self.wallet = wallet
        self.index = index
        self.policy = policy or SwapPolicy()
        self.network = NetworkType(network)
        self.gate = gate
        self.backup_notifier = backup_notifier

        self.scanner = UtxoScanner(backend, index)
        self.settlements = SettlementBuilder(
            self.scanner, wallet, dust_limit=self.policy.dust_limit
        )

        # Last settlement kind built by this process, per payment hash
        self._settled: dict[str, SettlementKind] = {}

    def _authorize(self, operation: str) -> None:
        if self.gate is not None:
            self.gate.check(operation)

    def _store(self, record: SwapRecord) -> None:
        self.index.put(record)
        if self.backup_notifier is not None:
            self.backup_notifier.notify_backup_needed(f"swap {record.payment_hash} stored")

    async def _fee_rate(self, sat_per_byte: int, conf_target: int) -> int:
        if sat_per_byte < 0:
            raise InvalidParametersError(f"Negative fee rate: {sat_per_byte} sat/vB")

        explicit = None
        if sat_per_byte > 0:
            # 1 sat/vB converts to 250 sat/kw, just under the relay floor
            explicit = max(sat_per_vbyte_to_per_kw(sat_per_byte), FEE_PER_KW_FLOOR)
        return await resolve_fee_per_kw(
            self.backend,
            conf_target,
            explicit,
            default_conf_target=self.policy.conf_target,
            max_fee_per_kw=self.policy.max_fee_per_kw,
        )

    async def client_init(self) -> ClientInitResult:
        """Fresh preimage, its hash, and a fresh client key pair."""
        self._authorize("client_init")

        preimage = generate_preimage()
        payment_hash = sha256(preimage)
        key = KeyPair()

        result = ClientInitResult(
            preimage=preimage.hex(),
            payment_hash=payment_hash.hex(),
            private_key=key.private_key_bytes().hex(),
            pubkey=key.public_key_hex(),
        )
        logger.info(f"Client swap initialized: hash={result.payment_hash} pubkey={result.pubkey}")
        if SENSITIVE_LOGGING:
            logger.debug(f"Client secrets: preimage={result.preimage} key={result.private_key}")
        return result

    async def service_init(
        self, payment_hash: bytes | str, client_pubkey: bytes | str
    ) -> ServiceInitResult:
        """
        Create the service side of a swap and store its record.

        Raises:
            InvalidParametersError: Malformed hash or client key
            DuplicateSwapError: A swap already exists for the hash
            ChainQueryError: The chain height could not be read
        """
        self._authorize("service_init")
        hash_bytes = _hex_bytes(payment_hash, "payment hash")
        client_key = validate_pubkey(
            _hex_bytes(client_pubkey, "client pubkey"), "client public key"
        )
        if hash_bytes in self.index:
            raise DuplicateSwapError(hash_bytes.hex())

        current_height = await self.backend.get_block_height()
        lock_height = current_height + self.policy.lock_delta
        service_key = self.wallet.new_swap_key()

        address, _ = derive_swap(
            hash_bytes, client_key, service_key, lock_height, current_height, self.network
        )
        record = self._make_record(
            hash_bytes, client_key, service_key, lock_height, address, current_height
        )
        self._store(record)

        logger.info(
            f"Service swap created: addr={address} service_pubkey={service_key.hex()} "
            f"lock_height={lock_height}"
        )
        return ServiceInitResult(
            address=address, service_pubkey=service_key.hex(), lock_height=lock_height
        )

    async def client_watch(
        self,
        preimage: bytes | str,
        client_private_key: bytes | str,
        service_pubkey: bytes | str,
        lock_height: int,
    ) -> ClientWatchResult:
        """
        Register the client side of a swap so it can be refunded later.

        Watching the same swap again returns the same address and script.

        Raises:
            InvalidParametersError: Malformed key, or an invalid lock height
            DuplicateSwapError: A different swap is stored under the same hash
            CorruptRecordError: The stored swap no longer derives its address
        """
        self._authorize("client_watch")
        preimage_bytes = _hex_bytes(preimage, "preimage")
        hash_bytes = sha256(preimage_bytes)
        service_key = validate_pubkey(
            _hex_bytes(service_pubkey, "service pubkey"), "service public key"
        )
        client_key = KeyPair.from_secret(_hex_bytes(client_private_key, "client private key"))
        client_pubkey = client_key.public_key_bytes()

        try:
            existing = self.index.get(hash_bytes)
        except SwapNotFoundError:
            existing = None

        if existing is not None:
            script = self._verified_script(existing)
            if parse_swap_script(script) != (
                ripemd160(hash_bytes), service_key, lock_height, client_pubkey
            ):
                logger.warning(f"Conflicting swap already stored for hash {hash_bytes.hex()}")
                raise DuplicateSwapError(hash_bytes.hex())
            self.wallet.import_key(client_key.private_key_bytes())
            logger.debug(f"Swap {hash_bytes.hex()} already watched at {existing.address}")
            return ClientWatchResult(address=existing.address, script=script.hex())

        # When the service created the swap is unknown here, so scans of this
        # record start at genesis.
        creation_height = 0

        address, script = derive_swap(
            hash_bytes, client_pubkey, service_key, lock_height, creation_height, self.network
        )
        self.wallet.import_key(client_key.private_key_bytes())
        record = self._make_record(
            hash_bytes, client_pubkey, service_key, lock_height, address, creation_height
        )
        self._store(record)

        logger.info(f"Watching swap {hash_bytes.hex()} at {address}")
        return ClientWatchResult(address=address, script=script.hex())

    @staticmethod
    def _verified_script(record: SwapRecord) -> bytes:
        """Rebuild a stored record's script and check it still pays to its address."""
        script = build_swap_script(record.params)
        if script_to_p2wsh_address(script, record.network) != record.address:
            raise CorruptRecordError(
                f"Stored swap {record.payment_hash} does not derive {record.address}"
            )
        return script

    def _make_record(
        self,
        payment_hash: bytes,
        client_pubkey: bytes,
        service_pubkey: bytes,
        lock_height: int,
        address: str,
        creation_height: int,
    ) -> SwapRecord:
        try:
            return SwapRecord.model_validate(
                {
                    "params": {
                        "payment_hash": payment_hash,
                        "client_pubkey": client_pubkey,
                        "service_pubkey": service_pubkey,
                        "lock_height": lock_height,
                    },
                    "address": address,
                    "creation_height": creation_height,
                    "network": self.network,
                }
            )
        except ValidationError as e:
            raise InvalidParametersError(str(e)) from e

    def _lookup(self, address: str | None, payment_hash: bytes | str | None) -> SwapRecord:
        if (address is None) == (payment_hash is None):
            raise InvalidParametersError("Exactly one of address or payment_hash is required")
        if payment_hash is not None:
            return self.index.get(payment_hash)
        return self.index.get_by_address(address)  # type: ignore[arg-type]

    async def unspent_amount(
        self, address: str | None = None, payment_hash: bytes | str | None = None
    ) -> UnspentSummary:
        """Confirmed outputs at a swap address, selected by address or by hash."""
        self._authorize("unspent_amount")
        record = self._lookup(address, payment_hash)

        utxos = await self.scanner.collect(record.address, record.creation_height)
        total = sum(u.value for u in utxos)
        logger.info(f"Unspent at {record.address}: {total} sats in {len(utxos)} output(s)")
        return UnspentSummary(
            address=record.address,
            total_amount=total,
            lock_height=record.lock_height,
            creation_height=record.creation_height,
            utxos=utxos,
        )

    async def redeem_fees(
        self, payment_hash: bytes | str, sat_per_byte: int = 0, conf_target: int = 0
    ) -> int:
        """Fee in satoshis a redeem of this swap would pay now."""
        self._authorize("redeem_fees")
        record = self.index.get(payment_hash)
        fee_per_kw = await self._fee_rate(sat_per_byte, conf_target)
        return await self.settlements.estimate_fee(
            record, SettlementKind.REDEEM, None, fee_per_kw
        )

    async def redeem(
        self,
        payment_hash: bytes | str,
        preimage: bytes | str,
        sat_per_byte: int = 0,
        conf_target: int = 0,
        destination: str | None = None,
        broadcast: bool = False,
    ) -> SettlementTransaction:
        """
        Build (and optionally broadcast) the service's redeem transaction.

        The destination defaults to a fresh wallet address.
        """
        self._authorize("redeem")
        record = self.index.get(payment_hash)
        preimage_bytes = _hex_bytes(preimage, "preimage")
        self.settlements.ensure_redeemable(record, preimage_bytes)

        fee_per_kw = await self._fee_rate(sat_per_byte, conf_target)
        if destination is None:
            destination = self.wallet.new_address()

        settlement = await self.settlements.build_redeem(
            record, preimage_bytes, destination, fee_per_kw
        )
        return await self._finish(settlement, broadcast)

    async def refund(
        self,
        deposit_address: str,
        refund_address: str,
        sat_per_byte: int = 0,
        conf_target: int = 0,
        broadcast: bool = False,
    ) -> SettlementTransaction:
        """Build (and optionally broadcast) the client's refund transaction."""
        self._authorize("refund")
        record = self.index.get_by_address(deposit_address)
        current_height = await self.backend.get_block_height()
        self.settlements.ensure_refundable(record, current_height)

        fee_per_kw = await self._fee_rate(sat_per_byte, conf_target)
        settlement = await self.settlements.build_refund(
            record, refund_address, fee_per_kw, current_height
        )
        return await self._finish(settlement, broadcast)

    async def _finish(
        self, settlement: SettlementTransaction, broadcast: bool
    ) -> SettlementTransaction:
        self._settled[settlement.payment_hash] = settlement.kind
        if broadcast:
            txid = await self.backend.broadcast_transaction(settlement.raw)
            logger.info(f"Broadcast {settlement.kind.value} {txid}")
        return settlement

    async def swap_state(self, payment_hash: bytes | str) -> SwapState:
        self._authorize("swap_state")
        record = self.index.get(payment_hash)

        utxos = await self.scanner.collect(record.address, record.creation_height)
        if utxos:
            return SwapState.FUNDED
        kind = self._settled.get(record.payment_hash)
        if kind is not None:
            return SETTLED_STATES[kind]
        return SwapState.INITIALIZED
