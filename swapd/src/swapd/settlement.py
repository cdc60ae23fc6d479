"""
Construction of signed redeem and refund transactions for swap outputs.

Redeem spends every confirmed output at the swap address through the
hash branch (service key + preimage). Refund spends them through the
timelocked branch (client key) once the lock height is reached.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence

from loguru import logger
from swapcore.address import address_to_scriptpubkey
from swapcore.constants import (
    MAX_MONEY,
    MAX_SIGNATURE_SIZE,
    PREIMAGE_LENGTH,
    SEQUENCE_FINAL,
    SEQUENCE_LOCKTIME,
    STANDARD_DUST_LIMIT,
)
from swapcore.crypto import preimage_matches
from swapcore.errors import (
    ChainQueryError,
    InsufficientFundsError,
    InvalidParametersError,
    InvalidPreimageError,
    LockNotExpiredError,
)
from swapcore.models import SettlementKind, SettlementTransaction, SwapRecord, Utxo
from swapcore.script import build_swap_script, redeem_witness, refund_witness
from swapwallet.wallet.service import SigningWallet
from swapwallet.wallet.transaction import Transaction, TxInput, TxOutput

from swapd.fees import fee_for_weight
from swapd.scanner import UtxoScanner

WitnessBuilder = Callable[[bytes, bytes], list[bytes]]

# Stand-in destination when the caller has not picked one yet (P2WPKH)
PLACEHOLDER_DESTINATION_SCRIPT = bytes([0x00, 0x14]) + bytes(20)


def settlement_weight(
    script: bytes,
    kind: SettlementKind,
    input_count: int,
    destination_script: bytes = PLACEHOLDER_DESTINATION_SCRIPT,
) -> int:
    """
    Weight of a fully signed settlement, assuming maximum-size signatures.

    Real signatures are at most MAX_SIGNATURE_SIZE bytes, so the signed
    transaction never weighs more than this.
    """
    placeholder_sig = bytes(MAX_SIGNATURE_SIZE)
    if kind == SettlementKind.REDEEM:
        witness = redeem_witness(placeholder_sig, bytes(PREIMAGE_LENGTH), script)
    else:
        witness = refund_witness(placeholder_sig, script)

    tx = Transaction(
        inputs=[
            TxInput(txid="00" * 32, vout=0, value=0, witness=list(witness))
            for _ in range(input_count)
        ],
        outputs=[TxOutput(value=0, script=destination_script)],
    )
    return tx.weight()


class SettlementBuilder:
    def __init__(
        self,
        scanner: UtxoScanner,
        wallet: SigningWallet,
        dust_limit: int = STANDARD_DUST_LIMIT,
    ):
        self.scanner = scanner
        self.wallet = wallet
        self.dust_limit = dust_limit

    @staticmethod
    def ensure_redeemable(record: SwapRecord, preimage: bytes) -> None:
        if not preimage_matches(preimage, record.params.hash_bytes):
            logger.warning(f"Redeem rejected for {record.payment_hash}: preimage does not match")
            raise InvalidPreimageError(f"Preimage does not match hash {record.payment_hash}")

    @staticmethod
    def ensure_refundable(record: SwapRecord, current_height: int) -> None:
        if current_height < record.lock_height:
            logger.debug(
                f"Refund for {record.payment_hash} rejected: height {current_height} "
                f"< lock {record.lock_height}"
            )
            raise LockNotExpiredError(record.lock_height, current_height)

    async def _funding_outputs(self, record: SwapRecord) -> list[Utxo]:
        utxos = await self.scanner.collect(record.address, record.creation_height)
        if not utxos:
            raise InsufficientFundsError(available=0, fee=0, minimum_output=self.dust_limit)

        total = sum(u.value for u in utxos)
        if total > MAX_MONEY:
            raise ChainQueryError(f"Implausible total {total} sats at {record.address}")
        return utxos

    def _split(self, total: int, fee: int) -> int:
        amount = total - fee
        if amount < self.dust_limit:
            raise InsufficientFundsError(
                available=total, fee=fee, minimum_output=self.dust_limit
            )
        return amount

    async def estimate_fee(
        self,
        record: SwapRecord,
        kind: SettlementKind,
        destination: str | None,
        fee_per_kw: int,
    ) -> int:
        """
        Fee the settlement would pay at fee_per_kw, without signing anything.

        Raises:
            InsufficientFundsError: Nothing to spend at the swap address
        """
        destination_script = (
            address_to_scriptpubkey(destination) if destination else PLACEHOLDER_DESTINATION_SCRIPT
        )
        utxos = await self._funding_outputs(record)
        weight = settlement_weight(
            build_swap_script(record.params), kind, len(utxos), destination_script
        )
        fee = fee_for_weight(fee_per_kw, weight)
        logger.debug(
            f"{kind.value} fee for {record.payment_hash}: {fee} sats "
            f"({len(utxos)} input(s), weight {weight}, {fee_per_kw} sat/kw)"
        )
        return fee

    async def build_redeem(
        self,
        record: SwapRecord,
        preimage: bytes,
        destination: str,
        fee_per_kw: int,
    ) -> SettlementTransaction:
        """
        Spend the swap outputs to destination with the service key.

        Raises:
            InvalidPreimageError: sha256(preimage) is not the payment hash
            InsufficientFundsError: Nothing to spend, or the fee leaves dust
        """
        self.ensure_redeemable(record, preimage)

        return await self._build(
            record,
            SettlementKind.REDEEM,
            destination,
            fee_per_kw,
            pubkey=record.params.service_pubkey_bytes,
            locktime=0,
            sequence=SEQUENCE_FINAL,
            witness_for=lambda sig, script: redeem_witness(sig, preimage, script),
        )

    async def build_refund(
        self,
        record: SwapRecord,
        destination: str,
        fee_per_kw: int,
        current_height: int,
    ) -> SettlementTransaction:
        """
        Spend the swap outputs back to the client once the lock has expired.

        Raises:
            LockNotExpiredError: current_height is below the lock height
            InsufficientFundsError: Nothing to spend, or the fee leaves dust
        """
        self.ensure_refundable(record, current_height)

        return await self._build(
            record,
            SettlementKind.REFUND,
            destination,
            fee_per_kw,
            pubkey=record.params.client_pubkey_bytes,
            locktime=record.lock_height,
            sequence=SEQUENCE_LOCKTIME,
            witness_for=refund_witness,
        )

    async def _build(
        self,
        record: SwapRecord,
        kind: SettlementKind,
        destination: str,
        fee_per_kw: int,
        pubkey: bytes,
        locktime: int,
        sequence: int,
        witness_for: WitnessBuilder,
    ) -> SettlementTransaction:
        destination_script = address_to_scriptpubkey(destination)
        if not self.wallet.has_key(pubkey):
            raise InvalidParametersError(
                f"Wallet holds no key for {pubkey.hex()}, cannot {kind.value} {record.payment_hash}"
            )

        script = build_swap_script(record.params)
        utxos = await self._funding_outputs(record)
        total = sum(u.value for u in utxos)

        weight = settlement_weight(script, kind, len(utxos), destination_script)
        fee = fee_for_weight(fee_per_kw, weight)
        amount = self._split(total, fee)

        tx = Transaction(
            inputs=[
                TxInput(txid=u.txid, vout=u.vout, value=u.value, sequence=sequence)
                for u in utxos
            ],
            outputs=[TxOutput(value=amount, script=destination_script)],
            locktime=locktime,
        )
        self._sign(tx, utxos, script, pubkey, witness_for)

        settlement = SettlementTransaction(
            kind=kind,
            payment_hash=record.payment_hash,
            txid=tx.txid(),
            raw=tx.hex(),
            fee=fee,
            amount=amount,
            destination=destination,
            inputs=list(utxos),
            weight=tx.weight(),
            locktime=locktime,
        )
        logger.info(
            f"Built {kind.value} {settlement.txid} for {record.payment_hash}: "
            f"{amount} sats to {destination}, fee {fee} sats"
        )
        return settlement

    def _sign(
        self,
        tx: Transaction,
        utxos: Sequence[Utxo],
        script: bytes,
        pubkey: bytes,
        witness_for: WitnessBuilder,
    ) -> None:
        for i, utxo in enumerate(utxos):
            signature = self.wallet.sign_input(tx, i, script, utxo.value, pubkey)
            tx.inputs[i].witness = list(witness_for(signature, script))
