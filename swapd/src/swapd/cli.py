"""
Submarine swap CLI using Typer.

Settings come from SWAPD_* environment variables (or a .env file); command
options override them. Results are printed as JSON on stdout.
"""

from __future__ import annotations

import asyncio
import sys
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import Annotated, Any

import typer
from loguru import logger
from pydantic import BaseModel, ValidationError
from swapcore.errors import SwapError
from swapcore.index import FileRecordStore, SwapIndex
from swapcore.models import NetworkType
from swapwallet.backends.bitcoin_core import BitcoinCoreBackend
from swapwallet.wallet.service import WalletService

from swapd.config import SwapdSettings
from swapd.coordinator import SubmarineSwapper

app = typer.Typer(add_completion=False, help="Submarine swap engine")

NetworkOption = Annotated[
    NetworkType | None, typer.Option("--network", "-n", case_sensitive=False)
]
DataDirOption = Annotated[
    Path | None,
    typer.Option("--data-dir", "-d", help="Directory for swap records and wallet state"),
]
LogLevelOption = Annotated[str | None, typer.Option("--log-level", "-l")]
SatPerByteOption = Annotated[
    int, typer.Option("--sat-per-byte", help="Explicit fee rate (sat/vB), 0 to estimate")
]
ConfTargetOption = Annotated[
    int, typer.Option("--conf-target", help="Confirmation target in blocks, 0 for default")
]
BroadcastOption = Annotated[bool, typer.Option("--broadcast", help="Broadcast the transaction")]


def setup_logging(level: str) -> None:
    """Configure loguru logging."""
    logger.remove()
    logger.add(
        sys.stderr,
        level=level.upper(),
        format="<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | {message}",
    )


def load_settings(
    network: NetworkType | None, data_dir: Path | None, log_level: str | None
) -> SwapdSettings:
    overrides: dict[str, Any] = {}
    if network is not None:
        overrides["network"] = network
    if data_dir is not None:
        overrides["data_dir"] = data_dir
    if log_level is not None:
        overrides["log_level"] = log_level

    try:
        settings = SwapdSettings(**overrides)
        # Policy bounds (lock delta, fee cap) are only checked by SwapPolicy
        settings.policy()
    except ValidationError as e:
        setup_logging("INFO")
        logger.error(f"Invalid configuration: {e}")
        raise typer.Exit(1)

    setup_logging(settings.log_level)
    return settings


def build_swapper(settings: SwapdSettings) -> SubmarineSwapper:
    if not settings.mnemonic:
        logger.error("Mnemonic required. Set SWAPD_MNEMONIC")
        raise typer.Exit(1)

    backend = BitcoinCoreBackend(
        rpc_url=settings.rpc_url,
        rpc_user=settings.rpc_user,
        rpc_password=settings.rpc_password,
    )
    wallet = WalletService(
        mnemonic=settings.mnemonic,
        network=settings.network,
        state_file=settings.wallet_state_file,
    )
    index = SwapIndex(FileRecordStore(settings.records_dir))
    return SubmarineSwapper(
        backend=backend,
        wallet=wallet,
        index=index,
        policy=settings.policy(),
        network=settings.network,
    )


def run_operation(
    settings: SwapdSettings,
    operation: Callable[[SubmarineSwapper], Awaitable[Any]],
) -> None:
    """Run one swapper operation and print its result as JSON."""

    async def _run() -> Any:
        swapper = build_swapper(settings)
        try:
            return await operation(swapper)
        finally:
            await swapper.backend.close()

    try:
        result = asyncio.run(_run())
    except SwapError as e:
        logger.error(f"{type(e).__name__}: {e}")
        raise typer.Exit(1)

    if isinstance(result, BaseModel):
        typer.echo(result.model_dump_json(indent=2))
    else:
        typer.echo(result)


@app.command("client-init")
def client_init(
    network: NetworkOption = None,
    data_dir: DataDirOption = None,
    log_level: LogLevelOption = None,
) -> None:
    """Generate a preimage, its payment hash and a client key pair."""
    settings = load_settings(network, data_dir, log_level)
    run_operation(settings, lambda s: s.client_init())


@app.command("service-init")
def service_init(
    payment_hash: Annotated[str, typer.Argument(help="Payment hash (hex)")],
    client_pubkey: Annotated[str, typer.Argument(help="Client public key (hex)")],
    network: NetworkOption = None,
    data_dir: DataDirOption = None,
    log_level: LogLevelOption = None,
) -> None:
    """Create the service side of a swap and print its deposit address."""
    settings = load_settings(network, data_dir, log_level)
    run_operation(settings, lambda s: s.service_init(payment_hash, client_pubkey))


@app.command("client-watch")
def client_watch(
    preimage: Annotated[str, typer.Argument(help="Preimage (hex)")],
    client_key: Annotated[str, typer.Argument(help="Client private key (hex)")],
    service_pubkey: Annotated[str, typer.Argument(help="Service public key (hex)")],
    lock_height: Annotated[int, typer.Argument(help="Refund lock height")],
    network: NetworkOption = None,
    data_dir: DataDirOption = None,
    log_level: LogLevelOption = None,
) -> None:
    """Register the client side of a swap for later refund."""
    settings = load_settings(network, data_dir, log_level)
    run_operation(
        settings,
        lambda s: s.client_watch(preimage, client_key, service_pubkey, lock_height),
    )


@app.command("unspent")
def unspent(
    address: Annotated[str | None, typer.Option("--address", help="Swap address")] = None,
    payment_hash: Annotated[str | None, typer.Option("--hash", help="Payment hash (hex)")] = None,
    network: NetworkOption = None,
    data_dir: DataDirOption = None,
    log_level: LogLevelOption = None,
) -> None:
    """Show confirmed outputs at a swap address."""
    settings = load_settings(network, data_dir, log_level)
    run_operation(
        settings, lambda s: s.unspent_amount(address=address, payment_hash=payment_hash)
    )


@app.command("redeem-fees")
def redeem_fees(
    payment_hash: Annotated[str, typer.Argument(help="Payment hash (hex)")],
    sat_per_byte: SatPerByteOption = 0,
    conf_target: ConfTargetOption = 0,
    network: NetworkOption = None,
    data_dir: DataDirOption = None,
    log_level: LogLevelOption = None,
) -> None:
    """Print the fee a redeem would pay now, in satoshis."""
    settings = load_settings(network, data_dir, log_level)
    run_operation(settings, lambda s: s.redeem_fees(payment_hash, sat_per_byte, conf_target))


@app.command("redeem")
def redeem(
    payment_hash: Annotated[str, typer.Argument(help="Payment hash (hex)")],
    preimage: Annotated[str, typer.Argument(help="Preimage (hex)")],
    destination: Annotated[
        str | None, typer.Option("--destination", help="Payout address (default: new address)")
    ] = None,
    sat_per_byte: SatPerByteOption = 0,
    conf_target: ConfTargetOption = 0,
    broadcast: BroadcastOption = False,
    network: NetworkOption = None,
    data_dir: DataDirOption = None,
    log_level: LogLevelOption = None,
) -> None:
    """Build the service's redeem transaction."""
    settings = load_settings(network, data_dir, log_level)
    run_operation(
        settings,
        lambda s: s.redeem(
            payment_hash,
            preimage,
            sat_per_byte=sat_per_byte,
            conf_target=conf_target,
            destination=destination,
            broadcast=broadcast,
        ),
    )


@app.command("refund")
def refund(
    deposit_address: Annotated[str, typer.Argument(help="Swap deposit address")],
    refund_address: Annotated[str, typer.Argument(help="Address receiving the refund")],
    sat_per_byte: SatPerByteOption = 0,
    conf_target: ConfTargetOption = 0,
    broadcast: BroadcastOption = False,
    network: NetworkOption = None,
    data_dir: DataDirOption = None,
    log_level: LogLevelOption = None,
) -> None:
    """Build the client's refund transaction once the lock height is reached."""
    settings = load_settings(network, data_dir, log_level)
    run_operation(
        settings,
        lambda s: s.refund(
            deposit_address,
            refund_address,
            sat_per_byte=sat_per_byte,
            conf_target=conf_target,
            broadcast=broadcast,
        ),
    )


def main() -> None:
    """CLI entry point."""
    app()


if __name__ == "__main__":
    main()
