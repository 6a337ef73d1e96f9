"""
walrus-cli - Create, sign and broadcast Sia transactions for a walrus wallet.
"""

from __future__ import annotations

import asyncio
import platform
import sys
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import Any, NoReturn, TypeVar

import typer
from loguru import logger

from walrus_cli import __version__
from walrus_cli.backends.walrus import WalrusClient, discover_donation_address
from walrus_cli.config import Settings, get_settings
from walrus_cli.constants import MAX_KEY_INDEX
from walrus_cli.currency import format_currency, format_siacoins, parse_currency
from walrus_cli.errors import InvalidInputError, UserCancelledError, WalletError
from walrus_cli.wallet.change import ConfirmAddress, next_unused_index, register_address
from walrus_cli.wallet.models import TransactionSummary
from walrus_cli.wallet.seed import Seed
from walrus_cli.wallet.service import WalletService
from walrus_cli.wallet.signers import NanoSSigner, SeedSigner, Signer
from walrus_cli.wallet.signing import ReviewCallback
from walrus_cli.wallet.txnfile import read_txn, signed_path, write_txn
from walrus_cli.wallet.types import SiacoinOutput, Transaction, UnlockHash

T = TypeVar("T")

app = typer.Typer(
    name="walrus-cli",
    help="Sia wallet client for walrus servers",
    add_completion=False,
)


def setup_logging(level: str = "INFO") -> None:
    """Configure loguru logging."""
    logger.remove()
    logger.add(
        sys.stderr,
        level=level.upper(),
        format="<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | {message}",
    )


def plural(n: int) -> str:
    return "" if n == 1 else "s"


def parse_outputs(text: str) -> list[SiacoinOutput]:
    """
    Parse ``addr:amount[,addr:amount...]`` with amounts in SC.

    Raises:
        InvalidInputError: On a malformed pair, address or amount
    """
    outputs = []
    for pair in text.split(","):
        parts = pair.split(":")
        if len(parts) != 2:
            raise InvalidInputError("outputs must be specified in addr:amount pairs")
        address = UnlockHash.from_string(parts[0].strip())
        amount = parse_currency(parts[1])
        outputs.append(SiacoinOutput(value=amount, unlock_hash=address))
    return outputs


def load_seed(settings: Settings) -> Seed:
    if settings.seed is not None:
        logger.info("Using WALRUS_SEED environment variable")
        phrase = settings.seed.get_secret_value()
    else:
        phrase = typer.prompt("Seed", hide_input=True)
    return Seed.from_phrase(phrase)


def make_signer(settings: Settings) -> Signer:
    """Signer for this invocation; nothing is opened until it is first used."""
    if settings.hot:
        return SeedSigner(lambda: load_seed(settings))
    return NanoSSigner(interface=settings.device_interface)


def make_backend(settings: Settings) -> WalrusClient:
    return WalrusClient(settings.api_addr, timeout=settings.request_timeout)


def confirm_address_prompt(signer: Signer) -> ConfirmAddress:
    def confirm(address: UnlockHash, index: int) -> None:
        if signer.kind == "seed":
            typer.echo("Derived address from seed:")
        else:
            typer.echo("Compare the address displayed on your device to the address below:")
        typer.echo(f"    {address}")
        if not typer.confirm("Add this address to your wallet?", default=True):
            raise UserCancelledError(f"address #{index} was not added")

    return confirm


def review_prompt(signer: Signer) -> ReviewCallback:
    def review(txn: Transaction, count: int) -> None:
        if signer.kind == "seed":
            typer.echo("Please verify the transaction details:")
        else:
            typer.echo("Please verify the transaction details on your device. You should see:")
        for out in txn.siacoin_outputs:
            typer.echo(f"    {out.unlock_hash} receiving {format_siacoins(out.value)} SC")
        for fee in txn.miner_fees:
            typer.echo(f"    A miner fee of {format_siacoins(fee)} SC")
        if signer.kind == "seed":
            if not typer.confirm("Sign this transaction?", default=True):
                raise UserCancelledError("transaction was not signed")
        elif count > 1:
            typer.echo(
                "Each signature must be completed separately, "
                f"so you will be prompted {count} times."
            )

    return review


def print_summary(summary: TransactionSummary) -> None:
    n_in = len(summary.transaction.siacoin_inputs)
    n_out = summary.num_payment_outputs
    typer.echo("Transaction summary:")
    typer.echo(f"- {n_in} input{plural(n_in)}, totalling {format_currency(summary.inputs_total)}")
    typer.echo(
        f"- {n_out} output{plural(n_out)}, totalling {format_currency(summary.payment_total)}"
    )
    if not summary.donation.is_zero():
        typer.echo(f"  (plus a donation of {format_currency(summary.donation)} to the server)")
    if not summary.change.is_zero():
        typer.echo(
            f"  (plus a change output, sending {format_currency(summary.change)} "
            "back to your wallet)"
        )
    typer.echo(
        f"- A miner fee of {format_currency(summary.fee)}, "
        f"which is {format_currency(summary.fee_per_byte)}/byte"
    )
    typer.echo("")


def run(coro: Awaitable[T], context: str) -> T:
    """Run a command coroutine, mapping wallet errors to exit status 1."""
    try:
        return asyncio.run(coro)  # type: ignore[arg-type]
    except UserCancelledError as e:
        logger.warning(f"Cancelled: {e}")
        raise typer.Exit(1)
    except WalletError as e:
        logger.error(f"{context}: {e}")
        raise typer.Exit(1)


def fail(message: str) -> NoReturn:
    logger.error(message)
    raise typer.Exit(1)


@app.callback(invoke_without_command=True)
def main_callback(
    ctx: typer.Context,
    api_addr: str | None = typer.Option(
        None, "-a", "--api-addr", help="host:port that the walrus API is running on"
    ),
    hot: bool = typer.Option(False, "--hot", help="use a 'hot' seed-based wallet"),
    log_level: str | None = typer.Option(None, "--log-level", "-l"),
) -> None:
    """Sia wallet client for walrus servers."""
    settings = get_settings()
    updates: dict[str, Any] = {}
    if api_addr is not None:
        updates["api_addr"] = api_addr
    if hot:
        updates["hot"] = True
    if log_level is not None:
        updates["log_level"] = log_level
    settings = settings.model_copy(update=updates)
    setup_logging(settings.log_level)
    ctx.obj = settings

    if ctx.invoked_subcommand is None:
        version()


@app.command()
def version() -> None:
    """Show version information."""
    typer.echo(f"walrus-cli v{__version__}")
    typer.echo(f"Python version: {platform.python_version()} {sys.platform}/{platform.machine()}")


@app.command()
def seed() -> None:
    """Generate a random seed."""
    typer.echo(Seed.generate().to_phrase())


@app.command()
def balance(ctx: typer.Context) -> None:
    """Report the current balance."""
    settings: Settings = ctx.obj

    async def _balance() -> None:
        backend = make_backend(settings)
        try:
            typer.echo(format_currency(await backend.balance(limbo=True)))
        finally:
            await backend.close()

    run(_balance(), "Could not get balance")


@app.command()
def consensus(ctx: typer.Context) -> None:
    """Report the server's consensus height."""
    settings: Settings = ctx.obj

    async def _consensus() -> None:
        backend = make_backend(settings)
        try:
            info = await backend.consensus()
            typer.echo(f"Height: {info.height}")
            if info.ccid:
                typer.echo(f"Change ID: {info.ccid}")
        finally:
            await backend.close()

    run(_consensus(), "Could not get consensus info")


@app.command()
def addresses(ctx: typer.Context) -> None:
    """List addresses known to the wallet."""
    settings: Settings = ctx.obj

    async def _addresses() -> None:
        backend = make_backend(settings)
        try:
            for address in await backend.addresses():
                typer.echo(str(address))
        finally:
            await backend.close()

    run(_addresses(), "Could not get address list")


@app.command()
def addr(
    ctx: typer.Context,
    index: int | None = typer.Argument(
        None, min=0, max=MAX_KEY_INDEX, help="key index (default: lowest unused)"
    ),
) -> None:
    """
    Generate an address and add it to the wallet's tracked addresses.
    """
    settings: Settings = ctx.obj

    async def _addr() -> None:
        backend = make_backend(settings)
        try:
            key_index = index
            if key_index is None:
                key_index = await next_unused_index(backend, settings.query_seed_index)
                typer.echo(f"No index specified; using lowest available index ({key_index})")
            else:
                for address in await backend.addresses():
                    info = await backend.address_info(address)
                    if info.key_index == key_index:
                        logger.warning(
                            f"You have already generated an address with index {key_index}."
                        )
            with make_signer(settings) as signer:
                await register_address(backend, signer, key_index, confirm_address_prompt(signer))
            typer.echo("Address added successfully.")
        finally:
            await backend.close()

    run(_addr(), "Could not generate address")


async def _broadcast_flow(service: WalletService, txn: Transaction) -> None:
    txid = await service.broadcast(txn)
    typer.echo("Transaction broadcast successfully.")
    typer.echo(f"Transaction ID: {txid}")


async def _funding_flow(
    settings: Settings,
    build: Callable[[WalletService, Signer], Awaitable[TransactionSummary]],
    file: Path | None,
    sign: bool,
    broadcast: bool,
    with_donation: bool,
) -> None:
    backend = make_backend(settings)
    donation_address = None
    if with_donation:
        donation_address = await discover_donation_address(
            settings.api_addr, timeout=settings.request_timeout
        )
    service = WalletService(
        backend,
        donation_address=donation_address,
        query_seed_index=settings.query_seed_index,
        protocol_height=settings.protocol_height,
    )
    try:
        with make_signer(settings) as signer:
            service.confirm_address = confirm_address_prompt(signer)
            summary = await build(service, signer)
            print_summary(summary)
            txn = summary.transaction
            if sign:
                result = await service.sign(txn, signer, review_prompt(signer))
                if result.nothing_to_sign:
                    typer.echo(
                        "Nothing to sign: transaction does not spend any outputs "
                        "recognized by this wallet"
                    )
                txn = result.transaction
            else:
                typer.echo(
                    "Transaction has not been signed. You can sign it with the 'sign' command."
                )

        if broadcast:
            await _broadcast_flow(service, txn)
            return
        if file is None:
            raise InvalidInputError("A transaction file is required unless --broadcast is given")
        write_txn(file, txn)
        state = "signed" if sign else "unsigned"
        typer.echo(f"Wrote {state} transaction to {file}")
    finally:
        await service.close()


@app.command()
def txn(
    ctx: typer.Context,
    outputs: str = typer.Argument(..., help="comma-separated addr:amount pairs, amounts in SC"),
    file: Path | None = typer.Argument(None, help="where to write the transaction"),
    sign: bool = typer.Option(False, "--sign", help="sign the transaction"),
    broadcast: bool = typer.Option(False, "--broadcast", help="broadcast the transaction"),
    change: str | None = typer.Option(
        None, "--change", help="use this change address instead of generating a new one"
    ),
) -> None:
    """
    Create a transaction paying the provided outputs.

    Inputs are selected automatically, and a change address is generated if
    needed.
    """
    settings: Settings = ctx.obj
    if file is None and not broadcast:
        fail("A transaction file is required unless --broadcast is given")
    try:
        parsed = parse_outputs(outputs)
        change_address = UnlockHash.from_string(change) if change else None
    except InvalidInputError as e:
        fail(f"Could not parse outputs: {e}")

    async def build(service: WalletService, signer: Signer) -> TransactionSummary:
        return await service.create_transaction(parsed, change_address, signer)

    run(
        _funding_flow(settings, build, file, sign, broadcast, with_donation=True),
        "Could not create transaction",
    )


@app.command()
def split(
    ctx: typer.Context,
    n: int = typer.Argument(..., min=1, help="number of outputs"),
    amount: str = typer.Argument(..., help="value of each output, in SC"),
    file: Path | None = typer.Argument(None, help="where to write the transaction"),
    sign: bool = typer.Option(False, "--sign", help="sign the transaction"),
    broadcast: bool = typer.Option(False, "--broadcast", help="broadcast the transaction"),
    change: str | None = typer.Option(
        None, "--change", help="send the outputs here instead of to a new address"
    ),
) -> None:
    """
    Create a transaction splitting the wallet's funds into N equal outputs.
    """
    settings: Settings = ctx.obj
    if file is None and not broadcast:
        fail("A transaction file is required unless --broadcast is given")
    try:
        value = parse_currency(amount)
        if value.is_zero():
            raise InvalidInputError("output value must be positive")
        change_address = UnlockHash.from_string(change) if change else None
    except InvalidInputError as e:
        fail(f"Invalid split: {e}")

    async def build(service: WalletService, signer: Signer) -> TransactionSummary:
        return await service.create_split_transaction(n, value, change_address, signer)

    run(
        _funding_flow(settings, build, file, sign, broadcast, with_donation=False),
        "Could not create split transaction",
    )


@app.command("sign")
def sign_cmd(
    ctx: typer.Context,
    txn_file: Path = typer.Argument(..., help="transaction to sign"),
    broadcast: bool = typer.Option(
        False, "--broadcast", help="broadcast the transaction instead of writing it"
    ),
) -> None:
    """Sign the inputs of a transaction that the wallet controls."""
    settings: Settings = ctx.obj
    try:
        unsigned = read_txn(txn_file)
    except InvalidInputError as e:
        fail(str(e))

    async def _sign() -> None:
        service = WalletService(
            make_backend(settings), protocol_height=settings.protocol_height
        )
        try:
            with make_signer(settings) as signer:
                result = await service.sign(unsigned, signer, review_prompt(signer))
            if result.nothing_to_sign:
                typer.echo(
                    "Nothing to sign: transaction does not spend any outputs "
                    "recognized by this wallet"
                )
                return
            if broadcast:
                await _broadcast_flow(service, result.transaction)
                return
            path = signed_path(txn_file)
            write_txn(path, result.transaction)
            typer.echo(f"Wrote signed transaction to {path}.")
            typer.echo("You can now use the 'broadcast' command to broadcast this transaction.")
        finally:
            await service.close()

    run(_sign(), "Could not sign transaction")


@app.command("broadcast")
def broadcast_cmd(
    ctx: typer.Context,
    txn_file: Path = typer.Argument(..., help="signed transaction to broadcast"),
) -> None:
    """Broadcast a transaction."""
    settings: Settings = ctx.obj
    try:
        signed = read_txn(txn_file)
    except InvalidInputError as e:
        fail(str(e))

    async def _broadcast() -> None:
        service = WalletService(make_backend(settings))
        try:
            await _broadcast_flow(service, signed)
        finally:
            await service.close()

    run(_broadcast(), "Could not broadcast transaction")


@app.command()
def transactions(
    ctx: typer.Context,
    address: str | None = typer.Option(None, "--addr", help="only transactions for this address"),
    max_count: int = typer.Option(-1, "--max", help="maximum number of transactions"),
) -> None:
    """List wallet transactions, newest first."""
    settings: Settings = ctx.obj
    try:
        filter_addr = UnlockHash.from_string(address) if address else None
    except InvalidInputError as e:
        fail(f"Invalid address: {e}")

    async def _transactions() -> None:
        backend = make_backend(settings)
        try:
            for txid in await backend.transactions(max_count, filter_addr):
                typer.echo(txid)
        finally:
            await backend.close()

    run(_transactions(), "Could not get transactions")


def main() -> None:
    """CLI entry point."""
    app()


if __name__ == "__main__":
    main()
