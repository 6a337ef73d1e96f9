"""
walrus-cli - Funding and signing client for walrus-tracked Sia wallets

Builds fee-correct transactions from the outputs tracked by a walrus server
and signs them with a Ledger Nano S or a seed held in memory.
"""

__version__ = "0.2.0"

from walrus_cli.currency import Currency, format_currency, parse_currency, siacoins
from walrus_cli.errors import (
    InsufficientFundsError,
    InvalidInputError,
    RemoteError,
    SignerError,
    SignerUnavailableError,
    UserCancelledError,
    WalletError,
)

__all__ = [
    "Currency",
    "InsufficientFundsError",
    "InvalidInputError",
    "RemoteError",
    "SignerError",
    "SignerUnavailableError",
    "UserCancelledError",
    "WalletError",
    "format_currency",
    "parse_currency",
    "siacoins",
]
