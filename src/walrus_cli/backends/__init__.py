"""
Ledger-watching service backends.

Available backends:
- WalrusClient: HTTP client for a walrus watch-seed server (or a hosted
  narwal wallet, which additionally serves a donation address)
"""

from walrus_cli.backends.base import (
    AddressInfo,
    ConsensusInfo,
    LedgerTransaction,
    SeedUTXO,
    WalletBackend,
)
from walrus_cli.backends.walrus import WalrusClient, discover_donation_address

__all__ = [
    "AddressInfo",
    "ConsensusInfo",
    "LedgerTransaction",
    "SeedUTXO",
    "WalletBackend",
    "WalrusClient",
    "discover_donation_address",
]
