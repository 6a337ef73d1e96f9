"""
Base ledger-watching service interface.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from pydantic import BaseModel, ConfigDict, Field

from walrus_cli.currency import Currency
from walrus_cli.wallet.types import (
    HASH_PATTERN,
    SiacoinInput,
    Transaction,
    UnlockConditions,
    UnlockHash,
)


class AddressInfo(BaseModel):
    """Spending policy and derivation index of a tracked address."""

    model_config = ConfigDict(populate_by_name=True)

    unlock_conditions: UnlockConditions = Field(..., alias="unlockConditions")
    key_index: int = Field(..., ge=0, alias="keyIndex")

    def address(self) -> UnlockHash:
        return self.unlock_conditions.unlock_hash()


class SeedUTXO(BaseModel):
    """Unspent output owned by a seed-derived address."""

    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(..., pattern=HASH_PATTERN, alias="ID")
    value: Currency
    unlock_conditions: UnlockConditions = Field(..., alias="unlockConditions")
    unlock_hash: UnlockHash = Field(..., alias="unlockHash")
    key_index: int = Field(..., ge=0, alias="keyIndex")

    def to_input(self) -> SiacoinInput:
        return SiacoinInput(parent_id=self.id, unlock_conditions=self.unlock_conditions)


class ConsensusInfo(BaseModel):
    height: int = Field(..., ge=0)
    ccid: str = ""


class LedgerTransaction(BaseModel):
    """A transaction relevant to the wallet, as recorded by the server."""

    model_config = ConfigDict(populate_by_name=True)

    transaction: Transaction
    block_id: str = Field(default="", alias="blockID")
    block_height: int = Field(default=0, ge=0, alias="blockHeight")
    timestamp: str = ""
    fee_paid: Currency = Field(default=Currency(0), alias="feePaid")


class WalletBackend(ABC):
    """
    Abstract ledger-watching service.

    Implementations report failures as RemoteError with the server's message.
    """

    @abstractmethod
    async def balance(self, limbo: bool = True) -> Currency:
        """Total value of tracked outputs"""

    @abstractmethod
    async def addresses(self) -> list[UnlockHash]:
        """All tracked addresses"""

    @abstractmethod
    async def address_info(self, address: UnlockHash) -> AddressInfo:
        """Unlock conditions and key index of a tracked address"""

    @abstractmethod
    async def watch_address(self, info: AddressInfo) -> None:
        """Start tracking an address"""

    @abstractmethod
    async def next_seed_index(self) -> int:
        """Lowest key index not yet used by a tracked address"""

    @abstractmethod
    async def unspent_outputs(self, limbo: bool = False) -> list[SeedUTXO]:
        """Unspent outputs; with limbo=False, outputs spent by unconfirmed
        transactions are excluded."""

    @abstractmethod
    async def recommended_fee(self) -> Currency:
        """Recommended fee in hastings per byte"""

    @abstractmethod
    async def consensus(self) -> ConsensusInfo:
        """Current consensus height and change ID"""

    @abstractmethod
    async def transactions(
        self, max_count: int = -1, address: UnlockHash | None = None
    ) -> list[str]:
        """IDs of wallet transactions, newest first, optionally for one address"""

    @abstractmethod
    async def transaction(self, txid: str) -> LedgerTransaction:
        """A single wallet transaction"""

    @abstractmethod
    async def broadcast(self, txn_set: list[Transaction]) -> None:
        """Submit a transaction set to the network"""

    async def close(self) -> None:
        """Close backend connection"""
        pass
