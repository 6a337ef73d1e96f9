"""
Pytest configuration and fixtures for walrus-cli tests.
"""

from __future__ import annotations

import hashlib

import pytest

from walrus_cli.backends.base import (
    AddressInfo,
    ConsensusInfo,
    LedgerTransaction,
    SeedUTXO,
    WalletBackend,
)
from walrus_cli.currency import Currency
from walrus_cli.errors import RemoteError
from walrus_cli.wallet.seed import Seed
from walrus_cli.wallet.types import Transaction, UnlockHash, standard_unlock_conditions

TEST_PHRASE = (
    "abandon abandon abandon abandon abandon abandon "
    "abandon abandon abandon abandon abandon about"
)


def make_id(label: str) -> str:
    """Deterministic 32-byte hex ID for test outputs."""
    return hashlib.sha256(label.encode()).hexdigest()


def make_utxo(seed: Seed, key_index: int, value: int, label: str | None = None) -> SeedUTXO:
    conditions = standard_unlock_conditions(seed.public_key(key_index))
    return SeedUTXO(
        id=make_id(label or f"utxo-{key_index}-{value}"),
        value=Currency(value),
        unlock_conditions=conditions,
        unlock_hash=conditions.unlock_hash(),
        key_index=key_index,
    )


class FakeBackend(WalletBackend):
    """In-memory walrus server."""

    def __init__(
        self,
        utxos: list[SeedUTXO] | None = None,
        fee: int = 1,
        height: int = 300_000,
    ):
        self.infos: dict[UnlockHash, AddressInfo] = {}
        self.utxos = list(utxos or [])
        self.fee = Currency(fee)
        self.height = height
        self.broadcasts: list[list[Transaction]] = []
        self.watched: list[AddressInfo] = []
        self.closed = False
        for utxo in self.utxos:
            self.track(
                AddressInfo(unlock_conditions=utxo.unlock_conditions, key_index=utxo.key_index)
            )

    def track(self, info: AddressInfo) -> None:
        self.infos[info.address()] = info

    async def balance(self, limbo: bool = True) -> Currency:
        return sum((u.value for u in self.utxos), Currency(0))

    async def addresses(self) -> list[UnlockHash]:
        return list(self.infos)

    async def address_info(self, address: UnlockHash) -> AddressInfo:
        if address not in self.infos:
            raise RemoteError("no such entry")
        return self.infos[address]

    async def watch_address(self, info: AddressInfo) -> None:
        self.watched.append(info)
        self.track(info)

    async def next_seed_index(self) -> int:
        return max((i.key_index for i in self.infos.values()), default=-1) + 1

    async def unspent_outputs(self, limbo: bool = False) -> list[SeedUTXO]:
        return list(self.utxos)

    async def recommended_fee(self) -> Currency:
        return self.fee

    async def consensus(self) -> ConsensusInfo:
        return ConsensusInfo(height=self.height, ccid="00" * 32)

    async def transactions(
        self, max_count: int = -1, address: UnlockHash | None = None
    ) -> list[str]:
        ids = [txns[0].id() for txns in reversed(self.broadcasts)]
        return ids if max_count < 0 else ids[:max_count]

    async def transaction(self, txid: str) -> LedgerTransaction:
        for txns in self.broadcasts:
            if txns[0].id() == txid:
                return LedgerTransaction(transaction=txns[0])
        raise RemoteError("no such transaction")

    async def broadcast(self, txn_set: list[Transaction]) -> None:
        self.broadcasts.append(txn_set)

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def test_phrase() -> str:
    """BIP39 test vector (all-zero entropy)"""
    return TEST_PHRASE


@pytest.fixture
def seed() -> Seed:
    return Seed.from_phrase(TEST_PHRASE)


@pytest.fixture
def other_seed() -> Seed:
    """A seed that owns nothing in the test wallet."""
    return Seed(bytes(range(16)))
