"""
Tests for change address allocation.
"""

from __future__ import annotations

from unittest.mock import AsyncMock

import pytest

from tests.conftest import FakeBackend, make_utxo
from walrus_cli.backends.base import AddressInfo, WalletBackend
from walrus_cli.errors import InvalidInputError, SignerUnavailableError, UserCancelledError
from walrus_cli.wallet.change import (
    allocate_change_address,
    next_unused_index,
    register_address,
)
from walrus_cli.wallet.seed import Seed
from walrus_cli.wallet.signers import SeedSigner
from walrus_cli.wallet.types import standard_unlock_conditions


class TestNextUnusedIndex:
    """Tests for key index assignment."""

    @pytest.mark.asyncio
    async def test_empty_wallet(self) -> None:
        assert await next_unused_index(FakeBackend()) == 0

    @pytest.mark.asyncio
    async def test_max_plus_one(self, seed: Seed) -> None:
        backend = FakeBackend()
        for index in (0, 4, 2):
            backend.track(
                AddressInfo(
                    unlock_conditions=standard_unlock_conditions(seed.public_key(index)),
                    key_index=index,
                )
            )
        assert await next_unused_index(backend) == 5

    @pytest.mark.asyncio
    async def test_single_address_at_zero(self, seed: Seed) -> None:
        backend = FakeBackend([make_utxo(seed, 0, 100)])
        assert await next_unused_index(backend) == 1

    @pytest.mark.asyncio
    async def test_query_server(self, seed: Seed) -> None:
        backend = FakeBackend([make_utxo(seed, 6, 100)])
        assert await next_unused_index(backend, query_server=True) == 7


class TestAllocateChangeAddress:
    """Tests for allocate_change_address."""

    @pytest.mark.asyncio
    async def test_preconfigured_string(self, seed: Seed) -> None:
        backend = FakeBackend()
        address = await allocate_change_address(backend, str(seed.address(3)))
        assert address == seed.address(3)
        assert backend.watched == []

    @pytest.mark.asyncio
    async def test_preconfigured_invalid(self) -> None:
        with pytest.raises(InvalidInputError):
            await allocate_change_address(FakeBackend(), "not-an-address")

    @pytest.mark.asyncio
    async def test_preconfigured_skips_signer(self, seed: Seed) -> None:
        def load() -> Seed:
            raise AssertionError("signer should not be used")

        signer = SeedSigner(load)
        address = await allocate_change_address(FakeBackend(), seed.address(1), signer)
        assert address == seed.address(1)
        assert not signer.is_open

    @pytest.mark.asyncio
    async def test_generates_and_registers(self, seed: Seed, test_phrase: str) -> None:
        backend = FakeBackend([make_utxo(seed, 0, 100), make_utxo(seed, 1, 100)])
        confirmed = []
        with SeedSigner.from_seed(Seed.from_phrase(test_phrase)) as signer:
            address = await allocate_change_address(
                backend, None, signer, lambda a, i: confirmed.append((a, i))
            )
        assert address == seed.address(2)
        assert confirmed == [(seed.address(2), 2)]
        assert len(backend.watched) == 1
        assert backend.watched[0].key_index == 2
        assert backend.watched[0].address() == address

    @pytest.mark.asyncio
    async def test_requires_signer(self) -> None:
        with pytest.raises(SignerUnavailableError):
            await allocate_change_address(FakeBackend(), None, None)

    @pytest.mark.asyncio
    async def test_declined_registers_nothing(self, test_phrase: str) -> None:
        backend = FakeBackend()

        def decline(address, index) -> None:
            raise UserCancelledError("no")

        with SeedSigner.from_seed(Seed.from_phrase(test_phrase)) as signer:
            with pytest.raises(UserCancelledError):
                await register_address(backend, signer, 0, decline)
        assert backend.watched == []


class TestIndexSource:
    """Tests for which backend call supplies the next key index."""

    @pytest.mark.asyncio
    async def test_query_does_not_scan(self) -> None:
        backend = AsyncMock(spec=WalletBackend)
        backend.next_seed_index.return_value = 12
        assert await next_unused_index(backend, query_server=True) == 12
        backend.addresses.assert_not_called()
        backend.address_info.assert_not_called()

    @pytest.mark.asyncio
    async def test_scan_does_not_query(self) -> None:
        backend = AsyncMock(spec=WalletBackend)
        backend.addresses.return_value = []
        assert await next_unused_index(backend) == 0
        backend.next_seed_index.assert_not_called()
