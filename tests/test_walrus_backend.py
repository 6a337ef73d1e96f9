"""
Tests for the walrus HTTP client.
"""

from __future__ import annotations

import json

import httpx
import pytest

from tests.conftest import make_utxo
from walrus_cli.backends.base import AddressInfo
from walrus_cli.backends.walrus import (
    WalrusClient,
    base_url,
    discover_donation_address,
    donations_url,
)
from walrus_cli.errors import RemoteError
from walrus_cli.wallet.seed import Seed
from walrus_cli.wallet.types import Transaction, standard_unlock_conditions


def client_for(handler, api_addr: str = "localhost:9380") -> WalrusClient:
    return WalrusClient(api_addr, transport=httpx.MockTransport(handler))


class TestUrls:
    """Tests for API address handling."""

    def test_scheme_added(self) -> None:
        assert base_url("localhost:9380") == "http://localhost:9380"

    def test_scheme_kept(self) -> None:
        assert base_url("https://example.com/wallet/abc/") == "https://example.com/wallet/abc"

    def test_donations_sibling(self) -> None:
        assert (
            donations_url("https://example.com/wallet/abc")
            == "https://example.com/donations"
        )

    def test_donations_nested_prefix(self) -> None:
        assert donations_url("example.com/api/wallet/abc") == "http://example.com/api/donations"

    def test_donations_other_shape(self) -> None:
        assert donations_url("localhost:9380") is None


class TestWalrusClient:
    """Tests for WalrusClient requests and decoding."""

    @pytest.mark.asyncio
    async def test_utxos(self, seed: Seed) -> None:
        utxo = make_utxo(seed, 2, 5000)
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["path"] = request.url.path
            seen["limbo"] = request.url.params["limbo"]
            return httpx.Response(200, json=[utxo.model_dump(mode="json", by_alias=True)])

        client = client_for(handler)
        try:
            utxos = await client.unspent_outputs()
        finally:
            await client.close()
        assert seen == {"path": "/utxos", "limbo": "false"}
        assert utxos == [utxo]

    @pytest.mark.asyncio
    async def test_fee_and_balance(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path == "/fee":
                return httpx.Response(200, json="10000000000000000000")
            return httpx.Response(200, json="123")

        client = client_for(handler)
        assert await client.recommended_fee() == 10**19
        assert await client.balance() == 123
        await client.close()

    @pytest.mark.asyncio
    async def test_addresses_and_info(self, seed: Seed) -> None:
        conditions = standard_unlock_conditions(seed.public_key(3))
        address = conditions.unlock_hash()
        info = AddressInfo(unlock_conditions=conditions, key_index=3)

        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path == "/addresses":
                return httpx.Response(200, json=[str(address)])
            assert request.url.path == f"/addresses/{address}"
            return httpx.Response(200, json=info.model_dump(mode="json", by_alias=True))

        client = client_for(handler)
        assert await client.addresses() == [address]
        assert (await client.address_info(address)).key_index == 3
        await client.close()

    @pytest.mark.asyncio
    async def test_watch_address_posts_conditions(self, seed: Seed) -> None:
        info = AddressInfo(
            unlock_conditions=standard_unlock_conditions(seed.public_key(1)), key_index=1
        )
        posted = {}

        def handler(request: httpx.Request) -> httpx.Response:
            posted["method"] = request.method
            posted["body"] = json.loads(request.content)
            return httpx.Response(200)

        client = client_for(handler)
        await client.watch_address(info)
        await client.close()
        assert posted["method"] == "POST"
        assert posted["body"]["keyIndex"] == 1
        assert "unlockConditions" in posted["body"]

    @pytest.mark.asyncio
    async def test_transactions_params(self, seed: Seed) -> None:
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen.update(request.url.params)
            return httpx.Response(200, json=["ab" * 32])

        client = client_for(handler)
        txids = await client.transactions(max_count=5, address=seed.address(0))
        await client.close()
        assert txids == ["ab" * 32]
        assert seen == {"max": "5", "addr": str(seed.address(0))}

    @pytest.mark.asyncio
    async def test_broadcast_sends_set(self) -> None:
        bodies = []

        def handler(request: httpx.Request) -> httpx.Response:
            bodies.append(json.loads(request.content))
            return httpx.Response(200)

        client = client_for(handler)
        await client.broadcast([Transaction()])
        await client.close()
        assert len(bodies) == 1
        assert isinstance(bodies[0], list) and len(bodies[0]) == 1

    @pytest.mark.asyncio
    async def test_error_text_surfaced_verbatim(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(400, text="transaction is invalid: missing signature\n")

        client = client_for(handler)
        with pytest.raises(RemoteError, match="^transaction is invalid: missing signature$"):
            await client.broadcast([Transaction()])
        await client.close()

    @pytest.mark.asyncio
    async def test_connection_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        client = client_for(handler)
        with pytest.raises(RemoteError, match="connection refused"):
            await client.consensus()
        await client.close()

    @pytest.mark.asyncio
    async def test_malformed_response(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"height": -1})

        client = client_for(handler)
        with pytest.raises(RemoteError, match="/consensus"):
            await client.consensus()
        await client.close()


class TestDonationDiscovery:
    """Tests for discover_donation_address."""

    @pytest.mark.asyncio
    async def test_found(self, seed: Seed) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == "/donations"
            return httpx.Response(200, json=str(seed.address(0)))

        address = await discover_donation_address(
            "example.com/wallet/abc", transport=httpx.MockTransport(handler)
        )
        assert address == seed.address(0)

    @pytest.mark.asyncio
    async def test_not_hosted(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise AssertionError("no request expected")

        address = await discover_donation_address(
            "localhost:9380", transport=httpx.MockTransport(handler)
        )
        assert address is None

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "response",
        [
            httpx.Response(404, text="not found"),
            httpx.Response(200, json="not-an-address"),
            httpx.Response(200, text="{"),
        ],
    )
    async def test_failures_mean_no_donation(self, response: httpx.Response) -> None:
        address = await discover_donation_address(
            "example.com/wallet/abc", transport=httpx.MockTransport(lambda request: response)
        )
        assert address is None
