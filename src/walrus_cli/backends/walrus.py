"""
HTTP client for the walrus watch-seed API.

walrus tracks a set of seed-derived addresses and serves their outputs, the
recommended fee and consensus state. The API address is given as
``host:port[/path]``; ``http://`` is assumed when no scheme is present.
"""

from __future__ import annotations

from typing import Any
from urllib.parse import urlsplit, urlunsplit

import httpx
from loguru import logger
from pydantic import TypeAdapter, ValidationError

from walrus_cli.backends.base import (
    AddressInfo,
    ConsensusInfo,
    LedgerTransaction,
    SeedUTXO,
    WalletBackend,
)
from walrus_cli.constants import DEFAULT_REQUEST_TIMEOUT
from walrus_cli.currency import Currency
from walrus_cli.errors import RemoteError
from walrus_cli.wallet.types import Transaction, UnlockHash

_addresses = TypeAdapter(list[UnlockHash])
_utxos = TypeAdapter(list[SeedUTXO])
_txids = TypeAdapter(list[str])
_currency = TypeAdapter(Currency)
_unlock_hash = TypeAdapter(UnlockHash)


def base_url(api_addr: str) -> str:
    """Normalize ``host:port[/path]`` to an absolute URL without trailing slash."""
    if "://" not in api_addr:
        api_addr = "http://" + api_addr
    return api_addr.rstrip("/")


class WalrusClient(WalletBackend):
    """
    walrus API client.

    Non-200 responses carry a plain-text error which is surfaced verbatim.
    """

    def __init__(
        self,
        api_addr: str,
        timeout: float = DEFAULT_REQUEST_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.api_addr = api_addr
        self.base_url = base_url(api_addr)
        self.client = httpx.AsyncClient(
            base_url=self.base_url, timeout=timeout, transport=transport
        )

    async def _request(
        self,
        method: str,
        route: str,
        params: dict[str, Any] | None = None,
        data: Any = None,
    ) -> Any:
        """Make an API call and return the decoded JSON body (None if empty)."""
        try:
            response = await self.client.request(method, route, params=params, json=data)
        except httpx.HTTPError as e:
            logger.error(f"walrus API call failed: {method} {route} - {e}")
            raise RemoteError(str(e) or type(e).__name__) from e

        if response.status_code != 200:
            message = response.text.strip()
            logger.debug(f"walrus API {method} {route} returned {response.status_code}")
            raise RemoteError(message or f"HTTP {response.status_code}")

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            raise RemoteError(f"invalid JSON from {route}: {e}") from e

    async def _get(self, route: str, params: dict[str, Any] | None = None) -> Any:
        return await self._request("GET", route, params=params)

    async def _post(self, route: str, data: Any) -> Any:
        return await self._request("POST", route, data=data)

    @staticmethod
    def _decode(adapter: TypeAdapter, data: Any, route: str) -> Any:
        try:
            return adapter.validate_python(data)
        except ValidationError as e:
            raise RemoteError(f"unexpected response from {route}: {e}") from e

    async def balance(self, limbo: bool = True) -> Currency:
        data = await self._get("/balance", {"limbo": str(limbo).lower()})
        return self._decode(_currency, data, "/balance")

    async def addresses(self) -> list[UnlockHash]:
        data = await self._get("/addresses")
        return self._decode(_addresses, data or [], "/addresses")

    async def address_info(self, address: UnlockHash) -> AddressInfo:
        route = f"/addresses/{address}"
        data = await self._get(route)
        return self._decode(TypeAdapter(AddressInfo), data, route)

    async def watch_address(self, info: AddressInfo) -> None:
        await self._post("/addresses", info.model_dump(mode="json", by_alias=True))

    async def next_seed_index(self) -> int:
        data = await self._get("/seedindex")
        return self._decode(TypeAdapter(int), data, "/seedindex")

    async def unspent_outputs(self, limbo: bool = False) -> list[SeedUTXO]:
        data = await self._get("/utxos", {"limbo": str(limbo).lower()})
        return self._decode(_utxos, data or [], "/utxos")

    async def recommended_fee(self) -> Currency:
        data = await self._get("/fee")
        return self._decode(_currency, data, "/fee")

    async def consensus(self) -> ConsensusInfo:
        data = await self._get("/consensus")
        return self._decode(TypeAdapter(ConsensusInfo), data, "/consensus")

    async def transactions(
        self, max_count: int = -1, address: UnlockHash | None = None
    ) -> list[str]:
        params: dict[str, Any] = {"max": max_count}
        if address is not None:
            params["addr"] = str(address)
        data = await self._get("/transactions", params)
        return self._decode(_txids, data or [], "/transactions")

    async def transaction(self, txid: str) -> LedgerTransaction:
        route = f"/transactions/{txid}"
        data = await self._get(route)
        return self._decode(TypeAdapter(LedgerTransaction), data, route)

    async def broadcast(self, txn_set: list[Transaction]) -> None:
        await self._post(
            "/broadcast", [txn.model_dump(mode="json", by_alias=True) for txn in txn_set]
        )

    async def close(self) -> None:
        await self.client.aclose()


def donations_url(api_addr: str) -> str | None:
    """
    Sibling ``donations`` endpoint of a hosted wallet API.

    A hosted wallet lives at ``…/wallet/<name>``; its donation address is served
    at ``…/donations``. Returns None for any other path shape.
    """
    parts = urlsplit(base_url(api_addr))
    path = parts.path.split("/")
    if len(path) < 2 or path[-2] != "wallet":
        return None
    path = path[:-2] + ["donations"]
    return urlunsplit(parts._replace(path="/".join(path)))


async def discover_donation_address(
    api_addr: str,
    timeout: float = DEFAULT_REQUEST_TIMEOUT,
    transport: httpx.AsyncBaseTransport | None = None,
) -> UnlockHash | None:
    """Fetch the server's donation address; any failure means no donation."""
    url = donations_url(api_addr)
    if url is None:
        return None
    try:
        async with httpx.AsyncClient(timeout=timeout, transport=transport) as client:
            response = await client.get(url)
        response.raise_for_status()
        return _unlock_hash.validate_python(response.json())
    except (httpx.HTTPError, ValueError) as e:
        logger.warning(f"No donation address available from {url}: {e}")
        return None
