"""
Change address allocation.

A transaction that leaves value over sends it to a change address. The user
may name one in advance; otherwise a fresh key is derived at the next unused
index, confirmed by the user and registered with the server so that the
change output is tracked.
"""

from __future__ import annotations

from collections.abc import Callable

from loguru import logger

from walrus_cli.backends.base import AddressInfo, WalletBackend
from walrus_cli.errors import SignerUnavailableError
from walrus_cli.wallet.signers import Signer
from walrus_cli.wallet.types import UnlockHash, standard_unlock_conditions

ConfirmAddress = Callable[[UnlockHash, int], None]


async def next_unused_index(backend: WalletBackend, query_server: bool = False) -> int:
    """
    Lowest key index above every tracked address.

    With ``query_server`` the server's own seed index is used instead of
    scanning the address list.
    """
    if query_server:
        return await backend.next_seed_index()

    addresses = await backend.addresses()
    if not addresses:
        return 0
    highest = 0
    for address in addresses:
        info = await backend.address_info(address)
        highest = max(highest, info.key_index)
    return highest + 1


async def register_address(
    backend: WalletBackend,
    signer: Signer,
    index: int,
    confirm: ConfirmAddress | None = None,
) -> UnlockHash:
    """
    Derive the standard address at ``index`` and start tracking it.

    ``confirm`` is shown the derived address before registration and raises
    UserCancelledError to abort; nothing is registered in that case.
    """
    public_key = signer.public_key(index)
    conditions = standard_unlock_conditions(public_key)
    address = conditions.unlock_hash()
    logger.debug(f"Derived address {address} at key index {index}")
    if confirm is not None:
        confirm(address, index)
    await backend.watch_address(AddressInfo(unlock_conditions=conditions, key_index=index))
    logger.info(f"Added address {address} (key index {index}) to the wallet")
    return address


async def allocate_change_address(
    backend: WalletBackend,
    preconfigured: UnlockHash | str | None = None,
    signer: Signer | None = None,
    confirm: ConfirmAddress | None = None,
    query_server: bool = False,
) -> UnlockHash:
    """
    Resolve the address receiving leftover value.

    A preconfigured address is validated and returned as-is, without touching
    the server or the signer.

    Raises:
        InvalidInputError: If the preconfigured address is malformed
        SignerUnavailableError: If a new address is needed and no signer is available
    """
    if preconfigured is not None:
        if isinstance(preconfigured, UnlockHash):
            return preconfigured
        return UnlockHash.from_string(preconfigured)

    if signer is None:
        raise SignerUnavailableError(
            "a change address is required; supply one or make a signer available"
        )
    index = await next_unused_index(backend, query_server)
    logger.info(f"Generating change address at key index {index}")
    return await register_address(backend, signer, index, confirm)
