"""
walrus-cli wallet service.

Ties the server backend, coin selection, change allocation and signing
together into the flows used by the CLI: build a payment, build a split,
sign, broadcast.
"""

from __future__ import annotations

from collections.abc import Sequence

from loguru import logger

from walrus_cli.backends.base import WalletBackend
from walrus_cli.currency import Currency
from walrus_cli.errors import InvalidInputError
from walrus_cli.wallet.change import ConfirmAddress, allocate_change_address
from walrus_cli.wallet.funding import (
    SizeFunction,
    estimate_txn_size,
    fund_with_donation,
    split_outputs,
    valued_inputs,
)
from walrus_cli.wallet.models import FundingResult, TransactionSummary, ValuedInput
from walrus_cli.wallet.signers import Signer
from walrus_cli.wallet.signing import ReviewCallback, SigningResult, sign_transaction
from walrus_cli.wallet.types import SiacoinOutput, Transaction, UnlockHash


class WalletService:
    """
    Funding and signing against a walrus server.

    The donation address, if any, is discovered by the caller and passed in;
    None disables donations.
    """

    def __init__(
        self,
        backend: WalletBackend,
        donation_address: UnlockHash | None = None,
        confirm_address: ConfirmAddress | None = None,
        size_fn: SizeFunction = estimate_txn_size,
        query_seed_index: bool = False,
        protocol_height: int | None = None,
    ):
        self.backend = backend
        self.donation_address = donation_address
        self.confirm_address = confirm_address
        self.size_fn = size_fn
        self.query_seed_index = query_seed_index
        self.protocol_height = protocol_height

    async def _funding_context(self) -> tuple[list[ValuedInput], Currency]:
        utxos = await self.backend.unspent_outputs(limbo=False)
        fee_per_byte = await self.backend.recommended_fee()
        logger.debug(f"{len(utxos)} spendable outputs, fee rate {fee_per_byte} H/byte")
        return valued_inputs(utxos), fee_per_byte

    @staticmethod
    def _assemble(funding: FundingResult, outputs: list[SiacoinOutput]) -> Transaction:
        return Transaction(
            siacoin_inputs=[vi.input for vi in funding.used],
            siacoin_outputs=outputs,
            miner_fees=[funding.fee],
        )

    async def create_transaction(
        self,
        outputs: Sequence[SiacoinOutput],
        change_address: UnlockHash | str | None = None,
        signer: Signer | None = None,
    ) -> TransactionSummary:
        """
        Fund a payment to ``outputs``.

        The donation output, if any, follows the recipients; the change
        output, if any, comes last. A change address is only allocated when
        the selection leaves change.

        Raises:
            InvalidInputError: If there are no outputs
            InsufficientFundsError: If the wallet cannot fund the payment
        """
        if not outputs:
            raise InvalidInputError("at least one output is required")
        payment_total = sum((out.value for out in outputs), Currency(0))
        available, fee_per_byte = await self._funding_context()

        result = fund_with_donation(
            payment_total,
            len(outputs),
            self.donation_address,
            fee_per_byte,
            available,
            size_fn=self.size_fn,
        )
        funding = result.funding

        txn_outputs = list(outputs)
        if result.donation_address is not None and not result.donation.is_zero():
            txn_outputs.append(
                SiacoinOutput(value=result.donation, unlock_hash=result.donation_address)
            )

        change_addr = None
        if not funding.change.is_zero():
            change_addr = await allocate_change_address(
                self.backend,
                change_address,
                signer,
                self.confirm_address,
                self.query_seed_index,
            )
            txn_outputs.append(SiacoinOutput(value=funding.change, unlock_hash=change_addr))

        txn = self._assemble(funding, txn_outputs)
        logger.info(
            f"Built transaction with {len(txn.siacoin_inputs)} inputs "
            f"and {len(txn.siacoin_outputs)} outputs"
        )
        return TransactionSummary(
            transaction=txn,
            inputs_total=funding.total_value,
            payment_total=payment_total,
            num_payment_outputs=len(outputs),
            fee=funding.fee,
            fee_per_byte=fee_per_byte,
            donation=result.donation,
            change=funding.change,
            change_address=change_addr,
        )

    async def create_split_transaction(
        self,
        n: int,
        per_output_value: Currency,
        change_address: UnlockHash | str | None = None,
        signer: Signer | None = None,
    ) -> TransactionSummary:
        """
        Fund ``n`` outputs of ``per_output_value`` to a single wallet address.

        The same address receives the change, so it is always allocated.
        """
        available, fee_per_byte = await self._funding_context()
        funding = split_outputs(
            n, per_output_value, fee_per_byte, available, size_fn=self.size_fn
        )
        address = await allocate_change_address(
            self.backend,
            change_address,
            signer,
            self.confirm_address,
            self.query_seed_index,
        )
        outputs = [
            SiacoinOutput(value=Currency(per_output_value), unlock_hash=address)
            for _ in range(n)
        ]
        if not funding.change.is_zero():
            outputs.append(SiacoinOutput(value=funding.change, unlock_hash=address))

        txn = self._assemble(funding, outputs)
        logger.info(f"Built split transaction with {n} outputs of {per_output_value} H")
        return TransactionSummary(
            transaction=txn,
            inputs_total=funding.total_value,
            payment_total=Currency(per_output_value) * n,
            num_payment_outputs=n,
            fee=funding.fee,
            fee_per_byte=fee_per_byte,
            change=funding.change,
            change_address=address,
        )

    async def owned_key_indices(self, txn: Transaction) -> dict[UnlockHash, int]:
        """Key indices of the wallet addresses spent by ``txn``."""
        tracked = set(await self.backend.addresses())
        indices: dict[UnlockHash, int] = {}
        for inp in txn.siacoin_inputs:
            address = inp.unlock_conditions.unlock_hash()
            if address in tracked and address not in indices:
                info = await self.backend.address_info(address)
                indices[address] = info.key_index
        return indices

    async def signing_height(self) -> int:
        if self.protocol_height is not None:
            return self.protocol_height
        return (await self.backend.consensus()).height

    async def sign(
        self,
        txn: Transaction,
        signer: Signer,
        review: ReviewCallback | None = None,
    ) -> SigningResult:
        key_indices = await self.owned_key_indices(txn)
        height = await self.signing_height() if key_indices else 0
        return sign_transaction(txn, key_indices, signer, height, review)

    async def broadcast(self, txn: Transaction) -> str:
        """Submit ``txn`` on its own and return its ID."""
        await self.backend.broadcast([txn])
        txid = txn.id()
        logger.info(f"Transaction broadcast successfully: {txid}")
        return txid

    async def close(self) -> None:
        await self.backend.close()
