"""
Signing of wallet-owned transaction inputs.

Every input whose unlock conditions hash to a wallet address gets one
whole-transaction signature slot. Slots are filled strictly in input order,
one signer request at a time, on a copy of the transaction: the caller's
transaction is only replaced once every slot has a signature.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass, field

from loguru import logger

from walrus_cli.constants import (
    ASIC_HARDFORK_HEIGHT,
    ASIC_REPLAY_PREFIX,
    FOUNDATION_HARDFORK_HEIGHT,
    FOUNDATION_REPLAY_PREFIX,
)
from walrus_cli.wallet.signers import Signer
from walrus_cli.wallet.types import Transaction, UnlockHash, whole_transaction_signature

ReviewCallback = Callable[[Transaction, int], None]


def replay_prefix(height: int) -> bytes | None:
    """Replay protection marker for signatures made at ``height``."""
    if height >= FOUNDATION_HARDFORK_HEIGHT:
        return FOUNDATION_REPLAY_PREFIX
    if height >= ASIC_HARDFORK_HEIGHT:
        return ASIC_REPLAY_PREFIX
    return None


@dataclass
class SignatureSlot:
    """A transaction signature owed by the wallet"""

    input_index: int
    sig_index: int
    key_index: int
    signature: bytes = b""


@dataclass
class SigningResult:
    """
    Outcome of signing.

    An empty slot list means the transaction spends nothing the wallet owns;
    that is reported, not raised.
    """

    transaction: Transaction
    slots: list[SignatureSlot] = field(default_factory=list)

    @property
    def nothing_to_sign(self) -> bool:
        return not self.slots

    @property
    def signed_count(self) -> int:
        return sum(1 for slot in self.slots if slot.signature)


def plan_signatures(
    txn: Transaction, key_indices: Mapping[UnlockHash, int]
) -> list[SignatureSlot]:
    """
    Allocate one slot per wallet-owned input, in input order.

    ``key_indices`` maps each wallet address to its derivation index. Slot
    signature indices follow the signatures already present in ``txn``.
    """
    slots: list[SignatureSlot] = []
    next_sig = len(txn.transaction_signatures)
    for i, inp in enumerate(txn.siacoin_inputs):
        address = inp.unlock_conditions.unlock_hash()
        key_index = key_indices.get(address)
        if key_index is None:
            logger.debug(f"Input {i} spends {address}, which is not ours; leaving unsigned")
            continue
        slots.append(SignatureSlot(input_index=i, sig_index=next_sig, key_index=key_index))
        next_sig += 1
    return slots


def sign_transaction(
    txn: Transaction,
    key_indices: Mapping[UnlockHash, int],
    signer: Signer,
    height: int,
    review: ReviewCallback | None = None,
) -> SigningResult:
    """
    Sign every input of ``txn`` spending a wallet address.

    ``review`` is called once, before the first signature is requested, with
    the transaction and the number of signatures that will be made; it raises
    UserCancelledError to abort. Any error from the review or the signer
    propagates and ``txn`` is left untouched.

    Args:
        txn: Transaction to sign; never modified
        key_indices: Wallet addresses mapped to their key index
        signer: Open or lazily-opened signer
        height: Consensus height, selecting the replay protection prefix
        review: Optional confirmation hook

    Returns:
        SigningResult holding a signed copy of the transaction, or no slots if
        nothing in the transaction belongs to the wallet
    """
    slots = plan_signatures(txn, key_indices)
    if not slots:
        logger.info("Nothing to sign: transaction does not spend any outputs of this wallet")
        return SigningResult(transaction=txn)

    draft = txn.model_copy(deep=True)
    for slot in slots:
        parent_id = draft.siacoin_inputs[slot.input_index].parent_id
        draft.transaction_signatures.append(whole_transaction_signature(parent_id))

    if review is not None:
        review(draft, len(slots))

    prefix = replay_prefix(height)
    for n, slot in enumerate(slots, 1):
        logger.info(
            f"Requesting signature {n}/{len(slots)} "
            f"(input {slot.input_index}, key {slot.key_index}) from {signer.kind}"
        )
        sig_hash = draft.sig_hash(slot.sig_index, prefix)
        slot.signature = signer.sign(draft, slot.sig_index, slot.key_index, sig_hash)

    for slot in slots:
        draft.transaction_signatures[slot.sig_index].signature = slot.signature
    logger.info(f"Signed {len(slots)} input{'s' if len(slots) != 1 else ''}")
    return SigningResult(transaction=draft, slots=slots)
