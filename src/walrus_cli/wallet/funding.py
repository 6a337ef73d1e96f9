"""
Coin selection for walrus-cli transactions.

The fee is priced per encoded byte, and the encoded size depends on how many
inputs are selected. Selection therefore re-prices the fee after every added
input, then reconciles once more for the change output, which is the only
other size-affecting decision.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from fractions import Fraction

from loguru import logger

from walrus_cli.backends.base import SeedUTXO
from walrus_cli.constants import (
    DONATION_FLOOR,
    DONATION_RATE_DENOM,
    DONATION_RATE_NUM,
    INPUT_SIZE,
    OUTPUT_SIZE,
    TXN_BASE_SIZE,
)
from walrus_cli.currency import Currency
from walrus_cli.errors import InsufficientFundsError, InvalidInputError
from walrus_cli.wallet.models import DonationFunding, FundingResult, ValuedInput
from walrus_cli.wallet.types import UnlockHash

SizeFunction = Callable[[int, int], int]


def estimate_txn_size(num_inputs: int, num_outputs: int) -> int:
    """
    Estimate the encoded size of a standard transaction.

    Each input carries its unlock conditions and one ed25519 signature; each
    output is priced with a maximal 16-byte value.
    """
    return TXN_BASE_SIZE + num_inputs * INPUT_SIZE + num_outputs * OUTPUT_SIZE


def valued_inputs(utxos: Sequence[SeedUTXO]) -> list[ValuedInput]:
    return [ValuedInput(input=u.to_input(), value=u.value) for u in utxos]


def select_inputs(
    target: Currency,
    fee_per_byte: Currency,
    available: Sequence[ValuedInput],
    num_outputs: int = 1,
    size_fn: SizeFunction = estimate_txn_size,
) -> FundingResult:
    """
    Choose inputs covering ``target`` plus the size-dependent fee.

    Inputs are taken largest first (ties broken by parent ID) until their sum
    covers the target and the fee for the current input count. If value is left
    over, the fee is re-priced once for an extra change output; when the
    leftover cannot pay for that output it is added to the fee instead.

    Args:
        target: Value of the outputs being funded, excluding change
        fee_per_byte: Fee rate in hastings per byte
        available: Candidate inputs
        num_outputs: Number of outputs excluding change
        size_fn: Encoded size as a function of (inputs, outputs)

    Returns:
        FundingResult where sum(used) == target + fee + change

    Raises:
        InsufficientFundsError: If all available inputs cannot cover the target
    """
    target = Currency(target)
    fee_per_byte = Currency(fee_per_byte)
    ordered = sorted(available, key=lambda vi: (-vi.value, vi.parent_id))

    used: list[ValuedInput] = []
    total = Currency(0)
    fee = Currency(0)
    for vi in ordered:
        used.append(vi)
        total += vi.value
        fee = fee_per_byte * size_fn(len(used), num_outputs)
        if total >= target + fee:
            break
    else:
        required = target + fee_per_byte * size_fn(max(len(ordered), 1), num_outputs)
        raise InsufficientFundsError(required=required, available=total)

    change = total - target - fee
    if not change.is_zero():
        fee_with_change = fee_per_byte * size_fn(len(used), num_outputs + 1)
        if total >= target + fee_with_change:
            fee = fee_with_change
        else:
            logger.debug(f"Change of {change} H cannot pay for its own output; adding to fee")
            fee = total - target
        change = total - target - fee

    logger.debug(
        f"Selected {len(used)}/{len(ordered)} inputs totalling {total} H "
        f"(target {target} H, fee {fee} H, change {change} H)"
    )
    return FundingResult(used=used, fee=fee, change=change)


def split_outputs(
    n: int,
    per_output_value: Currency,
    fee_per_byte: Currency,
    available: Sequence[ValuedInput],
    size_fn: SizeFunction = estimate_txn_size,
) -> FundingResult:
    """
    Choose inputs funding ``n`` outputs of ``per_output_value`` each.

    Raises:
        InvalidInputError: If n is not positive or the output value is zero
        InsufficientFundsError: If the available inputs cannot cover the split
    """
    if n < 1:
        raise InvalidInputError(f"number of outputs must be positive, got {n}")
    if Currency(per_output_value).is_zero():
        raise InvalidInputError("output value must be positive")
    target = Currency(per_output_value) * n
    return select_inputs(target, fee_per_byte, available, num_outputs=n, size_fn=size_fn)


def compute_donation(payment_total: Currency, donation_address: UnlockHash | None) -> Currency:
    """Donation owed for a payment: max(1%, 10 SC), or zero without an address."""
    if donation_address is None:
        return Currency(0)
    donation = Currency(payment_total).mul_rat(Fraction(DONATION_RATE_NUM, DONATION_RATE_DENOM))
    return max(donation, Currency(DONATION_FLOOR))


def fund_with_donation(
    payment_total: Currency,
    num_recipients: int,
    donation_address: UnlockHash | None,
    fee_per_byte: Currency,
    available: Sequence[ValuedInput],
    size_fn: SizeFunction = estimate_txn_size,
) -> DonationFunding:
    """
    Fund a payment plus the optional donation.

    If the donation cannot be afforded, the payment is funded alone and any
    leftover value becomes the donation instead of change. Both attempts are
    independent selections; only the committed one is returned.

    Raises:
        InsufficientFundsError: If the payment cannot be funded even without donation
    """
    donation = compute_donation(payment_total, donation_address)
    if donation.is_zero():
        funding = select_inputs(
            payment_total, fee_per_byte, available, num_outputs=num_recipients, size_fn=size_fn
        )
        return DonationFunding(funding=funding, donation=donation)

    try:
        funding = select_inputs(
            Currency(payment_total) + donation,
            fee_per_byte,
            available,
            num_outputs=num_recipients + 1,
            size_fn=size_fn,
        )
        return DonationFunding(
            funding=funding, donation=donation, donation_address=donation_address
        )
    except InsufficientFundsError:
        logger.warning(
            f"Insufficient funds to include a donation of {donation} H; "
            "retrying without it"
        )

    # the change output priced by this attempt is the donation output
    bare = select_inputs(
        payment_total, fee_per_byte, available, num_outputs=num_recipients, size_fn=size_fn
    )
    committed = FundingResult(used=bare.used, fee=bare.fee, change=Currency(0))
    return DonationFunding(
        funding=committed,
        donation=bare.change,
        donation_address=donation_address if not bare.change.is_zero() else None,
        fell_back=True,
    )
