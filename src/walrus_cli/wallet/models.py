"""
Wallet data models.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from walrus_cli.currency import Currency
from walrus_cli.wallet.types import SiacoinInput, Transaction, UnlockHash


@dataclass(frozen=True)
class ValuedInput:
    """A spendable output staged as a candidate input"""

    input: SiacoinInput
    value: Currency

    @property
    def parent_id(self) -> str:
        return self.input.parent_id


@dataclass
class FundingResult:
    """Result of coin selection"""

    used: list[ValuedInput]
    fee: Currency
    change: Currency

    @property
    def total_value(self) -> Currency:
        return sum((vi.value for vi in self.used), Currency(0))


@dataclass
class DonationFunding:
    """Coin selection with the donation that was finally committed"""

    funding: FundingResult
    donation: Currency
    donation_address: UnlockHash | None = None
    fell_back: bool = False


@dataclass
class TransactionSummary:
    """A funded, unsigned transaction and the amounts that went into it"""

    transaction: Transaction
    inputs_total: Currency
    payment_total: Currency
    num_payment_outputs: int
    fee: Currency
    fee_per_byte: Currency
    donation: Currency = field(default_factory=Currency)
    change: Currency = field(default_factory=Currency)
    change_address: UnlockHash | None = None
