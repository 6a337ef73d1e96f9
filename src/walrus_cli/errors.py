"""
Exception hierarchy shared by every walrus-cli component.

Every terminal condition of a command derives from WalletError. Signing a
transaction that spends no wallet-owned inputs is not an error and has no
exception here (see walrus_cli.wallet.signing.SigningResult).
"""

from __future__ import annotations


class WalletError(Exception):
    """Base class for all walrus-cli errors."""


class InsufficientFundsError(WalletError):
    """The available outputs cannot cover the target value plus fees."""

    def __init__(self, required: int, available: int):
        self.required = required
        self.available = available
        super().__init__(f"insufficient funds: need {required} H, have {available} H")


class InvalidInputError(WalletError, ValueError):
    """Malformed address, amount, file or flag combination."""


class RemoteError(WalletError):
    """The walrus server failed or returned an application error."""


class SignerError(WalletError):
    """The signer failed while producing a key or signature."""


class SignerUnavailableError(SignerError):
    """Device not connected, app not open, or no seed supplied."""


class UserCancelledError(WalletError):
    """The user declined a confirmation prompt or a device request."""
