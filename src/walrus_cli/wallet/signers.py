"""
Key holders that produce public keys and input signatures.

A signer is acquired once per command with ``with``; the underlying resource
(the seed phrase or the USB/TCP connection to the device) is only opened on
first use and is released on every exit path.

Ledger Sia app APDU reference (CLA 0xE0):
- GET_VERSION    0x01: probe that the app is open
- GET_PUBLIC_KEY 0x02: uint32le key index -> 32-byte key + 76-char address
- CALC_TXN_HASH  0x08: uint32le key index, uint16le signature index, encoded
  transaction; with P2=0x01 the device signs the hash after confirmation
"""

from __future__ import annotations

import struct
from abc import ABC, abstractmethod
from collections.abc import Callable
from types import TracebackType
from typing import Any

from loguru import logger

from walrus_cli.constants import MAX_KEY_INDEX
from walrus_cli.errors import (
    InvalidInputError,
    SignerError,
    SignerUnavailableError,
    UserCancelledError,
)
from walrus_cli.wallet.seed import Seed
from walrus_cli.wallet.types import SiaPublicKey, Transaction, UnlockHash

# Ledger APDU constants -- Sia app
SIA_CLA = 0xE0

SIA_INS_GET_VERSION = 0x01
SIA_INS_GET_PUBLIC_KEY = 0x02
SIA_INS_CALC_TXN_HASH = 0x08

SIA_P1_FIRST = 0x00
SIA_P1_MORE = 0x80
SIA_P2_DISPLAY_ADDRESS = 0x00
SIA_P2_SIGN_HASH = 0x01

SW_OK = 0x9000
SW_USER_REJECTED = 0x6985

APDU_CHUNK_SIZE = 255
PUBLIC_KEY_SIZE = 32
ADDRESS_STRING_SIZE = 76
SIGNATURE_SIZE = 64
MAX_SIG_INDEX = 0xFFFF


class Signer(ABC):
    """
    Scoped key holder.

    Subclasses implement _open/_close and the key operations; public methods
    open the resource lazily, at most once per session.
    """

    kind: str = "signer"

    def __init__(self) -> None:
        self._opened = False

    def __enter__(self) -> Signer:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()

    def ensure_open(self) -> None:
        if not self._opened:
            self._open()
            self._opened = True

    def close(self) -> None:
        if self._opened:
            self._opened = False
            self._close()

    @property
    def is_open(self) -> bool:
        return self._opened

    def public_key(self, index: int) -> SiaPublicKey:
        """Derive the public key at ``index``; the device asks for confirmation."""
        self.ensure_open()
        return self._public_key(index)

    def sign(self, txn: Transaction, sig_index: int, key_index: int, sig_hash: bytes) -> bytes:
        """
        Produce the signature for transaction signature ``sig_index``.

        ``sig_hash`` is the digest computed by the host; the seed signs it
        directly while the device recomputes it from the encoded transaction.
        """
        self.ensure_open()
        return self._sign(txn, sig_index, key_index, sig_hash)

    @abstractmethod
    def _open(self) -> None: ...

    @abstractmethod
    def _close(self) -> None: ...

    @abstractmethod
    def _public_key(self, index: int) -> SiaPublicKey: ...

    @abstractmethod
    def _sign(
        self, txn: Transaction, sig_index: int, key_index: int, sig_hash: bytes
    ) -> bytes: ...


class SeedSigner(Signer):
    """
    Hot signer backed by a seed held in memory.

    The seed is loaded through ``load_seed`` on first use (typically by reading
    WALRUS_SEED or prompting for the phrase) and wiped on close.
    """

    kind = "seed"

    def __init__(self, load_seed: Callable[[], Seed]):
        super().__init__()
        self._load_seed = load_seed
        self._seed: Seed | None = None

    @classmethod
    def from_seed(cls, seed: Seed) -> SeedSigner:
        return cls(lambda: seed)

    def _open(self) -> None:
        seed = self._load_seed()
        if seed is None:
            raise SignerUnavailableError("no seed supplied")
        self._seed = seed

    def _close(self) -> None:
        if self._seed is not None:
            self._seed.wipe()
            self._seed = None

    def _require_seed(self) -> Seed:
        if self._seed is None:
            raise SignerUnavailableError("seed signer is closed")
        return self._seed

    def _public_key(self, index: int) -> SiaPublicKey:
        return self._require_seed().public_key(index)

    def _sign(self, txn: Transaction, sig_index: int, key_index: int, sig_hash: bytes) -> bytes:
        return self._require_seed().sign_hash(key_index, sig_hash)


def _check_key_index(index: int) -> None:
    if not 0 <= index <= MAX_KEY_INDEX:
        raise InvalidInputError(f"key index {index} is out of range (0..{MAX_KEY_INDEX})")


def _open_transport(interface: str) -> Any:
    """
    Open a connection to the Ledger device.

    interface: 'hid' for USB, 'tcp' for the Speculos emulator
    """
    from ledgercomm import Transport

    try:
        return Transport(interface=interface)
    except Exception as e:
        raise SignerUnavailableError(
            f"Could not connect to Nano S via {interface}. "
            f"Ensure the device is connected, unlocked, and the Sia app is open. "
            f"Error: {e}"
        ) from e


class NanoSSigner(Signer):
    """
    Cold signer backed by a Ledger Nano S running the Sia app.

    The device accepts a single request at a time and every key derivation
    and signature requires confirmation on the device itself.
    """

    kind = "nanos"

    def __init__(
        self,
        interface: str = "hid",
        transport_factory: Callable[[str], Any] = _open_transport,
    ):
        super().__init__()
        self.interface = interface
        self._transport_factory = transport_factory
        self._transport: Any = None
        self.version: str | None = None

    def _open(self) -> None:
        self._transport = self._transport_factory(self.interface)
        try:
            sw, response = self._transport.exchange(SIA_CLA, SIA_INS_GET_VERSION, 0x00, 0x00, b"")
        except Exception as e:
            self._release()
            raise SignerUnavailableError(f"Nano S did not respond: {e}") from e
        if sw != SW_OK:
            self._release()
            raise SignerUnavailableError(
                f"Sia app is not open on the Nano S (SW=0x{sw:04X})"
            )
        if response and len(response) >= 3:
            self.version = f"{response[0]}.{response[1]}.{response[2]}"
        logger.debug(f"Connected to Nano S (Sia app v{self.version})")

    def _release(self) -> None:
        if self._transport is not None:
            self._transport.close()
            self._transport = None

    def _close(self) -> None:
        self._release()

    def _exchange(self, ins: int, p1: int, p2: int, payload: bytes) -> bytes:
        try:
            sw, response = self._transport.exchange(SIA_CLA, ins, p1, p2, payload)
        except Exception as e:
            raise SignerError(f"Nano S communication failed: {e}") from e
        if sw == SW_USER_REJECTED:
            raise UserCancelledError("request was rejected on the device")
        if sw != SW_OK:
            raise SignerError(f"Nano S returned error SW=0x{sw:04X}")
        return bytes(response or b"")

    def get_address(self, index: int) -> tuple[UnlockHash, SiaPublicKey]:
        """Derive the key at ``index``, showing its address on the device."""
        _check_key_index(index)
        self.ensure_open()
        response = self._exchange(
            SIA_INS_GET_PUBLIC_KEY,
            SIA_P1_FIRST,
            SIA_P2_DISPLAY_ADDRESS,
            struct.pack("<I", index),
        )
        if len(response) < PUBLIC_KEY_SIZE + ADDRESS_STRING_SIZE:
            raise SignerError(f"unexpected response length from Nano S: {len(response)} bytes")
        public_key = SiaPublicKey(key=response[:PUBLIC_KEY_SIZE])
        address_text = response[PUBLIC_KEY_SIZE : PUBLIC_KEY_SIZE + ADDRESS_STRING_SIZE]
        address = UnlockHash.from_string(address_text.decode("ascii"))
        return address, public_key

    def _public_key(self, index: int) -> SiaPublicKey:
        _, public_key = self.get_address(index)
        return public_key

    def _sign(self, txn: Transaction, sig_index: int, key_index: int, sig_hash: bytes) -> bytes:
        _check_key_index(key_index)
        if not 0 <= sig_index <= MAX_SIG_INDEX:
            raise InvalidInputError(f"signature index {sig_index} does not fit the device request")
        payload = struct.pack("<IH", key_index, sig_index) + txn.encode()
        response = b""
        for offset in range(0, len(payload), APDU_CHUNK_SIZE):
            chunk = payload[offset : offset + APDU_CHUNK_SIZE]
            p1 = SIA_P1_FIRST if offset == 0 else SIA_P1_MORE
            response = self._exchange(SIA_INS_CALC_TXN_HASH, p1, SIA_P2_SIGN_HASH, chunk)
        if len(response) != SIGNATURE_SIZE:
            raise SignerError(f"unexpected signature length from Nano S: {len(response)} bytes")
        return response
