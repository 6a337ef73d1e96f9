"""
Seed-based ed25519 key derivation.

A seed is 16 bytes of entropy, displayed as a 12-word BIP39 phrase.
Key index i derives from BLAKE2b(BLAKE2b(entropy) || uint64le(i)).
"""

from __future__ import annotations

import secrets

import libnacl
from libnacl import sign
from mnemonic import Mnemonic

from walrus_cli.errors import InvalidInputError
from walrus_cli.wallet.encoding import blake2b_256, encode_uint64
from walrus_cli.wallet.types import SiaPublicKey, UnlockHash, standard_address

ENTROPY_SIZE = 16

_wordlist = Mnemonic("english")


class Seed:
    """
    Root secret of a hot wallet.

    Never serialized; callers hold it only for the duration of one signing or
    address derivation and call wipe() afterwards.
    """

    def __init__(self, entropy: bytes):
        if len(entropy) != ENTROPY_SIZE:
            raise InvalidInputError(f"seed entropy must be {ENTROPY_SIZE} bytes")
        self._entropy: bytes | None = entropy
        self._root: bytes | None = blake2b_256(entropy)

    @classmethod
    def generate(cls) -> Seed:
        return cls(secrets.token_bytes(ENTROPY_SIZE))

    @classmethod
    def from_phrase(cls, phrase: str) -> Seed:
        """Parse a 12-word phrase, verifying its checksum."""
        words = " ".join(phrase.lower().split())
        if len(words.split()) != 12:
            raise InvalidInputError("seed phrase must contain 12 words")
        try:
            entropy = bytes(_wordlist.to_entropy(words))
        except (ValueError, LookupError) as e:
            raise InvalidInputError(f"invalid seed phrase: {e}") from e
        return cls(entropy)

    def to_phrase(self) -> str:
        return _wordlist.to_mnemonic(self._require_entropy())

    def _require_entropy(self) -> bytes:
        if self._entropy is None:
            raise InvalidInputError("seed has been wiped")
        return self._entropy

    def _signer(self, index: int) -> sign.Signer:
        if self._root is None:
            raise InvalidInputError("seed has been wiped")
        return sign.Signer(blake2b_256(self._root + encode_uint64(index)))

    def public_key(self, index: int) -> SiaPublicKey:
        return SiaPublicKey(key=self._signer(index).vk)

    def address(self, index: int) -> UnlockHash:
        return standard_address(self.public_key(index))

    def sign_hash(self, index: int, digest: bytes) -> bytes:
        """Detached ed25519 signature over a 32-byte digest."""
        return self._signer(index).signature(digest)

    def wipe(self) -> None:
        self._entropy = None
        self._root = None

    def __repr__(self) -> str:
        return "Seed(<redacted>)"


def verify_hash(public_key: SiaPublicKey, digest: bytes, signature: bytes) -> bool:
    """Check a detached ed25519 signature."""
    try:
        libnacl.crypto_sign_verify_detached(signature, digest, public_key.key)
    except ValueError:
        return False
    return True
