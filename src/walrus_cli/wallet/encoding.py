"""
Sia binary encoding and hashing primitives.

Integers are uint64 little-endian, byte strings and lists carry a uint64
length prefix, currency is a length-prefixed big-endian magnitude.
"""

from __future__ import annotations

import hashlib
import struct

HASH_SIZE = 32
SPECIFIER_SIZE = 16

LEAF_HASH_PREFIX = b"\x00"
NODE_HASH_PREFIX = b"\x01"


class EncodingError(Exception):
    pass


def blake2b_256(data: bytes) -> bytes:
    return hashlib.blake2b(data, digest_size=HASH_SIZE).digest()


def encode_uint64(value: int) -> bytes:
    if value < 0 or value > 0xFFFFFFFFFFFFFFFF:
        raise EncodingError(f"value out of uint64 range: {value}")
    return struct.pack("<Q", value)


def encode_specifier(name: str) -> bytes:
    raw = name.encode("ascii")
    if len(raw) > SPECIFIER_SIZE:
        raise EncodingError(f"specifier too long: {name!r}")
    return raw.ljust(SPECIFIER_SIZE, b"\x00")


def decode_specifier(raw: bytes) -> str:
    return raw.rstrip(b"\x00").decode("ascii")


def encode_currency(value: int) -> bytes:
    magnitude = value.to_bytes((value.bit_length() + 7) // 8, "big") if value else b""
    return encode_uint64(len(magnitude)) + magnitude


def merkle_root(leaves: list[bytes]) -> bytes:
    """
    Merkle root of raw leaf data.

    Leaves are hashed with a 0x00 prefix and interior nodes with 0x01; an
    unbalanced tree splits at the largest power of two below the leaf count.
    """
    if not leaves:
        return bytes(HASH_SIZE)
    if len(leaves) == 1:
        return blake2b_256(LEAF_HASH_PREFIX + leaves[0])
    split = 1 << ((len(leaves) - 1).bit_length() - 1)
    left = merkle_root(leaves[:split])
    right = merkle_root(leaves[split:])
    return blake2b_256(NODE_HASH_PREFIX + left + right)


class Encoder:
    """Accumulates the binary encoding of ledger objects."""

    def __init__(self) -> None:
        self._buf = bytearray()

    def write(self, data: bytes) -> Encoder:
        self._buf += data
        return self

    def write_uint64(self, value: int) -> Encoder:
        return self.write(encode_uint64(value))

    def write_uint32(self, value: int) -> Encoder:
        return self.write(struct.pack("<I", value))

    def write_uint16(self, value: int) -> Encoder:
        return self.write(struct.pack("<H", value))

    def write_bool(self, value: bool) -> Encoder:
        return self.write(b"\x01" if value else b"\x00")

    def write_prefixed(self, data: bytes) -> Encoder:
        return self.write_uint64(len(data)).write(data)

    def write_hash(self, hex_hash: str) -> Encoder:
        raw = bytes.fromhex(hex_hash)
        if len(raw) != HASH_SIZE:
            raise EncodingError(f"hash must be {HASH_SIZE} bytes, got {len(raw)}")
        return self.write(raw)

    def write_specifier(self, name: str) -> Encoder:
        return self.write(encode_specifier(name))

    def write_currency(self, value: int) -> Encoder:
        return self.write(encode_currency(value))

    def getvalue(self) -> bytes:
        return bytes(self._buf)

    def __len__(self) -> int:
        return len(self._buf)
