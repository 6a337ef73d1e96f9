"""
Sia ledger and walrus-cli policy constants.

Size estimates follow the binary encoding of a standard transaction:
- every input spends a single-key ed25519 address and carries one
  whole-transaction signature
- every output value is assumed to need the maximal 16-byte currency encoding
"""

from __future__ import annotations

# 1 SC expressed in hastings, the indivisible unit
SIACOIN_PRECISION = 10**24

# Donation policy: max(1% of the payment, 10 SC)
DONATION_RATE_NUM = 1
DONATION_RATE_DENOM = 100
DONATION_FLOOR = 10 * SIACOIN_PRECISION

# Encoded transaction size estimates (bytes)
# 10 length prefixes for the transaction's lists plus a single miner fee
TXN_BASE_SIZE = 10 * 8 + (8 + 16)
# parent id + standard unlock conditions
SIACOIN_INPUT_SIZE = 32 + 8 + 8 + (16 + 8 + 32) + 8
# parent id + key index + timelock + covered fields + 64-byte ed25519 signature
TXN_SIGNATURE_SIZE = 32 + 8 + 8 + (1 + 10 * 8) + (8 + 64)
INPUT_SIZE = SIACOIN_INPUT_SIZE + TXN_SIGNATURE_SIZE  # 313
OUTPUT_SIZE = (8 + 16) + 32  # 56

# Key indices are sent to the signing device as uint32
MAX_KEY_INDEX = 2**32 - 1

# Replay protection for signature hashes
ASIC_HARDFORK_HEIGHT = 179_000
FOUNDATION_HARDFORK_HEIGHT = 298_000
ASIC_REPLAY_PREFIX = b"\x00"
FOUNDATION_REPLAY_PREFIX = b"\x01"

# walrus API
DEFAULT_API_ADDR = "localhost:9380"
DEFAULT_REQUEST_TIMEOUT = 30.0
