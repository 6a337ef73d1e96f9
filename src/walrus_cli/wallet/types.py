"""
Sia ledger types with pydantic validation and the ledger's JSON field names.

Only the parts of a transaction that walrus-cli produces are modelled; the
remaining ledger fields are always empty and are encoded as empty lists.
"""

from __future__ import annotations

import base64
import binascii
from typing import Any

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    GetCoreSchemaHandler,
    field_serializer,
    field_validator,
    model_serializer,
    model_validator,
)
from pydantic_core import core_schema

from walrus_cli.currency import Currency
from walrus_cli.errors import InvalidInputError
from walrus_cli.wallet.encoding import (
    HASH_SIZE,
    Encoder,
    blake2b_256,
    encode_specifier,
    encode_uint64,
    merkle_root,
)

ED25519 = "ed25519"
CHECKSUM_SIZE = 6
HASH_PATTERN = r"^[0-9a-f]{64}$"

# Ledger fields walrus-cli never populates; encoded as empty lists
EMPTY_FIELDS_BEFORE_FEES = 5  # file contracts, revisions, proofs, siafund ins/outs
EMPTY_FIELDS_AFTER_FEES = 1  # arbitrary data
# JSON keys of the same fields; a transaction with any of them non-empty is refused
UNSUPPORTED_FIELDS = (
    "filecontracts",
    "filecontractrevisions",
    "storageproofs",
    "siafundinputs",
    "siafundoutputs",
    "arbitrarydata",
)


class UnlockHash(bytes):
    """
    32-byte address hash.

    The canonical string is the hex hash followed by a 6-byte BLAKE2b checksum.
    """

    def __new__(cls, raw: bytes) -> UnlockHash:
        if len(raw) != HASH_SIZE:
            raise InvalidInputError(f"address must be {HASH_SIZE} bytes, got {len(raw)}")
        return super().__new__(cls, raw)

    @classmethod
    def from_string(cls, text: str) -> UnlockHash:
        text = text.strip()
        if len(text) != 2 * (HASH_SIZE + CHECKSUM_SIZE):
            raise InvalidInputError(f"invalid address length: {text!r}")
        try:
            raw = bytes.fromhex(text[: 2 * HASH_SIZE])
            checksum = bytes.fromhex(text[2 * HASH_SIZE :])
        except ValueError as e:
            raise InvalidInputError(f"invalid address encoding: {text!r}") from e
        if blake2b_256(raw)[:CHECKSUM_SIZE] != checksum:
            raise InvalidInputError(f"invalid address checksum: {text!r}")
        return cls(raw)

    def __str__(self) -> str:
        return self.hex() + blake2b_256(self)[:CHECKSUM_SIZE].hex()

    def __repr__(self) -> str:
        return f"UnlockHash({str(self)!r})"

    @classmethod
    def __get_pydantic_core_schema__(
        cls, source_type: Any, handler: GetCoreSchemaHandler
    ) -> core_schema.CoreSchema:
        return core_schema.no_info_plain_validator_function(
            cls._validate,
            serialization=core_schema.plain_serializer_function_ser_schema(
                str, when_used="json"
            ),
        )

    @classmethod
    def _validate(cls, value: Any) -> UnlockHash:
        if isinstance(value, UnlockHash):
            return value
        if isinstance(value, str):
            return cls.from_string(value)
        raise InvalidInputError(f"invalid address: {value!r}")


class SiaPublicKey(BaseModel):
    """Public key tagged with its algorithm; JSON form is ``"ed25519:<hex>"``."""

    model_config = ConfigDict(frozen=True)

    algorithm: str = ED25519
    key: bytes

    @model_validator(mode="before")
    @classmethod
    def parse_string(cls, data: Any) -> Any:
        if isinstance(data, str):
            algorithm, sep, key_hex = data.partition(":")
            if not sep:
                raise ValueError(f"invalid public key: {data!r}")
            try:
                return {"algorithm": algorithm, "key": bytes.fromhex(key_hex)}
            except ValueError as e:
                raise ValueError(f"invalid public key hex: {data!r}") from e
        return data

    @model_serializer
    def to_string(self) -> str:
        return f"{self.algorithm}:{self.key.hex()}"

    def encode_to(self, e: Encoder) -> None:
        e.write_specifier(self.algorithm).write_prefixed(self.key)


class UnlockConditions(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    timelock: int = Field(default=0, ge=0)
    public_keys: list[SiaPublicKey] = Field(default_factory=list, alias="publickeys")
    signatures_required: int = Field(default=0, ge=0, alias="signaturesrequired")

    @field_validator("public_keys", mode="before")
    @classmethod
    def null_keys(cls, v: Any) -> Any:
        return [] if v is None else v

    def encode_to(self, e: Encoder) -> None:
        e.write_uint64(self.timelock)
        e.write_uint64(len(self.public_keys))
        for pk in self.public_keys:
            pk.encode_to(e)
        e.write_uint64(self.signatures_required)

    def unlock_hash(self) -> UnlockHash:
        leaves = [encode_uint64(self.timelock)]
        for pk in self.public_keys:
            leaves.append(
                encode_specifier(pk.algorithm) + encode_uint64(len(pk.key)) + pk.key
            )
        leaves.append(encode_uint64(self.signatures_required))
        return UnlockHash(merkle_root(leaves))


def standard_unlock_conditions(public_key: SiaPublicKey) -> UnlockConditions:
    """Single-key conditions with no timelock."""
    return UnlockConditions(timelock=0, public_keys=[public_key], signatures_required=1)


def standard_address(public_key: SiaPublicKey) -> UnlockHash:
    return standard_unlock_conditions(public_key).unlock_hash()


class SiacoinInput(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    parent_id: str = Field(..., pattern=HASH_PATTERN, alias="parentid")
    unlock_conditions: UnlockConditions = Field(..., alias="unlockconditions")

    def encode_to(self, e: Encoder) -> None:
        e.write_hash(self.parent_id)
        self.unlock_conditions.encode_to(e)


class SiacoinOutput(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    value: Currency
    unlock_hash: UnlockHash = Field(..., alias="unlockhash")

    def encode_to(self, e: Encoder) -> None:
        e.write_currency(self.value)
        e.write(self.unlock_hash)


class CoveredFields(BaseModel):
    """Which parts of the transaction a signature covers."""

    model_config = ConfigDict(populate_by_name=True)

    whole_transaction: bool = Field(default=False, alias="wholetransaction")
    siacoin_inputs: list[int] = Field(default_factory=list, alias="siacoininputs")
    siacoin_outputs: list[int] = Field(default_factory=list, alias="siacoinoutputs")
    file_contracts: list[int] = Field(default_factory=list, alias="filecontracts")
    file_contract_revisions: list[int] = Field(
        default_factory=list, alias="filecontractrevisions"
    )
    storage_proofs: list[int] = Field(default_factory=list, alias="storageproofs")
    siafund_inputs: list[int] = Field(default_factory=list, alias="siafundinputs")
    siafund_outputs: list[int] = Field(default_factory=list, alias="siafundoutputs")
    miner_fees: list[int] = Field(default_factory=list, alias="minerfees")
    arbitrary_data: list[int] = Field(default_factory=list, alias="arbitrarydata")
    transaction_signatures: list[int] = Field(
        default_factory=list, alias="transactionsignatures"
    )

    @field_validator("*", mode="before")
    @classmethod
    def null_lists(cls, v: Any) -> Any:
        return [] if v is None else v

    def encode_to(self, e: Encoder) -> None:
        e.write_bool(self.whole_transaction)
        for indices in (
            self.siacoin_inputs,
            self.siacoin_outputs,
            self.file_contracts,
            self.file_contract_revisions,
            self.storage_proofs,
            self.siafund_inputs,
            self.siafund_outputs,
            self.miner_fees,
            self.arbitrary_data,
            self.transaction_signatures,
        ):
            e.write_uint64(len(indices))
            for i in indices:
                e.write_uint64(i)


class TransactionSignature(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    parent_id: str = Field(..., pattern=HASH_PATTERN, alias="parentid")
    public_key_index: int = Field(default=0, ge=0, alias="publickeyindex")
    timelock: int = Field(default=0, ge=0)
    covered_fields: CoveredFields = Field(default_factory=CoveredFields, alias="coveredfields")
    signature: bytes = b""

    @field_validator("signature", mode="before")
    @classmethod
    def decode_signature(cls, v: Any) -> Any:
        if v is None:
            return b""
        if isinstance(v, str):
            try:
                return base64.b64decode(v, validate=True)
            except binascii.Error as e:
                raise ValueError("signature must be base64") from e
        return v

    @field_serializer("signature", when_used="json")
    def encode_signature(self, v: bytes) -> str:
        return base64.b64encode(v).decode("ascii")

    def encode_to(self, e: Encoder) -> None:
        e.write_hash(self.parent_id)
        e.write_uint64(self.public_key_index)
        e.write_uint64(self.timelock)
        self.covered_fields.encode_to(e)
        e.write_prefixed(self.signature)


def whole_transaction_signature(parent_id: str) -> TransactionSignature:
    """Unsigned placeholder for the first key of a standard input."""
    return TransactionSignature(
        parent_id=parent_id,
        public_key_index=0,
        timelock=0,
        covered_fields=CoveredFields(whole_transaction=True),
    )


class Transaction(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    siacoin_inputs: list[SiacoinInput] = Field(default_factory=list, alias="siacoininputs")
    siacoin_outputs: list[SiacoinOutput] = Field(default_factory=list, alias="siacoinoutputs")
    miner_fees: list[Currency] = Field(default_factory=list, alias="minerfees")
    transaction_signatures: list[TransactionSignature] = Field(
        default_factory=list, alias="transactionsignatures"
    )

    @field_validator(
        "siacoin_inputs", "siacoin_outputs", "miner_fees", "transaction_signatures", mode="before"
    )
    @classmethod
    def null_lists(cls, v: Any) -> Any:
        return [] if v is None else v

    @model_validator(mode="before")
    @classmethod
    def reject_unsupported_fields(cls, data: Any) -> Any:
        if isinstance(data, dict):
            for name in UNSUPPORTED_FIELDS:
                if data.get(name):
                    raise InvalidInputError(f"transactions with {name} are not supported")
        return data

    def _encode_no_signatures(self, e: Encoder, replay_prefix: bytes | None = None) -> None:
        e.write_uint64(len(self.siacoin_inputs))
        for inp in self.siacoin_inputs:
            if replay_prefix is not None:
                e.write(replay_prefix)
            inp.encode_to(e)
        e.write_uint64(len(self.siacoin_outputs))
        for out in self.siacoin_outputs:
            out.encode_to(e)
        for _ in range(EMPTY_FIELDS_BEFORE_FEES):
            e.write_uint64(0)
        e.write_uint64(len(self.miner_fees))
        for fee in self.miner_fees:
            e.write_currency(fee)
        for _ in range(EMPTY_FIELDS_AFTER_FEES):
            e.write_uint64(0)

    def encode(self) -> bytes:
        """Full binary encoding, as sent to the ledger and the signing device."""
        e = Encoder()
        self._encode_no_signatures(e)
        e.write_uint64(len(self.transaction_signatures))
        for sig in self.transaction_signatures:
            sig.encode_to(e)
        return e.getvalue()

    def id(self) -> str:
        """Transaction ID: hash of the encoding without signatures."""
        e = Encoder()
        self._encode_no_signatures(e)
        return blake2b_256(e.getvalue()).hex()

    def sig_hash(self, sig_index: int, replay_prefix: bytes | None = None) -> bytes:
        """
        Digest signed by transaction signature ``sig_index``.

        Only whole-transaction signatures are supported. ``replay_prefix`` is
        the protocol's replay protection marker, written before each input.
        """
        sig = self.transaction_signatures[sig_index]
        if not sig.covered_fields.whole_transaction:
            raise InvalidInputError("only whole-transaction signatures are supported")
        e = Encoder()
        self._encode_no_signatures(e, replay_prefix)
        e.write_hash(sig.parent_id)
        e.write_uint64(sig.public_key_index)
        e.write_uint64(sig.timelock)
        return blake2b_256(e.getvalue())

    def outputs_total(self) -> Currency:
        return sum((out.value for out in self.siacoin_outputs), Currency(0))

    def fees_total(self) -> Currency:
        return sum(self.miner_fees, Currency(0))

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True, indent=2)
