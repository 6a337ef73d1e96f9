"""
Currency arithmetic, parsing and formatting.

Values are non-negative integers of hastings. Arithmetic that would produce a
negative amount raises instead of wrapping.
"""

from __future__ import annotations

from fractions import Fraction
from typing import Any

from pydantic import GetCoreSchemaHandler
from pydantic_core import core_schema

from walrus_cli.constants import SIACOIN_PRECISION
from walrus_cli.errors import InvalidInputError

UNITS = ["aS", "fS", "pS", "nS", "uS", "mS", "SC", "KS", "MS", "GS", "TS"]


class CurrencyError(InvalidInputError):
    """Negative or malformed currency value."""


class Currency(int):
    """
    Arbitrary-precision, non-negative amount of hastings.

    Behaves like an int for comparison and hashing; addition, subtraction and
    multiplication keep the Currency type and enforce the sign invariant.
    JSON form is a decimal string, as used by the walrus API.
    """

    __slots__ = ()

    def __new__(cls, value: int | str = 0) -> Currency:
        if isinstance(value, str):
            try:
                value = int(value, 10)
            except ValueError as e:
                raise CurrencyError(f"invalid currency string: {value!r}") from e
        elif isinstance(value, bool) or not isinstance(value, int):
            raise CurrencyError(f"invalid currency value: {value!r}")
        if value < 0:
            raise CurrencyError(f"currency cannot be negative: {value}")
        return super().__new__(cls, value)

    def __add__(self, other: int) -> Currency:
        if not isinstance(other, int):
            return NotImplemented
        return Currency(int(self) + int(other))

    __radd__ = __add__

    def __sub__(self, other: int) -> Currency:
        if not isinstance(other, int):
            return NotImplemented
        result = int(self) - int(other)
        if result < 0:
            raise CurrencyError(f"negative currency: {int(self)} - {int(other)}")
        return Currency(result)

    def __mul__(self, other: int | Fraction) -> Currency:
        if isinstance(other, Fraction):
            return self.mul_rat(other)
        if not isinstance(other, int):
            return NotImplemented
        return Currency(int(self) * int(other))

    __rmul__ = __mul__

    def mul_rat(self, rat: Fraction) -> Currency:
        """Multiply by a rational, truncating toward zero."""
        return Currency(int(self) * rat.numerator // rat.denominator)

    def is_zero(self) -> bool:
        return int(self) == 0

    def __repr__(self) -> str:
        return f"Currency({int(self)})"

    def __str__(self) -> str:
        return int.__repr__(self)

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
    def _validate(cls, value: Any) -> Currency:
        if isinstance(value, Currency):
            return value
        return cls(value)


ZERO = Currency(0)


def siacoins(amount: int | str | Fraction) -> Currency:
    """Convert a whole or fractional SC amount to hastings."""
    return Currency(SIACOIN_PRECISION).mul_rat(Fraction(amount))


def parse_currency(text: str) -> Currency:
    """
    Parse a user-supplied SC amount such as ``"1.5"``, ``"3/2"`` or ``"1e3"``.

    Raises:
        InvalidInputError: If the text is not a non-negative rational number
    """
    try:
        amount = Fraction(text.strip())
    except (ValueError, ZeroDivisionError) as e:
        raise InvalidInputError(f"invalid amount: {text!r}") from e
    if amount < 0:
        raise InvalidInputError(f"amount cannot be negative: {text!r}")
    return siacoins(amount)


def format_currency(value: int) -> str:
    """Render an amount with the largest fitting unit, e.g. ``"1.5 SC"``."""
    atto = 10**6
    if value < atto:
        return f"{int(value)} H"
    mag = atto
    unit = ""
    for unit in UNITS:
        if value < mag * 1000:
            break
        elif unit != "TS":
            mag *= 1000
    return f"{float(Fraction(int(value), mag)):.4g} {unit}"


def format_siacoins(value: int, digits: int = 5) -> str:
    """Render an amount in SC with a fixed number of decimals (half-up rounding)."""
    scale = 10**digits
    scaled = (int(value) * scale * 2 + SIACOIN_PRECISION) // (2 * SIACOIN_PRECISION)
    whole, frac = divmod(scaled, scale)
    return f"{whole}.{frac:0{digits}d}"
