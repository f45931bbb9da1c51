"""Kubernetes resource quantities with exact values and canonical string forms."""

from __future__ import annotations

import re
from decimal import ROUND_CEILING, Decimal
from functools import total_ordering
from typing import Union

from kubernetes.utils import parse_quantity


DECIMAL_SI = "DecimalSI"
BINARY_SI = "BinarySI"
DECIMAL_EXPONENT = "DecimalExponent"

_NANO = 10**9
_BINARY_SUFFIXES = (
    ("Ei", 2**60),
    ("Pi", 2**50),
    ("Ti", 2**40),
    ("Gi", 2**30),
    ("Mi", 2**20),
    ("Ki", 2**10),
)
_DECIMAL_SUFFIXES = {18: "E", 15: "P", 12: "T", 9: "G", 6: "M", 3: "k", 0: "", -3: "m", -6: "u", -9: "n"}
_EXPONENT_PATTERN = re.compile(r"^[+-]?(\d+\.?\d*|\.\d+)[eE][+-]?\d+$")
_QUANTITY_PATTERN = re.compile(r"^[+-]?(\d+\.?\d*|\.\d+)(Ki|Mi|Gi|Ti|Pi|Ei|[numkMGTPE]|[eE][+-]?\d+)?$")


class QuantityError(ValueError):
    """Raised when a string cannot be read as a resource quantity."""


QuantityLike = Union[str, int, float, Decimal, "Quantity"]


@total_ordering
class Quantity:
    """An exact resource amount plus the notation it was written in."""

    __slots__ = ("value", "format")

    def __init__(self, value: Decimal, format: str = DECIMAL_SI) -> None:
        self.value = value
        self.format = format

    @classmethod
    def parse(cls, raw: QuantityLike) -> "Quantity":
        if isinstance(raw, Quantity):
            return raw
        if isinstance(raw, bool) or raw is None:
            raise QuantityError(f"quantities must be strings or numbers, got {raw!r}")
        if isinstance(raw, (int, float, Decimal)):
            text = str(raw)
        else:
            text = str(raw).strip()
        if not text:
            raise QuantityError("quantity must not be empty")
        # parse_quantity also takes "K" and digit underscores, which the apiserver rejects
        if not _QUANTITY_PATTERN.match(text):
            raise QuantityError(f"quantities must match the regular expression: {text!r}")
        try:
            value = parse_quantity(text)
        except (ValueError, ArithmeticError) as exc:
            raise QuantityError(f"quantities must match the regular expression: {text!r}") from exc
        if not value.is_finite():
            raise QuantityError(f"quantities must be finite: {text!r}")
        return cls(value=value, format=_detect_format(text))

    def canonical(self) -> str:
        nanos = int((self.value * _NANO).to_integral_value(rounding=ROUND_CEILING))
        if nanos == 0:
            return "0"
        if self.format == BINARY_SI and nanos % _NANO == 0 and abs(nanos) >= 1024 * _NANO:
            whole = nanos // _NANO
            for suffix, base in _BINARY_SUFFIXES:
                if whole % base == 0:
                    return f"{whole // base}{suffix}"
            return str(whole)
        exponent = _largest_exponent(nanos)
        mantissa = nanos // 10 ** (exponent + 9)
        if self.format == DECIMAL_EXPONENT:
            return str(mantissa) if exponent == 0 else f"{mantissa}e{exponent}"
        return f"{mantissa}{_DECIMAL_SUFFIXES[exponent]}"

    def __str__(self) -> str:
        return self.canonical()

    def __repr__(self) -> str:
        return f"Quantity({self.canonical()!r})"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Quantity):
            return NotImplemented
        return self.value == other.value

    def __lt__(self, other: "Quantity") -> bool:
        if not isinstance(other, Quantity):
            return NotImplemented
        return self.value < other.value

    def __hash__(self) -> int:
        return hash(self.value)


def _detect_format(text: str) -> str:
    if len(text) >= 2 and text.endswith("i"):
        return BINARY_SI
    if _EXPONENT_PATTERN.match(text):
        return DECIMAL_EXPONENT
    return DECIMAL_SI


def _largest_exponent(nanos: int) -> int:
    for exponent in sorted(_DECIMAL_SUFFIXES, reverse=True):
        if nanos % 10 ** (exponent + 9) == 0:
            return exponent
    return -9


def canonical_quantity(raw: QuantityLike) -> str:
    """Return the canonical Kubernetes spelling of *raw*, e.g. ``"1000m"`` -> ``"1"``."""

    return Quantity.parse(raw).canonical()


__all__ = [
    "BINARY_SI",
    "DECIMAL_EXPONENT",
    "DECIMAL_SI",
    "Quantity",
    "QuantityError",
    "canonical_quantity",
]
