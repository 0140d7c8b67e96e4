"""Q16.16 signed fixed-point format.

Every numeric payload in the pipeline is a 32-bit two's-complement word
whose real value is ``raw / 65536``. Units operate on raw Python ints;
``FixedPoint`` is the boundary type used for conversions and results.

Arithmetic that needs more than 32 significant bits saturates to
``MAX_RAW`` / ``MIN_RAW``. The ``*_with_flag`` variants also report
whether saturation happened so callers can surface it.
"""

from __future__ import annotations

import math
from dataclasses import dataclass

import numpy as np

WORD_BITS = 32
FRAC_BITS = 16
INT_BITS = WORD_BITS - FRAC_BITS

ONE = 1 << FRAC_BITS
MAX_RAW = (1 << (WORD_BITS - 1)) - 1
MIN_RAW = -(1 << (WORD_BITS - 1))

_WORD_MASK = (1 << WORD_BITS) - 1


class FixedPointRangeError(ValueError):
    """Raised when a real value cannot be represented in Q16.16."""


# ---------------------------------------------------------------------------
# Raw-word helpers
# ---------------------------------------------------------------------------

def wrap(raw: int) -> int:
    """Reinterpret the low 32 bits of ``raw`` as a signed word."""
    raw &= _WORD_MASK
    if raw > MAX_RAW:
        raw -= 1 << WORD_BITS
    return raw


def saturate_with_flag(raw: int) -> tuple[int, bool]:
    """Clamp ``raw`` into the representable range.

    Returns:
        Tuple (clamped, saturated).
    """
    if raw > MAX_RAW:
        return MAX_RAW, True
    if raw < MIN_RAW:
        return MIN_RAW, True
    return raw, False


def saturate(raw: int) -> int:
    """Clamp ``raw`` into the representable range."""
    return saturate_with_flag(raw)[0]


def add_with_flag(a: int, b: int) -> tuple[int, bool]:
    return saturate_with_flag(a + b)


def sub_with_flag(a: int, b: int) -> tuple[int, bool]:
    return saturate_with_flag(a - b)


def mul_with_flag(a: int, b: int) -> tuple[int, bool]:
    """Scaled product: double-width multiply, then shift out FRAC_BITS.

    The shift is arithmetic (floor), as a hardware multiplier would do.
    """
    return saturate_with_flag((a * b) >> FRAC_BITS)


def div_with_flag(a: int, b: int) -> tuple[int, bool]:
    """Scaled quotient ``a / b`` rounded to nearest (ties away from zero).

    Division by zero saturates toward the sign of the dividend and is
    reported as saturation.
    """
    if b == 0:
        return (MIN_RAW if a < 0 else MAX_RAW), True
    negative = (a < 0) != (b < 0)
    q, r = divmod(abs(a) << FRAC_BITS, abs(b))
    if 2 * r >= abs(b):
        q += 1
    return saturate_with_flag(-q if negative else q)


def fx_add(a: int, b: int) -> int:
    return add_with_flag(a, b)[0]


def fx_sub(a: int, b: int) -> int:
    return sub_with_flag(a, b)[0]


def fx_mul(a: int, b: int) -> int:
    return mul_with_flag(a, b)[0]


def fx_div(a: int, b: int) -> int:
    return div_with_flag(a, b)[0]


# ---------------------------------------------------------------------------
# Conversions
# ---------------------------------------------------------------------------

def to_real(raw: int) -> float:
    """Real value of a raw Q16.16 word."""
    return raw / ONE


def from_real(value: float, *, strict: bool = False) -> int:
    """Quantise a real value to the nearest raw Q16.16 word.

    Args:
        value: Real value to convert.
        strict: If True, raise instead of saturating out-of-range values.

    Returns:
        Raw word in [MIN_RAW, MAX_RAW].

    Raises:
        FixedPointRangeError: For NaN, or for out-of-range/infinite values
            when ``strict`` is set.
    """
    if math.isnan(value):
        raise FixedPointRangeError("NaN has no Q16.16 representation")
    if math.isinf(value):
        if strict:
            raise FixedPointRangeError(f"{value} is outside the Q16.16 range")
        return MAX_RAW if value > 0 else MIN_RAW
    raw, saturated = saturate_with_flag(math.floor(value * ONE + 0.5))
    if saturated and strict:
        raise FixedPointRangeError(
            f"{value} is outside the Q16.16 range "
            f"[{to_real(MIN_RAW)}, {to_real(MAX_RAW)}]"
        )
    return raw


def to_hex(raw: int) -> str:
    """Two's-complement hex rendering, e.g. ``0x00018000`` for 1.5."""
    return f"0x{raw & _WORD_MASK:08X}"


def to_real_array(raws) -> np.ndarray:
    """Vectorised ``to_real`` over an array of raw words."""
    return np.asarray(raws, dtype=np.int64) / ONE


def from_real_array(values) -> np.ndarray:
    """Vectorised saturating ``from_real``.

    Raises:
        FixedPointRangeError: If any value is NaN.
    """
    values = np.asarray(values, dtype=float)
    if np.any(np.isnan(values)):
        raise FixedPointRangeError("NaN has no Q16.16 representation")
    scaled = np.floor(np.clip(values, to_real(MIN_RAW), to_real(MAX_RAW)) * ONE + 0.5)
    return np.clip(scaled, MIN_RAW, MAX_RAW).astype(np.int64)


# ---------------------------------------------------------------------------
# Boundary value type
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class FixedPoint:
    """A single Q16.16 value.

    Attributes:
        raw: Signed 32-bit word; real value is raw / 65536.
    """

    raw: int

    def __post_init__(self) -> None:
        if not MIN_RAW <= self.raw <= MAX_RAW:
            raise FixedPointRangeError(
                f"raw word {self.raw} does not fit in {WORD_BITS} bits"
            )

    @classmethod
    def from_raw(cls, raw: int) -> FixedPoint:
        return cls(int(raw))

    @classmethod
    def from_real(cls, value: float, *, strict: bool = False) -> FixedPoint:
        return cls(from_real(value, strict=strict))

    @classmethod
    def from_hex(cls, text: str) -> FixedPoint:
        """Parse a two's-complement hex word such as ``"0x00018000"``."""
        word = int(text, 16)
        if not 0 <= word <= _WORD_MASK:
            raise FixedPointRangeError(f"{text} is wider than {WORD_BITS} bits")
        return cls(wrap(word))

    @property
    def real(self) -> float:
        return to_real(self.raw)

    @property
    def hex(self) -> str:
        return to_hex(self.raw)

    def __float__(self) -> float:
        return self.real
