"""Fixed-point format, handshake primitives and reference formulas."""

from fpbs.core.black_scholes import (
    OptionType,
    call_price,
    d1,
    d2,
    discount_factor,
    normal_cdf,
    option_price,
    put_price,
)
from fpbs.core.fixed_point import (
    FRAC_BITS,
    INT_BITS,
    MAX_RAW,
    MIN_RAW,
    ONE,
    WORD_BITS,
    FixedPoint,
    FixedPointRangeError,
    from_real,
    to_real,
)
from fpbs.core.handshake import UnitHandshake, rising_edge

__all__ = [
    "FRAC_BITS",
    "INT_BITS",
    "MAX_RAW",
    "MIN_RAW",
    "ONE",
    "WORD_BITS",
    "FixedPoint",
    "FixedPointRangeError",
    "OptionType",
    "UnitHandshake",
    "call_price",
    "d1",
    "d2",
    "discount_factor",
    "from_real",
    "normal_cdf",
    "option_price",
    "put_price",
    "rising_edge",
    "to_real",
]
