"""Spot-based Black-Scholes formulas in floating point (numpy-vectorized).

These are the reference values the fixed-point pipeline is checked
against, and the normal CDF used by the reference normal-CDF unit.
"""

from __future__ import annotations

import enum

import numpy as np
from scipy.stats import norm


def normal_cdf(x: np.ndarray) -> np.ndarray:
    """Standard normal cumulative distribution N(x)."""
    return norm.cdf(x)


def discount_factor(rate: float, T: float) -> float:
    """Continuous-compounding discount factor e^(-rT)."""
    return float(np.exp(-rate * T))


def d1(
    spot: float,
    strikes: np.ndarray,
    vols: np.ndarray,
    T: float,
    rate: float,
) -> np.ndarray:
    """Compute Black-Scholes d1.

    d1 = (log(S/K) + (r + sigma^2 / 2) * T) / (sigma * sqrt(T))
    """
    strikes = np.asarray(strikes, dtype=float)
    vols = np.asarray(vols, dtype=float)
    return (np.log(spot / strikes) + (rate + 0.5 * vols**2) * T) / (vols * np.sqrt(T))


def d2(
    spot: float,
    strikes: np.ndarray,
    vols: np.ndarray,
    T: float,
    rate: float,
) -> np.ndarray:
    """Compute Black-Scholes d2.

    d2 = d1 - sigma * sqrt(T)
    """
    return d1(spot, strikes, vols, T, rate) - np.asarray(vols, dtype=float) * np.sqrt(T)


def call_price(
    spot: float,
    strikes: np.ndarray,
    vols: np.ndarray,
    T: float,
    rate: float,
) -> np.ndarray:
    """Black-Scholes call price.

    C = S * N(d1) - K * e^(-rT) * N(d2)
    """
    strikes = np.asarray(strikes, dtype=float)
    d1_val = d1(spot, strikes, vols, T, rate)
    d2_val = d1_val - np.asarray(vols, dtype=float) * np.sqrt(T)
    df = discount_factor(rate, T)
    return spot * normal_cdf(d1_val) - strikes * df * normal_cdf(d2_val)


def put_price(
    spot: float,
    strikes: np.ndarray,
    vols: np.ndarray,
    T: float,
    rate: float,
) -> np.ndarray:
    """Black-Scholes put price.

    P = K * e^(-rT) * N(-d2) - S * N(-d1)
    """
    strikes = np.asarray(strikes, dtype=float)
    d1_val = d1(spot, strikes, vols, T, rate)
    d2_val = d1_val - np.asarray(vols, dtype=float) * np.sqrt(T)
    df = discount_factor(rate, T)
    return strikes * df * normal_cdf(-d2_val) - spot * normal_cdf(-d1_val)


class OptionType(enum.Enum):
    """Option type for pricing."""

    CALL = "call"
    PUT = "put"


_PRICE_FUNCS = {
    OptionType.CALL: call_price,
    OptionType.PUT: put_price,
}


def option_price(
    spot: float,
    strikes: np.ndarray,
    vols: np.ndarray,
    T: float,
    rate: float,
    option_type: OptionType,
) -> np.ndarray:
    """Dispatch to the call or put formula."""
    return _PRICE_FUNCS[option_type](spot, strikes, vols, T, rate)
