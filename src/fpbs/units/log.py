"""Natural-logarithm unit: range reduction plus a cubic polynomial.

x = 2^e * m with m in [1, 2), so ln(x) = e * ln2 + ln(m). With t = m - 1,
ln(m) is approximated by t - t^2/2 + t^3/3. The truncation error grows
like t^4/4, so accuracy is best for mantissas near 1 (x close to a power
of two) and degrades to about 0.14 as m approaches 2.

Pipeline: Normalize -> Compute1 (t, t^2) -> Compute2 (t^3, t^2/2)
-> Compute3 (polynomial sum) -> Hold (exponent term, valid for two ticks).
"""

from __future__ import annotations

import enum
import math
from dataclasses import dataclass, replace

from fpbs.core.fixed_point import FRAC_BITS, MIN_RAW, ONE, from_real, fx_add, fx_mul, fx_sub, saturate

LN2_RAW = from_real(math.log(2.0))
ONE_THIRD_RAW = from_real(1.0 / 3.0)

VALID_TICKS = 2


class LogPhase(enum.Enum):
    IDLE = "idle"
    NORMALIZE = "normalize"
    COMPUTE1 = "compute1"
    COMPUTE2 = "compute2"
    COMPUTE3 = "compute3"
    HOLD = "hold"


@dataclass(frozen=True)
class LogInputs:
    start: bool = False
    x: int = 0


@dataclass(frozen=True)
class LogState:
    phase: LogPhase = LogPhase.IDLE
    x: int = 0
    exponent: int = 0
    mantissa: int = 0
    t: int = 0
    t2: int = 0
    t3: int = 0
    half_t2: int = 0
    poly: int = 0
    hold_ticks: int = 0
    result: int = 0
    valid: bool = False
    done: bool = False
    domain_error: bool = False

    @property
    def busy(self) -> bool:
        return self.phase is not LogPhase.IDLE


def normalize(x: int) -> tuple[int, int]:
    """Split a positive raw word into (exponent, mantissa).

    The mantissa is a raw Q16.16 word in [ONE, 2 * ONE). Right shifts
    round to nearest; a mantissa rounded up to 2.0 is renormalised.
    """
    if x <= 0:
        raise ValueError(f"normalize requires a positive word, got {x}")
    exponent = x.bit_length() - 1 - FRAC_BITS
    if exponent > 0:
        mantissa = (x + (1 << (exponent - 1))) >> exponent
        if mantissa >= 2 * ONE:
            mantissa >>= 1
            exponent += 1
    elif exponent < 0:
        mantissa = x << -exponent
    else:
        mantissa = x
    return exponent, mantissa


class LogUnit:
    """Pipelined Q16.16 natural logarithm."""

    def initial_state(self) -> LogState:
        return LogState()

    def step(self, state: LogState, inputs: LogInputs, reset: bool = False) -> LogState:
        """Advance the log unit by one tick."""
        if reset:
            return self.initial_state()

        state = replace(state, valid=False, done=False)

        if state.phase is LogPhase.IDLE:
            if not inputs.start:
                return state
            return replace(
                state,
                phase=LogPhase.NORMALIZE,
                x=inputs.x,
                domain_error=False,
                hold_ticks=0,
            )

        if state.phase is LogPhase.NORMALIZE:
            if state.x <= 0:
                # ln is undefined; skip straight to the output stage.
                return replace(state, phase=LogPhase.HOLD, domain_error=True)
            exponent, mantissa = normalize(state.x)
            return replace(state, phase=LogPhase.COMPUTE1, exponent=exponent, mantissa=mantissa)

        if state.phase is LogPhase.COMPUTE1:
            t = state.mantissa - ONE
            return replace(state, phase=LogPhase.COMPUTE2, t=t, t2=fx_mul(t, t))

        if state.phase is LogPhase.COMPUTE2:
            return replace(
                state,
                phase=LogPhase.COMPUTE3,
                t3=fx_mul(state.t2, state.t),
                half_t2=state.t2 >> 1,
            )

        if state.phase is LogPhase.COMPUTE3:
            poly = fx_add(fx_sub(state.t, state.half_t2), fx_mul(state.t3, ONE_THIRD_RAW))
            return replace(state, phase=LogPhase.HOLD, poly=poly)

        # HOLD: first tick registers the result, second tick releases.
        if state.hold_ticks == 0:
            if state.domain_error:
                result = MIN_RAW
            else:
                result = saturate(state.exponent * LN2_RAW + state.poly)
            return replace(state, result=result, valid=True, done=True, hold_ticks=1)
        if state.hold_ticks + 1 >= VALID_TICKS:
            return replace(state, phase=LogPhase.IDLE, valid=True, hold_ticks=0)
        return replace(state, valid=True, hold_ticks=state.hold_ticks + 1)
