"""Restoring long-division unit producing a Q16.16 quotient.

The operands are converted to sign-magnitude, the magnitude of the
dividend is scaled by 2^FRAC_BITS, and one quotient bit is resolved per
tick for INT_BITS + FRAC_BITS iterations. The quotient is then rounded
to nearest using the next discarded bit, and the XOR of the input signs
is re-applied.

Faults are reported through flags, never exceptions:
- ``dbz``: divisor is zero (detected before the loop).
- ``ovf``: an operand is MIN_RAW, or the quotient does not fit.
Both flags are raised together for MIN_RAW / 0.
On a fault the quotient saturates to MAX_RAW, ``done`` pulses and
``valid`` stays low.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, replace

import structlog

from fpbs.core.fixed_point import FRAC_BITS, INT_BITS, MAX_RAW, MIN_RAW

logger = structlog.get_logger(__name__)

ITERATIONS = INT_BITS + FRAC_BITS
_TOP_BIT = ITERATIONS - 1


class DividerPhase(enum.Enum):
    IDLE = "idle"
    INIT = "init"
    CALC = "calc"
    ROUND = "round"
    SIGN = "sign"


@dataclass(frozen=True)
class DividerInputs:
    start: bool = False
    dividend: int = 0
    divisor: int = 0


@dataclass(frozen=True)
class DividerState:
    """Registers of the divider.

    Attributes:
        phase: Current FSM state.
        dividend: Latched dividend (raw Q16.16).
        divisor: Latched divisor (raw Q16.16).
        negative: XOR of the operand signs.
        remainder: Working partial remainder (magnitude).
        divisor_mag: |divisor|.
        quotient_mag: Quotient bits resolved so far.
        bit: Quotient bit position resolved on the next Calc tick.
        calc_ticks: Ticks spent in Calc for the current request.
        quotient: Registered result.
        valid: One-tick pulse on successful completion.
        done: One-tick pulse on any completion.
        dbz: Divide-by-zero flag, held until the next start.
        ovf: Overflow flag, held until the next start.
        watchdog_tripped: Calc was cut short by the iteration bound.
    """

    phase: DividerPhase = DividerPhase.IDLE
    dividend: int = 0
    divisor: int = 0
    negative: bool = False
    remainder: int = 0
    divisor_mag: int = 0
    quotient_mag: int = 0
    bit: int = 0
    calc_ticks: int = 0
    quotient: int = 0
    valid: bool = False
    done: bool = False
    dbz: bool = False
    ovf: bool = False
    watchdog_tripped: bool = False

    @property
    def busy(self) -> bool:
        return self.phase is not DividerPhase.IDLE


class DividerUnit:
    """Multi-tick fixed-point divider.

    Args:
        watchdog_ticks: Bound on ticks spent in Calc. Only reachable if
            the iteration count were wrong; a tripped watchdog forces the
            unit on to Round and suppresses ``valid``.
    """

    def __init__(self, watchdog_ticks: int = 48):
        if watchdog_ticks < 1:
            raise ValueError(f"watchdog_ticks must be >= 1, got {watchdog_ticks}")
        self.watchdog_ticks = watchdog_ticks

    def initial_state(self) -> DividerState:
        return DividerState()

    def step(
        self,
        state: DividerState,
        inputs: DividerInputs,
        reset: bool = False,
    ) -> DividerState:
        """Advance the divider by one tick."""
        if reset:
            return self.initial_state()

        state = replace(state, valid=False, done=False)

        if state.phase is DividerPhase.IDLE:
            if not inputs.start:
                return state
            return replace(
                state,
                phase=DividerPhase.INIT,
                dividend=inputs.dividend,
                divisor=inputs.divisor,
                dbz=False,
                ovf=False,
                watchdog_tripped=False,
            )

        if state.phase is DividerPhase.INIT:
            dbz = state.divisor == 0
            ovf = MIN_RAW in (state.dividend, state.divisor)
            if dbz or ovf:
                return self._fault(state, dbz=dbz, ovf=ovf)
            return replace(
                state,
                phase=DividerPhase.CALC,
                negative=(state.dividend < 0) != (state.divisor < 0),
                remainder=abs(state.dividend) << FRAC_BITS,
                divisor_mag=abs(state.divisor),
                quotient_mag=0,
                bit=_TOP_BIT,
                calc_ticks=0,
            )

        if state.phase is DividerPhase.CALC:
            return self._iterate(state)

        if state.phase is DividerPhase.ROUND:
            quotient_mag = state.quotient_mag
            # Next discarded bit is 1 when 2R >= B.
            if 2 * state.remainder >= state.divisor_mag:
                quotient_mag += 1
            if quotient_mag > MAX_RAW:
                return self._fault(state, ovf=True)
            return replace(state, phase=DividerPhase.SIGN, quotient_mag=quotient_mag)

        # SIGN
        quotient = -state.quotient_mag if state.negative else state.quotient_mag
        return replace(
            state,
            phase=DividerPhase.IDLE,
            quotient=quotient,
            valid=not state.watchdog_tripped,
            done=True,
        )

    def _iterate(self, state: DividerState) -> DividerState:
        calc_ticks = state.calc_ticks + 1
        if calc_ticks > self.watchdog_ticks:
            logger.warning(
                "divider_watchdog_tripped",
                calc_ticks=calc_ticks,
                bound=self.watchdog_ticks,
            )
            return replace(
                state,
                phase=DividerPhase.ROUND,
                calc_ticks=calc_ticks,
                watchdog_tripped=True,
            )

        remainder = state.remainder
        quotient_mag = state.quotient_mag
        trial = state.divisor_mag << state.bit
        if remainder >= trial:
            if state.bit == _TOP_BIT:
                # Quotient magnitude would need the sign bit.
                return self._fault(state, ovf=True)
            remainder -= trial
            quotient_mag |= 1 << state.bit

        if state.bit == 0:
            return replace(
                state,
                phase=DividerPhase.ROUND,
                remainder=remainder,
                quotient_mag=quotient_mag,
                calc_ticks=calc_ticks,
            )
        return replace(
            state,
            remainder=remainder,
            quotient_mag=quotient_mag,
            bit=state.bit - 1,
            calc_ticks=calc_ticks,
        )

    def _fault(self, state: DividerState, *, dbz: bool = False, ovf: bool = False) -> DividerState:
        logger.debug(
            "divider_fault",
            dbz=dbz,
            ovf=ovf,
            dividend=state.dividend,
            divisor=state.divisor,
        )
        return replace(
            state,
            phase=DividerPhase.IDLE,
            quotient=MAX_RAW,
            valid=False,
            done=True,
            dbz=dbz,
            ovf=ovf,
        )
