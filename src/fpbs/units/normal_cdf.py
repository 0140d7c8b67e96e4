"""Reference normal-CDF unit.

Produces N(d1) and N(d2) a fixed number of ticks after ``start``. The
values are computed in floating point with scipy and quantised back to
Q16.16; the unit stands in for a hardware CDF approximation and only its
handshake matters to the orchestrators.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, replace

from fpbs.core.black_scholes import normal_cdf
from fpbs.core.fixed_point import from_real, to_real


class NormalCdfPhase(enum.Enum):
    IDLE = "idle"
    BUSY = "busy"


@dataclass(frozen=True)
class NormalCdfInputs:
    start: bool = False
    d1: int = 0
    d2: int = 0


@dataclass(frozen=True)
class NormalCdfState:
    phase: NormalCdfPhase = NormalCdfPhase.IDLE
    d1: int = 0
    d2: int = 0
    remaining: int = 0
    nd1: int = 0
    nd2: int = 0
    done: bool = False

    @property
    def busy(self) -> bool:
        return self.phase is NormalCdfPhase.BUSY

    @property
    def valid(self) -> bool:
        return self.done


class NormalCdfUnit:
    """Fixed-latency N(d1), N(d2).

    Args:
        latency: Ticks between latching the inputs and the ``done`` pulse
            (0 means the result is registered on the tick after ``start``).
    """

    def __init__(self, latency: int = 3):
        if latency < 0:
            raise ValueError(f"latency must be >= 0, got {latency}")
        self.latency = latency

    def initial_state(self) -> NormalCdfState:
        return NormalCdfState()

    def step(
        self,
        state: NormalCdfState,
        inputs: NormalCdfInputs,
        reset: bool = False,
    ) -> NormalCdfState:
        """Advance the normal-CDF unit by one tick."""
        if reset:
            return self.initial_state()

        state = replace(state, done=False)

        if state.phase is NormalCdfPhase.IDLE:
            if not inputs.start:
                return state
            latched = replace(state, d1=inputs.d1, d2=inputs.d2)
            if self.latency == 0:
                return self._finish(latched)
            return replace(latched, phase=NormalCdfPhase.BUSY, remaining=self.latency)

        if state.remaining > 1:
            return replace(state, remaining=state.remaining - 1)
        return self._finish(state)

    def _finish(self, state: NormalCdfState) -> NormalCdfState:
        nd1 = from_real(float(normal_cdf(to_real(state.d1))))
        nd2 = from_real(float(normal_cdf(to_real(state.d2))))
        return replace(state, phase=NormalCdfPhase.IDLE, remaining=0, nd1=nd1, nd2=nd2, done=True)
