"""Reference price-combiner unit.

On ``norm_done`` it latches the request and N(d1), N(d2), computes r*T,
obtains the discount factor e^(-rT) from an owned ExpUnit (pulsing
``exp_start`` and then ``exp_done``), and combines

    call = S * N(d1) - K * e^(-rT) * N(d2)
    put  = K * e^(-rT) * (1 - N(d2)) - S * (1 - N(d1))

The price register is cleared when a new request is latched and
``price_valid`` pulses for one tick once the new price is registered.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field, replace

from fpbs.core.black_scholes import OptionType
from fpbs.core.fixed_point import ONE, fx_mul, fx_sub
from fpbs.units.exp import ExpInputs, ExpState, ExpUnit


class CombinerPhase(enum.Enum):
    IDLE = "idle"
    RATE_TIME = "rate_time"
    WAIT_EXP = "wait_exp"
    COMBINE = "combine"


@dataclass(frozen=True)
class PriceCombinerInputs:
    norm_done: bool = False
    rate: int = 0
    time: int = 0
    spot: int = 0
    strike: int = 0
    nd1: int = 0
    nd2: int = 0
    option_type: OptionType = OptionType.CALL


@dataclass(frozen=True)
class PriceCombinerState:
    phase: CombinerPhase = CombinerPhase.IDLE
    latched: PriceCombinerInputs = field(default_factory=PriceCombinerInputs)
    rate_time: int = 0
    discount: int = 0
    exp: ExpState = field(default_factory=ExpState)
    exp_start: bool = False
    exp_done: bool = False
    option_price: int = 0
    price_valid: bool = False

    @property
    def busy(self) -> bool:
        return self.phase is not CombinerPhase.IDLE

    @property
    def valid(self) -> bool:
        return self.price_valid


def combine(inputs: PriceCombinerInputs, discount: int) -> int:
    """Fixed-point call or put price from N(d1), N(d2) and e^(-rT)."""
    discounted_strike = fx_mul(inputs.strike, discount)
    if inputs.option_type is OptionType.CALL:
        return fx_sub(fx_mul(inputs.spot, inputs.nd1), fx_mul(discounted_strike, inputs.nd2))
    return fx_sub(
        fx_mul(discounted_strike, fx_sub(ONE, inputs.nd2)),
        fx_mul(inputs.spot, fx_sub(ONE, inputs.nd1)),
    )


class PriceCombinerUnit:
    """Discounts the strike with an owned ExpUnit and combines the price."""

    def __init__(self, exp_unit: ExpUnit | None = None):
        self.exp_unit = exp_unit or ExpUnit()

    def initial_state(self) -> PriceCombinerState:
        return PriceCombinerState(exp=self.exp_unit.initial_state())

    def step(
        self,
        state: PriceCombinerState,
        inputs: PriceCombinerInputs,
        reset: bool = False,
    ) -> PriceCombinerState:
        """Advance the combiner and its exponential unit by one tick."""
        if reset:
            return self.initial_state()

        exp = self.exp_unit.step(state.exp, ExpInputs(start=state.exp_start, x=state.rate_time))
        nxt = replace(state, exp=exp, exp_start=False, exp_done=False, price_valid=False)

        if state.phase is CombinerPhase.IDLE:
            if not inputs.norm_done:
                return nxt
            return replace(nxt, phase=CombinerPhase.RATE_TIME, latched=inputs, option_price=0)

        if state.phase is CombinerPhase.RATE_TIME:
            return replace(
                nxt,
                phase=CombinerPhase.WAIT_EXP,
                rate_time=fx_mul(state.latched.rate, state.latched.time),
                exp_start=True,
            )

        if state.phase is CombinerPhase.WAIT_EXP:
            if not state.exp.done:
                return nxt
            return replace(nxt, phase=CombinerPhase.COMBINE, discount=state.exp.result, exp_done=True)

        # COMBINE
        return replace(
            nxt,
            phase=CombinerPhase.IDLE,
            option_price=combine(state.latched, state.discount),
            price_valid=True,
        )
