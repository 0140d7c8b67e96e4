"""One-tick-latency pipelined Q16.16 multiplier."""

from __future__ import annotations

from dataclasses import dataclass, replace

from fpbs.core.fixed_point import fx_mul


@dataclass(frozen=True)
class MultiplierInputs:
    """Operands issued this tick; ``tag`` travels with the product."""

    valid: bool = False
    a: int = 0
    b: int = 0
    tag: int = 0


@dataclass(frozen=True)
class MultiplierState:
    product: int = 0
    valid: bool = False
    tag: int = 0

    @property
    def busy(self) -> bool:
        return False


class PipelinedMultiplier:
    """Registers ``a * b`` one tick after the operands are issued.

    A new pair may be issued every tick.
    """

    latency = 1

    def initial_state(self) -> MultiplierState:
        return MultiplierState()

    def step(
        self,
        state: MultiplierState,
        inputs: MultiplierInputs,
        reset: bool = False,
    ) -> MultiplierState:
        if reset:
            return self.initial_state()
        if not inputs.valid:
            return replace(state, valid=False)
        return MultiplierState(product=fx_mul(inputs.a, inputs.b), valid=True, tag=inputs.tag)
