"""e^(-x) via an eight-term Taylor series.

    e^(-x) ~ 1 - x + x^2/2! - x^3/3! + x^4/4! - x^5/5! + x^6/6! - x^7/7!

Two pipelined multipliers are reused: the power multiplier builds
x^2 ... x^7 one after another (each power feeds the next), and the scale
multiplier applies the signed factorial reciprocal to every power as it
appears. The eight terms are then reduced with a balanced three-level
adder tree.

There is no error flag: for large |x| the powers saturate and the series
loses accuracy, which is an accepted approximation limit.
"""

from __future__ import annotations

import enum
import math
from dataclasses import dataclass, field, replace

from fpbs.core.fixed_point import ONE, from_real, fx_add, fx_sub
from fpbs.core.handshake import rising_edge
from fpbs.units.multiplier import MultiplierInputs, MultiplierState, PipelinedMultiplier

N_TERMS = 8
HIGHEST_POWER = N_TERMS - 1

# Signed factorial reciprocals (-1)^k / k!, indexed by power k.
COEFFICIENTS: tuple[int, ...] = tuple(
    from_real((-1.0) ** k / math.factorial(k)) for k in range(N_TERMS)
)


class ExpPhase(enum.Enum):
    IDLE = "idle"
    POWERS = "powers"
    SUM1 = "sum1"
    SUM2 = "sum2"
    SUM3 = "sum3"
    HOLD = "hold"


@dataclass(frozen=True)
class ExpInputs:
    start: bool = False
    x: int = 0


def _empty_terms() -> tuple[int | None, ...]:
    return (None,) * N_TERMS


@dataclass(frozen=True)
class ExpState:
    """Registers of the exponential unit.

    Attributes:
        terms: Signed series terms by power; None until available.
        partials: Adder-tree level currently held.
        issue_power: Operands fed to the power multiplier next tick.
        issue_scale: Operands fed to the scale multiplier next tick.
    """

    phase: ExpPhase = ExpPhase.IDLE
    prev_start: bool = False
    x: int = 0
    terms: tuple[int | None, ...] = field(default_factory=_empty_terms)
    partials: tuple[int, ...] = ()
    mul_power: MultiplierState = field(default_factory=MultiplierState)
    mul_scale: MultiplierState = field(default_factory=MultiplierState)
    issue_power: MultiplierInputs = field(default_factory=MultiplierInputs)
    issue_scale: MultiplierInputs = field(default_factory=MultiplierInputs)
    result: int = 0
    done: bool = False
    valid: bool = False

    @property
    def busy(self) -> bool:
        return self.phase not in (ExpPhase.IDLE, ExpPhase.HOLD)


def _pairwise(values: tuple[int, ...]) -> tuple[int, ...]:
    return tuple(fx_add(values[i], values[i + 1]) for i in range(0, len(values), 2))


class ExpUnit:
    """Taylor-series e^(-x) with two shared pipelined multipliers."""

    def __init__(self):
        self._power_mul = PipelinedMultiplier()
        self._scale_mul = PipelinedMultiplier()

    def initial_state(self) -> ExpState:
        return ExpState()

    def step(self, state: ExpState, inputs: ExpInputs, reset: bool = False) -> ExpState:
        """Advance the exponential unit by one tick."""
        if reset:
            return self.initial_state()

        edge = rising_edge(state.prev_start, inputs.start)
        nxt = replace(
            state,
            prev_start=inputs.start,
            mul_power=self._power_mul.step(state.mul_power, state.issue_power),
            mul_scale=self._scale_mul.step(state.mul_scale, state.issue_scale),
            issue_power=MultiplierInputs(),
            issue_scale=MultiplierInputs(),
            done=False,
            valid=False,
        )

        if state.phase is ExpPhase.IDLE:
            if not edge:
                return nxt
            return self._launch(nxt, inputs.x)

        if state.phase is ExpPhase.POWERS:
            return self._collect(state, nxt)

        if state.phase is ExpPhase.SUM1:
            return replace(nxt, phase=ExpPhase.SUM2, partials=_pairwise(state.partials))

        if state.phase is ExpPhase.SUM2:
            return replace(nxt, phase=ExpPhase.SUM3, partials=_pairwise(state.partials))

        if state.phase is ExpPhase.SUM3:
            return replace(
                nxt,
                phase=ExpPhase.HOLD,
                result=fx_add(state.partials[0], state.partials[1]),
                partials=(),
                done=True,
                valid=True,
            )

        # HOLD: second valid tick. The unit is already free to restart.
        if edge:
            return self._launch(nxt, inputs.x)
        return replace(nxt, phase=ExpPhase.IDLE, valid=True)

    def _launch(self, nxt: ExpState, x: int) -> ExpState:
        terms = list(_empty_terms())
        terms[0] = ONE
        terms[1] = fx_sub(0, x)
        return replace(
            nxt,
            phase=ExpPhase.POWERS,
            x=x,
            terms=tuple(terms),
            partials=(),
            issue_power=MultiplierInputs(valid=True, a=x, b=x, tag=2),
        )

    def _collect(self, state: ExpState, nxt: ExpState) -> ExpState:
        terms = list(state.terms)
        issue_power = MultiplierInputs()
        issue_scale = MultiplierInputs()

        if state.mul_power.valid:
            k = state.mul_power.tag
            power = state.mul_power.product
            issue_scale = MultiplierInputs(valid=True, a=power, b=COEFFICIENTS[k], tag=k)
            if k < HIGHEST_POWER:
                issue_power = MultiplierInputs(valid=True, a=power, b=state.x, tag=k + 1)

        if state.mul_scale.valid:
            terms[state.mul_scale.tag] = state.mul_scale.product

        if all(term is not None for term in terms):
            return replace(nxt, phase=ExpPhase.SUM1, terms=tuple(terms), partials=tuple(terms))
        return replace(nxt, terms=tuple(terms), issue_power=issue_power, issue_scale=issue_scale)
