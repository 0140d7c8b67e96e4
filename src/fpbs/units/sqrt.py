"""Reference square-root unit.

Digit-by-digit (restoring) square root of a Q16.16 radicand, one result
bit per tick. The handshake matches the divider: ``start`` latches the
radicand, ``done`` pulses on completion, ``valid`` only on success, and a
negative radicand raises the ``domain_error`` flag instead.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, replace

from fpbs.core.fixed_point import FRAC_BITS, WORD_BITS

# sqrt of a (WORD_BITS + FRAC_BITS)-bit scaled radicand needs this many bits.
ROOT_BITS = (WORD_BITS + FRAC_BITS) // 2


class SqrtPhase(enum.Enum):
    IDLE = "idle"
    INIT = "init"
    CALC = "calc"
    ROUND = "round"


@dataclass(frozen=True)
class SqrtInputs:
    start: bool = False
    radicand: int = 0


@dataclass(frozen=True)
class SqrtState:
    phase: SqrtPhase = SqrtPhase.IDLE
    radicand: int = 0
    remainder: int = 0
    root_acc: int = 0
    probe: int = 0
    root: int = 0
    valid: bool = False
    done: bool = False
    domain_error: bool = False

    @property
    def busy(self) -> bool:
        return self.phase is not SqrtPhase.IDLE


class SqrtUnit:
    """Multi-tick Q16.16 square root, rounded to nearest."""

    def initial_state(self) -> SqrtState:
        return SqrtState()

    def step(self, state: SqrtState, inputs: SqrtInputs, reset: bool = False) -> SqrtState:
        """Advance the square-root unit by one tick."""
        if reset:
            return self.initial_state()

        state = replace(state, valid=False, done=False)

        if state.phase is SqrtPhase.IDLE:
            if not inputs.start:
                return state
            return replace(state, phase=SqrtPhase.INIT, radicand=inputs.radicand, domain_error=False)

        if state.phase is SqrtPhase.INIT:
            if state.radicand < 0:
                return replace(state, phase=SqrtPhase.IDLE, root=0, done=True, domain_error=True)
            return replace(
                state,
                phase=SqrtPhase.CALC,
                remainder=state.radicand << FRAC_BITS,
                root_acc=0,
                probe=1 << (2 * (ROOT_BITS - 1)),
            )

        if state.phase is SqrtPhase.CALC:
            remainder = state.remainder
            root_acc = state.root_acc
            if remainder >= root_acc + state.probe:
                remainder -= root_acc + state.probe
                root_acc = (root_acc >> 1) + state.probe
            else:
                root_acc >>= 1
            probe = state.probe >> 2
            phase = SqrtPhase.CALC if probe else SqrtPhase.ROUND
            return replace(state, phase=phase, remainder=remainder, root_acc=root_acc, probe=probe)

        # ROUND: (r + 1/2)^2 = r^2 + r + 1/4, so round up when remainder > r.
        root = state.root_acc + 1 if state.remainder > state.root_acc else state.root_acc
        return replace(state, phase=SqrtPhase.IDLE, root=root, valid=True, done=True)
