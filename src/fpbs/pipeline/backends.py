"""Computation strategies for the d1/d2 orchestrator.

``UnitBackend`` drives the divider, square-root and log units. The
``FixedOutputBackend`` returns canned sub-results without computing
anything and exists for exercising the downstream pipeline in tests. The
strategy is chosen when the orchestrator is constructed; nothing switches
it at run time.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any

from fpbs.core.fixed_point import ONE
from fpbs.core.handshake import TickUnit
from fpbs.pipeline.types import Outcome
from fpbs.units.divider import DividerInputs, DividerUnit
from fpbs.units.log import LogInputs, LogUnit
from fpbs.units.sqrt import SqrtInputs, SqrtUnit


@dataclass(frozen=True)
class Sample:
    """What a backend offers the orchestrator on one tick.

    A field is None while the corresponding result is not valid.
    """

    quotient: int | None = None
    root: int | None = None
    log: int | None = None
    faults: frozenset[str] = frozenset()


@dataclass(frozen=True)
class UnitBackendState:
    """Owned unit states plus the start/operand wires driven into them."""

    divider: Any
    sqrt: Any
    log: Any
    div_start: bool = False
    sqrt_start: bool = False
    log_start: bool = False
    dividend: int = 0
    divisor: int = 0
    radicand: int = 0
    log_operand: int = 0
    log_issued: bool = False


class UnitBackend:
    """Real computation: S0/K on the divider, sqrt(T), then ln(S0/K).

    Args:
        divider: Divider machine; defaults to DividerUnit.
        sqrt: Square-root machine; defaults to the reference SqrtUnit.
        log: Log machine; defaults to LogUnit.
    """

    outcome = Outcome.SUCCEEDED

    def __init__(
        self,
        divider: TickUnit | None = None,
        sqrt: TickUnit | None = None,
        log: TickUnit | None = None,
    ):
        self.divider = divider or DividerUnit()
        self.sqrt = sqrt or SqrtUnit()
        self.log = log or LogUnit()

    def initial_state(self) -> UnitBackendState:
        return UnitBackendState(
            divider=self.divider.initial_state(),
            sqrt=self.sqrt.initial_state(),
            log=self.log.initial_state(),
        )

    def launch(self, spot: int, strike: int, time: int) -> UnitBackendState:
        """Fresh units with the divider and square-root starts asserted."""
        return replace(
            self.initial_state(),
            div_start=True,
            sqrt_start=True,
            dividend=spot,
            divisor=strike,
            radicand=time,
        )

    def step(self, state: UnitBackendState, reset: bool = False) -> UnitBackendState:
        if reset:
            return self.initial_state()

        nxt = replace(
            state,
            divider=self.divider.step(
                state.divider, DividerInputs(state.div_start, state.dividend, state.divisor)
            ),
            sqrt=self.sqrt.step(state.sqrt, SqrtInputs(state.sqrt_start, state.radicand)),
            log=self.log.step(state.log, LogInputs(state.log_start, state.log_operand)),
            div_start=False,
            sqrt_start=False,
            log_start=False,
        )
        if state.divider.valid and not state.log_issued:
            nxt = replace(
                nxt,
                log_start=True,
                log_operand=state.divider.quotient,
                log_issued=True,
            )
        return nxt

    def sample(self, state: UnitBackendState) -> Sample:
        faults = set()
        if getattr(state.divider, "dbz", False):
            faults.add("divide_by_zero")
        if getattr(state.divider, "ovf", False):
            faults.add("divide_overflow")
        if getattr(state.sqrt, "domain_error", False):
            faults.add("sqrt_domain")
        if getattr(state.log, "domain_error", False):
            faults.add("log_domain")
        return Sample(
            quotient=state.divider.quotient if state.divider.valid else None,
            root=state.sqrt.root if state.sqrt.valid else None,
            log=state.log.result if state.log.valid else None,
            faults=frozenset(faults),
        )


@dataclass(frozen=True)
class FixedBackendState:
    armed: bool = False


@dataclass
class FixedOutputBackend:
    """Canned sub-results, available the tick after launch.

    The defaults are the watchdog placeholders: 1.0 for the ratio and the
    root, 0.0 for the logarithm.
    """

    quotient: int = ONE
    root: int = ONE
    log: int = 0
    outcome: Outcome = field(default=Outcome.FIXED_OUTPUT, init=False)

    def initial_state(self) -> FixedBackendState:
        return FixedBackendState()

    def launch(self, spot: int, strike: int, time: int) -> FixedBackendState:
        return FixedBackendState(armed=True)

    def step(self, state: FixedBackendState, reset: bool = False) -> FixedBackendState:
        if reset:
            return self.initial_state()
        return state

    def sample(self, state: FixedBackendState) -> Sample:
        if not state.armed:
            return Sample()
        return Sample(quotient=self.quotient, root=self.root, log=self.log)
