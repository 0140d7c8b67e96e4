"""Convenience drivers that tick the orchestrators to completion."""

from __future__ import annotations

from dataclasses import dataclass

import structlog

from fpbs.config import PipelineConfig
from fpbs.core.black_scholes import OptionType
from fpbs.core.fixed_point import FixedPoint
from fpbs.core.handshake import UnitHandshake
from fpbs.pipeline.d1d2 import D1D2Inputs, D1D2Orchestrator, D1D2State
from fpbs.pipeline.top import TopInputs, TopOrchestrator, TopState
from fpbs.pipeline.types import PipelineRequest, PricingResult

logger = structlog.get_logger(__name__)


class SimulationTimeoutError(RuntimeError):
    """Raised when a request does not complete within its tick budget."""


@dataclass(frozen=True)
class TickTrace:
    """One row of a per-tick trace."""

    tick: int
    top_phase: str
    d1d2_phase: str
    d1d2: UnitHandshake
    norm: UnitHandshake
    combiner: UnitHandshake
    option_price: int


def _trace_row(tick: int, state: TopState) -> TickTrace:
    return TickTrace(
        tick=tick,
        top_phase=state.phase.value,
        d1d2_phase=state.d1d2.phase.value,
        d1d2=UnitHandshake.of(state.d1d2),
        norm=UnitHandshake.of(state.norm),
        combiner=UnitHandshake.of(state.combiner),
        option_price=state.combiner.option_price,
    )


def run_request(
    request: PipelineRequest,
    *,
    top: TopOrchestrator | None = None,
    config: PipelineConfig | None = None,
    max_ticks: int | None = None,
    trace: list[TickTrace] | None = None,
) -> PricingResult:
    """Issue one start pulse and tick until the done pulse.

    Args:
        request: Quantised request.
        top: Orchestrator to use; built from ``config`` if omitted.
        config: Used only when ``top`` is omitted.
        max_ticks: Tick budget. Defaults to ``config.max_request_ticks``.
        trace: If given, one TickTrace per tick is appended to it.

    Returns:
        PricingResult for the request.

    Raises:
        SimulationTimeoutError: If ``done`` is not seen within the budget.
    """
    top = top or TopOrchestrator(config)
    limit = max_ticks if max_ticks is not None else top.config.max_request_ticks

    state = top.step(top.initial_state(), TopInputs(start=True, request=request))
    tick = 1
    if trace is not None:
        trace.append(_trace_row(tick, state))

    while not state.done:
        if tick >= limit:
            raise SimulationTimeoutError(
                f"Request did not complete within {limit} ticks "
                f"(stuck in {state.phase.value})"
            )
        state = top.step(state, TopInputs())
        tick += 1
        if trace is not None:
            trace.append(_trace_row(tick, state))

    d1d2 = state.d1d2
    return PricingResult(
        option_price=FixedPoint(state.option_price),
        d1=FixedPoint(d1d2.d1),
        d2=FixedPoint(d1d2.d2),
        nd1=FixedPoint(state.nd1),
        nd2=FixedPoint(state.nd2),
        outcome=state.outcome,
        ticks=tick,
        defaulted=d1d2.defaulted,
        faults=d1d2.faults,
        saturated=d1d2.saturated,
        timed_out_stage=state.timed_out_stage,
    )


def price_option(
    spot: float,
    strike: float,
    time: float,
    volatility: float,
    rate: float,
    option_type: OptionType = OptionType.CALL,
    *,
    config: PipelineConfig | None = None,
) -> PricingResult:
    """Price one option from real inputs.

    Raises:
        FixedPointRangeError: If an input is not representable in Q16.16.
    """
    request = PipelineRequest.from_reals(spot, strike, time, volatility, rate, option_type)
    return run_request(request, config=config)


def compute_d1_d2(
    request: PipelineRequest,
    *,
    orchestrator: D1D2Orchestrator | None = None,
    config: PipelineConfig | None = None,
    max_ticks: int | None = None,
) -> D1D2State:
    """Run only the d1/d2 orchestrator and return its state on ``pipeline_done``.

    Raises:
        SimulationTimeoutError: If ``pipeline_done`` is not seen in time.
    """
    orchestrator = orchestrator or D1D2Orchestrator(config)
    limit = max_ticks if max_ticks is not None else orchestrator.config.max_request_ticks

    state = orchestrator.step(
        orchestrator.initial_state(), D1D2Inputs(start=True, request=request)
    )
    tick = 1
    while not state.pipeline_done:
        if tick >= limit:
            raise SimulationTimeoutError(
                f"d1/d2 did not complete within {limit} ticks (stuck in {state.phase.value})"
            )
        state = orchestrator.step(state, D1D2Inputs())
        tick += 1
    logger.debug("d1d2_done", ticks=tick, outcome=state.outcome.value)
    return state
