"""Top-level orchestrator: one request in, one option price out.

The start pulse is forwarded unchanged to the d1/d2 orchestrator, whose
``norm_start`` drives the normal-CDF unit; the CDF ``done`` in turn
drives the price combiner. The orchestrator follows the combiner's
``exp_start``/``exp_done`` handshake and then waits for the price.

Each wait state has its own watchdog (``stage_timeout_ticks``); if it
expires the request is released with whatever the price register holds
and the outcome is ``TIMED_OUT_WITH_DEFAULTS``. With the default bounds
that happens only when an external unit stalls or, under the
SETTLED_NONZERO policy, when the true price is zero.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field, replace

import structlog

from fpbs.config import CompletionPolicy, PipelineConfig
from fpbs.pipeline.d1d2 import D1D2Inputs, D1D2Orchestrator, D1D2State
from fpbs.pipeline.types import Outcome, PipelineRequest
from fpbs.units.normal_cdf import NormalCdfInputs, NormalCdfState, NormalCdfUnit
from fpbs.units.price_combiner import PriceCombinerInputs, PriceCombinerState, PriceCombinerUnit

logger = structlog.get_logger(__name__)

SETTLE_TICKS = 2


class TopPhase(enum.Enum):
    WAIT_START = "wait_start"
    WAIT_NORM_DONE = "wait_norm_done"
    WAIT_EXP_START = "wait_exp_start"
    WAIT_EXP_DONE = "wait_exp_done"
    WAIT_RESULT_VALID = "wait_result_valid"


@dataclass(frozen=True)
class TopInputs:
    start: bool = False
    request: PipelineRequest | None = None


@dataclass(frozen=True)
class TopState:
    """Registers of the top-level orchestrator.

    Attributes:
        ticks: Ticks since the current request was accepted.
        stage_ticks: Ticks spent in the current wait state.
        settle_ticks: Consecutive non-zero price observations
            (SETTLED_NONZERO policy only).
        done: One-tick pulse when the price is released.
        outcome: Outcome of the last completed request.
        timed_out_stage: Wait state released by its watchdog, if any.
        rejected_starts: Start pulses ignored because a request was in
            flight or no request accompanied them.
    """

    phase: TopPhase = TopPhase.WAIT_START
    request: PipelineRequest | None = None
    d1d2: D1D2State = field(default_factory=D1D2State)
    norm: NormalCdfState = field(default_factory=NormalCdfState)
    combiner: PriceCombinerState = field(default_factory=PriceCombinerState)
    ticks: int = 0
    stage_ticks: int = 0
    settle_ticks: int = 0
    nd1: int = 0
    nd2: int = 0
    option_price: int = 0
    done: bool = False
    outcome: Outcome | None = None
    timed_out_stage: str | None = None
    rejected_starts: int = 0

    @property
    def busy(self) -> bool:
        return self.phase is not TopPhase.WAIT_START

    @property
    def valid(self) -> bool:
        return self.done


class TopOrchestrator:
    """Sequences the d1/d2 orchestrator, normal CDF and price combiner.

    Args:
        config: Timing bounds and completion policy.
        d1d2: d1/d2 orchestrator; built from ``config`` by default.
        norm_cdf: Normal-CDF unit; the reference unit by default.
        combiner: Price-combiner unit; the reference unit by default.
    """

    def __init__(
        self,
        config: PipelineConfig | None = None,
        d1d2: D1D2Orchestrator | None = None,
        norm_cdf: NormalCdfUnit | None = None,
        combiner: PriceCombinerUnit | None = None,
    ):
        self.config = config or PipelineConfig()
        self.d1d2 = d1d2 or D1D2Orchestrator(self.config)
        self.norm_cdf = norm_cdf or NormalCdfUnit(self.config.norm_cdf_latency)
        self.combiner = combiner or PriceCombinerUnit()

    def initial_state(self) -> TopState:
        return TopState(
            d1d2=self.d1d2.initial_state(),
            norm=self.norm_cdf.initial_state(),
            combiner=self.combiner.initial_state(),
        )

    def step(self, state: TopState, inputs: TopInputs, reset: bool = False) -> TopState:
        """Advance the whole pipeline by one tick."""
        if reset:
            return self.initial_state()

        accept = (
            inputs.start
            and inputs.request is not None
            and state.phase is TopPhase.WAIT_START
        )
        if accept:
            # Every request starts from freshly reset units.
            state = replace(
                state,
                d1d2=self.d1d2.initial_state(),
                norm=self.norm_cdf.initial_state(),
                combiner=self.combiner.initial_state(),
            )
        req = state.request

        nxt = replace(
            state,
            d1d2=self.d1d2.step(state.d1d2, D1D2Inputs(start=accept, request=inputs.request)),
            norm=self.norm_cdf.step(
                state.norm,
                NormalCdfInputs(start=state.d1d2.norm_start, d1=state.d1d2.d1, d2=state.d1d2.d2),
            ),
            combiner=self.combiner.step(state.combiner, self._combiner_inputs(state, req)),
            done=False,
        )

        if inputs.start and not accept:
            logger.warning(
                "start_rejected",
                unit="top",
                phase=state.phase.value,
                reason="busy" if inputs.request is not None else "missing_request",
            )
            nxt = replace(nxt, rejected_starts=state.rejected_starts + 1)

        if state.phase is TopPhase.WAIT_START:
            if not accept:
                return nxt
            return replace(
                nxt,
                phase=TopPhase.WAIT_NORM_DONE,
                request=inputs.request,
                ticks=1,
                stage_ticks=0,
                settle_ticks=0,
                nd1=0,
                nd2=0,
                option_price=0,
                outcome=None,
                timed_out_stage=None,
            )

        nxt = replace(nxt, ticks=state.ticks + 1)

        advanced = self._advance(state, nxt)
        if advanced is not None:
            return advanced

        stage_ticks = state.stage_ticks + 1
        if stage_ticks >= self.config.stage_timeout_ticks:
            logger.warning("stage_timeout", stage=state.phase.value, ticks=stage_ticks)
            return self._finish(
                state,
                nxt,
                price=state.combiner.option_price,
                timed_out_stage=state.phase.value,
            )
        return replace(nxt, stage_ticks=stage_ticks, settle_ticks=0)

    def _combiner_inputs(self, state: TopState, req: PipelineRequest | None) -> PriceCombinerInputs:
        if req is None:
            return PriceCombinerInputs()
        return PriceCombinerInputs(
            norm_done=state.norm.done,
            rate=req.rate,
            time=req.time,
            spot=req.spot,
            strike=req.strike,
            nd1=state.norm.nd1,
            nd2=state.norm.nd2,
            option_type=req.option_type,
        )

    def _advance(self, state: TopState, nxt: TopState) -> TopState | None:
        """Next state if the current wait condition is met, else None."""
        phase = state.phase

        if phase is TopPhase.WAIT_NORM_DONE and state.norm.done:
            return replace(
                nxt,
                phase=TopPhase.WAIT_EXP_START,
                nd1=state.norm.nd1,
                nd2=state.norm.nd2,
                stage_ticks=0,
            )
        if phase is TopPhase.WAIT_EXP_START and state.combiner.exp_start:
            return replace(nxt, phase=TopPhase.WAIT_EXP_DONE, stage_ticks=0)
        if phase is TopPhase.WAIT_EXP_DONE and state.combiner.exp_done:
            return replace(nxt, phase=TopPhase.WAIT_RESULT_VALID, stage_ticks=0)
        if phase is not TopPhase.WAIT_RESULT_VALID:
            return None

        if self.config.completion_policy is CompletionPolicy.EXPLICIT_VALID:
            if state.combiner.price_valid:
                return self._finish(state, nxt, price=state.combiner.option_price)
            return None

        # SETTLED_NONZERO: the price register must read non-zero twice in a row.
        if state.combiner.option_price == 0:
            return None
        settle_ticks = state.settle_ticks + 1
        if settle_ticks >= SETTLE_TICKS:
            return self._finish(state, nxt, price=state.combiner.option_price)
        return replace(nxt, settle_ticks=settle_ticks, stage_ticks=state.stage_ticks + 1)

    def _finish(
        self,
        state: TopState,
        nxt: TopState,
        *,
        price: int,
        timed_out_stage: str | None = None,
    ) -> TopState:
        outcome = state.d1d2.outcome or Outcome.SUCCEEDED
        if timed_out_stage is not None:
            outcome = Outcome.TIMED_OUT_WITH_DEFAULTS
        logger.info(
            "request_done",
            price=price,
            outcome=outcome.value,
            ticks=nxt.ticks,
            timed_out_stage=timed_out_stage,
        )
        return replace(
            nxt,
            phase=TopPhase.WAIT_START,
            option_price=price,
            done=True,
            outcome=outcome,
            timed_out_stage=timed_out_stage,
            stage_ticks=0,
            settle_ticks=0,
        )
