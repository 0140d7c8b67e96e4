"""Black-Scholes d1/d2 orchestrator.

    d1 = (ln(S0/K) + (r + sigma^2/2) * T) / (sigma * sqrt(T))
    d2 = d1 - sigma * sqrt(T)

On ``start`` the request is latched and the backend launches S0/K on the
divider and sqrt(T) on the square-root unit; ln(S0/K) follows once the
quotient is valid. Each sub-result is latched at most once. A watchdog
counts ticks while any of the three is missing and, at its bound,
substitutes placeholders (1.0 for the ratio and root, 0.0 for the log)
so the request always completes. Such a request reports
``Outcome.TIMED_OUT_WITH_DEFAULTS``.

Once all three are valid, seven scalar stages compute d1 and d2:
(1) sigma*sqrt(T) and sigma^2, (2) sigma^2/2, (3) r + sigma^2/2,
(4) (r + sigma^2/2)*T, (5) the numerator, (6) d1 by direct division,
(7) d2. ``Done`` pulses ``pipeline_done`` and ``norm_start``.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field, replace
from typing import Any

import structlog

from fpbs.config import PipelineConfig
from fpbs.core.fixed_point import ONE, add_with_flag, div_with_flag, mul_with_flag, sub_with_flag
from fpbs.pipeline.backends import FixedOutputBackend, UnitBackend
from fpbs.pipeline.types import Outcome, PipelineRequest, SubResult
from fpbs.units.divider import DividerUnit

logger = structlog.get_logger(__name__)

DEFAULT_QUOTIENT = ONE
DEFAULT_ROOT = ONE
DEFAULT_LOG = 0


class D1D2Phase(enum.Enum):
    IDLE = "idle"
    WAIT_FOR_INPUTS = "wait_for_inputs"
    PREP_CALC = "prep_calc"
    SIGMA_SQRT_T = "sigma_sqrt_t"
    HALF_SIGMA_SQ = "half_sigma_sq"
    DRIFT = "drift"
    DRIFT_T = "drift_t"
    NUMERATOR = "numerator"
    D1 = "d1"
    D2 = "d2"
    DONE = "done"


_STAGE_ORDER = (
    D1D2Phase.PREP_CALC,
    D1D2Phase.SIGMA_SQRT_T,
    D1D2Phase.HALF_SIGMA_SQ,
    D1D2Phase.DRIFT,
    D1D2Phase.DRIFT_T,
    D1D2Phase.NUMERATOR,
    D1D2Phase.D1,
    D1D2Phase.D2,
    D1D2Phase.DONE,
)
_NEXT_STAGE = dict(zip(_STAGE_ORDER, _STAGE_ORDER[1:]))


@dataclass(frozen=True)
class D1D2Inputs:
    start: bool = False
    request: PipelineRequest | None = None


@dataclass(frozen=True)
class D1D2State:
    """Registers of the d1/d2 orchestrator.

    Attributes:
        request: Latched request; replaced on the next accepted start.
        backend: Backend-owned state (unit states and their wires).
        quotient: Latched S0/K.
        root: Latched sqrt(T).
        log: Latched ln(S0/K).
        watchdog: Ticks spent waiting with a sub-result missing.
        d1: Registered d1 (raw Q16.16).
        d2: Registered d2 (raw Q16.16).
        saturated: An arithmetic stage saturated.
        outcome: Outcome of the current or last request.
        faults: Sub-unit fault flags observed while waiting.
        pipeline_done: One-tick pulse in Done.
        norm_start: One-tick pulse handing d1/d2 to the normal-CDF unit.
        rejected_starts: Start pulses ignored because a request was in flight
            or no request accompanied them.
    """

    phase: D1D2Phase = D1D2Phase.IDLE
    request: PipelineRequest | None = None
    backend: Any = None
    quotient: SubResult = field(default_factory=SubResult)
    root: SubResult = field(default_factory=SubResult)
    log: SubResult = field(default_factory=SubResult)
    watchdog: int = 0
    sigma_sqrt_t: int = 0
    sigma_sq: int = 0
    half_sigma_sq: int = 0
    drift: int = 0
    drift_t: int = 0
    numerator: int = 0
    d1: int = 0
    d2: int = 0
    saturated: bool = False
    outcome: Outcome | None = None
    faults: frozenset[str] = frozenset()
    pipeline_done: bool = False
    norm_start: bool = False
    rejected_starts: int = 0

    @property
    def busy(self) -> bool:
        return self.phase is not D1D2Phase.IDLE

    @property
    def done(self) -> bool:
        return self.pipeline_done

    @property
    def valid(self) -> bool:
        return self.pipeline_done

    @property
    def defaulted(self) -> frozenset[str]:
        """Names of the sub-results replaced by watchdog placeholders."""
        return frozenset(
            name
            for name, sub in (("quotient", self.quotient), ("root", self.root), ("log", self.log))
            if sub.defaulted
        )


class D1D2Orchestrator:
    """Drives the sub-units and computes d1/d2.

    Args:
        config: Timing bounds; the watchdog bound is ``watchdog_ticks``.
        backend: Computation strategy. Defaults to a UnitBackend with a
            divider honouring ``config.divider_watchdog_ticks``.
    """

    def __init__(
        self,
        config: PipelineConfig | None = None,
        backend: UnitBackend | FixedOutputBackend | None = None,
    ):
        self.config = config or PipelineConfig()
        self.backend = backend or UnitBackend(
            divider=DividerUnit(self.config.divider_watchdog_ticks)
        )

    def initial_state(self) -> D1D2State:
        return D1D2State(backend=self.backend.initial_state())

    def step(self, state: D1D2State, inputs: D1D2Inputs, reset: bool = False) -> D1D2State:
        """Advance the orchestrator and its backend by one tick."""
        if reset:
            return self.initial_state()

        nxt = replace(
            state,
            backend=self.backend.step(state.backend),
            pipeline_done=False,
            norm_start=False,
        )

        if inputs.start:
            if inputs.request is not None and state.phase is D1D2Phase.IDLE:
                return self._latch(nxt, inputs.request)
            logger.warning(
                "start_rejected",
                unit="d1d2",
                phase=state.phase.value,
                reason="busy" if inputs.request is not None else "missing_request",
            )
            nxt = replace(nxt, rejected_starts=nxt.rejected_starts + 1)

        if state.phase is D1D2Phase.IDLE:
            return nxt
        if state.phase is D1D2Phase.WAIT_FOR_INPUTS:
            return self._wait_for_inputs(state, nxt)
        if state.phase is D1D2Phase.DONE:
            return replace(nxt, phase=D1D2Phase.IDLE)
        return self._arithmetic(state, nxt)

    def _latch(self, nxt: D1D2State, request: PipelineRequest) -> D1D2State:
        logger.info(
            "request_latched",
            spot=request.spot,
            strike=request.strike,
            time=request.time,
            volatility=request.volatility,
            rate=request.rate,
        )
        return D1D2State(
            phase=D1D2Phase.WAIT_FOR_INPUTS,
            request=request,
            backend=self.backend.launch(request.spot, request.strike, request.time),
            outcome=self.backend.outcome,
            rejected_starts=nxt.rejected_starts,
        )

    def _wait_for_inputs(self, state: D1D2State, nxt: D1D2State) -> D1D2State:
        sample = self.backend.sample(state.backend)
        quotient, root, log = state.quotient, state.root, state.log
        if sample.quotient is not None:
            quotient = quotient.latch(sample.quotient)
        if sample.root is not None:
            root = root.latch(sample.root)
        if sample.log is not None:
            log = log.latch(sample.log)
        nxt = replace(
            nxt,
            quotient=quotient,
            root=root,
            log=log,
            faults=state.faults | sample.faults,
        )

        if quotient.valid and root.valid and log.valid:
            return replace(nxt, phase=D1D2Phase.PREP_CALC)

        watchdog = state.watchdog + 1
        if watchdog < self.config.watchdog_ticks:
            return replace(nxt, watchdog=watchdog)

        nxt = replace(
            nxt,
            phase=D1D2Phase.PREP_CALC,
            watchdog=watchdog,
            quotient=quotient.default_to(DEFAULT_QUOTIENT),
            root=root.default_to(DEFAULT_ROOT),
            log=log.default_to(DEFAULT_LOG),
            outcome=Outcome.TIMED_OUT_WITH_DEFAULTS,
        )
        logger.warning(
            "watchdog_fired",
            ticks=watchdog,
            defaulted=sorted(nxt.defaulted),
            faults=sorted(nxt.faults),
        )
        return nxt

    def _arithmetic(self, state: D1D2State, nxt: D1D2State) -> D1D2State:
        req = state.request
        phase = state.phase
        changes: dict = {"phase": _NEXT_STAGE[phase]}
        saturated = False

        if phase is D1D2Phase.SIGMA_SQRT_T:
            changes["sigma_sqrt_t"], s1 = mul_with_flag(req.volatility, state.root.value)
            changes["sigma_sq"], s2 = mul_with_flag(req.volatility, req.volatility)
            saturated = s1 or s2
        elif phase is D1D2Phase.HALF_SIGMA_SQ:
            changes["half_sigma_sq"] = state.sigma_sq >> 1
        elif phase is D1D2Phase.DRIFT:
            changes["drift"], saturated = add_with_flag(req.rate, state.half_sigma_sq)
        elif phase is D1D2Phase.DRIFT_T:
            changes["drift_t"], saturated = mul_with_flag(state.drift, req.time)
        elif phase is D1D2Phase.NUMERATOR:
            changes["numerator"], saturated = add_with_flag(state.log.value, state.drift_t)
        elif phase is D1D2Phase.D1:
            changes["d1"], saturated = div_with_flag(state.numerator, state.sigma_sqrt_t)
        elif phase is D1D2Phase.D2:
            changes["d2"], saturated = sub_with_flag(state.d1, state.sigma_sqrt_t)
            changes["pipeline_done"] = True
            changes["norm_start"] = True
        # PREP_CALC only advances; the latched sub-results are its operands.

        return replace(nxt, saturated=state.saturated or saturated, **changes)
