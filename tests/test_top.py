"""Tests for the top-level orchestrator."""

import numpy as np
from scipy.stats import norm
from structlog.testing import capture_logs

from fpbs.config import D1D2_DRAIN_TICKS, CompletionPolicy, PipelineConfig
from fpbs.core.black_scholes import OptionType, call_price, put_price
from fpbs.core.fixed_point import to_real
from fpbs.pipeline.backends import FixedOutputBackend, UnitBackend
from fpbs.pipeline.d1d2 import D1D2Orchestrator
from fpbs.pipeline.runner import run_request
from fpbs.pipeline.top import TopInputs, TopOrchestrator, TopPhase
from fpbs.pipeline.types import Outcome, PipelineRequest

FAST = PipelineConfig(watchdog_ticks=60, stage_timeout_ticks=100)


def drive(top, state, request, max_ticks=2000):
    """Issue one start pulse from ``state`` and tick until done."""
    state = top.step(state, TopInputs(start=True, request=request))
    for _ in range(max_ticks):
        if state.done:
            return state
        state = top.step(state, TopInputs())
    raise AssertionError("top orchestrator did not finish")


class TestEndToEnd:
    def test_sanity_vector(self, unit_request):
        result = run_request(unit_request)
        assert result.d1.hex == "0x00018000"
        assert result.d2.hex == "0x00008000"
        assert result.outcome is Outcome.SUCCEEDED
        np.testing.assert_allclose(result.nd1.real, norm.cdf(1.5), atol=1e-4)
        np.testing.assert_allclose(result.nd2.real, norm.cdf(0.5), atol=1e-4)
        np.testing.assert_allclose(
            result.price, call_price(1.0, [1.0], [1.0], 1.0, 1.0)[0], atol=2e-3
        )

    def test_calls_and_puts_match_reference(self):
        cases = [
            (100.0, 100.0, 1.0, 0.2, 0.05),
            (105.0, 100.0, 0.5, 0.2, 0.05),
            (210.0, 100.0, 2.0, 0.35, 0.03),
        ]
        for spot, strike, time, vol, rate in cases:
            for option_type, formula in [(OptionType.CALL, call_price), (OptionType.PUT, put_price)]:
                request = PipelineRequest.from_reals(spot, strike, time, vol, rate, option_type)
                result = run_request(request)
                expected = formula(spot, [strike], [vol], time, rate)[0]
                assert result.succeeded
                np.testing.assert_allclose(result.price, expected, rtol=1e-3, atol=2e-2)

    def test_ticks_bounded(self, unit_request):
        result = run_request(unit_request)
        assert result.ticks <= PipelineConfig().max_request_ticks

    def test_fixed_output_backend(self, unit_request):
        top = TopOrchestrator(d1d2=D1D2Orchestrator(backend=FixedOutputBackend()))
        result = run_request(unit_request, top=top)
        assert result.outcome is Outcome.FIXED_OUTPUT
        assert result.d1.hex == "0x00018000"


class TestLiveness:
    def test_stalled_sqrt(self, stalled_unit, unit_request):
        top = TopOrchestrator(FAST, d1d2=D1D2Orchestrator(FAST, UnitBackend(sqrt=stalled_unit)))
        result = run_request(unit_request, top=top)
        assert result.outcome is Outcome.TIMED_OUT_WITH_DEFAULTS
        assert result.defaulted == frozenset({"root"})
        assert result.timed_out_stage is None
        assert result.ticks <= FAST.max_request_ticks

    def test_stalled_normal_cdf(self, stalled_unit, unit_request):
        top = TopOrchestrator(FAST, norm_cdf=stalled_unit)
        with capture_logs() as logs:
            result = run_request(unit_request, top=top)
        assert result.outcome is Outcome.TIMED_OUT_WITH_DEFAULTS
        assert result.timed_out_stage == TopPhase.WAIT_NORM_DONE.value
        assert result.option_price.raw == 0
        timeouts = [e for e in logs if e["event"] == "stage_timeout"]
        assert len(timeouts) == 1
        assert timeouts[0]["log_level"] == "warning"

    def test_first_stage_outlasts_d1d2_watchdog(self, stalled_unit, unit_request):
        """At the smallest accepted bound the placeholders still reach d1/d2."""
        config = PipelineConfig(
            watchdog_ticks=60,
            stage_timeout_ticks=60 + D1D2_DRAIN_TICKS + 3 + 1,
            norm_cdf_latency=3,
        )
        top = TopOrchestrator(config, d1d2=D1D2Orchestrator(config, UnitBackend(sqrt=stalled_unit)))
        result = run_request(unit_request, top=top)
        assert result.timed_out_stage is None
        assert result.outcome is Outcome.TIMED_OUT_WITH_DEFAULTS
        assert result.defaulted == frozenset({"root"})
        assert result.d1.hex == "0x00018000"
        assert result.d2.hex == "0x00008000"
        assert result.price > 0


class TestCompletionPolicy:
    def test_settled_nonzero_takes_one_more_tick(self, unit_request):
        explicit = run_request(unit_request)
        settled = run_request(
            unit_request,
            config=PipelineConfig(completion_policy=CompletionPolicy.SETTLED_NONZERO),
        )
        assert settled.option_price == explicit.option_price
        assert settled.outcome is Outcome.SUCCEEDED
        assert settled.ticks == explicit.ticks + 1

    def test_zero_price(self):
        """A deep out-of-the-money call prices to exactly zero."""
        request = PipelineRequest.from_reals(1.0, 2.0, 0.01, 0.01, 0.0)

        explicit = run_request(request, config=FAST)
        assert explicit.option_price.raw == 0
        assert explicit.outcome is Outcome.SUCCEEDED

        config = PipelineConfig(
            watchdog_ticks=60,
            stage_timeout_ticks=100,
            completion_policy=CompletionPolicy.SETTLED_NONZERO,
        )
        settled = run_request(request, config=config)
        assert settled.option_price.raw == 0
        assert settled.outcome is Outcome.TIMED_OUT_WITH_DEFAULTS
        assert settled.timed_out_stage == TopPhase.WAIT_RESULT_VALID.value


class TestHandshake:
    def test_done_is_a_pulse(self, unit_request):
        top = TopOrchestrator()
        state = drive(top, top.initial_state(), unit_request)
        assert state.valid
        assert not state.busy
        state = top.step(state, TopInputs())
        assert not state.done
        assert state.option_price != 0

    def test_start_rejected_while_busy(self, unit_request):
        top = TopOrchestrator()
        other = PipelineRequest.from_reals(2.0, 1.0, 1.0, 1.0, 1.0)
        state = top.step(top.initial_state(), TopInputs(True, unit_request))
        with capture_logs() as logs:
            state = top.step(state, TopInputs(True, other))
        assert state.rejected_starts == 1
        assert [e["event"] for e in logs] == ["start_rejected"]
        while not state.done:
            state = top.step(state, TopInputs())
        assert state.d1d2.d1 == 0x00018000

    def test_start_without_request_rejected(self):
        top = TopOrchestrator()
        with capture_logs() as logs:
            state = top.step(top.initial_state(), TopInputs(start=True))
        assert state.phase is TopPhase.WAIT_START
        assert not state.busy
        assert state.rejected_starts == 1
        assert [e["reason"] for e in logs] == ["missing_request"]

    def test_back_to_back_requests(self, unit_request):
        top = TopOrchestrator()
        put = PipelineRequest.from_reals(105.0, 100.0, 0.5, 0.2, 0.05, OptionType.PUT)
        state = drive(top, top.initial_state(), unit_request)
        state = drive(top, state, put)
        assert state.request == put
        assert state.option_price == run_request(put).option_price.raw

    def test_reset_mid_computation(self, unit_request):
        top = TopOrchestrator()
        state = top.step(top.initial_state(), TopInputs(True, unit_request))
        for _ in range(45):
            state = top.step(state, TopInputs())
        assert state.busy
        state = top.step(state, TopInputs(), reset=True)
        assert state == top.initial_state()
        for _ in range(400):
            state = top.step(state, TopInputs())
            assert not state.done
            assert not state.d1d2.pipeline_done
            assert not state.norm.done
            assert not state.combiner.price_valid
        assert to_real(state.option_price) == 0.0
