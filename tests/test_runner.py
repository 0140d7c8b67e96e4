"""Tests for the convenience drivers."""

import math

import numpy as np
import pytest

from fpbs.core.black_scholes import OptionType, put_price
from fpbs.core.fixed_point import FixedPointRangeError
from fpbs.pipeline.runner import SimulationTimeoutError, compute_d1_d2, price_option, run_request
from fpbs.pipeline.types import Outcome


class TestPriceOption:
    def test_put(self):
        result = price_option(105.0, 100.0, 0.5, 0.2, 0.05, OptionType.PUT)
        assert result.outcome is Outcome.SUCCEEDED
        np.testing.assert_allclose(
            result.price, put_price(105.0, [100.0], [0.2], 0.5, 0.05)[0], atol=2e-2
        )

    @pytest.mark.parametrize("bad", [math.nan, math.inf, 1e6])
    def test_unrepresentable_input(self, bad):
        with pytest.raises(FixedPointRangeError):
            price_option(bad, 100.0, 1.0, 0.2, 0.05)


class TestRunRequest:
    def test_trace(self, unit_request):
        trace = []
        result = run_request(unit_request, trace=trace)
        assert len(trace) == result.ticks
        assert [row.tick for row in trace] == list(range(1, result.ticks + 1))
        assert trace[0].top_phase == "wait_norm_done"
        assert trace[-1].top_phase == "wait_start"
        assert trace[-1].option_price == result.option_price.raw
        assert any(row.norm.done for row in trace)
        assert sum(row.d1d2.done for row in trace) == 1

    def test_budget_exceeded(self, unit_request):
        with pytest.raises(SimulationTimeoutError):
            run_request(unit_request, max_ticks=10)

    def test_timeout_is_runtime_error(self, unit_request):
        with pytest.raises(RuntimeError):
            compute_d1_d2(unit_request, max_ticks=5)
