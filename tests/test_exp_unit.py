"""Tests for the Taylor-series exponential unit and its multiplier."""

import math

import numpy as np

from fpbs.core.fixed_point import ONE, from_real, fx_mul, to_real
from fpbs.units.exp import COEFFICIENTS, ExpInputs, ExpPhase, ExpUnit
from fpbs.units.multiplier import MultiplierInputs, PipelinedMultiplier


def run_exp(x, unit=None, max_ticks=40):
    """One start pulse, then tick until idle. Returns every state."""
    unit = unit or ExpUnit()
    states = [unit.step(unit.initial_state(), ExpInputs(start=True, x=x))]
    while states[-1].phase is not ExpPhase.IDLE:
        if len(states) >= max_ticks:
            raise AssertionError("exp unit did not return to idle")
        states.append(unit.step(states[-1], ExpInputs(x=x)))
    return states


def exp_result(x):
    return next(s for s in run_exp(x) if s.done).result


class TestMultiplier:
    def test_one_tick_latency_and_tag(self):
        mul = PipelinedMultiplier()
        state = mul.step(mul.initial_state(), MultiplierInputs(True, 3 * ONE, ONE // 2, tag=5))
        assert state.valid
        assert state.product == fx_mul(3 * ONE, ONE // 2)
        assert state.tag == 5
        state = mul.step(state, MultiplierInputs())
        assert not state.valid


class TestAccuracy:
    def test_zero(self):
        assert exp_result(0) == ONE

    def test_coefficients(self):
        assert COEFFICIENTS[0] == ONE
        assert COEFFICIENTS[1] == -ONE
        assert COEFFICIENTS[2] == ONE // 2

    def test_grid(self):
        for x in np.linspace(-1.0, 1.25, 19):
            raw = from_real(x)
            got = to_real(exp_result(raw))
            assert abs(got - math.exp(-to_real(raw))) < 1e-3, x

    def test_discount_factors(self):
        for rate, time in [(0.05, 0.5), (0.03, 2.0), (1.0, 1.0)]:
            got = to_real(exp_result(fx_mul(from_real(rate), from_real(time))))
            np.testing.assert_allclose(got, math.exp(-rate * time), atol=1e-3)


class TestHandshake:
    def test_done_one_tick_valid_two_ticks(self):
        states = run_exp(from_real(0.5))
        assert sum(s.done for s in states) == 1
        assert sum(s.valid for s in states) == 2
        done_at = next(i for i, s in enumerate(states) if s.done)
        assert states[done_at].valid
        assert states[done_at + 1].valid
        assert states[done_at + 1].result == states[done_at].result

    def test_start_is_edge_triggered(self):
        """A start level held high launches a single computation."""
        unit = ExpUnit()
        state = unit.initial_state()
        done_count = 0
        for _ in range(60):
            state = unit.step(state, ExpInputs(start=True, x=ONE))
            done_count += state.done
        assert done_count == 1
        assert state.phase is ExpPhase.IDLE

    def test_relaunch(self):
        unit = ExpUnit()
        first = run_exp(from_real(0.25), unit)[-1]
        state = unit.step(first, ExpInputs(start=True, x=ONE))
        while not state.done:
            state = unit.step(state, ExpInputs(x=ONE))
        np.testing.assert_allclose(to_real(state.result), math.exp(-1.0), atol=1e-3)

    def test_reset(self):
        unit = ExpUnit()
        state = unit.step(unit.initial_state(), ExpInputs(True, ONE))
        for _ in range(5):
            state = unit.step(state, ExpInputs())
        state = unit.step(state, ExpInputs(), reset=True)
        assert state == unit.initial_state()
        for _ in range(30):
            state = unit.step(state, ExpInputs())
            assert not state.done
            assert not state.valid
