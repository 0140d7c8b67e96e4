"""Shared stand-ins for collaborator units."""

from dataclasses import dataclass

import pytest

from fpbs.pipeline.types import PipelineRequest


@dataclass(frozen=True)
class StalledState:
    """Outputs of a unit that accepted work and never answers."""

    busy: bool = True
    done: bool = False
    valid: bool = False
    root: int = 0
    nd1: int = 0
    nd2: int = 0


class StalledUnit:
    """Drop-in for the square-root or normal-CDF unit that never completes."""

    def initial_state(self):
        return StalledState()

    def step(self, state, inputs, reset=False):
        return StalledState()


@pytest.fixture
def stalled_unit():
    return StalledUnit()


@pytest.fixture
def unit_request():
    """S0 = K = T = sigma = r = 1.0."""
    return PipelineRequest.from_reals(1.0, 1.0, 1.0, 1.0, 1.0)
