"""Orchestrators and drivers for the fixed-point pricing pipeline."""

from fpbs.pipeline.backends import FixedOutputBackend, UnitBackend
from fpbs.pipeline.d1d2 import D1D2Inputs, D1D2Orchestrator, D1D2Phase, D1D2State
from fpbs.pipeline.runner import (
    SimulationTimeoutError,
    TickTrace,
    compute_d1_d2,
    price_option,
    run_request,
)
from fpbs.pipeline.top import TopInputs, TopOrchestrator, TopPhase, TopState
from fpbs.pipeline.types import (
    OptionType,
    Outcome,
    PipelineRequest,
    PricingResult,
    SubResult,
)

__all__ = [
    "D1D2Inputs",
    "D1D2Orchestrator",
    "D1D2Phase",
    "D1D2State",
    "FixedOutputBackend",
    "OptionType",
    "Outcome",
    "PipelineRequest",
    "PricingResult",
    "SimulationTimeoutError",
    "SubResult",
    "TickTrace",
    "TopInputs",
    "TopOrchestrator",
    "TopPhase",
    "TopState",
    "UnitBackend",
    "compute_d1_d2",
    "price_option",
    "run_request",
]
