"""Tick-synchronous Q16.16 fixed-point Black-Scholes pipeline."""

from fpbs.config import CompletionPolicy, PipelineConfig
from fpbs.core.fixed_point import FixedPoint, FixedPointRangeError
from fpbs.observability import setup_logging
from fpbs.pipeline import (
    OptionType,
    Outcome,
    PipelineRequest,
    PricingResult,
    SimulationTimeoutError,
    compute_d1_d2,
    price_option,
    run_request,
)

__all__ = [
    "CompletionPolicy",
    "FixedPoint",
    "FixedPointRangeError",
    "OptionType",
    "Outcome",
    "PipelineConfig",
    "PipelineRequest",
    "PricingResult",
    "SimulationTimeoutError",
    "compute_d1_d2",
    "price_option",
    "run_request",
    "setup_logging",
]
