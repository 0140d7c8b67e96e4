"""Tick-synchronous computational units.

DividerUnit, LogUnit and ExpUnit are the core arithmetic units. The
square-root, normal-CDF and price-combiner units are reference models of
the collaborators the orchestrators drive; only their handshake is
relied upon.
"""

from fpbs.units.divider import DividerInputs, DividerPhase, DividerState, DividerUnit
from fpbs.units.exp import ExpInputs, ExpPhase, ExpState, ExpUnit
from fpbs.units.log import LogInputs, LogPhase, LogState, LogUnit
from fpbs.units.multiplier import MultiplierInputs, MultiplierState, PipelinedMultiplier
from fpbs.units.normal_cdf import NormalCdfInputs, NormalCdfState, NormalCdfUnit
from fpbs.units.price_combiner import (
    PriceCombinerInputs,
    PriceCombinerState,
    PriceCombinerUnit,
)
from fpbs.units.sqrt import SqrtInputs, SqrtPhase, SqrtState, SqrtUnit

__all__ = [
    "DividerInputs",
    "DividerPhase",
    "DividerState",
    "DividerUnit",
    "ExpInputs",
    "ExpPhase",
    "ExpState",
    "ExpUnit",
    "LogInputs",
    "LogPhase",
    "LogState",
    "LogUnit",
    "MultiplierInputs",
    "MultiplierState",
    "NormalCdfInputs",
    "NormalCdfState",
    "NormalCdfUnit",
    "PipelinedMultiplier",
    "PriceCombinerInputs",
    "PriceCombinerState",
    "PriceCombinerUnit",
    "SqrtInputs",
    "SqrtPhase",
    "SqrtState",
    "SqrtUnit",
]
