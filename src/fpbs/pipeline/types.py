"""Request, sub-result and outcome types shared by the orchestrators."""

from __future__ import annotations

import enum
from dataclasses import dataclass, replace

from fpbs.core.black_scholes import OptionType
from fpbs.core.fixed_point import FixedPoint, from_real


class Outcome(enum.Enum):
    """How a request's numbers were obtained.

    SUCCEEDED: every sub-result came from a real computation.
    TIMED_OUT_WITH_DEFAULTS: a watchdog fired and placeholder values were
        substituted; the numbers are not a correct price.
    FIXED_OUTPUT: the fixed-output backend supplied canned sub-results.
    """

    SUCCEEDED = "succeeded"
    TIMED_OUT_WITH_DEFAULTS = "timed_out_with_defaults"
    FIXED_OUTPUT = "fixed_output"


@dataclass(frozen=True)
class PipelineRequest:
    """The five latched scalar inputs plus the option type.

    All values are raw Q16.16 words.
    """

    spot: int
    strike: int
    time: int
    volatility: int
    rate: int
    option_type: OptionType = OptionType.CALL

    @classmethod
    def from_reals(
        cls,
        spot: float,
        strike: float,
        time: float,
        volatility: float,
        rate: float,
        option_type: OptionType = OptionType.CALL,
    ) -> PipelineRequest:
        """Quantise real inputs.

        Raises:
            FixedPointRangeError: If an input is NaN, infinite or outside
                the Q16.16 range.
        """
        return cls(
            spot=from_real(spot, strict=True),
            strike=from_real(strike, strict=True),
            time=from_real(time, strict=True),
            volatility=from_real(volatility, strict=True),
            rate=from_real(rate, strict=True),
            option_type=option_type,
        )


@dataclass(frozen=True)
class SubResult:
    """One latched sub-result of the d1/d2 orchestrator.

    Attributes:
        value: Raw Q16.16 word.
        valid: Latched for the current request.
        defaulted: Value is a watchdog placeholder, not a computed result.
    """

    value: int = 0
    valid: bool = False
    defaulted: bool = False

    def latch(self, value: int) -> SubResult:
        """Latch a computed value unless one is already held."""
        if self.valid:
            return self
        return replace(self, value=value, valid=True, defaulted=False)

    def default_to(self, value: int) -> SubResult:
        """Force validity with a placeholder unless already latched."""
        if self.valid:
            return self
        return replace(self, value=value, valid=True, defaulted=True)


@dataclass(frozen=True)
class PricingResult:
    """End-to-end result of one request.

    Attributes:
        option_price: Final price register.
        d1: Black-Scholes d1 as computed by the pipeline.
        d2: Black-Scholes d2.
        nd1: N(d1) from the normal-CDF unit.
        nd2: N(d2).
        outcome: See Outcome.
        ticks: Ticks from the start pulse to the done pulse, inclusive.
        defaulted: Names of sub-results replaced by placeholders.
        faults: Sub-unit fault flags observed during the request.
        saturated: Some d1/d2 arithmetic stage saturated.
        timed_out_stage: Top-level wait state released by its watchdog.
    """

    option_price: FixedPoint
    d1: FixedPoint
    d2: FixedPoint
    nd1: FixedPoint
    nd2: FixedPoint
    outcome: Outcome
    ticks: int
    defaulted: frozenset[str] = frozenset()
    faults: frozenset[str] = frozenset()
    saturated: bool = False
    timed_out_stage: str | None = None

    @property
    def price(self) -> float:
        return self.option_price.real

    @property
    def succeeded(self) -> bool:
        return self.outcome is Outcome.SUCCEEDED
