"""Pipeline configuration.

The Q16.16 format itself is fixed (see ``fpbs.core.fixed_point``); only
timing bounds and the completion policy are configurable.
"""

from __future__ import annotations

import enum
import os
from dataclasses import dataclass
from typing import Mapping


class CompletionPolicy(enum.Enum):
    """How the top-level orchestrator decides the price is ready.

    EXPLICIT_VALID waits for the price combiner's ``price_valid`` pulse.
    SETTLED_NONZERO treats a price register that reads non-zero for two
    consecutive ticks as settled; a legitimately zero price never settles
    and is only released by the stage watchdog.
    """

    EXPLICIT_VALID = "explicit_valid"
    SETTLED_NONZERO = "settled_nonzero"


# Ticks from the d1/d2 watchdog firing to the norm_start handoff: PrepCalc,
# seven arithmetic stages and Done.
D1D2_DRAIN_TICKS = 9

_ENV_FIELDS = {
    "FPBS_WATCHDOG_TICKS": "watchdog_ticks",
    "FPBS_DIVIDER_WATCHDOG_TICKS": "divider_watchdog_ticks",
    "FPBS_STAGE_TIMEOUT_TICKS": "stage_timeout_ticks",
    "FPBS_NORM_CDF_LATENCY": "norm_cdf_latency",
}


@dataclass(frozen=True)
class PipelineConfig:
    """Timing bounds for the pricing pipeline.

    Attributes:
        watchdog_ticks: Ticks the d1/d2 orchestrator waits for divider,
            square-root and log results before substituting placeholders.
        divider_watchdog_ticks: Iteration bound of the divider's Calc
            state. Normal division needs 32 iterations, so the default
            never fires.
        stage_timeout_ticks: Bound on each wait state of the top-level
            orchestrator. The first wait state spans the whole d1/d2
            computation and the normal CDF, so it must exceed
            ``watchdog_ticks + D1D2_DRAIN_TICKS + norm_cdf_latency``.
        norm_cdf_latency: Ticks the reference normal-CDF unit takes.
        completion_policy: See CompletionPolicy.
    """

    watchdog_ticks: int = 200
    divider_watchdog_ticks: int = 48
    stage_timeout_ticks: int = 256
    norm_cdf_latency: int = 3
    completion_policy: CompletionPolicy = CompletionPolicy.EXPLICIT_VALID

    def __post_init__(self) -> None:
        for name in ("watchdog_ticks", "divider_watchdog_ticks", "stage_timeout_ticks"):
            if getattr(self, name) < 1:
                raise ValueError(f"{name} must be >= 1, got {getattr(self, name)}")
        if self.norm_cdf_latency < 0:
            raise ValueError(f"norm_cdf_latency must be >= 0, got {self.norm_cdf_latency}")
        first_stage = self.watchdog_ticks + D1D2_DRAIN_TICKS + self.norm_cdf_latency
        if self.stage_timeout_ticks <= first_stage:
            raise ValueError(
                f"stage_timeout_ticks ({self.stage_timeout_ticks}) must exceed "
                f"watchdog_ticks + {D1D2_DRAIN_TICKS} + norm_cdf_latency ({first_stage})"
            )

    @property
    def max_request_ticks(self) -> int:
        """Upper bound on one request: five top-level wait states."""
        return 5 * self.stage_timeout_ticks + 8

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> PipelineConfig:
        """Build a config from FPBS_* environment variables.

        Unset variables keep their defaults.

        Raises:
            ValueError: If a variable is set to a malformed value.
        """
        env = os.environ if environ is None else environ
        kwargs: dict = {}
        for var, field_name in _ENV_FIELDS.items():
            raw = env.get(var)
            if raw is None or raw.strip() == "":
                continue
            try:
                kwargs[field_name] = int(raw)
            except ValueError:
                raise ValueError(f"{var} must be an integer, got '{raw}'") from None

        policy = env.get("FPBS_COMPLETION_POLICY")
        if policy:
            try:
                kwargs["completion_policy"] = CompletionPolicy(policy.strip().lower())
            except ValueError:
                raise ValueError(
                    f"FPBS_COMPLETION_POLICY must be one of "
                    f"{[p.value for p in CompletionPolicy]}, got '{policy}'"
                ) from None

        return cls(**kwargs)
