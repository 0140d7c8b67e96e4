"""Start/busy/done/valid handshake shared by every computational unit.

A unit is a stateless machine object exposing ``initial_state()`` and
``step(state, inputs, reset=False)``. Its state is a frozen dataclass
carrying the registered outputs; the caller owns that value and feeds
the next tick's inputs from it.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Protocol


def rising_edge(prev: bool, current: bool) -> bool:
    """True on the tick a level goes from low to high."""
    return current and not prev


@dataclass(frozen=True)
class UnitHandshake:
    """Snapshot of a unit's handshake outputs for one tick."""

    busy: bool
    done: bool
    valid: bool

    @classmethod
    def of(cls, state: Any) -> UnitHandshake:
        """Read the handshake fields from any unit state.

        Units without a separate ``done`` line report ``valid`` as done.
        """
        valid = bool(getattr(state, "valid", False))
        return cls(
            busy=bool(state.busy),
            done=bool(getattr(state, "done", valid)),
            valid=valid,
        )


class TickUnit(Protocol):
    """Structural type of an injectable unit."""

    def initial_state(self) -> Any: ...

    def step(self, state: Any, inputs: Any, reset: bool = False) -> Any: ...
