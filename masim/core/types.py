"""Framework-level types used across the engine.

These are the shared vocabulary of the simulation: grid positions, display
colors, action codes, and the shape of what a transition function returns.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Callable, NamedTuple

if TYPE_CHECKING:
    from masim.state.value import State


# ---------------------------------------------------------------------------
# Grid
# ---------------------------------------------------------------------------

@dataclass(frozen=True, slots=True)
class Position:
    """Integer grid coordinate.  Spatial bookkeeping only, never RL state."""

    x: int
    y: int

    def offset(self, dx: int, dy: int) -> Position:
        return Position(self.x + dx, self.y + dy)

    def as_tuple(self) -> tuple[int, int]:
        return (self.x, self.y)


ORIGIN = Position(0, 0)

Color = tuple[int, int, int]  # RGB, consumed only by renderers


# ---------------------------------------------------------------------------
# Actions and transitions
# ---------------------------------------------------------------------------

Action = int  # non-negative action code
Reward = float
Done = bool


class TransitionOutcome(NamedTuple):
    """Normalised return value of a scenario transition function."""

    position: Position
    state: State
    reward: Reward
    done: Done


# (agent, environment, position, state, action) -> (position, state, reward, done)
TransitionFn = Callable[[Any, Any, Position, "State", Action], tuple]


@dataclass(frozen=True, slots=True)
class StepResult:
    """Outcome of one agent's choose -> transition -> update cycle."""

    position: Position
    done: Done
    action: Action
    reward: Reward


# ---------------------------------------------------------------------------
# Rendering boundary
# ---------------------------------------------------------------------------

@dataclass(frozen=True, slots=True)
class RenderFrame:
    """Per-tick snapshot handed to renderers.  Renderers must not mutate it."""

    agents: list[tuple[Position, Color]]
    persistent_elements: dict[Position, Any] = field(default_factory=dict)
