"""GridEnvironment — concrete rectangular grid implementation.

Implements the BaseEnvironment contract:
  step(position, agent) -> StepResult(position, done, action, reward)

Besides bounds and actions it holds two scenario-owned stores:

  - ``persistent_elements``: position -> attribute (e.g. a display color)
    for static terrain and markers, read by renderers;
  - ``data``: integer key -> Value, free-form bookkeeping for transition
    functions (visit counts, the current goal, ...).
"""

from __future__ import annotations

import logging
from typing import Any, Mapping, Sequence

import numpy as np

from masim.config.schema import SimulationConfig
from masim.core.base_env import BaseEnvironment
from masim.core.seeding import ensure_rng
from masim.core.types import Action, Position, StepResult
from masim.state.value import Value, to_value

logger = logging.getLogger(__name__)


class GridEnvironment(BaseEnvironment):
    """Width x height grid with a legal action set and scenario stores."""

    def __init__(
        self,
        width: int,
        height: int,
        actions: Sequence[Action],
        *,
        persistent_elements: Mapping[Position, Any] | None = None,
        data: Mapping[int, Any] | None = None,
        rng: np.random.Generator | int | None = None,
    ) -> None:
        if width < 1 or height < 1:
            raise ValueError(f"Grid must be at least 1x1, got {width}x{height}.")
        if not actions:
            raise ValueError("An environment needs at least one legal action.")
        self._width = width
        self._height = height
        self._actions = tuple(int(a) for a in actions)
        self._rng = ensure_rng(rng)
        self._persistent_elements: dict[Position, Any] = dict(persistent_elements or {})
        self.data: dict[int, Value] = {}
        for key, value in (data or {}).items():
            self.set_data(key, value)

    @classmethod
    def from_config(
        cls,
        config: SimulationConfig,
        *,
        persistent_elements: Mapping[Position, Any] | None = None,
        data: Mapping[int, Any] | None = None,
    ) -> GridEnvironment:
        return cls(
            config.grid.width,
            config.grid.height,
            config.actions,
            persistent_elements=persistent_elements,
            data=data,
            rng=config.seed,
        )

    # ------------------------------------------------------------------
    # Bounds
    # ------------------------------------------------------------------

    @property
    def width(self) -> int:
        return self._width

    @property
    def height(self) -> int:
        return self._height

    def valid_position(self, position: Position) -> bool:
        return 0 <= position.x < self._width and 0 <= position.y < self._height

    def random_position(self) -> Position:
        return Position(
            int(self._rng.integers(0, self._width)),
            int(self._rng.integers(0, self._height)),
        )

    # ------------------------------------------------------------------
    # Actions / randomness
    # ------------------------------------------------------------------

    @property
    def actions(self) -> tuple[Action, ...]:
        return self._actions

    @property
    def rng(self) -> np.random.Generator:
        return self._rng

    # ------------------------------------------------------------------
    # Persistent elements
    # ------------------------------------------------------------------

    @property
    def persistent_elements(self) -> dict[Position, Any]:
        return self._persistent_elements

    def update_persistent_element(self, position: Position, attribute: Any) -> None:
        self._persistent_elements[position] = attribute

    def move_persistent_element(self, old: Position, new: Position) -> None:
        """Move the element at ``old`` to ``new``.  No-op if ``old`` is empty."""
        if old in self._persistent_elements:
            self._persistent_elements[new] = self._persistent_elements.pop(old)

    def remove_persistent_element(self, position: Position) -> Any:
        return self._persistent_elements.pop(position, None)

    def set_persistent_elements(self, elements: Mapping[Position, Any]) -> None:
        self._persistent_elements = dict(elements)

    # ------------------------------------------------------------------
    # Auxiliary data
    # ------------------------------------------------------------------

    def get_data(self, key: int, default: Value | None = None) -> Value | None:
        return self.data.get(key, default)

    def set_data(self, key: int, value: Any) -> None:
        self.data[int(key)] = to_value(value)

    # ------------------------------------------------------------------
    # Step
    # ------------------------------------------------------------------

    def step(self, position: Position, agent: Any) -> StepResult:
        state = agent.state
        action = agent.choose_action(state, self.available_actions(position, state))

        outcome = agent.step(self, position, state, action)

        agent.update(
            state,
            action,
            outcome.reward,
            outcome.state,
            self.available_actions(outcome.position, outcome.state),
        )
        agent.set_state(outcome.state)

        logger.debug(
            "agent %d: %s --%d--> %s reward=%.3f done=%s",
            agent.unique_id, position, action, outcome.position, outcome.reward, outcome.done,
        )
        return StepResult(
            position=outcome.position,
            done=outcome.done,
            action=action,
            reward=outcome.reward,
        )
