"""Abstract base environment — the environment contract.

Every environment the scheduler drives must implement this interface.

This class enforces:
  1. Bounds       — width/height and valid_position()
  2. Actions      — the legal action set and per-step candidates
  3. Terrain      — persistent elements handed to renderers
  4. Randomness   — one shared generator for positions and agent draws
  5. Step         — step() runs one agent's choose -> transition -> update
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Sequence

import numpy as np

from masim.core.types import Action, Position, StepResult


class BaseEnvironment(ABC):
    """Abstract environment contract.  Scenario-agnostic."""

    # ------------------------------------------------------------------
    # Bounds
    # ------------------------------------------------------------------

    @property
    @abstractmethod
    def width(self) -> int:
        ...

    @property
    @abstractmethod
    def height(self) -> int:
        ...

    @abstractmethod
    def valid_position(self, position: Position) -> bool:
        """True if ``position`` lies on the grid."""
        ...

    @abstractmethod
    def random_position(self) -> Position:
        """Uniformly random legal position."""
        ...

    # ------------------------------------------------------------------
    # Actions
    # ------------------------------------------------------------------

    @property
    @abstractmethod
    def actions(self) -> tuple[Action, ...]:
        """The full legal action set."""
        ...

    def available_actions(self, position: Position, state: Any) -> Sequence[Action]:
        """Candidate actions for an agent at ``position`` in ``state``."""
        return self.actions

    # ------------------------------------------------------------------
    # Terrain
    # ------------------------------------------------------------------

    @property
    @abstractmethod
    def persistent_elements(self) -> dict[Position, Any]:
        """Position -> attribute map of static elements, read by renderers."""
        ...

    # ------------------------------------------------------------------
    # Randomness
    # ------------------------------------------------------------------

    @property
    @abstractmethod
    def rng(self) -> np.random.Generator:
        ...

    # ------------------------------------------------------------------
    # Step
    # ------------------------------------------------------------------

    @abstractmethod
    def step(self, position: Position, agent: Any) -> StepResult:
        """Advance one agent by one transition and return where it ended up."""
        ...
