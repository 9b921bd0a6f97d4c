"""Base agent interface for tabular Q-learning agents.

Both variants (``LearningAgent`` and ``SwarmAgent``) share every piece of
behaviour defined here: epsilon-greedy action selection, the Q-learning
update, Q-table persistence, and delegation to the scenario transition
function.  They differ only in how they reach their table, which each
variant provides through ``_read_table`` / ``_write_table``.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from contextlib import AbstractContextManager
from pathlib import Path
from typing import Any, Sequence

import numpy as np

from masim.agents.q_table import QTable
from masim.config.schema import HyperParameters
from masim.core.seeding import choose
from masim.core.types import Action, Position, TransitionFn, TransitionOutcome
from masim.state.value import State

logger = logging.getLogger(__name__)


class BaseAgent(ABC):
    """Interface that both agent variants implement."""

    def __init__(
        self,
        agent_id: int,
        agent_type: str,
        state: State,
        transition_fn: TransitionFn,
        *,
        rng: np.random.Generator,
        action_space: Sequence[Action] = (),
        hyperparameters: HyperParameters | None = None,
    ) -> None:
        self._id = agent_id
        self._type = agent_type
        self._state: State = tuple(state)
        self._transition_fn = transition_fn
        self._rng = rng
        self.action_space: tuple[Action, ...] = tuple(action_space)
        self.hyperparameters = hyperparameters or HyperParameters()

    # ------------------------------------------------------------------
    # Identity
    # ------------------------------------------------------------------

    @property
    def unique_id(self) -> int:
        return self._id

    @property
    def agent_type(self) -> str:
        return self._type

    @property
    def learning_rate(self) -> float:
        return self.hyperparameters.learning_rate

    @property
    def discount_factor(self) -> float:
        return self.hyperparameters.discount_factor

    @property
    def exploration_rate(self) -> float:
        return self.hyperparameters.exploration_rate

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def state(self) -> State:
        return self._state

    def set_state(self, state: State) -> None:
        self._state = tuple(state)

    # ------------------------------------------------------------------
    # Table access (variant-specific)
    # ------------------------------------------------------------------

    @abstractmethod
    def _read_table(self) -> AbstractContextManager[QTable]:
        """Context manager yielding the table for reading."""

    @abstractmethod
    def _write_table(self) -> AbstractContextManager[QTable]:
        """Context manager yielding the table with exclusive write access."""

    @abstractmethod
    def save_q_table(self, path: str | Path) -> None:
        """Persist the backing table to ``path``."""

    @abstractmethod
    def load_q_table(self, path: str | Path) -> None:
        """Replace the backing table with the one in ``path``.

        A missing file leaves an empty table; a corrupt one raises
        ``QTableCorruptError``.
        """

    # ------------------------------------------------------------------
    # Q-values
    # ------------------------------------------------------------------

    def get_q_value(self, state: State, action: Action) -> float:
        with self._read_table() as table:
            return table.get(state, action)

    def set_q_value(self, state: State, action: Action, value: float) -> None:
        with self._write_table() as table:
            table.set(state, action, value)

    def q_table_size(self) -> int:
        with self._read_table() as table:
            return len(table)

    # ------------------------------------------------------------------
    # Policy
    # ------------------------------------------------------------------

    def choose_action(self, state: State, actions: Sequence[Action]) -> Action:
        """Epsilon-greedy selection with uniform tie-breaking."""
        if not actions:
            # Should not happen with a well-formed environment.
            logger.debug("Agent %d got no candidates, using full action space", self._id)
            return choose(self._rng, self.action_space)

        with self._read_table() as table:
            if self._rng.random() < self.exploration_rate or table.is_empty():
                return choose(self._rng, actions)
            q_values = table.q_values(state, actions)

        best = max(q_values)
        ties = [a for a, q in zip(actions, q_values) if q == best]
        return choose(self._rng, ties)

    def update(
        self,
        state: State,
        action: Action,
        reward: float,
        next_state: State,
        next_actions: Sequence[Action],
    ) -> float:
        """Q(s,a) <- Q(s,a) + alpha * (reward + gamma * max_a' Q(s',a') - Q(s,a))

        Returns the stored value.
        """
        with self._write_table() as table:
            old_q = table.get(state, action)
            future_q = table.max_q(next_state, next_actions)
            new_q = old_q + self.learning_rate * (
                reward + self.discount_factor * future_q - old_q
            )
            table.set(state, action, new_q)
            return table.get(state, action)

    # ------------------------------------------------------------------
    # Transition
    # ------------------------------------------------------------------

    def step(
        self, env: Any, position: Position, state: State, action: Action
    ) -> TransitionOutcome:
        """Run the scenario transition function and normalise its output."""
        new_position, new_state, reward, done = self._transition_fn(
            self, env, position, state, action
        )
        return TransitionOutcome(
            position=new_position,
            state=tuple(new_state),
            reward=float(reward),
            done=bool(done),
        )

    def __repr__(self) -> str:
        return f"{type(self).__name__}(id={self._id}, type={self._type!r})"
