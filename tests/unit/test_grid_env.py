"""Tests for GridEnvironment.

Covers:
  - bounds and random positions
  - persistent elements and the data store
  - the choose -> transition -> update -> set_state cycle in step()
"""

from __future__ import annotations

import numpy as np
import pytest

from masim.agents import LearningAgent
from masim.config.defaults import default_config
from masim.config.schema import HyperParameters
from masim.core.base_env import BaseEnvironment
from masim.core.types import Position, StepResult
from masim.envs.grid import GridEnvironment
from masim.state import Value, ValueKind, make_state

ACTIONS = (0, 1)
S0 = make_state(0)
S1 = make_state(1)


def _env(width: int = 5, height: int = 4, seed: int = 0, **kwargs) -> GridEnvironment:
    return GridEnvironment(width, height, ACTIONS, rng=seed, **kwargs)


# ---------------------------------------------------------------------------
# Construction and bounds
# ---------------------------------------------------------------------------

class TestBounds:
    def test_valid_position(self) -> None:
        env = _env()
        assert env.valid_position(Position(0, 0))
        assert env.valid_position(Position(4, 3))
        assert not env.valid_position(Position(5, 0))
        assert not env.valid_position(Position(0, 4))
        assert not env.valid_position(Position(-1, 2))

    def test_random_positions_are_valid(self) -> None:
        env = _env()
        positions = [env.random_position() for _ in range(500)]
        assert all(env.valid_position(p) for p in positions)
        assert len(set(positions)) > 10

    def test_one_by_one_grid(self) -> None:
        env = _env(1, 1)
        assert env.random_position() == Position(0, 0)

    @pytest.mark.parametrize("width,height", [(0, 3), (3, 0)])
    def test_empty_grid_rejected(self, width: int, height: int) -> None:
        with pytest.raises(ValueError):
            GridEnvironment(width, height, ACTIONS)

    def test_no_actions_rejected(self) -> None:
        with pytest.raises(ValueError):
            GridEnvironment(3, 3, [])

    def test_same_seed_same_positions(self) -> None:
        a, b = _env(seed=11), _env(seed=11)
        assert [a.random_position() for _ in range(20)] == [
            b.random_position() for _ in range(20)
        ]

    def test_accepts_existing_generator(self) -> None:
        rng = np.random.default_rng(3)
        env = GridEnvironment(3, 3, ACTIONS, rng=rng)
        assert env.rng is rng

    def test_from_config(self) -> None:
        env = GridEnvironment.from_config(default_config(seed=1))
        assert (env.width, env.height) == (16, 16)
        assert env.actions == (0, 1, 2, 3)


# ---------------------------------------------------------------------------
# Scenario stores
# ---------------------------------------------------------------------------

class TestStores:
    def test_persistent_elements(self) -> None:
        env = _env(persistent_elements={Position(1, 1): "wall"})
        env.update_persistent_element(Position(2, 2), "goal")
        env.move_persistent_element(Position(2, 2), Position(3, 3))
        assert env.persistent_elements == {Position(1, 1): "wall", Position(3, 3): "goal"}
        assert env.remove_persistent_element(Position(1, 1)) == "wall"
        assert env.remove_persistent_element(Position(1, 1)) is None

    def test_move_missing_element_is_noop(self) -> None:
        env = _env()
        env.move_persistent_element(Position(0, 0), Position(1, 1))
        assert env.persistent_elements == {}

    def test_persistent_elements_is_part_of_the_contract(self) -> None:
        class NoTerrain(BaseEnvironment):
            width = height = 1
            actions = ACTIONS
            rng = np.random.default_rng(0)

            def valid_position(self, position):
                return position == Position(0, 0)

            def random_position(self):
                return Position(0, 0)

            def step(self, position, agent):
                raise NotImplementedError

        with pytest.raises(TypeError, match="persistent_elements"):
            NoTerrain()

    def test_persistent_elements_reflects_replacement(self) -> None:
        env = _env(persistent_elements={Position(1, 1): "wall"})
        env.set_persistent_elements({Position(0, 0): "goal"})
        assert env.persistent_elements == {Position(0, 0): "goal"}

    def test_data_store_converts_to_values(self) -> None:
        env = _env(data={0: (2, 3)})
        assert env.get_data(0).kind is ValueKind.PAIR
        assert env.get_data(0).extract(ValueKind.PAIR) == (2, 3)
        env.set_data(1, Value.u32(4))
        assert env.get_data(1) == Value.u32(4)
        assert env.get_data(9) is None


# ---------------------------------------------------------------------------
# Step
# ---------------------------------------------------------------------------

class TestStep:
    def _agent(self, env: GridEnvironment, transition) -> LearningAgent:
        return LearningAgent(
            1, "walker", S0, transition,
            rng=env.rng,
            action_space=env.actions,
            hyperparameters=HyperParameters(exploration_rate=0.0),
        )

    def test_step_runs_full_cycle(self) -> None:
        def transition(agent, env, position, state, action):
            return position.offset(1, 0), S1, 5.0, False

        env = _env()
        agent = self._agent(env, transition)
        agent.set_q_value(S1, 0, 10.0)
        agent.set_q_value(S0, 1, 1.0)

        result = env.step(Position(0, 0), agent)

        assert result == StepResult(position=Position(1, 0), done=False, action=1, reward=5.0)
        assert agent.state == S1
        # 1.0 + 0.1 * (5.0 + 0.9 * 10.0 - 1.0)
        assert agent.get_q_value(S0, 1) == pytest.approx(2.3)

    def test_done_is_reported_not_acted_on(self) -> None:
        def transition(agent, env, position, state, action):
            return position, state, -1.0, True

        env = _env()
        agent = self._agent(env, transition)
        result = env.step(Position(2, 2), agent)
        assert result.done is True
        assert result.position == Position(2, 2)

    def test_transition_can_use_environment(self) -> None:
        def transition(agent, env, position, state, action):
            count = env.get_data(0).as_i32()
            env.set_data(0, count + 1)
            return position, state, 0.0, False

        env = _env(data={0: 0})
        agent = self._agent(env, transition)
        for _ in range(3):
            env.step(Position(0, 0), agent)
        assert env.get_data(0) == Value.i32(3)

    def test_restricted_actions_are_respected(self) -> None:
        class OnlyZero(GridEnvironment):
            def available_actions(self, position, state):
                return (0,)

        chosen = []

        def transition(agent, env, position, state, action):
            chosen.append(action)
            return position, state, 0.0, False

        env = OnlyZero(3, 3, ACTIONS, rng=0)
        agent = self._agent(env, transition)
        agent.set_q_value(S0, 1, 100.0)
        for _ in range(10):
            env.step(Position(0, 0), agent)
        assert chosen == [0] * 10
