"""Unit tests for the Q-learning agent variants."""

from __future__ import annotations

from collections import Counter
from pathlib import Path

import numpy as np
import pytest

from masim.agents import (
    AGENT_VARIANTS,
    LearningAgent,
    SharedQTable,
    SwarmAgent,
)
from masim.agents.base import BaseAgent
from masim.config.schema import HyperParameters
from masim.core.errors import QTableCorruptError
from masim.core.types import Position, TransitionOutcome
from masim.state import make_state


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

SEED = 42
ACTIONS = (0, 1, 2, 3)

S0 = make_state(True, False)
S1 = make_state(False, False)


def _stay(agent, env, position, state, action):
    return position, state, 0.0, False


def _make_agent(
    cls: type[BaseAgent],
    *,
    exploration_rate: float = 0.0,
    seed: int = SEED,
    shared: SharedQTable | None = None,
    transition_fn=_stay,
    agent_id: int = 1,
) -> BaseAgent:
    kwargs = dict(
        rng=np.random.default_rng(seed),
        action_space=ACTIONS,
        hyperparameters=HyperParameters(
            learning_rate=0.1, discount_factor=0.9, exploration_rate=exploration_rate
        ),
    )
    if cls is SwarmAgent:
        kwargs["q_table"] = shared if shared is not None else SharedQTable()
    return cls(agent_id, "walker", S0, transition_fn, **kwargs)


VARIANTS = pytest.mark.parametrize(
    "cls", list(AGENT_VARIANTS.values()), ids=list(AGENT_VARIANTS)
)


# ---------------------------------------------------------------------------
# Action selection
# ---------------------------------------------------------------------------

@VARIANTS
class TestChooseAction:
    def test_unique_maximum_is_always_picked(self, cls) -> None:
        agent = _make_agent(cls)
        agent.set_q_value(S0, 0, 1.0)
        agent.set_q_value(S0, 2, 5.0)
        agent.set_q_value(S0, 3, -1.0)
        for _ in range(50):
            assert agent.choose_action(S0, ACTIONS) == 2

    def test_ties_are_broken_uniformly(self, cls) -> None:
        agent = _make_agent(cls)
        agent.set_q_value(S0, 0, 5.0)
        agent.set_q_value(S0, 2, 5.0)
        agent.set_q_value(S0, 1, 1.0)
        picks = Counter(agent.choose_action(S0, ACTIONS) for _ in range(400))
        assert set(picks) == {0, 2}
        assert min(picks.values()) > 100

    def test_missing_entries_count_as_zero(self, cls) -> None:
        agent = _make_agent(cls)
        agent.set_q_value(S0, 0, -1.0)
        picks = {agent.choose_action(S0, ACTIONS) for _ in range(200)}
        assert picks == {1, 2, 3}

    def test_full_exploration_returns_every_candidate(self, cls) -> None:
        agent = _make_agent(cls, exploration_rate=1.0)
        agent.set_q_value(S0, 0, 100.0)
        picks = Counter(agent.choose_action(S0, (0, 1)) for _ in range(1000))
        assert picks[0] > 0 and picks[1] > 0

    def test_empty_table_explores(self, cls) -> None:
        agent = _make_agent(cls, exploration_rate=0.0)
        picks = Counter(agent.choose_action(S0, (0, 1)) for _ in range(1000))
        assert picks[0] > 0 and picks[1] > 0

    def test_choice_stays_within_candidates(self, cls) -> None:
        agent = _make_agent(cls)
        agent.set_q_value(S0, 2, 50.0)
        agent.set_q_value(S0, 3, 1.0)
        for _ in range(50):
            assert agent.choose_action(S0, (1, 3)) == 3

    def test_no_candidates_falls_back_to_action_space(self, cls) -> None:
        agent = _make_agent(cls)
        picks = {agent.choose_action(S0, ()) for _ in range(200)}
        assert picks <= set(ACTIONS)
        assert len(picks) > 1

    def test_same_seed_same_choices(self, cls) -> None:
        a = _make_agent(cls, exploration_rate=0.5, seed=7)
        b = _make_agent(cls, exploration_rate=0.5, seed=7)
        assert [a.choose_action(S0, ACTIONS) for _ in range(30)] == [
            b.choose_action(S0, ACTIONS) for _ in range(30)
        ]


# ---------------------------------------------------------------------------
# Update rule
# ---------------------------------------------------------------------------

@VARIANTS
class TestUpdate:
    def test_worked_example(self, cls) -> None:
        agent = _make_agent(cls)
        agent.set_q_value(S1, 1, 10.0)
        new_q = agent.update(S0, 0, 5.0, S1, ACTIONS)
        assert new_q == pytest.approx(1.4)
        assert agent.get_q_value(S0, 0) == pytest.approx(1.4)

    def test_no_next_actions_means_no_future_value(self, cls) -> None:
        agent = _make_agent(cls)
        agent.set_q_value(S1, 1, 10.0)
        assert agent.update(S0, 0, 5.0, S1, ()) == pytest.approx(0.5)

    def test_repeated_updates_converge_to_reward(self, cls) -> None:
        agent = _make_agent(cls)
        for _ in range(300):
            agent.update(S0, 0, 2.0, S1, ())
        assert agent.get_q_value(S0, 0) == pytest.approx(2.0, abs=1e-3)

    def test_update_creates_entry(self, cls) -> None:
        agent = _make_agent(cls)
        assert agent.q_table_size() == 0
        agent.update(S0, 3, -1.0, S1, ACTIONS)
        assert agent.q_table_size() == 1


# ---------------------------------------------------------------------------
# Transition delegation
# ---------------------------------------------------------------------------

@VARIANTS
class TestStep:
    def test_outcome_is_normalised(self, cls) -> None:
        seen = []

        def transition(agent, env, position, state, action):
            seen.append((agent, env, position, state, action))
            return position.offset(1, 0), [True, True], 3, 1

        agent = _make_agent(cls, transition_fn=transition)
        outcome = agent.step("env", Position(2, 2), S0, 1)

        assert seen == [(agent, "env", Position(2, 2), S0, 1)]
        assert isinstance(outcome, TransitionOutcome)
        assert outcome.position == Position(3, 2)
        assert outcome.state == (True, True)
        assert isinstance(outcome.reward, float)
        assert outcome.done is True

    def test_identity(self, cls) -> None:
        agent = _make_agent(cls, agent_id=12)
        assert agent.unique_id == 12
        assert agent.agent_type == "walker"
        assert agent.state == S0
        agent.set_state(S1)
        assert agent.state == S1


# ---------------------------------------------------------------------------
# Table ownership
# ---------------------------------------------------------------------------

class TestLearningAgentTable:
    def test_tables_are_independent(self) -> None:
        a = _make_agent(LearningAgent, agent_id=1)
        b = _make_agent(LearningAgent, agent_id=2)
        a.set_q_value(S0, 0, 3.0)
        assert b.get_q_value(S0, 0) == 0.0

    def test_warm_start_from_file(self, tmp_path: Path) -> None:
        path = tmp_path / "walker.bin"
        trained = _make_agent(LearningAgent)
        trained.set_q_value(S0, 1, 2.5)
        trained.save_q_table(path)

        fresh = LearningAgent(
            2, "walker", S0, _stay,
            rng=np.random.default_rng(SEED), q_table_path=path,
        )
        assert fresh.get_q_value(S0, 1) == 2.5

    def test_missing_file_is_cold_start(self, tmp_path: Path) -> None:
        agent = LearningAgent(
            1, "walker", S0, _stay,
            rng=np.random.default_rng(SEED), q_table_path=tmp_path / "none.bin",
        )
        assert agent.q_table_size() == 0

    def test_corrupt_file_raises(self, tmp_path: Path) -> None:
        path = tmp_path / "bad.bin"
        path.write_bytes(b"garbage")
        with pytest.raises(QTableCorruptError):
            LearningAgent(
                1, "walker", S0, _stay,
                rng=np.random.default_rng(SEED), q_table_path=path,
            )


class TestSwarmAgentTable:
    def test_members_share_learning(self) -> None:
        shared = SharedQTable()
        a = _make_agent(SwarmAgent, shared=shared, agent_id=1)
        b = _make_agent(SwarmAgent, shared=shared, agent_id=2)

        a.update(S0, 0, 5.0, S1, ())
        assert b.get_q_value(S0, 0) == pytest.approx(0.5)
        assert a.shared_table is b.shared_table

    def test_separate_cohorts_do_not_share(self) -> None:
        a = _make_agent(SwarmAgent, shared=SharedQTable())
        b = _make_agent(SwarmAgent, shared=SharedQTable())
        a.set_q_value(S0, 0, 1.0)
        assert b.get_q_value(S0, 0) == 0.0

    def test_load_updates_whole_cohort(self, tmp_path: Path) -> None:
        path = tmp_path / "swarm.bin"
        source = _make_agent(SwarmAgent)
        source.set_q_value(S1, 2, 4.0)
        source.save_q_table(path)

        shared = SharedQTable()
        a = _make_agent(SwarmAgent, shared=shared, agent_id=1)
        b = _make_agent(SwarmAgent, shared=shared, agent_id=2)
        a.load_q_table(path)
        assert b.get_q_value(S1, 2) == 4.0
