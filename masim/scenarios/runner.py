"""Runner scenario — agents learn to chase a goal cell around the grid.

State: four BOOL values, whether the runner is above / below / left of /
right of the goal.  Actions: UP, DOWN, LEFT, RIGHT.

Rewards:
  - every move costs STEP_PENALTY;
  - getting closer to the goal earns CLOSER_BONUS;
  - reaching it earns GOAL_BONUS and relocates the goal to a random cell;
  - moves off the grid are rejected (the runner stays put) and cost
    OUT_OF_BOUNDS_PENALTY.

The goal lives in the environment's data store under ``GOAL`` as a PAIR and
is mirrored as a persistent element so renderers can draw it.
"""

from __future__ import annotations

import logging
import math
from pathlib import Path
from typing import Sequence

from masim.agents import SharedQTable
from masim.config.schema import RunnerScenarioConfig
from masim.core.types import Action, Color, Position, TransitionFn
from masim.runner.run_logger import RunLogger
from masim.scheduler.scheduler import Scheduler
from masim.state.value import State, ValueKind, make_state

logger = logging.getLogger(__name__)

RUNNER = "runner"
GOAL = 0  # data-store key

GOAL_COLOR: Color = (0, 228, 48)
RUNNER_COLOR: Color = (253, 249, 0)

STEP_PENALTY = -1.0
CLOSER_BONUS = 10.0
GOAL_BONUS = 50.0
OUT_OF_BOUNDS_PENALTY = -5.0

INITIAL_STATE: State = make_state(True, True, True, True)


def goal_state(position: Position, goal: Position) -> State:
    return make_state(
        position.y < goal.y,
        position.y > goal.y,
        position.x < goal.x,
        position.x > goal.x,
    )


def _distance(a: Position, b: Position) -> float:
    return math.hypot(b.x - a.x, b.y - a.y)


def make_runner_transition(
    actions: Sequence[Action] = (0, 1, 2, 3), *, retire_on_goal: bool = False
) -> TransitionFn:
    """Build the runner transition for the given (up, down, left, right) codes."""
    up, down, left, right = actions
    deltas = {up: (0, -1), down: (0, 1), left: (-1, 0), right: (1, 0)}

    def runner_transition(agent, env, position: Position, state: State, action: Action):
        dx, dy = deltas.get(action, (0, 0))
        new_position = position.offset(dx, dy)
        goal = Position(*env.get_data(GOAL).extract(ValueKind.PAIR))

        if not env.valid_position(new_position):
            return position, goal_state(position, goal), OUT_OF_BOUNDS_PENALTY, False

        reward = STEP_PENALTY
        if _distance(new_position, goal) < _distance(position, goal):
            reward += CLOSER_BONUS

        if new_position == goal:
            reward += GOAL_BONUS
            new_goal = env.random_position()
            env.move_persistent_element(goal, new_goal)
            env.set_data(GOAL, new_goal.as_tuple())
            return new_position, goal_state(new_position, new_goal), reward, retire_on_goal

        return new_position, goal_state(new_position, goal), reward, False

    return runner_transition


def place_goal(scheduler: Scheduler, goal: Position) -> None:
    """Reset the goal marker and data entry to ``goal``."""
    scheduler.env.set_persistent_elements({goal: GOAL_COLOR})
    scheduler.env.set_data(GOAL, goal.as_tuple())


def build_runner_scheduler(
    config: RunnerScenarioConfig,
    q_table_path: str | Path,
    *,
    run_logger: RunLogger | None = None,
    show_progress: bool = False,
) -> Scheduler:
    """Pretrain a solo runner into ``q_table_path`` and populate a scheduler.

    The population either loads its own copy of the pretrained table
    (``swarm=False``) or shares a single table loaded from it (``swarm=True``).
    """
    sim = config.simulation
    goal = Position(*config.goal)
    scheduler = Scheduler.from_config(sim, run_logger=run_logger)
    place_goal(scheduler, goal)
    transition = make_runner_transition(sim.actions, retire_on_goal=config.retire_on_goal)

    if config.pretrain_steps:
        trainer = scheduler.create_agent(
            RUNNER,
            INITIAL_STATE,
            make_runner_transition(sim.actions),
            hyperparameters=sim.hyperparameters.model_copy(
                update={"exploration_rate": config.pretrain_exploration_rate}
            ),
            q_table_path=q_table_path,
        )
        logger.info("Pretraining runner %d for %d steps", trainer.unique_id, config.pretrain_steps)
        scheduler.save_q_table_to_file(
            trainer, config.pretrain_steps, q_table_path, show_progress=show_progress
        )
        # Pretraining wanders the goal around; start the population fresh.
        place_goal(scheduler, goal)

    if config.swarm:
        scheduler.add_swarming_agents(
            config.n_agents,
            agent_type=RUNNER,
            state=INITIAL_STATE,
            transition_fn=transition,
            q_table=SharedQTable.from_file(q_table_path),
            color=RUNNER_COLOR,
        )
    else:
        scheduler.add_agents(
            config.n_agents,
            agent_type=RUNNER,
            state=INITIAL_STATE,
            transition_fn=transition,
            color=RUNNER_COLOR,
            q_table_path=q_table_path,
        )
    return scheduler
