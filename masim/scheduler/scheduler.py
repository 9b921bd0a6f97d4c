"""Scheduler — owns agent identity, the agent registry, and the control loop.

The registry has two views that must always agree:

  - ``agents``: ordered ``AgentRecord(position, color, agent)`` entries, the
    iteration order for ticks and the source of render frames;
  - ``agents_per_type``: type tag -> agents of that type.

Every registered agent sits in exactly one bucket (its own type tag) exactly
once.  Agents enter both views in ``add_agents`` / ``add_swarming_agents``
and leave both in ``take_step`` when their transition reports ``done``.
Ids come from a scheduler-owned counter and are never reused.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping

from tqdm import tqdm

from masim.agents import Agent, LearningAgent, SharedQTable, SwarmAgent
from masim.config.schema import HyperParameters, SimulationConfig
from masim.core.base_env import BaseEnvironment
from masim.core.errors import RegistryInvariantError
from masim.core.types import ORIGIN, Color, Position, RenderFrame, TransitionFn
from masim.envs.grid.env import GridEnvironment
from masim.runner.run_logger import RunLogger
from masim.state.value import State

logger = logging.getLogger(__name__)

DEFAULT_COLOR: Color = (255, 255, 0)


@dataclass(slots=True)
class AgentRecord:
    """One registry row.  ``position`` is spatial bookkeeping, not RL state."""

    position: Position
    color: Color
    agent: Agent


class Scheduler:
    """Drives a population of Q-learning agents through an environment."""

    def __init__(
        self,
        env: BaseEnvironment,
        *,
        id_base: int = 0,
        hyperparameters: HyperParameters | None = None,
        q_table_dir: str | Path = ".",
        run_logger: RunLogger | None = None,
    ) -> None:
        self.env = env
        self.agents: list[AgentRecord] = []
        self.agents_per_type: dict[str, list[Agent]] = {}
        # Shared tables handed to add_swarming_agents, kept past their members.
        self.swarm_tables: dict[str, SharedQTable] = {}
        self.default_hyperparameters = hyperparameters or HyperParameters()
        self.q_table_dir = Path(q_table_dir)
        self._current_id = id_base
        self._tick = 0
        self._run_logger = run_logger

    @classmethod
    def from_config(
        cls,
        config: SimulationConfig,
        *,
        persistent_elements: Mapping[Position, Any] | None = None,
        data: Mapping[int, Any] | None = None,
        run_logger: RunLogger | None = None,
    ) -> Scheduler:
        env = GridEnvironment.from_config(
            config, persistent_elements=persistent_elements, data=data
        )
        if run_logger is not None:
            run_logger.write_config(config)
        return cls(
            env,
            id_base=config.id_base,
            hyperparameters=config.hyperparameters,
            q_table_dir=config.q_table_dir,
            run_logger=run_logger,
        )

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @property
    def tick(self) -> int:
        """Number of completed ``take_step`` calls."""
        return self._tick

    @property
    def agent_count(self) -> int:
        return len(self.agents)

    def agents_of_type(self, agent_type: str) -> list[Agent]:
        return list(self.agents_per_type.get(agent_type, []))

    def frame(self) -> RenderFrame:
        """Snapshot for renderers: agent (position, color) pairs + terrain."""
        return RenderFrame(
            agents=[(record.position, record.color) for record in self.agents],
            persistent_elements=dict(self.env.persistent_elements),
        )

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    def generate_id(self) -> int:
        self._current_id += 1
        return self._current_id

    def create_agent(
        self,
        agent_type: str,
        state: State,
        transition_fn: TransitionFn,
        *,
        hyperparameters: HyperParameters | None = None,
        q_table_path: str | Path | None = None,
        q_table: SharedQTable | None = None,
    ) -> Agent:
        """Build one agent with a fresh id without registering it.

        Passing ``q_table`` makes a ``SwarmAgent`` on that handle; otherwise a
        ``LearningAgent`` is built, warm-started from ``q_table_path`` if given.
        """
        common = dict(
            rng=self.env.rng,
            action_space=self.env.actions,
            hyperparameters=hyperparameters or self.default_hyperparameters,
        )
        if q_table is not None:
            return SwarmAgent(
                self.generate_id(), agent_type, state, transition_fn,
                q_table=q_table, **common,
            )
        return LearningAgent(
            self.generate_id(), agent_type, state, transition_fn,
            q_table_path=q_table_path, **common,
        )

    def add_agents(
        self,
        n: int,
        *,
        agent_type: str,
        state: State,
        transition_fn: TransitionFn,
        color: Color = DEFAULT_COLOR,
        position: Position | None = None,
        hyperparameters: HyperParameters | None = None,
        q_table_path: str | Path | None = None,
    ) -> list[Agent]:
        """Add ``n`` independent learning agents of ``agent_type``.

        Each starts at ``position`` or, when None, its own random legal cell.
        """
        new_agents = [
            self.create_agent(
                agent_type, state, transition_fn,
                hyperparameters=hyperparameters, q_table_path=q_table_path,
            )
            for _ in range(n)
        ]
        self._register(new_agents, agent_type, color, position)
        return new_agents

    def add_swarming_agents(
        self,
        n: int,
        *,
        agent_type: str,
        state: State,
        transition_fn: TransitionFn,
        q_table: SharedQTable,
        color: Color = DEFAULT_COLOR,
        position: Position | None = None,
        hyperparameters: HyperParameters | None = None,
    ) -> list[Agent]:
        """Add ``n`` swarm agents that all read and write ``q_table``."""
        new_agents = [
            self.create_agent(
                agent_type, state, transition_fn,
                hyperparameters=hyperparameters, q_table=q_table,
            )
            for _ in range(n)
        ]
        self.swarm_tables[agent_type] = q_table
        self._register(new_agents, agent_type, color, position)
        return new_agents

    def _register(
        self,
        new_agents: list[Agent],
        agent_type: str,
        color: Color,
        position: Position | None,
    ) -> None:
        records = [
            AgentRecord(
                position=position if position is not None else self.env.random_position(),
                color=color,
                agent=agent,
            )
            for agent in new_agents
        ]
        self.agents.extend(records)
        self.agents_per_type.setdefault(agent_type, []).extend(new_agents)
        logger.info(
            "Added %d %s agent(s) of type %r (population %d)",
            len(new_agents),
            "swarm" if new_agents and isinstance(new_agents[0], SwarmAgent) else "learning",
            agent_type,
            len(self.agents),
        )

    # ------------------------------------------------------------------
    # Ticks
    # ------------------------------------------------------------------

    def take_step(self) -> list[Agent]:
        """Run one tick over every registered agent.  Returns retired agents."""
        retired: list[Agent] = []
        total_reward = 0.0
        processed = len(self.agents)

        # Reverse order so removals never shift unvisited indices.
        for i in range(len(self.agents) - 1, -1, -1):
            record = self.agents[i]
            result = self.env.step(record.position, record.agent)
            record.position = result.position
            total_reward += result.reward
            if result.done:
                self._retire(i)
                retired.append(record.agent)

        self._tick += 1
        if self._run_logger is not None:
            self._run_logger.log_tick({
                "tick": self._tick,
                "active_agents": len(self.agents),
                "retired": [agent.unique_id for agent in retired],
                "mean_reward": total_reward / processed if processed else 0.0,
            })
            self._run_logger.log_events([
                {
                    "event": "agent_retired",
                    "tick": self._tick,
                    "agent_id": agent.unique_id,
                    "agent_type": agent.agent_type,
                }
                for agent in retired
            ])
        return retired

    def _retire(self, index: int) -> None:
        """Remove the agent at ``index`` from both views, or from neither."""
        agent = self.agents[index].agent
        agent_id, agent_type = agent.unique_id, agent.agent_type

        bucket = self.agents_per_type.get(agent_type)
        if bucket is None:
            raise RegistryInvariantError(
                f"Trying to remove agent {agent_id} from nonexistent type "
                f"bucket {agent_type!r} (known types: {sorted(self.agents_per_type)})"
            )
        slot = next(
            (j for j, other in enumerate(bucket) if other.unique_id == agent_id), None
        )
        if slot is None:
            raise RegistryInvariantError(
                f"Agent {agent_id} is registered but missing from its type bucket "
                f"{agent_type!r}"
            )

        del bucket[slot]
        del self.agents[index]
        logger.info("Agent %d (%s) retired at tick %d", agent_id, agent_type, self._tick + 1)

    # ------------------------------------------------------------------
    # Training
    # ------------------------------------------------------------------

    def train_agents(
        self,
        n_steps: int,
        *,
        output_dir: str | Path | None = None,
        show_progress: bool = False,
    ) -> dict[str, Path]:
        """Run ``n_steps`` ticks ignoring ``done``, then save one table per type.

        Each non-empty type bucket's first agent is saved to
        ``<output_dir>/<agent_type>.bin``.  Returns type -> written path.
        """
        for _ in tqdm(range(n_steps), desc="Training agents", disable=not show_progress):
            for i in range(len(self.agents) - 1, -1, -1):
                record = self.agents[i]
                record.position = self.env.step(record.position, record.agent).position

        out_dir = Path(output_dir) if output_dir is not None else self.q_table_dir
        out_dir.mkdir(parents=True, exist_ok=True)
        saved: dict[str, Path] = {}
        for agent_type, bucket in self.agents_per_type.items():
            if not bucket:
                continue
            path = out_dir / f"{agent_type}.bin"
            bucket[0].save_q_table(path)
            saved[agent_type] = path
            self._log_save(agent_type, path)
        return saved

    def save_q_table_to_file(
        self,
        agent: Agent,
        n_steps: int,
        path: str | Path,
        *,
        show_progress: bool = False,
    ) -> None:
        """Train one agent alone for exactly ``n_steps`` and save its table.

        The agent starts at the origin and is sent back there whenever its
        transition reports ``done``; ``done`` never ends the loop.
        """
        position = ORIGIN
        for _ in tqdm(
            range(n_steps),
            desc=f"Training {agent.agent_type}",
            disable=not show_progress,
        ):
            result = self.env.step(position, agent)
            position = ORIGIN if result.done else result.position

        agent.save_q_table(path)
        self._log_save(agent.agent_type, Path(path))

    def _log_save(self, agent_type: str, path: Path) -> None:
        if self._run_logger is not None:
            self._run_logger.log_events([
                {"event": "q_table_saved", "agent_type": agent_type, "path": str(path)}
            ])

    # ------------------------------------------------------------------
    # Maintenance
    # ------------------------------------------------------------------

    def randomize_positions(self) -> None:
        """Scatter every registered agent to a fresh random legal cell."""
        for record in self.agents:
            record.position = self.env.random_position()

    def validate_registry(self) -> None:
        """Raise ``RegistryInvariantError`` unless both views agree exactly."""
        registered: dict[int, Agent] = {}
        for record in self.agents:
            agent_id = record.agent.unique_id
            if agent_id in registered:
                raise RegistryInvariantError(f"Agent {agent_id} is registered twice")
            registered[agent_id] = record.agent

        bucketed: set[int] = set()
        for agent_type, bucket in self.agents_per_type.items():
            for agent in bucket:
                agent_id = agent.unique_id
                if agent_id in bucketed:
                    raise RegistryInvariantError(
                        f"Agent {agent_id} appears more than once in type buckets"
                    )
                if agent.agent_type != agent_type:
                    raise RegistryInvariantError(
                        f"Agent {agent_id} of type {agent.agent_type!r} sits in "
                        f"bucket {agent_type!r}"
                    )
                if registered.get(agent_id) is not agent:
                    raise RegistryInvariantError(
                        f"Agent {agent_id} ({agent_type!r}) is bucketed but not registered"
                    )
                bucketed.add(agent_id)

        missing = registered.keys() - bucketed
        if missing:
            raise RegistryInvariantError(
                f"Registered agents missing from type buckets: {sorted(missing)}"
            )
