"""Default configurations.

Provides sensible baselines for quick experiments.
All values are explicit — no hidden magic.
"""

from masim.config.schema import (
    GridConfig,
    HyperParameters,
    RunnerScenarioConfig,
    SimulationConfig,
)

# UP, DOWN, LEFT, RIGHT
CARDINAL_ACTIONS = [0, 1, 2, 3]


def default_config(seed: int = 42) -> SimulationConfig:
    """Return a complete, valid 16x16 grid config with four cardinal moves."""
    return SimulationConfig(
        seed=seed,
        grid=GridConfig(width=16, height=16),
        actions=list(CARDINAL_ACTIONS),
        id_base=0,
        hyperparameters=HyperParameters(
            learning_rate=0.1,
            discount_factor=0.9,
            exploration_rate=0.01,
        ),
        q_table_dir=".",
    )


def default_runner_config(seed: int = 42) -> RunnerScenarioConfig:
    """Return the runner scenario as it ships: ten runners chasing (8, 8)."""
    return RunnerScenarioConfig(
        simulation=default_config(seed),
        n_agents=10,
        pretrain_steps=1000,
        pretrain_exploration_rate=0.4,
        ticks=200,
        swarm=False,
        retire_on_goal=False,
        goal=(8, 8),
    )
