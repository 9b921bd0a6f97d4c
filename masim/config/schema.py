"""Configuration schema — single source of truth for simulation settings.

These Pydantic models describe the grid, the legal action set, the learning
hyperparameters and the example runner scenario.  The engine and the CLI
import them directly; no duplication.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


# ---------------------------------------------------------------------------
# Section 1: Learning hyperparameters
# ---------------------------------------------------------------------------

class HyperParameters(BaseModel):
    """Tabular Q-learning knobs shared by both agent variants."""

    model_config = ConfigDict(frozen=True)

    learning_rate: float = Field(
        default=0.1, gt=0.0, le=1.0,
        description="alpha: step size of each Q-value update.",
    )
    discount_factor: float = Field(
        default=0.9, ge=0.0, le=1.0,
        description="gamma: weight of the best estimated future value.",
    )
    exploration_rate: float = Field(
        default=0.2, ge=0.0, le=1.0,
        description="epsilon: probability of picking a random candidate action.",
    )


# ---------------------------------------------------------------------------
# Section 2: Grid
# ---------------------------------------------------------------------------

class GridConfig(BaseModel):
    """Bounds of the 2D grid agents move on."""

    width: int = Field(ge=1, le=10_000, description="Number of columns (x).")
    height: int = Field(ge=1, le=10_000, description="Number of rows (y).")


# ---------------------------------------------------------------------------
# Top-level simulation config
# ---------------------------------------------------------------------------

class SimulationConfig(BaseModel):
    """Everything needed to build an environment + scheduler pair."""

    seed: int | None = Field(
        default=None, ge=0,
        description="Root seed for the shared generator. None = non-reproducible.",
    )
    grid: GridConfig
    actions: list[int] = Field(
        min_length=1,
        description="Legal action codes.",
    )
    id_base: int = Field(
        default=0, ge=0,
        description="Agent ids start right after this value.",
    )
    hyperparameters: HyperParameters = HyperParameters()
    q_table_dir: str = Field(
        default=".",
        description="Directory where train_agents writes <type>.bin files.",
    )

    @field_validator("actions")
    @classmethod
    def actions_unique_and_non_negative(cls, actions: list[int]) -> list[int]:
        if any(a < 0 for a in actions):
            raise ValueError(f"Action codes must be non-negative, got {actions}.")
        if len(set(actions)) != len(actions):
            raise ValueError(f"Action codes must be unique, got {actions}.")
        return actions


# ---------------------------------------------------------------------------
# Example scenario
# ---------------------------------------------------------------------------

class RunnerScenarioConfig(BaseModel):
    """Settings for the goal-seeking runner scenario."""

    simulation: SimulationConfig
    n_agents: int = Field(default=10, ge=1, le=10_000)
    pretrain_steps: int = Field(
        default=1000, ge=0,
        description="Solo pretraining steps before the population is added.",
    )
    pretrain_exploration_rate: float = Field(default=0.4, ge=0.0, le=1.0)
    ticks: int = Field(default=200, ge=0, description="Interactive ticks to run.")
    swarm: bool = Field(
        default=False,
        description="Share one Q-table across the population instead of copies.",
    )
    retire_on_goal: bool = Field(
        default=False,
        description="Report done when a runner reaches the goal.",
    )
    goal: tuple[int, int] = (8, 8)

    @model_validator(mode="after")
    def goal_on_grid(self) -> RunnerScenarioConfig:
        gx, gy = self.goal
        grid = self.simulation.grid
        if not (0 <= gx < grid.width and 0 <= gy < grid.height):
            raise ValueError(
                f"goal {self.goal} must lie on the {grid.width}x{grid.height} grid."
            )
        return self

    @model_validator(mode="after")
    def four_actions(self) -> RunnerScenarioConfig:
        if len(self.simulation.actions) != 4:
            raise ValueError(
                "The runner scenario needs exactly 4 actions (up, down, left, right), "
                f"got {len(self.simulation.actions)}."
            )
        return self
