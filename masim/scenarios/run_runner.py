"""CLI entrypoint: python -m masim.scenarios.run_runner

Usage:
    python -m masim.scenarios.run_runner --ticks 200 --agents 10 --seed 7
    python -m masim.scenarios.run_runner --swarm --retire-on-goal --run-dir storage/runs
"""

from __future__ import annotations

import argparse
import logging
import sys
import uuid
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from masim.config.defaults import default_runner_config
from masim.config.schema import RunnerScenarioConfig
from masim.runner.run_logger import RunLogger
from masim.scenarios.runner import RUNNER, build_runner_scheduler


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Pretrain and run the goal-seeking runner scenario."
    )
    parser.add_argument(
        "--config",
        default=None,
        help="Path to a RunnerScenarioConfig JSON file. Flags below override it.",
    )
    parser.add_argument("--ticks", type=int, default=None, help="Interactive ticks to run.")
    parser.add_argument("--agents", type=int, default=None, help="Population size.")
    parser.add_argument(
        "--pretrain-steps", type=int, default=None, help="Solo pretraining steps."
    )
    parser.add_argument("--seed", type=int, default=None, help="Root seed.")
    parser.add_argument(
        "--swarm", action="store_true", help="Share one Q-table across the population."
    )
    parser.add_argument(
        "--retire-on-goal", action="store_true", help="Retire runners that reach the goal."
    )
    parser.add_argument(
        "--q-table",
        default="trained_runner.bin",
        help="Q-table file used for pretraining and loading.",
    )
    parser.add_argument(
        "--run-dir",
        default=None,
        help="If set, write run artifacts under this directory.",
    )
    parser.add_argument("--progress", action="store_true", help="Show progress bars.")
    parser.add_argument("--log-level", default="WARNING", help="Logging level.")
    return parser.parse_args(argv)


def _load_config(args: argparse.Namespace) -> RunnerScenarioConfig:
    if args.config is None:
        config = default_runner_config()
    else:
        raw = Path(args.config).read_text(encoding="utf-8")
        config = RunnerScenarioConfig.model_validate_json(raw)

    data = config.model_dump()
    if args.ticks is not None:
        data["ticks"] = args.ticks
    if args.agents is not None:
        data["n_agents"] = args.agents
    if args.pretrain_steps is not None:
        data["pretrain_steps"] = args.pretrain_steps
    if args.seed is not None:
        data["simulation"]["seed"] = args.seed
    if args.swarm:
        data["swarm"] = True
    if args.retire_on_goal:
        data["retire_on_goal"] = True
    return RunnerScenarioConfig.model_validate(data)


def main(argv: list[str] | None = None) -> dict[str, Any]:
    args = _parse_args(argv)
    logging.basicConfig(
        level=args.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        config = _load_config(args)
    except (OSError, ValidationError) as exc:
        print(f"ERROR: invalid config: {exc}", file=sys.stderr)
        sys.exit(1)

    run_logger = None
    if args.run_dir:
        run_logger = RunLogger(args.run_dir, f"runner_{uuid.uuid4().hex[:8]}")

    scheduler = build_runner_scheduler(
        config, args.q_table, run_logger=run_logger, show_progress=args.progress
    )

    retired = 0
    for _ in range(config.ticks):
        retired += len(scheduler.take_step())
        if scheduler.agent_count == 0:
            break

    runners = scheduler.agents_of_type(RUNNER)
    summary = {
        "ticks_run": scheduler.tick,
        "active_agents": scheduler.agent_count,
        "retired_agents": retired,
        "swarm": config.swarm,
        "q_table_entries": runners[0].q_table_size() if runners else 0,
    }
    if run_logger is not None:
        run_logger.write_summary(summary)

    print(
        f"Ran {summary['ticks_run']} ticks: {summary['active_agents']} active, "
        f"{summary['retired_agents']} retired, {summary['q_table_entries']} Q entries."
    )
    return summary


if __name__ == "__main__":
    main()
