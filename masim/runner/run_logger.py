"""Run artifact logger for scheduler runs.

Everything for one run lives in ``<base_dir>/<run_id>/``:

  config.json    snapshot of the SimulationConfig the scheduler was built from
  ticks.jsonl    one line per take_step (tick, active_agents, retired, mean_reward)
  events.jsonl   agent_retired / q_table_saved lifecycle events
  summary.json   written once by whoever drives the run

Plain json + pathlib; nothing is buffered, so a crashed run still leaves the
ticks it completed on disk.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterable

from pydantic import BaseModel


def _stamp() -> str:
    return datetime.now(timezone.utc).isoformat()


class RunLogger:
    """Append-only writer for one run directory."""

    def __init__(self, base_dir: str | Path, run_id: str) -> None:
        self.run_id = run_id
        self._run_dir = Path(base_dir) / run_id
        self._run_dir.mkdir(parents=True, exist_ok=True)
        self.ticks_logged = 0
        self.events_logged = 0

    @property
    def run_dir(self) -> Path:
        return self._run_dir

    # ------------------------------------------------------------------
    # One-shot documents
    # ------------------------------------------------------------------

    def write_config(self, config: BaseModel | dict[str, Any]) -> None:
        """Snapshot a config model (or an already-dumped dict) to config.json."""
        if isinstance(config, BaseModel):
            config = config.model_dump(mode="json")
        self._write_json("config.json", config)

    def write_summary(self, summary: dict[str, Any]) -> None:
        """Write summary.json with the tick/event counts folded in.

        An empty summary writes nothing.
        """
        if not summary:
            return
        self._write_json("summary.json", {
            **summary,
            "ticks_logged": self.ticks_logged,
            "events_logged": self.events_logged,
        })

    def _write_json(self, name: str, body: dict[str, Any]) -> None:
        payload = {"written_at": _stamp(), **body}
        (self._run_dir / name).write_text(
            json.dumps(payload, indent=2, default=str), encoding="utf-8"
        )

    # ------------------------------------------------------------------
    # Streams
    # ------------------------------------------------------------------

    def log_tick(self, record: dict[str, Any]) -> None:
        self.ticks_logged += self._append("ticks.jsonl", [record])

    def log_events(self, events: Iterable[dict[str, Any]]) -> None:
        """Append events; an empty batch does not create the file."""
        self.events_logged += self._append("events.jsonl", events)

    def _append(self, name: str, records: Iterable[dict[str, Any]]) -> int:
        lines = [json.dumps(rec, default=str) for rec in records]
        if not lines:
            return 0
        with (self._run_dir / name).open("a", encoding="utf-8") as f:
            f.write("\n".join(lines) + "\n")
        return len(lines)
