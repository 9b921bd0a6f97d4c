"""Independent learning agent — owns its Q-table outright."""

from __future__ import annotations

from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

from masim.agents.base import BaseAgent
from masim.agents.q_table import QTable, load_q_table, save_q_table


class LearningAgent(BaseAgent):
    """Agent with an exclusively owned table that dies with the agent.

    Pass ``q_table_path`` to warm-start from a file; a missing file is a cold
    start.
    """

    def __init__(self, *args, q_table_path: str | Path | None = None, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self._q_table = QTable()
        if q_table_path is not None:
            self.load_q_table(q_table_path)

    @contextmanager
    def _read_table(self) -> Iterator[QTable]:
        yield self._q_table

    _write_table = _read_table

    def save_q_table(self, path: str | Path) -> None:
        save_q_table(self._q_table, path)

    def load_q_table(self, path: str | Path) -> None:
        self._q_table = load_q_table(path)
