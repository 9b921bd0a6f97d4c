"""Swarm agent — shares one Q-table with every member of its cohort.

All members hold the same ``SharedQTable`` handle, so each member learns from
the experience of the others.  Every read and write goes through the
handle's lock.
"""

from __future__ import annotations

from pathlib import Path
from typing import ContextManager

from masim.agents.base import BaseAgent
from masim.agents.q_table import QTable, SharedQTable


class SwarmAgent(BaseAgent):
    """Agent whose table is a shared, lock-gated handle."""

    def __init__(self, *args, q_table: SharedQTable, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self._shared = q_table

    @property
    def shared_table(self) -> SharedQTable:
        return self._shared

    def _read_table(self) -> ContextManager[QTable]:
        return self._shared.access()

    def _write_table(self) -> ContextManager[QTable]:
        return self._shared.access()

    def save_q_table(self, path: str | Path) -> None:
        self._shared.save(path)

    def load_q_table(self, path: str | Path) -> None:
        # Loads in place so the whole cohort sees the new entries.
        self._shared.load(path)
