"""Q-tables: the (state, action) -> value mapping, its shared handle, and files.

``QTable`` is a plain mapping where a missing key always reads as 0.0.
``SharedQTable`` wraps one QTable behind a re-entrant lock so every member of
a swarm cohort reads and writes through a single exclusive-access gate.

On disk a table is a pickle stream containing only builtins::

    {"format": "masim.qtable", "version": 1,
     "entries": [(encoded_state, action, value), ...]}

States are encoded with ``masim.state.codec``.  Loading uses an unpickler that
refuses every global lookup, so a file cannot smuggle in executable objects.
"""

from __future__ import annotations

import io
import logging
import pickle
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, NamedTuple, Sequence

import numpy as np

from masim.core.errors import CodecError, QTableCorruptError
from masim.core.types import Action
from masim.state.codec import decode_state, encode_state
from masim.state.value import State

logger = logging.getLogger(__name__)

FILE_FORMAT = "masim.qtable"
FILE_VERSION = 1


class QKey(NamedTuple):
    state: State
    action: Action


def _as_f32(value: float) -> float:
    return float(np.float32(value))


class QTable:
    """Mapping from (state, action) to a 32-bit estimate.  Missing reads 0.0."""

    def __init__(self, entries: dict[QKey, float] | None = None) -> None:
        self._q: dict[QKey, float] = {}
        if entries:
            for key, value in entries.items():
                self.set(key.state, key.action, value)

    def get(self, state: State, action: Action) -> float:
        return self._q.get(QKey(tuple(state), action), 0.0)

    def set(self, state: State, action: Action, value: float) -> None:
        self._q[QKey(tuple(state), int(action))] = _as_f32(value)

    def q_values(self, state: State, actions: Sequence[Action]) -> list[float]:
        """Estimates for each candidate action at ``state``, in order."""
        state = tuple(state)
        return [self._q.get(QKey(state, a), 0.0) for a in actions]

    def max_q(self, state: State, actions: Sequence[Action]) -> float:
        """Best estimate over ``actions``; 0.0 when there are none."""
        if not actions:
            return 0.0
        return max(self.q_values(state, actions))

    def is_empty(self) -> bool:
        return not self._q

    def items(self):
        return self._q.items()

    def copy(self) -> QTable:
        clone = QTable()
        clone._q = dict(self._q)
        return clone

    def replace(self, other: QTable) -> None:
        """Swap in another table's entries, keeping this object's identity."""
        self._q = dict(other._q)

    def __len__(self) -> int:
        return len(self._q)

    def __contains__(self, key: object) -> bool:
        return key in self._q

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, QTable):
            return NotImplemented
        return self._q == other._q

    def __repr__(self) -> str:
        return f"QTable({len(self._q)} entries)"


class SharedQTable:
    """Lock-gated handle to one QTable shared by a swarm cohort.

    Members never touch the table directly; they go through ``access()``.
    The handle lives as long as any member (or the scheduler) references it.
    """

    def __init__(self, table: QTable | None = None) -> None:
        self._table = table if table is not None else QTable()
        self._lock = threading.RLock()

    @classmethod
    def from_file(cls, path: str | Path) -> SharedQTable:
        return cls(load_q_table(path))

    @contextmanager
    def access(self) -> Iterator[QTable]:
        with self._lock:
            yield self._table

    def snapshot(self) -> QTable:
        with self._lock:
            return self._table.copy()

    def save(self, path: str | Path) -> None:
        with self._lock:
            save_q_table(self._table, path)

    def load(self, path: str | Path) -> None:
        loaded = load_q_table(path)
        with self._lock:
            self._table.replace(loaded)

    def __len__(self) -> int:
        with self._lock:
            return len(self._table)


# ---------------------------------------------------------------------------
# Files
# ---------------------------------------------------------------------------

class _BuiltinsOnlyUnpickler(pickle.Unpickler):
    def find_class(self, module: str, name: str):
        raise pickle.UnpicklingError(f"Global {module}.{name} is not allowed")


def save_q_table(table: QTable, path: str | Path) -> None:
    """Write ``table`` to ``path``.  An unwritable path raises ``OSError``."""
    path = Path(path)
    payload = {
        "format": FILE_FORMAT,
        "version": FILE_VERSION,
        "entries": [
            (encode_state(key.state), key.action, value)
            for key, value in table.items()
        ],
    }
    with path.open("wb") as f:
        pickle.dump(payload, f, protocol=pickle.HIGHEST_PROTOCOL)
    logger.info("Saved Q-table with %d entries to %s", len(table), path)


def load_q_table(path: str | Path) -> QTable:
    """Read a table from ``path``.

    A missing file is a cold start and yields an empty table.  Anything that
    exists but does not decode cleanly raises ``QTableCorruptError``.
    """
    path = Path(path)
    try:
        raw = path.read_bytes()
    except FileNotFoundError:
        logger.info("No Q-table at %s, starting cold", path)
        return QTable()

    try:
        payload = _BuiltinsOnlyUnpickler(io.BytesIO(raw)).load()
    except Exception as exc:
        raise QTableCorruptError(f"Q-table file {path} is not decodable: {exc}") from exc

    if not isinstance(payload, dict) or payload.get("format") != FILE_FORMAT:
        raise QTableCorruptError(f"Q-table file {path} has an unknown format")
    if payload.get("version") != FILE_VERSION:
        raise QTableCorruptError(
            f"Q-table file {path} has unsupported version {payload.get('version')!r}"
        )

    entries = payload.get("entries")
    if not isinstance(entries, list):
        raise QTableCorruptError(f"Q-table file {path} has no entry list")

    table = QTable()
    try:
        for entry in entries:
            encoded_state, action, value = entry
            if isinstance(action, bool) or not isinstance(action, int) or action < 0:
                raise CodecError(f"Invalid action code {action!r}")
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise CodecError(f"Invalid Q-value {value!r}")
            table.set(decode_state(encoded_state), action, value)
    except (CodecError, TypeError, ValueError) as exc:
        raise QTableCorruptError(f"Q-table file {path} has a malformed entry: {exc}") from exc

    logger.info("Loaded Q-table with %d entries from %s", len(table), path)
    return table
