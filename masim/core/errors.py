"""Exception types raised by the engine.

Recoverable conditions (``TypeMismatch``, ``CodecError``) are meant to be
caught by scenario code.  ``QTableCorruptError`` and
``RegistryInvariantError`` signal conditions the engine never handles itself.
"""

from __future__ import annotations

from typing import Any


class TypeMismatch(TypeError):
    """A Value was read as a different variant than the one it holds."""

    def __init__(self, expected: Any, actual: Any) -> None:
        self.expected = expected
        self.actual = actual
        super().__init__(f"Expected {expected.name}, but got {actual.name}")


class CodecError(ValueError):
    """An encoded Value could not be decoded."""


class QTableCorruptError(RuntimeError):
    """A Q-table file exists but cannot be trusted."""


class RegistryInvariantError(RuntimeError):
    """The scheduler's agent indices disagree with each other."""
