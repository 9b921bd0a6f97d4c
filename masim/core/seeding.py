"""Deterministic seeding utilities.

All randomness in a simulation (exploration draws, tie-breaks, random
positions) flows through a single ``numpy.random.Generator`` so that runs
are reproducible given the same config + seed.
"""

from __future__ import annotations

import numpy as np


def make_rng(seed: int | None = None) -> np.random.Generator:
    """Create a NumPy Generator from an explicit seed.

    If seed is None a fresh (non-reproducible) generator is returned.
    """
    return np.random.default_rng(seed)


def ensure_rng(rng: np.random.Generator | int | None) -> np.random.Generator:
    """Accept an existing generator, a seed, or None and return a generator.

    Passing a generator through unchanged is what lets tests substitute
    their own source of randomness.
    """
    if isinstance(rng, np.random.Generator):
        return rng
    return make_rng(rng)


def choose(rng: np.random.Generator, items):
    """Uniformly pick one element of a non-empty sequence."""
    if not items:
        raise ValueError("Cannot choose from an empty sequence.")
    return items[int(rng.integers(len(items)))]
