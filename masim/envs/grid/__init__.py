"""Rectangular grid environment package."""

from masim.envs.grid.env import GridEnvironment

__all__ = ["GridEnvironment"]
