"""Agent variants package — the closed set of Q-learning agent kinds.

``Agent`` is the union the scheduler works with.  There are exactly two
variants: ``LearningAgent`` owns its table, ``SwarmAgent`` shares one.
"""

from __future__ import annotations

from typing import Union

from masim.agents.base import BaseAgent
from masim.agents.learning_agent import LearningAgent
from masim.agents.q_table import QKey, QTable, SharedQTable, load_q_table, save_q_table
from masim.agents.swarm_agent import SwarmAgent

Agent = Union[LearningAgent, SwarmAgent]

AGENT_VARIANTS: dict[str, type[BaseAgent]] = {
    "learning": LearningAgent,
    "swarm": SwarmAgent,
}

__all__ = [
    "AGENT_VARIANTS",
    "Agent",
    "BaseAgent",
    "LearningAgent",
    "QKey",
    "QTable",
    "SharedQTable",
    "SwarmAgent",
    "load_q_table",
    "save_q_table",
]
