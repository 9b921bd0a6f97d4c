"""Scheduler package — agent registry and the tick loop."""

from masim.scheduler.scheduler import DEFAULT_COLOR, AgentRecord, Scheduler

__all__ = ["DEFAULT_COLOR", "AgentRecord", "Scheduler"]
