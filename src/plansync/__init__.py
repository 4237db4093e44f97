"""plansync - offline-first task planner core."""

__version__ = "0.1.0"
