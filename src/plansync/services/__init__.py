"""Engines of the planner core: sync, sharing, friend graph and lifecycle."""
