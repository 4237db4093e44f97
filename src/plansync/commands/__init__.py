"""Typer command groups of the plansync CLI."""
