"""Adapters (implementations) of the plansync repository ports."""
