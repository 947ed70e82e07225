"""Meal planning: eligibility, generation, reconciliation and order execution."""
