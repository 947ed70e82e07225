"""Persistence layer for proxy sessions and per-user settings."""
