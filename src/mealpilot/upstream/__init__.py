"""Catering platform (Meican) HTTP access and payload transforms."""

from mealpilot.upstream.meican import LoginOutcome, MeicanClient, UpstreamError, login

__all__ = ["LoginOutcome", "MeicanClient", "UpstreamError", "login"]
