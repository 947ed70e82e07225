"""
Mealpilot meal-ordering assistant package.

The package exposes the backend proxy in front of the catering platform, the
client gateways that read calendars and submit orders, and the weekly planning
workflow that turns LLM suggestions into a batch of placed orders.
"""

__all__ = ["__version__"]

__version__ = "0.1.0"
