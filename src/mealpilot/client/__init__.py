"""Client-side access to the Mealpilot proxy."""

from mealpilot.client.base import GatewayError, MealGateway, OrderError, build_gateway
from mealpilot.client.mock import MockGateway
from mealpilot.client.proxy import ProxyGateway

__all__ = [
    "GatewayError",
    "MealGateway",
    "MockGateway",
    "OrderError",
    "ProxyGateway",
    "build_gateway",
]
