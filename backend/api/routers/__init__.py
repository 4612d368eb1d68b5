"""API Routers package"""

from . import roulette_router, ws_router

__all__ = [
    "roulette_router",
    "ws_router",
]
