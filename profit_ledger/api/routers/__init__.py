"""API router package for endpoint composition."""

from .distribution import api_create_distribution_router
from .health import api_create_health_router
from .owners import api_create_owners_router
from .positions import api_create_positions_router

__all__ = [
    "api_create_distribution_router",
    "api_create_health_router",
    "api_create_owners_router",
    "api_create_positions_router",
]
