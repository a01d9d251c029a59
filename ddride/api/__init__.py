"""
API routers package
"""
from ddride.api import (
    system,
    groups,
    events,
    drivers,
    verification,
    sessions,
    rides,
    admin
)

__all__ = [
    "system",
    "groups",
    "events",
    "drivers",
    "verification",
    "sessions",
    "rides",
    "admin"
]
