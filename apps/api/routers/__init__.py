"""Routers package."""

from . import (
    health,
    auth,
    users,
    conversations,
    notifications,
    toolkits,
    news,
    projects,
    library,
    public_api,
)
