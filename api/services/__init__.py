"""
API Services Layer.

Database operations behind the API endpoints. Each function opens its own
session, commits once and returns plain dicts; failures are raised as
``core.errors.AppError`` subclasses.
"""

from api.services import (
    common,
    notifications,
    users,
    connections,
    companies,
    jobs,
    applications,
    chats,
    posts,
    admin,
)

__all__ = [
    "common",
    "notifications",
    "users",
    "connections",
    "companies",
    "jobs",
    "applications",
    "chats",
    "posts",
    "admin",
]
