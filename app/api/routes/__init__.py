"""
API routes package initialization.

This package contains all API route modules organized by functionality.
"""

from . import admin, auth, classes, contact, events, health, payments, registrations

__all__ = [
    "admin",
    "auth",
    "classes",
    "contact",
    "events",
    "health",
    "payments",
    "registrations",
]
