"""
Business logic services for the application.

This module contains service classes that encapsulate business logic,
keeping route handlers clean and focused on HTTP concerns.
"""
