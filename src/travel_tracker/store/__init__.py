"""Persistent trip store.

This package keeps users, deduplicated trips and the per-email processing
log in a local SQLite database.
"""

from .repository import TripRepository

__all__ = ["TripRepository"]
