"""Travel Tracker - build a trip history from travel booking emails.

This package scans a Gmail mailbox for booking confirmations, extracts
structured trip records with an LLM and stores them without duplicates.
"""

__version__ = "0.1.0"
__author__ = "Trickl"

from travel_tracker.config import Settings, get_settings

__all__ = ["Settings", "get_settings", "__version__", "__author__"]
