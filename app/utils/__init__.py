"""
Utility functions for the clip processing application.
Contains pure utility functions with no application state.
"""

# Timestamp utilities
from app.utils.timestamp_utils import seconds_to_hhmmss

__all__ = [
    "seconds_to_hhmmss",
]
