"""Utility functions for IK tracking.

This module provides helper functions for:
- Degree/radian conversion
"""

from .angles import degrees_to_radians, radians_to_degrees

__all__ = [
    "degrees_to_radians",
    "radians_to_degrees",
]
