"""
Degree/radian conversion for joint angle data.

Used by:
- Degree-to-radian conversion of joint angle tables at ingestion
- Reporting solved coordinates in degrees
"""

import numpy as np
from typing import Union


def degrees_to_radians(degrees: Union[float, np.ndarray]) -> Union[float, np.ndarray]:
    """Convert degrees to radians."""
    return np.deg2rad(degrees)


def radians_to_degrees(radians: Union[float, np.ndarray]) -> Union[float, np.ndarray]:
    """Convert radians to degrees."""
    return np.rad2deg(radians)
