"""Inverse-kinematics tracking of articulated skeletal models.

This package contains reusable components for marker- and orientation-driven
inverse kinematics (IK):
- tables: Named time series, column mapping, unit conversion
- coords: Rotation representations and conversions
- model: Articulated skeletal models and forward kinematics
- estimators: Bounded nonlinear least squares
- tracking: Reference signals, time alignment, the IK solve engine
- eval: Accuracy evaluation, metrics and plots
"""

__version__ = "0.1.0"
