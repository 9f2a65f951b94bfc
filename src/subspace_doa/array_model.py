"""
Uniform linear array manifold

Element i of the steering vector for a plane wave from angle theta is
exp(j * 2*pi * d * i * sin(theta)), d in wavelengths. The simulator and
all three estimators go through this module so the phase convention is
shared everywhere.
"""

import numpy as np
from typing import Optional, Sequence


def spatial_frequency(angle_deg: float, spacing: float) -> float:
    """Inter-element phase step (radians) for a source at angle_deg"""
    return 2.0 * np.pi * spacing * np.sin(np.deg2rad(angle_deg))


def phase_to_angle(
    phase_rad: float,
    spacing: float,
    tolerance: float = 1e-9
) -> Optional[float]:
    """
    Invert spatial_frequency.

    Returns the angle in degrees, or None when the phase maps outside
    [-90, 90] (|sin| > 1 beyond rounding tolerance).
    """
    sin_theta = phase_rad / (2.0 * np.pi * spacing)
    if abs(sin_theta) > 1.0 + tolerance:
        return None
    sin_theta = float(np.clip(sin_theta, -1.0, 1.0))
    return float(np.degrees(np.arcsin(sin_theta)))


def steering_vector(angle_deg: float, num_elements: int, spacing: float = 0.5) -> np.ndarray:
    """Unit-magnitude ULA steering vector (length num_elements)"""
    i = np.arange(num_elements)
    return np.exp(1j * spatial_frequency(angle_deg, spacing) * i)


def steering_matrix(
    angles_deg: Sequence[float],
    num_elements: int,
    spacing: float = 0.5
) -> np.ndarray:
    """Stack steering vectors as columns: shape (num_elements, len(angles_deg))"""
    angles = np.asarray(angles_deg, dtype=float).reshape(1, -1)
    i = np.arange(num_elements).reshape(-1, 1)
    phase = 2.0 * np.pi * spacing * i * np.sin(np.deg2rad(angles))
    return np.exp(1j * phase)
