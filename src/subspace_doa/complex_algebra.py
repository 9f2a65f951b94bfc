"""
Complex scalar and matrix helpers

Thin layer over NumPy complex128 arithmetic. Every function is pure:
inputs are never modified and a new array is always returned.
"""

import numpy as np
from typing import Union

from .errors import DimensionMismatch

Number = Union[complex, float, int]


# =============================================================================
# Scalar operations
# =============================================================================

def add(a: Number, b: Number) -> complex:
    return complex(a) + complex(b)


def multiply(a: Number, b: Number) -> complex:
    return complex(a) * complex(b)


def conjugate(a: Number) -> complex:
    return complex(a).conjugate()


def magnitude(a: Number) -> float:
    return float(abs(complex(a)))


def phase(a: Number) -> float:
    """Phase in radians, in (-pi, pi]"""
    return float(np.angle(complex(a)))


def from_polar(mag: float, angle_rad: float) -> complex:
    """Build a complex number from magnitude and phase (radians)"""
    return complex(mag * np.cos(angle_rad), mag * np.sin(angle_rad))


# =============================================================================
# Matrix operations
# =============================================================================

def as_matrix(data) -> np.ndarray:
    """Copy data into a 2-D complex128 array"""
    matrix = np.array(data, dtype=np.complex128)
    if matrix.ndim == 1:
        matrix = matrix.reshape(-1, 1)
    if matrix.ndim != 2:
        raise DimensionMismatch(f"Expected a 2-D matrix, got {matrix.ndim} dimensions")
    return matrix


def zeros(rows: int, cols: int) -> np.ndarray:
    return np.zeros((rows, cols), dtype=np.complex128)


def identity(size: int) -> np.ndarray:
    return np.eye(size, dtype=np.complex128)


def matmul(a: np.ndarray, b: np.ndarray) -> np.ndarray:
    """Matrix product with an explicit inner-dimension check"""
    a = np.asarray(a)
    b = np.asarray(b)
    if a.ndim != 2 or b.ndim != 2:
        raise DimensionMismatch(
            f"matmul needs 2-D operands, got {a.ndim}-D and {b.ndim}-D"
        )
    if a.shape[1] != b.shape[0]:
        raise DimensionMismatch(
            f"Inner dimensions differ: {a.shape} x {b.shape}"
        )
    return a @ b


def hermitian(a: np.ndarray) -> np.ndarray:
    """Conjugate transpose (Hermitian adjoint)"""
    a = np.asarray(a)
    if a.ndim != 2:
        raise DimensionMismatch(f"Hermitian adjoint needs a 2-D matrix, got {a.ndim}-D")
    return a.conj().T.copy()


def is_hermitian(a: np.ndarray, tol: float = 1e-8) -> bool:
    """True if a is square and equal to its adjoint within tol (relative)"""
    a = np.asarray(a)
    if a.ndim != 2 or a.shape[0] != a.shape[1]:
        return False
    scale = max(1.0, float(np.max(np.abs(a)))) if a.size else 1.0
    return float(np.max(np.abs(a - a.conj().T), initial=0.0)) <= tol * scale
