"""
Sample spatial covariance estimation
"""

import numpy as np

from .complex_algebra import hermitian, matmul
from .errors import DimensionMismatch, NotHermitian


def ensure_hermitian(R: np.ndarray, tol: float = 1e-8) -> np.ndarray:
    """
    Return the symmetrised (R + R^H) / 2.

    A deviation from Hermitian symmetry larger than tol (relative to the
    largest entry) indicates a bug upstream and raises NotHermitian.
    """
    R = np.asarray(R)
    if R.ndim != 2 or R.shape[0] != R.shape[1]:
        raise DimensionMismatch(f"Covariance must be square, got shape {R.shape}")

    scale = max(1.0, float(np.max(np.abs(R)))) if R.size else 1.0
    deviation = float(np.max(np.abs(R - R.conj().T), initial=0.0))
    if deviation > tol * scale:
        raise NotHermitian(
            f"Matrix deviates from Hermitian symmetry by {deviation:.3e} (tol={tol:.1e})"
        )

    return (R + R.conj().T) / 2


def sample_covariance(X: np.ndarray, tol: float = 1e-8) -> np.ndarray:
    """R = X @ X^H / num_snapshots for X of shape (elements, snapshots)"""
    X = np.asarray(X, dtype=np.complex128)
    if X.ndim != 2:
        raise DimensionMismatch(f"Snapshot matrix must be 2-D, got shape {X.shape}")
    if X.shape[1] == 0:
        raise DimensionMismatch("Snapshot matrix has no snapshots")

    R = matmul(X, hermitian(X)) / X.shape[1]
    return ensure_hermitian(R, tol)
