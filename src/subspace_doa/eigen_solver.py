"""
Hermitian eigendecomposition and signal/noise subspace split
"""

import numpy as np
from scipy import linalg
from dataclasses import dataclass

from .covariance import ensure_hermitian
from .errors import InsufficientRank, InvalidParameters


@dataclass(frozen=True)
class Subspaces:
    """Signal and noise subspaces for a given source count"""
    signal: np.ndarray                     # (N, num_sources)
    noise: np.ndarray                      # (N, N - num_sources)
    eigenvalues: np.ndarray                # descending
    num_sources: int

    @property
    def num_elements(self) -> int:
        return self.signal.shape[0]

    @property
    def noise_projector(self) -> np.ndarray:
        return self.noise @ self.noise.conj().T


@dataclass(frozen=True)
class EigenDecomposition:
    """Eigenpairs sorted by descending eigenvalue; vectors are columns"""
    eigenvalues: np.ndarray
    eigenvectors: np.ndarray

    @property
    def size(self) -> int:
        return len(self.eigenvalues)

    def _check_split(self, num_sources: int):
        if num_sources < 1:
            raise InvalidParameters(f"num_sources must be >= 1, got {num_sources}")
        if self.size <= num_sources:
            raise InsufficientRank(
                f"{self.size} elements cannot separate {num_sources} source(s) from noise"
            )

    def signal_subspace(self, num_sources: int) -> np.ndarray:
        self._check_split(num_sources)
        return self.eigenvectors[:, :num_sources]

    def noise_subspace(self, num_sources: int) -> np.ndarray:
        self._check_split(num_sources)
        return self.eigenvectors[:, num_sources:]

    def split(self, num_sources: int) -> Subspaces:
        return Subspaces(
            signal=self.signal_subspace(num_sources),
            noise=self.noise_subspace(num_sources),
            eigenvalues=self.eigenvalues,
            num_sources=num_sources,
        )

    def estimate_noise_floor(self, num_sources: int) -> float:
        """Mean of the noise eigenvalues"""
        self._check_split(num_sources)
        return float(np.mean(self.eigenvalues[num_sources:]))

    def signal_to_noise_db(self, num_sources: int) -> float:
        """Eigenvalue-based SNR estimate (signal mean over noise mean)"""
        noise = self.estimate_noise_floor(num_sources)
        signal = float(np.mean(self.eigenvalues[:num_sources]))
        return float(10 * np.log10(signal / (noise + 1e-10) + 1e-12))


def decompose(R: np.ndarray, tol: float = 1e-8) -> EigenDecomposition:
    """
    Eigendecomposition of a Hermitian covariance matrix.

    Uses LAPACK's Hermitian solver; eigenvalues come back descending with
    ties kept in solver order and negative round-off clipped to zero.
    """
    R = ensure_hermitian(R, tol)
    eigenvalues, eigenvectors = linalg.eigh(R)

    idx = np.argsort(-eigenvalues, kind="stable")
    eigenvalues = np.clip(eigenvalues[idx], 0.0, None)
    eigenvectors = eigenvectors[:, idx]

    return EigenDecomposition(eigenvalues=eigenvalues, eigenvectors=eigenvectors)
