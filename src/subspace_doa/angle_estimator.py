"""
Direction-of-Arrival Estimator for Uniform Linear Arrays

Subspace methods operating on a shared eigendecomposition:
1. MUSIC pseudospectrum search over an angular grid
2. Root-MUSIC polynomial rooting of the noise-subspace projector
3. ESPRIT rotational invariance between two overlapping subarrays
   (least-squares or total-least-squares)

References:
- R. Schmidt, "Multiple emitter location and signal parameter estimation"
- A. Barabell, "Improving the resolution performance of eigenstructure-based
  direction-finding algorithms"
- R. Roy and T. Kailath, "ESPRIT - Estimation of Signal Parameters via
  Rotational Invariance Techniques"
"""

import numpy as np
from scipy import linalg
from dataclasses import dataclass
from typing import Optional, Tuple, List, Dict
from enum import Enum
import threading
import logging

from .array_model import phase_to_angle, steering_matrix
from .config import EstimatorConfig
from .eigen_solver import Subspaces
from .errors import DimensionMismatch, PEAK_SHORTFALL, ROOT_SELECTION_FAILURE

logger = logging.getLogger(__name__)


class EstimationMethod(Enum):
    """Angle estimation method"""
    MUSIC = "MUSIC"                       # Grid search on the pseudospectrum
    ROOT_MUSIC = "Root-MUSIC"             # Polynomial root finding
    ESPRIT = "ESPRIT"                     # Subarray shift invariance


@dataclass(frozen=True)
class SpectrumPoint:
    """One MUSIC pseudospectrum sample"""
    angle: float                          # degrees
    power: float


@dataclass(frozen=True)
class AngleEstimate:
    """Angle estimation result"""
    method: EstimationMethod
    angles_deg: Tuple[float, ...]         # ascending
    num_requested: int

    # Optional detailed results
    spectrum: Optional[Tuple[SpectrumPoint, ...]] = None
    warnings: Tuple[str, ...] = ()

    @property
    def is_partial(self) -> bool:
        return len(self.angles_deg) < self.num_requested


class AngleEstimator:
    """
    DOA estimator for an N-element ULA

    One instance serves one array geometry. The MUSIC array manifold over
    the scan grid is pre-computed at construction. estimate() is safe to
    call from several threads at once; only the statistics are shared and
    they are lock-protected.
    """

    def __init__(
        self,
        num_elements: int,
        spacing: float = 0.5,
        config: Optional[EstimatorConfig] = None
    ):
        self.config = (config or EstimatorConfig()).validate()
        self.num_elements = num_elements
        self.spacing = spacing

        self.scan_grid = self._build_scan_grid()

        # Pre-compute array manifold, shape (N, num_angles)
        self.array_response = steering_matrix(self.scan_grid, num_elements, spacing)

        # Statistics
        self._stats_lock = threading.Lock()
        self.stats = {
            "estimates": 0,
            "partial_estimates": 0,
            "degenerate_spectra": 0,
            "method_usage": {},
        }

        logger.debug(
            f"AngleEstimator initialized: {num_elements}-element ULA, d={spacing} wavelengths, "
            f"{len(self.scan_grid)} grid points"
        )

    def _build_scan_grid(self) -> np.ndarray:
        """Inclusive grid from scan_range_deg[0] to scan_range_deg[1]"""
        low, high = self.config.scan_range_deg
        step = self.config.scan_step_deg
        count = int(np.floor((high - low) / step + 1e-9)) + 1
        return low + step * np.arange(count)

    # =========================================================================
    # Main Estimation Interface
    # =========================================================================

    def estimate(self, subspaces: Subspaces, method: EstimationMethod) -> AngleEstimate:
        """
        Estimate source directions from a subspace split

        Args:
            subspaces: Signal/noise subspaces of the array covariance
            method: Estimation method to use

        Returns:
            AngleEstimate with ascending angles in degrees
        """
        if subspaces.num_elements != self.num_elements:
            raise DimensionMismatch(
                f"Subspaces have {subspaces.num_elements} elements, "
                f"estimator expects {self.num_elements}"
            )

        if method == EstimationMethod.MUSIC:
            result = self._estimate_music(subspaces)
        elif method == EstimationMethod.ROOT_MUSIC:
            result = self._estimate_root_music(subspaces)
        elif method == EstimationMethod.ESPRIT:
            result = self._estimate_esprit(subspaces)
        else:
            raise ValueError(f"Unsupported estimation method: {method}")

        self._update_stats(result)
        return result

    # =========================================================================
    # MUSIC
    # =========================================================================

    def _estimate_music(self, subspaces: Subspaces) -> AngleEstimate:
        """MUSIC pseudospectrum search"""
        spectrum = self.compute_music_spectrum(subspaces.noise)
        peaks = self._find_spectrum_peaks(spectrum, subspaces.num_sources)

        warnings = []
        if len(peaks) < subspaces.num_sources:
            warnings.append(PEAK_SHORTFALL)
            logger.warning(
                f"MUSIC found {len(peaks)} peak(s) for {subspaces.num_sources} source(s)"
            )

        angles = tuple(sorted(float(self.scan_grid[i]) for i in peaks))
        points = tuple(
            SpectrumPoint(angle=float(a), power=float(p))
            for a, p in zip(self.scan_grid, spectrum)
        )

        return AngleEstimate(
            method=EstimationMethod.MUSIC,
            angles_deg=angles,
            num_requested=subspaces.num_sources,
            spectrum=points,
            warnings=tuple(warnings),
        )

    def compute_music_spectrum(self, noise_subspace: np.ndarray) -> np.ndarray:
        """P(theta) = 1 / ||En^H a(theta)||^2 over the scan grid"""
        projected = noise_subspace.conj().T @ self.array_response
        denom = np.sum(np.abs(projected) ** 2, axis=0)

        eps = self.config.spectrum_epsilon
        degenerate = denom < eps
        if np.any(degenerate):
            # Exact null on the grid: floor it so it becomes the grid maximum
            logger.debug(f"MUSIC denominator below {eps:g} at {int(degenerate.sum())} grid point(s)")
            with self._stats_lock:
                self.stats["degenerate_spectra"] += 1

        return 1.0 / np.maximum(denom, eps)

    @staticmethod
    def _find_spectrum_peaks(spectrum: np.ndarray, num_peaks: int) -> List[int]:
        """Indices of the num_peaks strongest strict local maxima"""
        if len(spectrum) < 3:
            return []

        inner = spectrum[1:-1]
        is_peak = (inner > spectrum[:-2]) & (inner > spectrum[2:])
        candidates = np.nonzero(is_peak)[0] + 1

        order = np.argsort(-spectrum[candidates], kind="stable")
        return [int(i) for i in candidates[order][:num_peaks]]

    # =========================================================================
    # Root-MUSIC
    # =========================================================================

    def _estimate_root_music(self, subspaces: Subspaces) -> AngleEstimate:
        """Root-MUSIC on the noise-subspace projector"""
        M = self.num_elements
        C = subspaces.noise_projector

        # Coefficient of z^m is the sum of the m-th diagonal; highest power first
        coeffs = np.array([np.trace(C, offset=m) for m in range(M - 1, -M, -1)])
        roots = np.roots(coeffs)

        inside = roots[np.abs(roots) < 1.0]
        inside = inside[np.argsort(1.0 - np.abs(inside), kind="stable")]

        angles = []
        rejected = 0
        for root in inside:
            angle = phase_to_angle(np.angle(root), self.spacing, self.config.unit_circle_tolerance)
            if angle is None:
                rejected += 1
                continue
            angles.append(angle)
            if len(angles) == subspaces.num_sources:
                break

        warnings = []
        if len(angles) < subspaces.num_sources:
            warnings.append(ROOT_SELECTION_FAILURE)
            logger.warning(
                f"Root-MUSIC selected {len(angles)} of {subspaces.num_sources} root(s) "
                f"({len(inside)} inside unit circle, {rejected} non-physical)"
            )

        return AngleEstimate(
            method=EstimationMethod.ROOT_MUSIC,
            angles_deg=tuple(sorted(angles)),
            num_requested=subspaces.num_sources,
            warnings=tuple(warnings),
        )

    # =========================================================================
    # ESPRIT
    # =========================================================================

    def _estimate_esprit(self, subspaces: Subspaces) -> AngleEstimate:
        """ESPRIT over subarrays [0, N-2] and [1, N-1]"""
        Es = subspaces.signal
        E1 = Es[:-1, :]
        E2 = Es[1:, :]

        if self.config.esprit_method == "tls":
            eig_vals = self._esprit_tls_eigenvalues(E1, E2)
        else:
            Phi, _, _, _ = linalg.lstsq(E1, E2)
            eig_vals = linalg.eigvals(Phi)

        angles = []
        for eig in eig_vals:
            if not np.isfinite(eig):
                continue
            angle = phase_to_angle(np.angle(eig), self.spacing, self.config.unit_circle_tolerance)
            if angle is not None:
                angles.append(angle)

        warnings = []
        if len(angles) < subspaces.num_sources:
            warnings.append(ROOT_SELECTION_FAILURE)
            logger.warning(
                f"ESPRIT mapped {len(angles)} of {subspaces.num_sources} eigenvalue(s) to valid angles"
            )

        return AngleEstimate(
            method=EstimationMethod.ESPRIT,
            angles_deg=tuple(sorted(angles)),
            num_requested=subspaces.num_sources,
            warnings=tuple(warnings),
        )

    @staticmethod
    def _esprit_tls_eigenvalues(E1: np.ndarray, E2: np.ndarray) -> np.ndarray:
        """Eigenvalues of the TLS rotation operator via a generalized eigenproblem"""
        K = E1.shape[1]
        E12 = np.hstack([E1, E2])
        w, V = linalg.eigh(E12.conj().T @ E12)
        V = V[:, np.argsort(-w, kind="stable")]

        V12 = V[:K, K:]
        V22 = V[K:, K:]

        # Psi = -V12 V22^-1; its eigenvalues solve -V12 y = lambda V22 y
        return linalg.eig(-V12, V22, right=False)

    # =========================================================================
    # Helper Methods
    # =========================================================================

    def _update_stats(self, result: AngleEstimate):
        """Update estimation statistics"""
        with self._stats_lock:
            self.stats["estimates"] += 1
            if result.is_partial:
                self.stats["partial_estimates"] += 1

            method = result.method.value
            if method not in self.stats["method_usage"]:
                self.stats["method_usage"][method] = 0
            self.stats["method_usage"][method] += 1

    def get_statistics(self) -> Dict:
        """Get estimation statistics"""
        with self._stats_lock:
            stats = dict(self.stats)
            stats["method_usage"] = dict(self.stats["method_usage"])
            return stats
