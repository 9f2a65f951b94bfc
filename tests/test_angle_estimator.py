"""
Unit tests for AngleEstimator module.

Tests:
- MUSIC pseudospectrum and peak search
- Root-MUSIC accuracy and root selection fallback
- ESPRIT accuracy (LS and TLS)
- Shortfall reporting
- Statistics tracking
"""

import pytest
import numpy as np
import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from subspace_doa.angle_estimator import (
    AngleEstimator,
    AngleEstimate,
    EstimationMethod,
)
from subspace_doa.config import EstimatorConfig, Parameters
from subspace_doa.covariance import sample_covariance
from subspace_doa.eigen_solver import decompose, Subspaces
from subspace_doa.errors import DimensionMismatch, PEAK_SHORTFALL, ROOT_SELECTION_FAILURE
from subspace_doa.signal_simulator import SignalSimulator


def simulated_subspaces(params: Parameters, seed: int = 0) -> Subspaces:
    """Subspaces of a simulated dataset"""
    X = SignalSimulator(seed=seed).simulate(params)
    return decompose(sample_covariance(X)).split(params.num_sources)


def non_physical_subspaces(num_elements: int, phase_step: float) -> Subspaces:
    """One-source subspaces whose signal vector advances by phase_step per element"""
    rng = np.random.default_rng(0)
    v = np.exp(1j * phase_step * np.arange(num_elements)) / np.sqrt(num_elements)
    B = rng.standard_normal((num_elements, num_elements)) + 1j * rng.standard_normal((num_elements, num_elements))
    B[:, 0] = v
    Q, _ = np.linalg.qr(B, mode="complete")

    return Subspaces(
        signal=Q[:, :1],
        noise=Q[:, 1:],
        eigenvalues=np.r_[1.0, np.zeros(num_elements - 1)],
        num_sources=1,
    )


class TestAngleEstimatorConfig:
    """Test EstimatorConfig dataclass."""

    def test_default_config(self):
        config = EstimatorConfig()

        assert config.scan_range_deg == (0.0, 90.0)
        assert config.scan_step_deg == 1.0
        assert config.spectrum_epsilon == 1e-10
        assert config.esprit_method == "ls"

    def test_default_grid(self, estimator_8):
        assert len(estimator_8.scan_grid) == 91
        assert estimator_8.scan_grid[0] == 0.0
        assert estimator_8.scan_grid[-1] == 90.0
        assert estimator_8.array_response.shape == (8, 91)

    def test_custom_grid(self):
        config = EstimatorConfig(scan_range_deg=(-90.0, 90.0), scan_step_deg=0.5)
        estimator = AngleEstimator(num_elements=6, config=config)

        assert len(estimator.scan_grid) == 361
        assert estimator.scan_grid[-1] == pytest.approx(90.0)

    @pytest.mark.parametrize("kwargs", [
        {"scan_range_deg": (10.0, 10.0)},
        {"scan_range_deg": (-100.0, 0.0)},
        {"scan_step_deg": 0.0},
        {"esprit_method": "svd"},
    ])
    def test_invalid_config(self, kwargs):
        with pytest.raises(ValueError):
            AngleEstimator(num_elements=6, config=EstimatorConfig(**kwargs))


class TestAngleEstimate:
    """Test AngleEstimate dataclass."""

    def test_estimate_creation(self):
        estimate = AngleEstimate(
            method=EstimationMethod.ESPRIT,
            angles_deg=(20.0, 40.0),
            num_requested=2,
        )

        assert estimate.method == EstimationMethod.ESPRIT
        assert estimate.spectrum is None
        assert estimate.warnings == ()
        assert not estimate.is_partial

    def test_partial_estimate(self):
        estimate = AngleEstimate(
            method=EstimationMethod.MUSIC,
            angles_deg=(20.0,),
            num_requested=3,
        )

        assert estimate.is_partial


class TestMUSIC:
    """Test MUSIC algorithm."""

    def test_high_snr_accuracy(self, estimator_8, high_snr_params):
        subspaces = simulated_subspaces(high_snr_params, seed=1)

        result = estimator_8.estimate(subspaces, EstimationMethod.MUSIC)

        assert len(result.angles_deg) == 2
        assert np.allclose(result.angles_deg, [20.0, 60.0], atol=0.5)
        assert result.warnings == ()

    def test_exact_subspaces_hit_grid(self, estimator_8, signal_generator):
        subspaces = signal_generator.subspaces([20.0, 60.0], 8)

        result = estimator_8.estimate(subspaces, EstimationMethod.MUSIC)

        assert result.angles_deg == (20.0, 60.0)

    def test_off_grid_source_snaps_to_nearest(self, estimator_8, signal_generator):
        subspaces = signal_generator.subspaces([33.3], 8)

        result = estimator_8.estimate(subspaces, EstimationMethod.MUSIC)

        assert result.angles_deg == (33.0,)

    def test_angles_ascending(self, signal_generator):
        estimator = AngleEstimator(num_elements=10)
        subspaces = signal_generator.subspaces([60.0, 20.0, 40.0], 10)

        result = estimator.estimate(subspaces, EstimationMethod.MUSIC)

        assert list(result.angles_deg) == sorted(result.angles_deg)

    def test_spectrum_covers_grid(self, estimator_8, signal_generator):
        subspaces = signal_generator.subspaces([45.0], 8)

        result = estimator_8.estimate(subspaces, EstimationMethod.MUSIC)

        assert len(result.spectrum) == 91
        assert [p.angle for p in result.spectrum] == list(range(0, 91))
        assert all(p.power > 0 for p in result.spectrum)

        peak = max(result.spectrum, key=lambda p: p.power)
        assert peak.angle == 45.0

    def test_degenerate_spectrum_is_floored(self, estimator_8, signal_generator):
        """Exact nulls on the grid are floored, not divided by zero."""
        subspaces = signal_generator.subspaces([30.0], 8, noise_power=0.0)

        spectrum = estimator_8.compute_music_spectrum(subspaces.noise)

        assert np.all(np.isfinite(spectrum))
        assert np.argmax(spectrum) == 30
        assert spectrum.max() <= 1.0 / estimator_8.config.spectrum_epsilon

    def test_negative_angles_with_full_grid(self, signal_generator):
        config = EstimatorConfig(scan_range_deg=(-90.0, 90.0))
        estimator = AngleEstimator(num_elements=8, config=config)
        subspaces = signal_generator.subspaces([-30.0, 25.0], 8)

        result = estimator.estimate(subspaces, EstimationMethod.MUSIC)

        assert result.angles_deg == (-30.0, 25.0)


class TestSpectrumPeaks:
    """Test local maximum search."""

    def test_strongest_peaks_first(self):
        spectrum = np.array([0.0, 3.0, 1.0, 5.0, 2.0, 4.0, 0.0])

        assert AngleEstimator._find_spectrum_peaks(spectrum, 2) == [3, 5]

    def test_edges_are_not_peaks(self):
        spectrum = np.array([9.0, 1.0, 2.0, 1.0, 9.0])

        assert AngleEstimator._find_spectrum_peaks(spectrum, 3) == [2]

    def test_monotone_spectrum_has_no_peaks(self):
        assert AngleEstimator._find_spectrum_peaks(np.arange(10.0), 2) == []

    def test_plateau_is_not_a_peak(self):
        assert AngleEstimator._find_spectrum_peaks(np.array([0.0, 2.0, 2.0, 0.0]), 1) == []

    def test_short_spectrum(self):
        assert AngleEstimator._find_spectrum_peaks(np.array([1.0, 2.0]), 1) == []

    def test_music_shortfall_warning(self, monkeypatch, estimator_8, signal_generator):
        subspaces = signal_generator.subspaces([20.0, 60.0], 8)
        monkeypatch.setattr(
            estimator_8,
            "compute_music_spectrum",
            lambda noise: np.linspace(1.0, 2.0, len(estimator_8.scan_grid))
        )

        result = estimator_8.estimate(subspaces, EstimationMethod.MUSIC)

        assert result.angles_deg == ()
        assert result.is_partial
        assert PEAK_SHORTFALL in result.warnings


class TestRootMUSIC:
    """Test Root-MUSIC algorithm."""

    def test_high_snr_accuracy(self, estimator_8, high_snr_params):
        subspaces = simulated_subspaces(high_snr_params, seed=2)

        result = estimator_8.estimate(subspaces, EstimationMethod.ROOT_MUSIC)

        assert len(result.angles_deg) == 2
        assert np.allclose(result.angles_deg, [20.0, 60.0], atol=0.1)
        assert result.spectrum is None

    def test_off_grid_accuracy(self):
        params = Parameters(snapshots=500, array_elements=10, snr_db=40.0, source_angles=(12.7, 47.3))
        estimator = AngleEstimator(num_elements=10)

        result = estimator.estimate(simulated_subspaces(params, seed=3), EstimationMethod.ROOT_MUSIC)

        assert np.allclose(result.angles_deg, [12.7, 47.3], atol=0.1)

    def test_next_root_used_after_non_physical(self, monkeypatch, signal_generator):
        """A root whose phase maps to no angle is skipped for the next candidate."""
        spacing = 0.25
        estimator = AngleEstimator(num_elements=6, spacing=spacing)
        subspaces = signal_generator.subspaces([10.0, 30.0], 6, spacing=spacing)

        fake_roots = np.array([0.9 * np.exp(1j * 3.0), 0.5 * np.exp(1j * 0.3)])
        monkeypatch.setattr(np, "roots", lambda coeffs: fake_roots)

        result = estimator.estimate(subspaces, EstimationMethod.ROOT_MUSIC)

        expected = np.degrees(np.arcsin(0.3 / (2 * np.pi * spacing)))
        assert result.angles_deg == pytest.approx((expected,))
        assert ROOT_SELECTION_FAILURE in result.warnings
        assert result.is_partial

    def test_roots_outside_unit_circle_ignored(self, monkeypatch, estimator_8, signal_generator):
        subspaces = signal_generator.subspaces([20.0], 8)
        fake_roots = np.array([1.2 * np.exp(1j * 0.5), 0.8 * np.exp(1j * 1.0)])
        monkeypatch.setattr(np, "roots", lambda coeffs: fake_roots)

        result = estimator_8.estimate(subspaces, EstimationMethod.ROOT_MUSIC)

        expected = np.degrees(np.arcsin(1.0 / np.pi))
        assert result.angles_deg == pytest.approx((expected,))
        assert result.warnings == ()


class TestESPRIT:
    """Test ESPRIT algorithm."""

    def test_exact_subspaces_ls(self, estimator_8, signal_generator):
        subspaces = signal_generator.subspaces([20.0, 60.0], 8)

        result = estimator_8.estimate(subspaces, EstimationMethod.ESPRIT)

        assert np.allclose(result.angles_deg, [20.0, 60.0], atol=1e-4)

    def test_exact_subspaces_tls(self, signal_generator):
        estimator = AngleEstimator(num_elements=8, config=EstimatorConfig(esprit_method="tls"))
        subspaces = signal_generator.subspaces([-15.0, 35.0, 70.0], 8)

        result = estimator.estimate(subspaces, EstimationMethod.ESPRIT)

        assert np.allclose(result.angles_deg, [-15.0, 35.0, 70.0], atol=1e-4)

    def test_high_snr_accuracy(self, estimator_8, high_snr_params):
        subspaces = simulated_subspaces(high_snr_params, seed=4)

        result = estimator_8.estimate(subspaces, EstimationMethod.ESPRIT)

        assert np.allclose(result.angles_deg, [20.0, 60.0], atol=0.1)

    def test_ls_and_tls_agree(self, example_params):
        subspaces = simulated_subspaces(example_params, seed=5)
        ls = AngleEstimator(num_elements=10, config=EstimatorConfig(esprit_method="ls"))
        tls = AngleEstimator(num_elements=10, config=EstimatorConfig(esprit_method="tls"))

        ls_result = ls.estimate(subspaces, EstimationMethod.ESPRIT)
        tls_result = tls.estimate(subspaces, EstimationMethod.ESPRIT)

        assert np.allclose(ls_result.angles_deg, tls_result.angles_deg, atol=0.5)

    def test_non_physical_eigenvalue_reported(self):
        """Phase step 3 rad exceeds 2*pi*d for d = 0.25."""
        estimator = AngleEstimator(num_elements=6, spacing=0.25)

        result = estimator.estimate(non_physical_subspaces(6, 3.0), EstimationMethod.ESPRIT)

        assert result.angles_deg == ()
        assert result.is_partial
        assert ROOT_SELECTION_FAILURE in result.warnings


class TestEstimatorInterface:
    """Test dispatch, validation and statistics."""

    def test_dimension_mismatch(self, estimator_8, signal_generator):
        subspaces = signal_generator.subspaces([20.0], 6)

        with pytest.raises(DimensionMismatch):
            estimator_8.estimate(subspaces, EstimationMethod.MUSIC)

    def test_unsupported_method(self, estimator_8, signal_generator):
        subspaces = signal_generator.subspaces([20.0], 8)

        with pytest.raises(ValueError):
            estimator_8.estimate(subspaces, "beamforming")

    def test_statistics(self, estimator_8, signal_generator):
        subspaces = signal_generator.subspaces([20.0, 60.0], 8)

        for method in EstimationMethod:
            estimator_8.estimate(subspaces, method)
        estimator_8.estimate(subspaces, EstimationMethod.MUSIC)

        stats = estimator_8.get_statistics()
        assert stats["estimates"] == 4
        assert stats["method_usage"]["MUSIC"] == 2
        assert stats["method_usage"]["Root-MUSIC"] == 1
        assert stats["method_usage"]["ESPRIT"] == 1

    def test_statistics_snapshot_is_a_copy(self, estimator_8, signal_generator):
        subspaces = signal_generator.subspaces([20.0], 8)
        stats = estimator_8.get_statistics()

        estimator_8.estimate(subspaces, EstimationMethod.ESPRIT)

        assert stats["estimates"] == 0
        assert stats["method_usage"] == {}
