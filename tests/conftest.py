"""
Pytest configuration and shared fixtures for subspace DOA tests.

Provides:
- Scenario and configuration fixtures
- Engine and estimator fixtures
- Signal and covariance generators built independently of the simulator
- Flask test client fixtures
"""

import pytest
import numpy as np
from typing import Sequence
from dataclasses import dataclass
import sys
import os

# Add src to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from subspace_doa.config import Parameters, EngineConfig, EstimatorConfig
from subspace_doa.engine import DoaEngine
from subspace_doa.eigen_solver import decompose, Subspaces
from subspace_doa.angle_estimator import AngleEstimator


# ==============================================================================
# Scenario Fixtures
# ==============================================================================

@pytest.fixture
def default_params() -> Parameters:
    """Default scenario."""
    return Parameters()


@pytest.fixture
def example_params() -> Parameters:
    """End-to-end example: 3 sources, 10 elements, 20 dB."""
    return Parameters(
        snapshots=300,
        array_elements=10,
        snr_db=20.0,
        source_angles=(20.0, 40.0, 60.0),
        array_spacing=0.5,
    )


@pytest.fixture
def high_snr_params() -> Parameters:
    """Two well separated sources at 60 dB."""
    return Parameters(
        snapshots=200,
        array_elements=8,
        snr_db=60.0,
        source_angles=(20.0, 60.0),
        array_spacing=0.5,
    )


@pytest.fixture
def sweep_params() -> Parameters:
    """Small scenario for fast comparison sweeps."""
    return Parameters(
        snapshots=100,
        array_elements=8,
        snr_db=10.0,
        source_angles=(20.0, 50.0),
        array_spacing=0.5,
    )


# ==============================================================================
# Configuration Fixtures
# ==============================================================================

@pytest.fixture
def default_engine_config() -> EngineConfig:
    """Default engine configuration."""
    return EngineConfig()


@pytest.fixture
def serial_engine_config() -> EngineConfig:
    """Engine configuration without thread pools."""
    return EngineConfig(parallel=False)


@pytest.fixture
def tls_engine_config() -> EngineConfig:
    """Engine configuration using TLS-ESPRIT."""
    return EngineConfig(estimator=EstimatorConfig(esprit_method="tls"))


# ==============================================================================
# Component Fixtures
# ==============================================================================

@pytest.fixture
def engine(default_engine_config) -> DoaEngine:
    """Create a DoaEngine instance."""
    return DoaEngine(default_engine_config)


@pytest.fixture
def serial_engine(serial_engine_config) -> DoaEngine:
    """Create a DoaEngine that runs everything inline."""
    return DoaEngine(serial_engine_config)


@pytest.fixture
def estimator_8() -> AngleEstimator:
    """AngleEstimator for an 8-element half-wavelength ULA."""
    return AngleEstimator(num_elements=8, spacing=0.5)


# ==============================================================================
# Signal Data Generators
# ==============================================================================

class SignalGenerator:
    """Generate array data for estimator tests without going through the simulator."""

    @staticmethod
    def manifold(angles_deg: Sequence[float], num_elements: int, spacing: float = 0.5) -> np.ndarray:
        """Steering matrix built element by element."""
        A = np.zeros((num_elements, len(angles_deg)), dtype=complex)
        for k, angle in enumerate(angles_deg):
            for i in range(num_elements):
                phase = 2 * np.pi * spacing * i * np.sin(np.radians(angle))
                A[i, k] = np.exp(1j * phase)
        return A

    @classmethod
    def exact_covariance(
        cls,
        angles_deg: Sequence[float],
        num_elements: int,
        noise_power: float = 1e-6,
        spacing: float = 0.5
    ) -> np.ndarray:
        """
        Asymptotic covariance A A^H + sigma^2 I for unit-power uncorrelated sources.

        Args:
            angles_deg: Source angles in degrees
            num_elements: Number of array elements
            noise_power: Noise variance per element
            spacing: Element spacing in wavelengths

        Returns:
            Hermitian covariance matrix (num_elements, num_elements)
        """
        A = cls.manifold(angles_deg, num_elements, spacing)
        return A @ A.conj().T + noise_power * np.eye(num_elements)

    @classmethod
    def subspaces(
        cls,
        angles_deg: Sequence[float],
        num_elements: int,
        noise_power: float = 1e-6,
        spacing: float = 0.5
    ) -> Subspaces:
        """Signal/noise subspaces of the exact covariance."""
        R = cls.exact_covariance(angles_deg, num_elements, noise_power, spacing)
        return decompose(R).split(len(angles_deg))

    @staticmethod
    def random_hermitian(size: int, seed: int = 0) -> np.ndarray:
        """Random Hermitian positive semidefinite matrix."""
        rng = np.random.default_rng(seed)
        B = rng.standard_normal((size, size)) + 1j * rng.standard_normal((size, size))
        return B @ B.conj().T / size


@pytest.fixture
def signal_generator() -> SignalGenerator:
    """Provide signal generator."""
    return SignalGenerator()


# ==============================================================================
# Flask Test Client Fixtures
# ==============================================================================

@pytest.fixture
def flask_app():
    """Create Flask test application."""
    from subspace_doa.server import create_app

    app = create_app({"engine": {"num_trials": 2}})
    app.config['TESTING'] = True
    return app


@pytest.fixture
def client(flask_app):
    """Create Flask test client."""
    return flask_app.test_client()


# ==============================================================================
# Performance Test Helpers
# ==============================================================================

@dataclass
class PerformanceResult:
    """Performance test result."""
    name: str
    iterations: int
    avg_time_ms: float
    max_time_ms: float


class PerformanceTimer:
    """Helper for performance measurements."""

    def __init__(self):
        self.times = []

    def record(self, time_ms: float):
        """Record a measurement."""
        self.times.append(time_ms)

    def result(self, name: str) -> PerformanceResult:
        """Get performance result."""
        times = np.array(self.times)
        return PerformanceResult(
            name=name,
            iterations=len(times),
            avg_time_ms=float(np.mean(times)),
            max_time_ms=float(np.max(times)),
        )


@pytest.fixture
def performance_timer() -> PerformanceTimer:
    """Provide performance timer."""
    return PerformanceTimer()


# ==============================================================================
# Pytest Configuration
# ==============================================================================

def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )
    config.addinivalue_line(
        "markers", "performance: marks tests as performance benchmarks"
    )
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests"
    )


def pytest_collection_modifyitems(config, items):
    """Modify test collection based on markers."""
    if config.getoption("-m"):
        # If marker specified, use default behavior
        return

    # Add skip marker to slow tests by default
    skip_slow = pytest.mark.skip(reason="slow test - use -m slow to run")
    for item in items:
        if "slow" in item.keywords:
            item.add_marker(skip_slow)
