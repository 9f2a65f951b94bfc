"""
Subspace Direction-of-Arrival Estimation for Uniform Linear Arrays

Estimates the bearings of multiple far-field narrowband sources from
synthetic array snapshots and compares three classical subspace methods:
- MUSIC pseudospectrum search
- Root-MUSIC polynomial rooting
- ESPRIT rotational invariance (LS and TLS)

Also provides RMSE scoring, multi-trial parameter sweeps (SNR, snapshots,
array size, source spacing) and a Flask REST API over the engine.

References:
- R. Schmidt, "Multiple emitter location and signal parameter estimation"
- A. Barabell, "Improving the resolution performance of eigenstructure-based
  direction-finding algorithms"
- R. Roy and T. Kailath, "ESPRIT - Estimation of Signal Parameters via
  Rotational Invariance Techniques"
"""

__version__ = "0.1.0"
__author__ = "Array Signal Processing Group"

from .errors import (
    DoaError,
    InvalidParameters,
    AlgebraError,
    DimensionMismatch,
    NotHermitian,
    InsufficientRank,
    ScoringError,
    ROOT_SELECTION_FAILURE,
    PEAK_SHORTFALL,
)
from .config import (
    Parameters,
    EstimatorConfig,
    EngineConfig,
    SweepParameter,
    SWEEP_PRESETS,
)
from .array_model import steering_vector, steering_matrix, phase_to_angle
from .signal_simulator import SignalSimulator, SimulatedData
from .covariance import sample_covariance, ensure_hermitian
from .eigen_solver import EigenDecomposition, Subspaces, decompose
from .angle_estimator import AngleEstimator, AngleEstimate, EstimationMethod, SpectrumPoint
from .scoring import rmse, reconcile_estimates, score
from .engine import (
    DoaEngine,
    DoaResult,
    ComparisonRow,
    best_algorithm,
    run_doa_estimation,
    run_comparison_analysis,
)
from .server import DoaService, create_app

__all__ = [
    # Errors
    "DoaError",
    "InvalidParameters",
    "AlgebraError",
    "DimensionMismatch",
    "NotHermitian",
    "InsufficientRank",
    "ScoringError",
    "ROOT_SELECTION_FAILURE",
    "PEAK_SHORTFALL",
    # Configuration
    "Parameters",
    "EstimatorConfig",
    "EngineConfig",
    "SweepParameter",
    "SWEEP_PRESETS",
    # Array model and simulation
    "steering_vector",
    "steering_matrix",
    "phase_to_angle",
    "SignalSimulator",
    "SimulatedData",
    # Covariance and subspaces
    "sample_covariance",
    "ensure_hermitian",
    "EigenDecomposition",
    "Subspaces",
    "decompose",
    # Estimators (MUSIC/Root-MUSIC/ESPRIT)
    "AngleEstimator",
    "AngleEstimate",
    "EstimationMethod",
    "SpectrumPoint",
    # Scoring and orchestration
    "rmse",
    "reconcile_estimates",
    "score",
    "DoaEngine",
    "DoaResult",
    "ComparisonRow",
    "best_algorithm",
    "run_doa_estimation",
    "run_comparison_analysis",
    # Server
    "DoaService",
    "create_app",
]
