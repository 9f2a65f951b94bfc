"""
DOA Estimation Engine

Runs MUSIC, Root-MUSIC and ESPRIT against one simulated dataset and
drives multi-trial parameter sweeps for comparing them.

Concurrency:
- The three estimators of a run share one covariance/eigendecomposition
  and execute on a thread pool, joined when results are collected.
- A comparison sweep is a (value x trial) grid. Every task gets its own
  random Generator spawned from a single SeedSequence and returns its own
  partial result; averaging happens afterwards on the calling thread, in
  input order.
"""

import logging
import math
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, replace
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple, TypeVar

import numpy as np

from .angle_estimator import AngleEstimator, EstimationMethod, SpectrumPoint
from .config import EngineConfig, Parameters, SweepParameter, parse_count, parse_number, parse_seed
from .covariance import sample_covariance
from .eigen_solver import decompose
from .errors import InvalidParameters
from .scoring import best_by_rmse, mean_rmse, score
from .signal_simulator import SeedLike, SignalSimulator

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")

ALGORITHMS: Tuple[EstimationMethod, ...] = (
    EstimationMethod.MUSIC,
    EstimationMethod.ROOT_MUSIC,
    EstimationMethod.ESPRIT,
)


@dataclass(frozen=True)
class DoaResult:
    """Outcome of one algorithm on one dataset"""
    algorithm: EstimationMethod
    estimated_angles: Tuple[float, ...]   # ascending, degrees
    rmse: float                           # degrees, after reconciliation
    execution_time_ms: float
    num_requested: int
    spectrum: Optional[Tuple[SpectrumPoint, ...]] = None
    warnings: Tuple[str, ...] = ()

    @property
    def is_partial(self) -> bool:
        return len(self.estimated_angles) < self.num_requested

    def to_dict(self) -> Dict[str, Any]:
        result = {
            "algorithm": self.algorithm.value,
            "estimatedAngles": list(self.estimated_angles),
            "rmse": self.rmse,
            "executionTime": self.execution_time_ms,
            "warnings": list(self.warnings),
        }
        if self.spectrum is not None:
            result["spectrum"] = [{"angle": p.angle, "power": p.power} for p in self.spectrum]
        return result


def _finite_or_none(value: float) -> Optional[float]:
    """NaN has no JSON encoding; report it as null"""
    return value if math.isfinite(value) else None


@dataclass(frozen=True)
class ComparisonRow:
    """Trial-averaged RMSE of each algorithm for one swept value"""
    parameter: SweepParameter
    value: float
    music_rmse: float
    root_music_rmse: float
    esprit_rmse: float
    trials: int
    failed_trials: int = 0

    def rmse_for(self, algorithm: EstimationMethod) -> float:
        return {
            EstimationMethod.MUSIC: self.music_rmse,
            EstimationMethod.ROOT_MUSIC: self.root_music_rmse,
            EstimationMethod.ESPRIT: self.esprit_rmse,
        }[algorithm]

    @property
    def best_algorithm(self) -> Optional[EstimationMethod]:
        return best_by_rmse({m: self.rmse_for(m) for m in ALGORITHMS})

    def to_dict(self) -> Dict[str, Any]:
        best = self.best_algorithm
        return {
            "parameter": self.parameter.value,
            "value": self.value,
            "musicRmse": _finite_or_none(self.music_rmse),
            "rootMusicRmse": _finite_or_none(self.root_music_rmse),
            "espritRmse": _finite_or_none(self.esprit_rmse),
            "trials": self.trials,
            "failedTrials": self.failed_trials,
            "bestAlgorithm": best.value if best else None,
        }


def best_algorithm(results: Sequence[DoaResult]) -> Optional[DoaResult]:
    """Lowest-RMSE result; the first one wins ties"""
    best = None
    for result in results:
        if math.isnan(result.rmse):
            continue
        if best is None or result.rmse < best.rmse:
            best = result
    return best


class DoaEngine:
    """
    DOA estimation engine

    Holds configuration and run statistics only; every call works on its
    own Parameters value and freshly allocated arrays.
    """

    def __init__(self, config: Optional[EngineConfig] = None):
        self.config = (config or EngineConfig()).validate()

        self._stats_lock = threading.Lock()
        self.stats = self._empty_stats()

        logger.info(
            f"DoaEngine initialized (trials={self.config.num_trials}, "
            f"esprit={self.config.estimator.esprit_method}, parallel={self.config.parallel})"
        )

    @staticmethod
    def _empty_stats() -> Dict[str, Any]:
        return {
            "runs": 0,
            "comparisons": 0,
            "trials": 0,
            "failed_trials": 0,
            "partial_results": 0,
        }

    # =========================================================================
    # Single run
    # =========================================================================

    def run_doa_estimation(
        self,
        params: Parameters,
        seed: SeedLike = None,
        rng: Optional[np.random.Generator] = None
    ) -> List[DoaResult]:
        """
        Simulate one dataset and run all three estimators on it

        Args:
            params: Scenario parameters (validated before anything runs)
            seed: Seed for a fresh Generator (ignored when rng is given)
            rng: Caller-owned Generator

        Returns:
            Results ordered MUSIC, Root-MUSIC, ESPRIT
        """
        params.validate()
        if not isinstance(seed, np.random.SeedSequence):
            seed = parse_seed(seed)
        X = SignalSimulator(seed=seed, rng=rng).simulate(params)
        return self._estimate_all(X, params, parallel=self.config.parallel)

    def estimate_from_snapshots(self, X: np.ndarray, params: Parameters) -> List[DoaResult]:
        """Run all three estimators on caller-supplied snapshots"""
        params.validate()
        return self._estimate_all(np.asarray(X), params, parallel=self.config.parallel)

    def _estimate_all(self, X: np.ndarray, params: Parameters, parallel: bool) -> List[DoaResult]:
        tol = self.config.hermitian_tolerance
        R = sample_covariance(X, tol)
        subspaces = decompose(R, tol).split(params.num_sources)
        estimator = AngleEstimator(params.array_elements, params.array_spacing, self.config.estimator)

        def run(method: EstimationMethod) -> DoaResult:
            start = time.perf_counter()
            estimate = estimator.estimate(subspaces, method)
            elapsed_ms = (time.perf_counter() - start) * 1000

            return DoaResult(
                algorithm=method,
                estimated_angles=estimate.angles_deg,
                rmse=score(estimate.angles_deg, params.source_angles, self.config.padding_bound_deg),
                execution_time_ms=elapsed_ms,
                num_requested=estimate.num_requested,
                spectrum=estimate.spectrum,
                warnings=estimate.warnings,
            )

        results = self._map(run, ALGORITHMS, parallel, max_workers=len(ALGORITHMS))

        with self._stats_lock:
            self.stats["runs"] += 1
            self.stats["partial_results"] += sum(1 for r in results if r.is_partial)

        logger.debug(
            "Run complete: " + ", ".join(
                f"{r.algorithm.value} rmse={r.rmse:.3f} ({r.execution_time_ms:.2f}ms)" for r in results
            )
        )
        return results

    # =========================================================================
    # Comparison sweep
    # =========================================================================

    def run_comparison_analysis(
        self,
        parameter,
        values: Sequence[float],
        base_params: Parameters,
        trials: Optional[int] = None,
        seed: SeedLike = None
    ) -> List[ComparisonRow]:
        """
        Sweep one parameter and average each algorithm's RMSE over trials

        Args:
            parameter: "snr", "snapshots", "arrayElements" or "sourceSpacing"
            values: Values to sweep, one output row each, same order
            base_params: Scenario the swept value is applied to
            trials: Independent simulations per value (default from config)
            seed: Root seed; the whole sweep is reproducible from it

        Returns:
            One ComparisonRow per value
        """
        sweep = SweepParameter.parse(parameter)
        trials = self.config.num_trials if trials is None else parse_count("trials", trials)
        if trials < 1:
            raise InvalidParameters(f"trials must be >= 1, got {trials}")
        if isinstance(values, (str, bytes)) or not isinstance(values, (Sequence, np.ndarray)):
            raise InvalidParameters(f"values must be a list of numbers, got {values!r}")

        scenarios = [self.apply_sweep_value(base_params, sweep, v).validate() for v in values]

        seed_seq = seed if isinstance(seed, np.random.SeedSequence) else np.random.SeedSequence(parse_seed(seed))
        child_seeds = seed_seq.spawn(len(scenarios) * trials)
        tasks = [
            (scenarios[i], child_seeds[i * trials + t])
            for i in range(len(scenarios))
            for t in range(trials)
        ]

        outcomes = self._map(
            lambda task: self._run_trial(*task),
            tasks,
            self.config.parallel,
            max_workers=self.config.max_workers,
        )

        rows = []
        for i, value in enumerate(values):
            chunk = outcomes[i * trials:(i + 1) * trials]
            succeeded = [o for o in chunk if o is not None]
            failed = len(chunk) - len(succeeded)

            if failed:
                logger.warning(f"{sweep.value}={value}: {failed}/{trials} trial(s) failed")

            rows.append(ComparisonRow(
                parameter=sweep,
                value=float(value),
                music_rmse=mean_rmse(o[EstimationMethod.MUSIC] for o in succeeded),
                root_music_rmse=mean_rmse(o[EstimationMethod.ROOT_MUSIC] for o in succeeded),
                esprit_rmse=mean_rmse(o[EstimationMethod.ESPRIT] for o in succeeded),
                trials=trials,
                failed_trials=failed,
            ))

        with self._stats_lock:
            self.stats["comparisons"] += 1
            self.stats["trials"] += len(tasks)
            self.stats["failed_trials"] += sum(r.failed_trials for r in rows)

        logger.info(f"Comparison over {sweep.value} complete: {len(rows)} value(s) x {trials} trial(s)")
        return rows

    def _run_trial(
        self,
        params: Parameters,
        seed: np.random.SeedSequence
    ) -> Optional[Dict[EstimationMethod, float]]:
        """One simulation and estimation; None if the numerics broke down"""
        try:
            X = SignalSimulator(seed=seed).simulate(params)
            results = self._estimate_all(X, params, parallel=False)
        except np.linalg.LinAlgError as e:
            logger.warning(f"Trial failed for {params}: {e}")
            return None

        return {r.algorithm: r.rmse for r in results}

    def apply_sweep_value(
        self,
        base_params: Parameters,
        sweep: SweepParameter,
        value: float
    ) -> Parameters:
        """Copy of base_params with the swept field replaced"""
        if sweep == SweepParameter.SNR:
            return replace(base_params, snr_db=parse_number(sweep.value, value))
        elif sweep == SweepParameter.SNAPSHOTS:
            return replace(base_params, snapshots=parse_count(sweep.value, value))
        elif sweep == SweepParameter.ARRAY_ELEMENTS:
            return replace(base_params, array_elements=parse_count(sweep.value, value))
        elif sweep == SweepParameter.SOURCE_SPACING:
            spacing = parse_number(sweep.value, value)
            if not spacing > 0:
                raise InvalidParameters(f"sourceSpacing must be > 0, got {value}")
            center = self.config.sweep_center_deg
            return replace(base_params, source_angles=(center - spacing, center, center + spacing))

        raise InvalidParameters(f"Unsupported sweep parameter: {sweep}")

    # =========================================================================
    # Helpers
    # =========================================================================

    @staticmethod
    def _map(
        fn: Callable[[T], R],
        items: Sequence[T],
        parallel: bool,
        max_workers: Optional[int] = None
    ) -> List[R]:
        """Ordered map, on a thread pool when parallel"""
        if not parallel or len(items) <= 1:
            return [fn(item) for item in items]

        with ThreadPoolExecutor(max_workers=max_workers) as pool:
            return list(pool.map(fn, items))

    def get_statistics(self) -> Dict[str, Any]:
        with self._stats_lock:
            return dict(self.stats)

    def reset_statistics(self):
        with self._stats_lock:
            self.stats = self._empty_stats()


# =============================================================================
# Module-level API
# =============================================================================

_default_engine: Optional[DoaEngine] = None
_default_engine_lock = threading.Lock()


def get_engine() -> DoaEngine:
    """Get or create the shared default engine"""
    global _default_engine
    with _default_engine_lock:
        if _default_engine is None:
            _default_engine = DoaEngine()
        return _default_engine


def run_doa_estimation(
    params: Parameters,
    config: Optional[EngineConfig] = None,
    seed: SeedLike = None,
    rng: Optional[np.random.Generator] = None
) -> List[DoaResult]:
    """Run MUSIC, Root-MUSIC and ESPRIT on one freshly simulated dataset"""
    engine = DoaEngine(config) if config is not None else get_engine()
    return engine.run_doa_estimation(params, seed=seed, rng=rng)


def run_comparison_analysis(
    parameter,
    values: Sequence[float],
    base_params: Parameters,
    trials: Optional[int] = None,
    seed: SeedLike = None,
    config: Optional[EngineConfig] = None
) -> List[ComparisonRow]:
    """Multi-trial sweep of one parameter; one row per value"""
    engine = DoaEngine(config) if config is not None else get_engine()
    return engine.run_comparison_analysis(parameter, values, base_params, trials=trials, seed=seed)
