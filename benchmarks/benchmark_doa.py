"""
DOA Estimation Performance Benchmarks

Measures:
- MUSIC, Root-MUSIC and ESPRIT latency vs array size
- Covariance and eigendecomposition cost
- Accuracy (RMSE) vs SNR through the comparison sweep
"""

import sys
import time
import gc
import statistics
import json
import tracemalloc
from pathlib import Path
from dataclasses import dataclass
from typing import List, Dict, Any, Optional
import numpy as np

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from subspace_doa.angle_estimator import AngleEstimator
from subspace_doa.config import EngineConfig, Parameters
from subspace_doa.covariance import sample_covariance
from subspace_doa.eigen_solver import decompose
from subspace_doa.engine import ALGORITHMS, DoaEngine
from subspace_doa.scoring import score
from subspace_doa.signal_simulator import SignalSimulator


@dataclass
class DoaBenchmarkResult:
    """Benchmark result for one estimator at one array size"""
    name: str
    method: str
    array_elements: int
    iterations: int
    latencies_ms: List[float]
    memory_peak_mb: float
    rmse_values: List[float]

    @property
    def p50(self) -> float:
        sorted_latencies = sorted(self.latencies_ms)
        idx = int(len(sorted_latencies) * 0.50)
        return sorted_latencies[idx] if sorted_latencies else 0.0

    @property
    def p95(self) -> float:
        sorted_latencies = sorted(self.latencies_ms)
        idx = int(len(sorted_latencies) * 0.95)
        return sorted_latencies[min(idx, len(sorted_latencies) - 1)] if sorted_latencies else 0.0

    @property
    def p99(self) -> float:
        sorted_latencies = sorted(self.latencies_ms)
        idx = int(len(sorted_latencies) * 0.99)
        return sorted_latencies[min(idx, len(sorted_latencies) - 1)] if sorted_latencies else 0.0

    @property
    def mean_latency(self) -> float:
        return statistics.mean(self.latencies_ms) if self.latencies_ms else 0.0

    @property
    def mean_rmse_deg(self) -> float:
        return statistics.mean(self.rmse_values) if self.rmse_values else 0.0

    @property
    def throughput_ops(self) -> float:
        total_time = sum(self.latencies_ms) / 1000.0
        return self.iterations / total_time if total_time > 0 else 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "method": self.method,
            "array_elements": self.array_elements,
            "iterations": self.iterations,
            "latency_ms": {
                "p50": round(self.p50, 4),
                "p95": round(self.p95, 4),
                "p99": round(self.p99, 4),
                "mean": round(self.mean_latency, 4),
            },
            "throughput_ops": round(self.throughput_ops, 2),
            "mean_rmse_deg": round(self.mean_rmse_deg, 4),
            "memory_peak_mb": round(self.memory_peak_mb, 2),
        }


class DoaBenchmark:
    """Benchmark suite for the subspace estimators"""

    def __init__(self, warmup_iterations: int = 20, benchmark_iterations: int = 100, seed: int = 0):
        self.warmup_iterations = warmup_iterations
        self.benchmark_iterations = benchmark_iterations
        self.simulator = SignalSimulator(seed=seed)
        self.results: List[DoaBenchmarkResult] = []

    def _subspaces(self, params: Parameters):
        X = self.simulator.simulate(params)
        return decompose(sample_covariance(X)).split(params.num_sources)

    def benchmark_methods_vs_array_size(
        self,
        element_counts: List[int] = [6, 10, 16, 32, 64]
    ) -> List[DoaBenchmarkResult]:
        """Benchmark each estimator's latency vs array size"""
        print("\n[Benchmark] Estimators vs Array Size")
        print("-" * 60)

        results = []

        for num_elements in element_counts:
            params = Parameters(array_elements=num_elements, snr_db=20.0)
            estimator = AngleEstimator(num_elements, params.array_spacing)

            for method in ALGORITHMS:
                latencies = []
                errors = []

                # Warmup
                for _ in range(self.warmup_iterations):
                    estimator.estimate(self._subspaces(params), method)

                gc.collect()
                tracemalloc.start()

                for _ in range(self.benchmark_iterations):
                    subspaces = self._subspaces(params)

                    start = time.perf_counter()
                    estimate = estimator.estimate(subspaces, method)
                    end = time.perf_counter()

                    latencies.append((end - start) * 1000)
                    errors.append(score(estimate.angles_deg, params.source_angles))

                current, peak = tracemalloc.get_traced_memory()
                tracemalloc.stop()

                result = DoaBenchmarkResult(
                    name=f"{method.name.lower()}_{num_elements}_elements",
                    method=method.value,
                    array_elements=num_elements,
                    iterations=self.benchmark_iterations,
                    latencies_ms=latencies,
                    memory_peak_mb=peak / 1024 / 1024,
                    rmse_values=errors,
                )

                print(f"\n  {method.value}, {num_elements} elements:")
                self._print_result(result)
                results.append(result)
                self.results.append(result)

        return results

    def benchmark_decomposition(
        self,
        element_counts: List[int] = [6, 10, 16, 32, 64]
    ) -> Dict[int, Dict[str, float]]:
        """Benchmark covariance estimation and eigendecomposition"""
        print("\n[Benchmark] Covariance + Eigendecomposition")
        print("-" * 60)

        timings = {}

        for num_elements in element_counts:
            params = Parameters(array_elements=num_elements)
            cov_ms = []
            eig_ms = []

            for _ in range(self.benchmark_iterations):
                X = self.simulator.simulate(params)

                start = time.perf_counter()
                R = sample_covariance(X)
                mid = time.perf_counter()
                decompose(R)
                end = time.perf_counter()

                cov_ms.append((mid - start) * 1000)
                eig_ms.append((end - mid) * 1000)

            timings[num_elements] = {
                "covariance_ms": round(statistics.mean(cov_ms), 4),
                "eigh_ms": round(statistics.mean(eig_ms), 4),
            }
            print(f"  {num_elements:3d} elements: covariance={timings[num_elements]['covariance_ms']:.4f} ms, "
                  f"eigh={timings[num_elements]['eigh_ms']:.4f} ms")

        return timings

    def benchmark_snr_impact(
        self,
        snr_values: List[float] = [-5, 0, 5, 10, 15, 20, 25, 30],
        trials: int = 20
    ) -> Dict[str, Any]:
        """Benchmark accuracy vs SNR with the comparison sweep"""
        print("\n[Benchmark] Accuracy vs SNR")
        print("-" * 60)

        engine = DoaEngine(EngineConfig(num_trials=trials))
        rows = engine.run_comparison_analysis("snr", snr_values, Parameters(), seed=0)

        snr_results = {}
        for row in rows:
            snr_results[row.value] = {
                "music_rmse_deg": round(row.music_rmse, 4),
                "root_music_rmse_deg": round(row.root_music_rmse, 4),
                "esprit_rmse_deg": round(row.esprit_rmse, 4),
            }
            print(f"  SNR {row.value:5.1f} dB: MUSIC={row.music_rmse:.2f}, "
                  f"Root-MUSIC={row.root_music_rmse:.2f}, ESPRIT={row.esprit_rmse:.2f} deg")

        return snr_results

    def _print_result(self, result: DoaBenchmarkResult):
        """Print benchmark result"""
        print(f"    Latency: p50={result.p50:.4f}, p95={result.p95:.4f}, p99={result.p99:.4f} ms")
        print(f"    Throughput: {result.throughput_ops:.0f} ops/sec")
        print(f"    Accuracy: mean RMSE={result.mean_rmse_deg:.4f} deg")
        print(f"    Memory: {result.memory_peak_mb:.2f} MB (peak)")

    def get_summary(self) -> Dict[str, Any]:
        """Get summary of all benchmark results"""
        return {
            "benchmark": "doa_estimation",
            "timestamp": time.strftime("%Y-%m-%d %H:%M:%S"),
            "results": [r.to_dict() for r in self.results],
        }


def run_benchmarks(output_path: Optional[str] = None) -> Dict[str, Any]:
    """Run all DOA estimation benchmarks"""
    print("=" * 60)
    print("Subspace DOA Estimation Performance Benchmarks")
    print("=" * 60)

    benchmark = DoaBenchmark(warmup_iterations=10, benchmark_iterations=50)

    benchmark.benchmark_methods_vs_array_size()
    decomposition = benchmark.benchmark_decomposition()
    snr_results = benchmark.benchmark_snr_impact()

    summary = benchmark.get_summary()
    summary["decomposition"] = decomposition
    summary["snr_analysis"] = snr_results

    if output_path:
        with open(output_path, 'w') as f:
            json.dump(summary, f, indent=2)
        print(f"\nResults saved to: {output_path}")

    print("\n" + "=" * 60)
    print("Benchmark Complete")
    print("=" * 60)

    return summary


if __name__ == "__main__":
    output_file = Path(__file__).parent / "results" / "doa_results.json"
    output_file.parent.mkdir(exist_ok=True)
    run_benchmarks(str(output_file))
