"""
Synthetic ULA snapshot generation

X = A @ S + N where A is the steering matrix of the true sources, S holds
unit-power circular complex Gaussian waveforms and N is circular complex
white noise scaled so that mean(|A @ S|^2) / noise_power matches the
requested SNR.
"""

import logging
import numpy as np
from dataclasses import dataclass
from typing import Optional, Union

from .array_model import steering_matrix
from .config import Parameters

logger = logging.getLogger(__name__)

SeedLike = Union[None, int, np.random.SeedSequence]


def _complex_gaussian(rng: np.random.Generator, shape, power: float) -> np.ndarray:
    """Circular complex Gaussian samples with E|x|^2 = power"""
    scale = np.sqrt(power / 2.0)
    return scale * (rng.standard_normal(shape) + 1j * rng.standard_normal(shape))


@dataclass(frozen=True)
class SimulatedData:
    """Snapshot matrix together with its noiseless part"""
    snapshots: np.ndarray                  # (array_elements, snapshots)
    noiseless: np.ndarray                  # A @ S
    signal_power: float
    noise_power: float

    @property
    def measured_snr_db(self) -> float:
        noise = self.snapshots - self.noiseless
        measured_noise = float(np.mean(np.abs(noise) ** 2))
        if measured_noise <= 0:
            return float("inf")
        return 10 * np.log10(self.signal_power / measured_noise)


class SignalSimulator:
    """
    Snapshot generator for a uniform linear array.

    Each simulator owns its random Generator; give concurrent tasks
    separate simulators (or separate seeds).
    """

    def __init__(
        self,
        seed: SeedLike = None,
        rng: Optional[np.random.Generator] = None
    ):
        self.rng = rng if rng is not None else np.random.default_rng(seed)

    def simulate(self, params: Parameters) -> np.ndarray:
        """Noisy snapshot matrix of shape (array_elements, snapshots)"""
        return self.simulate_with_truth(params).snapshots

    def simulate_with_truth(self, params: Parameters) -> SimulatedData:
        params.validate()
        N = params.array_elements
        K = params.num_sources
        T = params.snapshots

        A = steering_matrix(params.source_angles, N, params.array_spacing)
        S = _complex_gaussian(self.rng, (K, T), power=1.0)
        X0 = A @ S

        signal_power = float(np.mean(np.abs(X0) ** 2))
        noise_power = signal_power / (10 ** (params.snr_db / 10))
        X = X0 + _complex_gaussian(self.rng, (N, T), power=noise_power)

        logger.debug(
            f"Simulated {N}x{T} snapshots, {K} source(s), "
            f"signal_power={signal_power:.3f}, noise_power={noise_power:.3e}"
        )

        return SimulatedData(
            snapshots=X,
            noiseless=X0,
            signal_power=signal_power,
            noise_power=noise_power,
        )
