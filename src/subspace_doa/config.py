"""
Simulation parameters and engine configuration

Parameters is the immutable input of one engine run. EstimatorConfig and
EngineConfig hold tunables that do not change the physical scenario
(search grid, ESPRIT variant, trial count, worker pool).
"""

import math
import numbers
from dataclasses import dataclass, field, replace, asdict
from enum import Enum
from typing import Any, Dict, Optional, Tuple

from .errors import InvalidParameters

SPEED_OF_LIGHT = 299_792_458.0  # m/s


def parse_number(name: str, value) -> float:
    """Finite real number from a wire value; strings and booleans are rejected"""
    if isinstance(value, bool) or not isinstance(value, numbers.Real):
        raise InvalidParameters(f"{name} must be a number, got {value!r}")
    result = float(value)
    if not math.isfinite(result):
        raise InvalidParameters(f"{name} must be finite, got {value!r}")
    return result


def parse_count(name: str, value) -> int:
    """Integral number from a wire value (2.0 is accepted, 2.5 is not)"""
    number = parse_number(name, value)
    if number != int(number):
        raise InvalidParameters(f"{name} must be an integer, got {value!r}")
    return int(number)


def parse_seed(value) -> Optional[int]:
    """None or a non-negative integer seed"""
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, numbers.Integral) or value < 0:
        raise InvalidParameters(f"seed must be a non-negative integer, got {value!r}")
    return int(value)


class SweepParameter(Enum):
    """Parameter swept by the comparison analysis"""
    SNR = "snr"
    SNAPSHOTS = "snapshots"
    ARRAY_ELEMENTS = "arrayElements"
    SOURCE_SPACING = "sourceSpacing"

    @classmethod
    def parse(cls, name) -> "SweepParameter":
        """Accept an enum member, a wire name or a snake_case alias"""
        if isinstance(name, cls):
            return name
        aliases = {
            "snr_db": cls.SNR,
            "array_elements": cls.ARRAY_ELEMENTS,
            "source_spacing": cls.SOURCE_SPACING,
        }
        if name in aliases:
            return aliases[name]
        try:
            return cls(name)
        except ValueError:
            supported = ", ".join(p.value for p in cls)
            raise InvalidParameters(
                f"Unsupported sweep parameter {name!r} (supported: {supported})"
            ) from None


# Default sweep values per parameter
SWEEP_PRESETS: Dict[SweepParameter, Dict[str, Any]] = {
    SweepParameter.SNR: {
        "label": "Signal-to-Noise Ratio",
        "unit": "dB",
        "values": [0, 5, 10, 15, 20],
    },
    SweepParameter.SNAPSHOTS: {
        "label": "Number of Snapshots",
        "unit": "",
        "values": [50, 100, 200, 300, 500],
    },
    SweepParameter.ARRAY_ELEMENTS: {
        "label": "Array Elements",
        "unit": "",
        "values": [6, 8, 10, 12, 14],
    },
    SweepParameter.SOURCE_SPACING: {
        "label": "Source Spacing",
        "unit": "degrees",
        "values": [5, 10, 15, 20, 25],
    },
}


@dataclass(frozen=True)
class Parameters:
    """
    Physical scenario for one estimation run.

    Attributes:
        snapshots: Number of time samples per run
        array_elements: Number of ULA sensors
        snr_db: Per-element signal-to-noise ratio in dB
        source_angles: True directions of arrival in degrees, each in (-90, 90)
        carrier_freq: Carrier frequency in GHz (only used for metric conversions)
        array_spacing: Inter-element spacing in wavelengths
    """
    snapshots: int = 200
    array_elements: int = 10
    snr_db: float = 10.0
    source_angles: Tuple[float, ...] = (20.0, 40.0, 60.0)
    carrier_freq: float = 1.0
    array_spacing: float = 0.5

    def __post_init__(self):
        # Lists from callers become tuples so the value stays hashable
        object.__setattr__(self, "source_angles", tuple(float(a) for a in self.source_angles))

    @property
    def num_sources(self) -> int:
        return len(self.source_angles)

    @property
    def wavelength_m(self) -> float:
        return SPEED_OF_LIGHT / (self.carrier_freq * 1e9)

    @property
    def element_spacing_m(self) -> float:
        return self.array_spacing * self.wavelength_m

    def validate(self) -> "Parameters":
        """Raise InvalidParameters on any violated invariant; return self"""
        if isinstance(self.snapshots, bool) or int(self.snapshots) != self.snapshots or self.snapshots <= 0:
            raise InvalidParameters(f"snapshots must be a positive integer, got {self.snapshots}")
        if isinstance(self.array_elements, bool) or int(self.array_elements) != self.array_elements \
                or self.array_elements < 2:
            raise InvalidParameters(f"array_elements must be an integer >= 2, got {self.array_elements}")
        if not math.isfinite(self.snr_db):
            raise InvalidParameters(f"snr_db must be finite, got {self.snr_db}")
        if not self.source_angles:
            raise InvalidParameters("At least one source angle is required")
        for angle in self.source_angles:
            if not math.isfinite(angle) or not -90.0 < angle < 90.0:
                raise InvalidParameters(f"Source angle {angle} outside (-90, 90) degrees")
        if self.num_sources >= self.array_elements:
            raise InvalidParameters(
                f"{self.num_sources} sources need more than {self.array_elements} array elements"
            )
        if not self.array_spacing > 0:
            raise InvalidParameters(f"array_spacing must be > 0, got {self.array_spacing}")
        if not self.carrier_freq > 0:
            raise InvalidParameters(f"carrier_freq must be > 0, got {self.carrier_freq}")
        return self

    def with_overrides(self, **changes) -> "Parameters":
        return replace(self, **changes)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "snapshots": self.snapshots,
            "arrayElements": self.array_elements,
            "snr": self.snr_db,
            "sourceAngles": list(self.source_angles),
            "carrierFreq": self.carrier_freq,
            "arraySpacing": self.array_spacing,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any], base: Optional["Parameters"] = None) -> "Parameters":
        """
        Build Parameters from a wire dict.

        Missing keys fall back to base (or the defaults). Values that are not
        numbers, or counts that are not integral, raise InvalidParameters.
        """
        base = base or cls()
        angles = data.get("sourceAngles", base.source_angles)
        if isinstance(angles, (str, bytes)) or not isinstance(angles, (list, tuple)):
            raise InvalidParameters(f"sourceAngles must be a list of numbers, got {angles!r}")

        return cls(
            snapshots=parse_count("snapshots", data.get("snapshots", base.snapshots)),
            array_elements=parse_count("arrayElements", data.get("arrayElements", base.array_elements)),
            snr_db=parse_number("snr", data.get("snr", base.snr_db)),
            source_angles=tuple(parse_number("sourceAngles", a) for a in angles),
            carrier_freq=parse_number("carrierFreq", data.get("carrierFreq", base.carrier_freq)),
            array_spacing=parse_number("arraySpacing", data.get("arraySpacing", base.array_spacing)),
        )


@dataclass
class EstimatorConfig:
    """Angle estimator configuration"""
    # MUSIC search grid (degrees, inclusive)
    scan_range_deg: Tuple[float, float] = (0.0, 90.0)
    scan_step_deg: float = 1.0
    spectrum_epsilon: float = 1e-10        # MUSIC denominator floor

    # ESPRIT variant: "ls" (least squares) or "tls" (total least squares)
    esprit_method: str = "ls"

    # Rounding slack when mapping phases to angles
    unit_circle_tolerance: float = 1e-9

    def validate(self) -> "EstimatorConfig":
        low, high = self.scan_range_deg
        if not high > low:
            raise InvalidParameters(f"Empty scan range {self.scan_range_deg}")
        if low < -90.0 or high > 90.0:
            raise InvalidParameters(f"Scan range {self.scan_range_deg} exceeds [-90, 90]")
        if not self.scan_step_deg > 0:
            raise InvalidParameters(f"scan_step_deg must be > 0, got {self.scan_step_deg}")
        if self.esprit_method not in ("ls", "tls"):
            raise InvalidParameters(f"Unknown ESPRIT method {self.esprit_method!r}")
        return self


@dataclass
class EngineConfig:
    """Engine orchestration configuration"""
    estimator: EstimatorConfig = field(default_factory=EstimatorConfig)

    # Comparison sweep
    num_trials: int = 5
    sweep_center_deg: float = 40.0         # Middle source of the sourceSpacing layout

    # Scoring
    padding_bound_deg: float = 90.0        # Worst-case value for missing estimates

    # Numerics
    hermitian_tolerance: float = 1e-8

    # Execution
    parallel: bool = True
    max_workers: Optional[int] = None

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]] = None) -> "EngineConfig":
        data = dict(data or {})
        estimator = dict(data.pop("estimator", {}) or {})
        if "scan_range_deg" in estimator:
            estimator["scan_range_deg"] = tuple(estimator["scan_range_deg"])
        try:
            return cls(estimator=EstimatorConfig(**estimator), **data)
        except TypeError as e:
            raise InvalidParameters(f"Unknown configuration key: {e}") from e

    def to_dict(self) -> Dict[str, Any]:
        result = asdict(self)
        result["estimator"]["scan_range_deg"] = list(self.estimator.scan_range_deg)
        return result

    def validate(self) -> "EngineConfig":
        self.estimator.validate()
        if self.num_trials < 1:
            raise InvalidParameters(f"num_trials must be >= 1, got {self.num_trials}")
        if self.max_workers is not None and self.max_workers < 1:
            raise InvalidParameters(f"max_workers must be >= 1, got {self.max_workers}")
        return self
