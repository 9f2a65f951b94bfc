"""
Accuracy scoring of estimated directions against ground truth

RMSE pairs sorted estimates with sorted truths. Estimators that return
fewer angles than there are sources are reconciled by padding: each
unmatched true angle is paired with the +-90 degree boundary farthest from
it, the worst error an estimate could have made. Surplus estimates (not
produced by the built-in estimators) are dropped, keeping the ones
nearest to the truth.
"""

import math
import numpy as np
from typing import Any, Dict, Iterable, List, Optional, Sequence

from .errors import ScoringError


def rmse(estimated: Sequence[float], truth: Sequence[float]) -> float:
    """
    Root-mean-square error between sorted estimate and truth sequences.

    Raises:
        ScoringError: if the sequences are empty or differ in length
    """
    est = sorted(float(a) for a in estimated)
    ref = sorted(float(a) for a in truth)

    if not ref:
        raise ScoringError("Cannot score an empty truth sequence")
    if len(est) != len(ref):
        raise ScoringError(
            f"{len(est)} estimate(s) cannot be paired with {len(ref)} true angle(s)"
        )

    errors = np.array(est) - np.array(ref)
    return float(np.sqrt(np.mean(errors ** 2)))


def _align_to_truth(
    est: List[float],
    ref: List[float],
    bound_deg: float
) -> List[float]:
    """One value per true angle, in truth order"""
    pairs = sorted(
        (abs(e - t), i, j) for i, e in enumerate(est) for j, t in enumerate(ref)
    )
    used_est = set()
    matched = {}
    for _, i, j in pairs:
        if i in used_est or j in matched:
            continue
        matched[j] = est[i]
        used_est.add(i)
        if len(matched) == min(len(est), len(ref)):
            break

    return [
        matched[j] if j in matched else (-bound_deg if t >= 0 else bound_deg)
        for j, t in enumerate(ref)
    ]


def reconcile_estimates(
    estimated: Sequence[float],
    truth: Sequence[float],
    bound_deg: float = 90.0
) -> List[float]:
    """
    Return len(truth) estimates, ascending.

    Estimates are matched greedily to their nearest true angle. True
    angles left unmatched receive the boundary value (+bound or -bound)
    farthest from them; estimates left unmatched are discarded.
    """
    est = [float(a) for a in estimated]
    ref = [float(a) for a in truth]

    if len(est) == len(ref):
        return sorted(est)
    return sorted(_align_to_truth(est, ref, bound_deg))


def score(
    estimated: Sequence[float],
    truth: Sequence[float],
    bound_deg: float = 90.0
) -> float:
    """
    RMSE after reconciling the estimate count with the truth count.

    With matching counts this is rmse(); otherwise every padded boundary
    value is scored against the true angle it stands in for.
    """
    est = [float(a) for a in estimated]
    ref = [float(a) for a in truth]

    if len(est) == len(ref):
        return rmse(est, ref)
    if not ref:
        raise ScoringError("Cannot score an empty truth sequence")

    errors = np.array(_align_to_truth(est, ref, bound_deg)) - np.array(ref)
    return float(np.sqrt(np.mean(errors ** 2)))


def mean_rmse(values: Iterable[float]) -> float:
    """Average of per-trial RMSE values, NaN when there are none"""
    values = [v for v in values if v is not None and not math.isnan(v)]
    if not values:
        return float("nan")
    return float(sum(values) / len(values))


def best_by_rmse(rmses: Dict[Any, float]) -> Optional[Any]:
    """Key with the lowest finite RMSE, first key wins ties"""
    best = None
    for key, value in rmses.items():
        if value is None or math.isnan(value):
            continue
        if best is None or value < rmses[best]:
            best = key
    return best
