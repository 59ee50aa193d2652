"""Accuracy and distributional-calibration metrics for point-plus-spread predictions.

Each prediction is treated as a Normal(predicted, sigma) forecast, where sigma
is the spread of the model's training residuals. That gives closed-form CRPS,
probability-integral-transform (PIT) values and central-interval coverage
instead of point-estimate heuristics.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Optional, Sequence

import numpy as np
from scipy import stats

from showdown.models import CalibrationReport


MIN_PREDICTIVE_STD = 0.5
_Z_P50 = float(stats.norm.ppf(0.75))
_Z_P80 = float(stats.norm.ppf(0.90))


@dataclass(frozen=True)
class PredictionPoint:
    predicted: float
    actual: float


def mean_absolute_error(points: Sequence[PredictionPoint]) -> float:
    if not points:
        return 0.0
    return sum(abs(p.predicted - p.actual) for p in points) / len(points)


def residual_std(points: Sequence[PredictionPoint]) -> float:
    """Root-mean-square residual, used as the predictive spread of a fitted model."""

    if not points:
        return MIN_PREDICTIVE_STD
    rms = math.sqrt(sum((p.actual - p.predicted) ** 2 for p in points) / len(points))
    return max(MIN_PREDICTIVE_STD, rms)


def gaussian_crps(mu: np.ndarray, sigma: float, observed: np.ndarray) -> np.ndarray:
    z = (observed - mu) / sigma
    return sigma * (z * (2.0 * stats.norm.cdf(z) - 1.0) + 2.0 * stats.norm.pdf(z) - 1.0 / math.sqrt(math.pi))


def generate_calibration_report(
    points: Sequence[PredictionPoint],
    predictive_std: Optional[float] = None,
) -> CalibrationReport:
    """Build a calibration report for ``points``.

    Without a ``predictive_std`` from training, the spread is backed out of the
    sample's own MAE (for a normal error, MAE = sigma * sqrt(2/pi)) and the
    report is flagged ``approximate``.
    """

    mae = mean_absolute_error(points)
    if not points:
        return CalibrationReport(mae=mae, sample_size=0, approximate=predictive_std is None)

    approximate = predictive_std is None
    sigma = predictive_std if predictive_std is not None else mae * math.sqrt(math.pi / 2.0)
    sigma = max(MIN_PREDICTIVE_STD, float(sigma))

    mu = np.array([p.predicted for p in points], dtype=float)
    observed = np.array([p.actual for p in points], dtype=float)
    z = (observed - mu) / sigma

    crps = float(np.mean(gaussian_crps(mu, sigma, observed)))
    pit = stats.norm.cdf(z)
    pit_ks_pvalue = float(stats.kstest(pit, "uniform").pvalue)
    p50_coverage = float(np.mean(np.abs(z) <= _Z_P50) * 100.0)
    p80_coverage = float(np.mean(np.abs(z) <= _Z_P80) * 100.0)

    return CalibrationReport(
        mae=mae,
        crps=crps,
        pit_ks_pvalue=pit_ks_pvalue,
        p50_coverage=p50_coverage,
        p80_coverage=p80_coverage,
        predictive_std=sigma,
        sample_size=len(points),
        approximate=approximate,
    )
