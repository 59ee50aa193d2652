import math
import random

import numpy as np
import pytest

from showdown.discovery import PredictionPoint, generate_calibration_report
from showdown.discovery.calibration import MIN_PREDICTIVE_STD, gaussian_crps, residual_std


def test_perfect_predictions_have_zero_error():
    points = [PredictionPoint(predicted=v, actual=v) for v in (5.0, 10.0, 15.0)]
    report = generate_calibration_report(points, predictive_std=residual_std(points))

    assert report.mae == 0.0
    assert report.predictive_std == MIN_PREDICTIVE_STD
    assert report.p50_coverage == 100.0
    assert report.p80_coverage == 100.0
    assert not report.approximate


def test_well_calibrated_gaussian_errors():
    rng = random.Random(7)
    points = []
    for _ in range(2000):
        mu = rng.uniform(5, 25)
        points.append(PredictionPoint(predicted=mu, actual=rng.gauss(mu, 4.0)))

    report = generate_calibration_report(points, predictive_std=4.0)

    assert report.sample_size == 2000
    assert report.mae == pytest.approx(4.0 * math.sqrt(2 / math.pi), rel=0.08)
    assert report.p50_coverage == pytest.approx(50.0, abs=4.0)
    assert report.p80_coverage == pytest.approx(80.0, abs=4.0)
    assert report.pit_ks_pvalue > 0.001
    # Expected CRPS of a correctly specified normal is sigma / sqrt(pi).
    assert report.crps == pytest.approx(4.0 / math.sqrt(math.pi), rel=0.08)


def test_overconfident_spread_is_detected():
    rng = random.Random(11)
    points = [PredictionPoint(predicted=10.0, actual=rng.gauss(10.0, 6.0)) for _ in range(1000)]

    report = generate_calibration_report(points, predictive_std=1.0)

    assert report.p80_coverage < 40.0
    assert report.pit_ks_pvalue < 0.001


def test_missing_spread_is_estimated_and_flagged():
    points = [PredictionPoint(predicted=10.0, actual=a) for a in (8.0, 12.0, 9.0, 11.0)]
    report = generate_calibration_report(points)

    assert report.approximate
    assert report.mae == pytest.approx(1.5)
    assert report.predictive_std == pytest.approx(1.5 * math.sqrt(math.pi / 2))


def test_empty_points_report():
    report = generate_calibration_report([])

    assert report.sample_size == 0
    assert report.mae == 0.0
    assert report.crps is None


def test_gaussian_crps_matches_point_mass_limit():
    # Far from the mean, CRPS approaches the absolute error minus sigma / sqrt(pi).
    value = gaussian_crps(np.array([0.0]), 1.0, np.array([50.0]))[0]
    assert value == pytest.approx(50.0 - 1.0 / math.sqrt(math.pi), rel=1e-6)
