"""Model discovery, validation and calibration against the historical corpus."""

from .calibration import PredictionPoint, generate_calibration_report
from .pipeline import DiscoveryError, DiscoveryParams, run_discovery, split_games
from .regression import DiscoveryOutcome, HindsightSource, discover_models
from .validator import collect_predictions, rank_models, validate_models

__all__ = [
    "DiscoveryError",
    "DiscoveryOutcome",
    "DiscoveryParams",
    "HindsightSource",
    "PredictionPoint",
    "collect_predictions",
    "discover_models",
    "generate_calibration_report",
    "rank_models",
    "run_discovery",
    "split_games",
    "validate_models",
]
