"""Score candidate models against held-out historical games."""

from __future__ import annotations

import logging
from typing import Iterable, List, Sequence

from showdown.models import HistoricalGame, StatWeights, TunedModel
from showdown.scoring import predict_points

from .calibration import PredictionPoint, generate_calibration_report, mean_absolute_error, residual_std


logger = logging.getLogger(__name__)


def collect_predictions(weights: StatWeights, games: Iterable[HistoricalGame]) -> List[PredictionPoint]:
    """(predicted, actual) pairs for every player-game with a nonzero actual score."""

    points: List[PredictionPoint] = []
    for game in games:
        for record in game.players:
            if record.actual_fantasy_points == 0:
                continue
            points.append(
                PredictionPoint(
                    predicted=predict_points(record, weights, game),
                    actual=record.actual_fantasy_points,
                )
            )
    return points


def rank_models(models: Iterable[TunedModel]) -> List[TunedModel]:
    """Ascending validation MAE (unvalidated last); newest first on ties."""

    ordered = sorted(models, key=lambda m: m.created_at, reverse=True)
    return sorted(
        ordered,
        key=lambda m: (m.performance.validation_mae is None, m.performance.validation_mae or 0.0),
    )


def score_training_fit(model: TunedModel, games: Sequence[HistoricalGame]) -> TunedModel:
    """Annotate ``model`` with training MAE and the residual spread used for calibration."""

    points = collect_predictions(model.weights, games)
    performance = model.performance.model_copy(
        update={
            "mae": mean_absolute_error(points),
            "residual_std": residual_std(points),
            "games_simulated": len(games),
        }
    )
    return model.model_copy(update={"performance": performance})


def validate_models(models: Sequence[TunedModel], games: Sequence[HistoricalGame]) -> List[TunedModel]:
    """Return ``models`` with validation MAE and calibration filled in, best first."""

    validated: List[TunedModel] = []
    for model in models:
        points = collect_predictions(model.weights, games)
        calibration = generate_calibration_report(points, model.performance.residual_std)
        performance = model.performance.model_copy(
            update={"validation_mae": calibration.mae, "calibration": calibration}
        )
        validated.append(model.model_copy(update={"performance": performance}))
        logger.info(
            "Validated %s – MAE %.3f over %s player-games",
            model.name,
            calibration.mae,
            calibration.sample_size,
        )
    return rank_models(validated)
