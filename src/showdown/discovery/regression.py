"""Fit candidate scoring models from historical box scores by least squares."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Protocol, Sequence, Tuple

import numpy as np

from showdown.models import HistoricalGame, StatWeights, TunedModel
from showdown.models.tuning import (
    ADVANCED_STAT_KEYS,
    CORRELATION_KEYS,
    GAME_CONTEXT_KEYS,
    RAW_STAT_KEYS,
    TEAM_METRIC_KEYS,
)
from showdown.scoring import feature_vector

from .validator import score_training_fit


logger = logging.getLogger(__name__)

DEFAULT_TOP_K_ENSEMBLE = 3
SABERMETRIC_KEYS: tuple[str, ...] = ADVANCED_STAT_KEYS + TEAM_METRIC_KEYS + GAME_CONTEXT_KEYS
CORRELATION_MODEL_KEYS: tuple[str, ...] = RAW_STAT_KEYS + CORRELATION_KEYS


class HindsightSource(Protocol):
    """External supplier of a hindsight-optimal weight vector for one game.

    Implementations may call out to other services and may raise; failures
    only drop the averaged hindsight candidate.
    """

    def hindsight_weights(self, game: HistoricalGame) -> StatWeights:
        ...


@dataclass
class DiscoveryOutcome:
    models: List[TunedModel] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)


def build_feature_matrix(
    games: Sequence[HistoricalGame],
    keys: Sequence[str],
) -> Tuple[np.ndarray, np.ndarray]:
    """Rows for every scoring player with at least one nonzero feature."""

    rows: List[List[float]] = []
    targets: List[float] = []
    for game in games:
        for record in game.players:
            if record.actual_fantasy_points <= 0:
                continue
            features = feature_vector(record, game, keys)
            if any(value != 0 for value in features):
                rows.append(features)
                targets.append(record.actual_fantasy_points)
    return np.array(rows, dtype=float).reshape(len(rows), len(keys)), np.array(targets, dtype=float)


def build_correlation_feature_matrix(games: Sequence[HistoricalGame]) -> Tuple[np.ndarray, np.ndarray]:
    """Skill players' own raw stats plus their quarterback's and top teammate's."""

    rows: List[List[float]] = []
    targets: List[float] = []
    for game in games:
        for record in game.players:
            if record.actual_fantasy_points <= 0 or record.position == "QB":
                continue
            rows.append(feature_vector(record, game, CORRELATION_MODEL_KEYS))
            targets.append(record.actual_fantasy_points)
    width = len(CORRELATION_MODEL_KEYS)
    return np.array(rows, dtype=float).reshape(len(rows), width), np.array(targets, dtype=float)


def fit_coefficients(X: np.ndarray, y: np.ndarray, keys: Sequence[str]) -> Optional[Dict[str, float]]:
    """Ordinary least squares without intercept; ``None`` when rows do not exceed features."""

    if X.shape[0] <= len(keys):
        return None
    coefficients, *_ = np.linalg.lstsq(X, y, rcond=None)
    return {key: (0.0 if not np.isfinite(value) else float(value)) for key, value in zip(keys, coefficients)}


def _fit_candidate(
    name: str,
    description: str,
    X: np.ndarray,
    y: np.ndarray,
    keys: Sequence[str],
    warnings: List[str],
) -> Optional[TunedModel]:
    try:
        coefficients = fit_coefficients(X, y, keys)
    except np.linalg.LinAlgError as exc:
        message = f"{name}: regression failed ({exc})"
        logger.warning("%s", message)
        warnings.append(message)
        return None
    if coefficients is None:
        message = f"{name}: skipped, {X.shape[0]} usable rows for {len(keys)} features"
        logger.warning("%s", message)
        warnings.append(message)
        return None
    logger.info("Fitted %s on %s rows", name, X.shape[0])
    return TunedModel.create(
        name,
        StatWeights().merged(coefficients),
        source_description=description.format(rows=X.shape[0]),
    )


def average_hindsight_weights(
    games: Sequence[HistoricalGame],
    source: HindsightSource,
    warnings: List[str],
) -> Optional[TunedModel]:
    collected: List[StatWeights] = []
    for game in games:
        try:
            collected.append(source.hindsight_weights(game))
        except Exception as exc:  # noqa: BLE001 - logged and recorded as a warning
            message = f"Hindsight model unavailable for {game.game_id}: {exc}"
            logger.warning("%s", message)
            warnings.append(message)
    if not collected:
        return None
    return TunedModel.create(
        "Averaged Hindsight Model",
        StatWeights.average(collected),
        source_description=f"Averaged from {len(collected)} externally analyzed games.",
    )


def discover_models(
    training_games: Sequence[HistoricalGame],
    *,
    hindsight: HindsightSource | None = None,
    top_k_ensemble: int = DEFAULT_TOP_K_ENSEMBLE,
) -> DiscoveryOutcome:
    """Fit every candidate model the training games support, plus an ensemble."""

    outcome = DiscoveryOutcome()
    candidates: List[Optional[TunedModel]] = []

    X, y = build_feature_matrix(training_games, RAW_STAT_KEYS)
    candidates.append(
        _fit_candidate(
            "Master Quant Model",
            "Regression on raw box-score stats from {rows} player-games.",
            X, y, RAW_STAT_KEYS, outcome.warnings,
        )
    )

    X, y = build_feature_matrix(training_games, SABERMETRIC_KEYS)
    candidates.append(
        _fit_candidate(
            "Sabermetric Synthesis Model",
            "Regression on advanced player, team and game metrics from {rows} player-games.",
            X, y, SABERMETRIC_KEYS, outcome.warnings,
        )
    )

    X, y = build_correlation_feature_matrix(training_games)
    candidates.append(
        _fit_candidate(
            "Correlation-Infused Quant Model",
            "Regression on raw stats plus quarterback and top-teammate stats from {rows} player-games.",
            X, y, CORRELATION_MODEL_KEYS, outcome.warnings,
        )
    )

    if hindsight is not None:
        candidates.append(average_hindsight_weights(training_games, hindsight, outcome.warnings))

    models = [score_training_fit(model, training_games) for model in candidates if model is not None]

    if len(models) >= 2 and top_k_ensemble > 0:
        top = sorted(models, key=lambda m: m.performance.mae)[:top_k_ensemble]
        ensemble = TunedModel.create(
            f"Ensemble Super Model (Top {len(top)})",
            StatWeights.average(m.weights for m in top),
            source_description=f"Average of the top {len(top)} candidates by training MAE: "
            + ", ".join(m.name for m in top),
        )
        models.append(score_training_fit(ensemble, training_games))

    outcome.models = models
    return outcome
