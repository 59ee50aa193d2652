"""Scoring functions shared by the optimizer, discovery and backtest layers."""

from __future__ import annotations

from enum import Enum
from typing import Dict, Optional, Sequence

from showdown.models import HistoricalGame, HistoricalPlayerRecord, Player, StatWeights
from showdown.models.history import FANDUEL_SCORING, RawStats
from showdown.models.tuning import (
    ADVANCED_STAT_KEYS,
    CORRELATION_KEYS,
    GAME_CONTEXT_KEYS,
    OPPONENT_METRIC_KEYS,
    RAW_STAT_KEYS,
    TEAM_METRIC_KEYS,
)


class ScoringMode(str, Enum):
    MEAN = "mean"
    CEILING = "ceiling"

    @classmethod
    def parse(cls, value: "ScoringMode | str") -> "ScoringMode":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError as exc:
            raise ValueError(f"Unknown scoring mode {value!r}; expected 'mean' or 'ceiling'") from exc


def player_score(player: Player, mode: ScoringMode | str) -> float:
    """Projection the solver maximizes for ``player`` under ``mode``."""

    if ScoringMode.parse(mode) is ScoringMode.CEILING:
        return player.ceiling_score
    return player.mean_score


def fantasy_points(stats: RawStats) -> float:
    """FanDuel points for a raw box-score line."""

    return stats.fantasy_points(FANDUEL_SCORING)


def _skill_teammates(record: HistoricalPlayerRecord, game: HistoricalGame) -> Sequence[HistoricalPlayerRecord]:
    return [p for p in game.players if p.team == record.team and p.name != record.name]


def teammate_features(record: HistoricalPlayerRecord, game: HistoricalGame) -> Dict[str, float]:
    """Same-team quarterback and top-salaried teammate stats for a non-QB player.

    Quarterbacks get zeros.
    """

    features = dict.fromkeys(CORRELATION_KEYS, 0.0)
    if record.position == "QB":
        return features
    teammates = _skill_teammates(record, game)
    qb = next((p for p in teammates if p.position == "QB" and p.stats.pass_yds), None)
    if qb is not None:
        features["qb_pass_yds"] = qb.stats.pass_yds
        features["qb_rush_yds"] = qb.stats.rush_yds
    others = [p for p in teammates if p.position != "QB"]
    if others:
        top = max(others, key=lambda p: p.salary or 0)
        features["top_teammate_rec_yds"] = top.stats.rec_yds
        features["top_teammate_rush_yds"] = top.stats.rush_yds
        features["top_teammate_receptions"] = top.stats.receptions
    return features


def feature_value(
    key: str,
    record: HistoricalPlayerRecord,
    game: HistoricalGame,
    teammates: Optional[Dict[str, float]] = None,
) -> float:
    """Look a named feature up in player, team, game and teammate scope, in that order."""

    if key in RAW_STAT_KEYS:
        return float(getattr(record.stats, key))
    if key in ADVANCED_STAT_KEYS:
        value = getattr(record.advanced_stats, key) if record.advanced_stats else None
        if value is not None:
            return float(value)
    if key in TEAM_METRIC_KEYS:
        metrics = game.pregame_context.advanced_team_metrics.get(record.team)
        value = getattr(metrics, key) if metrics else None
        if value is not None:
            return float(value)
    if key in GAME_CONTEXT_KEYS:
        value = getattr(game.pregame_context, key)
        if value is not None:
            return float(value)
    if key in CORRELATION_KEYS:
        if teammates is None:
            teammates = teammate_features(record, game)
        return float(teammates[key])
    return 0.0


def feature_vector(
    record: HistoricalPlayerRecord,
    game: HistoricalGame,
    keys: Sequence[str],
) -> list[float]:
    teammates = teammate_features(record, game) if any(k in CORRELATION_KEYS for k in keys) else None
    return [feature_value(key, record, game, teammates) for key in keys]


def predict_points(record: HistoricalPlayerRecord, weights: StatWeights, game: HistoricalGame) -> float:
    """Apply ``weights`` to a historical player's stats and the game context."""

    keys = [key for key in StatWeights.keys() if getattr(weights, key)]
    teammates = teammate_features(record, game) if any(k in CORRELATION_KEYS for k in keys) else None
    score = 0.0
    for key in keys:
        score += feature_value(key, record, game, teammates) * getattr(weights, key)

    opponent = game.opponent_of(record.team)
    if opponent is not None:
        metrics = game.pregame_context.advanced_team_metrics.get(opponent)
        if metrics is not None:
            for key in OPPONENT_METRIC_KEYS:
                value = getattr(metrics, key)
                if value is not None:
                    score += value * getattr(weights, key)

    return score * (record.matchup_advantage_score or 1.0)


def project_from_stats(stats: RawStats, weights: StatWeights) -> float:
    """Project fantasy points from a stat-line projection using a tuned model's raw weights."""

    return sum(getattr(stats, key) * getattr(weights, key) for key in RAW_STAT_KEYS)
