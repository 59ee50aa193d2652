"""Scoring-weight models and their validation reports."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Iterable, List, Mapping, Optional
from uuid import uuid4

from pydantic import BaseModel, Field
from pydantic.config import ConfigDict

from .history import FANDUEL_SCORING, AdvancedStats, RawStats, TeamMetrics


RAW_STAT_KEYS: tuple[str, ...] = tuple(RawStats.model_fields)
ADVANCED_STAT_KEYS: tuple[str, ...] = tuple(AdvancedStats.model_fields)
TEAM_METRIC_KEYS: tuple[str, ...] = tuple(TeamMetrics.model_fields)
GAME_CONTEXT_KEYS: tuple[str, ...] = (
    "strength_of_schedule",
    "weather_factor",
    "home_field_advantage_score",
)
CORRELATION_KEYS: tuple[str, ...] = (
    "qb_pass_yds",
    "qb_rush_yds",
    "top_teammate_rec_yds",
    "top_teammate_rush_yds",
    "top_teammate_receptions",
)
# Opponent defensive ranks are weighted a second time against the opponent's metrics.
OPPONENT_METRIC_KEYS: tuple[str, ...] = ("defensive_line_rank", "secondary_coverage_rank")


class StatWeights(BaseModel):
    """Signed coefficient per named feature; anything unspecified contributes 0."""

    # Raw box-score stats
    pass_yds: float = 0.0
    pass_tds: float = 0.0
    interceptions: float = 0.0
    rush_yds: float = 0.0
    rush_tds: float = 0.0
    receptions: float = 0.0
    rec_yds: float = 0.0
    rec_tds: float = 0.0
    fumbles_lost: float = 0.0
    # Advanced player metrics
    air_yards: float = 0.0
    red_zone_touches: float = 0.0
    target_share: float = 0.0
    rush_attempt_share: float = 0.0
    yards_per_route_run: float = 0.0
    adot: float = 0.0
    yards_after_catch: float = 0.0
    routes_run: float = 0.0
    avoided_tackles: float = 0.0
    yards_created_per_touch: float = 0.0
    play_action_pass_rate: float = 0.0
    time_to_throw: float = 0.0
    clean_pocket_completion: float = 0.0
    under_pressure_completion: float = 0.0
    deep_ball_completion: float = 0.0
    red_zone_conversion_rate: float = 0.0
    # Team metrics
    offensive_line_rank: float = 0.0
    defensive_line_rank: float = 0.0
    pass_rush_win_rate: float = 0.0
    run_stop_win_rate: float = 0.0
    secondary_coverage_rank: float = 0.0
    plays_per_game: float = 0.0
    neutral_situation_pace: float = 0.0
    neutral_situation_pass_rate: float = 0.0
    coaching_aggressiveness_score: float = 0.0
    turnover_differential: float = 0.0
    # Game context
    strength_of_schedule: float = 0.0
    weather_factor: float = 0.0
    home_field_advantage_score: float = 0.0
    # Teammate correlation
    qb_pass_yds: float = 0.0
    qb_rush_yds: float = 0.0
    top_teammate_rec_yds: float = 0.0
    top_teammate_rush_yds: float = 0.0
    top_teammate_receptions: float = 0.0

    model_config = ConfigDict(frozen=True, extra="forbid")

    @classmethod
    def fanduel(cls) -> "StatWeights":
        return cls(**FANDUEL_SCORING)

    @classmethod
    def keys(cls) -> tuple[str, ...]:
        return tuple(cls.model_fields)

    def merged(self, coefficients: Mapping[str, float]) -> "StatWeights":
        """Return a copy with ``coefficients`` laid over these weights."""

        return self.model_copy(update=dict(coefficients))

    @classmethod
    def average(cls, weights_list: Iterable["StatWeights"]) -> "StatWeights":
        items = list(weights_list)
        if not items:
            raise ValueError("Cannot average an empty list of weights")
        return cls(
            **{key: sum(getattr(w, key) for w in items) / len(items) for key in cls.model_fields}
        )


ALL_WEIGHT_KEYS: tuple[str, ...] = StatWeights.keys()


class CalibrationReport(BaseModel):
    mae: float
    crps: Optional[float] = None
    pit_ks_pvalue: Optional[float] = None
    p50_coverage: Optional[float] = None
    p80_coverage: Optional[float] = None
    predictive_std: Optional[float] = None
    sample_size: int = 0
    approximate: bool = False

    model_config = ConfigDict(frozen=True)


class ModelPerformance(BaseModel):
    mae: float = 0.0
    residual_std: Optional[float] = None
    validation_mae: Optional[float] = None
    calibration: Optional[CalibrationReport] = None
    games_simulated: Optional[int] = None

    model_config = ConfigDict(frozen=True)


def _new_model_id(name: str) -> str:
    slug = "_".join(name.lower().replace("(", "").replace(")", "").split())
    return f"{slug}_{uuid4().hex[:8]}"


class TunedModel(BaseModel):
    id: str
    name: str
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    weights: StatWeights
    source_description: str = ""
    performance: ModelPerformance = Field(default_factory=ModelPerformance)
    game_script: Optional[str] = None

    model_config = ConfigDict(frozen=True)

    @classmethod
    def create(cls, name: str, weights: StatWeights, source_description: str = "", **kwargs) -> "TunedModel":
        return cls(id=_new_model_id(name), name=name, weights=weights, source_description=source_description, **kwargs)


class ValidationReport(BaseModel):
    training_set_size: int
    validation_set_size: int
    models: List[TunedModel] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)
    cancelled: bool = False
