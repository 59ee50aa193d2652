"""Historical game corpus records used as ground truth for discovery and backtests."""

from __future__ import annotations

from typing import Dict, List, Mapping, Optional

from pydantic import BaseModel, Field, model_validator
from pydantic.config import ConfigDict

from .player import Position


# Standard FanDuel offensive scoring.
FANDUEL_SCORING: Mapping[str, float] = {
    "pass_yds": 0.04,
    "pass_tds": 4.0,
    "interceptions": -1.0,
    "rush_yds": 0.1,
    "rush_tds": 6.0,
    "receptions": 0.5,
    "rec_yds": 0.1,
    "rec_tds": 6.0,
    "fumbles_lost": -2.0,
}


class RawStats(BaseModel):
    pass_yds: float = 0.0
    pass_tds: float = 0.0
    interceptions: float = 0.0
    rush_yds: float = 0.0
    rush_tds: float = 0.0
    receptions: float = 0.0
    rec_yds: float = 0.0
    rec_tds: float = 0.0
    fumbles_lost: float = 0.0

    model_config = ConfigDict(frozen=True, extra="forbid")

    def fantasy_points(self, scoring: Mapping[str, float] = FANDUEL_SCORING) -> float:
        return sum(getattr(self, key) * weight for key, weight in scoring.items())


class AdvancedStats(BaseModel):
    air_yards: Optional[float] = None
    red_zone_touches: Optional[float] = None
    target_share: Optional[float] = None
    rush_attempt_share: Optional[float] = None
    yards_per_route_run: Optional[float] = None
    adot: Optional[float] = None
    yards_after_catch: Optional[float] = None
    routes_run: Optional[float] = None
    avoided_tackles: Optional[float] = None
    yards_created_per_touch: Optional[float] = None
    play_action_pass_rate: Optional[float] = None
    time_to_throw: Optional[float] = None
    clean_pocket_completion: Optional[float] = None
    under_pressure_completion: Optional[float] = None
    deep_ball_completion: Optional[float] = None
    red_zone_conversion_rate: Optional[float] = None

    model_config = ConfigDict(frozen=True, extra="forbid")


class TeamMetrics(BaseModel):
    offensive_line_rank: Optional[float] = None
    defensive_line_rank: Optional[float] = None
    pass_rush_win_rate: Optional[float] = None
    run_stop_win_rate: Optional[float] = None
    secondary_coverage_rank: Optional[float] = None
    plays_per_game: Optional[float] = None
    neutral_situation_pace: Optional[float] = None
    neutral_situation_pass_rate: Optional[float] = None
    coaching_aggressiveness_score: Optional[float] = None
    turnover_differential: Optional[float] = None

    model_config = ConfigDict(frozen=True, extra="forbid")


class PregameContext(BaseModel):
    injuries: List[str] = Field(default_factory=list)
    vegas_line: str = ""
    advanced_team_metrics: Dict[str, TeamMetrics] = Field(default_factory=dict)
    strength_of_schedule: Optional[float] = None
    weather_factor: Optional[float] = None
    home_field_advantage_score: Optional[float] = None

    model_config = ConfigDict(frozen=True)


class HistoricalPlayerRecord(BaseModel):
    name: str = Field(..., min_length=1)
    team: str
    position: Position
    stats: RawStats = Field(default_factory=RawStats)
    advanced_stats: Optional[AdvancedStats] = None
    actual_fantasy_points: float = 0.0
    salary: Optional[int] = Field(default=None, ge=0)
    matchup_advantage_score: Optional[float] = None

    model_config = ConfigDict(frozen=True)

    @model_validator(mode="before")
    @classmethod
    def _score_from_stats(cls, data):
        if isinstance(data, dict) and data.get("actual_fantasy_points") is None:
            data = dict(data)
            stats = data.get("stats") or {}
            if not isinstance(stats, RawStats):
                stats = RawStats.model_validate(stats)
            data["actual_fantasy_points"] = round(stats.fantasy_points(), 2)
        return data


class HistoricalGame(BaseModel):
    """One cached past game; never mutated after creation."""

    game_id: str = Field(..., min_length=1)
    description: str = ""
    pregame_context: PregameContext = Field(default_factory=PregameContext)
    players: List[HistoricalPlayerRecord] = Field(default_factory=list)

    model_config = ConfigDict(frozen=True)

    @property
    def teams(self) -> List[str]:
        seen: list[str] = []
        for player in self.players:
            if player.team not in seen:
                seen.append(player.team)
        return seen

    def opponent_of(self, team: str) -> Optional[str]:
        for other in self.teams:
            if other != team:
                return other
        return None
