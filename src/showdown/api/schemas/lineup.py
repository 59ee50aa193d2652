from __future__ import annotations

from typing import Dict, List

from pydantic import BaseModel, Field

from showdown.config import RosterConstraintSet, get_preset
from showdown.models import Player


class LineupRequest(BaseModel):
    players: List[Player] = Field(..., min_length=1)
    preset: str | None = None
    lineups: int = Field(default=20, ge=1, le=500)
    mode: str = "mean"
    salary_cap: int | None = Field(default=None, gt=0)
    roster_size: int | None = Field(default=None, ge=2)
    max_per_position: Dict[str, int] | None = None
    lock_player_ids: List[str] | None = None
    exclude_player_ids: List[str] | None = None
    require_captain_stack: bool | None = None
    require_opponent_bring_back: bool | None = None
    max_exposure: float | None = Field(default=None, ge=0.0, le=1.0)

    def constraints(self) -> RosterConstraintSet:
        """Preset (or default) constraints with any explicit fields applied on top."""

        overrides = {
            "salary_cap": self.salary_cap,
            "roster_size": self.roster_size,
            "max_per_position": self.max_per_position,
            "locked_player_ids": frozenset(self.lock_player_ids) if self.lock_player_ids else None,
            "excluded_player_ids": frozenset(self.exclude_player_ids) if self.exclude_player_ids else None,
            "require_captain_stack": self.require_captain_stack,
            "require_opponent_bring_back": self.require_opponent_bring_back,
        }
        changes = {key: value for key, value in overrides.items() if value is not None}
        if self.preset:
            return get_preset(self.preset).constraints(**changes)
        return RosterConstraintSet(**changes)


class LineupPlayerResponse(BaseModel):
    player_id: str
    name: str
    team: str
    position: str
    salary: int
    projection: float
    captain: bool = False


class LineupMetricsResponse(BaseModel):
    mean_score: float
    ceiling_score: float
    average_ownership: float
    ownership_product: float
    correlation_score: float
    average_correlation: float
    stack_signature: str
    duplication_risk: float
    expected_value: float
    leverage_score: float


class LineupResponse(BaseModel):
    lineup_id: str
    salary: int
    projection: float
    players: List[LineupPlayerResponse]
    metrics: LineupMetricsResponse


class PlayerUsageResponse(BaseModel):
    player_id: str
    name: str
    team: str
    count: int
    exposure: float


class LineupBatchResponse(BaseModel):
    lineups: List[LineupResponse]
    player_usage: List[PlayerUsageResponse]
    requested: int
    exhausted: bool = False
    message: str | None = None
