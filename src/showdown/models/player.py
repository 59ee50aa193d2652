"""Canonical player model consumed by the optimizer."""

from __future__ import annotations

from typing import Dict, Literal, Optional, get_args

from pydantic import BaseModel, Field
from pydantic.config import ConfigDict


Position = Literal["QB", "RB", "WR", "TE", "K", "D"]
POSITIONS: tuple[str, ...] = get_args(Position)


class Player(BaseModel):
    """Enriched player payload, immutable for the duration of a solve."""

    player_id: str = Field(..., min_length=1)
    name: str
    team: str
    opponent: Optional[str] = None
    position: Position
    salary: int = Field(..., ge=0)
    mean_score: float
    ceiling_score: float
    ownership_flex: float = Field(default=0.0, ge=0.0, le=100.0)
    ownership_captain: float = Field(default=0.0, ge=0.0, le=100.0)
    leverage: float = Field(default=0.0, ge=0.0, le=100.0)
    correlations: Dict[str, float] = Field(default_factory=dict)

    model_config = ConfigDict(frozen=True)

    def correlation_with(self, other: "Player") -> float:
        """Correlation with ``other``, looked up from either side."""

        value = self.correlations.get(other.player_id)
        if value is None:
            value = other.correlations.get(self.player_id, 0.0)
        return float(value)
