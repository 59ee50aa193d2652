from __future__ import annotations

from pydantic import BaseModel, Field

from showdown.backtest import BacktestSettings


class BacktestRequest(BaseModel):
    settings: BacktestSettings = Field(default_factory=BacktestSettings)
    workers: int = Field(default=1, ge=1, le=32)
    limit: int | None = Field(default=None, ge=1)


class DiscoveryRequest(BaseModel):
    train_validate_split: float = Field(default=70.0, gt=0.0, lt=100.0)
    top_k_ensemble: int = Field(default=3, ge=1)
    seed: int = 1337
    promote: bool = True


class SeedGamesRequest(BaseModel):
    count: int = Field(default=64, ge=1, le=5760)
    seed: int = 42
