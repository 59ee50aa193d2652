"""Pydantic models for API I/O."""

from .lineup import (
    LineupBatchResponse,
    LineupMetricsResponse,
    LineupPlayerResponse,
    LineupRequest,
    LineupResponse,
    PlayerUsageResponse,
)
from .requests import BacktestRequest, DiscoveryRequest, SeedGamesRequest

__all__ = [
    "BacktestRequest",
    "DiscoveryRequest",
    "LineupBatchResponse",
    "LineupMetricsResponse",
    "LineupPlayerResponse",
    "LineupRequest",
    "LineupResponse",
    "PlayerUsageResponse",
    "SeedGamesRequest",
]
