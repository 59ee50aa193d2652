"""Canonical data models shared by the optimizer, discovery and backtest layers."""

from .history import (
    AdvancedStats,
    HistoricalGame,
    HistoricalPlayerRecord,
    PregameContext,
    RawStats,
    TeamMetrics,
)
from .lineup import CAPTAIN_MULTIPLIER, Lineup, LineupSignature, lineup_signature
from .player import POSITIONS, Player, Position
from .tuning import CalibrationReport, ModelPerformance, StatWeights, TunedModel, ValidationReport

__all__ = [
    "AdvancedStats",
    "CAPTAIN_MULTIPLIER",
    "CalibrationReport",
    "HistoricalGame",
    "HistoricalPlayerRecord",
    "Lineup",
    "LineupSignature",
    "ModelPerformance",
    "POSITIONS",
    "Player",
    "Position",
    "PregameContext",
    "RawStats",
    "StatWeights",
    "TeamMetrics",
    "TunedModel",
    "ValidationReport",
    "lineup_signature",
]
