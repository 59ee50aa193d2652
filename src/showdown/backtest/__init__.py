"""Backtesting the lineup generator against cached historical games."""

from .service import (
    BacktestGameResult,
    BacktestReport,
    BacktestSettings,
    PlayerExposure,
    ScoredLineup,
    build_pool_from_game,
    run_backtest,
    score_lineup_with_actuals,
)

__all__ = [
    "BacktestGameResult",
    "BacktestReport",
    "BacktestSettings",
    "PlayerExposure",
    "ScoredLineup",
    "build_pool_from_game",
    "run_backtest",
    "score_lineup_with_actuals",
]
