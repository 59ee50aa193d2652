"""Lineup optimization built on a PuLP mixed-integer program."""

from .evaluator import LineupMetrics, evaluate_lineup
from .service import GenerationResult, LineupResult, exposure_cap, generate_lineups
from .solver import LineupSolver, SolverSettings

__all__ = [
    "GenerationResult",
    "LineupMetrics",
    "LineupResult",
    "LineupSolver",
    "SolverSettings",
    "evaluate_lineup",
    "exposure_cap",
    "generate_lineups",
]
