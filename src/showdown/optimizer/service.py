"""Repeated solving to build a unique, exposure-controlled set of lineups."""

from __future__ import annotations

import logging
import math
import time
from collections import Counter
from dataclasses import dataclass, field
from typing import Callable, Iterable, List, Optional, Sequence

from showdown.config import RosterConstraintSet, validate_pool
from showdown.models import Lineup, LineupSignature, Player
from showdown.scoring import ScoringMode

from .evaluator import LineupMetrics, evaluate_lineup
from .solver import LineupSolver


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LineupResult:
    lineup_id: str
    lineup: Lineup
    metrics: LineupMetrics

    @property
    def signature(self) -> LineupSignature:
        return self.lineup.signature


@dataclass
class GenerationResult:
    lineups: List[LineupResult]
    requested: int
    mode: ScoringMode
    exhausted: bool = False
    message: Optional[str] = None
    capped_player_ids: List[str] = field(default_factory=list)

    def player_usage(self, key: Callable[[Player], str] = lambda p: p.player_id) -> Counter:
        counts: Counter = Counter()
        for result in self.lineups:
            for player in result.lineup.players:
                counts[key(player)] += 1
        return counts


def _normalize_exposure(value: float | None) -> float | None:
    if value is None:
        return None
    if value < 0:
        return 0.0
    return value if value <= 1.0 else value / 100.0


def exposure_cap(max_exposure: float | None, n_lineups: int) -> Optional[int]:
    """Maximum lineups any non-locked player may appear in, or ``None`` for no cap."""

    fraction = _normalize_exposure(max_exposure)
    if fraction is None or fraction >= 1.0:
        return None
    return max(1, math.ceil(fraction * n_lineups))


def generate_lineups(
    players: Sequence[Player],
    constraints: RosterConstraintSet,
    *,
    n_lineups: int = 20,
    mode: ScoringMode | str = ScoringMode.MEAN,
    solver: LineupSolver | None = None,
    max_exposure: float | None = None,
    forbidden: Iterable[LineupSignature] = (),
) -> GenerationResult:
    """Generate up to ``n_lineups`` mutually unique lineups, best first.

    Each accepted lineup's signature is forbidden for the following solves.
    Running out of feasible or unique lineups ends the run early; it is not
    an error. Malformed input raises ``ConstraintValidationError``.
    """

    mode = ScoringMode.parse(mode)
    validate_pool(players, constraints)
    solver = solver or LineupSolver()
    n_lineups = max(0, n_lineups)

    seen: set[LineupSignature] = set(forbidden)
    usage: Counter = Counter()
    capped: set[str] = set()
    cap = exposure_cap(max_exposure, n_lineups)
    results: List[LineupResult] = []
    message: Optional[str] = None
    start_time = time.perf_counter()

    logger.info(
        "Starting lineup generation – requested=%s, pool=%s, mode=%s, max_exposure=%s",
        n_lineups,
        len(players),
        mode.value,
        "none" if cap is None else f"{cap} lineups",
    )

    for idx in range(n_lineups):
        lineup = solver.solve(players, constraints, mode, forbidden=seen, unavailable_ids=capped)
        if lineup is None:
            message = "No additional feasible unique lineups"
            if idx == 0:
                message = "No feasible lineup for these constraints"
            logger.info("Lineup generation stopped after %s/%s lineups: %s", idx, n_lineups, message)
            break

        seen.add(lineup.signature)
        result = LineupResult(lineup_id=f"L{idx + 1:03}", lineup=lineup, metrics=evaluate_lineup(lineup))
        results.append(result)

        if cap is not None:
            for pid in lineup.player_ids:
                usage[pid] += 1
                if usage[pid] >= cap and pid not in constraints.locked_player_ids:
                    capped.add(pid)

        elapsed = time.perf_counter() - start_time
        logger.info(
            "Built lineup %s/%s – projection %.2f, salary %s (elapsed %.2fs, avg %.2fs)",
            idx + 1,
            n_lineups,
            lineup.ceiling_score if mode is ScoringMode.CEILING else lineup.mean_score,
            lineup.salary,
            elapsed,
            elapsed / (idx + 1),
        )

    return GenerationResult(
        lineups=results,
        requested=n_lineups,
        mode=mode,
        exhausted=len(results) < n_lineups,
        message=message,
        capped_player_ids=sorted(capped),
    )
