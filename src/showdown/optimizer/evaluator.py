"""Derived lineup metrics: projections, ownership, correlation, leverage and a simple EV proxy."""

from __future__ import annotations

import math
from dataclasses import dataclass
from itertools import combinations

from showdown.models import Lineup


DEFAULT_FIELD_SIZE = 100_000
# Stand-in ownership fraction for 0%-owned players so the product never collapses to zero.
OWNERSHIP_EPSILON = 0.0001


@dataclass(frozen=True)
class LineupMetrics:
    mean_score: float
    ceiling_score: float
    salary: int
    average_ownership: float
    ownership_product: float
    correlation_score: float
    average_correlation: float
    stack_signature: str
    duplication_risk: float
    expected_value: float
    leverage_score: float


def evaluate_lineup(lineup: Lineup, *, field_size: int = DEFAULT_FIELD_SIZE) -> LineupMetrics:
    """Score a finished lineup; pure, so repeated calls return identical metrics."""

    slots = [(lineup.captain, lineup.captain.ownership_captain)]
    slots.extend((player, player.ownership_flex) for player in lineup.others)

    average_ownership = sum(own for _, own in slots) / len(slots)
    ownership_product = 1.0
    for _, own in slots:
        ownership_product *= (own / 100.0) or OWNERSHIP_EPSILON

    pairs = list(combinations(lineup.players, 2))
    correlation_score = sum(a.correlation_with(b) for a, b in pairs)
    average_correlation = correlation_score / len(pairs) if pairs else 0.0

    ceiling = lineup.ceiling_score
    duplication_risk = max(0.0, ownership_product * field_size - 1.0)
    expected_value = ceiling / (1.0 + math.sqrt(duplication_risk))
    leverage_score = sum(player.leverage for player in lineup.players) / len(lineup.players)

    return LineupMetrics(
        mean_score=lineup.mean_score,
        ceiling_score=ceiling,
        salary=lineup.salary,
        average_ownership=average_ownership,
        ownership_product=ownership_product,
        correlation_score=correlation_score,
        average_correlation=average_correlation,
        stack_signature=lineup.stack_signature,
        duplication_risk=duplication_risk,
        expected_value=expected_value,
        leverage_score=leverage_score,
    )
