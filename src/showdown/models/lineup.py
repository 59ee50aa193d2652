"""Lineup container and signature helpers."""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from typing import Iterable, Tuple

from .player import Player


CAPTAIN_MULTIPLIER = 1.5

LineupSignature = Tuple[str, Tuple[str, ...]]


def lineup_signature(captain_id: str, other_ids: Iterable[str]) -> LineupSignature:
    """Canonical (captain, sorted others) key used to detect duplicate rosters."""

    return captain_id, tuple(sorted(other_ids))


@dataclass(frozen=True)
class Lineup:
    captain: Player
    others: Tuple[Player, ...]
    captain_multiplier: float = CAPTAIN_MULTIPLIER

    def __post_init__(self) -> None:
        ids = [player.player_id for player in self.players]
        if len(set(ids)) != len(ids):
            raise ValueError(f"Lineup repeats a player: {ids}")

    @property
    def players(self) -> Tuple[Player, ...]:
        return (self.captain, *self.others)

    @property
    def player_ids(self) -> Tuple[str, ...]:
        return tuple(player.player_id for player in self.players)

    @property
    def signature(self) -> LineupSignature:
        return lineup_signature(self.captain.player_id, (p.player_id for p in self.others))

    @property
    def salary(self) -> int:
        return sum(player.salary for player in self.players)

    @property
    def mean_score(self) -> float:
        return self.captain.mean_score * self.captain_multiplier + sum(p.mean_score for p in self.others)

    @property
    def ceiling_score(self) -> float:
        return self.captain.ceiling_score * self.captain_multiplier + sum(p.ceiling_score for p in self.others)

    @property
    def stack_signature(self) -> str:
        """Per-team player counts, largest first (e.g. ``"3-2"``)."""

        counts = Counter(player.team for player in self.players)
        return "-".join(str(count) for count in sorted(counts.values(), reverse=True))
