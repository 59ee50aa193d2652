"""Roster constraints for the Showdown (captain + flex) format."""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import Dict, FrozenSet, Iterable, Mapping, Sequence

from showdown.models import CAPTAIN_MULTIPLIER, POSITIONS, Player


DEFAULT_SALARY_CAP = 60_000
DEFAULT_ROSTER_SIZE = 5
DEFAULT_POSITION_CAPS: Mapping[str, int] = MappingProxyType({"K": 1, "D": 1})


class ConstraintValidationError(ValueError):
    """Raised for malformed pools or constraint sets, before any solver work."""


@dataclass(frozen=True)
class RosterConstraintSet:
    salary_cap: int = DEFAULT_SALARY_CAP
    roster_size: int = DEFAULT_ROSTER_SIZE
    max_per_position: Mapping[str, int] = field(default_factory=lambda: dict(DEFAULT_POSITION_CAPS))
    locked_player_ids: FrozenSet[str] = frozenset()
    excluded_player_ids: FrozenSet[str] = frozenset()
    require_captain_stack: bool = False
    require_opponent_bring_back: bool = False
    captain_multiplier: float = CAPTAIN_MULTIPLIER

    def __post_init__(self) -> None:
        object.__setattr__(self, "locked_player_ids", frozenset(self.locked_player_ids or ()))
        object.__setattr__(self, "excluded_player_ids", frozenset(self.excluded_player_ids or ()))
        object.__setattr__(self, "max_per_position", dict(self.max_per_position or {}))

    def validate(self) -> None:
        if self.salary_cap <= 0:
            raise ConstraintValidationError(f"salary_cap must be positive, got {self.salary_cap}")
        if self.roster_size < 2:
            raise ConstraintValidationError(f"roster_size must be at least 2, got {self.roster_size}")
        if self.captain_multiplier < 1.0:
            raise ConstraintValidationError(
                f"captain_multiplier must be >= 1.0, got {self.captain_multiplier}"
            )
        overlap = self.locked_player_ids & self.excluded_player_ids
        if overlap:
            raise ConstraintValidationError(
                f"Players cannot be both locked and excluded: {', '.join(sorted(overlap))}"
            )
        if len(self.locked_player_ids) > self.roster_size:
            raise ConstraintValidationError(
                f"{len(self.locked_player_ids)} locked players exceed roster size {self.roster_size}"
            )
        for position, cap in self.max_per_position.items():
            if position not in POSITIONS:
                raise ConstraintValidationError(f"Unknown position {position!r} in max_per_position")
            if cap < 0:
                raise ConstraintValidationError(f"Position cap for {position} must be >= 0, got {cap}")

    def with_overrides(self, **changes) -> "RosterConstraintSet":
        return replace(self, **changes)


def validate_pool(players: Sequence[Player], constraints: RosterConstraintSet) -> None:
    """Fail fast on malformed input; infeasibility is left to the solver."""

    constraints.validate()
    counts = Counter(player.player_id for player in players)
    duplicates = sorted(pid for pid, count in counts.items() if count > 1)
    if duplicates:
        raise ConstraintValidationError(f"Duplicate player ids in pool: {', '.join(duplicates)}")
    negative = sorted(player.player_id for player in players if player.salary < 0)
    if negative:
        raise ConstraintValidationError(f"Negative salary for: {', '.join(negative)}")
    unknown = sorted(constraints.locked_player_ids - set(counts))
    if unknown:
        raise ConstraintValidationError(f"Locked players not in pool: {', '.join(unknown)}")


@dataclass(frozen=True)
class StrategyPreset:
    key: str
    name: str
    description: str
    require_captain_stack: bool
    require_opponent_bring_back: bool
    max_per_position: Mapping[str, int]

    def constraints(self, **overrides) -> RosterConstraintSet:
        base = RosterConstraintSet(
            max_per_position=dict(self.max_per_position),
            require_captain_stack=self.require_captain_stack,
            require_opponent_bring_back=self.require_opponent_bring_back,
        )
        return replace(base, **overrides) if overrides else base


_PRESETS: Dict[str, StrategyPreset] = {
    "balanced": StrategyPreset(
        key="balanced",
        name="Balanced Attack",
        description="Does not force stacks, letting the optimizer find raw value.",
        require_captain_stack=False,
        require_opponent_bring_back=False,
        max_per_position={"K": 1, "D": 1},
    ),
    "shootout": StrategyPreset(
        key="shootout",
        name="Shootout",
        description="Stacks the captain with a teammate and brings back an opponent.",
        require_captain_stack=True,
        require_opponent_bring_back=True,
        max_per_position={"K": 1, "D": 1},
    ),
    "team_stack": StrategyPreset(
        key="team_stack",
        name="Team Stack",
        description="Stacks the captain with a teammate without an opponent bring-back.",
        require_captain_stack=True,
        require_opponent_bring_back=False,
        max_per_position={"K": 1, "D": 1},
    ),
    "grind": StrategyPreset(
        key="grind",
        name="Grind It Out",
        description="For low-scoring games; allows up to two kickers and two defenses.",
        require_captain_stack=False,
        require_opponent_bring_back=False,
        max_per_position={"K": 2, "D": 2},
    ),
}


def iter_presets() -> Iterable[StrategyPreset]:
    """Return an iterator of all configured presets."""

    return _PRESETS.values()


def get_preset(key: str) -> StrategyPreset:
    """Fetch a preset by key, raising KeyError if missing."""

    normalized = key.strip().lower().replace(" ", "_").replace("-", "_")
    if normalized not in _PRESETS:
        raise KeyError(f"No strategy preset configured for {key!r}")
    return _PRESETS[normalized]
