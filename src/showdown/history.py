"""Historical game vault: reproducible game stubs and a synthetic box-score source.

Real scrapers plug in through :class:`GameSource`; :class:`SyntheticGameSource`
stands in for them so discovery and backtests have a corpus to run against.
Everything here is seeded, so the same stub always yields the same game.
"""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass, field
from typing import Dict, Iterable, Iterator, List, Optional, Protocol

from showdown.models import (
    AdvancedStats,
    HistoricalGame,
    HistoricalPlayerRecord,
    PregameContext,
    RawStats,
    TeamMetrics,
)
from showdown.persistence import ShowdownStore
from showdown.progress import CancellationToken, ProgressCallback, report


logger = logging.getLogger(__name__)

TEAMS = (
    "ARI", "ATL", "BAL", "BUF", "CAR", "CHI", "CIN", "CLE", "DAL", "DEN", "DET",
    "GB", "HOU", "IND", "JAX", "KC", "LAC", "LAR", "LV", "MIA", "MIN", "NE",
    "NO", "NYG", "NYJ", "PHI", "PIT", "SF", "SEA", "TB", "TEN", "WAS",
)
VAULT_SIZE = 5760
LATEST_SEASON = 2023
WEEKS_PER_SEASON = 18
DEFAULT_VAULT_SEED = 42


@dataclass(frozen=True)
class GameStub:
    game_id: str
    description: str
    home: str
    away: str


def iter_game_stubs(
    limit: Optional[int] = None,
    *,
    seed: int = DEFAULT_VAULT_SEED,
    latest_season: int = LATEST_SEASON,
) -> Iterator[GameStub]:
    """Yield up to ``limit`` (default ``VAULT_SIZE``) stubs, newest season first.

    Each week pairs every team once after a seeded shuffle.
    """

    limit = VAULT_SIZE if limit is None else min(limit, VAULT_SIZE)
    rng = random.Random(seed)
    produced = 0
    season = latest_season
    while produced < limit:
        for week in range(1, WEEKS_PER_SEASON + 1):
            teams = list(TEAMS)
            rng.shuffle(teams)
            for home, away in zip(teams[0::2], teams[1::2]):
                if produced >= limit:
                    return
                yield GameStub(
                    game_id=f"{season}_W{week}_{home}_{away}",
                    description=f"Week {week} {season}, {home} vs. {away}",
                    home=home,
                    away=away,
                )
                produced += 1
        season -= 1


class GameSource(Protocol):
    def fetch(self, stub: GameStub) -> HistoricalGame:
        ...


# Offensive share of each skill slot: (position, salary range, target share, rush share).
_SKILL_SLOTS = (
    ("QB1", "QB", (14_000, 17_500), 0.0, 0.10),
    ("RB1", "RB", (11_000, 15_000), 0.12, 0.62),
    ("RB2", "RB", (6_000, 9_000), 0.05, 0.28),
    ("WR1", "WR", (11_000, 15_500), 0.28, 0.0),
    ("WR2", "WR", (8_000, 12_000), 0.20, 0.0),
    ("WR3", "WR", (5_000, 8_000), 0.12, 0.0),
    ("TE1", "TE", (7_000, 12_000), 0.18, 0.0),
)


def _round_salary(rng: random.Random, bounds: tuple[int, int]) -> int:
    low, high = bounds
    return int(round(rng.uniform(low, high) / 100.0)) * 100


def _team_metrics(rng: random.Random) -> TeamMetrics:
    return TeamMetrics(
        offensive_line_rank=float(rng.randint(1, 32)),
        defensive_line_rank=float(rng.randint(1, 32)),
        pass_rush_win_rate=round(rng.uniform(0.30, 0.55), 3),
        run_stop_win_rate=round(rng.uniform(0.25, 0.40), 3),
        secondary_coverage_rank=float(rng.randint(1, 32)),
        plays_per_game=round(rng.gauss(63.0, 3.5), 1),
        neutral_situation_pace=round(rng.gauss(29.0, 1.5), 2),
        neutral_situation_pass_rate=round(rng.uniform(0.50, 0.65), 3),
        coaching_aggressiveness_score=round(rng.uniform(0.0, 10.0), 2),
        turnover_differential=float(rng.randint(-10, 10)),
    )


def _split_touchdowns(rng: random.Random, total: int, shares: List[float]) -> List[int]:
    counts = [0] * len(shares)
    if not shares or sum(shares) <= 0:
        return counts
    for _ in range(total):
        counts[rng.choices(range(len(shares)), weights=shares)[0]] += 1
    return counts


def _team_players(
    rng: random.Random,
    team: str,
    opponent_metrics: TeamMetrics,
    environment: float,
) -> List[HistoricalPlayerRecord]:
    # Weaker opposing pass defenses (higher rank number) give up more yards.
    pass_boost = 1.0 + (opponent_metrics.secondary_coverage_rank or 16) / 160.0
    run_boost = 1.0 + (opponent_metrics.defensive_line_rank or 16) / 160.0

    pass_yds = max(90.0, rng.gauss(235.0, 55.0) * pass_boost * environment)
    rush_yds = max(30.0, rng.gauss(110.0, 30.0) * run_boost * environment)
    pass_tds = max(0, int(round(pass_yds / 120.0 + rng.gauss(0.0, 0.8))))
    rush_tds = max(0, int(round(rush_yds / 90.0 + rng.gauss(0.0, 0.6))))
    interceptions = max(0, int(round(rng.gauss(0.8, 0.8))))

    target_shares = [slot[3] * rng.uniform(0.7, 1.3) for slot in _SKILL_SLOTS]
    rush_shares = [slot[4] * rng.uniform(0.7, 1.3) for slot in _SKILL_SLOTS]
    target_total = sum(target_shares)
    rush_total = sum(rush_shares)
    rec_td_split = _split_touchdowns(rng, pass_tds, target_shares)
    rush_td_split = _split_touchdowns(rng, rush_tds, rush_shares)

    players: List[HistoricalPlayerRecord] = []
    for idx, (slot, position, salary_range, _, _) in enumerate(_SKILL_SLOTS):
        target_share = target_shares[idx] / target_total
        rush_share = rush_shares[idx] / rush_total
        rec_yds = round(pass_yds * target_share, 1)
        receptions = float(round(rec_yds / rng.uniform(9.0, 13.0))) if rec_yds else 0.0
        stats = RawStats(
            pass_yds=round(pass_yds, 1) if position == "QB" else 0.0,
            pass_tds=float(pass_tds) if position == "QB" else 0.0,
            interceptions=float(interceptions) if position == "QB" else 0.0,
            rush_yds=round(rush_yds * rush_share, 1),
            rush_tds=float(rush_td_split[idx]),
            receptions=receptions,
            rec_yds=rec_yds,
            rec_tds=float(rec_td_split[idx]),
            fumbles_lost=1.0 if rng.random() < 0.04 else 0.0,
        )
        advanced = AdvancedStats(
            air_yards=round(rec_yds * rng.uniform(0.5, 0.9), 1) if rec_yds else None,
            red_zone_touches=float(rng.randint(0, 4)),
            target_share=round(target_share, 3) if target_share else None,
            rush_attempt_share=round(rush_share, 3) if rush_share else None,
            routes_run=float(rng.randint(15, 40)) if position in {"WR", "TE", "RB"} else None,
            yards_after_catch=round(rec_yds * rng.uniform(0.2, 0.5), 1) if rec_yds else None,
            time_to_throw=round(rng.uniform(2.4, 3.1), 2) if position == "QB" else None,
            clean_pocket_completion=round(rng.uniform(0.62, 0.78), 3) if position == "QB" else None,
        )
        players.append(
            HistoricalPlayerRecord(
                name=f"{team} {slot}",
                team=team,
                position=position,
                stats=stats,
                advanced_stats=advanced,
                salary=_round_salary(rng, salary_range),
            )
        )

    points_allowed_proxy = rng.gauss(22.0, 7.0)
    players.append(
        HistoricalPlayerRecord(
            name=f"{team} K",
            team=team,
            position="K",
            actual_fantasy_points=round(max(0.0, rng.gauss(8.0, 3.5)), 2),
            salary=_round_salary(rng, (8_000, 10_000)),
        )
    )
    players.append(
        HistoricalPlayerRecord(
            name=f"{team} D",
            team=team,
            position="D",
            actual_fantasy_points=round(max(-4.0, 14.0 - points_allowed_proxy / 2.5 + rng.gauss(0.0, 3.0)), 2),
            salary=_round_salary(rng, (7_500, 9_500)),
        )
    )
    return players


def synthesize_game(stub: GameStub, seed: int = DEFAULT_VAULT_SEED) -> HistoricalGame:
    """Deterministic box score for ``stub``: nine salaried players per team."""

    rng = random.Random(f"{seed}:{stub.game_id}")
    metrics = {stub.home: _team_metrics(rng), stub.away: _team_metrics(rng)}
    weather = round(rng.uniform(0.85, 1.05), 3)
    environment = weather * rng.uniform(0.9, 1.15)
    spread = round(rng.uniform(-9.5, 9.5) * 2) / 2
    total = round(rng.uniform(38.0, 54.0) * 2) / 2

    players = _team_players(rng, stub.home, metrics[stub.away], environment)
    players += _team_players(rng, stub.away, metrics[stub.home], environment)
    return HistoricalGame(
        game_id=stub.game_id,
        description=stub.description,
        pregame_context=PregameContext(
            vegas_line=f"{stub.home} {spread:+.1f}, Total: {total}",
            advanced_team_metrics=metrics,
            strength_of_schedule=round(rng.uniform(0.45, 0.55), 3),
            weather_factor=weather,
            home_field_advantage_score=round(rng.uniform(0.5, 2.5), 2),
        ),
        players=players,
    )


@dataclass
class SyntheticGameSource:
    seed: int = DEFAULT_VAULT_SEED

    def fetch(self, stub: GameStub) -> HistoricalGame:
        return synthesize_game(stub, self.seed)


@dataclass
class CacheOutcome:
    fetched: List[str] = field(default_factory=list)
    already_cached: int = 0
    failed: Dict[str, str] = field(default_factory=dict)
    cancelled: bool = False


def ensure_cached(
    store: ShowdownStore,
    stubs: Iterable[GameStub],
    source: GameSource,
    *,
    progress: Optional[ProgressCallback] = None,
    cancel: Optional[CancellationToken] = None,
) -> CacheOutcome:
    """Fetch and store every stub not already cached.

    A failing fetch is recorded in ``CacheOutcome.failed`` and the rest of the
    stubs are still processed.
    """

    stubs = list(stubs)
    cached = set(store.list_game_ids())
    outcome = CacheOutcome()
    missing = [stub for stub in stubs if stub.game_id not in cached]
    outcome.already_cached = len(stubs) - len(missing)
    logger.info("Game cache: %s cached, %s to fetch", outcome.already_cached, len(missing))

    for idx, stub in enumerate(missing):
        if cancel is not None and cancel.cancelled:
            outcome.cancelled = True
            logger.warning("Game caching cancelled after %s/%s fetches", idx, len(missing))
            break
        try:
            game = source.fetch(stub)
        except Exception as exc:
            logger.warning("Failed to fetch %s: %s", stub.game_id, exc)
            outcome.failed[stub.game_id] = str(exc)
            continue
        store.put_game(game)
        outcome.fetched.append(game.game_id)
        report(progress, f"Cached {stub.description}", (idx + 1) / len(missing) * 100)

    report(progress, "Game cache up to date.", 100)
    return outcome
