"""Perfect-hindsight backtests of the lineup generator over cached historical games."""

from __future__ import annotations

import logging
import multiprocessing as mp
import time
from collections import Counter
from queue import Empty
from typing import Dict, List, Optional, Sequence

from pydantic import BaseModel, Field, field_validator
from pydantic.config import ConfigDict

from showdown.config import ConstraintValidationError, RosterConstraintSet
from showdown.models import CAPTAIN_MULTIPLIER, HistoricalGame, Lineup, Player
from showdown.optimizer import LineupSolver, SolverSettings, generate_lineups
from showdown.progress import CancellationToken, ProgressCallback, report
from showdown.scoring import ScoringMode


logger = logging.getLogger(__name__)

DEFAULT_MIN_POOL_SIZE = 10
DEFAULT_CEILING_FACTOR = 1.5
QUEUE_POLL_SECONDS = 1.0
DEAD_WORKER_GRACE_SECONDS = 0.5


class BacktestSettings(BaseModel):
    """User-facing constraint choices; players are referenced by name."""

    salary_cap: int = Field(default=60_000, gt=0)
    roster_size: int = Field(default=5, ge=2)
    max_per_position: Dict[str, int] = Field(default_factory=lambda: {"K": 1, "D": 1})
    locked_names: List[str] = Field(default_factory=list)
    excluded_names: List[str] = Field(default_factory=list)
    require_captain_stack: bool = False
    require_opponent_bring_back: bool = False
    captain_multiplier: float = Field(default=CAPTAIN_MULTIPLIER, ge=1.0)
    n_lineups: int = Field(default=20, ge=1)
    mode: ScoringMode = ScoringMode.MEAN
    max_exposure: Optional[float] = Field(default=None, ge=0.0)
    min_pool_size: int = Field(default=DEFAULT_MIN_POOL_SIZE, ge=1)
    ceiling_factor: float = Field(default=DEFAULT_CEILING_FACTOR, ge=1.0)

    model_config = ConfigDict(frozen=True)

    @field_validator("mode", mode="before")
    @classmethod
    def _parse_mode(cls, value):
        return ScoringMode.parse(value)

    def validate_names(self) -> None:
        overlap = set(self.locked_names) & set(self.excluded_names)
        if overlap:
            raise ConstraintValidationError(
                f"Players cannot be both locked and excluded: {', '.join(sorted(overlap))}"
            )
        if len(set(self.locked_names)) > self.roster_size:
            raise ConstraintValidationError(
                f"{len(set(self.locked_names))} locked players exceed roster size {self.roster_size}"
            )
        self.constraints_for([]).validate()

    def constraints_for(self, pool: Sequence[Player]) -> RosterConstraintSet:
        """Constraint set for one game, with names resolved to that game's ids."""

        locked = set(self.locked_names)
        excluded = set(self.excluded_names)
        return RosterConstraintSet(
            salary_cap=self.salary_cap,
            roster_size=self.roster_size,
            max_per_position=dict(self.max_per_position),
            locked_player_ids=frozenset(p.player_id for p in pool if p.name in locked),
            excluded_player_ids=frozenset(p.player_id for p in pool if p.name in excluded),
            require_captain_stack=self.require_captain_stack,
            require_opponent_bring_back=self.require_opponent_bring_back,
            captain_multiplier=self.captain_multiplier,
        )


class ScoredLineup(BaseModel):
    lineup_id: str
    captain: str
    others: List[str]
    salary: int
    projected_score: float
    actual_score: float


class BacktestGameResult(BaseModel):
    game_id: str
    description: str
    lineups: List[ScoredLineup]
    top_score: float


class PlayerExposure(BaseModel):
    count: int
    percentage: float


class BacktestReport(BaseModel):
    settings: BacktestSettings
    game_results: List[BacktestGameResult] = Field(default_factory=list)
    average_score: float = 0.0
    total_games: int = 0
    player_exposures: Dict[str, PlayerExposure] = Field(default_factory=dict)
    skipped_game_ids: List[str] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)
    cancelled: bool = False


def build_pool_from_game(game: HistoricalGame, *, ceiling_factor: float = DEFAULT_CEILING_FACTOR) -> List[Player]:
    """Player pool whose projections are the game's actual results.

    Players without a positive salary are left out. Ids are rebuilt per game
    from the game id and the player's name.
    """

    pool: List[Player] = []
    for record in game.players:
        if not record.salary or record.salary <= 0:
            continue
        pool.append(
            Player(
                player_id=f"{game.game_id}_{''.join(record.name.split())}",
                name=record.name,
                team=record.team,
                opponent=game.opponent_of(record.team) or "OPP",
                position=record.position,
                salary=record.salary,
                mean_score=record.actual_fantasy_points,
                ceiling_score=record.actual_fantasy_points * ceiling_factor,
            )
        )
    return pool


def score_lineup_with_actuals(lineup: Lineup, game: HistoricalGame) -> float:
    actual = {record.name: record.actual_fantasy_points for record in game.players}
    captain = actual.get(lineup.captain.name, 0.0) * lineup.captain_multiplier
    return captain + sum(actual.get(player.name, 0.0) for player in lineup.others)


class BacktestJobResult:
    def __init__(
        self,
        job_id: int,
        game_id: str,
        result: Optional[BacktestGameResult] = None,
        warning: Optional[str] = None,
    ):
        self.job_id = job_id
        self.game_id = game_id
        self.result = result
        self.warning = warning


class BacktestJobConfig:
    def __init__(self, job_id: int, game: HistoricalGame, settings: BacktestSettings, solver_settings: SolverSettings):
        self.job_id = job_id
        self.game = game
        self.settings = settings
        self.solver_settings = solver_settings


def _run_game(job_id: int, game: HistoricalGame, settings: BacktestSettings, solver: LineupSolver) -> BacktestJobResult:
    pool = build_pool_from_game(game, ceiling_factor=settings.ceiling_factor)
    if len(pool) < settings.min_pool_size:
        return BacktestJobResult(
            job_id,
            game.game_id,
            warning=(
                f"Skipping game {game.game_id}: only {len(pool)} players with salary data "
                f"(need {settings.min_pool_size})"
            ),
        )

    try:
        generation = generate_lineups(
            pool,
            settings.constraints_for(pool),
            n_lineups=settings.n_lineups,
            mode=settings.mode,
            solver=solver,
            max_exposure=settings.max_exposure,
        )
    except ConstraintValidationError as exc:
        return BacktestJobResult(job_id, game.game_id, warning=f"Skipping game {game.game_id}: {exc}")
    except Exception as exc:  # noqa: BLE001 - one failing game is skipped, not fatal
        logger.exception("Lineup generation failed for %s", game.game_id)
        return BacktestJobResult(
            job_id,
            game.game_id,
            warning=f"Skipping game {game.game_id}: solver error ({type(exc).__name__}: {exc})",
        )

    if not generation.lineups:
        return BacktestJobResult(
            job_id,
            game.game_id,
            warning=f"Skipping game {game.game_id}: {generation.message or 'no feasible lineups'}",
        )

    scored = [
        ScoredLineup(
            lineup_id=item.lineup_id,
            captain=item.lineup.captain.name,
            others=[player.name for player in item.lineup.others],
            salary=item.lineup.salary,
            projected_score=round(item.metrics.mean_score, 2),
            actual_score=round(score_lineup_with_actuals(item.lineup, game), 2),
        )
        for item in generation.lineups
    ]
    return BacktestJobResult(
        job_id,
        game.game_id,
        result=BacktestGameResult(
            game_id=game.game_id,
            description=game.description,
            lineups=scored,
            top_score=max(lineup.actual_score for lineup in scored),
        ),
    )


def _run_backtest_job(config: BacktestJobConfig) -> BacktestJobResult:
    solver = LineupSolver(config.solver_settings)
    return _run_game(config.job_id, config.game, config.settings, solver)


def _backtest_worker(config: BacktestJobConfig, queue: mp.Queue) -> None:
    try:
        outcome = _run_backtest_job(config)
    except Exception as exc:  # noqa: BLE001 - reported to the parent as a skipped game
        outcome = BacktestJobResult(
            config.job_id,
            config.game.game_id,
            warning=f"Skipping game {config.game.game_id}: worker error ({type(exc).__name__}: {exc})",
        )
    queue.put(outcome)


def _aggregate(
    settings: BacktestSettings,
    outcomes: Sequence[BacktestJobResult],
    *,
    cancelled: bool,
    warnings: List[str],
) -> BacktestReport:
    ordered = sorted(outcomes, key=lambda outcome: outcome.job_id)
    game_results = [outcome.result for outcome in ordered if outcome.result is not None]
    skipped = [outcome.game_id for outcome in ordered if outcome.result is None]
    for outcome in ordered:
        if outcome.warning:
            warnings.append(outcome.warning)

    counts: Counter = Counter()
    total_lineups = 0
    for game_result in game_results:
        for lineup in game_result.lineups:
            total_lineups += 1
            counts[lineup.captain] += 1
            for name in lineup.others:
                counts[name] += 1

    exposures = {
        name: PlayerExposure(count=count, percentage=round(count / total_lineups * 100, 2))
        for name, count in counts.most_common()
    }
    average = sum(r.top_score for r in game_results) / len(game_results) if game_results else 0.0
    return BacktestReport(
        settings=settings,
        game_results=game_results,
        average_score=average,
        total_games=len(game_results),
        player_exposures=exposures,
        skipped_game_ids=skipped,
        warnings=warnings,
        cancelled=cancelled,
    )


def run_backtest(
    games: Sequence[HistoricalGame],
    settings: BacktestSettings = BacktestSettings(),
    *,
    solver: LineupSolver | None = None,
    solver_settings: SolverSettings | None = None,
    workers: int = 1,
    progress: Optional[ProgressCallback] = None,
    cancel: Optional[CancellationToken] = None,
) -> BacktestReport:
    """Generate lineups for every game from its actual results and score them.

    A game that lacks salary data or yields no lineup is skipped with a
    warning; the average covers only the games that produced lineups. With
    ``workers > 1`` games run in separate processes, each with its own solver.
    Malformed settings raise ``ConstraintValidationError`` up front.
    """

    settings.validate_names()
    warnings: List[str] = []
    if not games:
        warnings.append("No historical games available; seed the game cache first")
        report(progress, "Backtest complete.", 100)
        return BacktestReport(settings=settings, warnings=warnings)

    report(progress, "Initializing backtest...", 0)
    run_start = time.perf_counter()
    total = len(games)
    workers = max(1, workers)
    logger.info("Starting backtest – games=%s, lineups/game=%s, workers=%s", total, settings.n_lineups, workers)

    if workers == 1:
        solver = solver or LineupSolver(solver_settings or SolverSettings.from_env())
        outcomes: List[BacktestJobResult] = []
        for idx, game in enumerate(games):
            if cancel is not None and cancel.cancelled:
                warnings.append(f"Backtest cancelled after {idx}/{total} games")
                return _aggregate(settings, outcomes, cancelled=True, warnings=warnings)
            outcome = _run_game(idx, game, settings, solver)
            _log_outcome(outcome, run_start)
            outcomes.append(outcome)
            report(progress, f"Processing game: {game.description or game.game_id}", (idx + 1) / total * 100)
        report(progress, "Backtest complete.", 100)
        return _aggregate(settings, outcomes, cancelled=False, warnings=warnings)

    return _run_parallel(
        games,
        settings,
        solver_settings or SolverSettings.from_env(),
        workers=workers,
        progress=progress,
        cancel=cancel,
        warnings=warnings,
        run_start=run_start,
    )


def _log_outcome(outcome: BacktestJobResult, run_start: float) -> None:
    if outcome.result is None:
        logger.warning("%s", outcome.warning)
        return
    logger.info(
        "Backtested %s – %s lineups, top score %.2f (total %.2fs)",
        outcome.game_id,
        len(outcome.result.lineups),
        outcome.result.top_score,
        time.perf_counter() - run_start,
    )


def _collect_dead_workers(
    processes: Dict[int, mp.Process],
    queue: mp.Queue,
    games: Sequence[HistoricalGame],
) -> List[BacktestJobResult]:
    """Outcomes for workers that exited without posting a result.

    A worker may exit just after posting, so the queue is drained once more
    before the remaining dead workers are reported as skipped games.
    """

    dead = [job_id for job_id, proc in processes.items() if proc.exitcode is not None]
    if not dead:
        return []
    try:
        return [queue.get(timeout=DEAD_WORKER_GRACE_SECONDS)]
    except Empty:
        return [
            BacktestJobResult(
                job_id,
                games[job_id].game_id,
                warning=(
                    f"Skipping game {games[job_id].game_id}: worker exited "
                    f"with code {processes[job_id].exitcode} before reporting"
                ),
            )
            for job_id in dead
        ]


def _run_parallel(
    games: Sequence[HistoricalGame],
    settings: BacktestSettings,
    solver_settings: SolverSettings,
    *,
    workers: int,
    progress: Optional[ProgressCallback],
    cancel: Optional[CancellationToken],
    warnings: List[str],
    run_start: float,
) -> BacktestReport:
    ctx = mp.get_context("spawn")
    queue: mp.Queue = ctx.Queue()
    processes: dict[int, mp.Process] = {}
    outcomes: List[BacktestJobResult] = []
    total = len(games)
    next_job_id = 0
    cancelled = False

    def start_job() -> None:
        nonlocal next_job_id
        config = BacktestJobConfig(next_job_id, games[next_job_id], settings, solver_settings)
        logger.info("Dispatching game %s (%s/%s)", config.game.game_id, next_job_id + 1, total)
        proc = ctx.Process(target=_backtest_worker, args=(config, queue))
        proc.start()
        processes[config.job_id] = proc
        next_job_id += 1

    try:
        while len(processes) < workers and next_job_id < total:
            start_job()

        while processes:
            try:
                received = [queue.get(timeout=QUEUE_POLL_SECONDS)]
            except Empty:
                received = _collect_dead_workers(processes, queue, games)

            for outcome in received:
                proc = processes.pop(outcome.job_id, None)
                if proc is None:
                    continue
                proc.join()
                _log_outcome(outcome, run_start)
                outcomes.append(outcome)
                report(progress, f"Processed game {outcome.game_id}", len(outcomes) / total * 100)
            if not received:
                continue

            if cancel is not None and cancel.cancelled:
                if not cancelled:
                    warnings.append(f"Backtest cancelled after {len(outcomes)}/{total} games")
                cancelled = True
                continue
            while len(processes) < workers and next_job_id < total:
                start_job()
    finally:
        for proc in processes.values():
            if proc.is_alive():
                proc.terminate()
            proc.join()

    if not cancelled:
        report(progress, "Backtest complete.", 100)
    return _aggregate(settings, outcomes, cancelled=cancelled, warnings=warnings)
