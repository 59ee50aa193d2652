"""Command-line interface for the Showdown optimizer, backtests and model discovery."""

from __future__ import annotations

import argparse
import csv
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional, Sequence

from pydantic import TypeAdapter, ValidationError

from showdown.api import DEFAULT_DB_PATH, create_app
from showdown.backtest import BacktestSettings, run_backtest
from showdown.config import ConstraintValidationError, RosterConstraintSet, get_preset
from showdown.discovery import DiscoveryError, DiscoveryParams, run_discovery
from showdown.history import SyntheticGameSource, ensure_cached, iter_game_stubs
from showdown.models import Player
from showdown.optimizer import LineupSolver, SolverSettings, generate_lineups
from showdown.persistence import ShowdownStore
from showdown.progress import ProgressEvent


_PLAYERS_ADAPTER = TypeAdapter(List[Player])


def _parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Showdown DFS lineup optimizer")
    parser.add_argument("--db", type=Path, default=DEFAULT_DB_PATH, help="SQLite store for games and models")
    parser.add_argument("--log-level", default="INFO", help="Logging level (DEBUG, INFO, WARNING, ...)")
    commands = parser.add_subparsers(dest="command", required=True)

    optimize = commands.add_parser("optimize", help="Build lineups from a JSON player pool")
    optimize.add_argument("players", type=Path, help="Path to a JSON array of players")
    _add_constraint_args(optimize)
    optimize.add_argument("--lock", nargs="*", default=None, help="Player IDs to force into every lineup")
    optimize.add_argument("--exclude", nargs="*", default=None, help="Player IDs to remove from consideration")
    optimize.add_argument("--output", type=Path, default=Path("lineups.csv"), help="Output CSV path")

    backtest = commands.add_parser("backtest", help="Backtest the optimizer over cached games")
    _add_constraint_args(backtest)
    backtest.add_argument("--lock", nargs="*", default=None, help="Player names to force into every lineup")
    backtest.add_argument("--exclude", nargs="*", default=None, help="Player names to remove from consideration")
    backtest.add_argument("--games", type=int, default=None, help="Only backtest the first N cached games")
    backtest.add_argument("--workers", type=int, default=1, help="Worker processes (one game per process)")
    backtest.add_argument("--output", type=Path, default=None, help="Optional path to write the report JSON")

    discover = commands.add_parser("discover", help="Fit, validate and rank scoring models")
    discover.add_argument("--split", type=float, default=70.0, help="Training share of games in percent")
    discover.add_argument("--top-k", type=int, default=3, help="Models averaged into the ensemble")
    discover.add_argument("--seed", type=int, default=1337, help="Seed for the train/validate shuffle")
    discover.add_argument("--no-promote", action="store_true", help="Do not save the best model")

    models = commands.add_parser("models", help="List saved models, best first")
    models.add_argument("--limit", type=int, default=None)
    models.add_argument("--delete", default=None, help="Delete the model with this id")

    seed = commands.add_parser("seed-games", help="Cache synthetic historical games")
    seed.add_argument("--count", type=int, default=64, help="Number of games to make available")
    seed.add_argument("--seed", type=int, default=42, help="Vault seed")

    serve = commands.add_parser("serve", help="Run the REST API with uvicorn")
    serve.add_argument("--host", default="127.0.0.1")
    serve.add_argument("--port", type=int, default=8000)
    return parser.parse_args(argv)


def _add_constraint_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--preset", default=None, help="Strategy preset (balanced, shootout, team_stack, grind)")
    parser.add_argument("--lineups", type=int, default=20, help="Number of lineups to build")
    parser.add_argument("--mode", default="mean", choices=["mean", "ceiling"], help="Projection to maximize")
    parser.add_argument("--salary-cap", type=int, default=None, help="Salary cap (default 60000)")
    parser.add_argument("--roster-size", type=int, default=None, help="Roster size including captain")
    parser.add_argument("--stack", action="store_true", help="Require a same-team partner for the captain")
    parser.add_argument("--bring-back", action="store_true", help="With --stack, require an opposing player")
    parser.add_argument(
        "--max-exposure",
        type=float,
        default=None,
        help="Maximum fraction of lineups any single player can appear in (0-1)",
    )


def _base_constraints(args: argparse.Namespace) -> RosterConstraintSet:
    changes = {}
    if args.salary_cap is not None:
        changes["salary_cap"] = args.salary_cap
    if args.roster_size is not None:
        changes["roster_size"] = args.roster_size
    if args.stack:
        changes["require_captain_stack"] = True
    if args.bring_back:
        changes["require_opponent_bring_back"] = True
    if args.preset:
        try:
            preset = get_preset(args.preset)
        except KeyError as exc:
            raise ConstraintValidationError(exc.args[0]) from exc
        return preset.constraints(**changes)
    return RosterConstraintSet(**changes)


def _print_progress(event: ProgressEvent) -> None:
    print(f"[{event.percentage:3d}%] {event.message}")


def _optimize(args: argparse.Namespace) -> int:
    players = _PLAYERS_ADAPTER.validate_json(args.players.read_bytes())
    constraints = _base_constraints(args).with_overrides(
        locked_player_ids=frozenset(args.lock or ()),
        excluded_player_ids=frozenset(args.exclude or ()),
    )
    generation = generate_lineups(
        players,
        constraints,
        n_lineups=args.lineups,
        mode=args.mode,
        solver=LineupSolver(SolverSettings.from_env()),
        max_exposure=args.max_exposure,
    )

    with args.output.open("w", newline="", encoding="utf-8") as f:
        writer = csv.writer(f)
        writer.writerow([
            "lineup_id",
            "salary",
            "mean_score",
            "ceiling_score",
            "captain",
            "player_ids",
            "player_names",
            "stack",
            "expected_value",
        ])
        for result in generation.lineups:
            lineup = result.lineup
            writer.writerow([
                result.lineup_id,
                lineup.salary,
                round(result.metrics.mean_score, 2),
                round(result.metrics.ceiling_score, 2),
                lineup.captain.name,
                " ".join(lineup.player_ids),
                " | ".join(player.name for player in lineup.players),
                result.metrics.stack_signature,
                round(result.metrics.expected_value, 3),
            ])

    print(f"Wrote {len(generation.lineups)}/{generation.requested} lineups to {args.output}")
    if generation.exhausted:
        print(f"Lineup generation stopped early: {generation.message}")
    return 0


def _backtest(args: argparse.Namespace, store: ShowdownStore) -> int:
    base = _base_constraints(args)
    settings = BacktestSettings(
        salary_cap=base.salary_cap,
        roster_size=base.roster_size,
        max_per_position=dict(base.max_per_position),
        locked_names=list(args.lock or ()),
        excluded_names=list(args.exclude or ()),
        require_captain_stack=base.require_captain_stack,
        require_opponent_bring_back=base.require_opponent_bring_back,
        n_lineups=args.lineups,
        mode=args.mode,
        max_exposure=args.max_exposure,
    )
    games = store.list_games()
    if args.games is not None:
        games = games[: args.games]
    report = run_backtest(
        games,
        settings,
        solver_settings=SolverSettings.from_env(),
        workers=args.workers,
        progress=_print_progress,
    )

    print(f"Backtested {report.total_games} games, average top score {report.average_score:.2f}")
    for warning in report.warnings:
        print(f"warning: {warning}")
    top = sorted(report.player_exposures.items(), key=lambda item: -item[1].count)[:10]
    for name, exposure in top:
        print(f"  {name:<24} {exposure.count:>5}  {exposure.percentage:6.2f}%")
    if args.output:
        args.output.write_text(report.model_dump_json(indent=2), encoding="utf-8")
        print(f"Wrote backtest report to {args.output}")
    return 0


def _discover(args: argparse.Namespace, store: ShowdownStore) -> int:
    params = DiscoveryParams(train_validate_split=args.split, top_k_ensemble=args.top_k, seed=args.seed)
    report = run_discovery(
        store.list_games(),
        params,
        progress=_print_progress,
        store=store,
        promote=not args.no_promote,
    )
    print(f"Trained on {report.training_set_size} games, validated on {report.validation_set_size}")
    for model in report.models:
        calibration = model.performance.calibration
        crps = f"{calibration.crps:.3f}" if calibration else "-"
        print(f"  {model.performance.validation_mae:8.3f}  CRPS {crps:>7}  {model.name} ({model.id})")
    for warning in report.warnings:
        print(f"warning: {warning}")
    return 0


def _models(args: argparse.Namespace, store: ShowdownStore) -> int:
    if args.delete:
        if not store.delete_model(args.delete):
            print(f"No model with id {args.delete}", file=sys.stderr)
            return 1
        print(f"Deleted {args.delete}")
        return 0
    for model in store.list_models(limit=args.limit):
        mae = model.performance.validation_mae
        shown = "-" if mae is None else f"{mae:.3f}"
        print(json.dumps({"id": model.id, "name": model.name, "validation_mae": shown}))
    return 0


def _seed_games(args: argparse.Namespace, store: ShowdownStore) -> int:
    outcome = ensure_cached(store, iter_game_stubs(args.count, seed=args.seed), SyntheticGameSource(seed=args.seed))
    print(
        f"Cached {len(outcome.fetched)} new games ({outcome.already_cached} already cached); "
        f"{store.count_games()} games in store"
    )
    for game_id, error in outcome.failed.items():
        print(f"warning: {game_id}: {error}")
    return 0


def _serve(args: argparse.Namespace, store: ShowdownStore) -> int:
    import uvicorn

    uvicorn.run(create_app(store=store), host=args.host, port=args.port)
    return 0


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = _parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, str(args.log_level).upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        if args.command == "optimize":
            return _optimize(args)
        store = ShowdownStore(args.db)
        handlers = {
            "backtest": _backtest,
            "discover": _discover,
            "models": _models,
            "seed-games": _seed_games,
            "serve": _serve,
        }
        return handlers[args.command](args, store)
    except (ConstraintValidationError, DiscoveryError, ValidationError) as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    sys.exit(main())
