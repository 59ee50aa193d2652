"""REST API for the Showdown optimizer."""

from __future__ import annotations

import logging
from pathlib import Path

from fastapi import FastAPI, HTTPException

from showdown.api.schemas import (
    BacktestRequest,
    DiscoveryRequest,
    LineupBatchResponse,
    LineupMetricsResponse,
    LineupPlayerResponse,
    LineupRequest,
    LineupResponse,
    PlayerUsageResponse,
    SeedGamesRequest,
)
from showdown.backtest import BacktestReport, run_backtest
from showdown.config import ConstraintValidationError, iter_presets
from showdown.discovery import DiscoveryError, DiscoveryParams, run_discovery
from showdown.history import SyntheticGameSource, ensure_cached, iter_game_stubs
from showdown.models import HistoricalGame, TunedModel, ValidationReport
from showdown.optimizer import GenerationResult, LineupResult, LineupSolver, SolverSettings, generate_lineups
from showdown.persistence import ShowdownStore
from showdown.scoring import ScoringMode


logger = logging.getLogger(__name__)

DEFAULT_DB_PATH = Path(__file__).resolve().parent.parent / "showdown.sqlite"


def _lineup_to_response(result: LineupResult, mode: ScoringMode) -> LineupResponse:
    lineup = result.lineup
    metrics = result.metrics
    players = [
        LineupPlayerResponse(
            player_id=player.player_id,
            name=player.name,
            team=player.team,
            position=player.position,
            salary=player.salary,
            projection=player.ceiling_score if mode is ScoringMode.CEILING else player.mean_score,
            captain=player.player_id == lineup.captain.player_id,
        )
        for player in lineup.players
    ]
    return LineupResponse(
        lineup_id=result.lineup_id,
        salary=lineup.salary,
        projection=round(metrics.ceiling_score if mode is ScoringMode.CEILING else metrics.mean_score, 2),
        players=players,
        metrics=LineupMetricsResponse(
            mean_score=metrics.mean_score,
            ceiling_score=metrics.ceiling_score,
            average_ownership=metrics.average_ownership,
            ownership_product=metrics.ownership_product,
            correlation_score=metrics.correlation_score,
            average_correlation=metrics.average_correlation,
            stack_signature=metrics.stack_signature,
            duplication_risk=metrics.duplication_risk,
            expected_value=metrics.expected_value,
            leverage_score=metrics.leverage_score,
        ),
    )


def _calculate_player_usage(generation: GenerationResult) -> list[PlayerUsageResponse]:
    total_lineups = len(generation.lineups)
    if total_lineups == 0:
        return []
    players = {player.player_id: player for result in generation.lineups for player in result.lineup.players}
    usage = generation.player_usage()
    ordered = sorted(usage.items(), key=lambda item: (-item[1], players[item[0]].name))
    return [
        PlayerUsageResponse(
            player_id=player_id,
            name=players[player_id].name,
            team=players[player_id].team,
            count=count,
            exposure=count / total_lineups,
        )
        for player_id, count in ordered
    ]


def create_app(store: ShowdownStore | None = None, solver: LineupSolver | None = None) -> FastAPI:
    app = FastAPI(title="Showdown optimizer")
    store = store or ShowdownStore(DEFAULT_DB_PATH)
    solver_settings = solver.settings if solver is not None else SolverSettings.from_env()
    solver = solver or LineupSolver(solver_settings)
    app.state.store = store
    app.state.solver = solver

    def _fetch_model_or_404(model_id: str) -> TunedModel:
        model = store.get_model(model_id)
        if model is None:
            raise HTTPException(status_code=404, detail="Model not found")
        return model

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "ok"}

    @app.get("/presets")
    async def list_presets():
        return [
            {
                "key": preset.key,
                "name": preset.name,
                "description": preset.description,
                "require_captain_stack": preset.require_captain_stack,
                "require_opponent_bring_back": preset.require_opponent_bring_back,
                "max_per_position": dict(preset.max_per_position),
            }
            for preset in iter_presets()
        ]

    @app.post("/lineups", response_model=LineupBatchResponse)
    def build(request: LineupRequest):
        try:
            mode = ScoringMode.parse(request.mode)
            constraints = request.constraints()
            generation = generate_lineups(
                request.players,
                constraints,
                n_lineups=request.lineups,
                mode=mode,
                solver=solver,
                max_exposure=request.max_exposure,
            )
        except KeyError as exc:
            raise HTTPException(status_code=400, detail=str(exc.args[0] if exc.args else exc)) from exc
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc

        return LineupBatchResponse(
            lineups=[_lineup_to_response(result, mode) for result in generation.lineups],
            player_usage=_calculate_player_usage(generation),
            requested=generation.requested,
            exhausted=generation.exhausted,
            message=generation.message,
        )

    @app.post("/backtest", response_model=BacktestReport)
    def backtest(request: BacktestRequest):
        games = store.list_games()
        if request.limit is not None:
            games = games[: request.limit]
        try:
            return run_backtest(
                games,
                request.settings,
                solver=solver if request.workers == 1 else None,
                solver_settings=solver_settings,
                workers=request.workers,
            )
        except ConstraintValidationError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc

    @app.post("/discovery", response_model=ValidationReport)
    def discovery(request: DiscoveryRequest):
        params = DiscoveryParams(
            train_validate_split=request.train_validate_split,
            top_k_ensemble=request.top_k_ensemble,
            seed=request.seed,
        )
        try:
            return run_discovery(store.list_games(), params, store=store, promote=request.promote)
        except DiscoveryError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc

    @app.get("/models", response_model=list[TunedModel])
    async def list_models(limit: int | None = None):
        return store.list_models(limit=limit)

    @app.get("/models/{model_id}", response_model=TunedModel)
    async def get_model(model_id: str):
        return _fetch_model_or_404(model_id)

    @app.delete("/models/{model_id}")
    async def delete_model(model_id: str):
        if not store.delete_model(model_id):
            raise HTTPException(status_code=404, detail="Model not found")
        return {"model_id": model_id, "deleted": True}

    @app.put("/games")
    async def put_game(game: HistoricalGame):
        store.put_game(game)
        return {"game_id": game.game_id, "players": len(game.players)}

    @app.get("/games/count")
    async def count_games():
        return {"count": store.count_games()}

    @app.post("/games/seed")
    def seed_games(request: SeedGamesRequest):
        outcome = ensure_cached(
            store,
            iter_game_stubs(request.count, seed=request.seed),
            SyntheticGameSource(seed=request.seed),
        )
        return {
            "fetched": len(outcome.fetched),
            "already_cached": outcome.already_cached,
            "failed": outcome.failed,
            "total": store.count_games(),
        }

    return app


__all__ = ["create_app"]
