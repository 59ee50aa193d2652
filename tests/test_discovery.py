from datetime import timedelta

import pytest

from showdown.discovery import (
    DiscoveryError,
    DiscoveryParams,
    discover_models,
    rank_models,
    run_discovery,
    split_games,
    validate_models,
)
from showdown.discovery.regression import build_feature_matrix, fit_coefficients
from showdown.history import iter_game_stubs, synthesize_game
from showdown.models import ModelPerformance, StatWeights, TunedModel
from showdown.models.tuning import RAW_STAT_KEYS
from showdown.persistence import ShowdownStore
from showdown.progress import CancellationToken, ProgressChannel


@pytest.fixture(scope="module")
def games():
    return [synthesize_game(stub) for stub in iter_game_stubs(12)]


class _StaticHindsight:
    def __init__(self, fail_for: set[str] | None = None):
        self.fail_for = fail_for or set()

    def hindsight_weights(self, game):
        if game.game_id in self.fail_for:
            raise ConnectionError("model service unavailable")
        return StatWeights.fanduel()


def test_split_is_deterministic_and_order_independent(games):
    training, validation = split_games(games, 70, seed=5)
    again_training, again_validation = split_games(list(reversed(games)), 70, seed=5)

    assert len(training) == 8
    assert len(validation) == 4
    assert [g.game_id for g in training] == [g.game_id for g in again_training]
    assert [g.game_id for g in validation] == [g.game_id for g in again_validation]
    assert not {g.game_id for g in training} & {g.game_id for g in validation}


def test_split_rejects_small_corpora(games):
    with pytest.raises(DiscoveryError):
        split_games(games[:3], 70, seed=1)
    with pytest.raises(DiscoveryError):
        split_games(games[:5], 90, seed=1)
    with pytest.raises(DiscoveryError):
        split_games(games, 0, seed=1)


def test_raw_regression_recovers_fanduel_scoring(games):
    X, y = build_feature_matrix(games, RAW_STAT_KEYS)
    coefficients = fit_coefficients(X, y, RAW_STAT_KEYS)

    assert coefficients is not None
    assert coefficients["pass_yds"] == pytest.approx(0.04, abs=0.005)
    assert coefficients["rush_yds"] == pytest.approx(0.1, abs=0.01)
    assert coefficients["rec_yds"] == pytest.approx(0.1, abs=0.01)
    assert coefficients["receptions"] == pytest.approx(0.5, abs=0.05)
    assert coefficients["rec_tds"] == pytest.approx(6.0, abs=0.1)


def test_fit_is_skipped_without_enough_rows(games):
    X, y = build_feature_matrix(games[:1], RAW_STAT_KEYS)
    assert fit_coefficients(X[:5], y[:5], RAW_STAT_KEYS) is None


def test_discover_models_builds_candidates_and_ensemble(games):
    outcome = discover_models(games[:8], top_k_ensemble=2)
    names = [model.name for model in outcome.models]

    assert "Master Quant Model" in names
    assert "Correlation-Infused Quant Model" in names
    assert names[-1] == "Ensemble Super Model (Top 2)"
    for model in outcome.models:
        assert model.performance.residual_std is not None
        assert model.performance.games_simulated == 8


def test_single_game_skips_wide_regressions_with_warning(games):
    outcome = discover_models(games[:1])

    assert any(w.startswith("Sabermetric Synthesis Model: skipped") for w in outcome.warnings)
    assert "Master Quant Model" in [model.name for model in outcome.models]


def test_hindsight_failures_only_drop_those_games(games):
    source = _StaticHindsight(fail_for={games[0].game_id})
    outcome = discover_models(games[:4], hindsight=source)

    hindsight = [m for m in outcome.models if m.name == "Averaged Hindsight Model"]
    assert len(hindsight) == 1
    assert hindsight[0].weights.pass_tds == pytest.approx(4.0)
    assert hindsight[0].weights.pass_yds == pytest.approx(0.04)
    assert any("unavailable" in w for w in outcome.warnings)

    everything_fails = _StaticHindsight(fail_for={g.game_id for g in games[:4]})
    outcome = discover_models(games[:4], hindsight=everything_fails)
    assert "Averaged Hindsight Model" not in [m.name for m in outcome.models]


def test_validate_models_sorts_by_mae(games):
    good = TunedModel.create("FanDuel", StatWeights.fanduel(), performance=ModelPerformance(residual_std=1.0))
    bad = TunedModel.create("Zero", StatWeights())

    ranked = validate_models([bad, good], games[:3])

    assert [m.name for m in ranked] == ["FanDuel", "Zero"]
    assert ranked[0].performance.validation_mae < ranked[1].performance.validation_mae
    assert not ranked[0].performance.calibration.approximate
    assert ranked[1].performance.calibration.approximate


def test_rank_models_breaks_ties_by_recency():
    older = TunedModel.create("older", StatWeights(), performance=ModelPerformance(validation_mae=1.0))
    newer = TunedModel.create("newer", StatWeights(), performance=ModelPerformance(validation_mae=1.0))
    newer = newer.model_copy(update={"created_at": older.created_at + timedelta(days=1)})
    unvalidated = TunedModel.create("none", StatWeights())

    assert [m.name for m in rank_models([unvalidated, older, newer])] == ["newer", "older", "none"]


def test_run_discovery_ranks_and_promotes(games, tmp_path, monkeypatch):
    monkeypatch.delenv("SHOWDOWN_DB_PATH", raising=False)
    store = ShowdownStore(tmp_path / "models.sqlite")
    channel = ProgressChannel()

    report = run_discovery(games, DiscoveryParams(seed=3), progress=channel, store=store, promote=True)

    assert report.training_set_size == 8
    assert report.validation_set_size == 4
    assert not report.cancelled
    maes = [m.performance.validation_mae for m in report.models]
    assert maes == sorted(maes)
    for model in report.models:
        assert model.performance.calibration is not None
        assert model.performance.calibration.sample_size > 0
    assert store.get_model(report.models[0].id) is not None
    assert store.list_models()[0].id == report.models[0].id

    channel.close()
    percentages = [event.percentage for event in channel]
    assert percentages == sorted(percentages)
    assert percentages[-1] == 100


def test_run_discovery_honours_cancellation(games):
    token = CancellationToken()
    token.cancel()

    report = run_discovery(games, DiscoveryParams(), cancel=token)

    assert report.cancelled
    assert report.models == []
    assert report.training_set_size == 8
