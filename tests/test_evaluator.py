import math

import pytest

from showdown.models import Lineup, Player
from showdown.optimizer import evaluate_lineup
from showdown.optimizer.evaluator import OWNERSHIP_EPSILON


def _player(pid: str, team: str, own_flex: float, own_cpt: float, **kwargs) -> Player:
    return Player(
        player_id=pid,
        name=pid,
        team=team,
        position="WR",
        salary=10_000,
        mean_score=10.0,
        ceiling_score=20.0,
        ownership_flex=own_flex,
        ownership_captain=own_cpt,
        **kwargs,
    )


def _lineup() -> Lineup:
    captain = _player("cpt", "KC", 50.0, 40.0, correlations={"a": 0.5, "b": 0.2})
    others = (
        _player("a", "KC", 30.0, 10.0),
        _player("b", "KC", 20.0, 10.0, correlations={"c": -0.1}),
        _player("c", "BUF", 10.0, 5.0),
        _player("d", "BUF", 10.0, 5.0),
    )
    return Lineup(captain=captain, others=others)


def test_metrics_use_captain_slot_ownership():
    metrics = evaluate_lineup(_lineup())

    assert metrics.salary == 50_000
    assert metrics.mean_score == pytest.approx(15.0 + 40.0)
    assert metrics.ceiling_score == pytest.approx(30.0 + 80.0)
    assert metrics.average_ownership == pytest.approx((40 + 30 + 20 + 10 + 10) / 5)
    assert metrics.ownership_product == pytest.approx(0.4 * 0.3 * 0.2 * 0.1 * 0.1)
    assert metrics.correlation_score == pytest.approx(0.6)
    assert metrics.average_correlation == pytest.approx(0.06)
    assert metrics.stack_signature == "3-2"


def test_duplication_risk_and_expected_value():
    metrics = evaluate_lineup(_lineup(), field_size=100_000)

    risk = 0.4 * 0.3 * 0.2 * 0.1 * 0.1 * 100_000 - 1
    assert metrics.duplication_risk == pytest.approx(risk)
    assert metrics.expected_value == pytest.approx(110.0 / (1 + math.sqrt(risk)))


def test_unowned_players_do_not_collapse_product():
    captain = _player("cpt", "KC", 0.0, 0.0)
    others = tuple(_player(f"p{i}", "KC", 0.0, 0.0) for i in range(4))
    metrics = evaluate_lineup(Lineup(captain=captain, others=others))

    assert metrics.ownership_product == pytest.approx(OWNERSHIP_EPSILON ** 5)
    assert metrics.duplication_risk == 0.0
    assert metrics.expected_value == pytest.approx(metrics.ceiling_score)


def test_evaluation_is_idempotent():
    lineup = _lineup()

    assert evaluate_lineup(lineup) == evaluate_lineup(lineup)


def test_leverage_score_averages_all_five_players():
    captain = _player("cpt", "KC", 10.0, 10.0, leverage=90.0)
    others = (
        _player("a", "KC", 10.0, 10.0, leverage=60.0),
        _player("b", "KC", 10.0, 10.0, leverage=30.0),
        _player("c", "BUF", 10.0, 10.0, leverage=20.0),
        _player("d", "BUF", 10.0, 10.0),
    )

    metrics = evaluate_lineup(Lineup(captain=captain, others=others))

    assert metrics.leverage_score == pytest.approx((90 + 60 + 30 + 20 + 0) / 5)
    assert evaluate_lineup(_lineup()).leverage_score == 0.0
