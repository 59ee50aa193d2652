import logging

import pulp
import pytest

from showdown.optimizer import LineupSolver, SolverSettings


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ("SHOWDOWN_SOLVER", "SHOWDOWN_SOLVER_GAP", "SHOWDOWN_SOLVER_TIME_LIMIT"):
        monkeypatch.delenv(name, raising=False)


def test_defaults_without_environment():
    settings = SolverSettings.from_env()

    assert settings == SolverSettings(backend="cbc", gap_rel=None, time_limit=None)
    assert LineupSolver(settings).backend_label == "CBC"


def test_valid_gap_and_time_limit_are_read(monkeypatch):
    monkeypatch.setenv("SHOWDOWN_SOLVER", " CBC ")
    monkeypatch.setenv("SHOWDOWN_SOLVER_GAP", "0.02")
    monkeypatch.setenv("SHOWDOWN_SOLVER_TIME_LIMIT", "30")

    settings = SolverSettings.from_env()

    assert settings.backend == "cbc"
    assert settings.gap_rel == pytest.approx(0.02)
    assert settings.time_limit == pytest.approx(30.0)


@pytest.mark.parametrize("raw", ["fast", "-0.5"])
def test_bad_gap_keeps_default_and_warns(monkeypatch, caplog, raw):
    monkeypatch.setenv("SHOWDOWN_SOLVER_GAP", raw)

    with caplog.at_level(logging.WARNING, logger="showdown.optimizer.solver"):
        settings = SolverSettings.from_env()

    assert settings.gap_rel is None
    assert "SHOWDOWN_SOLVER_GAP" in caplog.text


def test_negative_time_limit_is_ignored(monkeypatch, caplog):
    monkeypatch.setenv("SHOWDOWN_SOLVER_TIME_LIMIT", "-10")

    with caplog.at_level(logging.WARNING, logger="showdown.optimizer.solver"):
        assert SolverSettings.from_env().time_limit is None
    assert "SHOWDOWN_SOLVER_TIME_LIMIT" in caplog.text


def test_unknown_backend_falls_back_to_cbc(monkeypatch, caplog):
    monkeypatch.setenv("SHOWDOWN_SOLVER", "gurobi")

    with caplog.at_level(logging.WARNING, logger="showdown.optimizer.solver"):
        solver = LineupSolver(SolverSettings.from_env())

    assert solver.backend_label == "CBC"
    assert "Unknown solver backend" in caplog.text


def test_highs_without_binary_falls_back_to_cbc(monkeypatch, caplog):
    from pulp.apis.highs_api import HiGHS_CMD

    monkeypatch.setattr(HiGHS_CMD, "available", lambda self: False)
    monkeypatch.setenv("SHOWDOWN_SOLVER", "highs")

    with caplog.at_level(logging.WARNING, logger="showdown.optimizer.solver"):
        solver = LineupSolver(SolverSettings.from_env())

    assert solver.backend_label == "CBC"
    assert isinstance(solver._backend, pulp.PULP_CBC_CMD)
    assert "falling back to CBC" in caplog.text


def test_installed_pulp_still_ships_the_cbc_command_api():
    assert int(pulp.__version__.split(".")[0]) < 4
    assert pulp.PULP_CBC_CMD(msg=False).available()
