from itertools import combinations

import pytest

from showdown.config import ConstraintValidationError, RosterConstraintSet
from showdown.models import Player, lineup_signature
from showdown.optimizer import LineupSolver, exposure_cap, generate_lineups
from showdown.scoring import ScoringMode


def _player(pid, team, opponent, position, salary, mean, ceiling, **kwargs) -> Player:
    return Player(
        player_id=pid,
        name=pid.replace("_", " ").title(),
        team=team,
        opponent=opponent,
        position=position,
        salary=salary,
        mean_score=mean,
        ceiling_score=ceiling,
        **kwargs,
    )


def _sample_pool() -> list[Player]:
    return [
        _player("kc_qb", "KC", "BUF", "QB", 17_000, 22.0, 30.0),
        _player("kc_rb", "KC", "BUF", "RB", 12_000, 15.0, 24.0),
        _player("kc_wr", "KC", "BUF", "WR", 13_000, 16.0, 27.0),
        _player("kc_te", "KC", "BUF", "TE", 11_000, 13.0, 21.0),
        _player("kc_k", "KC", "BUF", "K", 9_000, 8.0, 12.0),
        _player("buf_qb", "BUF", "KC", "QB", 16_500, 21.0, 29.0),
        _player("buf_rb", "BUF", "KC", "RB", 11_500, 14.0, 22.0),
        _player("buf_wr", "BUF", "KC", "WR", 12_500, 15.0, 25.0),
        _player("buf_wr2", "BUF", "KC", "WR", 8_000, 9.0, 16.0),
        _player("buf_d", "BUF", "KC", "D", 8_500, 7.0, 13.0),
    ]


@pytest.fixture(scope="module")
def solver() -> LineupSolver:
    return LineupSolver()


def _best_by_enumeration(pool, cap, size=5, multiplier=1.5):
    best = None
    for combo in combinations(pool, size):
        if sum(p.salary for p in combo) > cap:
            continue
        base = sum(p.mean_score for p in combo)
        for captain in combo:
            total = base + captain.mean_score * (multiplier - 1)
            if best is None or total > best:
                best = total
    return best


def test_single_lineup_respects_cap_and_captain_multiplier(solver):
    pool = _sample_pool()
    result = generate_lineups(pool, RosterConstraintSet(), n_lineups=1, solver=solver)

    assert len(result.lineups) == 1
    assert not result.exhausted
    item = result.lineups[0]
    lineup = item.lineup
    assert item.lineup_id == "L001"
    assert len(lineup.players) == 5
    assert len(set(lineup.player_ids)) == 5
    assert lineup.salary <= 60_000
    expected = lineup.captain.mean_score * 1.5 + sum(p.mean_score for p in lineup.others)
    assert item.metrics.mean_score == pytest.approx(expected)
    assert item.metrics.mean_score == pytest.approx(_best_by_enumeration(pool, 60_000))


def test_multiple_lineups_are_unique_and_ordered(solver):
    result = generate_lineups(_sample_pool(), RosterConstraintSet(), n_lineups=5, solver=solver)

    assert 1 <= len(result.lineups) <= 5
    signatures = [item.signature for item in result.lineups]
    assert len(set(signatures)) == len(signatures)
    scores = [item.metrics.mean_score for item in result.lineups]
    assert all(a >= b - 1e-6 for a, b in zip(scores, scores[1:]))
    assert result.exhausted == (len(result.lineups) < 5)
    for item in result.lineups:
        assert item.lineup.salary <= 60_000


def test_locks_and_excludes_hold_for_every_lineup(solver):
    constraints = RosterConstraintSet(
        locked_player_ids=frozenset({"buf_wr2"}),
        excluded_player_ids=frozenset({"kc_qb"}),
    )
    result = generate_lineups(_sample_pool(), constraints, n_lineups=4, solver=solver)

    assert result.lineups
    for item in result.lineups:
        assert "buf_wr2" in item.lineup.player_ids
        assert "kc_qb" not in item.lineup.player_ids


def test_locking_players_over_the_cap_yields_no_lineups(solver):
    constraints = RosterConstraintSet(
        locked_player_ids=frozenset({"kc_qb", "buf_qb", "kc_wr", "buf_wr", "kc_rb"}),
    )
    result = generate_lineups(_sample_pool(), constraints, n_lineups=3, solver=solver)

    assert result.lineups == []
    assert result.exhausted
    assert result.message == "No feasible lineup for these constraints"


def test_forbidden_signature_is_not_repeated(solver):
    pool = _sample_pool()
    constraints = RosterConstraintSet()
    best = solver.solve(pool, constraints)
    assert best is not None

    second = solver.solve(pool, constraints, forbidden={best.signature})
    assert second is not None
    assert second.signature != best.signature
    assert second.mean_score <= best.mean_score + 1e-6


def test_signature_ignores_order_of_other_players():
    assert lineup_signature("a", ["c", "b", "d"]) == lineup_signature("a", ("d", "b", "c"))
    assert lineup_signature("a", ["b", "c"]) != lineup_signature("b", ["a", "c"])


def test_ceiling_mode_favours_inflated_ceiling(solver):
    pool = [
        p if p.player_id != "buf_wr2" else p.model_copy(update={"ceiling_score": 200.0})
        for p in _sample_pool()
    ]
    mean_run = generate_lineups(pool, RosterConstraintSet(), n_lineups=5, mode="mean", solver=solver)
    ceiling_run = generate_lineups(pool, RosterConstraintSet(), n_lineups=5, mode=ScoringMode.CEILING, solver=solver)

    mean_hits = sum("buf_wr2" in item.lineup.player_ids for item in mean_run.lineups)
    ceiling_hits = sum("buf_wr2" in item.lineup.player_ids for item in ceiling_run.lineups)
    assert ceiling_hits >= mean_hits
    assert ceiling_run.lineups[0].lineup.captain.player_id == "buf_wr2"


def test_captain_stack_requires_same_team_partner(solver):
    pool = [
        _player("star_qb", "NYJ", "MIA", "QB", 10_000, 40.0, 50.0),
        _player("nyj_d", "NYJ", "MIA", "D", 10_000, 5.0, 8.0),
        _player("mia_qb", "MIA", "NYJ", "QB", 10_000, 12.0, 18.0),
        _player("mia_rb", "MIA", "NYJ", "RB", 10_000, 11.0, 17.0),
        _player("mia_wr", "MIA", "NYJ", "WR", 10_000, 10.0, 16.0),
        _player("mia_wr2", "MIA", "NYJ", "WR", 10_000, 9.0, 15.0),
        _player("mia_te", "MIA", "NYJ", "TE", 10_000, 8.0, 14.0),
    ]
    free = solver.solve(pool, RosterConstraintSet())
    assert free is not None and free.captain.player_id == "star_qb"

    stacked = solver.solve(pool, RosterConstraintSet(require_captain_stack=True))
    assert stacked is not None
    assert stacked.captain.player_id != "star_qb"
    partners = [
        p for p in stacked.others
        if p.team == stacked.captain.team and p.position in {"QB", "RB", "WR", "TE"}
    ]
    assert partners


def test_bring_back_adds_an_opposing_player(solver):
    pool = [_player(f"sf_{i}", "SF", "LAR", pos, 10_000, 20.0 - i, 30.0 - i)
            for i, pos in enumerate(["QB", "RB", "WR", "WR", "TE", "RB"])]
    pool += [_player(f"lar_{i}", "LAR", "SF", pos, 10_000, 5.0 - i, 9.0 - i)
             for i, pos in enumerate(["QB", "RB", "WR", "TE"])]

    stack_only = solver.solve(pool, RosterConstraintSet(require_captain_stack=True))
    assert stack_only is not None and stack_only.stack_signature == "5"

    with_bring_back = solver.solve(
        pool,
        RosterConstraintSet(require_captain_stack=True, require_opponent_bring_back=True),
    )
    assert with_bring_back is not None
    assert with_bring_back.captain.team == "SF"
    assert any(p.team == "LAR" for p in with_bring_back.players)


def test_position_caps_are_enforced(solver):
    pool = _sample_pool() + [
        _player("kc_k2", "KC", "BUF", "K", 1_000, 30.0, 35.0),
        _player("buf_k", "BUF", "KC", "K", 1_000, 29.0, 34.0),
    ]
    lineup = solver.solve(pool, RosterConstraintSet())
    assert lineup is not None
    assert sum(p.position == "K" for p in lineup.players) == 1

    grind = solver.solve(pool, RosterConstraintSet(max_per_position={"K": 2, "D": 2}))
    assert grind is not None
    assert sum(p.position == "K" for p in grind.players) == 2


def test_exposure_cap_limits_unlocked_players(solver):
    constraints = RosterConstraintSet(locked_player_ids=frozenset({"kc_qb"}))
    result = generate_lineups(_sample_pool(), constraints, n_lineups=4, max_exposure=0.5, solver=solver)

    assert result.lineups
    usage = result.player_usage()
    assert usage["kc_qb"] == len(result.lineups)
    for pid, count in usage.items():
        if pid != "kc_qb":
            assert count <= 2


def test_exposure_cap_rounds_up_and_disables_at_full():
    assert exposure_cap(0.3, 5) == 2
    assert exposure_cap(50, 10) == 5
    assert exposure_cap(1.0, 10) is None
    assert exposure_cap(None, 10) is None
    assert exposure_cap(0.0, 10) == 1


def test_duplicate_player_ids_fail_fast(solver):
    pool = _sample_pool() + [_player("kc_qb", "KC", "BUF", "QB", 5_000, 1.0, 2.0)]
    with pytest.raises(ConstraintValidationError, match="Duplicate"):
        generate_lineups(pool, RosterConstraintSet(), n_lineups=1, solver=solver)


def test_lock_exclude_overlap_fails_fast(solver):
    constraints = RosterConstraintSet(
        locked_player_ids=frozenset({"kc_qb"}),
        excluded_player_ids=frozenset({"kc_qb"}),
    )
    with pytest.raises(ConstraintValidationError):
        generate_lineups(_sample_pool(), constraints, n_lineups=1, solver=solver)


def test_unknown_mode_is_rejected(solver):
    with pytest.raises(ValueError):
        generate_lineups(_sample_pool(), RosterConstraintSet(), n_lineups=1, mode="median", solver=solver)
