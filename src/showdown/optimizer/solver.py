"""Mixed-integer formulation of the Showdown lineup problem, solved with PuLP."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Collection, Dict, List, Optional, Sequence

import pulp

from showdown.config import RosterConstraintSet
from showdown.models import Lineup, LineupSignature, Player
from showdown.scoring import ScoringMode, player_score


logger = logging.getLogger(__name__)

_SOLVER_ENV = "SHOWDOWN_SOLVER"
_SOLVER_GAP_ENV = "SHOWDOWN_SOLVER_GAP"
_SOLVER_TIME_LIMIT_ENV = "SHOWDOWN_SOLVER_TIME_LIMIT"

# Positions a captain can be stacked with; kickers and defenses do not count.
STACK_PARTNER_POSITIONS = frozenset({"QB", "RB", "WR", "TE"})


def _env_float(name: str, default: Optional[float], *, clamp_min: float | None = None) -> Optional[float]:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        value = float(raw)
    except ValueError:
        logger.warning("Invalid float for %s: %s; using default %s", name, raw, default)
        return default
    if clamp_min is not None and value < clamp_min:
        logger.warning("Value for %s below %s: %s; using default %s", name, clamp_min, raw, default)
        return default
    return value


@dataclass(frozen=True)
class SolverSettings:
    backend: str = "cbc"
    gap_rel: Optional[float] = None
    time_limit: Optional[float] = None

    @classmethod
    def from_env(cls) -> "SolverSettings":
        return cls(
            backend=os.getenv(_SOLVER_ENV, "cbc").strip().lower() or "cbc",
            gap_rel=_env_float(_SOLVER_GAP_ENV, None, clamp_min=0.0),
            time_limit=_env_float(_SOLVER_TIME_LIMIT_ENV, None, clamp_min=0.0),
        )


def _build_backend(settings: SolverSettings):
    kwargs: dict[str, float] = {}
    if settings.gap_rel:
        kwargs["gapRel"] = settings.gap_rel
    if settings.time_limit:
        kwargs["timeLimit"] = settings.time_limit

    if settings.backend in {"highs", "hi_gs"}:
        try:
            from pulp.apis.highs_api import HiGHS_CMD

            candidate = HiGHS_CMD(msg=False, **kwargs)
            if candidate.available():
                return candidate, "HiGHS"
            logger.warning("HiGHS solver unavailable (missing binary); falling back to CBC")
        except ImportError:
            logger.warning("HiGHS solver package not available; falling back to CBC")
    elif settings.backend != "cbc":
        logger.warning("Unknown solver backend %r; using CBC", settings.backend)

    return pulp.PULP_CBC_CMD(msg=False, **kwargs), "CBC"


class LineupSolver:
    """Solves for the single best lineup under a constraint set.

    Construct one per process (or per worker) and reuse it for every solve; it
    holds the configured PuLP backend but no per-run state.
    """

    def __init__(self, settings: SolverSettings | None = None):
        self.settings = settings or SolverSettings()
        self._backend, self.backend_label = _build_backend(self.settings)
        extra = f" (gapRel={self.settings.gap_rel})" if self.settings.gap_rel else ""
        logger.info("Using %s solver backend%s", self.backend_label, extra)

    def solve(
        self,
        players: Sequence[Player],
        constraints: RosterConstraintSet,
        mode: ScoringMode | str = ScoringMode.MEAN,
        forbidden: Collection[LineupSignature] = (),
        unavailable_ids: Collection[str] = (),
    ) -> Optional[Lineup]:
        """Return the highest-scoring feasible lineup, or ``None`` if there is none.

        ``unavailable_ids`` are dropped on top of the constraint set's exclusions
        (used for exposure caps); locked players are never dropped.
        """

        mode = ScoringMode.parse(mode)
        skip = (set(constraints.excluded_player_ids) | set(unavailable_ids)) - set(constraints.locked_player_ids)
        pool = [player for player in players if player.player_id not in skip]
        size = constraints.roster_size
        if len(pool) < size:
            return None

        prob = pulp.LpProblem("showdown_lineup", pulp.LpMaximize)
        in_roster: Dict[str, pulp.LpVariable] = {}
        is_captain: Dict[str, pulp.LpVariable] = {}
        for idx, player in enumerate(pool):
            in_roster[player.player_id] = pulp.LpVariable(f"p_{idx}", cat=pulp.LpBinary)
            is_captain[player.player_id] = pulp.LpVariable(f"c_{idx}", cat=pulp.LpBinary)

        bonus = constraints.captain_multiplier - 1.0
        prob += pulp.lpSum(
            player_score(p, mode) * in_roster[p.player_id]
            + player_score(p, mode) * bonus * is_captain[p.player_id]
            for p in pool
        )

        prob += pulp.lpSum(in_roster.values()) == size, "roster_size"
        prob += pulp.lpSum(is_captain.values()) == 1, "one_captain"
        for idx, player in enumerate(pool):
            prob += is_captain[player.player_id] <= in_roster[player.player_id], f"captain_rostered_{idx}"
        prob += (
            pulp.lpSum(p.salary * in_roster[p.player_id] for p in pool) <= constraints.salary_cap,
            "salary_cap",
        )

        for idx, player in enumerate(pool):
            if player.player_id in constraints.locked_player_ids:
                prob += in_roster[player.player_id] == 1, f"lock_{idx}"

        for position, cap in sorted(constraints.max_per_position.items()):
            members = [in_roster[p.player_id] for p in pool if p.position == position]
            if members:
                prob += pulp.lpSum(members) <= cap, f"max_{position}"

        if constraints.require_captain_stack:
            self._add_stack_constraints(prob, pool, in_roster, is_captain, constraints)

        cuts = 0
        for signature in forbidden:
            captain_id, other_ids = signature
            ids = (captain_id, *other_ids)
            if len(ids) != size or any(pid not in in_roster for pid in ids):
                continue
            prob += (
                is_captain[captain_id] + pulp.lpSum(in_roster[pid] for pid in other_ids) <= size - 1,
                f"cut_{cuts}",
            )
            cuts += 1

        prob.solve(self._backend)
        status = pulp.LpStatus[prob.status]
        if status != "Optimal":
            logger.debug("Solver returned %s with %s cuts; no lineup", status, cuts)
            return None

        chosen = [p for p in pool if (in_roster[p.player_id].value() or 0) > 0.5]
        captains = [p for p in chosen if (is_captain[p.player_id].value() or 0) > 0.5]
        if len(chosen) != size or len(captains) != 1:
            logger.warning(
                "Solver reported %s but returned %s players / %s captains; treating as infeasible",
                status,
                len(chosen),
                len(captains),
            )
            return None
        captain = captains[0]
        others = tuple(p for p in chosen if p.player_id != captain.player_id)
        return Lineup(captain=captain, others=others, captain_multiplier=constraints.captain_multiplier)

    @staticmethod
    def _add_stack_constraints(
        prob: pulp.LpProblem,
        pool: List[Player],
        in_roster: Dict[str, pulp.LpVariable],
        is_captain: Dict[str, pulp.LpVariable],
        constraints: RosterConstraintSet,
    ) -> None:
        teams = {p.team for p in pool}
        for idx, captain in enumerate(pool):
            partners = [
                in_roster[p.player_id]
                for p in pool
                if p.player_id != captain.player_id
                and p.team == captain.team
                and p.position in STACK_PARTNER_POSITIONS
            ]
            # Captaining a player with no possible partner is ruled out.
            prob += pulp.lpSum(partners) >= is_captain[captain.player_id], f"stack_{idx}"

            if constraints.require_opponent_bring_back:
                opponent = captain.opponent
                if opponent is None:
                    others = teams - {captain.team}
                    opponent = next(iter(others)) if len(others) == 1 else None
                if opponent is None:
                    opponents = [in_roster[p.player_id] for p in pool if p.team != captain.team]
                else:
                    opponents = [in_roster[p.player_id] for p in pool if p.team == opponent]
                prob += pulp.lpSum(opponents) >= is_captain[captain.player_id], f"bring_back_{idx}"
