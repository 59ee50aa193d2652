"""End-to-end discovery cycle: split the corpus, fit candidates, validate, rank."""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

from showdown.models import HistoricalGame, ValidationReport
from showdown.persistence import ShowdownStore
from showdown.progress import CancellationToken, ProgressCallback, report

from .regression import DEFAULT_TOP_K_ENSEMBLE, HindsightSource, discover_models
from .validator import rank_models, validate_models


logger = logging.getLogger(__name__)

MIN_TOTAL_GAMES = 4
MIN_VALIDATION_GAMES = 2


class DiscoveryError(ValueError):
    """Raised when the corpus cannot support a training/validation split."""


@dataclass(frozen=True)
class DiscoveryParams:
    train_validate_split: float = 70.0
    top_k_ensemble: int = DEFAULT_TOP_K_ENSEMBLE
    seed: int = 1337


def split_games(
    games: Sequence[HistoricalGame],
    split_percent: float,
    seed: int,
) -> Tuple[List[HistoricalGame], List[HistoricalGame]]:
    """Deterministically shuffle ``games`` and split into (training, validation)."""

    total = len(games)
    if total < MIN_TOTAL_GAMES:
        raise DiscoveryError(f"A minimum of {MIN_TOTAL_GAMES} historical games is required, got {total}")
    if not 0 < split_percent < 100:
        raise DiscoveryError(f"train_validate_split must be between 0 and 100, got {split_percent}")

    shuffled = sorted(games, key=lambda g: g.game_id)
    random.Random(seed).shuffle(shuffled)

    training_size = int(total * split_percent / 100)
    validation_size = total - training_size
    if validation_size < MIN_VALIDATION_GAMES:
        raise DiscoveryError(
            f"At least {MIN_VALIDATION_GAMES} validation games are required; adjust the train/validate split"
        )
    if training_size < 1:
        raise DiscoveryError("The train/validate split leaves no training games")
    return shuffled[validation_size:], shuffled[:validation_size]


def run_discovery(
    games: Sequence[HistoricalGame],
    params: DiscoveryParams = DiscoveryParams(),
    *,
    hindsight: HindsightSource | None = None,
    progress: Optional[ProgressCallback] = None,
    cancel: Optional[CancellationToken] = None,
    store: Optional[ShowdownStore] = None,
    promote: bool = False,
) -> ValidationReport:
    """Run one discovery cycle and return the ranked candidates.

    With ``promote`` and a ``store``, the best validated model is saved.
    """

    report(progress, "Splitting data into training/validation sets...", 5)
    training, validation = split_games(games, params.train_validate_split, params.seed)
    logger.info("Discovery split – %s training games, %s validation games", len(training), len(validation))

    if cancel is not None and cancel.cancelled:
        return _cancelled(training, validation, [])

    report(progress, "Discovering predictive models from training data...", 30)
    outcome = discover_models(training, hindsight=hindsight, top_k_ensemble=params.top_k_ensemble)
    warnings = list(outcome.warnings)
    if not outcome.models:
        warnings.append("No candidate model could be fitted from the training data")
        report(progress, "Discovery finished without candidates.", 100)
        return ValidationReport(
            training_set_size=len(training),
            validation_set_size=len(validation),
            warnings=warnings,
        )

    report(progress, "Validating models against unseen historical data...", 70)
    validated = []
    for idx, model in enumerate(outcome.models):
        if cancel is not None and cancel.cancelled:
            warnings.append(f"Cancelled after validating {idx}/{len(outcome.models)} models")
            return _cancelled(training, validation, warnings, rank_models(validated))
        validated.extend(validate_models([model], validation))
        report(progress, f"Validated {model.name}", 70 + 25 * (idx + 1) / len(outcome.models))
    ranked = rank_models(validated)

    if promote and store is not None and ranked:
        store.put_model(ranked[0])
        logger.info("Promoted %s (validation MAE %.3f)", ranked[0].name, ranked[0].performance.validation_mae)

    report(progress, "Simulation and validation complete!", 100)
    return ValidationReport(
        training_set_size=len(training),
        validation_set_size=len(validation),
        models=ranked,
        warnings=warnings,
    )


def _cancelled(training, validation, warnings, models=()) -> ValidationReport:
    logger.warning("Discovery cycle cancelled")
    return ValidationReport(
        training_set_size=len(training),
        validation_set_size=len(validation),
        models=list(models),
        warnings=list(warnings) or ["Discovery cancelled"],
        cancelled=True,
    )
