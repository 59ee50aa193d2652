"""Configuration helpers for roster constraints and strategy presets."""

from .roster import (
    ConstraintValidationError,
    RosterConstraintSet,
    StrategyPreset,
    get_preset,
    iter_presets,
    validate_pool,
)

__all__ = [
    "ConstraintValidationError",
    "RosterConstraintSet",
    "StrategyPreset",
    "get_preset",
    "iter_presets",
    "validate_pool",
]
