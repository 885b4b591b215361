# ABOUTME: Small numeric helpers shared by the scoring modules.
# ABOUTME: Provides half-up rounding for percentages and a logged clamp for unit-interval inputs.

from __future__ import annotations

import math

from loguru import logger


def round_half_up(value: float) -> int:
    """Round .5 away from zero for positive values (Python's round() is banker's rounding)."""
    return int(math.floor(value + 0.5))


def percentage(numerator: float, denominator: float) -> int:
    return round_half_up(100.0 * numerator / denominator)


def clamp_unit(value: float, name: str) -> float:
    """Clamp a ratio into [0, 1], logging when an upstream bug produced something outside it."""
    if value is None or (isinstance(value, float) and math.isnan(value)):
        raise ValueError(f"{name} must be a number, got {value!r}")
    if value < 0.0 or value > 1.0:
        logger.warning("{} outside [0, 1] ({}); clamping", name, value)
        return min(1.0, max(0.0, float(value)))
    return float(value)
