"""Confidence scoring for extracted features."""

import math

LOW_DYNAMIC_RANGE_DB = 30.0
MAX_CLEAN_PEAKS = 5

# Multiplicative penalties, so simultaneous issues compound toward zero
LOW_DYNAMIC_RANGE_PENALTY = 0.7
ARTIFICIAL_CUTOFF_PENALTY = 0.5
PEAKY_SPECTRUM_PENALTY = 0.8


def score_confidence(
    dynamic_range_db: float,
    is_artificial: bool,
    peak_count: int,
) -> int:
    """
    Confidence (0-100) in the verdict derived from these features.

    Args:
        dynamic_range_db: Spectral dynamic range
        is_artificial: Whether the cutoff looks like a brick wall
        peak_count: Number of spectral peaks found

    Returns:
        int: Rounded and clamped confidence
    """
    confidence = 100.0

    if dynamic_range_db < LOW_DYNAMIC_RANGE_DB:
        confidence *= LOW_DYNAMIC_RANGE_PENALTY
    if is_artificial:
        confidence *= ARTIFICIAL_CUTOFF_PENALTY
    if peak_count > MAX_CLEAN_PEAKS:
        confidence *= PEAKY_SPECTRUM_PENALTY

    return int(min(100, max(0, round_half_up(confidence))))


def round_half_up(value: float) -> int:
    """Round .5 toward +infinity, unlike Python's banker's rounding."""
    return math.floor(value + 0.5)
