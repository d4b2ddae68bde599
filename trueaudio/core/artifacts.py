"""
Brick-wall cutoff detection.

Lossy encoders and resampling filters leave a near-vertical rolloff right
above the cutoff; analog material fades out gradually.
"""

from typing import Optional

import numpy as np

ROLLOFF_WINDOW = 50  # bins inspected after the cutoff
MIN_ROLLOFF_BINS = 10
ARTIFICIAL_SLOPE_DB = -3.0  # dB per bin


def rolloff_slope(
    magnitudes_db: np.ndarray,
    cutoff_bin: int,
    window: int = ROLLOFF_WINDOW,
    min_bins: int = MIN_ROLLOFF_BINS,
) -> Optional[float]:
    """
    Average per-bin slope of the raw spectrum just above the cutoff.

    The span is ``min(window, len - cutoff_bin - 1)``. The successive
    differences inside the span are summed and divided by the span length.

    Returns:
        Average slope in dB/bin, or None when fewer than ``min_bins`` bins
        follow the cutoff
    """
    values = np.asarray(magnitudes_db, dtype=np.float64)
    span = min(window, values.size - cutoff_bin - 1)
    if span < min_bins:
        return None

    diffs = np.diff(values[cutoff_bin:cutoff_bin + span])
    return float(diffs.sum() / span)


def detect_artificial_cutoff(
    magnitudes_db: np.ndarray,
    cutoff_bin: int,
    window: int = ROLLOFF_WINDOW,
    min_bins: int = MIN_ROLLOFF_BINS,
    slope_threshold_db: float = ARTIFICIAL_SLOPE_DB,
) -> bool:
    """True when the rolloff after ``cutoff_bin`` is steeper than the threshold."""
    slope = rolloff_slope(magnitudes_db, cutoff_bin, window, min_bins)
    if slope is None:
        return False
    return slope < slope_threshold_db
