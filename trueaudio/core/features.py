"""
Feature extractor for the TrueAudio engine.

Derives cutoff frequency, dynamic range, high-frequency energy, spectral
flatness and spectral peaks from a single dB spectrum.
"""

from typing import List

import numpy as np

from trueaudio.core.artifacts import detect_artificial_cutoff
from trueaudio.core.confidence import score_confidence
from trueaudio.core.models import ANALYSIS_SAMPLE_RATE, Cutoff, Features, Peak, Spectrum

SMOOTHING_RADIUS = 3
HF_REGION_RATIO = 0.8
PEAK_RADIUS = 5
PEAK_FLOOR_DB = -70.0
MAX_PEAKS = 10


class FeatureExtractor:
    """
    Extracts quality features from a spectrum.

    The only state is the cutoff threshold; the individual measurements are
    static so they can be used on their own.

    Bins are mapped to Hz against the fixed 44100 Hz analysis rate whatever
    the source rate was, so thresholds stay comparable between files.
    """

    def __init__(
        self,
        cutoff_threshold_db: float = -80.0,
        analysis_rate: int = ANALYSIS_SAMPLE_RATE,
    ):
        self.cutoff_threshold_db = cutoff_threshold_db
        self.nyquist = analysis_rate / 2

    def extract(self, spectrum: Spectrum) -> Features:
        """
        Extract all features from a spectrum.

        Args:
            spectrum: dB magnitude spectrum

        Returns:
            Features: cutoff, dynamic range, HF energy, flatness, peaks and
            the confidence score derived from them
        """
        values = spectrum.magnitudes_db
        cutoff = self.find_cutoff(values)
        dynamic_range = self.dynamic_range(values)
        peaks = self.find_peaks(values, nyquist=self.nyquist)

        return Features(
            cutoff=cutoff,
            dynamic_range_db=dynamic_range,
            hf_energy_pct=self.hf_energy_pct(values, cutoff.bin),
            spectral_flatness=self.spectral_flatness(values),
            peaks=tuple(peaks),
            confidence=score_confidence(dynamic_range, cutoff.is_artificial, len(peaks)),
        )

    def find_cutoff(self, magnitudes_db: np.ndarray) -> Cutoff:
        """
        Find the highest bin whose smoothed magnitude exceeds the threshold.

        Falls back to bin 0 when nothing exceeds it.
        """
        values = np.asarray(magnitudes_db, dtype=np.float64)
        smoothed = self.smooth(values, SMOOTHING_RADIUS)

        above = np.flatnonzero(smoothed > self.cutoff_threshold_db)
        cutoff_bin = int(above[-1]) if above.size else 0

        return Cutoff(
            frequency_hz=float(round(bin_to_hz(cutoff_bin, values.size, self.nyquist))),
            bin=cutoff_bin,
            is_artificial=detect_artificial_cutoff(values, cutoff_bin),
            threshold_db=self.cutoff_threshold_db,
        )

    @staticmethod
    def smooth(values: np.ndarray, radius: int = SMOOTHING_RADIUS) -> np.ndarray:
        """Symmetric moving average; the window shrinks at the array edges."""
        values = np.asarray(values, dtype=np.float64)
        if values.size == 0:
            return values.copy()

        kernel = np.ones(2 * radius + 1)
        window = slice(radius, radius + values.size)
        sums = np.convolve(values, kernel)[window]
        counts = np.convolve(np.ones(values.size), kernel)[window]
        return sums / counts

    @staticmethod
    def dynamic_range(magnitudes_db: np.ndarray) -> float:
        """
        Spread between the loudest negative bin and the quietest bin.

        When no bin is below 0 dB the loudest negative value is taken as 0.
        """
        values = np.asarray(magnitudes_db, dtype=np.float64)
        if values.size == 0:
            return 0.0

        negative = values[values < 0]
        loudest = float(negative.max()) if negative.size else 0.0
        return abs(loudest - float(values.min()))

    @staticmethod
    def hf_energy_pct(magnitudes_db: np.ndarray, cutoff_bin: int) -> float:
        """Share of linear power in bins above 80% of the cutoff bin."""
        power = db_to_power(magnitudes_db)
        total = float(power.sum())
        if total <= 0.0:
            return 0.0

        indices = np.arange(power.size)
        hf = float(power[indices > HF_REGION_RATIO * cutoff_bin].sum())
        return hf / total * 100.0

    @staticmethod
    def spectral_flatness(magnitudes_db: np.ndarray) -> float:
        """
        Wiener entropy: geometric over arithmetic mean of linear power.

        Computed in the log domain; 1.0 for a perfectly flat spectrum and
        close to 0 for a tonal one.
        """
        values = np.asarray(magnitudes_db, dtype=np.float64)
        if values.size == 0:
            return 0.0

        log_power = values * (np.log(10.0) / 10.0)
        log_geometric = float(log_power.mean())
        # Shift by the maximum before exponentiating to stay in range
        shift = float(log_power.max())
        log_arithmetic = shift + float(np.log(np.mean(np.exp(log_power - shift))))
        return float(min(1.0, np.exp(log_geometric - log_arithmetic)))

    @staticmethod
    def find_peaks(
        magnitudes_db: np.ndarray,
        radius: int = PEAK_RADIUS,
        floor_db: float = PEAK_FLOOR_DB,
        limit: int = MAX_PEAKS,
        nyquist: float = ANALYSIS_SAMPLE_RATE / 2,
    ) -> List[Peak]:
        """
        Local maxima strictly above every neighbour within ``radius`` bins.

        Only bins with a full neighbourhood on both sides are considered.
        Returned in ascending bin order, the first ``limit`` found.
        """
        values = np.asarray(magnitudes_db, dtype=np.float64)
        n = values.size
        if n < 2 * radius + 1:
            return []

        centre = values[radius:n - radius]
        is_peak = centre > floor_db
        for offset in range(1, radius + 1):
            is_peak &= centre > values[radius - offset:n - radius - offset]
            is_peak &= centre > values[radius + offset:n - radius + offset]

        peaks = []
        for index in np.flatnonzero(is_peak)[:limit]:
            bin_index = int(index) + radius
            peaks.append(Peak(
                bin=bin_index,
                frequency_hz=bin_to_hz(bin_index, n, nyquist),
                magnitude_db=float(values[bin_index]),
            ))
        return peaks


def bin_to_hz(bin_index: int, bin_count: int, nyquist: float) -> float:
    """Map a bin to Hz, ``bin / (N - 1) * nyquist``."""
    if bin_count < 2:
        return 0.0
    return bin_index / (bin_count - 1) * nyquist


def db_to_power(magnitudes_db: np.ndarray) -> np.ndarray:
    """Convert dB values to linear power, ``10 ** (dB / 10)``."""
    return np.power(10.0, np.asarray(magnitudes_db, dtype=np.float64) / 10.0)

