"""
Windowing/transform stage for the TrueAudio engine.

Turns a PCM buffer into the single decibel-scaled magnitude spectrum the
feature extractor works on.
"""

import logging
import math

import librosa
import numpy as np

from trueaudio.core.models import (
    ANALYSIS_SAMPLE_RATE,
    SILENCE_FLOOR_DB,
    PcmBuffer,
    Spectrum,
)
from trueaudio.utils.config import EngineConfig
from trueaudio.utils.errors import DecodeError, InsufficientDataError

logger = logging.getLogger(__name__)


class SpectrumAnalyzer:
    """
    Computes a smoothed dB spectrum from the middle of a buffer.

    The segment is resampled to the fixed analysis rate, cut into
    consecutive Blackman-windowed frames and the per-frame magnitudes are
    blended with an exponential time constant, the way an analyser node
    reports its last frame. Stateless between calls.
    """

    def __init__(
        self,
        transform_size: int = 4096,
        smoothing: float = 0.8,
        analysis_duration: float = 2.0,
        analysis_rate: int = ANALYSIS_SAMPLE_RATE,
    ):
        """
        Initialize analyzer.

        Args:
            transform_size: FFT size (power of two)
            smoothing: Time constant for frame-to-frame smoothing
            analysis_duration: Maximum seconds analysed around the midpoint
            analysis_rate: Rate the segment is resampled to before the FFT
        """
        self.transform_size = transform_size
        self.smoothing = smoothing
        self.analysis_duration = analysis_duration
        self.analysis_rate = analysis_rate

    @classmethod
    def from_config(cls, config: EngineConfig) -> "SpectrumAnalyzer":
        return cls(
            transform_size=config.transform_size,
            smoothing=config.smoothing,
            analysis_duration=config.analysis_duration,
        )

    @property
    def bin_count(self) -> int:
        return self.transform_size // 2

    def analyze(self, buffer: PcmBuffer) -> Spectrum:
        """
        Produce the spectrum for a buffer.

        Args:
            buffer: Decoded PCM, mono or multi-channel

        Returns:
            Spectrum: ``transform_size / 2`` finite dB values

        Raises:
            InsufficientDataError: Buffer holds no samples
            DecodeError: Samples contain NaN or infinity
        """
        if buffer.frames == 0:
            raise InsufficientDataError(
                "Cannot analyze an empty buffer", frames=0
            )

        segment = self.select_segment(buffer.mono(), buffer.sample_rate)
        if not np.all(np.isfinite(segment)):
            raise DecodeError(
                "PCM samples contain non-finite values", source=buffer.source
            )

        if buffer.sample_rate != self.analysis_rate:
            segment = librosa.resample(
                segment, orig_sr=buffer.sample_rate, target_sr=self.analysis_rate
            )
        if segment.size == 0:
            raise InsufficientDataError(
                "Buffer too short to form an analysis window", frames=buffer.frames
            )

        magnitudes = self._smoothed_magnitudes(segment)
        floor = 10.0 ** (SILENCE_FLOOR_DB / 20.0)
        spectrum_db = 20.0 * np.log10(np.maximum(magnitudes, floor))

        logger.debug(
            "Spectrum computed: %d samples -> %d bins (peak %.1f dB)",
            segment.size, spectrum_db.size, float(spectrum_db.max())
        )
        return Spectrum(
            np.maximum(spectrum_db, SILENCE_FLOOR_DB),
            nyquist=self.analysis_rate / 2
        )

    def select_segment(self, mono: np.ndarray, sample_rate: int) -> np.ndarray:
        """Pick ``min(analysis_duration, duration)`` seconds centred on the midpoint."""
        total = mono.shape[0]
        length = min(total, max(1, int(round(self.analysis_duration * sample_rate))))
        start = (total - length) // 2
        return mono[start:start + length]

    def _smoothed_magnitudes(self, segment: np.ndarray) -> np.ndarray:
        n_fft = self.transform_size
        n_frames = max(1, math.ceil(segment.size / n_fft))
        padded = librosa.util.fix_length(segment, size=n_frames * n_fft)

        stft = librosa.stft(
            padded,
            n_fft=n_fft,
            hop_length=n_fft,
            window="blackman",
            center=False,
        )
        frames = np.abs(stft[: self.bin_count]) / n_fft

        smoothed = np.zeros(self.bin_count)
        for frame in frames.T:
            smoothed = self.smoothing * smoothed + (1.0 - self.smoothing) * frame
        return smoothed
