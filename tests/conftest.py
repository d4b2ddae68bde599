"""Shared fixtures for TrueAudio tests."""

import threading
import time

import numpy as np
import pytest

from trueaudio.core.classifier import QualityClassifier
from trueaudio.core.models import Cutoff, Features, PcmBuffer, Spectrum, Verdict


# ---------------------------------------------------------------------------
# Signal helpers
# ---------------------------------------------------------------------------


def white_noise(seconds: float = 3.0, sample_rate: int = 44100, seed: int = 0) -> np.ndarray:
    """Deterministic white noise in [-0.5, 0.5]."""
    rng = np.random.default_rng(seed)
    return rng.uniform(-0.5, 0.5, int(seconds * sample_rate)).astype(np.float32)


def lowpassed_noise(
    cutoff_hz: float,
    seconds: float = 3.0,
    sample_rate: int = 44100,
    seed: int = 0,
) -> np.ndarray:
    """White noise with everything above ``cutoff_hz`` removed in the frequency domain."""
    noise = white_noise(seconds, sample_rate, seed).astype(np.float64)
    spectrum = np.fft.rfft(noise)
    freqs = np.fft.rfftfreq(noise.size, d=1.0 / sample_rate)
    spectrum[freqs > cutoff_hz] = 0.0
    return np.fft.irfft(spectrum, n=noise.size).astype(np.float32)


def make_features(
    frequency_hz: float = 20000.0,
    is_artificial: bool = False,
    dynamic_range_db: float = 40.0,
    hf_energy_pct: float = 1.0,
    spectral_flatness: float = 0.5,
    confidence: int = 100,
) -> Features:
    """Features with neutral adjustment values unless overridden."""
    return Features(
        cutoff=Cutoff(
            frequency_hz=frequency_hz,
            bin=int(frequency_hz / 22050 * 2047),
            is_artificial=is_artificial,
            threshold_db=-80.0,
        ),
        dynamic_range_db=dynamic_range_db,
        hf_energy_pct=hf_energy_pct,
        spectral_flatness=spectral_flatness,
        peaks=(),
        confidence=confidence,
    )


# ---------------------------------------------------------------------------
# Engine stub
# ---------------------------------------------------------------------------


class RecordingEngine:
    """
    Engine stand-in that records how many analyses overlap.

    Buffers whose ``source`` is listed in ``fail_on`` raise instead of
    returning a verdict; ``delays`` maps a source to seconds slept.
    """

    def __init__(self, delay: float = 0.05, fail_on=(), delays=None):
        self.delay = delay
        self.fail_on = set(fail_on)
        self.delays = delays or {}
        self.active = 0
        self.max_active = 0
        self.calls = []
        self._lock = threading.Lock()

    def analyze(self, buffer: PcmBuffer) -> Verdict:
        with self._lock:
            self.active += 1
            self.max_active = max(self.max_active, self.active)
            self.calls.append(buffer.source)
        try:
            time.sleep(self.delays.get(buffer.source, self.delay))
            if buffer.source in self.fail_on:
                raise RuntimeError(f"cannot analyse {buffer.source}")
            score = int(buffer.samples[0]) if buffer.samples.size else 50
            return Verdict(
                quality_label="Lossless",
                quality_score=score,
                confidence=100,
                is_upscaled=False,
                normalized_frequency_pct=90.7,
                tier="LOSSLESS",
                cutoff_hz=20000.0,
            )
        finally:
            with self._lock:
                self.active -= 1


def stub_buffer(name: str, score: int = 50) -> PcmBuffer:
    """Tiny buffer whose first sample carries the score the stub engine reports."""
    return PcmBuffer(np.full(8, score, dtype=np.float32), 44100, source=name)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def noise_buffer():
    """Three seconds of full-band mono white noise at 44.1 kHz."""
    return PcmBuffer(white_noise(), 44100, source="noise")


@pytest.fixture
def silent_buffer():
    """One second of digital silence."""
    return PcmBuffer(np.zeros(44100, dtype=np.float32), 44100, source="silence")


@pytest.fixture
def flat_spectrum():
    """2048 bins at -60 dB."""
    return Spectrum(np.full(2048, -60.0))


@pytest.fixture
def brickwall_spectrum():
    """A -60 dB plateau that drops to the floor over the last eleven bins."""
    values = np.full(2048, -60.0)
    values[2037:] = -100.0
    return Spectrum(values)


@pytest.fixture
def classifier():
    return QualityClassifier()


@pytest.fixture
def recording_engine():
    return RecordingEngine()
