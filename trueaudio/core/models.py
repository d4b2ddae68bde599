"""
Core data models for the TrueAudio engine.

Immutable domain models for PCM input, spectra, extracted features and
quality verdicts, plus the mutable queue item owned by the batch scheduler.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Hashable, Optional, Tuple

import numpy as np

from trueaudio.utils.errors import DecodeError

# Fixed analysis rate; every spectrum is interpreted against this Nyquist
ANALYSIS_SAMPLE_RATE: int = 44100
SILENCE_FLOOR_DB: float = -100.0


@dataclass(frozen=True)
class PcmBuffer:
    """
    Decoded PCM samples handed to the engine by a collaborator.

    ``samples`` is either 1-D (mono) or 2-D shaped (channels, frames),
    the same layout ``librosa.load(mono=False)`` returns. The engine only
    reads it; ``mono()`` always returns a new array.
    """

    samples: np.ndarray
    sample_rate: int
    source: Optional[str] = None

    def __post_init__(self) -> None:
        """Validate fields."""
        samples = np.asarray(self.samples)
        if samples.ndim not in (1, 2):
            raise DecodeError(
                f"PCM samples must be 1-D or (channels, frames), got shape {samples.shape}",
                source=self.source
            )
        if samples.ndim == 2 and 0 < samples.shape[1] < samples.shape[0]:
            # soundfile's (frames, channels) layout read the wrong way round
            raise DecodeError(
                f"PCM samples must be shaped (channels, frames), got {samples.shape}: "
                f"{samples.shape[0]} channels with only {samples.shape[1]} frames",
                source=self.source
            )
        if not np.issubdtype(samples.dtype, np.number):
            raise DecodeError(
                f"PCM samples must be numeric, got dtype {samples.dtype}",
                source=self.source
            )
        if isinstance(self.sample_rate, bool) or not isinstance(self.sample_rate, (int, np.integer)) \
                or self.sample_rate <= 0:
            raise DecodeError(
                f"Sample rate must be a positive integer, got {self.sample_rate!r}",
                source=self.source
            )
        object.__setattr__(self, "samples", samples)
        object.__setattr__(self, "sample_rate", int(self.sample_rate))

    @property
    def channels(self) -> int:
        return 1 if self.samples.ndim == 1 else self.samples.shape[0]

    @property
    def frames(self) -> int:
        return self.samples.shape[-1]

    @property
    def duration(self) -> float:
        """Duration in seconds."""
        return self.frames / self.sample_rate

    def mono(self) -> np.ndarray:
        """Get a float64 mono copy, averaging channels sample-wise."""
        if self.channels == 1:
            return np.array(self.samples.reshape(-1), dtype=np.float64)
        return np.mean(self.samples, axis=0, dtype=np.float64)


@dataclass(frozen=True)
class Spectrum:
    """Decibel-scaled magnitude spectrum of one analysis frame."""

    magnitudes_db: np.ndarray
    nyquist: float = ANALYSIS_SAMPLE_RATE / 2

    def __post_init__(self) -> None:
        """Freeze a private finite copy of the magnitudes."""
        values = np.array(self.magnitudes_db, dtype=np.float64).reshape(-1)
        values = np.nan_to_num(values, nan=SILENCE_FLOOR_DB, neginf=SILENCE_FLOOR_DB)
        values.flags.writeable = False
        object.__setattr__(self, "magnitudes_db", values)

    def __len__(self) -> int:
        return len(self.magnitudes_db)

    def frequency_of(self, bin_index: int) -> float:
        """Map a bin index to Hz."""
        if len(self) < 2:
            return 0.0
        return bin_index / (len(self) - 1) * self.nyquist


@dataclass(frozen=True)
class Cutoff:
    """Highest bin above the energy threshold and its rolloff verdict."""

    frequency_hz: float
    bin: int
    is_artificial: bool
    threshold_db: float

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            'frequency_hz': self.frequency_hz,
            'bin': self.bin,
            'is_artificial': self.is_artificial,
            'threshold_db': self.threshold_db
        }


@dataclass(frozen=True)
class Peak:
    """Local spectral maximum."""

    bin: int
    frequency_hz: float
    magnitude_db: float

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            'bin': self.bin,
            'frequency_hz': self.frequency_hz,
            'magnitude_db': self.magnitude_db
        }


@dataclass(frozen=True)
class Features:
    """Everything derived from a single spectrum."""

    cutoff: Cutoff
    dynamic_range_db: float
    hf_energy_pct: float
    spectral_flatness: float  # (0.0, 1.0]
    peaks: Tuple[Peak, ...]
    confidence: int  # [0, 100]

    def __post_init__(self) -> None:
        """Validate fields."""
        validate_percentage(self.confidence, "confidence")
        object.__setattr__(self, "peaks", tuple(self.peaks))

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            'cutoff': self.cutoff.to_dict(),
            'dynamic_range_db': self.dynamic_range_db,
            'hf_energy_pct': self.hf_energy_pct,
            'spectral_flatness': self.spectral_flatness,
            'peaks': [p.to_dict() for p in self.peaks],
            'confidence': self.confidence
        }


@dataclass(frozen=True)
class Verdict:
    """Terminal output of the engine for one item."""

    quality_label: str
    quality_score: int  # [0, 100]
    confidence: int  # [0, 100]
    is_upscaled: bool
    normalized_frequency_pct: float
    tier: str
    cutoff_hz: float
    features: Optional[Features] = field(default=None, compare=False, repr=False)

    def __post_init__(self) -> None:
        """Validate fields."""
        validate_percentage(self.quality_score, "quality_score")
        validate_percentage(self.confidence, "confidence")

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a flat record for JSON/CSV export."""
        record = {
            'quality_label': self.quality_label,
            'quality_score': self.quality_score,
            'confidence': self.confidence,
            'is_upscaled': self.is_upscaled,
            'normalized_frequency_pct': self.normalized_frequency_pct,
            'tier': self.tier,
            'cutoff_hz': self.cutoff_hz,
        }
        if self.features is not None:
            record['features'] = self.features.to_dict()
        return record

    def to_json(self, indent: int = 2) -> str:
        """Export as JSON string."""
        return json.dumps(self.to_dict(), indent=indent, default=str)

    def get_summary(self) -> str:
        """Get human-readable summary."""
        parts = [
            f"{self.quality_label} ({self.quality_score}/100)",
            f"Cutoff: {self.cutoff_hz:.0f} Hz ({self.normalized_frequency_pct:.1f}%)",
            f"Confidence: {self.confidence}%",
        ]
        if self.is_upscaled:
            parts.append("Upscaled")
        return " | ".join(parts)


@dataclass(frozen=True)
class FileMetadata:
    """
    Container facts reported next to a verdict.

    ``bitrate_kbps`` is the average over the whole file. A lossless
    container holding transcoded lossy audio still shows a lossless
    bitrate here, while the cutoff gives it away.
    """

    format: str
    channels: int
    duration: float  # seconds
    sample_rate: int
    file_size: int  # bytes
    bitrate_kbps: int

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            'format': self.format,
            'channels': self.channels,
            'duration': self.duration,
            'sample_rate': self.sample_rate,
            'file_size': self.file_size,
            'bitrate_kbps': self.bitrate_kbps
        }

    def get_summary(self) -> str:
        """Get human-readable summary."""
        return (
            f"{self.format} {self.sample_rate / 1000:.1f} kHz "
            f"{self.channels} ch {self.duration:.1f}s {self.bitrate_kbps} kbps"
        )


class ItemStatus(str, Enum):
    """Lifecycle of a queue item."""

    QUEUED = "queued"
    PROCESSING = "processing"
    DONE = "done"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (ItemStatus.DONE, ItemStatus.FAILED)


@dataclass
class QueueItem:
    """An item submitted to the batch scheduler. Mutated only by the scheduler."""

    id: Hashable
    payload: PcmBuffer
    status: ItemStatus = ItemStatus.QUEUED
    verdict: Optional[Verdict] = None
    error: Optional[Exception] = None
    submitted_at: datetime = field(default_factory=datetime.now)
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None

    @property
    def analysis_time(self) -> Optional[float]:
        """Seconds spent processing, once finished."""
        if self.started_at is None or self.finished_at is None:
            return None
        return (self.finished_at - self.started_at).total_seconds()


@dataclass(frozen=True)
class BatchOutcome:
    """One element of the batch result stream."""

    id: Hashable
    verdict: Optional[Verdict] = None
    error: Optional[Exception] = None

    @property
    def succeeded(self) -> bool:
        return self.error is None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            'id': self.id,
            'verdict': self.verdict.to_dict() if self.verdict else None,
            'error': str(self.error) if self.error else None
        }


# Validation helpers

def validate_percentage(value: int, name: str) -> None:
    """Validate an integer score is in [0, 100]."""
    if not (0 <= value <= 100):
        raise ValueError(f"{name} must be in [0, 100], got {value}")
