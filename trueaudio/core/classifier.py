"""
Quality classifier for the TrueAudio engine.

Maps a cutoff frequency and the auxiliary features to a quality tier,
label and 0-100 score. Pure function of its inputs.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Callable

from trueaudio.core.confidence import round_half_up
from trueaudio.core.models import Features, Verdict

HF_ENERGY_BONUS_PCT = 5.0
FLATNESS_BONUS = 0.8
DYNAMIC_RANGE_BONUS_DB = 50.0
BONUS_POINTS = 5
ARTIFICIAL_PENALTY_POINTS = 15


@dataclass(frozen=True)
class TierSpec:
    """Frequency floor, label, display colour key and score curve of a tier."""

    min_frequency_hz: float
    label: str
    color: str
    score: Callable[[float], float]


def _interpolate(base: float, span_points: float, start_hz: float, width_hz: float):
    return lambda f: base + (f - start_hz) / width_hz * span_points


class QualityTier(Enum):
    """Ordered quality tiers, best first."""

    LOSSLESS = TierSpec(20000.0, "Lossless", "excellent", lambda f: 100.0)
    HIGH_QUALITY = TierSpec(18500.0, "High Quality", "good", _interpolate(85.0, 15.0, 18500.0, 1500.0))
    MODERATE = TierSpec(16000.0, "Moderate", "moderate", _interpolate(60.0, 25.0, 16000.0, 2500.0))
    LOW_QUALITY = TierSpec(14000.0, "Low Quality", "bad", _interpolate(30.0, 30.0, 14000.0, 2000.0))
    FAKE_UPSCALED = TierSpec(0.0, "Fake/Upscaled", "bad", lambda f: max(10.0, f / 14000.0 * 30.0))

    @property
    def label(self) -> str:
        return self.value.label

    @property
    def color(self) -> str:
        return self.value.color

    @property
    def min_frequency_hz(self) -> float:
        return self.value.min_frequency_hz

    def base_score(self, frequency_hz: float) -> float:
        """Score before adjustments, interpolated within the tier."""
        return self.value.score(frequency_hz)

    @classmethod
    def for_frequency(cls, frequency_hz: float) -> "QualityTier":
        """First tier whose floor the frequency reaches."""
        for tier in cls:
            if frequency_hz >= tier.min_frequency_hz:
                return tier
        return cls.FAKE_UPSCALED


class QualityClassifier:
    """Turns features into a verdict."""

    def classify(self, features: Features, sample_rate: int) -> Verdict:
        """
        Classify extracted features.

        Args:
            features: Output of the feature extractor
            sample_rate: Source sample rate, used for the normalised
                frequency only

        Returns:
            Verdict: Label, clamped score, confidence and upscale flag
        """
        frequency = features.cutoff.frequency_hz
        tier = QualityTier.for_frequency(frequency)

        return Verdict(
            quality_label=tier.label,
            quality_score=self.score(features, tier),
            confidence=features.confidence,
            is_upscaled=features.cutoff.is_artificial,
            normalized_frequency_pct=normalized_frequency_pct(frequency, sample_rate),
            tier=tier.name,
            cutoff_hz=frequency,
            features=features,
        )

    @staticmethod
    def score(features: Features, tier: QualityTier) -> int:
        """Tier score plus additive adjustments, clamped to [0, 100]."""
        score = tier.base_score(features.cutoff.frequency_hz)

        if features.hf_energy_pct > HF_ENERGY_BONUS_PCT:
            score += BONUS_POINTS
        if features.spectral_flatness > FLATNESS_BONUS:
            score += BONUS_POINTS
        if features.dynamic_range_db > DYNAMIC_RANGE_BONUS_DB:
            score += BONUS_POINTS
        if features.cutoff.is_artificial:
            score -= ARTIFICIAL_PENALTY_POINTS

        return round_half_up(min(100.0, max(0.0, score)))


def normalized_frequency_pct(frequency_hz: float, sample_rate: int) -> float:
    """Cutoff as a percentage of the source Nyquist, capped at 100."""
    if sample_rate <= 0:
        return 0.0
    return round(min(100.0, frequency_hz / (sample_rate / 2) * 100.0), 1)
