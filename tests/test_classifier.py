"""Tests for the quality classifier."""

import random

import pytest

from trueaudio.core.classifier import QualityClassifier, QualityTier, normalized_frequency_pct

from conftest import make_features


class TestQualityTier:

    @pytest.mark.parametrize("frequency,tier", [
        (22050.0, QualityTier.LOSSLESS),
        (20000.0, QualityTier.LOSSLESS),
        (19999.0, QualityTier.HIGH_QUALITY),
        (18500.0, QualityTier.HIGH_QUALITY),
        (18499.0, QualityTier.MODERATE),
        (16000.0, QualityTier.MODERATE),
        (15999.0, QualityTier.LOW_QUALITY),
        (14000.0, QualityTier.LOW_QUALITY),
        (13999.0, QualityTier.FAKE_UPSCALED),
        (0.0, QualityTier.FAKE_UPSCALED),
    ])
    def test_for_frequency(self, frequency, tier):
        assert QualityTier.for_frequency(frequency) is tier

    @pytest.mark.parametrize("frequency,expected", [
        (20000.0, 100.0),
        (18500.0, 85.0),
        (19250.0, 92.5),
        (16000.0, 60.0),
        (17250.0, 72.5),
        (14000.0, 30.0),
        (15000.0, 45.0),
        (7000.0, 15.0),
        (1000.0, 10.0),
    ])
    def test_base_score(self, frequency, expected):
        tier = QualityTier.for_frequency(frequency)
        assert tier.base_score(frequency) == pytest.approx(expected)

    def test_labels_and_colors(self):
        assert QualityTier.LOSSLESS.label == "Lossless"
        assert QualityTier.FAKE_UPSCALED.label == "Fake/Upscaled"
        assert QualityTier.HIGH_QUALITY.color == "good"
        assert QualityTier.LOW_QUALITY.color == QualityTier.FAKE_UPSCALED.color == "bad"


class TestClassify:

    def test_lossless(self, classifier):
        verdict = classifier.classify(make_features(20000.0), 44100)
        assert verdict.quality_label == "Lossless"
        assert verdict.quality_score == 100
        assert verdict.tier == "LOSSLESS"
        assert verdict.is_upscaled is False

    def test_midpoint_rounds_half_up(self, classifier):
        verdict = classifier.classify(make_features(17250.0), 44100)
        assert verdict.quality_label == "Moderate"
        assert verdict.quality_score == 73

    def test_each_bonus_adds_five(self, classifier):
        assert classifier.classify(make_features(16000.0, hf_energy_pct=6.0), 44100).quality_score == 65
        assert classifier.classify(make_features(16000.0, spectral_flatness=0.9), 44100).quality_score == 65
        assert classifier.classify(make_features(16000.0, dynamic_range_db=60.0), 44100).quality_score == 65

    def test_bonus_thresholds_are_strict(self, classifier):
        features = make_features(16000.0, hf_energy_pct=5.0, spectral_flatness=0.8, dynamic_range_db=50.0)
        assert classifier.classify(features, 44100).quality_score == 60

    def test_artificial_cutoff_penalised_and_flagged(self, classifier):
        verdict = classifier.classify(make_features(14000.0, is_artificial=True), 44100)
        assert verdict.quality_score == 15
        assert verdict.is_upscaled is True

    def test_score_clamped_high(self, classifier):
        features = make_features(21000.0, hf_energy_pct=50.0, spectral_flatness=0.95, dynamic_range_db=80.0)
        assert classifier.classify(features, 44100).quality_score == 100

    def test_score_clamped_low(self, classifier):
        verdict = classifier.classify(make_features(0.0, is_artificial=True), 44100)
        assert verdict.quality_score == 0

    def test_confidence_passed_through(self, classifier):
        verdict = classifier.classify(make_features(confidence=35), 44100)
        assert verdict.confidence == 35

    def test_features_attached(self, classifier):
        features = make_features()
        assert classifier.classify(features, 44100).features is features

    def test_score_always_in_range(self, classifier):
        rng = random.Random(7)
        for _ in range(200):
            features = make_features(
                frequency_hz=rng.uniform(0.0, 22050.0),
                is_artificial=rng.random() < 0.5,
                dynamic_range_db=rng.uniform(0.0, 100.0),
                hf_energy_pct=rng.uniform(0.0, 100.0),
                spectral_flatness=rng.uniform(0.01, 1.0),
            )
            verdict = classifier.classify(features, 44100)
            assert 0 <= verdict.quality_score <= 100
            assert isinstance(verdict.quality_score, int)


class TestNormalizedFrequency:

    @pytest.mark.parametrize("frequency,rate,expected", [
        (20000.0, 44100, 90.7),
        (20000.0, 48000, 83.3),
        (22050.0, 44100, 100.0),
        (11000.0, 16000, 100.0),
        (0.0, 44100, 0.0),
    ])
    def test_percentage_of_source_nyquist(self, frequency, rate, expected):
        assert normalized_frequency_pct(frequency, rate) == expected

    def test_classify_uses_source_rate(self, classifier):
        verdict = classifier.classify(make_features(20000.0), 96000)
        assert verdict.normalized_frequency_pct == 41.7
