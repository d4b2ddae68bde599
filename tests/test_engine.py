"""Tests for the analysis engine."""

from unittest.mock import MagicMock

import numpy as np
import pytest

from trueaudio.core.engine import QualityAnalysisEngine, create_analysis_engine
from trueaudio.core.models import PcmBuffer, Spectrum
from trueaudio.utils.config import EngineConfig
from trueaudio.utils.errors import (
    AnalysisError,
    ConfigurationError,
    DecodeError,
    InsufficientDataError,
)

from conftest import lowpassed_noise, white_noise


@pytest.fixture
def engine():
    return QualityAnalysisEngine()


class TestEnginePipeline:

    def test_full_band_noise_is_lossless(self, engine, noise_buffer):
        verdict = engine.analyze(noise_buffer)
        assert verdict.quality_label == "Lossless"
        assert verdict.quality_score == 100
        assert verdict.cutoff_hz > 21000.0
        assert verdict.is_upscaled is False

    def test_lowpassed_noise_is_moderate(self, engine):
        buffer = PcmBuffer(lowpassed_noise(17000.0), 44100)
        verdict = engine.analyze(buffer)
        assert verdict.quality_label == "Moderate"
        assert 16500.0 < verdict.cutoff_hz < 17500.0

    def test_low_rate_source_is_fake(self, engine):
        buffer = PcmBuffer(white_noise(3.0, 22050), 22050)
        verdict = engine.analyze(buffer)
        assert verdict.quality_label == "Fake/Upscaled"
        assert verdict.cutoff_hz < 12000.0
        assert verdict.normalized_frequency_pct > 85.0

    def test_silence_is_not_an_error(self, engine, silent_buffer):
        verdict = engine.analyze(silent_buffer)
        assert verdict.cutoff_hz == 0.0
        assert verdict.tier == "FAKE_UPSCALED"
        assert 0 <= verdict.quality_score <= 100

    def test_idempotent(self, engine, noise_buffer):
        assert engine.analyze(noise_buffer) == engine.analyze(noise_buffer)

    def test_raw_array_with_sample_rate(self, engine):
        verdict = engine.analyze(white_noise(), sample_rate=44100)
        assert verdict.quality_label == "Lossless"

    def test_analyze_spectrum(self, engine, brickwall_spectrum):
        verdict = engine.analyze_spectrum(brickwall_spectrum, 44100)
        assert verdict.is_upscaled is True
        assert verdict.quality_label == "Lossless"
        assert verdict.quality_score == 95
        assert verdict.confidence == 50

    def test_independent_engines(self):
        values = np.full(2048, -100.0)
        values[:1000] = -60.0
        values[1000:1500] = -75.0
        spectrum = Spectrum(values)

        loose = QualityAnalysisEngine(EngineConfig(cutoff_threshold_db=-80.0))
        strict = QualityAnalysisEngine(EngineConfig(cutoff_threshold_db=-70.0))
        assert loose.analyze_spectrum(spectrum, 44100).cutoff_hz > \
            strict.analyze_spectrum(spectrum, 44100).cutoff_hz
        # The first engine is unaffected by the second
        assert loose.extractor.cutoff_threshold_db == -80.0


class TestEngineErrors:

    def test_empty_buffer(self, engine):
        with pytest.raises(InsufficientDataError):
            engine.analyze(PcmBuffer(np.zeros(0, dtype=np.float32), 44100))

    def test_raw_array_requires_sample_rate(self, engine):
        with pytest.raises(DecodeError, match="sample_rate"):
            engine.analyze(white_noise())

    def test_non_finite_samples(self, engine):
        samples = white_noise()
        samples[0] = np.nan
        samples[66150] = np.nan
        with pytest.raises(DecodeError):
            engine.analyze(PcmBuffer(samples, 44100))

    def test_unexpected_failure_wrapped(self, noise_buffer):
        analyzer = MagicMock()
        analyzer.analyze.side_effect = ValueError("bad window")
        engine = QualityAnalysisEngine(analyzer=analyzer)

        with pytest.raises(AnalysisError, match="bad window") as exc_info:
            engine.analyze(noise_buffer)
        assert isinstance(exc_info.value.__cause__, ValueError)

    def test_analysis_errors_not_rewrapped(self, noise_buffer):
        analyzer = MagicMock()
        analyzer.analyze.side_effect = InsufficientDataError("too short", frames=3)
        engine = QualityAnalysisEngine(analyzer=analyzer)

        with pytest.raises(InsufficientDataError):
            engine.analyze(noise_buffer)


class TestCreateAnalysisEngine:

    def test_defaults(self):
        engine = create_analysis_engine()
        assert engine.config == EngineConfig()
        assert engine.analyzer.transform_size == 4096

    def test_uses_analysis_section(self):
        engine = create_analysis_engine({"analysis": {"transform_size": 1024, "smoothing": 0.5}})
        assert engine.analyzer.transform_size == 1024
        assert engine.analyzer.smoothing == 0.5

    def test_unknown_option_rejected(self):
        with pytest.raises(ConfigurationError, match="fft_bins"):
            create_analysis_engine({"analysis": {"fft_bins": 2048}})

    def test_invalid_size_rejected(self):
        with pytest.raises(ConfigurationError):
            create_analysis_engine({"analysis": {"transform_size": 3000}})
