"""Tests for the windowing/transform stage."""

import numpy as np
import pytest

from trueaudio.core.models import PcmBuffer
from trueaudio.core.transform import SpectrumAnalyzer
from trueaudio.utils.config import EngineConfig
from trueaudio.utils.errors import DecodeError, InsufficientDataError

from conftest import white_noise


@pytest.fixture
def analyzer():
    return SpectrumAnalyzer()


class TestSpectrumShape:

    def test_length_is_half_transform_size(self, analyzer, noise_buffer):
        spectrum = analyzer.analyze(noise_buffer)
        assert len(spectrum) == 2048

    @pytest.mark.parametrize("size", [256, 1024, 8192])
    def test_length_follows_config(self, size, noise_buffer):
        analyzer = SpectrumAnalyzer.from_config(EngineConfig(transform_size=size))
        assert len(analyzer.analyze(noise_buffer)) == size // 2

    def test_values_finite_and_floored(self, analyzer, noise_buffer):
        values = analyzer.analyze(noise_buffer).magnitudes_db
        assert np.all(np.isfinite(values))
        assert values.min() >= -100.0

    def test_silence_sits_on_the_floor(self, analyzer, silent_buffer):
        values = analyzer.analyze(silent_buffer).magnitudes_db
        np.testing.assert_allclose(values, np.full(2048, -100.0))

    def test_nyquist_is_fixed_analysis_rate(self, analyzer):
        buffer = PcmBuffer(white_noise(1.0, 48000), 48000)
        assert analyzer.analyze(buffer).nyquist == 22050.0


class TestSpectrumBehaviour:

    def test_deterministic(self, analyzer, noise_buffer):
        first = analyzer.analyze(noise_buffer).magnitudes_db
        second = analyzer.analyze(noise_buffer).magnitudes_db
        np.testing.assert_array_equal(first, second)

    def test_identical_stereo_channels_match_mono(self, analyzer):
        noise = white_noise()
        mono = analyzer.analyze(PcmBuffer(noise, 44100)).magnitudes_db
        stereo = analyzer.analyze(PcmBuffer(np.stack([noise, noise]), 44100)).magnitudes_db
        np.testing.assert_allclose(stereo, mono)

    def test_buffer_not_modified(self, analyzer):
        samples = white_noise(1.0)
        original = samples.copy()
        analyzer.analyze(PcmBuffer(samples, 44100))
        np.testing.assert_array_equal(samples, original)

    def test_short_buffer_is_zero_padded(self, analyzer):
        buffer = PcmBuffer(white_noise(0.01), 44100)
        assert len(analyzer.analyze(buffer)) == 2048


class TestSegmentSelection:

    def test_centred_on_midpoint(self, analyzer):
        segment = analyzer.select_segment(np.arange(100.0), sample_rate=10)
        np.testing.assert_array_equal(segment, np.arange(40.0, 60.0))

    def test_short_buffer_used_whole(self, analyzer):
        segment = analyzer.select_segment(np.arange(10.0), sample_rate=10)
        np.testing.assert_array_equal(segment, np.arange(10.0))


class TestSpectrumErrors:

    def test_empty_buffer_raises(self, analyzer):
        with pytest.raises(InsufficientDataError) as exc_info:
            analyzer.analyze(PcmBuffer(np.zeros(0, dtype=np.float32), 44100))
        assert exc_info.value.frames == 0

    def test_empty_stereo_buffer_raises(self, analyzer):
        with pytest.raises(InsufficientDataError):
            analyzer.analyze(PcmBuffer(np.zeros((2, 0), dtype=np.float32), 44100))

    @pytest.mark.parametrize("bad", [np.nan, np.inf])
    def test_non_finite_samples_raise(self, analyzer, bad):
        samples = white_noise(1.0)
        samples[22050] = bad
        with pytest.raises(DecodeError, match="non-finite"):
            analyzer.analyze(PcmBuffer(samples, 44100))
