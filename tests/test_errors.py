"""Tests for the exception hierarchy."""

import pytest

from trueaudio.utils.errors import (
    AnalysisError,
    ConfigurationError,
    DecodeError,
    InsufficientDataError,
)


class TestErrors:

    @pytest.mark.parametrize("error_type", [InsufficientDataError, DecodeError, ConfigurationError])
    def test_hierarchy(self, error_type):
        assert issubclass(error_type, AnalysisError)

    def test_message_without_details(self):
        assert str(AnalysisError("failed")) == "failed"

    def test_details_appended(self):
        error = AnalysisError("failed", details={"source": "a.wav"})
        assert str(error) == "failed (Details: {'source': 'a.wav'})"

    def test_insufficient_data_frames(self):
        error = InsufficientDataError("too short", frames=12)
        assert error.frames == 12
        assert error.details == {"frames": 12}

    def test_decode_error_source(self):
        error = DecodeError("bad pcm", source="b.flac")
        assert error.source == "b.flac"
        assert "b.flac" in str(error)

    def test_configuration_key(self):
        error = ConfigurationError("bad option", config_key="analysis.window")
        assert error.config_key == "analysis.window"
        assert error.message == "bad option"
