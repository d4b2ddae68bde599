"""
Analysis engine for the TrueAudio spectral quality analyzer.

Orchestrates transform, feature extraction and classification for one
buffer. Each engine owns its configuration and collaborators; nothing is
cached at module level, so independent engines can coexist.
"""

import logging
import time
from typing import Any, Dict, Optional, Union

import numpy as np

from trueaudio.core.classifier import QualityClassifier
from trueaudio.core.features import FeatureExtractor
from trueaudio.core.models import Features, PcmBuffer, Spectrum, Verdict
from trueaudio.core.transform import SpectrumAnalyzer
from trueaudio.utils.config import EngineConfig
from trueaudio.utils.errors import AnalysisError, DecodeError


class QualityAnalysisEngine:
    """
    Main analysis engine - runs the full pipeline for one buffer.

    Design:
    - Dependency Injection: collaborators may be replaced (testable)
    - Pure pipeline: identical buffer and config give an identical verdict
    - Error Handling: structural failures raise, numeric edge cases don't
    """

    def __init__(
        self,
        config: Optional[EngineConfig] = None,
        analyzer: Optional[SpectrumAnalyzer] = None,
        extractor: Optional[FeatureExtractor] = None,
        classifier: Optional[QualityClassifier] = None,
    ):
        """
        Initialize analysis engine.

        Args:
            config: Validated analysis options (defaults if None)
            analyzer: Optional transform stage override
            extractor: Optional feature extractor override
            classifier: Optional classifier override
        """
        self.config = config or EngineConfig()
        self.analyzer = analyzer or SpectrumAnalyzer.from_config(self.config)
        self.extractor = extractor or FeatureExtractor(
            cutoff_threshold_db=self.config.cutoff_threshold_db
        )
        self.classifier = classifier or QualityClassifier()
        self.logger = logging.getLogger('engine')

    def analyze(
        self,
        buffer: Union[PcmBuffer, np.ndarray],
        sample_rate: Optional[int] = None,
    ) -> Verdict:
        """
        Analyze a PCM buffer completely.

        Args:
            buffer: PcmBuffer, or a raw sample array together with sample_rate
            sample_rate: Required when ``buffer`` is a raw array

        Returns:
            Verdict: Quality verdict for the buffer

        Raises:
            InsufficientDataError: Buffer is empty
            DecodeError: Input is not valid PCM
            AnalysisError: Any other pipeline failure
        """
        start_time = time.time()
        pcm = self._as_buffer(buffer, sample_rate)

        try:
            spectrum = self.analyzer.analyze(pcm)
            verdict = self.analyze_spectrum(spectrum, pcm.sample_rate)

        except AnalysisError:
            raise

        except Exception as e:
            self.logger.error(f"Analysis failed: {e}")
            raise AnalysisError(
                f"Spectral analysis failed: {e}",
                details={"source": pcm.source}
            ) from e

        elapsed = time.time() - start_time
        self.logger.info(
            f"Analysis complete in {elapsed:.3f}s: {verdict.quality_label} "
            f"({verdict.quality_score}/100, cutoff {verdict.cutoff_hz:.0f} Hz)"
        )
        return verdict

    def analyze_spectrum(self, spectrum: Spectrum, sample_rate: int) -> Verdict:
        """Run feature extraction and classification on an existing spectrum."""
        features = self.extract_features(spectrum)
        verdict = self.classifier.classify(features, sample_rate)
        self.logger.debug(
            f"Cutoff bin {features.cutoff.bin} "
            f"(artificial: {features.cutoff.is_artificial}), "
            f"DR {features.dynamic_range_db:.1f} dB, "
            f"HF {features.hf_energy_pct:.2f}%, "
            f"flatness {features.spectral_flatness:.3f}, "
            f"{len(features.peaks)} peaks"
        )
        return verdict

    def extract_features(self, spectrum: Spectrum) -> Features:
        """Extract features only."""
        return self.extractor.extract(spectrum)

    @staticmethod
    def _as_buffer(
        buffer: Union[PcmBuffer, np.ndarray],
        sample_rate: Optional[int],
    ) -> PcmBuffer:
        if isinstance(buffer, PcmBuffer):
            return buffer
        if sample_rate is None:
            raise DecodeError("sample_rate is required for raw sample arrays")
        return PcmBuffer(np.asarray(buffer), sample_rate)


def create_analysis_engine(config: Optional[Dict[str, Any]] = None) -> QualityAnalysisEngine:
    """
    Factory function to create a configured analysis engine.

    Args:
        config: Full configuration dict (uses its ``analysis`` section)

    Returns:
        QualityAnalysisEngine: Configured engine

    Raises:
        ConfigurationError: Unknown or invalid analysis options
    """
    config = config or {}
    engine_config = EngineConfig.from_dict(config.get('analysis'))
    logging.getLogger('engine').debug(f"Creating engine with {engine_config}")
    return QualityAnalysisEngine(engine_config)
