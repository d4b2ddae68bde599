"""
Core module containing data models, the spectral pipeline and the batch
scheduler.

Uses lazy imports for modules with heavy dependencies (librosa, soundfile).
"""

# Models are lightweight - import directly
from trueaudio.core.models import (
    ANALYSIS_SAMPLE_RATE,
    BatchOutcome,
    Cutoff,
    Features,
    FileMetadata,
    ItemStatus,
    PcmBuffer,
    Peak,
    QueueItem,
    Spectrum,
    Verdict,
)

__all__ = [
    # Models (always available)
    "ANALYSIS_SAMPLE_RATE",
    "BatchOutcome",
    "Cutoff",
    "Features",
    "FileMetadata",
    "ItemStatus",
    "PcmBuffer",
    "Peak",
    "QueueItem",
    "Spectrum",
    "Verdict",
    # Heavy modules (lazy loaded)
    "SpectrumAnalyzer",
    "FeatureExtractor",
    "QualityClassifier",
    "QualityTier",
    "QualityAnalysisEngine",
    "create_analysis_engine",
    "BatchScheduler",
    "BatchStats",
    "create_batch_scheduler",
    "AudioLoader",
    "create_audio_loader",
]


def __getattr__(name: str):
    """Lazy load modules with heavy dependencies."""
    if name == "SpectrumAnalyzer":
        from trueaudio.core.transform import SpectrumAnalyzer
        return SpectrumAnalyzer
    elif name == "FeatureExtractor":
        from trueaudio.core.features import FeatureExtractor
        return FeatureExtractor
    elif name in ("QualityClassifier", "QualityTier"):
        from trueaudio.core.classifier import QualityClassifier, QualityTier
        return QualityClassifier if name == "QualityClassifier" else QualityTier
    elif name in ("QualityAnalysisEngine", "create_analysis_engine"):
        from trueaudio.core.engine import QualityAnalysisEngine, create_analysis_engine
        return QualityAnalysisEngine if name == "QualityAnalysisEngine" else create_analysis_engine
    elif name in ("BatchScheduler", "BatchStats", "create_batch_scheduler"):
        from trueaudio.core import batch_processor
        return getattr(batch_processor, name)
    elif name in ("AudioLoader", "create_audio_loader"):
        from trueaudio.core.loader import AudioLoader, create_audio_loader
        return AudioLoader if name == "AudioLoader" else create_audio_loader
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
