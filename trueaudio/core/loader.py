"""
Audio loader for the TrueAudio command line.

Hands decoded PCM to the engine. Decoding itself is delegated to
soundfile, with librosa (audioread) as the fallback for containers
libsndfile cannot open.
"""

import asyncio
import logging
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import librosa
import numpy as np
import soundfile as sf

from trueaudio.core.confidence import round_half_up
from trueaudio.core.models import FileMetadata, PcmBuffer
from trueaudio.utils.errors import DecodeError

SUPPORTED_FORMATS: Dict[str, str] = {
    '.wav': 'soundfile',
    '.aif': 'soundfile',
    '.aiff': 'soundfile',
    '.flac': 'soundfile',
    '.ogg': 'soundfile',
    '.mp3': 'audioread',
    '.m4a': 'audioread',
    '.aac': 'audioread',
}

MAX_FILE_SIZE: int = 524288000  # 500 MB

logger = logging.getLogger(__name__)


class AudioLoader:
    """
    Loads audio files into PcmBuffer instances at their native rate.

    Thread-safe and stateless - can be used concurrently.
    """

    def __init__(self, max_file_size: int = MAX_FILE_SIZE):
        """
        Initialize loader with configuration.

        Args:
            max_file_size: Maximum file size in bytes
        """
        self.max_file_size = max_file_size

    def load(self, file_path: Path) -> PcmBuffer:
        """
        Load audio file.

        Args:
            file_path: Path to audio file

        Returns:
            PcmBuffer: Samples shaped (channels, frames) or (frames,)

        Raises:
            DecodeError: File missing, unsupported, too large or undecodable
        """
        file_path = Path(file_path)
        self._validate_file(file_path)

        samples, sample_rate = self._decode(file_path)
        if samples.size == 0:
            raise DecodeError(f"Audio file is empty: {file_path}", source=str(file_path))

        buffer = PcmBuffer(samples, sample_rate, source=str(file_path))
        logger.info(
            f"Loaded audio: {file_path.name} ({sample_rate} Hz, "
            f"{buffer.channels} ch, {buffer.duration:.2f}s)"
        )
        return buffer

    def load_with_metadata(self, file_path: Path) -> Tuple[PcmBuffer, FileMetadata]:
        """
        Load audio file together with its container facts.

        Returns:
            Tuple of the decoded buffer and its FileMetadata

        Raises:
            DecodeError: As for load()
        """
        file_path = Path(file_path)
        buffer = self.load(file_path)
        return buffer, self.describe(file_path, buffer)

    @staticmethod
    def describe(file_path: Path, buffer: PcmBuffer) -> FileMetadata:
        """Summarise a decoded file; bitrate is file size over duration."""
        file_path = Path(file_path)
        file_size = file_path.stat().st_size
        bitrate = 0
        if buffer.duration > 0:
            bitrate = round_half_up(file_size * 8 / buffer.duration / 1000)
        return FileMetadata(
            format=file_path.suffix.lstrip(".").upper(),
            channels=buffer.channels,
            duration=buffer.duration,
            sample_rate=buffer.sample_rate,
            file_size=file_size,
            bitrate_kbps=bitrate,
        )

    def _validate_file(self, file_path: Path) -> None:
        """Validate file exists, has supported format, and is within size limit."""
        if not file_path.is_file():
            raise DecodeError(f"Audio file not found: {file_path}", source=str(file_path))

        suffix = file_path.suffix.lower()
        if suffix not in SUPPORTED_FORMATS:
            raise DecodeError(
                f"Format {suffix or '(none)'} not supported. "
                f"Supported formats: {', '.join(sorted(SUPPORTED_FORMATS))}",
                source=str(file_path)
            )

        file_size = file_path.stat().st_size
        if file_size > self.max_file_size:
            raise DecodeError(
                f"File too large: {file_size / 1024 / 1024:.1f} MB. "
                f"Maximum: {self.max_file_size / 1024 / 1024:.1f} MB",
                source=str(file_path)
            )

    def _decode(self, file_path: Path) -> Tuple[np.ndarray, int]:
        try:
            data, sample_rate = sf.read(str(file_path), dtype='float32', always_2d=True)
            # soundfile gives (frames, channels)
            return data.T, sample_rate
        except RuntimeError as e:
            logger.debug(f"soundfile could not decode {file_path.name}: {e}")

        try:
            data, sample_rate = librosa.load(str(file_path), sr=None, mono=False, dtype=np.float32)
            return data, int(sample_rate)
        except Exception as e:
            raise DecodeError(
                f"Failed to decode audio data from {file_path}: {e}",
                source=str(file_path)
            ) from e


class AsyncAudioLoader:
    """Async wrapper around AudioLoader for non-blocking I/O."""

    def __init__(
        self,
        loader: Optional[AudioLoader] = None,
        executor: Optional[ThreadPoolExecutor] = None
    ):
        self.loader = loader or AudioLoader()
        self._owns_executor = executor is None
        self.executor = executor or ThreadPoolExecutor(max_workers=4)

    async def load(self, file_path: Path) -> PcmBuffer:
        """Load audio asynchronously."""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(
            self.executor,
            self.loader.load,
            file_path
        )

    async def load_with_metadata(self, file_path: Path) -> Tuple[PcmBuffer, FileMetadata]:
        """Load audio and its metadata asynchronously."""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(
            self.executor,
            self.loader.load_with_metadata,
            file_path
        )

    def shutdown(self) -> None:
        """Shutdown the executor."""
        if self._owns_executor:
            self.executor.shutdown(wait=True)


def create_audio_loader(config: Optional[Dict[str, Any]] = None) -> AudioLoader:
    """
    Factory function to create AudioLoader with configuration.

    Args:
        config: Optional ``audio`` configuration section

    Returns:
        AudioLoader: Configured loader instance
    """
    if config is None:
        config = {}

    return AudioLoader(
        max_file_size=config.get('max_file_size', MAX_FILE_SIZE),
    )
