"""Abstract base classes for transcription backends."""

from abc import ABC, abstractmethod
from typing import Iterable
import logging

from ..models.transcription import TranscriptionResult

logger = logging.getLogger(__name__)


class AbstractTranscriptionBackend(ABC):
    """Abstract base class for streaming transcription backends."""

    def __init__(self, language: str = "en-US"):
        """Initialize backend with language preference."""
        self.language = language

    @abstractmethod
    def transcribe_stream(self, chunks: Iterable[bytes]) -> TranscriptionResult:
        """Transcribe one utterance delivered as a stream of audio chunks.

        The iterable ends when the producer closes the stream. Implementations
        raise TranscriptionError when the service fails.

        Args:
            chunks: Raw little-endian int16 mono audio

        Returns:
            TranscriptionResult for the whole utterance (empty text if no speech)
        """
        pass

    @abstractmethod
    def initialize(self) -> bool:
        """Initialize backend resources and verify configuration.

        Returns:
            True if initialization successful, False otherwise
        """
        pass

    @abstractmethod
    def cleanup(self) -> None:
        """Clean up backend resources."""
        pass
