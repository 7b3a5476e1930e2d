"""Abstract base class for speech synthesis backends."""

from abc import ABC, abstractmethod
from typing import Iterator


class AbstractSynthesisBackend(ABC):
    """Turns reply text into a stream of audio bytes."""

    @abstractmethod
    def synthesize(self, text: str, voice: str, output_format: str = "wav") -> Iterator[bytes]:
        """Synthesize text.

        Errors are raised as SynthesisError before the first chunk is
        produced, so callers can fall back without partial playback.

        Args:
            text: Text to speak
            voice: Backend-specific voice identifier
            output_format: Container/encoding of the produced audio

        Returns:
            Iterator over audio byte chunks, ending at end of audio
        """
        pass

    def initialize(self) -> bool:
        return True

    def cleanup(self) -> None:
        pass
