"""Transcription service that runs streaming recognition on worker threads."""

import logging
import threading
from typing import Callable, List, Optional

from ..models.transcription import TranscriptionResult
from ..transcription.base import AbstractTranscriptionBackend
from ..transcription.stream import AudioStream
from ..config import WakeListenConfig

logger = logging.getLogger(__name__)

CompletionCallback = Callable[[Optional[TranscriptionResult], Optional[Exception]], None]


class TranscriptionService:
    """Runs one recognition per AudioStream and reports completion by callback."""

    def __init__(self, backend: AbstractTranscriptionBackend):
        """Initialize transcription service.

        Args:
            backend: Initialized streaming transcription backend
        """
        self.backend = backend
        self._workers: List[threading.Thread] = []
        self._lock = threading.Lock()
        self._counter = 0

    @classmethod
    def from_config(cls, config: WakeListenConfig) -> "TranscriptionService":
        """Create the service with a Google Speech backend from configuration."""
        from ..transcription.google_backend import GoogleSpeechBackend

        credentials_path = config.get_google_credentials_path()
        language = config.get('google_cloud.language', 'en-US')
        sample_rate = config.get('audio.sample_rate', 16000)
        single_utterance = config.get('google_cloud.single_utterance', True)

        logger.info("Initializing Google Speech backend...")
        logger.debug(f"Config: language={language}, sample_rate={sample_rate}, "
                     f"single_utterance={single_utterance}")

        backend = GoogleSpeechBackend(
            credentials_path=credentials_path,
            sample_rate=sample_rate,
            language=language,
            single_utterance=single_utterance,
        )
        if not backend.initialize():
            raise RuntimeError("Google Speech backend failed to initialize")

        logger.info("Google Speech backend initialized successfully")
        return cls(backend)

    def recognize(self, stream: AudioStream, on_complete: CompletionCallback) -> threading.Thread:
        """Start recognizing stream in the background.

        on_complete is called exactly once on the worker thread, with
        (result, None) on success or (None, error) on failure. Recognition
        finishes once the producer closes the stream or the service ends the
        utterance on its own.
        """
        with self._lock:
            self._counter += 1
            name = f"transcription_{self._counter}"
            self._workers = [t for t in self._workers if t.is_alive()]

        thread = threading.Thread(target=self._run, args=(stream, on_complete), name=name, daemon=True)
        with self._lock:
            self._workers.append(thread)
        thread.start()
        logger.debug(f"Started {name} for stream {stream.name}")
        return thread

    def _run(self, stream: AudioStream, on_complete: CompletionCallback) -> None:
        result: Optional[TranscriptionResult] = None
        error: Optional[Exception] = None
        try:
            result = self.backend.transcribe_stream(stream)
            result.session_id = stream.name
            logger.info(f"Transcribed {stream.name}: '{result.text}' ({result.confidence:.1%})")
        except Exception as e:
            logger.error(f"problem STT - {e}", exc_info=True)
            error = e

        try:
            on_complete(result, error)
        except Exception as e:
            logger.error(f"Transcription completion handler failed: {e}", exc_info=True)

    def pending_count(self) -> int:
        with self._lock:
            return sum(1 for t in self._workers if t.is_alive())

    def shutdown(self, timeout: float = 5.0) -> bool:
        """Wait for in-flight recognitions and release the backend.

        Returns:
            True if every worker finished within timeout
        """
        logger.info("Shutting down transcription service...")
        with self._lock:
            workers = list(self._workers)

        success = True
        for thread in workers:
            thread.join(timeout)
            if thread.is_alive():
                logger.warning(f"Transcription worker {thread.name} did not finish")
                success = False

        try:
            self.backend.cleanup()
        except Exception as e:
            logger.warning(f"Error cleaning up transcription backend: {e}")

        logger.info(f"Transcription service shutdown complete: success={success}")
        return success
