"""Google Speech-to-Text streaming transcription backend."""

import time
import logging
from datetime import datetime
from typing import Iterable, Iterator, List, Optional

from .base import AbstractTranscriptionBackend
from ..exceptions import TranscriptionError
from ..models.transcription import TranscriptionResult

from google.cloud import speech
from google.api_core import exceptions as gax_exceptions
from google.oauth2 import service_account

logger = logging.getLogger(__name__)


class GoogleSpeechBackend(AbstractTranscriptionBackend):
    """Google Speech-to-Text streaming recognition backend."""

    def __init__(self,
                 credentials_path: Optional[str] = None,
                 sample_rate: int = 16000,
                 language: str = "en-US",
                 single_utterance: bool = True,
                 enable_automatic_punctuation: bool = False,
                 timeout: float = 30.0):
        """Initialize Google Speech backend.

        Args:
            credentials_path: Path to Google Cloud service account JSON file
            sample_rate: Sample rate of the streamed audio in Hz
            language: Language code (e.g., 'en-US', 'es-ES')
            single_utterance: Let the service end recognition when it hears the
                             end of the utterance, possibly before the client does
            enable_automatic_punctuation: Enable automatic punctuation
            timeout: Per-request deadline in seconds
        """
        super().__init__(language)
        self.credentials_path = credentials_path
        if not self.credentials_path:
            raise ValueError("Google credentials path is required - cannot initialize without credentials")
        self.single_utterance = single_utterance
        self.timeout = timeout
        self.client = None
        self.project_id = None
        self.service_name = "Google Speech-to-Text"
        self.streaming_config = speech.StreamingRecognitionConfig(
            config=speech.RecognitionConfig(
                encoding=speech.RecognitionConfig.AudioEncoding.LINEAR16,
                sample_rate_hertz=sample_rate,
                language_code=self.language,
                enable_automatic_punctuation=enable_automatic_punctuation,
                max_alternatives=3,
            ),
            single_utterance=single_utterance,
            interim_results=False,
        )

    def initialize(self) -> bool:
        """Initialize Google Speech client and verify credentials."""
        logger.info(f"Loading Google credentials from: {self.credentials_path}")
        credentials = service_account.Credentials.from_service_account_file(self.credentials_path)
        self.client = speech.SpeechClient(credentials=credentials)
        self.project_id = credentials.project_id
        logger.info(f"Using Google Cloud project: {self.project_id}")
        logger.info("Google Speech-to-Text backend initialized successfully")
        return True

    def _requests(self, chunks: Iterable[bytes]) -> Iterator[speech.StreamingRecognizeRequest]:
        for chunk in chunks:
            yield speech.StreamingRecognizeRequest(audio_content=chunk)

    def transcribe_stream(self, chunks: Iterable[bytes]) -> TranscriptionResult:
        """Stream audio to Google and collect the final transcript."""
        if self.client is None:
            raise TranscriptionError("Google Speech backend used before initialize()")

        start_time = time.time()
        transcripts: List[str] = []
        confidences: List[float] = []
        alternatives: List[dict] = []

        try:
            responses = self.client.streaming_recognize(
                config=self.streaming_config,
                requests=self._requests(chunks),
                timeout=self.timeout,
            )
            for response in responses:
                for result in response.results:
                    if not result.is_final or not result.alternatives:
                        continue
                    best = result.alternatives[0]
                    transcripts.append(best.transcript.strip())
                    confidences.append(best.confidence)
                    for alt in result.alternatives[1:]:
                        alternatives.append({"text": alt.transcript, "confidence": alt.confidence})
        except gax_exceptions.DeadlineExceeded as e:
            logger.error("Google STT streaming deadline exceeded")
            raise TranscriptionError(f"Google Speech recognize timeout: {e}") from e
        except gax_exceptions.ServiceUnavailable as e:
            logger.error("Google STT service unavailable")
            raise TranscriptionError(f"Google Speech service unavailable: {e}") from e
        except gax_exceptions.GoogleAPICallError as e:
            logger.error(f"Google STT API call error: {e}")
            raise TranscriptionError(f"Google Speech API error: {e}") from e

        processing_time = time.time() - start_time
        text = " ".join(t for t in transcripts if t)
        confidence = sum(confidences) / len(confidences) if confidences else 0.0

        if text:
            logger.debug(f"Transcript='{text}' (conf={confidence:.2f}, {processing_time:.3f}s)")
        else:
            logger.debug("--- NO SPEECH DETECTED ---")

        return TranscriptionResult(
            text=text,
            confidence=confidence,
            processing_time=processing_time,
            timestamp=datetime.now(),
            service=self.service_name,
            language=self.language,
            alternatives=alternatives or None,
            is_final=True,
        )

    def cleanup(self) -> None:
        """Release the gRPC channel."""
        if self.client is not None:
            transport = getattr(self.client, "transport", None)
            if transport is not None:
                transport.close()
            self.client = None
