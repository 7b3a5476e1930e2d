"""Google Cloud Text-to-Speech backend."""

import logging
from typing import Iterator, Optional

from google.api_core import exceptions as gax_exceptions
from google.cloud import texttospeech
from google.oauth2 import service_account

from .base import AbstractSynthesisBackend
from ..exceptions import SynthesisError

logger = logging.getLogger(__name__)

CHUNK_BYTES = 4096

_ENCODINGS = {
    "wav": texttospeech.AudioEncoding.LINEAR16,
    "mp3": texttospeech.AudioEncoding.MP3,
    "ogg": texttospeech.AudioEncoding.OGG_OPUS,
}


class GoogleTextToSpeechBackend(AbstractSynthesisBackend):
    """Synthesizes replies with Google Cloud Text-to-Speech."""

    def __init__(self, credentials_path: Optional[str] = None, timeout: float = 10.0):
        if not credentials_path:
            raise ValueError("Google credentials path is required - cannot initialize without credentials")
        self.credentials_path = credentials_path
        self.timeout = timeout
        self.client = None

    def initialize(self) -> bool:
        credentials = service_account.Credentials.from_service_account_file(self.credentials_path)
        self.client = texttospeech.TextToSpeechClient(credentials=credentials)
        logger.info("Google Cloud TTS initialized")
        return True

    @staticmethod
    def _language_code(voice: str) -> str:
        # Voice names look like en-US-Standard-C
        parts = voice.split("-")
        return "-".join(parts[:2]) if len(parts) >= 2 else "en-US"

    def synthesize(self, text: str, voice: str, output_format: str = "wav") -> Iterator[bytes]:
        if self.client is None:
            raise SynthesisError("Google TTS backend used before initialize()")
        if output_format not in _ENCODINGS:
            raise SynthesisError(f"Unsupported output format: {output_format}")

        try:
            response = self.client.synthesize_speech(
                input=texttospeech.SynthesisInput(text=text),
                voice=texttospeech.VoiceSelectionParams(
                    language_code=self._language_code(voice),
                    name=voice,
                ),
                audio_config=texttospeech.AudioConfig(audio_encoding=_ENCODINGS[output_format]),
                timeout=self.timeout,
            )
        except gax_exceptions.GoogleAPICallError as e:
            raise SynthesisError(f"problem with TTS service - {e}") from e

        audio = response.audio_content
        if not audio:
            raise SynthesisError("TTS service returned no audio")
        logger.debug(f"Synthesized {len(audio)} bytes for {len(text)} characters")
        return (audio[i:i + CHUNK_BYTES] for i in range(0, len(audio), CHUNK_BYTES))

    def cleanup(self) -> None:
        if self.client is not None:
            transport = getattr(self.client, "transport", None)
            if transport is not None:
                transport.close()
            self.client = None
