"""Transcription backends and the audio stream they consume."""

from .base import AbstractTranscriptionBackend
from .stream import AudioStream
from ..models.transcription import TranscriptionResult

__all__ = [
    "AbstractTranscriptionBackend",
    "AudioStream",
    "TranscriptionResult",
]
