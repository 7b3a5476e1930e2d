"""Data models for the wakelisten application."""

from .transcription import TranscriptionResult
from .audio import AudioStats
from .events import AudioEvent
from .result import ResultStatus, AnswerRecord
from .session import Session, SessionState, EndReason

__all__ = [
    "TranscriptionResult",
    "AudioStats",
    "AudioEvent",
    "ResultStatus",
    "AnswerRecord",
    "Session",
    "SessionState",
    "EndReason",
]
