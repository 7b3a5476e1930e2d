"""Transcription-related data models."""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional


@dataclass
class TranscriptionResult:
    """Result of transcribing one utterance."""
    text: str
    confidence: float
    processing_time: float
    timestamp: datetime
    service: str
    language: str = "en-US"
    alternatives: Optional[list] = None
    is_final: bool = True
    session_id: Optional[str] = None

    @property
    def has_speech(self) -> bool:
        return bool(self.text and self.text.strip())
