"""Services layer: session control, transcription, replies and metrics."""

from .metrics import MetricsPublisher
from .response_pipeline import ResponsePipeline, ReplyMessages
from .session_controller import SessionController, ListenSettings
from .transcription_service import TranscriptionService

__all__ = [
    "MetricsPublisher",
    "ResponsePipeline",
    "ReplyMessages",
    "SessionController",
    "ListenSettings",
    "TranscriptionService",
]
