"""Voice-activity classification and silence tracking."""

from .classifier import AbstractFrameClassifier, WebRtcFrameClassifier, SPEECH, SILENCE
from .silence import SilenceTracker

__all__ = [
    "AbstractFrameClassifier",
    "WebRtcFrameClassifier",
    "SilenceTracker",
    "SPEECH",
    "SILENCE",
]
