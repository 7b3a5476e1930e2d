"""Audio capture, gain and playback."""

from .capture import AudioCapture
from .audio_pub import AudioPublisher, AUDIO_TOPIC
from .playback import AudioPlayer, CueSet

__all__ = [
    'AudioCapture',
    'AudioPublisher',
    'AUDIO_TOPIC',
    'AudioPlayer',
    'CueSet',
]
