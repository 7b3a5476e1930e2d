"""Trailing silence measurement over a stream of classified frames."""

import time
import logging
from typing import Callable, Optional

from .classifier import AbstractFrameClassifier, SPEECH, SILENCE

logger = logging.getLogger(__name__)


def now_ms() -> float:
    """Wall clock in milliseconds."""
    return time.time() * 1000.0


class SilenceTracker:
    """Tracks how long the speaker has been continuously silent.

    Only the current unbroken silence run counts: one speech frame resets
    the total to zero. The run starts on a speech to silence transition, so
    silence before any speech never accumulates.
    """

    def __init__(self,
                 classifier: AbstractFrameClassifier,
                 max_silence_ms: float,
                 clock: Callable[[], float] = now_ms):
        self.classifier = classifier
        self.max_silence_ms = max_silence_ms
        self.clock = clock
        self.last_status: Optional[int] = None
        self.silence_started_at: Optional[float] = None
        self.total_silence_ms: Optional[float] = None

    def reset(self) -> None:
        self.last_status = None
        self.silence_started_at = None
        self.total_silence_ms = None

    def observe(self, frame: Optional[bytes]) -> Optional[float]:
        """Classify one frame and update the silence run.

        Args:
            frame: One frame of audio, or None to signal end of input

        Returns:
            Current trailing silence in ms, None until a silence run has been
            measured, or max_silence_ms when frame is None.
        """
        if frame is None:
            return self.max_silence_ms

        status = self.classifier.classify(frame)

        if self.last_status == SPEECH and status == SILENCE:
            self.silence_started_at = self.clock()
        elif self.last_status == SILENCE and status == SILENCE and self.silence_started_at is not None:
            self.total_silence_ms = self.clock() - self.silence_started_at
        elif self.last_status == SILENCE and status == SPEECH:
            self.total_silence_ms = 0

        self.last_status = status
        return self.total_silence_ms
