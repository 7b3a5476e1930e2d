"""Session-related data models."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional


class SessionState(Enum):
    """Listening session controller states."""
    IDLE = "idle"
    LISTENING = "listening"
    FINALIZING = "finalizing"


class EndReason(Enum):
    """Why a listening session ended."""
    TIMEOUT = "timeout"
    SILENCE = "silence"
    ABORT = "abort"


@dataclass
class Session:
    """One open listening episode, from wake signal to finalize.

    Owned by the SessionController; the tracker and sinks live and die with
    the session.
    """
    session_id: str
    wake_phrase: Optional[str]
    tracker: Any  # SilenceTracker
    sinks: Any  # SinkFanout
    started_at: Optional[float] = None  # ms, recorded after the greeting cue
    abort_requested: bool = False
    end_sound_played: bool = False
    raw_buffer: bytearray = field(default_factory=bytearray)
    frames_processed: int = 0

    @property
    def silence_started_at(self) -> Optional[float]:
        return self.tracker.silence_started_at

    @property
    def total_silence_ms(self) -> Optional[float]:
        return self.tracker.total_silence_ms

    def mark_end_sound_played(self) -> bool:
        """Flip the end-cue guard.

        Returns:
            True the first time only; the caller plays the cue when True.
        """
        if self.end_sound_played:
            return False
        self.end_sound_played = True
        return True

    def take_frame(self, frame_bytes: int) -> Optional[bytes]:
        """Pop one frame of exactly frame_bytes from the raw buffer, if available."""
        if len(self.raw_buffer) < frame_bytes:
            return None
        frame = bytes(self.raw_buffer[:frame_bytes])
        del self.raw_buffer[:frame_bytes]
        return frame
