"""Frame-level voice activity classification."""

import logging
from abc import ABC, abstractmethod

import webrtcvad

logger = logging.getLogger(__name__)

SPEECH = 1
SILENCE = 0

_WEBRTC_FRAME_MS = (10, 20, 30)


class AbstractFrameClassifier(ABC):
    """Classifies one fixed-size audio frame as speech or silence."""

    def __init__(self, frame_bytes: int):
        self.frame_bytes = frame_bytes

    def _check_frame(self, frame: bytes) -> None:
        if len(frame) != self.frame_bytes:
            raise ValueError(f"Frame must be exactly {self.frame_bytes} bytes, got {len(frame)}")

    @abstractmethod
    def classify(self, frame: bytes) -> int:
        """Classify a frame.

        Args:
            frame: Exactly frame_bytes of little-endian int16 mono audio

        Returns:
            SPEECH (1) or SILENCE (0)
        """
        pass


class WebRtcFrameClassifier(AbstractFrameClassifier):
    """Frame classifier backed by the WebRTC voice activity detector."""

    def __init__(self, aggressiveness: int = 0, sample_rate: int = 16000, frame_bytes: int = 640):
        """Initialize the WebRTC VAD.

        Args:
            aggressiveness: 0 (least aggressive about filtering non-speech) to 3
            sample_rate: 8000, 16000, 32000 or 48000 Hz
            frame_bytes: Frame size in bytes; must span 10, 20 or 30 ms
        """
        super().__init__(frame_bytes)
        if aggressiveness not in (0, 1, 2, 3):
            raise ValueError(f"VAD aggressiveness must be 0-3, got {aggressiveness}")

        frame_ms = frame_bytes / 2 * 1000 / sample_rate
        if frame_ms not in _WEBRTC_FRAME_MS:
            raise ValueError(f"{frame_bytes} bytes is {frame_ms:g}ms at {sample_rate}Hz; "
                             f"WebRTC VAD needs 10, 20 or 30ms frames")

        self.aggressiveness = aggressiveness
        self.sample_rate = sample_rate
        self.vad = webrtcvad.Vad(aggressiveness)
        logger.info(f"WebRTC VAD ready: aggressiveness={aggressiveness}, "
                    f"{frame_ms:g}ms frames ({frame_bytes} bytes)")

    def classify(self, frame: bytes) -> int:
        self._check_frame(frame)
        return SPEECH if self.vad.is_speech(frame, self.sample_rate) else SILENCE
