"""Wake phrase spotting over the captured audio stream."""

import logging
import threading
from typing import Callable, Dict, List, Optional

import numpy as np
from pubsub import pub

from ..models.events import AudioEvent

logger = logging.getLogger(__name__)

WakeCallback = Callable[[bytes, str], None]
FrameCallback = Callable[[bytes], None]


def load_openwakeword_model(model_paths: List[str], vad_threshold: float = 0.0):
    """Load an openwakeword model for the given model files.

    With no model files the pre-trained models bundled with openwakeword are
    used, downloading them on first run.
    """
    import openwakeword
    from openwakeword.model import Model

    if not model_paths:
        if not openwakeword.get_pretrained_model_paths("onnx"):
            logger.info("Downloading openwakeword models (first time)...")
            from openwakeword.utils import download_models
            download_models()
        return Model(inference_framework="onnx", vad_threshold=vad_threshold)

    framework = "onnx" if all(p.endswith(".onnx") for p in model_paths) else "tflite"
    return Model(wakeword_models=model_paths, inference_framework=framework,
                 vad_threshold=vad_threshold)


class WakewordDetector:
    """Spots the wake phrase and routes the following audio to a session.

    While armed, every audio event is scored; the first one whose score
    reaches the threshold is passed to on_wake and the detector switches to
    capturing. While capturing, audio events go to on_frame unscored until
    rearm() is called.
    """

    def __init__(self,
                 model,
                 on_wake: WakeCallback,
                 on_frame: FrameCallback,
                 phrase: str,
                 score_threshold: float = 0.8):
        """Initialize the detector.

        Args:
            model: Object with predict(np.ndarray[int16]) -> {name: score}
                   and reset(), e.g. openwakeword.model.Model
            on_wake: Called with (audio, phrase) when the phrase is spotted
            on_frame: Called with audio while capturing
            phrase: Wake phrase reported to on_wake
            score_threshold: Minimum model score that counts as a detection
        """
        self.model = model
        self.on_wake = on_wake
        self.on_frame = on_frame
        self.phrase = phrase
        self.score_threshold = score_threshold

        self._lock = threading.Lock()
        self._capturing = False
        self.detections = 0
        self._topic: Optional[str] = None

    @property
    def capturing(self) -> bool:
        return self._capturing

    def subscribe(self, topic: str) -> None:
        """Start receiving AudioEvents published on topic."""
        pub.subscribe(self.on_audio_event, topic)
        self._topic = topic
        logger.info(f"WakewordDetector listening for '{self.phrase}' on {topic}")

    def unsubscribe(self) -> None:
        if self._topic is not None:
            pub.unsubscribe(self.on_audio_event, self._topic)
            self._topic = None

    def rearm(self) -> None:
        """Leave capture mode and listen for the wake phrase again."""
        with self._lock:
            self._capturing = False
        reset = getattr(self.model, "reset", None)
        if reset is not None:
            reset()
        logger.debug("Wake detection re-armed")

    def on_audio_event(self, event: AudioEvent) -> None:
        self.process(event.audio_data)

    def process(self, data: bytes) -> None:
        with self._lock:
            capturing = self._capturing

        if capturing:
            self.on_frame(data)
            return

        best_name, best_score = self._best_score(data)
        if best_score < self.score_threshold:
            return

        with self._lock:
            self._capturing = True
            self.detections += 1
        logger.info(f"SPOTTED '{self.phrase}' ({best_name}={best_score:.2f})")
        self.on_wake(data, self.phrase)

    def _best_score(self, data: bytes):
        samples = np.frombuffer(data, dtype='<i2')
        predictions: Dict[str, float] = self.model.predict(samples)
        if not predictions:
            return None, 0.0
        name = max(predictions, key=predictions.get)
        return name, float(predictions[name])
