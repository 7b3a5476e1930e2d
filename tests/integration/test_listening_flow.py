"""End-to-end listening flow: published audio to spoken reply, without hardware."""

import json
import time
import pytest
from datetime import datetime
from unittest.mock import Mock

from wakelisten.audio.audio_pub import AudioPublisher
from wakelisten.models.events import AudioEvent
from wakelisten.models.result import ResultStatus
from wakelisten.models.session import SessionState
from wakelisten.models.transcription import TranscriptionResult
from wakelisten.services.response_pipeline import ResponsePipeline
from wakelisten.services.session_controller import ListenSettings, SessionController
from wakelisten.services.transcription_service import TranscriptionService
from wakelisten.storage.file_manager import FileManager
from wakelisten.transcription.base import AbstractTranscriptionBackend
from wakelisten.wakeword.detector import WakewordDetector

CHUNK_BYTES = 2560  # 1280 samples, 80ms
CHUNK_MS = 80


class SpeechModel:
    """Scores any chunk carrying non-zero samples as the wake phrase."""

    def __init__(self):
        self.resets = 0

    def predict(self, samples):
        return {"list_maker": 0.99 if samples.any() else 0.0}

    def reset(self):
        self.resets += 1


class CountingBackend(AbstractTranscriptionBackend):
    """Transcribes a stream as the number of speech bytes it carried."""

    def __init__(self):
        super().__init__("en-US")

    def initialize(self):
        return True

    def transcribe_stream(self, chunks):
        data = b"".join(chunks)
        return TranscriptionResult(text=f"heard {data.count(1)} bytes", confidence=0.9,
                                   processing_time=0.0, timestamp=datetime.now(), service="test")

    def cleanup(self):
        pass


@pytest.fixture
def flow(temp_data_dir, scripted_classifier, fake_capture, cues, clock):
    file_manager = FileManager(temp_data_dir)
    metrics = Mock()
    player = Mock()
    synthesizer = Mock()
    synthesizer.synthesize.side_effect = lambda text, voice, fmt: iter([text.encode()])
    transcription_service = TranscriptionService(CountingBackend())
    pipeline = ResponsePipeline(
        synthesizer=synthesizer, player=player, capture=fake_capture,
        file_manager=file_manager, metrics=metrics, cues=cues,
    )
    controller = SessionController(
        settings=ListenSettings(frame_bytes=640, max_listen_ms=7500, max_silence_ms=1500),
        classifier=scripted_classifier, file_manager=file_manager,
        transcription_service=transcription_service, response_pipeline=pipeline,
        capture=fake_capture, player=player, metrics=metrics, cues=cues, clock=clock,
    )
    model = SpeechModel()
    detector = WakewordDetector(model, controller.on_wake, controller.on_frame, "list maker")
    controller.on_idle = detector.rearm
    detector.subscribe("test_flow_audio")
    yield {
        "publisher": AudioPublisher("test_flow_audio"),
        "controller": controller,
        "detector": detector,
        "model": model,
        "file_manager": file_manager,
        "transcription_service": transcription_service,
        "synthesizer": synthesizer,
        "player": player,
        "metrics": metrics,
        "clock": clock,
    }
    detector.unsubscribe()
    transcription_service.shutdown(timeout=2.0)


def publish(flow, data, count=1):
    for _ in range(count):
        flow["clock"].advance(CHUNK_MS)
        flow["publisher"].publish_audio_event(AudioEvent(
            chunk_id="chunk", audio_data=data, timestamp=time.time(), sequence_number=0))


@pytest.mark.integration
class TestListeningFlow:

    def test_wake_speech_silence_reply(self, flow):
        publish(flow, b'\x01' * CHUNK_BYTES)
        controller = flow["controller"]
        session_id = controller.session_id
        assert controller.state == SessionState.LISTENING

        publish(flow, b'\x01' * CHUNK_BYTES, count=9)
        publish(flow, b'\x00' * CHUNK_BYTES, count=25)

        assert controller.state == SessionState.IDLE
        assert flow["detector"].capturing is False
        assert flow["model"].resets == 1
        flow["metrics"].emit.assert_any_call("userspeech", "end", "silence", 1)

        assert flow["transcription_service"].shutdown(timeout=2.0)
        saved = json.loads(flow["file_manager"].result_path(session_id).read_text())
        assert saved["status"] == ResultStatus.OK
        assert saved["command"] == f"heard {10 * CHUNK_BYTES} bytes"
        flow["synthesizer"].synthesize.assert_called_once()
        flow["player"].play_stream.assert_called_once()

        raw = flow["file_manager"].raw_path(session_id).read_bytes()
        assert raw.count(1) == 10 * CHUNK_BYTES

    def test_silence_after_speech_ends_on_time(self, flow):
        publish(flow, b'\x01' * CHUNK_BYTES, count=5)
        controller = flow["controller"]

        ended_at = None
        while controller.state != SessionState.IDLE:
            publish(flow, b'\x00' * CHUNK_BYTES)
            ended_at = flow["clock"].now
            assert ended_at < 5000

        # Silence starts at 480ms and the first chunk 1500ms later arrives at 2000ms
        assert ended_at == 2000

    def test_next_wake_opens_new_session(self, flow):
        publish(flow, b'\x01' * CHUNK_BYTES)
        first_id = flow["controller"].session_id
        flow["controller"].abort()
        publish(flow, b'\x00' * CHUNK_BYTES)
        assert flow["controller"].state == SessionState.IDLE

        publish(flow, b'\x01' * CHUNK_BYTES)

        assert flow["controller"].state == SessionState.LISTENING
        assert flow["controller"].session_id != first_id
        assert len(flow["file_manager"].list_sessions()) == 2
