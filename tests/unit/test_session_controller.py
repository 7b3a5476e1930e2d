"""Unit tests for the SessionController state machine."""

import threading
import pytest
from datetime import datetime
from unittest.mock import Mock, call

from wakelisten.exceptions import PlaybackError
from wakelisten.models.session import EndReason, SessionState
from wakelisten.models.transcription import TranscriptionResult
from wakelisten.services.session_controller import ListenSettings, SessionController
from wakelisten.storage.file_manager import FileManager
from conftest import speech_frame, silence_frame, FRAME_BYTES, FRAME_MS


@pytest.fixture
def transcription_service():
    service = Mock()
    service.recognize.return_value = None
    return service


@pytest.fixture
def controller_parts(temp_data_dir, scripted_classifier, transcription_service,
                     fake_capture, cues, clock):
    return {
        "settings": ListenSettings(frame_bytes=FRAME_BYTES, max_listen_ms=7500, max_silence_ms=1500),
        "classifier": scripted_classifier,
        "file_manager": FileManager(temp_data_dir),
        "transcription_service": transcription_service,
        "response_pipeline": Mock(),
        "capture": fake_capture,
        "player": Mock(),
        "metrics": Mock(),
        "cues": cues,
        "on_idle": Mock(),
        "clock": clock,
    }


@pytest.fixture
def controller(controller_parts):
    return SessionController(**controller_parts)


def end_metrics(metrics):
    return [c for c in metrics.emit.call_args_list if c.args[:2] == ("userspeech", "end")]


def run_until_idle(controller, clock, frame_at, limit_ms=20000):
    """Deliver one frame every FRAME_MS until the session closes; return the close time."""
    while controller.state != SessionState.IDLE:
        if clock.now > limit_ms:
            raise AssertionError("session never finalized")
        clock.advance(FRAME_MS)
        controller.on_frame(frame_at(clock.now))
    return clock.now


@pytest.mark.unit
class TestSessionController:
    """Test cases for SessionController."""

    def test_starts_idle(self, controller):
        assert controller.state == SessionState.IDLE
        assert controller.session_id is None
        assert controller.is_listening is False

    def test_wake_opens_session(self, controller, controller_parts):
        controller.on_wake(speech_frame(), "list maker")

        assert controller.state == SessionState.LISTENING
        assert controller.session_id is not None
        controller_parts["player"].play_file.assert_called_once_with(controller_parts["cues"].greeting)
        controller_parts["transcription_service"].recognize.assert_called_once()
        stream = controller_parts["transcription_service"].recognize.call_args.args[0]
        assert stream.name == controller.session_id
        assert controller_parts["file_manager"].raw_path(controller.session_id).exists()

    def test_greeting_plays_with_capture_paused(self, controller, controller_parts, fake_capture):
        depths = []
        controller_parts["player"].play_file.side_effect = lambda path: depths.append(fake_capture.pause_depth)

        controller.on_wake(speech_frame(), "list maker")

        assert depths == [1]
        assert fake_capture.pause_depth == 0

    def test_frames_without_session_are_dropped(self, controller, scripted_classifier):
        controller.on_frame(speech_frame())

        assert controller.state == SessionState.IDLE
        assert scripted_classifier.calls == 0

    def test_silence_ends_session(self, controller, controller_parts, clock):
        controller.on_wake(speech_frame(), "list maker")

        ended_at = run_until_idle(
            controller, clock,
            lambda t: speech_frame() if t < 2000 else silence_frame())

        assert ended_at == 3500
        assert end_metrics(controller_parts["metrics"]) == [call("userspeech", "end", "silence", 1)]

    def test_listen_time_ends_continuous_speech(self, controller, controller_parts, clock):
        controller.on_wake(speech_frame(), "list maker")

        ended_at = run_until_idle(controller, clock, lambda t: speech_frame())

        assert ended_at == 7500
        assert end_metrics(controller_parts["metrics"]) == [call("userspeech", "end", "timeout", 1)]

    def test_listen_time_counts_from_after_greeting(self, controller, controller_parts, clock):
        greeting = controller_parts["cues"].greeting
        controller_parts["player"].play_file.side_effect = (
            lambda path: clock.advance(400) if path == greeting else None)

        controller.on_wake(speech_frame(), "list maker")
        ended_at = run_until_idle(controller, clock, lambda t: speech_frame())

        assert ended_at == 7900

    def test_silence_without_speech_waits_for_listen_time(self, controller, clock):
        controller.on_wake(silence_frame(), "list maker")

        ended_at = run_until_idle(controller, clock, lambda t: silence_frame())

        assert ended_at == 7500

    def test_no_frames_keeps_session_open(self, controller, clock):
        controller.on_wake(speech_frame(), "list maker")

        clock.advance(60000)

        assert controller.state == SessionState.LISTENING

    def test_abort_finalizes_on_next_frame(self, controller, controller_parts, clock):
        controller.on_wake(speech_frame(), "list maker")
        clock.advance(FRAME_MS)
        controller.on_frame(speech_frame())

        controller.abort()
        assert controller.state == SessionState.LISTENING

        clock.advance(FRAME_MS)
        controller.on_frame(speech_frame())

        assert controller.state == SessionState.IDLE
        assert end_metrics(controller_parts["metrics"]) == [call("userspeech", "end", "abort", 1)]

    def test_abort_without_session_is_noop(self, controller):
        controller.abort()
        assert controller.state == SessionState.IDLE

    def test_second_wake_does_not_open_new_session(self, controller, controller_parts, clock):
        controller.on_wake(speech_frame(), "list maker")
        first_id = controller.session_id

        for _ in range(25):
            clock.advance(FRAME_MS)
            controller.on_frame(speech_frame())
        assert clock.now == 500
        controller.on_wake(speech_frame(), "list maker")

        assert controller.session_id == first_id
        assert controller_parts["transcription_service"].recognize.call_count == 1
        assert controller_parts["player"].play_file.call_count == 1
        assert controller_parts["file_manager"].list_sessions() == [first_id]

        clock.advance(FRAME_MS)
        controller.on_frame(speech_frame())
        assert controller.session_id == first_id

    def test_rechunks_unaligned_deliveries(self, controller, controller_parts, scripted_classifier):
        controller.on_wake(b'\x01' * 1000, "list maker")
        session_id = controller.session_id

        assert scripted_classifier.calls == 1

        controller.on_frame(b'\x01' * 280)
        assert scripted_classifier.calls == 2

        controller.on_frame(b'\x01' * 639)
        assert scripted_classifier.calls == 2

        controller.abort()
        controller.on_frame(b'\x01')

        raw = controller_parts["file_manager"].raw_path(session_id).read_bytes()
        assert len(raw) == 3 * FRAME_BYTES

    def test_finalize_releases_sinks(self, controller, controller_parts, clock):
        controller.on_wake(speech_frame(), "list maker")
        session_id = controller.session_id
        stream = controller_parts["transcription_service"].recognize.call_args.args[0]

        run_until_idle(controller, clock, lambda t: speech_frame() if t < 100 else silence_frame())

        assert stream.closed
        raw = controller_parts["file_manager"].raw_path(session_id).read_bytes()
        assert len(raw) == stream.bytes_written
        assert controller.session_id is None
        controller_parts["on_idle"].assert_called_once()

    def test_end_cue_played_once(self, controller, controller_parts, fake_capture):
        states = []
        depths = []

        def record(path):
            if path == controller_parts["cues"].end:
                states.append(controller.state)
                depths.append(fake_capture.pause_depth)

        controller_parts["player"].play_file.side_effect = record
        controller.on_wake(speech_frame(), "list maker")

        controller._finalize(EndReason.SILENCE)
        controller._finalize(EndReason.SILENCE)

        assert states == [SessionState.FINALIZING]
        assert depths == [1]
        assert len(end_metrics(controller_parts["metrics"])) == 1

    def test_new_session_after_finalize(self, controller, controller_parts, clock):
        controller.on_wake(speech_frame(), "list maker")
        first_id = controller.session_id
        controller.abort()
        controller.on_frame(speech_frame())

        controller.on_wake(speech_frame(), "list maker")

        assert controller.state == SessionState.LISTENING
        assert controller.session_id != first_id
        assert controller_parts["transcription_service"].recognize.call_count == 2

    def test_playback_failure_still_returns_to_idle(self, controller, controller_parts):
        controller_parts["player"].play_file.side_effect = PlaybackError("no device")

        controller.on_wake(speech_frame(), "list maker")
        controller.abort()
        controller.on_frame(speech_frame())

        assert controller.state == SessionState.IDLE
        controller_parts["on_idle"].assert_called_once()

    def test_raw_log_failure_keeps_streaming(self, controller, controller_parts):
        file_manager = controller_parts["file_manager"]
        file_manager.open_raw_log = Mock(side_effect=OSError("read-only"))

        controller.on_wake(speech_frame(), "list maker")
        stream = controller_parts["transcription_service"].recognize.call_args.args[0]
        controller.on_frame(speech_frame())

        assert stream.bytes_written == 2 * FRAME_BYTES

    def test_transcription_result_closes_session_before_reply(self, controller, controller_parts):
        played = []
        controller_parts["player"].play_file.side_effect = lambda path: played.append(path.name)
        controller_parts["response_pipeline"].interpret.side_effect = (
            lambda *args: played.append("reply"))
        controller.on_wake(speech_frame(), "list maker")
        session_id = controller.session_id
        stream = controller_parts["transcription_service"].recognize.call_args.args[0]
        on_complete = controller_parts["transcription_service"].recognize.call_args.args[1]
        result = TranscriptionResult(text="buy milk", confidence=0.9, processing_time=0.2,
                                     timestamp=datetime.now(), service="mock")

        on_complete(result, None)

        controller_parts["response_pipeline"].interpret.assert_called_once_with(session_id, "buy milk", 0.9)
        assert played == ["hi.wav", "end_spot.wav", "reply"]
        assert controller.state == SessionState.IDLE
        assert stream.closed
        assert end_metrics(controller_parts["metrics"]) == [call("userspeech", "end", "abort", 1)]
        controller_parts["on_idle"].assert_called_once()

        controller.on_frame(speech_frame())
        assert controller_parts["player"].play_file.call_count == 2

    def test_shutdown_releases_open_session(self, controller, controller_parts):
        controller.on_wake(speech_frame(), "list maker")
        session_id = controller.session_id
        stream = controller_parts["transcription_service"].recognize.call_args.args[0]

        controller.shutdown()

        assert controller.state == SessionState.IDLE
        assert stream.closed
        assert end_metrics(controller_parts["metrics"]) == [call("userspeech", "end", "abort", 1)]
        controller_parts["on_idle"].assert_called_once()
        raw = controller_parts["file_manager"].raw_path(session_id).read_bytes()
        assert len(raw) == stream.bytes_written == FRAME_BYTES

    def test_shutdown_without_session_is_noop(self, controller, controller_parts):
        controller.shutdown()

        assert controller.state == SessionState.IDLE
        controller_parts["on_idle"].assert_not_called()

    def test_on_idle_runs_after_lock_released(self, controller, controller_parts):
        lock_free = []

        def check_lock():
            waiter = threading.Thread(
                target=lambda: lock_free.append(controller._lock.acquire(blocking=False)))
            waiter.start()
            waiter.join()
            if lock_free[-1]:
                controller._lock.release()

        controller_parts["on_idle"].side_effect = check_lock
        controller.on_wake(speech_frame(), "list maker")
        controller.abort()
        controller.on_frame(speech_frame())

        assert lock_free == [True]

    def test_transcription_error_answers_failure(self, controller, controller_parts, clock):
        controller.on_wake(speech_frame(), "list maker")
        session_id = controller.session_id
        on_complete = controller_parts["transcription_service"].recognize.call_args.args[1]
        controller.abort()
        controller.on_frame(speech_frame())

        on_complete(None, RuntimeError("service down"))

        controller_parts["response_pipeline"].fail.assert_called_once_with(session_id, "service down")
        assert controller.state == SessionState.IDLE

    def test_late_completion_does_not_touch_new_session(self, controller, controller_parts, clock):
        controller.on_wake(speech_frame(), "list maker")
        first_complete = controller_parts["transcription_service"].recognize.call_args.args[1]
        controller.abort()
        controller.on_frame(speech_frame())

        controller.on_wake(speech_frame(), "list maker")
        first_complete(None, RuntimeError("late"))

        clock.advance(FRAME_MS)
        controller.on_frame(speech_frame())
        assert controller.state == SessionState.LISTENING

    def test_pipeline_error_is_absorbed(self, controller, controller_parts):
        controller_parts["response_pipeline"].interpret.side_effect = RuntimeError("boom")
        controller.on_wake(speech_frame(), "list maker")
        on_complete = controller_parts["transcription_service"].recognize.call_args.args[1]
        result = TranscriptionResult(text="x", confidence=1.0, processing_time=0.0,
                                     timestamp=datetime.now(), service="mock")

        on_complete(result, None)

        controller.on_frame(speech_frame())
        assert controller.state == SessionState.IDLE


@pytest.mark.unit
class TestListenSettings:

    def test_from_config(self):
        config = Mock()
        values = {
            'vad.frame_bytes': 960,
            'session.max_listen_time_ms': 5000,
            'session.max_silence_time_ms': 800,
        }
        config.get.side_effect = lambda key, default=None: values.get(key, default)

        settings = ListenSettings.from_config(config)

        assert settings == ListenSettings(frame_bytes=960, max_listen_ms=5000, max_silence_ms=800)
