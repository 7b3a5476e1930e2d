"""Listening session state machine with voice-activity endpointing."""

import logging
import threading
from dataclasses import dataclass
from typing import Callable, Optional

from ..audio.playback import AudioPlayer, CueSet
from ..exceptions import PlaybackError
from ..models.session import EndReason, Session, SessionState
from ..models.transcription import TranscriptionResult
from ..sinks.fanout import SinkFanout
from ..storage.file_manager import FileManager
from ..transcription.stream import AudioStream
from ..vad.classifier import AbstractFrameClassifier
from ..vad.silence import SilenceTracker, now_ms
from .metrics import MetricsPublisher
from .response_pipeline import ResponsePipeline
from .transcription_service import TranscriptionService

logger = logging.getLogger(__name__)


@dataclass
class ListenSettings:
    """Endpointing limits."""
    frame_bytes: int = 640
    max_listen_ms: float = 7500
    max_silence_ms: float = 1500

    @classmethod
    def from_config(cls, config) -> "ListenSettings":
        return cls(
            frame_bytes=config.get('vad.frame_bytes', 640),
            max_listen_ms=config.get('session.max_listen_time_ms', 7500),
            max_silence_ms=config.get('session.max_silence_time_ms', 1500),
        )


class SessionController:
    """Opens a session on a wake signal, endpoints the utterance and hands it off.

    Exactly one session is open at a time. Frames arrive on the capture
    thread; transcription completions arrive on worker threads. All session
    state is guarded by one lock, and every way a session can end (listen
    timeout, trailing silence, abort) goes through _finalize so its sinks
    are released once. on_idle is called after the lock is released.

    Elapsed time is only checked when a frame arrives. If frames stop, the
    session stays open until the next frame or shutdown().
    """

    def __init__(self,
                 settings: ListenSettings,
                 classifier: AbstractFrameClassifier,
                 file_manager: FileManager,
                 transcription_service: TranscriptionService,
                 response_pipeline: ResponsePipeline,
                 capture,
                 player: AudioPlayer,
                 metrics: MetricsPublisher,
                 cues: CueSet,
                 on_idle: Optional[Callable[[], None]] = None,
                 clock: Callable[[], float] = now_ms):
        self.settings = settings
        self.classifier = classifier
        self.file_manager = file_manager
        self.transcription_service = transcription_service
        self.response_pipeline = response_pipeline
        self.capture = capture
        self.player = player
        self.metrics = metrics
        self.cues = cues
        self.on_idle = on_idle
        self.clock = clock

        self._lock = threading.RLock()
        self._state = SessionState.IDLE
        self._session: Optional[Session] = None

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def session_id(self) -> Optional[str]:
        session = self._session
        return session.session_id if session else None

    @property
    def is_listening(self) -> bool:
        return self._state == SessionState.LISTENING

    def on_wake(self, data: bytes, wake_phrase: Optional[str] = None) -> None:
        """Wake-signal callback: open a session if none is open, then feed data."""
        with self._lock:
            if self._session is None:
                self._open_session(wake_phrase)
            else:
                logger.debug(f"Wake signal '{wake_phrase}' ignored, session "
                             f"{self._session.session_id} already open")
            finished = self._feed(data)
        if finished:
            self._notify_idle()

    def on_frame(self, data: bytes) -> None:
        """Deliver captured audio to the open session."""
        with self._lock:
            if self._session is None:
                logger.debug(f"Dropping {len(data)} bytes, no open session")
                return
            finished = self._feed(data)
        if finished:
            self._notify_idle()

    def abort(self) -> None:
        """Request the open session to end at the next frame."""
        with self._lock:
            if self._session is None:
                return
            self._session.abort_requested = True
            logger.info(f"Abort requested for session {self._session.session_id}")

    def shutdown(self) -> None:
        """Finalize the open session now, without waiting for another frame."""
        with self._lock:
            if self._session is not None:
                self._session.abort_requested = True
            finished = self._finalize(EndReason.ABORT)
        if finished:
            self._notify_idle()

    def _open_session(self, wake_phrase: Optional[str]) -> None:
        session_id = self.file_manager.new_session_id()
        logger.info(f"Wake phrase '{wake_phrase}' spotted, opening session {session_id}")

        stream = AudioStream(name=session_id)
        try:
            raw_log = self.file_manager.open_raw_log(session_id)
        except OSError as e:
            logger.error(f"problem logging audio - {e}")
            raw_log = None

        session = Session(
            session_id=session_id,
            wake_phrase=wake_phrase,
            tracker=SilenceTracker(self.classifier, self.settings.max_silence_ms, self.clock),
            sinks=SinkFanout(raw_log, stream),
        )
        self._session = session
        self._state = SessionState.LISTENING

        self.transcription_service.recognize(
            stream, lambda result, error: self._on_transcription_complete(session_id, result, error))

        self._play_cue(self.cues.greeting)
        session.tracker.reset()
        session.started_at = self.clock()

    def _feed(self, data: bytes) -> bool:
        """Process buffered frames; returns True if the session was finalized."""
        session = self._session
        session.raw_buffer.extend(data)

        silence = None
        while True:
            frame = session.take_frame(self.settings.frame_bytes)
            if frame is None:
                break
            silence = session.tracker.observe(frame)
            session.sinks.write(frame)
            session.frames_processed += 1

        reason = self._end_reason(session, silence)
        if reason is None:
            return False
        return self._finalize(reason)

    def _end_reason(self, session: Session, silence: Optional[float]) -> Optional[EndReason]:
        if session.abort_requested:
            return EndReason.ABORT
        if silence is not None and silence >= self.settings.max_silence_ms:
            return EndReason.SILENCE
        if self.clock() - session.started_at >= self.settings.max_listen_ms:
            return EndReason.TIMEOUT
        return None

    def _finalize(self, reason: EndReason) -> bool:
        """Close the open session. Returns False if there was none.

        Callers run _notify_idle() once they have released the lock.
        """
        with self._lock:
            session = self._session
            if session is None:
                return False
            self._state = SessionState.FINALIZING
            try:
                if session.mark_end_sound_played():
                    self._play_cue(self.cues.end)
                session.sinks.close()
                elapsed = self.clock() - session.started_at if session.started_at is not None else 0
                logger.info(f"Session {session.session_id} ended ({reason.value}) after "
                            f"{elapsed:.0f}ms, {session.frames_processed} frames")
                self.metrics.emit("userspeech", "end", reason.value, 1)
            finally:
                self._session = None
                self._state = SessionState.IDLE
            return True

    def _notify_idle(self) -> None:
        if self.on_idle is None:
            return
        try:
            self.on_idle()
        except Exception as e:
            logger.error(f"Error re-arming wake detection: {e}", exc_info=True)

    def _play_cue(self, path) -> None:
        with self.capture.paused():
            try:
                self.player.play_file(path)
            except PlaybackError as e:
                logger.error(f"Could not play cue {path}: {e}")

    def _on_transcription_complete(self,
                                   session_id: str,
                                   result: Optional[TranscriptionResult],
                                   error: Optional[Exception]) -> None:
        # The service may hear the end of the utterance before we do. Close the
        # session first so the end cue comes before the reply.
        finished = False
        with self._lock:
            if self._session is not None and self._session.session_id == session_id:
                self._session.abort_requested = True
                finished = self._finalize(EndReason.ABORT)
        if finished:
            self._notify_idle()

        try:
            if error is not None:
                self.response_pipeline.fail(session_id, str(error))
            else:
                self.response_pipeline.interpret(session_id, result.text, result.confidence)
        except Exception as e:
            logger.error(f"Error answering session {session_id}: {e}", exc_info=True)
