"""Audio capture module with continuous recording, pausing and event publishing."""

import pyaudio
import time
import logging
import threading
from contextlib import contextmanager
from threading import Thread, Event
from typing import Optional, Callable, Iterator
from ..models.audio import AudioStats
from ..models.events import AudioEvent
from .gain import amplification_factor, amplify
from datetime import datetime


logger = logging.getLogger(__name__)


class AudioCapture:
    """Continuous microphone capture that publishes AudioEvents.

    Capture can be paused while the assistant plays sound so that the
    microphone does not pick up its own output. Pauses nest: capture resumes
    only when every pause() has been matched by a resume().
    """

    def __init__(
        self,
        callback: Callable[[AudioEvent], None],
        sample_rate: int = 16000,
        chunk_size: int = 1280,
        channels: int = 1,
        format: int = pyaudio.paInt16,
        gain_db: float = 0.0,
        input_device_index: Optional[int] = None,
    ):
        """Initialize audio capture with specified parameters.

        Args:
            callback: Receives every captured AudioEvent
            sample_rate: Audio sample rate (16kHz for VAD and wake word models)
            chunk_size: Size of each audio chunk in samples
            channels: Number of audio channels (1 for mono)
            format: Audio format (16-bit signed int)
            gain_db: Microphone gain applied to every chunk
            input_device_index: PyAudio input device, None for the default
        """
        self.audio_event_callback = callback
        self.sample_rate = sample_rate
        self.chunk_size = chunk_size
        self.channels = channels
        self.format = format
        self.gain_factor = amplification_factor(gain_db)
        self.input_device_index = input_device_index

        # Recording thread management
        self.recording_thread: Optional[Thread] = None
        self.stop_event = Event()
        self.is_recording = False

        # Pause bookkeeping
        self._pause_lock = threading.Lock()
        self._pause_count = 0
        self._pauses = 0

        # Statistics tracking
        self.start_time: Optional[datetime] = None
        self.total_chunks = 0
        self.dropped_chunks = 0

        self.pyaudio_instance: Optional[pyaudio.PyAudio] = None

    @property
    def is_paused(self) -> bool:
        return self._pause_count > 0

    def pause(self) -> None:
        """Stop delivering audio until the matching resume()."""
        with self._pause_lock:
            self._pause_count += 1
            self._pauses += 1
            logger.debug(f"Capture paused (depth {self._pause_count})")

    def resume(self) -> None:
        """Undo one pause(); extra calls are ignored."""
        with self._pause_lock:
            if self._pause_count == 0:
                logger.warning("resume() called while capture is not paused")
                return
            self._pause_count -= 1
            logger.debug(f"Capture resumed (depth {self._pause_count})")

    @contextmanager
    def paused(self) -> Iterator[None]:
        """Pause capture for the duration of a with block."""
        self.pause()
        try:
            yield
        finally:
            self.resume()

    def start_recording(self) -> None:
        """Start continuous recording in background thread."""
        if self.is_recording:
            logger.warning("Recording already in progress")
            return

        logger.info("Starting audio recording")
        self.stop_event.clear()
        self.start_time = datetime.now()
        self.total_chunks = 0
        self.dropped_chunks = 0

        self.recording_thread = Thread(target=self._record_continuously, daemon=True)
        self.recording_thread.name = "AudioCaptureThread"
        self.recording_thread.start()
        self.is_recording = True

    def stop_recording(self) -> None:
        """Stop recording and clean up resources."""
        if not self.is_recording:
            logger.warning("No recording in progress")
            return

        logger.info("Stopping audio recording")
        self.stop_event.set()

        if self.recording_thread and self.recording_thread.is_alive():
            self.recording_thread.join(timeout=2.0)
            if self.recording_thread.is_alive():
                logger.warning("Recording thread did not stop cleanly")

        self.is_recording = False
        logger.info(f"Recording stopped. Total chunks: {self.total_chunks}, "
                    f"dropped while paused: {self.dropped_chunks}")

    def __open_audio_stream(self) -> pyaudio.Stream:
        self.pyaudio_instance = pyaudio.PyAudio()
        stream = self.pyaudio_instance.open(
            format=self.format,
            channels=self.channels,
            rate=self.sample_rate,
            input=True,
            input_device_index=self.input_device_index,
            frames_per_buffer=self.chunk_size,
            stream_callback=None
        )
        logger.info(f"Audio stream opened: {self.sample_rate}Hz, "
                    f"{self.chunk_size} samples/chunk")
        return stream

    def __read_audio_chunk(self, stream: pyaudio.Stream) -> bytes:
        audio_chunk = stream.read(self.chunk_size, exception_on_overflow=False)
        self.total_chunks += 1
        return amplify(audio_chunk, self.gain_factor)

    def __publish_audio_event(self, audio_chunk: bytes) -> None:
        audio_event = AudioEvent(
            chunk_id=f"chunk_{self.total_chunks}",
            audio_data=audio_chunk,
            timestamp=time.time(),
            sequence_number=self.total_chunks,
            sample_rate=self.sample_rate,
            channels=self.channels,
            final=self.stop_event.is_set()
        )
        try:
            self.audio_event_callback(audio_event)
        except Exception as e:
            # A failing listener must not kill the capture thread
            logger.error(f"Error handling audio event {audio_event.chunk_id}: {e}", exc_info=True)

    def __discard_backlog(self, stream: pyaudio.Stream) -> int:
        available = stream.get_read_available()
        discarded = 0
        for _ in range(available // self.chunk_size):
            stream.read(self.chunk_size, exception_on_overflow=False)
            self.total_chunks += 1
            discarded += 1
        if discarded:
            logger.debug(f"Discarded {discarded} chunks buffered while paused")
        return discarded

    def _record_continuously(self) -> None:
        """Internal method: continuous recording loop in background thread."""
        stream = None
        try:
            stream = self.__open_audio_stream()
            seen_pauses = self._pauses
            while not self.stop_event.is_set():
                audio_chunk = self.__read_audio_chunk(stream)
                if self.is_paused:
                    # Keep draining the device so the buffer does not overflow
                    seen_pauses = self._pauses
                    self.dropped_chunks += 1
                    continue
                if self._pauses != seen_pauses:
                    # Paused and resumed while this thread was inside a listener;
                    # the device kept recording the cue in the meantime
                    seen_pauses = self._pauses
                    self.dropped_chunks += 1 + self.__discard_backlog(stream)
                    continue
                self.__publish_audio_event(audio_chunk)
        finally:
            if stream:
                stream.stop_stream()
                stream.close()
            if self.pyaudio_instance:
                self.pyaudio_instance.terminate()
                self.pyaudio_instance = None

    def get_recording_stats(self) -> AudioStats:
        """Get current recording statistics."""
        duration = 0.0
        if self.start_time:
            duration = (datetime.now() - self.start_time).total_seconds()

        return AudioStats(
            is_recording=self.is_recording,
            is_paused=self.is_paused,
            duration_seconds=duration,
            sample_rate=self.sample_rate,
            chunk_size=self.chunk_size,
            total_chunks=self.total_chunks,
            dropped_chunks=self.dropped_chunks,
        )

    def __del__(self):
        """Ensure resources are cleaned up on deletion."""
        if self.is_recording:
            self.stop_recording()
