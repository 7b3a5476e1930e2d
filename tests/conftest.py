"""Pytest configuration and fixtures for wakelisten tests."""

import pytest
import tempfile
import logging
from contextlib import contextmanager
from pathlib import Path
from unittest.mock import Mock, patch
import numpy as np

from wakelisten.audio.playback import CueSet
from wakelisten.vad.classifier import AbstractFrameClassifier, SPEECH, SILENCE


# Configure logging for tests
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

FRAME_BYTES = 640  # 20ms at 16kHz
FRAME_MS = 20


@pytest.fixture
def temp_data_dir():
    """Create temporary directory for test data."""
    with tempfile.TemporaryDirectory() as temp_dir:
        yield temp_dir


@pytest.fixture
def sample_audio_chunk():
    """Generate 1280 samples of a 440Hz sine wave as int16 bytes."""
    sample_rate = 16000
    duration = 1280 / sample_rate
    t = np.linspace(0, duration, 1280, False)
    wave_data = np.sin(2 * np.pi * 440 * t)
    audio_data = (wave_data * 16000).astype(np.int16)
    return audio_data.tobytes()


@pytest.fixture
def mock_pyaudio():
    """Mock PyAudio for testing without actual audio hardware."""
    with patch('pyaudio.PyAudio') as mock_pyaudio_class:
        mock_pyaudio_instance = Mock()
        mock_stream = Mock()

        mock_stream.read.return_value = b'\x00' * 2560
        mock_stream.get_read_available.return_value = 0
        mock_stream.stop_stream.return_value = None
        mock_stream.close.return_value = None

        mock_pyaudio_instance.open.return_value = mock_stream
        mock_pyaudio_instance.terminate.return_value = None
        mock_pyaudio_instance.get_sample_size.return_value = 2

        mock_pyaudio_class.return_value = mock_pyaudio_instance

        yield {
            'class': mock_pyaudio_class,
            'instance': mock_pyaudio_instance,
            'stream': mock_stream
        }


class FakeClock:
    """Millisecond clock advanced by hand."""

    def __init__(self, start: float = 0.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, ms: float) -> None:
        self.now += ms


@pytest.fixture
def clock():
    return FakeClock()


class ScriptedClassifier(AbstractFrameClassifier):
    """Classifies frames by their first byte: 0x01 is speech, anything else silence."""

    def __init__(self, frame_bytes: int = FRAME_BYTES):
        super().__init__(frame_bytes)
        self.calls = 0

    def classify(self, frame: bytes) -> int:
        self._check_frame(frame)
        self.calls += 1
        return SPEECH if frame[0] == 1 else SILENCE


def speech_frame(frame_bytes: int = FRAME_BYTES) -> bytes:
    return b'\x01' * frame_bytes


def silence_frame(frame_bytes: int = FRAME_BYTES) -> bytes:
    return b'\x00' * frame_bytes


@pytest.fixture
def scripted_classifier():
    return ScriptedClassifier()


class FakeCapture:
    """Stands in for AudioCapture's pause bookkeeping."""

    def __init__(self):
        self.pause_depth = 0
        self.pause_count = 0

    @contextmanager
    def paused(self):
        self.pause_depth += 1
        self.pause_count += 1
        try:
            yield
        finally:
            self.pause_depth -= 1


@pytest.fixture
def fake_capture():
    return FakeCapture()


@pytest.fixture
def cues(temp_data_dir):
    return CueSet.from_directory(Path(temp_data_dir) / "resources")


@pytest.fixture
def audio_test_data():
    """Generate various audio test data patterns."""
    def generate_audio(pattern="sine", duration_seconds=1.0, sample_rate=16000, amplitude=0.5):
        samples = int(duration_seconds * sample_rate)

        if pattern == "sine":
            t = np.linspace(0, duration_seconds, samples, False)
            wave_data = np.sin(2 * np.pi * 440 * t) * amplitude
        elif pattern == "noise":
            wave_data = np.random.uniform(-amplitude, amplitude, samples)
        elif pattern == "silence":
            wave_data = np.zeros(samples)
        else:
            raise ValueError(f"Unknown pattern: {pattern}")

        audio_data = (wave_data * 32767).astype(np.int16)
        return audio_data.tobytes()

    return generate_audio
