"""Exception types raised by wakelisten components."""


class WakeListenError(Exception):
    """Base class for wakelisten errors."""


class TranscriptionError(WakeListenError):
    """The transcription service failed to produce a result."""


class SynthesisError(WakeListenError):
    """The speech synthesis service failed before producing audio."""


class PlaybackError(WakeListenError):
    """An audio playback subprocess could not be run."""


class StreamClosedError(ValueError):
    """Write attempted on an AudioStream that has already been closed."""
