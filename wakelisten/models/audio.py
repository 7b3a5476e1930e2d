"""Audio-related data models."""

from dataclasses import dataclass


@dataclass
class AudioStats:
    """Audio capture statistics."""
    is_recording: bool
    is_paused: bool
    duration_seconds: float
    sample_rate: int
    chunk_size: int
    total_chunks: int
    dropped_chunks: int
