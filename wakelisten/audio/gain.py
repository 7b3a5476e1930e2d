"""Microphone gain for 16-bit PCM audio."""

import math

import numpy as np

INT16_MIN = -32768
INT16_MAX = 32767


def amplification_factor(gain_db: float) -> float:
    """Convert a gain in decibels to an amplitude amplification factor."""
    return math.sqrt(math.pow(10, gain_db / 10))


def amplify(data: bytes, factor: float) -> bytes:
    """Multiply little-endian int16 samples by factor, clipping instead of wrapping.

    Args:
        data: Raw audio bytes (little-endian signed 16-bit samples)
        factor: Amplitude multiplier

    Returns:
        Amplified audio bytes of the same length
    """
    if factor == 1.0 or not data:
        return data
    samples = np.frombuffer(data, dtype='<i2').astype(np.float64)
    scaled = np.clip(np.round(samples * factor), INT16_MIN, INT16_MAX)
    return scaled.astype('<i2').tobytes()
