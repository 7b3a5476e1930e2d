"""Wake phrase detection."""

from .detector import WakewordDetector, load_openwakeword_model

__all__ = ["WakewordDetector", "load_openwakeword_model"]
