"""Speech synthesis backends."""

from .base import AbstractSynthesisBackend

__all__ = ["AbstractSynthesisBackend"]
