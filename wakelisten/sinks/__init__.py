"""Audio sinks."""

from .fanout import SinkFanout

__all__ = ["SinkFanout"]
