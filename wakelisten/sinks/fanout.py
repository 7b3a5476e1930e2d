"""Duplicate captured audio to the session log file and the transcription stream."""

import logging
from typing import BinaryIO, Optional

from ..transcription.stream import AudioStream

logger = logging.getLogger(__name__)


class SinkFanout:
    """Writes the same bytes to a durable log sink and a live stream sink.

    The sinks are independent: an error on one is logged and never keeps
    data from the other. Each sink is closed at most once.
    """

    def __init__(self, log_sink: Optional[BinaryIO], stream_sink: Optional[AudioStream]):
        self.log_sink = log_sink
        self.stream_sink = stream_sink

    @property
    def closed(self) -> bool:
        return self.log_sink is None and self.stream_sink is None

    def write(self, data: bytes) -> None:
        if self.log_sink is not None:
            try:
                self.log_sink.write(data)
            except (OSError, ValueError) as e:
                logger.error(f"problem logging audio - {e}")
        if self.stream_sink is not None:
            try:
                self.stream_sink.write(data)
            except (OSError, ValueError) as e:
                logger.error(f"problem passing audio - {e}")

    def close(self) -> None:
        """End both sinks; absent or already closed sinks are skipped."""
        log_sink, self.log_sink = self.log_sink, None
        stream_sink, self.stream_sink = self.stream_sink, None

        if stream_sink is not None:
            try:
                stream_sink.close()
            except (OSError, ValueError) as e:
                logger.error(f"problem closing audio stream - {e}")
        if log_sink is not None:
            try:
                log_sink.close()
            except (OSError, ValueError) as e:
                logger.error(f"problem closing audio log - {e}")
