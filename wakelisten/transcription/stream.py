"""Closeable in-memory byte stream between the capture side and a recognizer."""

import queue
import logging
import threading
from typing import Iterator, Optional

from ..exceptions import StreamClosedError

logger = logging.getLogger(__name__)

_END = None


class AudioStream:
    """Thread-safe audio byte stream.

    The producer writes chunks and calls close() at end of utterance; the
    consumer iterates chunks until the close is reached.
    """

    def __init__(self, name: str = "audio"):
        self.name = name
        self._queue: "queue.Queue[Optional[bytes]]" = queue.Queue()
        self._lock = threading.Lock()
        self._closed = False
        self.bytes_written = 0

    @property
    def closed(self) -> bool:
        return self._closed

    def write(self, data: bytes) -> None:
        with self._lock:
            if self._closed:
                raise StreamClosedError(f"Stream {self.name} is closed")
            if data:
                self._queue.put(bytes(data))
                self.bytes_written += len(data)

    def close(self) -> None:
        """Signal end of stream; safe to call more than once."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
            self._queue.put(_END)
        logger.debug(f"Stream {self.name} closed after {self.bytes_written} bytes")

    def chunks(self, timeout: Optional[float] = None) -> Iterator[bytes]:
        """Yield written chunks in order until the stream is closed.

        Args:
            timeout: Seconds to wait for each chunk; None waits forever

        Raises:
            queue.Empty: If no chunk arrives within timeout
        """
        while True:
            chunk = self._queue.get(timeout=timeout)
            if chunk is _END:
                return
            yield chunk

    def __iter__(self) -> Iterator[bytes]:
        return self.chunks()

    def read_all(self, timeout: Optional[float] = None) -> bytes:
        return b"".join(self.chunks(timeout))
