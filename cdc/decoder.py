from __future__ import annotations

from shared.log import get_logger
from shared.message import CDCTimeoutError, ConnectionClosedError, ServerProtocolError
from shared.protocol import ERROR_PREFIX, LINE_TERMINATOR, READBUF_SIZE

from .transport import TransportChannel

logger = get_logger(__name__)


class LineDecoder:
    """
    Splits the byte stream of a channel into newline-terminated messages.

    Reads are chunked; bytes past the end of the current line stay buffered
    for the next call. Each underlying read gets the full channel timeout.
    A line starting with ERR is a server-signaled error, never payload.
    """

    def __init__(self, channel: TransportChannel, chunk_size: int = READBUF_SIZE):
        self.channel = channel
        self.chunk_size = chunk_size
        self._buffer = bytearray()

    @property
    def pending(self) -> int:
        """Number of buffered bytes not yet returned as a line"""
        return len(self._buffer)

    def read_line(self) -> bytes:
        """
        Return the next line without its terminator.

        Raises:
            ServerProtocolError: the line carries the ERR marker
            CDCTimeoutError: no complete line arrived in time; the partial line is dropped
            CDCIOError: the channel failed or the peer closed the connection
        """
        while True:
            end = self._buffer.find(LINE_TERMINATOR)
            if end != -1:
                line = bytes(self._buffer[:end])
                del self._buffer[:end + len(LINE_TERMINATOR)]
                _check_error_line(line)
                return line

            try:
                chunk = self.channel.read_bytes(self.chunk_size)
            except CDCTimeoutError:
                if self._buffer:
                    logger.debug("Discarding %d bytes of partial line after timeout", len(self._buffer))
                self._buffer.clear()
                raise
            except ConnectionClosedError:
                partial = bytes(self._buffer)
                self._buffer.clear()
                _check_error_line(partial)
                raise

            self._buffer += chunk


def _check_error_line(line: bytes) -> None:
    if line[:len(ERROR_PREFIX)] == ERROR_PREFIX:
        text = line.decode("utf-8", errors="replace")
        raise ServerProtocolError(f"Server responded with an error: {text}")
