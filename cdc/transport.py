from __future__ import annotations

import select
import socket
from enum import Enum
from typing import Optional

from shared.log import get_logger
from shared.message import AddressError, CDCIOError, CDCTimeoutError, ConnectionClosedError, SocketError
from shared.protocol import READBUF_SIZE
from shared.utils import is_ipv4_address

logger = get_logger(__name__)

_POLL_FLAG_NAMES = [
    (select.POLLIN, "POLLIN"),
    (select.POLLPRI, "POLLPRI"),
    (select.POLLOUT, "POLLOUT"),
    (getattr(select, "POLLRDHUP", 0), "POLLRDHUP"),
    (select.POLLERR, "POLLERR"),
    (select.POLLHUP, "POLLHUP"),
    (select.POLLNVAL, "POLLNVAL"),
]


def event_to_string(events: int) -> str:
    """Decode a poll revents mask into its flag names, for diagnostics."""
    return " ".join(name for flag, name in _POLL_FLAG_NAMES if flag and events & flag)


class WaitResult(str, Enum):
    READY = "ready"
    TIMED_OUT = "timed_out"


class TransportChannel:
    """
    Non-blocking TCP socket with timeout-bounded readiness waits.

    Every read and write first waits for readiness, then performs exactly one
    underlying socket call. Interrupted calls are retried; "would block" is
    treated as zero bytes transferred. Any other failure is fatal and raised
    as CDCIOError; the owner must tear the channel down.
    """

    def __init__(self, sock: socket.socket, timeout: float, peer: str = ""):
        self._sock: Optional[socket.socket] = sock
        self.timeout = timeout
        self.peer = peer or _peer_name(sock)
        self._sock.setblocking(False)

    @property
    def closed(self) -> bool:
        return self._sock is None

    @property
    def timeout_ms(self) -> int:
        return int(self.timeout * 1000)

    def fileno(self) -> int:
        return self._require_socket().fileno()

    def _require_socket(self) -> socket.socket:
        if self._sock is None:
            raise CDCIOError("Channel is closed")
        return self._sock

    def _wait_for_event(self, events: int) -> WaitResult:
        sock = self._require_socket()
        poller = select.poll()
        poller.register(sock.fileno(), events)

        while True:
            try:
                ready = poller.poll(self.timeout_ms)
                break
            except InterruptedError:
                continue
            except OSError as e:
                raise CDCIOError(f"Failed to wait for event: {e.strerror or e}")

        if not ready:
            return WaitResult.TIMED_OUT

        _, revents = ready[0]
        fatal = revents & (select.POLLERR | select.POLLNVAL)
        # Pending data is still readable after a hangup, drain it first
        hangup = revents & select.POLLHUP and not revents & events
        if fatal or hangup:
            raise CDCIOError(f"Error when waiting event; {event_to_string(revents)}")

        return WaitResult.READY

    def wait_readable(self) -> WaitResult:
        return self._wait_for_event(select.POLLIN)

    def wait_writable(self) -> WaitResult:
        return self._wait_for_event(select.POLLOUT)

    def read_bytes(self, size: int = READBUF_SIZE) -> bytes:
        """
        Wait for input, then perform one recv of at most ``size`` bytes.

        Returns b"" when the socket would block. Raises CDCTimeoutError if
        nothing became readable in time and ConnectionClosedError when the
        peer has closed the connection.
        """
        if self.wait_readable() is WaitResult.TIMED_OUT:
            raise CDCTimeoutError("Request timed out")

        sock = self._require_socket()
        while True:
            try:
                data = sock.recv(size)
                break
            except InterruptedError:
                continue
            except BlockingIOError:
                return b""
            except OSError as e:
                raise CDCIOError(f"Failed to read data: {e.strerror or e}")

        if not data:
            raise ConnectionClosedError("Connection closed by server")
        return data

    def write_bytes(self, data: bytes) -> int:
        """Wait for the socket to become writable, then perform one send."""
        if self.wait_writable() is WaitResult.TIMED_OUT:
            raise CDCTimeoutError("Timed out waiting to write")

        sock = self._require_socket()
        while True:
            try:
                return sock.send(data)
            except InterruptedError:
                continue
            except BlockingIOError:
                return 0
            except OSError as e:
                raise CDCIOError(f"Failed to write data: {e.strerror or e}")

    def send_all(self, data: bytes) -> None:
        """Write the whole buffer, one readiness wait per underlying send."""
        view = memoryview(data)
        while view:
            sent = self.write_bytes(view)
            view = view[sent:]

    def close(self) -> None:
        if self._sock is None:
            return
        sock, self._sock = self._sock, None
        try:
            sock.close()
        except OSError as e:
            logger.debug("Error closing socket to %s: %s", self.peer, e)


def _peer_name(sock: socket.socket) -> str:
    try:
        host, port = sock.getpeername()[:2]
        return f"{host}:{port}"
    except (OSError, ValueError):
        return ""


def open_channel(address: str, port: int, timeout: float) -> TransportChannel:
    """
    Create a TCP connection to ``address:port`` and wrap it in a channel.

    Raises:
        AddressError: address is not an IPv4 address
        SocketError: socket creation, connect or non-blocking setup failed
    """
    if not is_ipv4_address(address):
        raise AddressError(f"Invalid address: {address}")

    try:
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM, socket.IPPROTO_TCP)
    except OSError as e:
        raise SocketError(f"Failed to create socket: {e.strerror or e}")

    try:
        sock.settimeout(timeout)
        sock.connect((address, port))
    except OSError as e:
        sock.close()
        raise SocketError(f"Failed to connect: {e.strerror or e}")

    try:
        channel = TransportChannel(sock, timeout, peer=f"{address}:{port}")
    except OSError as e:
        sock.close()
        raise SocketError(f"Failed to set socket non-blocking: {e.strerror or e}")

    logger.debug("Connected to %s", channel.peer)
    return channel
