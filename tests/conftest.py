import socket
import sys
import threading
from pathlib import Path
from typing import Iterable, List, Optional

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from shared.protocol import OK_RESPONSE


SCHEMA_LINE = (
    b'{"fields":[{"name":"domain","real_type":"int"},{"name":"server_id","real_type":"int"},'
    b'{"name":"sequence","real_type":"int"},{"name":"col1","real_type":"varchar(10)"}]}\n'
)
ROW_LINE = b'{"domain":0,"server_id":1,"sequence":5,"col1":"hello"}\n'


class FakeCDCServer:
    """
    Scripted CDC service on an ephemeral 127.0.0.1 port.

    Accepts one client, answers the two handshake steps, reads the data
    request, then writes ``stream`` chunk by chunk. Everything the client
    sends is recorded in ``received``.
    """

    def __init__(
        self,
        auth_response: bytes = OK_RESPONSE,
        register_response: bytes = OK_RESPONSE,
        stream: Iterable[bytes] = (),
        close_after_stream: bool = False,
    ):
        self.auth_response = auth_response
        self.register_response = register_response
        self.stream: List[bytes] = list(stream)
        self.close_after_stream = close_after_stream
        self.received: List[bytes] = []
        self.error: Optional[BaseException] = None

        self._listener = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        self._listener.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        self._listener.bind(("127.0.0.1", 0))
        self._listener.listen(1)
        self._listener.settimeout(5.0)
        self.host, self.port = self._listener.getsockname()
        self._thread = threading.Thread(target=self._serve, daemon=True)

    def start(self) -> "FakeCDCServer":
        self._thread.start()
        return self

    def join(self, timeout: float = 5.0) -> None:
        self._thread.join(timeout)

    def stop(self) -> None:
        self._listener.close()
        self.join()

    def _recv(self, conn: socket.socket) -> bytes:
        data = conn.recv(4096)
        if data:
            self.received.append(data)
        return data

    def _serve(self) -> None:
        try:
            conn, _ = self._listener.accept()
        except OSError as e:
            self.error = e
            return

        with conn:
            conn.settimeout(5.0)
            try:
                self._recv(conn)
                conn.sendall(self.auth_response)
                if self.auth_response != OK_RESPONSE:
                    self._drain(conn)
                    return

                self._recv(conn)
                conn.sendall(self.register_response)
                if self.register_response != OK_RESPONSE:
                    self._drain(conn)
                    return

                self._recv(conn)
                for chunk in self.stream:
                    conn.sendall(chunk)

                if not self.close_after_stream:
                    self._drain(conn)
            except OSError as e:
                self.error = e

    def _drain(self, conn: socket.socket) -> None:
        # Collect whatever the client still sends (CLOSE) until it disconnects
        try:
            while self._recv(conn):
                pass
        except OSError:
            pass


@pytest.fixture
def cdc_server():
    servers: List[FakeCDCServer] = []

    def factory(**kwargs) -> FakeCDCServer:
        server = FakeCDCServer(**kwargs).start()
        servers.append(server)
        return server

    yield factory

    for server in servers:
        server.stop()


@pytest.fixture
def channel_pair():
    """A TransportChannel on one end of a socketpair and the raw peer socket"""
    from cdc.transport import TransportChannel

    client, peer = socket.socketpair()
    channel = TransportChannel(client, timeout=0.2, peer="socketpair")
    yield channel, peer
    channel.close()
    peer.close()
