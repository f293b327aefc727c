"""
CDC Connection

Facade over the transport, handshake, line decoder, schema registry and row
factory. Public methods never raise connector errors: they return False or
None and record the reason, readable through ``error`` and
``last_exception``.

Lifecycle:
    NOT_CONNECTED --connect()--> CONNECTED --request_data()--> STREAMING
    STREAMING --timeout / I/O error / ERR line--> FAILED
    any --close()--> CLOSED
"""

from __future__ import annotations

from enum import Enum
from typing import Dict, Iterator, Optional

from shared.crypto.auth import PasswordAuthenticator
from shared.log import get_logger, log_cdc_event
from shared.message import (
    CDCError,
    CDCIOError,
    CDCTimeoutError,
    ConnectionStateError,
    DecodeError,
    Message,
    ServerProtocolError,
)
from shared.protocol import close_message, request_message
from shared.utils import is_gtid

from .decoder import LineDecoder
from .handshake import HandshakeProtocol
from .row import Row, build_row
from .schema import SchemaRegistry
from .transport import TransportChannel, open_channel

logger = get_logger(__name__)

DEFAULT_TIMEOUT = 10

# Errors that leave the stream at an unknown position
_STREAM_FATAL = (CDCIOError, CDCTimeoutError, ServerProtocolError)


class ConnectionState(str, Enum):
    NOT_CONNECTED = "not_connected"
    CONNECTED = "connected"
    STREAMING = "streaming"
    FAILED = "failed"
    CLOSED = "closed"


class Connection:
    """
    One session with a CDC service.

    Example:
        with Connection("127.0.0.1", 4001, "maxscale", "maxscale") as conn:
            if conn.connect() and conn.request_data("test.t1"):
                for row in conn.rows():
                    print(row.gtid(), row.as_dict())
            print(conn.error)
    """

    def __init__(self, address: str, port: int, user: str, password: str, timeout: float = DEFAULT_TIMEOUT):
        self._address = address
        self._port = port
        self._user = user
        self._authenticator = PasswordAuthenticator(user, password)
        self.timeout = timeout

        self.state = ConnectionState.NOT_CONNECTED
        self.table: Optional[str] = None
        self._channel: Optional[TransportChannel] = None
        self._decoder: Optional[LineDecoder] = None
        self._registry = SchemaRegistry()
        self._error = ""
        self._last_exception: Optional[CDCError] = None

    # ----------------------------------------
    #           ACCESSORS
    # ----------------------------------------

    @property
    def address(self) -> str:
        return self._address

    @property
    def port(self) -> int:
        return self._port

    @property
    def user(self) -> str:
        return self._user

    @property
    def peer(self) -> str:
        return f"{self._address}:{self._port}"

    @property
    def error(self) -> str:
        """Latest error, or an empty string if the last operation succeeded"""
        return self._error

    @property
    def last_exception(self) -> Optional[CDCError]:
        return self._last_exception

    @property
    def schema(self) -> str:
        """Raw JSON text of the latest schema announcement"""
        return self._registry.raw

    @property
    def fields(self) -> Dict[str, str]:
        """Field names of the active schema mapped to their SQL types"""
        return self._registry.fields()

    # Connector API accessor names
    def get_error(self) -> str:
        return self.error

    def get_schema(self) -> str:
        return self.schema

    def get_fields(self) -> Dict[str, str]:
        return self.fields

    # ----------------------------------------
    #           PUBLIC OPERATIONS
    # ----------------------------------------

    def connect(self) -> bool:
        """
        Open the TCP connection and run the handshake.

        Returns True once authenticated and registered. On failure the
        socket is released and the connection stays NOT_CONNECTED.
        """
        self._clear_error()
        if self.state is not ConnectionState.NOT_CONNECTED:
            return self._fail(ConnectionStateError(f"Cannot connect while {self.state.value}"))

        logger.debug("Connecting as %s", self._user, extra={"peer": self.peer})
        try:
            channel = open_channel(self._address, self._port, self.timeout)
        except CDCError as e:
            return self._fail(e)

        try:
            HandshakeProtocol(channel, self._authenticator).run()
        except CDCError as e:
            channel.close()
            return self._fail(e)

        self._channel = channel
        self._decoder = LineDecoder(channel)
        self.state = ConnectionState.CONNECTED
        logger.info("Connected", extra={"peer": self.peer})
        return True

    # Alias kept for callers using the connector API names
    create_connection = connect

    def request_data(self, table: str, gtid: str = "") -> bool:
        """
        Ask the server to stream ``table``, optionally from a GTID position
        in 'domain-server_id-sequence' form.
        """
        self._clear_error()
        if self.state is not ConnectionState.CONNECTED:
            return self._fail(ConnectionStateError(f"Cannot request data while {self.state.value}"))
        if gtid and not is_gtid(gtid):
            return self._fail(DecodeError(f"Invalid GTID: {gtid}"))

        try:
            self._channel.send_all(request_message(table, gtid))
        except CDCError as e:
            self._fail(CDCIOError(f"Failed to write request: {e}"))
            self._mark_failed()
            return False

        self.table = table
        self.state = ConnectionState.STREAMING
        logger.info("Requested data%s", f" from {gtid}" if gtid else "", extra={"peer": self.peer, "table": table})
        return True

    def read(self) -> Optional[Row]:
        """
        Read the next row.

        Schema announcements are consumed transparently: the registry is
        replaced and reading continues until a data event arrives. Returns
        None on failure; the reason is available through ``error``.
        """
        self._clear_error()
        if self.state is not ConnectionState.STREAMING:
            return self._fail(ConnectionStateError(f"Cannot read while {self.state.value}"), result=None)

        try:
            while True:
                message = Message.from_line(self._decoder.read_line())
                if not message.is_schema:
                    break
                self._registry.replace(message.data, message.raw)
                logger.info("Schema updated with %d fields", len(self._registry),
                            extra={"peer": self.peer, "table": self.table})

            row = build_row(message.data, self._registry)
        except _STREAM_FATAL as e:
            self._mark_failed()
            return self._fail(e, result=None)
        except CDCError as e:
            return self._fail(e, result=None)

        log_cdc_event(logger, "debug", "Decoded row", row=row, table=self.table)
        return row

    def rows(self) -> Iterator[Row]:
        """Yield rows until read() fails; the reason stays in ``error``."""
        while True:
            row = self.read()
            if row is None:
                return
            yield row

    def close(self) -> None:
        """
        Send the best-effort CLOSE notification and release the socket.

        Safe to call more than once and on a connection that never connected.
        """
        channel, self._channel = self._channel, None
        self._decoder = None
        self.state = ConnectionState.CLOSED
        if channel is None:
            return

        try:
            channel.send_all(close_message())
        except CDCError as e:
            logger.debug("CLOSE notification not sent: %s", e, extra={"peer": self.peer})
        channel.close()
        logger.debug("Connection closed", extra={"peer": self.peer})

    # Alias kept for callers using the connector API names
    close_connection = close

    # ----------------------------------------
    #           INTERNALS
    # ----------------------------------------

    def _clear_error(self) -> None:
        self._error = ""
        self._last_exception = None

    def _fail(self, exc: CDCError, result=False):
        self._error = str(exc)
        self._last_exception = exc
        logger.warning(self._error, extra={"peer": self.peer, "table": self.table})
        return result

    def _mark_failed(self) -> None:
        self.state = ConnectionState.FAILED

    def __enter__(self) -> "Connection":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def __del__(self) -> None:
        # Interpreter shutdown may have torn down module globals already
        try:
            self.close()
        except Exception:
            pass

    def __repr__(self) -> str:
        return f"Connection(peer={self.peer!r}, user={self._user!r}, state={self.state.value})"
