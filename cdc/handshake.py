from __future__ import annotations

from typing import Type

from shared.crypto.auth import Authenticator
from shared.log import get_logger
from shared.message import AuthenticationError, CDCError, RegistrationError
from shared.protocol import OK_RESPONSE, READBUF_SIZE, OutputFormat, register_message

from .transport import TransportChannel

logger = get_logger(__name__)


class HandshakeProtocol:
    """
    Two-step connection bootstrap: authenticate, then register.

    Each step writes one message, reads one response and compares it with
    the OK acknowledgment. Any other response is surfaced verbatim.
    """

    def __init__(self, channel: TransportChannel, authenticator: Authenticator,
                 output_format: OutputFormat = OutputFormat.JSON):
        self.channel = channel
        self.authenticator = authenticator
        self.output_format = output_format

    def run(self) -> None:
        """Authenticate and register; registration only runs after a successful authentication."""
        self.authenticate()
        self.register()

    def authenticate(self) -> None:
        self._exchange(
            self.authenticator.token(),
            step="authentication",
            failure=AuthenticationError,
            failure_prefix="Authentication failed: ",
        )
        logger.debug("Authenticated as %s", self.authenticator.user, extra={"peer": self.channel.peer})

    def register(self) -> None:
        self._exchange(
            register_message(self.output_format),
            step="registration",
            failure=RegistrationError,
            failure_prefix="Registration failed: ",
        )
        logger.debug("Registered for %s output", self.output_format.value, extra={"peer": self.channel.peer})

    def _exchange(self, payload: bytes, *, step: str, failure: Type[CDCError], failure_prefix: str) -> None:
        try:
            self.channel.send_all(payload)
        except CDCError as e:
            raise type(e)(f"Failed to write {step} data: {e}") from e

        try:
            response = self.channel.read_bytes(READBUF_SIZE)
        except CDCError as e:
            raise type(e)(f"Failed to read {step} response: {e}") from e

        if response[:len(OK_RESPONSE)] != OK_RESPONSE:
            raise failure(failure_prefix + response.decode("utf-8", errors="replace"))
