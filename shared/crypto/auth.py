# Handshake credential providers

from __future__ import annotations
from abc import ABC, abstractmethod

from shared.crypto.crypto import generate_auth_string


class Authenticator(ABC):
    """Abstract base class for handshake credential providers"""
    @abstractmethod
    def token(self) -> bytes:
        """Return the authentication payload written to the server"""
        ...

    @property
    @abstractmethod
    def user(self) -> str:
        """User name the token identifies, safe to log"""
        ...


class PasswordAuthenticator(Authenticator):
    """
    User/password authenticator for the CDC service.

    The password never leaves the process in clear text; only the
    hex-encoded SHA-1 digest is written, prefixed by hex(user + ":").
    """

    def __init__(self, user: str, password: str):
        self._user = user
        self._password = password

    @property
    def user(self) -> str:
        return self._user

    def token(self) -> bytes:
        return generate_auth_string(self._user, self._password).encode("ascii")

    def __repr__(self) -> str:
        return f"PasswordAuthenticator(user={self._user!r})"
