import pytest

from cdc.handshake import HandshakeProtocol
from shared.crypto.auth import PasswordAuthenticator
from shared.message import AuthenticationError, CDCIOError, CDCTimeoutError, RegistrationError


def _handshake(channel):
    return HandshakeProtocol(channel, PasswordAuthenticator("maxscale", "maxscale"))


def test_authenticate_writes_token(channel_pair):
    channel, peer = channel_pair
    peer.sendall(b"OK\n")

    _handshake(channel).authenticate()

    peer.settimeout(1.0)
    assert peer.recv(1024) == b"6d61787363616c653a9f2a83c4ebdbf57b0e5fd748f2b60bc604212137"


def test_register_writes_identity_and_format(channel_pair):
    channel, peer = channel_pair
    peer.sendall(b"OK\n")

    _handshake(channel).register()

    peer.settimeout(1.0)
    assert peer.recv(1024) == b"REGISTER UUID=CDC_CONNECTOR-1.0.0, TYPE=JSON"


def test_ack_is_matched_as_prefix(channel_pair):
    channel, peer = channel_pair
    peer.sendall(b"OK\nextra")

    _handshake(channel).authenticate()


def test_rejected_token_reports_server_text(channel_pair):
    channel, peer = channel_pair
    peer.sendall(b"ERROR: Authentication failed")

    with pytest.raises(AuthenticationError) as exc_info:
        _handshake(channel).run()

    assert str(exc_info.value) == "Authentication failed: ERROR: Authentication failed"


def test_rejected_registration(channel_pair):
    channel, peer = channel_pair
    peer.sendall(b"OK\n")
    handshake = _handshake(channel)
    handshake.authenticate()

    peer.sendall(b"ERR unknown format")
    with pytest.raises(RegistrationError, match="Registration failed: ERR unknown format"):
        handshake.register()


def test_silent_server_times_out(channel_pair):
    channel, _ = channel_pair

    with pytest.raises(CDCTimeoutError, match="Failed to read authentication response: Request timed out"):
        _handshake(channel).authenticate()


def test_server_hangs_up_during_handshake(channel_pair):
    channel, peer = channel_pair
    peer.close()

    with pytest.raises(CDCIOError, match="Failed to write authentication data"):
        _handshake(channel).authenticate()
