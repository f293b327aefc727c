import pytest

from cdc.decoder import LineDecoder
from shared.message import CDCTimeoutError, ConnectionClosedError, ServerProtocolError


def test_reads_lines_and_discards_terminator(channel_pair):
    channel, peer = channel_pair
    peer.sendall(b'{"a":1}\n{"b":2}\n')
    decoder = LineDecoder(channel)

    assert decoder.read_line() == b'{"a":1}'
    assert decoder.read_line() == b'{"b":2}'
    assert decoder.pending == 0


def test_assembles_line_across_small_reads(channel_pair):
    channel, peer = channel_pair
    peer.sendall(b'{"col1":"hello world"}\n')
    decoder = LineDecoder(channel, chunk_size=3)

    assert decoder.read_line() == b'{"col1":"hello world"}'


def test_keeps_bytes_after_terminator_for_next_line(channel_pair):
    channel, peer = channel_pair
    decoder = LineDecoder(channel)
    peer.sendall(b'first\nsec')

    assert decoder.read_line() == b"first"
    assert decoder.pending == 3

    peer.sendall(b"ond\n")
    assert decoder.read_line() == b"second"


def test_err_line_is_a_server_error(channel_pair):
    channel, peer = channel_pair
    peer.sendall(b"ERR: no such table\n")
    decoder = LineDecoder(channel)

    with pytest.raises(ServerProtocolError, match="no such table") as exc_info:
        decoder.read_line()
    assert str(exc_info.value) == "Server responded with an error: ERR: no such table"


def test_err_is_only_matched_as_prefix(channel_pair):
    channel, peer = channel_pair
    peer.sendall(b'{"msg":"ERR"}\nER\n')
    decoder = LineDecoder(channel)

    assert decoder.read_line() == b'{"msg":"ERR"}'
    assert decoder.read_line() == b"ER"


def test_timeout_discards_partial_line(channel_pair):
    channel, peer = channel_pair
    peer.sendall(b'{"domain":0,')
    decoder = LineDecoder(channel)

    with pytest.raises(CDCTimeoutError, match="Request timed out"):
        decoder.read_line()
    assert decoder.pending == 0


def test_closed_stream_with_partial_err_line(channel_pair):
    channel, peer = channel_pair
    peer.sendall(b"ERR: shutting down")
    peer.close()
    decoder = LineDecoder(channel)

    with pytest.raises(ServerProtocolError, match="shutting down"):
        decoder.read_line()


def test_closed_stream_mid_line(channel_pair):
    channel, peer = channel_pair
    peer.sendall(b'{"domain":')
    peer.close()
    decoder = LineDecoder(channel)

    with pytest.raises(ConnectionClosedError):
        decoder.read_line()
    assert decoder.pending == 0
