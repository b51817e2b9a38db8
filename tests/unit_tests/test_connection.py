"""
Connection handle tests: line framing, idempotent close, bounded writes.
"""

import socket
import threading
import time

import pytest


def test_read_line_splits_and_strips_terminators(make_connection):
    connection, peer = make_connection()
    peer.sock.sendall(b"first\nsecond\r\n  padded text  \n")

    assert connection.read_line() == "first"
    assert connection.read_line() == "second"
    assert connection.read_line() == "  padded text  "


def test_read_line_reassembles_split_lines(make_connection):
    connection, peer = make_connection()

    def send_in_pieces():
        for piece in (b"hel", b"lo wor", b"ld\n"):
            peer.sock.sendall(piece)
            time.sleep(0.02)

    threading.Thread(target=send_in_pieces).start()
    assert connection.read_line() == "hello world"


def test_read_line_returns_none_at_end_of_stream(make_connection):
    connection, peer = make_connection()
    peer.sock.sendall(b"last line\npartial")
    peer.close()

    assert connection.read_line() == "last line"
    assert connection.read_line() == "partial"
    assert connection.read_line() is None


def test_close_is_idempotent(make_connection):
    connection, _ = make_connection()

    assert connection.close() is True
    assert connection.close() is False
    assert connection.closed


def test_concurrent_close_closes_once(make_connection):
    connection, _ = make_connection()
    barrier = threading.Barrier(8)
    results = []

    def close():
        barrier.wait()
        results.append(connection.close())

    threads = [threading.Thread(target=close) for _ in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(5)

    assert results.count(True) == 1


def test_close_from_other_thread_ends_blocked_read(make_connection):
    connection, _ = make_connection()
    result = []

    reader = threading.Thread(target=lambda: result.append(connection.read_line()))
    reader.start()
    time.sleep(0.1)
    connection.close()
    reader.join(2)

    assert not reader.is_alive()
    assert result == [None]


def test_send_after_close_raises(make_connection):
    connection, _ = make_connection()
    connection.close()

    with pytest.raises(ConnectionError):
        connection.send_line("hello")
    assert connection.try_send_line("hello") is False


def test_concurrent_writers_do_not_interleave_lines(make_connection):
    connection, peer = make_connection()
    writers, lines_each = 4, 25
    payloads = {f"w{i}": f"w{i}:" + chr(ord("a") + i) * 200 for i in range(writers)}

    def write(key):
        for _ in range(lines_each):
            connection.send_line(payloads[key])

    threads = [threading.Thread(target=write, args=(key,)) for key in payloads]
    for thread in threads:
        thread.start()

    received = [peer.recv_line() for _ in range(writers * lines_each)]
    for thread in threads:
        thread.join(5)

    assert set(received) == set(payloads.values())
    for payload in payloads.values():
        assert received.count(payload) == lines_each


def test_write_to_stalled_peer_times_out(make_connection):
    connection, _ = make_connection(write_timeout=0.3)
    # The peer never reads, so the socket buffers fill up
    started = time.monotonic()

    with pytest.raises(socket.timeout):
        connection.send_line("x" * (8 * 1024 * 1024))

    assert time.monotonic() - started < 3
