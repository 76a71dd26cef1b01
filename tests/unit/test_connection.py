"""Unit tests for a single selector-driven connection."""

import selectors
from unittest.mock import MagicMock

import pytest

from eventsub.transport.connection import RECEIVE_CHUNK_SIZE, Connection

REQUEST = b"POST / HTTP/1.1\r\nContent-Length: 5\r\n\r\nhello"


@pytest.fixture(name="client_socket")
def client_socket_fixture():
    sock = MagicMock()
    sock.send.side_effect = len
    return sock


@pytest.fixture(name="selector")
def selector_fixture():
    return MagicMock(spec=selectors.BaseSelector)


@pytest.fixture(name="observer")
def observer_fixture():
    return MagicMock()


@pytest.fixture(name="connection")
def connection_fixture(client_socket, selector, observer):
    connection = Connection(
        7, client_socket, ("127.0.0.1", 54321), selector, observer, 1024
    )
    connection.start()
    return connection


def test_start_registers_for_reads(connection, client_socket, selector):
    client_socket.setblocking.assert_called_once_with(False)
    selector.register.assert_called_once_with(
        client_socket, selectors.EVENT_READ, connection
    )
    assert connection.client == "127.0.0.1:54321"


def test_complete_request_delivered_once(connection, client_socket, observer):
    client_socket.recv.return_value = REQUEST

    connection.handle_event(selectors.EVENT_READ)

    client_socket.recv.assert_called_once_with(RECEIVE_CHUNK_SIZE)
    observer.connection_did_receive.assert_called_once_with(
        connection, REQUEST.decode()
    )

    client_socket.recv.return_value = b"more bytes"
    connection.handle_event(selectors.EVENT_READ)
    assert observer.connection_did_receive.call_count == 1


def test_partial_reads_are_accumulated(connection, client_socket, observer):
    """Nothing is delivered until the declared body has arrived."""
    client_socket.recv.side_effect = [REQUEST[:10], REQUEST[10:30], REQUEST[30:]]

    connection.handle_event(selectors.EVENT_READ)
    connection.handle_event(selectors.EVENT_READ)
    observer.connection_did_receive.assert_not_called()

    connection.handle_event(selectors.EVENT_READ)
    observer.connection_did_receive.assert_called_once_with(
        connection, REQUEST.decode()
    )


def test_eof_stops_connection(connection, client_socket, selector, observer):
    client_socket.recv.return_value = b""

    connection.handle_event(selectors.EVENT_READ)

    assert connection.is_stopped
    selector.unregister.assert_called_once_with(client_socket)
    client_socket.close.assert_called_once()
    observer.connection_did_stop.assert_called_once_with(connection, None)


def test_oversized_request_fails_connection(client_socket, selector, observer):
    connection = Connection(1, client_socket, ("127.0.0.1", 1), selector, observer, 16)
    connection.start()
    client_socket.recv.return_value = REQUEST

    connection.handle_event(selectors.EVENT_READ)

    assert connection.is_stopped
    observer.connection_did_receive.assert_not_called()
    _, error = observer.connection_did_stop.call_args[0]
    assert error is not None


def test_invalid_utf8_fails_connection(connection, client_socket, observer):
    client_socket.recv.return_value = (
        b"POST / HTTP/1.1\r\nContent-Length: 2\r\n\r\n\xff\xfe"
    )
    connection.handle_event(selectors.EVENT_READ)
    assert connection.is_stopped
    observer.connection_did_receive.assert_not_called()


def test_recv_error_fails_connection(connection, client_socket, observer):
    client_socket.recv.side_effect = ConnectionResetError()
    connection.handle_event(selectors.EVENT_READ)
    _, error = observer.connection_did_stop.call_args[0]
    assert isinstance(error, ConnectionResetError)


def test_send_then_finish_closes(connection, client_socket, observer):
    connection.send(b"HTTP/1.1 204 No Content\r\n\r\n")
    connection.finish()

    client_socket.send.assert_called_once_with(b"HTTP/1.1 204 No Content\r\n\r\n")
    assert connection.is_stopped
    observer.connection_did_stop.assert_called_once_with(connection, None)


def test_partial_send_waits_for_writable(connection, client_socket, selector):
    """Leftover bytes are flushed on the next write event before stopping."""
    client_socket.send.side_effect = [4, 6]

    connection.send(b"0123456789")
    connection.finish()
    assert not connection.is_stopped
    selector.modify.assert_called_with(
        client_socket, selectors.EVENT_READ | selectors.EVENT_WRITE, connection
    )

    connection.handle_event(selectors.EVENT_WRITE)
    assert client_socket.send.call_args_list[-1][0][0] == b"456789"
    assert connection.is_stopped


def test_send_after_stop_is_dropped(connection, client_socket):
    connection.stop()
    connection.send(b"late")
    client_socket.send.assert_not_called()


def test_stop_is_idempotent(connection, client_socket, observer):
    connection.stop()
    connection.stop()
    client_socket.close.assert_called_once()
    observer.connection_did_stop.assert_called_once()


def test_cleared_observer_is_not_notified(connection, observer):
    connection.clear_observer()
    connection.stop()
    observer.connection_did_stop.assert_not_called()
