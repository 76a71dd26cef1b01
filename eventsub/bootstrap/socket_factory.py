"""Listening socket creation."""

import errno
import socket

NETWORK_UNAVAILABLE_ERRNOS = frozenset(
    {errno.EADDRNOTAVAIL, errno.ENETUNREACH, errno.ENETDOWN}
)


def create_listener_socket(host: str, port: int) -> socket.socket:
    """Create a non-blocking plaintext TCP listener bound to ``host:port``."""
    server_socket = socket.create_server((host, port))
    server_socket.setblocking(False)
    return server_socket


def is_network_unavailable(error: OSError) -> bool:
    """Return True when binding failed because no viable network exists yet."""
    return error.errno in NETWORK_UNAVAILABLE_ERRNOS
