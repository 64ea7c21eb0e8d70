"""
Datagram Transport

The engines talk to the network only through DatagramTransport, so tests
and the simulator can substitute an in-memory link for a UDP socket.
"""

import socket
from abc import ABC, abstractmethod
from typing import Optional, Tuple

from winarq.config import ACK_TIMEOUT, LISTEN_ADDR, RECV_BUFFER_SIZE, SERVER_ADDR
from winarq.errors import TransportIOError, TransportSetupError, TransportTimeout


class DatagramTransport(ABC):
    """Point-to-point, unreliable, unordered datagram channel."""

    @abstractmethod
    def send(self, data: bytes):
        """
        Send one datagram to the peer.

        Raises:
            TransportIOError: the datagram could not be handed to the network
        """

    @abstractmethod
    def receive(self, max_wait: Optional[float] = None) -> bytes:
        """
        Receive one datagram.

        Args:
            max_wait: Seconds to wait, or None to block indefinitely

        Raises:
            TransportTimeout: nothing arrived within max_wait
            TransportIOError: the receive failed
        """

    def close(self):
        """Release the underlying resources."""

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()


class UdpTransport(DatagramTransport):
    """
    UDP socket transport.

    A connected transport always sends to its fixed peer. A bound transport
    replies to whoever sent the most recent datagram.

    Attributes:
        sock: Underlying UDP socket
        peer: Address datagrams are sent to
    """

    def __init__(self, sock: socket.socket, peer: Optional[Tuple[str, int]] = None,
                 follow_peer: bool = False):
        self.sock = sock
        self.peer = peer
        self.follow_peer = follow_peer

    @classmethod
    def connect(cls, port: int, host: str = SERVER_ADDR,
                timeout: Optional[float] = ACK_TIMEOUT) -> 'UdpTransport':
        """
        Open a sending transport towards host:port.

        Args:
            port: Receiver port
            host: Receiver address
            timeout: Default receive timeout in seconds

        Raises:
            TransportSetupError: socket creation or address resolution failed
        """
        if not 0 < port <= 65535:
            raise TransportSetupError(f"invalid port {port}")

        sock = _open_socket()
        try:
            peer = (socket.gethostbyname(host), port)
            if timeout is not None:
                sock.settimeout(timeout)
        except (OSError, OverflowError) as exc:
            sock.close()
            raise TransportSetupError(f"could not set up address {host}:{port}: {exc}") from exc
        return cls(sock, peer=peer)

    @classmethod
    def bind(cls, port: int, host: str = LISTEN_ADDR) -> 'UdpTransport':
        """
        Open a receiving transport bound to host:port.

        Raises:
            TransportSetupError: socket creation or bind failed
        """
        sock = _open_socket()
        try:
            sock.bind((host, port))
        except (OSError, OverflowError) as exc:
            sock.close()
            raise TransportSetupError(f"could not bind {host}:{port}: {exc}") from exc
        return cls(sock, follow_peer=True)

    @property
    def local_address(self) -> Tuple[str, int]:
        return self.sock.getsockname()

    def send(self, data: bytes):
        if self.peer is None:
            raise TransportIOError("no peer address to send to")
        try:
            self.sock.sendto(data, self.peer)
        except OSError as exc:
            raise TransportIOError(f"sendto() failed: {exc}") from exc

    def receive(self, max_wait: Optional[float] = None) -> bytes:
        try:
            self.sock.settimeout(max_wait)
            data, addr = self.sock.recvfrom(RECV_BUFFER_SIZE)
        except socket.timeout as exc:
            raise TransportTimeout() from exc
        except OSError as exc:
            raise TransportIOError(f"recvfrom() failed: {exc}") from exc

        if self.follow_peer:
            self.peer = addr
        return data

    def close(self):
        self.sock.close()


def _open_socket() -> socket.socket:
    try:
        return socket.socket(socket.AF_INET, socket.SOCK_DGRAM, socket.IPPROTO_UDP)
    except OSError as exc:
        raise TransportSetupError(f"could not open socket: {exc}") from exc
