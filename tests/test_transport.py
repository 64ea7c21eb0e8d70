"""
Tests for the UDP transport, including a full transfer over loopback.
"""

import io
import threading

import pytest
import sys
import os

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from winarq.arq.receiver import SRReceiver
from winarq.arq.sender import SRSender
from winarq.channel.transport import UdpTransport
from winarq.config import ArqConfig
from winarq.errors import TransportIOError, TransportSetupError, TransportTimeout
from winarq.utils.data import TestDataGenerator
from winarq.utils.logger import LogLevel, TransferLogger


def quiet_logger():
    return TransferLogger(level=LogLevel.CRITICAL)


class TestUdpTransport:
    """Tests for socket setup and datagram exchange."""

    def test_receive_timeout(self):
        with UdpTransport.bind(0, "127.0.0.1") as transport:
            with pytest.raises(TransportTimeout):
                transport.receive(0.01)

    def test_bound_transport_needs_peer(self):
        with UdpTransport.bind(0, "127.0.0.1") as transport:
            with pytest.raises(TransportIOError):
                transport.send(b"x")

    def test_reply_goes_to_last_sender(self):
        with UdpTransport.bind(0, "127.0.0.1") as server:
            port = server.local_address[1]
            with UdpTransport.connect(port, "127.0.0.1") as client:
                client.send(b"ping")
                assert server.receive(1.0) == b"ping"

                server.send(b"pong")
                assert client.receive(1.0) == b"pong"

    def test_port_in_use(self):
        with UdpTransport.bind(0, "127.0.0.1") as first:
            port = first.local_address[1]
            with pytest.raises(TransportSetupError):
                UdpTransport.bind(port, "127.0.0.1")

    def test_bad_port(self):
        with pytest.raises(TransportSetupError):
            UdpTransport.bind(70000, "127.0.0.1")

    def test_bad_address(self):
        with pytest.raises(TransportSetupError):
            UdpTransport.connect(9000, "no.such.host.invalid")


class TestLoopbackTransfer:
    """Both engines over real sockets."""

    @pytest.mark.parametrize("size", [0, 5000, 23456])
    def test_transfer(self, size):
        data = TestDataGenerator.generate_test_data(size, "random", seed=size)
        config = ArqConfig(ack_timeout=0.02, linger_timeout=0.1)

        server = UdpTransport.bind(0, "127.0.0.1")
        port = server.local_address[1]
        sink = io.BytesIO()
        outcome = {}

        def receive():
            with server:
                outcome['stats'] = SRReceiver(server, sink, config, quiet_logger()).run()

        thread = threading.Thread(target=receive, daemon=True)
        thread.start()

        with UdpTransport.connect(port, "127.0.0.1", config.ack_timeout) as client:
            stats = SRSender(client, io.BytesIO(data), config, quiet_logger()).run()

        thread.join(timeout=10)

        assert not thread.is_alive()
        assert stats['bytes_transferred'] == size
        assert outcome['stats']['bytes_written'] == size
        assert sink.getvalue() == data


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
