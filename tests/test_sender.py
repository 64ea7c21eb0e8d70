"""
Unit tests for the Selective Repeat sender, driven by a scripted transport.
"""

import io
from collections import deque

import pytest
import sys
import os

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from winarq.arq.packet import decode, encode_ack
from winarq.arq.sender import SRSender
from winarq.channel.transport import DatagramTransport
from winarq.config import ArqConfig
from winarq.errors import SourceSinkError, TransportTimeout, UnresponsivePeerError
from winarq.utils.logger import LogLevel, TransferLogger


class ScriptedTransport(DatagramTransport):
    """
    In-memory transport. Every sent datagram is passed to a responder whose
    replies are queued; an empty queue times out immediately.
    """

    def __init__(self, responder=None):
        self.responder = responder
        self.sent = []
        self.replies = deque()
        self.waits = []

    def send(self, data):
        self.sent.append(bytes(data))
        if self.responder:
            self.replies.extend(self.responder(bytes(data)))

    def receive(self, max_wait=None):
        self.waits.append(max_wait)
        if self.replies:
            return self.replies.popleft()
        raise TransportTimeout()


def ack_everything(datagram):
    return [encode_ack(datagram[0])]


def drop_first_copy(seqs):
    """Responder that ignores the first transmission of the given seqs."""
    dropped = set()

    def respond(datagram):
        seq = datagram[0]
        if seq in seqs and seq not in dropped:
            dropped.add(seq)
            return []
        return [encode_ack(seq)]
    return respond


def quiet_logger():
    return TransferLogger(level=LogLevel.CRITICAL)


def make_sender(data, responder=ack_everything, config=None, **kwargs):
    transport = ScriptedTransport(responder)
    sender = SRSender(transport, io.BytesIO(data), config or ArqConfig(),
                      quiet_logger(), **kwargs)
    return sender, transport


class TestWindowSizing:
    """Tests for how a source is cut into windows and packets."""

    def test_exact_window(self):
        """5000 bytes: one window of ten packets, the tenth flagged."""
        sender, transport = make_sender(bytes(5000))
        stats = sender.run()

        packets = [decode(d) for d in transport.sent]
        assert [p.seq_num for p in packets] == list(range(10))
        assert [p.is_last for p in packets] == [False] * 9 + [True]
        assert all(len(p.payload) == 500 for p in packets)
        assert stats['windows_completed'] == 1
        assert stats['bytes_transferred'] == 5000

    def test_one_byte_over_window(self):
        """5001 bytes: ten unflagged packets, then a flagged 1-byte packet."""
        sender, transport = make_sender(bytes(5001))
        sender.run()

        packets = [decode(d) for d in transport.sent]
        assert len(packets) == 11
        assert not any(p.is_last for p in packets[:10])
        assert packets[10].seq_num == 10
        assert packets[10].is_last
        assert len(packets[10].payload) == 1
        assert sender.windows_completed == 2

    def test_empty_source_sends_empty_end_of_stream(self):
        sender, transport = make_sender(b"")
        stats = sender.run()

        assert transport.sent == [b"\x00\x01"]
        assert stats['bytes_transferred'] == 0
        assert sender.is_complete()

    def test_payload_order_preserved(self):
        data = bytes(range(256)) * 30  # 7680 bytes
        sender, transport = make_sender(data)
        sender.run()

        assert b"".join(bytes(decode(d).payload) for d in transport.sent) == data

    def test_source_returning_short_reads(self):
        """A source that returns fewer bytes than asked is read to a full window."""
        class Trickle(io.RawIOBase):
            def __init__(self, data):
                self.data = data

            def readable(self):
                return True

            def read(self, n=-1):
                size = 7 if n < 0 else min(7, n)
                piece, self.data = self.data[:size], self.data[size:]
                return piece

        transport = ScriptedTransport(ack_everything)
        sender = SRSender(transport, Trickle(bytes(5001)), ArqConfig(), quiet_logger())
        sender.run()

        assert len(transport.sent) == 11

    def test_source_returning_long_reads(self):
        """Bytes beyond the requested size carry over to the next window."""
        class Greedy(io.RawIOBase):
            def __init__(self, data):
                self.data = data

            def readable(self):
                return True

            def read(self, n=-1):
                piece, self.data = self.data[:1234], self.data[1234:]
                return piece

        data = bytes(range(256)) * 20 + b"\xff"  # 5121 bytes
        transport = ScriptedTransport(ack_everything)
        sender = SRSender(transport, Greedy(data), ArqConfig(), quiet_logger())
        sender.run()

        assert len(transport.sent) == 11
        assert b"".join(bytes(decode(d).payload) for d in transport.sent) == data

    def test_source_read_failure(self):
        class Unreadable(io.RawIOBase):
            def readable(self):
                return True

            def read(self, n=-1):
                raise OSError("EIO")

        transport = ScriptedTransport(ack_everything)
        sender = SRSender(transport, Unreadable(), ArqConfig(), quiet_logger())

        with pytest.raises(SourceSinkError):
            sender.run()
        assert transport.sent == []


class TestSelectiveRepeat:
    """Tests for retransmission of unacknowledged packets only."""

    def test_only_missing_packets_resent(self):
        rounds = []
        sender, transport = make_sender(
            bytes(5000),
            drop_first_copy({3, 7}),
            on_packet_sent=lambda seq, retx: rounds.append((seq, retx))
        )
        stats = sender.run()

        retransmitted = [seq for seq, retx in rounds if retx]
        assert retransmitted == [3, 7]
        assert stats['packets_sent'] == 10
        assert stats['retransmissions'] == 2

    def test_duplicate_acks_are_idempotent(self):
        sender, transport = make_sender(
            bytes(5000),
            lambda d: [encode_ack(d[0]), encode_ack(d[0])]
        )
        stats = sender.run()

        assert stats['new_acks'] == 10
        assert stats['duplicate_acks'] == 10
        assert stats['retransmissions'] == 0
        assert len(transport.sent) == 10

    def test_stale_and_invalid_acks_ignored(self):
        sender, _ = make_sender(bytes(5000))
        sender.load_window(bytes(5000), is_final=True)
        sender.packet_total = 10

        assert not sender.process_ack(50)    # stale
        assert not sender.process_ack(200)   # invalid
        assert sender.window.count == 0
        assert sender.stale_acks == 2

        assert sender.process_ack(3)
        assert not sender.process_ack(3)
        assert sender.window.count == 1

    def test_ack_beyond_short_window_ignored(self):
        """An ack for a slot the final window does not use cannot complete it."""
        sender, _ = make_sender(b"")
        sender.load_window(bytes(1200), is_final=True)

        assert sender.packet_total == 3
        assert not sender.process_ack(5)
        assert sender.window.count == 0

    def test_garbage_ack_discarded(self):
        responses = iter([[b""], [encode_ack(0)]])
        sender, transport = make_sender(b"x", lambda d: next(responses))
        stats = sender.run()

        assert stats['malformed_acks'] == 1
        assert stats['retransmissions'] == 1

    def test_ack_wait_uses_configured_timeout(self):
        sender, transport = make_sender(b"x", config=ArqConfig(ack_timeout=0.25))
        sender.run()

        assert set(transport.waits) == {0.25}


class TestSilenceBudget:
    """Tests for dead-peer detection."""

    def test_dead_peer_after_budget_exhausted(self):
        timeouts = []
        sender, transport = make_sender(
            b"x",
            responder=lambda d: [],
            on_timeout=timeouts.append
        )

        with pytest.raises(UnresponsivePeerError) as info:
            sender.run()

        assert info.value.silent_attempts == 101
        assert info.value.waited == pytest.approx(101 * 0.1)
        assert timeouts == list(range(1, 102))
        assert sender.packets_sent == 1
        assert sender.retransmissions == 100
        assert not sender.is_complete()

    def test_zero_budget_fails_on_first_silence(self):
        sender, _ = make_sender(b"x", responder=lambda d: [],
                                config=ArqConfig(max_silent_attempts=0))

        with pytest.raises(UnresponsivePeerError):
            sender.run()
        assert sender.timeouts == 1

    def test_any_datagram_resets_silence(self):
        """Even undecodable replies prove the peer is alive."""
        calls = []

        def respond(datagram):
            calls.append(datagram)
            return [b""] if len(calls) <= 5 else [encode_ack(datagram[0])]

        sender, _ = make_sender(b"x", respond, config=ArqConfig(max_silent_attempts=1))
        stats = sender.run()

        assert stats['finished']
        assert stats['retransmissions'] == 5

    def test_silence_counter_carries_across_windows(self):
        """The trailing timeout of one window counts against the next."""
        def script():
            replies = iter([[], [encode_ack(0)], [], [encode_ack(1)]])
            return lambda d: next(replies)

        config = ArqConfig(window_size=1, data_size=4, max_start_seq=9,
                           max_silent_attempts=1)
        sender, _ = make_sender(bytes(8), script(), config=config)
        with pytest.raises(UnresponsivePeerError):
            sender.run()
        assert sender.windows_completed == 1

        config = ArqConfig(window_size=1, data_size=4, max_start_seq=9,
                           max_silent_attempts=2)
        sender, _ = make_sender(bytes(8), script(), config=config)
        assert sender.run()['windows_completed'] == 2


class TestStatistics:
    """Tests for sender bookkeeping."""

    def test_progress_reports_per_window(self):
        progress = []
        sender, _ = make_sender(bytes(12000), on_progress=progress.append)
        sender.run()

        assert progress == [5000, 10000, 12000]

    def test_window_state(self):
        sender, _ = make_sender(b"")
        sender.load_window(bytes(1200), is_final=True)
        sender.process_ack(1)

        state = sender.get_window_state()
        assert state['packets'] == 3
        assert state['unacked'] == [0, 2]

    def test_wire_bytes(self):
        sender, _ = make_sender(bytes(1200))
        stats = sender.run()
        assert stats['wire_bytes_sent'] == 1200 + 3 * 2


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
