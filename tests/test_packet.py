"""
Unit tests for the packet codec and packet sizing.
"""

import pytest
import sys
import os

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from winarq.arq.packet import (
    Packet, encode, decode, encode_ack, decode_ack,
    packet_size, packet_count, split_chunk
)
from winarq.config import DATA_SIZE, HEADER_SIZE, PACKET_SIZE
from winarq.errors import ArqError, MalformedPacketError


class TestPacketEncoding:
    """Tests for data packet encoding and decoding."""

    def test_header_layout(self):
        """Sequence number then end-of-stream flag, then payload."""
        assert encode(42, True, b"abc") == b"\x2a\x01abc"
        assert encode(7, False, b"") == b"\x07\x00"

    def test_sequence_number_reduced_mod_256(self):
        assert encode(300, False, b"x")[0] == 44

    def test_payload_too_large(self):
        with pytest.raises(ValueError):
            encode(0, False, bytes(DATA_SIZE + 1))

    def test_full_packet_size(self):
        raw = encode(0, False, bytes(DATA_SIZE))
        assert len(raw) == PACKET_SIZE == 502

    def test_decode_fields(self):
        packet = decode(b"\x05\x00hello")

        assert isinstance(packet, Packet)
        assert packet.seq_num == 5
        assert not packet.is_last
        assert bytes(packet.payload) == b"hello"
        assert packet.total_size == HEADER_SIZE + 5

    def test_any_nonzero_flag_is_end_of_stream(self):
        assert decode(b"\x05\x07data").is_last

    def test_header_only_packet(self):
        """A bare header is a valid, empty packet."""
        packet = decode(b"\x00\x01")
        assert packet.is_last
        assert len(packet.payload) == 0

    def test_too_short(self):
        with pytest.raises(MalformedPacketError):
            decode(b"\x01")
        with pytest.raises(MalformedPacketError):
            decode(b"")

    def test_too_long(self):
        with pytest.raises(MalformedPacketError):
            decode(bytes(PACKET_SIZE + 1))

    def test_malformed_is_not_fatal(self):
        """Malformed datagrams are discarded, never a transfer failure."""
        assert issubclass(MalformedPacketError, ValueError)
        assert not issubclass(MalformedPacketError, ArqError)


class TestAck:
    """Tests for the one-byte ack."""

    def test_encode(self):
        assert encode_ack(5) == b"\x05"
        assert encode_ack(261) == b"\x05"

    def test_decode_uses_first_byte(self):
        assert decode_ack(b"\x07") == 7
        assert decode_ack(b"\x07\x08\x09") == 7

    def test_decode_empty(self):
        with pytest.raises(MalformedPacketError):
            decode_ack(b"")


class TestPacketSizing:
    """Tests for splitting a window's chunk into packets."""

    def test_non_final_packets_are_full(self):
        assert packet_size(1234, False) == PACKET_SIZE

    def test_final_packet_carries_remainder(self):
        assert packet_size(1234, True) == HEADER_SIZE + 234
        assert packet_size(1, True) == HEADER_SIZE + 1

    def test_exact_multiple_is_full_packet(self):
        """A zero remainder means a full final packet, not an empty one."""
        assert packet_size(5000, True) == PACKET_SIZE
        assert packet_size(500, True) == PACKET_SIZE

    def test_packet_count(self):
        assert packet_count(5000) == 10
        assert packet_count(4999) == 10
        assert packet_count(501) == 2
        assert packet_count(1) == 1
        assert packet_count(0) == 0

    def test_split_full_window(self):
        payloads = split_chunk(bytes(5000))
        assert [len(p) for p in payloads] == [500] * 10

    def test_split_partial_window(self):
        chunk = bytes(range(256)) * 5  # 1280 bytes
        payloads = split_chunk(chunk)

        assert [len(p) for p in payloads] == [500, 500, 280]
        assert b"".join(payloads) == chunk

    def test_split_single_byte(self):
        assert split_chunk(b"z") == [b"z"]

    def test_custom_data_size(self):
        assert [len(p) for p in split_chunk(bytes(10), data_size=4)] == [4, 4, 2]


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
