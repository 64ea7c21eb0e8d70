"""
Packet Codec for the windowed Selective Repeat transfer

This module defines the two-byte packet header, the one-byte ack, and the
sizing rule that splits a window's chunk of file data into packets.

Packet layout:
    - Sequence Number: 1 byte (seq mod 256)
    - End-of-Stream: 1 byte (0 or nonzero)
    - Payload: 0..data_size bytes

Ack layout:
    - Sequence Number: 1 byte (echoed)
"""

from typing import NamedTuple

from winarq.config import ACK_SIZE, DATA_SIZE, HEADER_SIZE, SEQ_MODULUS
from winarq.errors import MalformedPacketError


class Packet(NamedTuple):
    """
    Decoded data packet.

    Attributes:
        seq_num: Sequence number (0-255)
        is_last: Whether this packet ends the stream
        payload: View into the received datagram
    """
    seq_num: int
    is_last: bool
    payload: memoryview

    @property
    def total_size(self) -> int:
        """Get wire size (header + payload)."""
        return HEADER_SIZE + len(self.payload)

    def __repr__(self) -> str:
        return (f"Packet(seq={self.seq_num}, last={self.is_last}, "
                f"payload_len={len(self.payload)})")


def encode(seq_num: int, is_last: bool, payload: bytes, data_size: int = DATA_SIZE) -> bytes:
    """
    Serialize a data packet.

    Args:
        seq_num: Sequence number (reduced mod 256)
        is_last: Whether this is the final packet of the transfer
        payload: Packet payload
        data_size: Maximum payload size

    Returns:
        Packet bytes
    """
    if len(payload) > data_size:
        raise ValueError(f"Payload too large ({len(payload)} > {data_size} bytes)")

    header = bytes((seq_num % SEQ_MODULUS, 1 if is_last else 0))
    return header + bytes(payload)


def decode(data: bytes, data_size: int = DATA_SIZE) -> Packet:
    """
    Deserialize a data packet without copying the payload.

    Args:
        data: Received datagram
        data_size: Maximum payload size

    Returns:
        Decoded packet

    Raises:
        MalformedPacketError: datagram shorter than the header or longer
            than a full packet
    """
    if len(data) < HEADER_SIZE:
        raise MalformedPacketError(f"Datagram too short ({len(data)} bytes)")
    if len(data) > HEADER_SIZE + data_size:
        raise MalformedPacketError(f"Datagram too long ({len(data)} bytes)")

    view = memoryview(data)
    return Packet(
        seq_num=view[0],
        is_last=view[1] != 0,
        payload=view[HEADER_SIZE:]
    )


def encode_ack(seq_num: int) -> bytes:
    """Serialize an ack echoing seq_num."""
    return bytes((seq_num % SEQ_MODULUS,))


def decode_ack(data: bytes) -> int:
    """
    Deserialize an ack.

    Only the first byte is significant; trailing bytes are ignored.
    """
    if len(data) < ACK_SIZE:
        raise MalformedPacketError("Empty ack datagram")
    return data[0]


def packet_size(remaining: int, is_final: bool, data_size: int = DATA_SIZE) -> int:
    """
    Calculate the wire size of a packet within a chunk.

    Every packet but the final one of a chunk is full size. The final one
    carries the remainder, except that an exact multiple of data_size is
    treated as a full packet rather than an empty one.

    Args:
        remaining: Length of the chunk being split
        is_final: Whether this is the chunk's final packet
        data_size: Maximum payload size

    Returns:
        Packet size in bytes, header included
    """
    if not is_final:
        return HEADER_SIZE + data_size

    remainder = remaining % data_size
    if remainder == 0:
        return HEADER_SIZE + data_size
    return HEADER_SIZE + remainder


def packet_count(chunk_len: int, data_size: int = DATA_SIZE) -> int:
    """Number of packets needed to carry chunk_len bytes."""
    return -(-chunk_len // data_size)


def split_chunk(chunk: bytes, data_size: int = DATA_SIZE) -> list:
    """
    Split a chunk into per-packet payloads using packet_size.

    Args:
        chunk: Window's worth of file data
        data_size: Maximum payload size

    Returns:
        List of payloads, one per packet
    """
    count = packet_count(len(chunk), data_size)
    payloads = []
    offset = 0

    for i in range(count):
        size = packet_size(len(chunk), i + 1 == count, data_size) - HEADER_SIZE
        payloads.append(chunk[offset:offset + size])
        offset += size

    return payloads


if __name__ == "__main__":
    print("=" * 60)
    print("PACKET CODEC TEST")
    print("=" * 60)

    raw = encode(42, True, b"Hello, World!")
    print(f"\nEncoded: {raw!r} ({len(raw)} bytes)")
    print(f"Decoded: {decode(raw)}")

    for size in (5000, 5001, 499, 1):
        sizes = [len(p) for p in split_chunk(bytes(size))]
        print(f"Chunk of {size:5d} bytes -> payloads {sizes}")
