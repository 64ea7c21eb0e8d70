"""
Selective Repeat Receiver

This module implements the receiving side of the windowed transfer. The
receiver is purely reactive: every datagram it can decode is acknowledged,
new in-window payloads are placed in their slot of the assembly buffer, and
a complete window is flushed to the sink in slot order.
"""

from typing import BinaryIO, Callable, List, Optional

from winarq.arq.packet import Packet, decode, encode_ack
from winarq.arq.window import SeqClass, WindowTracker
from winarq.channel.transport import DatagramTransport
from winarq.config import ArqConfig
from winarq.errors import MalformedPacketError, SourceSinkError, TransportTimeout
from winarq.utils.logger import TransferLogger, get_logger


class SRReceiver:
    """
    Selective Repeat Receiver.

    A window is complete when as many packets were accepted as expected:
    window_size normally, fewer once the end-of-stream packet shows where
    the last window stops. Stale and duplicate packets are still acked so a
    sender that missed an ack can finish its round.

    Attributes:
        transport: Datagram channel to the sender
        sink: Binary file-like object to write to
        config: Protocol parameters
        window: Receipt flags and base of the active window
        buffer: Assembly buffer of window_size * data_size bytes
        lengths: Payload length received in each slot
        expected: Packets needed to complete the active window
    """

    def __init__(
        self,
        transport: DatagramTransport,
        sink: BinaryIO,
        config: Optional[ArqConfig] = None,
        logger: Optional[TransferLogger] = None,
        on_progress: Optional[Callable[[int], None]] = None
    ):
        """
        Initialize receiver.

        Args:
            transport: Datagram transport bound to the listening port
            sink: Writable binary stream
            config: Protocol parameters (defaults if None)
            logger: Logger (global logger if None)
            on_progress: Callback(bytes_written) per flushed window
        """
        self.transport = transport
        self.sink = sink
        self.config = config or ArqConfig()
        self.logger = logger or get_logger()
        self.on_progress = on_progress

        self.window = WindowTracker(self.config.window_size, self.config.max_start_seq)
        self.buffer = bytearray(self.config.chunk_size)
        self.lengths: List[int] = [0] * self.config.window_size
        self.expected = self.config.window_size
        self.end_of_stream = False
        self.done = False

        # Statistics
        self.packets_received = 0
        self.packets_accepted = 0
        self.duplicate_packets = 0
        self.stale_packets = 0
        self.malformed_packets = 0
        self.acks_sent = 0
        self.windows_completed = 0
        self.bytes_written = 0

    def run(self) -> dict:
        """
        Receive until the end-of-stream window is flushed, then linger.

        Blocks indefinitely while waiting for the sender.

        Returns:
            Receiver statistics
        """
        self.logger.transfer_start({'role': 'receiver', **self.config.as_dict()})

        while not self.done:
            data = self.transport.receive(None)
            self.send_ack(self.handle_datagram(data))

        self.linger()

        stats = self.get_statistics()
        self.logger.transfer_end(stats)
        return stats

    def linger(self):
        """Keep acking retransmissions until the sender has been quiet for linger_timeout."""
        if self.config.linger_timeout <= 0:
            return

        while True:
            try:
                data = self.transport.receive(self.config.linger_timeout)
            except TransportTimeout:
                return
            self.send_ack(self.handle_datagram(data))

    def send_ack(self, ack: Optional[bytes]):
        """Send an ack produced by handle_datagram, if any."""
        if ack is None:
            return
        self.transport.send(ack)
        self.acks_sent += 1
        self.logger.ack_sent(ack[0])

    def handle_datagram(self, data: bytes) -> Optional[bytes]:
        """
        Process one received datagram.

        Args:
            data: Raw datagram

        Returns:
            Ack to send back, or None if the datagram was not a packet
        """
        try:
            packet = decode(data, self.config.data_size)
        except MalformedPacketError as exc:
            self.malformed_packets += 1
            self.logger.warning(f"Discarding datagram: {exc}", "RX")
            return None

        self.packets_received += 1
        seq_num = packet.seq_num
        verdict = self.window.classify(seq_num)

        if verdict is not SeqClass.CURRENT:
            self.stale_packets += 1
            self.logger.packet_received(seq_num, verdict.name.lower())
        elif self.window.is_marked(seq_num):
            self.duplicate_packets += 1
            self.logger.packet_received(seq_num, "duplicate")
        else:
            self.accept(packet)
            self.logger.packet_received(seq_num, "accepted")

            if not self.done and self.window.count >= self.expected:
                self.complete_window()

        return encode_ack(seq_num)

    def accept(self, packet: Packet):
        """
        Place a new in-window payload into its slot.

        Args:
            packet: Decoded packet classified as current and not yet received
        """
        slot = self.window.slot(packet.seq_num)
        offset = slot * self.config.data_size
        length = len(packet.payload)

        self.buffer[offset:offset + length] = packet.payload
        self.lengths[slot] = length
        self.window.mark(packet.seq_num)
        self.packets_accepted += 1

        if packet.is_last:
            # The final window may hold fewer than window_size packets
            self.end_of_stream = True
            self.expected = slot + 1

    def complete_window(self):
        """Flush the assembled window and advance, or finish on end-of-stream."""
        view = memoryview(self.buffer)
        data_size = self.config.data_size
        pieces = [
            view[slot * data_size:slot * data_size + self.lengths[slot]]
            for slot in range(self.expected)
            if self.window.flags[slot]
        ]
        data = b"".join(pieces)

        try:
            self.sink.write(data)
        except OSError as exc:
            raise SourceSinkError(f"could not write output: {exc}") from exc

        self.bytes_written += len(data)
        self.windows_completed += 1
        if self.on_progress:
            self.on_progress(self.bytes_written)
        self.logger.progress(self.bytes_written)

        if self.end_of_stream:
            self.done = True
            self.logger.info(f"End of stream after {self.bytes_written} bytes", "RX")
            return

        self.window.advance()
        self.expected = self.config.window_size
        self.logger.window_advance(self.window.base, self.window.size)

    def is_complete(self) -> bool:
        """Check if transfer is complete."""
        return self.done

    def get_window_state(self) -> dict:
        """Get current window state."""
        return {
            **self.window.get_state(),
            'expected': self.expected,
            'end_of_stream': self.end_of_stream
        }

    def get_statistics(self) -> dict:
        """Get receiver statistics."""
        return {
            'packets_received': self.packets_received,
            'packets_accepted': self.packets_accepted,
            'duplicate_packets': self.duplicate_packets,
            'stale_packets': self.stale_packets,
            'malformed_packets': self.malformed_packets,
            'acks_sent': self.acks_sent,
            'windows_completed': self.windows_completed,
            'bytes_written': self.bytes_written,
            'bytes_transferred': self.bytes_written,
            'transfer_complete': self.done
        }
