"""
Selective Repeat Sender

This module implements the sending side of the windowed transfer: read a
window's worth of data, transmit every unacknowledged packet, collect acks
until the transport goes quiet, repeat until the window is fully acked,
then advance.
"""

from typing import BinaryIO, Callable, List, Optional

from winarq.arq.packet import encode, split_chunk, decode_ack
from winarq.arq.window import SeqClass, WindowTracker
from winarq.channel.transport import DatagramTransport
from winarq.config import ArqConfig, calculate_dead_peer_delay
from winarq.errors import (
    MalformedPacketError, SourceSinkError, TransportTimeout, UnresponsivePeerError
)
from winarq.utils.logger import TransferLogger, get_logger


class SRSender:
    """
    Selective Repeat Sender.

    Works one window at a time: the next chunk is only read once every
    packet of the current one has been acknowledged. Within a window, each
    round retransmits only the packets still missing an ack.

    The silence counter belongs to the engine and survives across windows:
    it is cleared by any incoming datagram and bumped by every ack-collection
    timeout. Exceeding config.max_silent_attempts aborts the transfer.

    Attributes:
        transport: Datagram channel to the receiver
        source: Binary file-like object to read from
        config: Protocol parameters
        window: Ack flags and base of the active window
        packets: Encoded packet per slot of the active window
        silent_attempts: Consecutive attempts that timed out without data
    """

    def __init__(
        self,
        transport: DatagramTransport,
        source: BinaryIO,
        config: Optional[ArqConfig] = None,
        logger: Optional[TransferLogger] = None,
        on_packet_sent: Optional[Callable[[int, bool], None]] = None,
        on_timeout: Optional[Callable[[int], None]] = None,
        on_progress: Optional[Callable[[int], None]] = None
    ):
        """
        Initialize sender.

        Args:
            transport: Datagram transport connected to the receiver
            source: Readable binary stream
            config: Protocol parameters (defaults if None)
            logger: Logger (global logger if None)
            on_packet_sent: Callback(seq_num, is_retransmission) per datagram sent
            on_timeout: Callback(silent_attempts) per ack-collection timeout
            on_progress: Callback(bytes_acknowledged) per completed window
        """
        self.transport = transport
        self.source = source
        self.config = config or ArqConfig()
        self.logger = logger or get_logger()

        self.on_packet_sent = on_packet_sent
        self.on_timeout = on_timeout
        self.on_progress = on_progress

        self.window = WindowTracker(self.config.window_size, self.config.max_start_seq)
        self.packets: List[Optional[bytes]] = [None] * self.config.window_size
        self.packet_total = 0
        self.silent_attempts = 0
        self._overflow = b""

        # Statistics
        self.packets_sent = 0
        self.retransmissions = 0
        self.new_acks = 0
        self.duplicate_acks = 0
        self.stale_acks = 0
        self.malformed_acks = 0
        self.timeouts = 0
        self.windows_completed = 0
        self.bytes_transferred = 0
        self.wire_bytes_sent = 0

        self.finished = False

    def run(self) -> dict:
        """
        Send the whole source.

        Returns:
            Sender statistics

        Raises:
            UnresponsivePeerError: the receiver stayed silent too long
            TransportIOError: a send or receive failed
            SourceSinkError: the source could not be read
        """
        self.logger.transfer_start({'role': 'sender', **self.config.as_dict()})

        chunk = self._read_chunk()
        if not chunk:
            # Lone empty end-of-stream packet so the receiver can finish
            self.send_window(b"", is_final=True)

        while chunk:
            next_chunk = self._read_chunk()
            self.send_window(chunk, is_final=not next_chunk)
            chunk = next_chunk

        self.finished = True
        stats = self.get_statistics()
        self.logger.transfer_end(stats)
        return stats

    def _read_chunk(self) -> bytes:
        """
        Read up to one window of data.

        Raises:
            SourceSinkError: the source could not be read
        """
        size = self.config.chunk_size
        data = self._overflow
        while len(data) < size:
            try:
                piece = self.source.read(size - len(data))
            except OSError as exc:
                raise SourceSinkError(f"could not read input: {exc}") from exc
            if not piece:
                break
            data += piece

        # A source may hand back more than asked for; keep it for the next window
        self._overflow = data[size:]
        return data[:size]

    def load_window(self, chunk: bytes, is_final: bool):
        """
        Encode the packets of the active window.

        Args:
            chunk: Data carried by this window
            is_final: Whether this is the last window of the transfer
        """
        payloads = split_chunk(chunk, self.config.data_size) if chunk else [b""]
        self.packet_total = len(payloads)

        for index in range(self.config.window_size):
            if index < self.packet_total:
                is_last = is_final and index + 1 == self.packet_total
                self.packets[index] = encode(
                    self.window.base + index,
                    is_last,
                    payloads[index],
                    self.config.data_size
                )
            else:
                self.packets[index] = None

    def send_window(self, chunk: bytes, is_final: bool):
        """
        Reliably deliver one window, then advance.

        Args:
            chunk: Data carried by this window
            is_final: Whether this is the last window of the transfer
        """
        self.load_window(chunk, is_final)

        first_round = True
        while self.window.count < self.packet_total:
            self.transmit(retransmission=not first_round)
            self.await_acks()
            first_round = False

        self.bytes_transferred += len(chunk)
        self.windows_completed += 1
        if self.on_progress:
            self.on_progress(self.bytes_transferred)
        self.logger.progress(self.bytes_transferred)

        self.window.advance()
        self.logger.window_advance(self.window.base, self.window.size)

    def transmit(self, retransmission: bool = False) -> List[int]:
        """
        Send every packet of the window that has not been acknowledged.

        Args:
            retransmission: Whether this is a repeat round

        Returns:
            Sequence numbers sent in this round
        """
        sent = []

        for index in range(self.packet_total):
            if self.window.flags[index]:
                continue

            seq_num = self.window.base + index
            packet = self.packets[index]
            self.transport.send(packet)

            self.wire_bytes_sent += len(packet)
            if retransmission:
                self.retransmissions += 1
                self.logger.retransmit(seq_num)
            else:
                self.packets_sent += 1
                self.logger.packet_sent(seq_num, len(packet), packet[1] != 0)

            if self.on_packet_sent:
                self.on_packet_sent(seq_num, retransmission)
            sent.append(seq_num)

        return sent

    def await_acks(self) -> int:
        """
        Collect acks until one receive times out.

        Returns:
            Number of new acks for the active window

        Raises:
            UnresponsivePeerError: silence budget exceeded
        """
        gathered = 0

        while True:
            try:
                data = self.transport.receive(self.config.ack_timeout)
            except TransportTimeout:
                self._on_silence()
                return gathered

            self.silent_attempts = 0

            try:
                ack_num = decode_ack(data)
            except MalformedPacketError:
                self.malformed_acks += 1
                self.logger.warning("Discarding empty ack datagram", "ACK")
                continue

            if self.process_ack(ack_num):
                gathered += 1

    def process_ack(self, ack_num: int) -> bool:
        """
        Apply one ack to the window.

        Args:
            ack_num: Acknowledged sequence number

        Returns:
            True if the ack was new for the active window
        """
        verdict = self.window.classify(ack_num)

        if verdict is not SeqClass.CURRENT:
            self.stale_acks += 1
            self.logger.ack_received(ack_num, verdict.name.lower())
            return False

        if self.window.slot(ack_num) >= self.packet_total or not self.window.mark(ack_num):
            self.duplicate_acks += 1
            self.logger.ack_received(ack_num, "duplicate")
            return False

        self.new_acks += 1
        self.logger.ack_received(ack_num, "new")
        return True

    def _on_silence(self):
        """Account for one timed-out attempt."""
        self.silent_attempts += 1
        self.timeouts += 1
        self.logger.timeout(self.silent_attempts, self.config.max_silent_attempts)

        if self.on_timeout:
            self.on_timeout(self.silent_attempts)

        if self.silent_attempts > self.config.max_silent_attempts:
            self.logger.error("Receiver not responding", "TIMEOUT")
            raise UnresponsivePeerError(
                self.silent_attempts,
                calculate_dead_peer_delay(self.config)
            )

    def is_complete(self) -> bool:
        """Check if the whole source has been sent and acknowledged."""
        return self.finished

    def get_window_state(self) -> dict:
        """Get current window state."""
        return {
            **self.window.get_state(),
            'packets': self.packet_total,
            'unacked': [self.window.base + i for i in range(self.packet_total)
                        if not self.window.flags[i]]
        }

    def get_statistics(self) -> dict:
        """Get sender statistics."""
        return {
            'packets_sent': self.packets_sent,
            'retransmissions': self.retransmissions,
            'new_acks': self.new_acks,
            'duplicate_acks': self.duplicate_acks,
            'stale_acks': self.stale_acks,
            'malformed_acks': self.malformed_acks,
            'timeouts': self.timeouts,
            'silent_attempts': self.silent_attempts,
            'windows_completed': self.windows_completed,
            'bytes_transferred': self.bytes_transferred,
            'wire_bytes_sent': self.wire_bytes_sent,
            'finished': self.finished
        }
