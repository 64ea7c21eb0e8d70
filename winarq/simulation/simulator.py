"""
Transfer Simulator

Runs a sending and a receiving engine against each other in one thread,
over an in-memory impaired link instead of UDP sockets. Time is simulated:
the clock only moves when the sender's ack wait runs dry, so a run is
deterministic for a given seed and takes no wall-clock waiting.
"""

import io
import time
from collections import deque
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from winarq.arq.receiver import SRReceiver
from winarq.arq.sender import SRSender
from winarq.channel.gilbert_elliot import GilbertElliottChannel
from winarq.channel.transport import DatagramTransport
from winarq.config import ArqConfig, DEFAULT_LOG_LEVEL, RNG_SEED_BASE, SWEEP_DATA_SIZE
from winarq.errors import TransportTimeout, UnresponsivePeerError
from winarq.simulation.link import Direction, ImpairedLink
from winarq.utils.data import DataVerifier, TestDataGenerator
from winarq.utils.logger import TransferLogger
from winarq.utils.metrics import MetricsCollector


@dataclass
class SimulatorConfig:
    """Configuration for the simulator."""
    # Protocol parameters
    arq: ArqConfig = field(default_factory=ArqConfig)

    # Data parameters
    data_size: int = SWEEP_DATA_SIZE
    pattern: str = "random"

    # Link impairments
    loss_rate: float = 0.0
    reverse_loss_rate: Optional[float] = None  # same as loss_rate if None
    burst: bool = False  # Gilbert-Elliott defaults instead of loss_rate
    duplicate_rate: float = 0.0
    reorder_rate: float = 0.0
    delay_rate: float = 0.0

    # Simulation parameters
    seed: int = RNG_SEED_BASE
    log_level: int = DEFAULT_LOG_LEVEL

    def make_channel(self, direction: Direction) -> GilbertElliottChannel:
        """Build the loss model for one direction."""
        seed = self.seed if direction is Direction.FORWARD else self.seed + 1000
        if self.burst:
            return GilbertElliottChannel(seed=seed)

        loss = self.loss_rate
        if direction is Direction.REVERSE and self.reverse_loss_rate is not None:
            loss = self.reverse_loss_rate
        return GilbertElliottChannel.bernoulli(loss, seed)


class _SenderPort(DatagramTransport):
    """
    Sender-side endpoint. Sending puts datagrams on the link; receiving
    first lets the receiver consume whatever is in flight, then returns
    the next surviving ack or advances the clock and times out.
    """

    def __init__(self, sim: 'Simulator'):
        self.sim = sim

    def send(self, data: bytes):
        sim = self.sim
        for copy in sim.link.carry(Direction.FORWARD, bytes(data)):
            if sim.link.should_delay():
                sim.delayed_packets.append(copy)
            else:
                sim.in_flight.append(copy)

    def receive(self, max_wait: Optional[float] = None) -> bytes:
        sim = self.sim
        sim.deliver()

        if sim.ack_queue:
            return sim.ack_queue.popleft()

        wait = sim.config.arq.ack_timeout if max_wait is None else max_wait
        sim.advance_clock(wait)
        raise TransportTimeout(f"no ack within {wait:.3f}s")

    def close(self):
        pass


class _ReceiverPort(DatagramTransport):
    """Receiver-side endpoint: acks go back across the reverse path."""

    def __init__(self, sim: 'Simulator'):
        self.sim = sim

    def send(self, data: bytes):
        sim = self.sim
        sim.metrics.record_ack_sent(len(data))
        for copy in sim.link.carry(Direction.REVERSE, bytes(data)):
            if sim.link.should_delay():
                sim.delayed_acks.append(copy)
            else:
                sim.ack_queue.append(copy)

    def receive(self, max_wait: Optional[float] = None) -> bytes:
        # Datagrams are pushed into the receiver by the sender port
        raise TransportTimeout("simulated receiver is driven by the sender")

    def close(self):
        pass


class Simulator:
    """
    Single-threaded loopback simulator.

    The sender runs its normal loop; every ack wait hands control to the
    receiver, which handles the datagrams in flight and answers through
    the reverse path.

    Attributes:
        config: Simulator configuration
        link: Impaired link between the two engines
        clock: Simulated time in seconds
        sent_log: (time, seq_num, is_retransmission) per data packet sent
    """

    def __init__(
        self,
        config: Optional[SimulatorConfig] = None,
        link: Optional[ImpairedLink] = None,
        logger: Optional[TransferLogger] = None
    ):
        """
        Initialize simulator.

        Args:
            config: Simulator configuration (defaults if None)
            link: Custom link (built from config if None)
            logger: Logger shared by both engines
        """
        self.config = config or SimulatorConfig()
        self.logger = logger or TransferLogger(name="Sim", level=self.config.log_level)

        self.link = link or ImpairedLink(
            forward=self.config.make_channel(Direction.FORWARD),
            reverse=self.config.make_channel(Direction.REVERSE),
            duplicate_rate=self.config.duplicate_rate,
            reorder_rate=self.config.reorder_rate,
            delay_rate=self.config.delay_rate,
            seed=self.config.seed + 2000
        )

        self.metrics = MetricsCollector()

        # Simulation state
        self.clock = 0.0
        self.in_flight: List[bytes] = []
        self.delayed_packets: List[bytes] = []
        self.ack_queue: deque = deque()
        self.delayed_acks: List[bytes] = []
        self.sent_log: List[Tuple[float, int, bool]] = []

        self.sender: Optional[SRSender] = None
        self.receiver: Optional[SRReceiver] = None

    def advance_clock(self, seconds: float):
        """Move simulated time forward and release held datagrams."""
        self.clock += seconds
        self.logger.set_sim_time(self.clock)

        self.in_flight.extend(self.delayed_packets)
        self.delayed_packets.clear()
        self.ack_queue.extend(self.delayed_acks)
        self.delayed_acks.clear()

    def deliver(self):
        """Hand every datagram in flight to the receiver."""
        while self.in_flight:
            batch = self.link.reorder(self.in_flight)
            self.in_flight = []
            for datagram in batch:
                self.receiver.send_ack(self.receiver.handle_datagram(datagram))

    def _on_packet_sent(self, seq_num: int, retransmission: bool):
        packet = self.sender.packets[self.sender.window.slot(seq_num)]
        self.metrics.record_data_sent(len(packet), retransmission)
        self.sent_log.append((self.clock, seq_num, retransmission))

    def _on_timeout(self, silent_attempts: int):
        self.metrics.record_timeout()

    def run(self, data: Optional[bytes] = None) -> Dict:
        """
        Run one transfer.

        Args:
            data: Bytes to transfer (generated from config if None)

        Returns:
            Dictionary with config, metrics, verification and engine statistics
        """
        if data is None:
            data = TestDataGenerator.generate_test_data(
                self.config.data_size,
                pattern=self.config.pattern,
                seed=self.config.seed
            )

        source = io.BytesIO(data)
        sink = io.BytesIO()

        self.clock = 0.0
        self.logger.set_sim_time(0.0)
        self.in_flight = []
        self.delayed_packets = []
        self.ack_queue = deque()
        self.delayed_acks = []
        self.sent_log = []
        self.metrics.reset()

        self.receiver = SRReceiver(_ReceiverPort(self), sink, self.config.arq, self.logger)
        self.sender = SRSender(
            _SenderPort(self),
            source,
            self.config.arq,
            self.logger,
            on_packet_sent=self._on_packet_sent,
            on_timeout=self._on_timeout
        )

        self.metrics.start(0.0)
        real_start = time.time()
        error = None

        try:
            self.sender.run()
        except UnresponsivePeerError as exc:
            error = str(exc)
            self.logger.error(error, "SIM")

        self.metrics.finish(self.clock)
        real_time = time.time() - real_start

        received = sink.getvalue()
        self.metrics.record_transfer(self.sender.bytes_transferred, len(received))
        valid, verify_details = DataVerifier.verify_data(data, received)

        return {
            'config': {
                **self.config.arq.as_dict(),
                'data_size': len(data),
                'loss_rate': self.config.loss_rate,
                'burst': self.config.burst,
                'duplicate_rate': self.config.duplicate_rate,
                'reorder_rate': self.config.reorder_rate,
                'delay_rate': self.config.delay_rate,
                'seed': self.config.seed
            },
            'metrics': self.metrics.get_summary(),
            'verification': {'valid': valid, **verify_details},
            'simulation_time': self.clock,
            'real_time': real_time,
            'complete': self.sender.is_complete() and self.receiver.is_complete(),
            'error': error,
            'sender': self.sender.get_statistics(),
            'receiver': self.receiver.get_statistics(),
            'link': self.link.get_statistics()
        }


if __name__ == "__main__":
    print("=" * 60)
    print("SIMULATOR TEST")
    print("=" * 60)

    config = SimulatorConfig(data_size=20 * 1024, loss_rate=0.1, seed=42)

    print(f"\nConfiguration:")
    print(f"  Window size: {config.arq.window_size}")
    print(f"  Data size: {config.data_size} bytes")
    print(f"  Loss rate: {config.loss_rate}")

    results = Simulator(config).run()

    print(f"\nTransfer:")
    print(f"  Complete: {results['complete']}")
    print(f"  Data valid: {results['verification']['valid']}")
    print(f"  Simulation time: {results['simulation_time']:.2f} s")

    metrics = results['metrics']
    print(f"\nMetrics:")
    print(f"  Goodput: {metrics['goodput']:.2f} B/s")
    print(f"  Efficiency: {metrics['efficiency'] * 100:.2f}%")
    print(f"  Retransmissions: {metrics['retransmissions']}")
