"""
Impaired Link

In-memory model of an unreliable datagram path between the simulated
sender and receiver: loss per direction, duplication, reordering and
delay, all drawn from one seeded numpy generator.
"""

from enum import Enum
from typing import Callable, List, Optional

import numpy as np

from winarq.channel.gilbert_elliot import GilbertElliottChannel


class Direction(Enum):
    """Direction a datagram travels."""
    FORWARD = 0   # data packets, sender -> receiver
    REVERSE = 1   # acks, receiver -> sender


class ImpairedLink:
    """
    Loss, duplication, reordering and delay for both directions.

    Attributes:
        forward: Loss model for data packets
        reverse: Loss model for acks
        duplicate_rate: Probability a surviving datagram is delivered twice
        reorder_rate: Probability a delivery batch is shuffled
        delay_rate: Probability a datagram is held until the next wait
        drop_filter: Optional deterministic filter, True means drop
    """

    def __init__(
        self,
        forward: Optional[GilbertElliottChannel] = None,
        reverse: Optional[GilbertElliottChannel] = None,
        duplicate_rate: float = 0.0,
        reorder_rate: float = 0.0,
        delay_rate: float = 0.0,
        seed: Optional[int] = None,
        drop_filter: Optional[Callable[[Direction, bytes], bool]] = None
    ):
        """
        Initialize link.

        Args:
            forward: Loss model for data packets (lossless if None)
            reverse: Loss model for acks (lossless if None)
            duplicate_rate: Duplication probability per datagram
            reorder_rate: Shuffle probability per delivery batch
            delay_rate: Probability of holding a datagram one wait longer
            seed: Random seed
            drop_filter: Callback(direction, datagram) deciding deterministic drops
        """
        for name, value in (('duplicate_rate', duplicate_rate),
                            ('reorder_rate', reorder_rate),
                            ('delay_rate', delay_rate)):
            if not 0.0 <= value <= 1.0:
                raise ValueError(f"{name} must be a probability, got {value}")

        self.forward = forward or GilbertElliottChannel.bernoulli(0.0, seed)
        self.reverse = reverse or GilbertElliottChannel.bernoulli(0.0, None if seed is None else seed + 1000)
        self.duplicate_rate = duplicate_rate
        self.reorder_rate = reorder_rate
        self.delay_rate = delay_rate
        self.drop_filter = drop_filter
        self.rng = np.random.default_rng(seed)

        # Statistics
        self.dropped = {Direction.FORWARD: 0, Direction.REVERSE: 0}
        self.duplicated = 0
        self.reordered_batches = 0
        self.delayed = 0

    def carry(self, direction: Direction, datagram: bytes) -> List[bytes]:
        """
        Pass one datagram through the link.

        Args:
            direction: Travel direction
            datagram: Datagram bytes

        Returns:
            Copies that survive (empty if lost)
        """
        if self.drop_filter and self.drop_filter(direction, datagram):
            self.dropped[direction] += 1
            return []

        channel = self.forward if direction is Direction.FORWARD else self.reverse
        if channel.transmit_packet():
            self.dropped[direction] += 1
            return []

        if self.duplicate_rate and self.rng.random() < self.duplicate_rate:
            self.duplicated += 1
            return [datagram, datagram]
        return [datagram]

    def should_delay(self) -> bool:
        """Decide whether a surviving datagram is held until the next wait."""
        if self.delay_rate and self.rng.random() < self.delay_rate:
            self.delayed += 1
            return True
        return False

    def reorder(self, batch: List[bytes]) -> List[bytes]:
        """Possibly shuffle a batch of datagrams delivered together."""
        if len(batch) > 1 and self.reorder_rate and self.rng.random() < self.reorder_rate:
            self.reordered_batches += 1
            return [batch[i] for i in self.rng.permutation(len(batch))]
        return batch

    def get_statistics(self) -> dict:
        return {
            'forward_dropped': self.dropped[Direction.FORWARD],
            'reverse_dropped': self.dropped[Direction.REVERSE],
            'duplicated': self.duplicated,
            'reordered_batches': self.reordered_batches,
            'delayed': self.delayed,
            'forward_channel': self.forward.get_statistics(),
            'reverse_channel': self.reverse.get_statistics()
        }
