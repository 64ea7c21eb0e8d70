"""
Gilbert-Elliott Burst Loss Channel Model

This module implements the two-state Markov chain model used to simulate
bursty datagram loss. The channel alternates between a "Good" state (low
loss probability) and a "Bad" state (high loss probability), stepping once
per datagram.
"""

import numpy as np
from enum import Enum
from typing import List, Optional, Tuple

from winarq.config import (
    GOOD_STATE_LOSS, BAD_STATE_LOSS,
    P_GOOD_TO_BAD, P_BAD_TO_GOOD
)


class ChannelState(Enum):
    """Channel state enumeration."""
    GOOD = 0
    BAD = 1


class GilbertElliottChannel:
    """
    Gilbert-Elliott two-state Markov packet-loss model.

    Attributes:
        loss_good: Datagram loss probability in Good state
        loss_bad: Datagram loss probability in Bad state
        p_gb: Transition probability from Good to Bad
        p_bg: Transition probability from Bad to Good
        state: Current channel state
        rng: Random number generator
    """

    def __init__(
        self,
        loss_good: float = GOOD_STATE_LOSS,
        loss_bad: float = BAD_STATE_LOSS,
        p_gb: float = P_GOOD_TO_BAD,
        p_bg: float = P_BAD_TO_GOOD,
        seed: Optional[int] = None
    ):
        """
        Initialize the Gilbert-Elliott channel.

        Args:
            loss_good: Loss probability in Good state (default from config)
            loss_bad: Loss probability in Bad state (default from config)
            p_gb: Probability of transitioning from Good to Bad
            p_bg: Probability of transitioning from Bad to Good
            seed: Random seed for reproducibility
        """
        for name, value in (('loss_good', loss_good), ('loss_bad', loss_bad),
                            ('p_gb', p_gb), ('p_bg', p_bg)):
            if not 0.0 <= value <= 1.0:
                raise ValueError(f"{name} must be a probability, got {value}")

        self.loss_good = loss_good
        self.loss_bad = loss_bad
        self.p_gb = p_gb
        self.p_bg = p_bg

        self.rng = np.random.default_rng(seed)

        # Start in steady-state (probabilistically)
        self._initialize_state()

        # Statistics tracking
        self.total_packets = 0
        self.total_lost = 0
        self.state_transitions = 0
        self.time_in_good = 0
        self.time_in_bad = 0

    @classmethod
    def bernoulli(cls, loss_rate: float, seed: Optional[int] = None) -> 'GilbertElliottChannel':
        """
        Memoryless channel: every datagram is lost independently.

        Args:
            loss_rate: Loss probability per datagram
            seed: Random seed
        """
        return cls(loss_good=loss_rate, loss_bad=loss_rate, p_gb=0.0, p_bg=1.0, seed=seed)

    def _initialize_state(self):
        """Initialize channel state based on steady-state probabilities."""
        pi_good, _ = self.get_steady_state_probabilities()
        if self.rng.random() < pi_good:
            self.state = ChannelState.GOOD
        else:
            self.state = ChannelState.BAD

    def get_steady_state_probabilities(self) -> Tuple[float, float]:
        """
        Calculate steady-state probabilities for Good and Bad states.

        Returns:
            Tuple of (π_Good, π_Bad)
        """
        sum_transitions = self.p_gb + self.p_bg
        if sum_transitions <= 0:
            return 1.0, 0.0
        pi_good = self.p_bg / sum_transitions
        pi_bad = self.p_gb / sum_transitions
        return pi_good, pi_bad

    def get_average_loss(self) -> float:
        """
        Calculate average loss probability from the steady-state probabilities.

        Returns:
            Average datagram loss probability
        """
        pi_good, pi_bad = self.get_steady_state_probabilities()
        return pi_good * self.loss_good + pi_bad * self.loss_bad

    def get_current_loss(self) -> float:
        """Get the loss probability for the current channel state."""
        return self.loss_good if self.state == ChannelState.GOOD else self.loss_bad

    def transition_state(self):
        """Perform one state transition based on transition probabilities."""
        if self.state == ChannelState.GOOD:
            self.time_in_good += 1
            if self.rng.random() < self.p_gb:
                self.state = ChannelState.BAD
                self.state_transitions += 1
        else:
            self.time_in_bad += 1
            if self.rng.random() < self.p_bg:
                self.state = ChannelState.GOOD
                self.state_transitions += 1

    def transmit_packet(self) -> bool:
        """
        Simulate one datagram crossing the channel.

        Returns:
            True if the datagram was lost
        """
        lost = bool(self.rng.random() < self.get_current_loss())

        self.total_packets += 1
        if lost:
            self.total_lost += 1

        self.transition_state()

        return lost

    def get_statistics(self) -> dict:
        """
        Get channel statistics.

        Returns:
            Dictionary with transmission statistics
        """
        total_time = self.time_in_good + self.time_in_bad

        return {
            'total_packets': self.total_packets,
            'packets_lost': self.total_lost,
            'observed_loss': (self.total_lost / self.total_packets
                              if self.total_packets > 0 else 0),
            'state_transitions': self.state_transitions,
            'time_in_good': self.time_in_good,
            'time_in_bad': self.time_in_bad,
            'fraction_in_good': (self.time_in_good / total_time
                                 if total_time > 0 else 0),
            'theoretical_avg_loss': self.get_average_loss()
        }

    def reset_statistics(self):
        """Reset all statistics counters."""
        self.total_packets = 0
        self.total_lost = 0
        self.state_transitions = 0
        self.time_in_good = 0
        self.time_in_bad = 0

    def reset(self, seed: Optional[int] = None):
        """
        Reset the channel to initial state.

        Args:
            seed: New random seed (optional)
        """
        if seed is not None:
            self.rng = np.random.default_rng(seed)
        self._initialize_state()
        self.reset_statistics()


def simulate_loss_pattern(channel: GilbertElliottChannel, num_packets: int) -> List[bool]:
    """
    Push num_packets datagrams through the channel and return the loss pattern.

    Returns:
        List of booleans (True = datagram lost)
    """
    return [channel.transmit_packet() for _ in range(num_packets)]


def analyze_burst_lengths(loss_pattern: List[bool]) -> dict:
    """
    Analyze burst lengths in a loss pattern.

    Args:
        loss_pattern: List of per-datagram loss indicators

    Returns:
        Dictionary with burst statistics
    """
    if not loss_pattern:
        return {'avg_burst_length': 0, 'max_burst_length': 0, 'num_bursts': 0}

    bursts = []
    current_burst = 0

    for lost in loss_pattern:
        if lost:
            current_burst += 1
        elif current_burst > 0:
            bursts.append(current_burst)
            current_burst = 0

    if current_burst > 0:
        bursts.append(current_burst)

    if bursts:
        return {
            'avg_burst_length': float(np.mean(bursts)),
            'max_burst_length': max(bursts),
            'num_bursts': len(bursts),
            'burst_lengths': bursts
        }
    return {'avg_burst_length': 0, 'max_burst_length': 0, 'num_bursts': 0}
