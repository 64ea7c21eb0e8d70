"""
Metrics Collection and Calculation

This module provides utilities for calculating performance metrics of a
transfer: goodput, efficiency and retransmission overhead.
"""

from typing import Dict, Optional


class MetricsCollector:
    """
    Collects transfer counters and derives performance metrics.

    Primary metric: Goodput = Delivered Application Bytes / Transfer Time

    Attributes:
        start_time: Transfer start time
        end_time: Transfer end time
    """

    def __init__(self):
        """Initialize metrics collector."""
        self.start_time: Optional[float] = None
        self.end_time: Optional[float] = None

        # Byte counters
        self.application_bytes_sent = 0
        self.application_bytes_delivered = 0
        self.total_bytes_transmitted = 0  # Data and acks, retransmits included

        # Packet counters
        self.data_packets_sent = 0
        self.ack_packets_sent = 0
        self.retransmissions = 0
        self.timeouts = 0

    def start(self, time: float):
        """Mark transfer start."""
        self.start_time = time

    def finish(self, time: float):
        """Mark transfer end."""
        self.end_time = time

    def record_data_sent(self, wire_bytes: int, retransmission: bool = False):
        """
        Record data packet sent.

        Args:
            wire_bytes: Packet size including header
            retransmission: Whether the packet was sent before
        """
        self.total_bytes_transmitted += wire_bytes
        if retransmission:
            self.retransmissions += 1
        else:
            self.data_packets_sent += 1

    def record_ack_sent(self, wire_bytes: int):
        """Record ACK sent."""
        self.ack_packets_sent += 1
        self.total_bytes_transmitted += wire_bytes

    def record_timeout(self):
        self.timeouts += 1

    def record_transfer(self, bytes_sent: int, bytes_delivered: int):
        """
        Record application-level totals.

        Args:
            bytes_sent: Bytes read from the source
            bytes_delivered: Bytes written to the sink
        """
        self.application_bytes_sent = bytes_sent
        self.application_bytes_delivered = bytes_delivered

    @property
    def total_time(self) -> float:
        if self.start_time is None or self.end_time is None:
            return 0.0
        return self.end_time - self.start_time

    def calculate_goodput(self) -> float:
        """
        Calculate Goodput.

        Returns:
            Goodput in bytes per second
        """
        if self.total_time <= 0:
            return 0.0
        return self.application_bytes_delivered / self.total_time

    def calculate_efficiency(self) -> float:
        """
        Calculate transmission efficiency.

        Efficiency = Application Bytes Delivered / Total Bytes Transmitted

        Returns:
            Efficiency ratio (0-1)
        """
        if self.total_bytes_transmitted <= 0:
            return 0.0
        return self.application_bytes_delivered / self.total_bytes_transmitted

    def calculate_retransmission_rate(self) -> float:
        """
        Calculate retransmission rate.

        Returns:
            Retransmissions / Original Packets Sent
        """
        if self.data_packets_sent <= 0:
            return 0.0
        return self.retransmissions / self.data_packets_sent

    def get_summary(self) -> Dict:
        """
        Get metrics summary.

        Returns:
            Dictionary with all metrics
        """
        return {
            'total_time': self.total_time,
            'goodput': self.calculate_goodput(),
            'goodput_mbps': self.calculate_goodput() * 8 / 1e6,
            'efficiency': self.calculate_efficiency(),
            'application_bytes_sent': self.application_bytes_sent,
            'application_bytes_delivered': self.application_bytes_delivered,
            'total_bytes_transmitted': self.total_bytes_transmitted,
            'data_packets_sent': self.data_packets_sent,
            'ack_packets_sent': self.ack_packets_sent,
            'retransmissions': self.retransmissions,
            'retransmission_rate': self.calculate_retransmission_rate(),
            'timeouts': self.timeouts
        }

    def reset(self):
        """Reset all metrics."""
        self.__init__()
