"""
Exception types raised by the transfer engines and transports.

Every ArqError is fatal for the transfer that raised it. Packet loss,
duplication, reordering and stale acknowledgments are recovered by the
protocol itself and never surface as exceptions.
"""


class ArqError(Exception):
    """Base class for unrecoverable transfer failures."""


class TransportSetupError(ArqError):
    """Socket creation, bind or address resolution failed."""


class TransportIOError(ArqError):
    """A send or receive failed for a reason other than a timeout."""


class UnresponsivePeerError(ArqError):
    """The sender exhausted its budget of consecutive silent attempts."""

    def __init__(self, silent_attempts: int, waited: float):
        self.silent_attempts = silent_attempts
        self.waited = waited
        super().__init__(
            f"receiver not responding after {silent_attempts} silent attempts "
            f"({waited:.1f}s)"
        )


class SourceSinkError(ArqError):
    """The file to send could not be opened, or the output could not be created."""


class MalformedPacketError(ValueError):
    """A datagram too short or too long to be a packet. Discarded by the receiver."""


class TransportTimeout(Exception):
    """
    No datagram arrived within the receive deadline.

    Not an ArqError: timeouts are the sender's retransmission clock.
    """
