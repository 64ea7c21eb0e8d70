"""
winarq - Windowed Selective Repeat file transfer over UDP.

Contains:
- Packet codec and window bookkeeping
- Sending and receiving engines
- UDP transport and a simulated impaired link
- Loss sweep runner
"""

from .config import ArqConfig
from .errors import (
    ArqError,
    TransportSetupError,
    TransportIOError,
    UnresponsivePeerError,
    SourceSinkError,
    MalformedPacketError,
    TransportTimeout
)
from .arq import SRSender, SRReceiver
from .channel import UdpTransport

__version__ = "1.0.0"

__all__ = [
    'ArqConfig',
    'ArqError',
    'TransportSetupError',
    'TransportIOError',
    'UnresponsivePeerError',
    'SourceSinkError',
    'MalformedPacketError',
    'TransportTimeout',
    'SRSender',
    'SRReceiver',
    'UdpTransport'
]
