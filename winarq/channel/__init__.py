"""
Channel package - Datagram transports and loss models.

Contains implementations for:
- Injectable datagram transport and its UDP implementation
- Gilbert-Elliott burst loss channel model
"""

from .transport import DatagramTransport, UdpTransport
from .gilbert_elliot import GilbertElliottChannel, ChannelState

__all__ = [
    'DatagramTransport',
    'UdpTransport',
    'GilbertElliottChannel',
    'ChannelState'
]
