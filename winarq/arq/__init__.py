"""
ARQ package - Windowed Selective Repeat protocol components.

Contains implementations for:
- Packet and ack encoding
- Window classification and receipt flags
- Sender with per-window retransmission rounds
- Receiver with slot-ordered reassembly
"""

from .packet import Packet, encode, decode, encode_ack, decode_ack, packet_size
from .window import SeqClass, WindowTracker
from .sender import SRSender
from .receiver import SRReceiver

__all__ = [
    'Packet',
    'encode',
    'decode',
    'encode_ack',
    'decode_ack',
    'packet_size',
    'SeqClass',
    'WindowTracker',
    'SRSender',
    'SRReceiver'
]
