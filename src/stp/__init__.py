"""Simple Transport Protocol (STP)

A TCP-like reliable transport over UDP for moving a single file:
- fixed 17-byte header with a CRC-32 payload checksum
- three-way handshake and four-segment teardown
- windowed cumulative ACKs, adaptive timeout and fast retransmit
- a sender-side link disturbance simulator (drop, duplicate, corrupt,
  reorder, delay) driven by one seeded generator
"""
from .errors import ConnectionTimeout, ProtocolError, StpError, TransferError, TransportError
from .pld import PldConfig
from .receiver import Receiver
from .segment import Segment
from .sender import Sender, SenderConfig

__all__ = [
    "ConnectionTimeout",
    "PldConfig",
    "ProtocolError",
    "Receiver",
    "Segment",
    "Sender",
    "SenderConfig",
    "StpError",
    "TransferError",
    "TransportError",
]
