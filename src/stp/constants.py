from __future__ import annotations

HEADER_FORMAT = "!IIBQ"  # seq, ack, flags, checksum
HEADER_SIZE = 17

FLAG_ACK = 0x1
FLAG_SYN = 0x2
FLAG_FIN = 0x4

SEQ_MODULO = 1 << 32

MAX_DATAGRAM = 65535

ISN_MIN = 1
ISN_MAX = 100_000
RESPONDER_ISN = 0

DEFAULT_GAMMA = 4
DEFAULT_ESTIMATED_RTT_MS = 500.0
DEFAULT_DEV_RTT_MS = 250.0
MIN_TIMEOUT_MS = 20.0
MAX_TIMEOUT_MS = 60_000.0

FAST_RETRANSMIT_THRESHOLD = 3

SENDER_LOG = "Sender_log.txt"
RECEIVER_LOG = "Receiver_log.txt"
