from __future__ import annotations

import logging
import time
from typing import BinaryIO, Optional

from .connection import Connection, Role, close_passive, open_passive
from .constants import FLAG_ACK
from .errors import ConnectionTimeout
from .events import EventLog
from .net import TIMED_OUT, SegmentLink, UdpEndpoint
from .reassembly import Placement, ReassemblyBuffer
from .segment import Segment, seq_add, seq_offset
from .stats import ReceiverStats

logger = logging.getLogger(__name__)


class Receiver:
    """Responder: accepts one connection and writes the reassembled bytes."""

    def __init__(
        self,
        udp: UdpEndpoint,
        out: BinaryIO,
        events: EventLog,
        idle_timeout_s: Optional[float] = None,
    ):
        self.out = out
        self.events = events
        self.idle_timeout_s = idle_timeout_s
        self.link = SegmentLink(udp, events)
        self.conn = Connection(Role.RESPONDER)
        self.buffer = ReassemblyBuffer()
        self.stats = ReceiverStats()

    def run(self) -> ReceiverStats:
        try:
            open_passive(self.conn, self.link, self.idle_timeout_s)
            self.stats.start_ts = time.monotonic()
            fin = self._receive_data()
            close_passive(self.conn, self.link, fin, self.idle_timeout_s)
            written = self.buffer.flush(self.out)
            logger.info("wrote %d bytes in %d segments; mss=%s", written, self.buffer.segment_count, self.conn.mss)
        finally:
            self.stats.end_ts = time.monotonic()
            self.events.write_summary(self.stats.summary_rows())
        return self.stats

    def _receive_data(self) -> Segment:
        base = self.conn.rcv_nxt
        last_ack: Optional[int] = None
        while True:
            result = self.link.receive(self.idle_timeout_s)
            if result is TIMED_OUT:
                raise ConnectionTimeout(f"no segment from peer for {self.idle_timeout_s}s")
            segment = result.segment
            self.stats.segments_received += 1

            if segment.is_fin:
                logger.info("FIN received; seq=%d", segment.seq)
                return segment
            if segment.is_syn or not segment.payload:
                continue

            self.stats.data_segments += 1
            if not segment.checksum_ok():
                self.stats.corrupted_segments += 1
                logger.debug("checksum mismatch on seq=%d; dropped", segment.seq)
                continue

            placed = self.buffer.store(seq_offset(segment.seq, base), segment.payload)
            if placed is Placement.DUPLICATE:
                self.stats.duplicate_segments += 1
            elif placed is Placement.REJECTED:
                logger.debug("rejected segment seq=%d", segment.seq)
                continue

            self.stats.bytes_received = self.buffer.received_bytes
            self.conn.rcv_nxt = seq_add(base, self.buffer.contiguous_bytes)
            if self.conn.mss is None and self.buffer.mss is not None:
                self.conn.mss = self.buffer.mss
            if last_ack == self.conn.rcv_nxt:
                self.stats.duplicate_acks_sent += 1
            last_ack = self.conn.rcv_nxt
            self.link.send(Segment.control(self.conn.snd_nxt, self.conn.rcv_nxt, FLAG_ACK))
