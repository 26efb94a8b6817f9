from __future__ import annotations

import io
import logging
import random
import time
from dataclasses import dataclass, field
from typing import BinaryIO, Optional, Tuple

from .connection import Connection, Role, close_active, open_active
from .constants import DEFAULT_DEV_RTT_MS, DEFAULT_ESTIMATED_RTT_MS, DEFAULT_GAMMA
from .errors import TransferError
from .events import RXT, EventLog
from .net import TIMED_OUT, SegmentLink, UdpEndpoint
from .pld import Outcome, PldConfig, PldModule
from .rtt import RttEstimator
from .segment import Segment, seq_add, seq_offset
from .stats import SenderStats
from .window import AckEvent, SendLedger, SendWindow

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class SenderConfig:
    mws: int
    mss: int
    gamma: float = DEFAULT_GAMMA
    pld: PldConfig = field(default_factory=PldConfig)
    seed: Optional[int] = None
    initial_rtt_ms: float = DEFAULT_ESTIMATED_RTT_MS
    initial_dev_ms: float = DEFAULT_DEV_RTT_MS
    connect_timeout_s: Optional[float] = None

    def __post_init__(self) -> None:
        if self.mss <= 0:
            raise ValueError(f"mss must be positive, got {self.mss}")
        if self.mws < self.mss:
            raise ValueError(f"mws ({self.mws}) must be at least mss ({self.mss})")
        if self.gamma < 0:
            raise ValueError(f"gamma must be >= 0, got {self.gamma}")


def _stream_length(f: BinaryIO) -> int:
    pos = f.tell()
    end = f.seek(0, io.SEEK_END)
    f.seek(pos)
    return end - pos


def _read_full(f: BinaryIO, n: int) -> bytes:
    """Read exactly ``n`` bytes unless the stream ends first."""
    buf = bytearray()
    while len(buf) < n:
        chunk = f.read(n - len(buf))
        if not chunk:
            break
        buf += chunk
    return bytes(buf)


class Sender:
    """Initiator: handshake, windowed transfer through the PLD, teardown."""

    def __init__(
        self,
        udp: UdpEndpoint,
        dest: Tuple[str, int],
        source: BinaryIO,
        config: SenderConfig,
        events: EventLog,
        rng: Optional[random.Random] = None,
    ):
        self.config = config
        self.source = source
        self.events = events
        self.link = SegmentLink(udp, events, peer=dest)
        self.rng = rng if rng is not None else random.Random(config.seed)
        self.conn = Connection(Role.INITIATOR, peer=dest, mss=config.mss, mws=config.mws)
        self.rtt = RttEstimator(config.gamma, config.initial_rtt_ms, config.initial_dev_ms)
        self.pld = PldModule(config.pld, self.rng, self.link.send_raw, events.record)
        self.stats = SenderStats()

    def run(self) -> SenderStats:
        try:
            open_active(self.conn, self.link, self.rng, self.config.connect_timeout_s)
            self._transfer()
            self.pld.shutdown()
            close_active(self.conn, self.link, self.config.connect_timeout_s)
        finally:
            self.pld.shutdown()
            self._tally_pld()
            self.stats.end_ts = time.monotonic()
            self.events.write_summary(self.stats.summary_rows())
        return self.stats

    def _transfer(self) -> None:
        size = _stream_length(self.source)
        mss = self.conn.mss
        self.stats.file_size = size
        window = SendWindow(size, mss, self.conn.mws)
        ledger = SendLedger(size, mss)
        base = self.conn.snd_nxt
        logger.info("transfer start; size=%d segments=%d mss=%d mws=%d", size, len(ledger), mss, window.mws)

        while True:
            if window.can_send():
                payload = _read_full(self.source, window.next_length)
                if len(payload) < window.next_length:
                    raise TransferError(f"byte source ended after {window.last_byte_sent + len(payload)} of {size} bytes")
                segment = Segment.data(self.conn.snd_nxt, self.conn.rcv_nxt, payload)
                raw = segment.encode()
                ledger.record(window.last_byte_sent, segment, raw, time.monotonic())
                self.pld.submit(segment, raw)
                self.stats.segments_sent += 1
                window.on_sent(len(payload))
                self.conn.snd_nxt = seq_add(self.conn.snd_nxt, len(payload))
                continue

            if window.unacked == 0:
                break

            result = self.link.receive(self.rtt.timeout_s)
            if result is TIMED_OUT:
                logger.debug("timeout after %.0f ms; unacked=%d", self.rtt.timeout_ms, window.unacked)
                self.stats.timeout_retransmits += 1
                self._retransmit(ledger, window)
                continue

            ack = result.segment
            if not ack.is_ack:
                continue
            received_at = time.monotonic()
            event = window.on_ack(seq_offset(ack.ack, base))
            if event is AckEvent.PROGRESS:
                entry = ledger.covering(window.last_byte_acked - 1)
                if not entry.retransmitted:
                    self.rtt.sample((received_at - entry.sent_at) * 1000.0)
                    logger.debug("rtt sample; timeout now %.1f ms", self.rtt.timeout_ms)
            elif event is AckEvent.DUPLICATE:
                self.stats.duplicate_acks += 1
            elif event is AckEvent.FAST_RETRANSMIT:
                self.stats.duplicate_acks += 1
                self.stats.fast_retransmits += 1
                logger.debug("three duplicate ACKs for %d; fast retransmit", ack.ack)
                self._retransmit(ledger, window)

        logger.info("all %d bytes acknowledged", size)

    def _retransmit(self, ledger: SendLedger, window: SendWindow) -> None:
        if window.unacked == 0:
            return
        entry = ledger[window.last_byte_acked]
        entry.retransmitted = True
        self.pld.forward(entry.raw, entry.segment, RXT)

    def _tally_pld(self) -> None:
        counts = self.pld.counts
        self.stats.pld_segments = sum(counts.values())
        self.stats.dropped = counts[Outcome.DROP]
        self.stats.duplicated = counts[Outcome.DUPLICATE]
        self.stats.corrupted = counts[Outcome.CORRUPT]
        self.stats.reordered = counts[Outcome.REORDER]
        self.stats.delayed = counts[Outcome.DELAY]
