from __future__ import annotations

import bisect
import enum
import math
from dataclasses import dataclass
from typing import Dict, List

from .constants import FAST_RETRANSMIT_THRESHOLD
from .segment import Segment


class AckEvent(enum.Enum):
    PROGRESS = "progress"
    DUPLICATE = "duplicate"
    FAST_RETRANSMIT = "fast-retransmit"
    IGNORED = "ignored"


class SendWindow:
    """Byte accounting for the initiator, in offsets from the first data byte.

    ``last_byte_sent`` and ``last_byte_acked`` correspond to the classic
    LastByteSent/LastByteAcked pair; the admission gate keeps
    ``unacked <= mws`` after every send.
    """

    def __init__(self, file_size: int, mss: int, mws: int):
        self.file_size = file_size
        self.mss = mss
        self.mws = mws
        self.last_byte_sent = 0
        self.last_byte_acked = 0
        self.duplicate_acks = 0

    @property
    def unacked(self) -> int:
        return self.last_byte_sent - self.last_byte_acked

    @property
    def remaining(self) -> int:
        return self.file_size - self.last_byte_sent

    @property
    def next_length(self) -> int:
        return min(self.mss, self.remaining)

    def can_send(self) -> bool:
        return self.remaining > 0 and self.unacked + self.next_length <= self.mws

    def done(self) -> bool:
        return self.remaining == 0 and self.unacked == 0

    def on_sent(self, n: int) -> None:
        self.last_byte_sent += n

    def on_ack(self, acked: int) -> AckEvent:
        if acked > self.last_byte_sent:
            return AckEvent.IGNORED
        if acked > self.last_byte_acked:
            self.last_byte_acked = acked
            self.duplicate_acks = 0
            return AckEvent.PROGRESS
        if acked < self.last_byte_acked:
            return AckEvent.IGNORED
        self.duplicate_acks += 1
        if self.duplicate_acks == FAST_RETRANSMIT_THRESHOLD:
            self.duplicate_acks = 0
            return AckEvent.FAST_RETRANSMIT
        return AckEvent.DUPLICATE


@dataclass(slots=True)
class LedgerEntry:
    segment: Segment
    raw: bytes
    sent_at: float
    retransmitted: bool = False


class SendLedger:
    """Sent segments keyed by the byte offset of their first payload byte."""

    def __init__(self, file_size: int, mss: int):
        self.mss = mss
        self.segment_count = math.ceil(file_size / mss)
        self._offsets: List[int] = []
        self._entries: Dict[int, LedgerEntry] = {}

    def __len__(self) -> int:
        return self.segment_count

    def record(self, offset: int, segment: Segment, raw: bytes, sent_at: float) -> None:
        if offset not in self._entries:
            bisect.insort(self._offsets, offset)
        self._entries[offset] = LedgerEntry(segment, raw, sent_at)

    def __getitem__(self, offset: int) -> LedgerEntry:
        try:
            return self._entries[offset]
        except KeyError:
            raise KeyError(f"no segment starts at offset {offset}") from None

    def covering(self, offset: int) -> LedgerEntry:
        """Entry whose payload holds the byte at ``offset``."""
        i = bisect.bisect_right(self._offsets, offset) - 1
        if i >= 0:
            start = self._offsets[i]
            entry = self._entries[start]
            if offset < start + len(entry.segment.payload):
                return entry
        raise KeyError(f"byte {offset} has not been sent")
