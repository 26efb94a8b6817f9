from __future__ import annotations

import enum
import logging
from typing import BinaryIO, Dict, Optional

logger = logging.getLogger(__name__)


class Placement(enum.Enum):
    STORED = "stored"
    DUPLICATE = "duplicate"
    PARKED = "parked"
    REJECTED = "rejected"


class ReassemblyBuffer:
    """Receiver-side slots keyed by segment index.

    The segment size is learned from the segment at offset 0. Anything that
    arrives before it is parked by byte offset and placed once the size is
    known. ``contiguous_bytes`` only advances across filled slots, so the
    cumulative acknowledgement never skips a gap.
    """

    def __init__(self, mss: Optional[int] = None):
        self.mss = mss
        self.received_bytes = 0
        self._slots: Dict[int, bytes] = {}
        self._parked: Dict[int, bytes] = {}
        self._next_index = 0
        self._contiguous = 0

    @property
    def contiguous_bytes(self) -> int:
        return self._contiguous

    @property
    def segment_count(self) -> int:
        return len(self._slots)

    def index_for(self, offset: int) -> Optional[int]:
        if self.mss is None or offset < 0 or offset % self.mss:
            return None
        return offset // self.mss

    def store(self, offset: int, payload: bytes) -> Placement:
        if not payload or offset < 0:
            return Placement.REJECTED
        if self.mss is None:
            if offset != 0:
                if offset in self._parked:
                    return Placement.DUPLICATE
                self._parked[offset] = payload
                self.received_bytes += len(payload)
                return Placement.PARKED
            self.mss = len(payload)
            logger.info("learned segment size %d", self.mss)
            placed = self._place(0, payload)
            self.received_bytes += len(payload)
            self._drain_parked()
            return placed

        placed = self._place(offset, payload)
        if placed is Placement.STORED:
            self.received_bytes += len(payload)
        return placed

    def _place(self, offset: int, payload: bytes) -> Placement:
        index = self.index_for(offset)
        if index is None:
            logger.debug("rejecting misaligned payload at offset %d", offset)
            return Placement.REJECTED
        duplicate = index in self._slots
        self._slots[index] = payload
        self._advance()
        return Placement.DUPLICATE if duplicate else Placement.STORED

    def _drain_parked(self) -> None:
        parked, self._parked = self._parked, {}
        for offset, payload in sorted(parked.items()):
            if self._place(offset, payload) is Placement.REJECTED:
                self.received_bytes -= len(payload)

    def _advance(self) -> None:
        while self._next_index in self._slots:
            self._contiguous += len(self._slots[self._next_index])
            self._next_index += 1

    def flush(self, sink: BinaryIO) -> int:
        written = 0
        index = 0
        while index in self._slots:
            chunk = self._slots[index]
            sink.write(chunk)
            written += len(chunk)
            index += 1
        sink.flush()
        return written
