from __future__ import annotations

import threading
import time
from typing import Callable, Iterable, TextIO, Tuple

from .segment import Segment

SND = "snd"
RCV = "rcv"
DROP = "drop"
DUP = "dup"
CORR = "corr"
RORD = "rord"
DELY = "dely"
RXT = "RXT"

_ROW = "{:<4}{:>7}{:>7}{:>17}{:>7}{:>17}"


class EventLog:
    """Fixed-width protocol trace shared by the main loop and timer threads."""

    def __init__(self, out: TextIO, clock: Callable[[], float] = time.monotonic):
        self.out = out
        self._clock = clock
        self._start = clock()
        self._lock = threading.Lock()
        self.out.write(_ROW.format("evnt", "time", "flag", "seq num", "bytes", "ack num") + "\n\n")

    def elapsed_ms(self) -> int:
        return int((self._clock() - self._start) * 1000)

    def record(self, event: str, segment: Segment) -> None:
        # rows are stamped and written under one lock, in timestamp order
        with self._lock:
            line = _ROW.format(
                event,
                self.elapsed_ms(),
                segment.summary,
                segment.seq,
                len(segment.payload),
                segment.ack,
            )
            self.out.write(line + "\n")

    def write_summary(self, rows: Iterable[Tuple[str, int]]) -> None:
        with self._lock:
            self.out.write("\n")
            for label, value in rows:
                self.out.write(f"{label + ':':<60}{value:>10}\n")
            self.out.flush()
