"""Probabilistic link disturbance applied to outgoing data segments.

Each segment runs through a cascade of draws from one shared generator:
drop, duplicate, corrupt, reorder, delay. The first stage that fires decides
the segment's fate and later stages draw nothing, so a seed reproduces the
whole sequence of outcomes.
"""
from __future__ import annotations

import enum
import itertools
import logging
import random
import threading
from collections import Counter
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Tuple

from .constants import HEADER_SIZE
from .events import CORR, DELY, DROP, DUP, RORD, SND
from .segment import Segment

logger = logging.getLogger(__name__)

SendFn = Callable[[bytes, Segment, str], None]
LogFn = Callable[[str, Segment], None]


class Outcome(enum.Enum):
    DROP = "drop"
    DUPLICATE = "duplicate"
    CORRUPT = "corrupt"
    REORDER = "reorder"
    DELAY = "delay"
    FORWARD = "forward"


@dataclass(frozen=True, slots=True)
class PldConfig:
    p_drop: float = 0.0
    p_duplicate: float = 0.0
    p_corrupt: float = 0.0
    p_order: float = 0.0
    max_order: int = 0
    p_delay: float = 0.0
    max_delay_ms: int = 0

    def __post_init__(self) -> None:
        for name in ("p_drop", "p_duplicate", "p_corrupt", "p_order", "p_delay"):
            p = getattr(self, name)
            if not 0.0 <= p <= 1.0:
                raise ValueError(f"{name} must be within [0, 1], got {p}")
        if self.max_order < 0:
            raise ValueError(f"max_order must be >= 0, got {self.max_order}")
        if self.max_delay_ms < 0:
            raise ValueError(f"max_delay_ms must be >= 0, got {self.max_delay_ms}")


def corrupt(raw: bytes) -> bytes:
    """Invert every bit of the first payload byte."""
    if len(raw) <= HEADER_SIZE:
        return raw
    out = bytearray(raw)
    out[HEADER_SIZE] ^= 0xFF
    return bytes(out)


class PldModule:
    def __init__(self, config: PldConfig, rng: random.Random, send: SendFn, log: LogFn):
        self.config = config
        self.rng = rng
        self._send = send
        self._log = log
        self._lock = threading.RLock()
        self._held: Optional[Tuple[bytes, Segment]] = None
        self.forwarding_count = 0
        self._timers: Dict[int, threading.Timer] = {}
        self._timer_ids = itertools.count()
        self._closed = False
        self.counts: Counter = Counter()

    def _fires(self, p: float) -> bool:
        draw = self.rng.random()
        return p > 0 and draw <= p

    def decide(self) -> Outcome:
        c = self.config
        if self._fires(c.p_drop):
            return Outcome.DROP
        if self._fires(c.p_duplicate):
            return Outcome.DUPLICATE
        if self._fires(c.p_corrupt):
            return Outcome.CORRUPT
        if self._fires(c.p_order):
            return Outcome.REORDER
        if self._fires(c.p_delay):
            return Outcome.DELAY
        return Outcome.FORWARD

    def submit(self, segment: Segment, raw: Optional[bytes] = None) -> Outcome:
        raw = segment.encode() if raw is None else raw
        outcome = self.decide()
        self.counts[outcome] += 1
        logger.debug("pld: seq=%d -> %s", segment.seq, outcome.value)

        if outcome is Outcome.DROP:
            self._log(DROP, segment)
        elif outcome is Outcome.DUPLICATE:
            self.forward(raw, segment, SND)
            self.forward(raw, segment, DUP)
        elif outcome is Outcome.CORRUPT:
            self.forward(corrupt(raw), segment, CORR)
        elif outcome is Outcome.REORDER:
            self._hold(raw, segment)
        elif outcome is Outcome.DELAY:
            delay_ms = int(self.rng.random() * self.config.max_delay_ms)
            self._schedule(raw, segment, delay_ms)
        else:
            self.forward(raw, segment, SND)
        return outcome

    def forward(self, raw: bytes, segment: Segment, event: str) -> None:
        """Send primitive; every call counts toward releasing a held segment."""
        with self._lock:
            if self._closed:
                return
            self._send(raw, segment, event)
            if self._held is None:
                return
            self.forwarding_count += 1
            if self.config.max_order and self.forwarding_count >= self.config.max_order:
                held_raw, held_segment = self._held
                self._send(held_raw, held_segment, RORD)
                self.forwarding_count = 0
                self._held = None

    def _hold(self, raw: bytes, segment: Segment) -> None:
        with self._lock:
            if self._held is not None:
                held_raw, held_segment = self._held
                self._send(held_raw, held_segment, RORD)
                self.forwarding_count = 0
            self._held = (raw, segment)

    def _schedule(self, raw: bytes, segment: Segment, delay_ms: int) -> None:
        with self._lock:
            if self._closed:
                return
            key = next(self._timer_ids)
            timer = threading.Timer(delay_ms / 1000.0, self._fire, args=(key, raw, segment))
            timer.daemon = True
            self._timers[key] = timer
            timer.start()

    def _fire(self, key: int, raw: bytes, segment: Segment) -> None:
        with self._lock:
            self._timers.pop(key, None)
            self.forward(raw, segment, DELY)

    @property
    def pending_delays(self) -> int:
        with self._lock:
            return len(self._timers)

    @property
    def holding(self) -> bool:
        return self._held is not None

    def shutdown(self) -> None:
        """Cancel delayed sends that have not fired; abandon any held segment."""
        with self._lock:
            self._closed = True
            timers, self._timers = self._timers, {}
            self._held = None
        for timer in timers.values():
            timer.cancel()
        if timers:
            logger.debug("pld: abandoned %d delayed segments", len(timers))
