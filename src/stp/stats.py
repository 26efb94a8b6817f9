from __future__ import annotations

import time
from dataclasses import asdict, dataclass, field
from typing import List, Optional, Tuple


@dataclass(slots=True)
class SenderStats:
    file_size: int = 0
    segments_sent: int = 0
    pld_segments: int = 0
    dropped: int = 0
    duplicated: int = 0
    corrupted: int = 0
    reordered: int = 0
    delayed: int = 0
    timeout_retransmits: int = 0
    fast_retransmits: int = 0
    duplicate_acks: int = 0
    start_ts: float = field(default_factory=time.monotonic)
    end_ts: Optional[float] = None

    @property
    def duration_s(self) -> float:
        if self.end_ts is None:
            return 0.0
        return max(0.0, self.end_ts - self.start_ts)

    @property
    def throughput_mbps(self) -> float:
        if self.duration_s <= 0:
            return 0.0
        return (self.file_size * 8 / 1_000_000) / self.duration_s

    def summary_rows(self) -> List[Tuple[str, int]]:
        return [
            ("Size of the file (in Bytes)", self.file_size),
            ("Segments transmitted (excluding retransmissions)", self.segments_sent),
            ("Number of Segments handled by PLD", self.pld_segments),
            ("Number of Segments dropped", self.dropped),
            ("Number of Segments Corrupted", self.corrupted),
            ("Number of Segments Re-ordered", self.reordered),
            ("Number of Segments Duplicated", self.duplicated),
            ("Number of Segments Delayed", self.delayed),
            ("Number of Retransmissions due to TIMEOUT", self.timeout_retransmits),
            ("Number of FAST RETRANSMISSION", self.fast_retransmits),
            ("Number of DUP ACKS received", self.duplicate_acks),
        ]

    def as_dict(self) -> dict:
        d = asdict(self)
        d.update(seconds=self.duration_s, mbps=self.throughput_mbps)
        return d


@dataclass(slots=True)
class ReceiverStats:
    bytes_received: int = 0
    segments_received: int = 0
    data_segments: int = 0
    corrupted_segments: int = 0
    duplicate_segments: int = 0
    duplicate_acks_sent: int = 0
    start_ts: float = field(default_factory=time.monotonic)
    end_ts: Optional[float] = None

    @property
    def duration_s(self) -> float:
        if self.end_ts is None:
            return 0.0
        return max(0.0, self.end_ts - self.start_ts)

    def summary_rows(self) -> List[Tuple[str, int]]:
        return [
            ("Amount of Data Received (bytes)", self.bytes_received),
            ("Total segments received", self.segments_received),
            ("Data segments received", self.data_segments),
            ("Data Segments with bit errors", self.corrupted_segments),
            ("Duplicate data segments received", self.duplicate_segments),
            ("Duplicate Acks sent", self.duplicate_acks_sent),
        ]

    def as_dict(self) -> dict:
        d = asdict(self)
        d.update(seconds=self.duration_s)
        return d
