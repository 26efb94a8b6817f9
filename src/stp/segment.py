from __future__ import annotations

import struct
import zlib
from dataclasses import dataclass

from .constants import FLAG_ACK, FLAG_FIN, FLAG_SYN, HEADER_FORMAT, HEADER_SIZE, SEQ_MODULO

_HEADER = struct.Struct(HEADER_FORMAT)
assert _HEADER.size == HEADER_SIZE


def checksum(payload: bytes) -> int:
    return zlib.crc32(payload) & 0xFFFFFFFF


def seq_add(seq: int, n: int) -> int:
    return (seq + n) % SEQ_MODULO


def seq_offset(seq: int, base: int) -> int:
    """Distance from ``base`` forward to ``seq`` in sequence space."""
    return (seq - base) % SEQ_MODULO


@dataclass(frozen=True, slots=True)
class Segment:
    seq: int
    ack: int
    flags: int = 0
    checksum: int = 0
    payload: bytes = b""

    @property
    def is_ack(self) -> bool:
        return bool(self.flags & FLAG_ACK)

    @property
    def is_syn(self) -> bool:
        return bool(self.flags & FLAG_SYN)

    @property
    def is_fin(self) -> bool:
        return bool(self.flags & FLAG_FIN)

    @property
    def summary(self) -> str:
        """Single-letter flag column used by the event log."""
        if self.is_syn and self.is_ack:
            return "SA"
        if self.is_syn:
            return "S"
        if self.is_ack:
            return "A"
        if self.is_fin:
            return "F"
        return "D"

    def checksum_ok(self) -> bool:
        return checksum(self.payload) == self.checksum

    def encode(self) -> bytes:
        header = _HEADER.pack(
            self.seq % SEQ_MODULO,
            self.ack % SEQ_MODULO,
            self.flags,
            self.checksum,
        )
        return header + self.payload

    @staticmethod
    def decode(raw: bytes) -> "Segment":
        seq, ack, flags, cksum = _HEADER.unpack_from(raw)
        return Segment(seq=seq, ack=ack, flags=flags, checksum=cksum, payload=bytes(raw[HEADER_SIZE:]))

    @staticmethod
    def control(seq: int, ack: int, flags: int) -> "Segment":
        return Segment(seq=seq, ack=ack, flags=flags, checksum=checksum(b""))

    @staticmethod
    def data(seq: int, ack: int, payload: bytes) -> "Segment":
        return Segment(seq=seq, ack=ack, flags=0, checksum=checksum(payload), payload=payload)
