from __future__ import annotations

import enum
import logging
import socket
import threading
import time
from dataclasses import dataclass
from typing import Callable, Optional, Tuple, Union

from .constants import HEADER_SIZE, MAX_DATAGRAM
from .errors import TransportError
from .events import RCV, SND, EventLog
from .segment import Segment

logger = logging.getLogger(__name__)

Address = Tuple[str, int]


class Timeout(enum.Enum):
    TIMED_OUT = "timed-out"


TIMED_OUT = Timeout.TIMED_OUT


@dataclass(frozen=True, slots=True)
class Received:
    segment: Segment
    addr: Address


ReceiveResult = Union[Received, Timeout]


class UdpEndpoint:
    """Owns the datagram socket; sends are serialized across threads."""

    def __init__(self, sock: socket.socket):
        self.sock = sock
        self._send_lock = threading.Lock()
        self._closed = False

    @classmethod
    def listening(cls, host: str, port: int) -> "UdpEndpoint":
        sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        try:
            sock.bind((host, port))
        except OSError as exc:
            sock.close()
            raise TransportError(f"cannot bind {host}:{port}: {exc}") from exc
        return cls(sock)

    @classmethod
    def sending(cls) -> "UdpEndpoint":
        try:
            sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
            sock.bind(("", 0))
        except OSError as exc:
            raise TransportError(f"cannot open UDP socket: {exc}") from exc
        return cls(sock)

    @property
    def address(self) -> Address:
        return self.sock.getsockname()

    def sendto(self, data: bytes, addr: Address) -> None:
        with self._send_lock:
            self.sock.sendto(data, addr)

    def recvfrom(self, timeout_s: Optional[float]) -> Union[Tuple[bytes, Address], Timeout]:
        self.sock.settimeout(timeout_s)
        try:
            return self.sock.recvfrom(MAX_DATAGRAM)
        except socket.timeout:
            return TIMED_OUT

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self.sock.close()


class SegmentLink:
    """Segment-level view of an endpoint talking to a single peer.

    Every datagram sent or received through the link is recorded in the
    event log. ``peer`` may be unset until the passive side learns it from
    the first SYN; once ``lock_peer()`` is called datagrams from any other
    address are discarded.
    """

    def __init__(self, udp: UdpEndpoint, events: EventLog, peer: Optional[Address] = None):
        self.udp = udp
        self.events = events
        self.peer = peer
        self._locked = False

    def lock_peer(self, addr: Address) -> None:
        self.peer = addr
        self._locked = True

    def send(self, segment: Segment, event: str = SND) -> None:
        self.send_raw(segment.encode(), segment, event)

    def send_raw(self, raw: bytes, segment: Segment, event: str) -> None:
        if self.peer is None:
            raise TransportError("no peer address to send to")
        self.udp.sendto(raw, self.peer)
        self.events.record(event, segment)

    def receive(self, timeout_s: Optional[float] = None) -> ReceiveResult:
        deadline = None if timeout_s is None else time.monotonic() + timeout_s
        while True:
            remaining = None if deadline is None else max(0.0, deadline - time.monotonic())
            if remaining == 0.0:
                return TIMED_OUT
            got = self.udp.recvfrom(remaining)
            if got is TIMED_OUT:
                return TIMED_OUT
            raw, addr = got
            if self._locked and addr != self.peer:
                logger.debug("discarding datagram from stranger %s", addr)
                continue
            if len(raw) < HEADER_SIZE:
                logger.debug("discarding %d-byte datagram shorter than header", len(raw))
                continue
            segment = Segment.decode(raw)
            self.events.record(RCV, segment)
            return Received(segment, addr)

    def receive_until(
        self,
        predicate: Callable[[Segment], bool],
        timeout_s: Optional[float] = None,
    ) -> ReceiveResult:
        """Receive until a segment satisfies ``predicate``; others are dropped."""
        deadline = None if timeout_s is None else time.monotonic() + timeout_s
        while True:
            remaining = None if deadline is None else max(0.0, deadline - time.monotonic())
            result = self.receive(remaining)
            if result is TIMED_OUT:
                return TIMED_OUT
            if predicate(result.segment):
                return result
            logger.debug(
                "discarding unexpected segment flags=%s seq=%d ack=%d",
                result.segment.summary,
                result.segment.seq,
                result.segment.ack,
            )
