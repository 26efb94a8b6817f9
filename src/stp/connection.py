"""Handshake and teardown shared by both roles.

The initiator drives both exchanges::

    initiator                         responder
    SYN(seq=i)            ------->
                          <-------    SYN+ACK(seq=r, ack=i+1)
    ACK(seq=i+1, ack=r+1) ------->
    ... data ...
    FIN(seq=x)            ------->
                          <-------    ACK(ack=x+1)
                          <-------    FIN(seq=y)
    ACK(ack=y+1)          ------->

Every wait is a filtering receive: segments that do not match the expected
flags and acknowledgement number are discarded.
"""
from __future__ import annotations

import enum
import logging
import random
from dataclasses import dataclass
from typing import Optional

from .constants import FLAG_ACK, FLAG_FIN, FLAG_SYN, ISN_MAX, ISN_MIN, RESPONDER_ISN
from .errors import ConnectionTimeout, ProtocolError
from .net import TIMED_OUT, Address, SegmentLink
from .segment import Segment, seq_add

logger = logging.getLogger(__name__)


class Role(enum.Enum):
    INITIATOR = "initiator"
    RESPONDER = "responder"


class State(enum.Enum):
    CLOSED = "CLOSED"
    LISTEN = "LISTEN"
    SYN_SENT = "SYN_SENT"
    SYN_RCVD = "SYN_RCVD"
    ESTABLISHED = "ESTABLISHED"
    FIN_WAIT = "FIN_WAIT"
    CLOSE_WAIT = "CLOSE_WAIT"


_TRANSITIONS = {
    Role.INITIATOR: {
        State.CLOSED: {State.SYN_SENT},
        State.SYN_SENT: {State.ESTABLISHED},
        State.ESTABLISHED: {State.FIN_WAIT},
        State.FIN_WAIT: {State.CLOSED},
    },
    Role.RESPONDER: {
        State.CLOSED: {State.LISTEN},
        State.LISTEN: {State.SYN_RCVD},
        State.SYN_RCVD: {State.ESTABLISHED},
        State.ESTABLISHED: {State.CLOSE_WAIT},
        State.CLOSE_WAIT: {State.CLOSED},
    },
}


@dataclass(slots=True)
class Connection:
    role: Role
    state: State = State.CLOSED
    peer: Optional[Address] = None
    local_isn: int = 0
    peer_isn: int = 0
    snd_nxt: int = 0
    rcv_nxt: int = 0
    mss: Optional[int] = None
    mws: Optional[int] = None

    def transition(self, new: State) -> None:
        allowed = _TRANSITIONS[self.role].get(self.state, set())
        if new not in allowed:
            raise ProtocolError(f"{self.role.value}: illegal transition {self.state.value} -> {new.value}")
        logger.debug("%s: %s -> %s", self.role.value, self.state.value, new.value)
        self.state = new


def _expect(result, what: str):
    if result is TIMED_OUT:
        raise ConnectionTimeout(f"timed out waiting for {what}")
    return result


def open_active(
    conn: Connection,
    link: SegmentLink,
    rng: random.Random,
    timeout_s: Optional[float] = None,
) -> None:
    conn.local_isn = rng.randint(ISN_MIN, ISN_MAX)
    link.send(Segment.control(conn.local_isn, 0, FLAG_SYN))
    conn.transition(State.SYN_SENT)
    logger.info("SYN sent; isn=%d", conn.local_isn)

    want = seq_add(conn.local_isn, 1)
    got = _expect(
        link.receive_until(lambda s: s.is_syn and s.is_ack and s.ack == want, timeout_s),
        "SYN+ACK",
    )
    conn.peer_isn = got.segment.seq
    conn.snd_nxt = want
    conn.rcv_nxt = seq_add(conn.peer_isn, 1)

    link.send(Segment.control(conn.snd_nxt, conn.rcv_nxt, FLAG_ACK))
    conn.transition(State.ESTABLISHED)
    logger.info("connection established; peer isn=%d", conn.peer_isn)


def open_passive(
    conn: Connection,
    link: SegmentLink,
    timeout_s: Optional[float] = None,
) -> None:
    conn.transition(State.LISTEN)
    logger.info("listening on %s:%d", *link.udp.address)
    got = _expect(link.receive_until(lambda s: s.is_syn and not s.is_ack, timeout_s), "SYN")

    conn.peer = got.addr
    link.lock_peer(got.addr)
    conn.peer_isn = got.segment.seq
    conn.local_isn = RESPONDER_ISN
    conn.rcv_nxt = seq_add(conn.peer_isn, 1)
    link.send(Segment.control(conn.local_isn, conn.rcv_nxt, FLAG_SYN | FLAG_ACK))
    conn.transition(State.SYN_RCVD)

    want = seq_add(conn.local_isn, 1)
    _expect(
        link.receive_until(lambda s: s.is_ack and not s.is_syn and s.ack == want, timeout_s),
        "handshake ACK",
    )
    conn.snd_nxt = want
    conn.transition(State.ESTABLISHED)
    logger.info("connection established with %s:%d; peer isn=%d", got.addr[0], got.addr[1], conn.peer_isn)


def close_active(
    conn: Connection,
    link: SegmentLink,
    timeout_s: Optional[float] = None,
) -> None:
    link.send(Segment.control(conn.snd_nxt, conn.rcv_nxt, FLAG_FIN))
    conn.transition(State.FIN_WAIT)
    logger.info("FIN sent; seq=%d", conn.snd_nxt)

    want = seq_add(conn.snd_nxt, 1)
    _expect(link.receive_until(lambda s: s.is_ack and s.ack == want, timeout_s), "ACK of FIN")
    conn.snd_nxt = want

    fin = _expect(link.receive_until(lambda s: s.is_fin, timeout_s), "peer FIN").segment
    conn.rcv_nxt = seq_add(fin.seq, 1)
    link.send(Segment.control(conn.snd_nxt, conn.rcv_nxt, FLAG_ACK))
    conn.transition(State.CLOSED)
    logger.info("teardown complete")


def close_passive(
    conn: Connection,
    link: SegmentLink,
    fin: Segment,
    timeout_s: Optional[float] = None,
) -> None:
    conn.transition(State.CLOSE_WAIT)
    conn.rcv_nxt = seq_add(fin.seq, 1)
    link.send(Segment.control(conn.snd_nxt, conn.rcv_nxt, FLAG_ACK))
    link.send(Segment.control(conn.snd_nxt, conn.rcv_nxt, FLAG_FIN))
    logger.info("peer FIN acknowledged; own FIN sent seq=%d", conn.snd_nxt)

    want = seq_add(conn.snd_nxt, 1)
    _expect(
        link.receive_until(lambda s: s.is_ack and not s.is_fin and s.ack == want, timeout_s),
        "final ACK",
    )
    conn.snd_nxt = want
    conn.transition(State.CLOSED)
    logger.info("teardown complete")
