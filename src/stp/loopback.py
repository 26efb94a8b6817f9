from __future__ import annotations

import io
import random
import threading
from dataclasses import dataclass
from typing import BinaryIO, Optional

from .events import EventLog
from .net import UdpEndpoint
from .receiver import Receiver
from .sender import Sender, SenderConfig
from .stats import ReceiverStats, SenderStats


@dataclass(frozen=True, slots=True)
class LoopbackResult:
    output: bytes
    sender: SenderStats
    receiver: Optional[ReceiverStats]
    sender_log: str
    receiver_log: str


def run_loopback(
    payload: bytes,
    config: SenderConfig,
    *,
    rng: Optional[random.Random] = None,
    idle_timeout_s: float = 30.0,
    source: Optional[BinaryIO] = None,
) -> LoopbackResult:
    """Transfer ``payload`` between both roles over 127.0.0.1 in one process.

    ``source`` replaces the in-memory stream the sender reads ``payload`` from.
    """
    recv_ep = UdpEndpoint.listening("127.0.0.1", 0)
    recv_log = io.StringIO()
    out = io.BytesIO()
    receiver = Receiver(recv_ep, out, EventLog(recv_log), idle_timeout_s=idle_timeout_s)

    holder: dict = {}

    def recv_runner() -> None:
        try:
            holder["stats"] = receiver.run()
        except BaseException as exc:
            holder["error"] = exc
        finally:
            recv_ep.close()

    t = threading.Thread(target=recv_runner, daemon=True)
    t.start()

    send_ep = UdpEndpoint.sending()
    send_log = io.StringIO()
    try:
        sender = Sender(
            send_ep,
            recv_ep.address,
            io.BytesIO(payload) if source is None else source,
            config,
            EventLog(send_log),
            rng=rng,
        )
        send_stats = sender.run()
    finally:
        send_ep.close()

    t.join(timeout=idle_timeout_s)
    if "error" in holder:
        raise holder["error"]

    return LoopbackResult(
        output=out.getvalue(),
        sender=send_stats,
        receiver=holder.get("stats"),
        sender_log=send_log.getvalue(),
        receiver_log=recv_log.getvalue(),
    )
