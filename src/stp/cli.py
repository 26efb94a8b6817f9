from __future__ import annotations

import argparse
import contextlib
import json
import logging
import os

from .constants import RECEIVER_LOG, SENDER_LOG
from .errors import StpError
from .events import EventLog
from .loopback import run_loopback
from .net import UdpEndpoint
from .pld import PldConfig
from .receiver import Receiver
from .sender import Sender, SenderConfig

logger = logging.getLogger(__name__)


def _report(payload: dict, as_json: bool) -> None:
    print(json.dumps(payload, indent=2) if as_json else payload)


def _pld_config(args: argparse.Namespace) -> PldConfig:
    return PldConfig(
        p_drop=args.p_drop,
        p_duplicate=args.p_duplicate,
        p_corrupt=args.p_corrupt,
        p_order=args.p_order,
        max_order=args.max_order,
        p_delay=args.p_delay,
        max_delay_ms=args.max_delay,
    )


def _sender_config(args: argparse.Namespace) -> SenderConfig:
    return SenderConfig(
        mws=args.mws,
        mss=args.mss,
        gamma=args.gamma,
        pld=_pld_config(args),
        seed=args.seed,
    )


def cmd_recv(args: argparse.Namespace) -> int:
    with contextlib.ExitStack() as stack:
        udp = UdpEndpoint.listening(args.listen_host, args.port)
        stack.callback(udp.close)
        out = stack.enter_context(open(args.file, "wb"))
        log = stack.enter_context(open(args.event_log, "w", encoding="utf-8"))
        stats = Receiver(udp, out, EventLog(log)).run()

    _report({"role": "receiver", **stats.as_dict()}, args.json)
    return 0


def cmd_send(args: argparse.Namespace) -> int:
    config = _sender_config(args)
    with contextlib.ExitStack() as stack:
        udp = UdpEndpoint.sending()
        stack.callback(udp.close)
        source = stack.enter_context(open(args.file, "rb"))
        log = stack.enter_context(open(args.event_log, "w", encoding="utf-8"))
        stats = Sender(udp, (args.host, args.port), source, config, EventLog(log)).run()

    _report({"role": "sender", **stats.as_dict()}, args.json)
    return 0


def cmd_bench(args: argparse.Namespace) -> int:
    result = run_loopback(os.urandom(args.size_bytes), _sender_config(args))
    if result.receiver is None or len(result.output) != args.size_bytes:
        raise StpError(f"loopback delivered {len(result.output)} of {args.size_bytes} bytes")
    _report({"role": "bench", **result.sender.as_dict()}, args.json)
    return 0


def _add_link_args(x: argparse.ArgumentParser) -> None:
    x.add_argument("mws", type=int, help="maximum window size (bytes)")
    x.add_argument("mss", type=int, help="maximum segment size (bytes)")
    x.add_argument("gamma", type=float, help="deviation multiplier for the timeout")
    x.add_argument("p_drop", type=float)
    x.add_argument("p_duplicate", type=float)
    x.add_argument("p_corrupt", type=float)
    x.add_argument("p_order", type=float)
    x.add_argument("max_order", type=int)
    x.add_argument("p_delay", type=float)
    x.add_argument("max_delay", type=int, help="maximum delay (ms)")
    x.add_argument("seed", type=int)


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="stp", description="Simple transport protocol over UDP with link impairment.")
    p.add_argument("--log-level", default="INFO", choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"])
    p.add_argument("--json", action="store_true")
    sub = p.add_subparsers(dest="cmd", required=True)

    recv = sub.add_parser("recv", help="accept one connection and write the received file")
    recv.add_argument("port", type=int)
    recv.add_argument("file")
    recv.add_argument("--listen-host", default="0.0.0.0")
    recv.add_argument("--event-log", default=RECEIVER_LOG)
    recv.set_defaults(func=cmd_recv)

    send = sub.add_parser("send", help="send a file to a receiver")
    send.add_argument("host")
    send.add_argument("port", type=int)
    send.add_argument("file")
    _add_link_args(send)
    send.add_argument("--event-log", default=SENDER_LOG)
    send.set_defaults(func=cmd_send)

    bench = sub.add_parser("bench", help="loopback transfer of a random payload")
    bench.add_argument("--size-bytes", type=int, default=1_000_000)
    _add_link_args(bench)
    bench.set_defaults(func=cmd_bench)

    return p


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=getattr(logging, args.log_level), format="%(asctime)s [%(levelname)s] %(message)s")
    try:
        return int(args.func(args))
    except (StpError, OSError, ValueError) as exc:
        logger.error("%s", exc)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
