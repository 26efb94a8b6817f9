from __future__ import annotations

import pytest

from stp.cli import _sender_config, build_parser, main


def test_send_positional_arguments():
    args = build_parser().parse_args(
        ["send", "127.0.0.1", "5000", "in.pdf", "4096", "1024", "4", "0.1", "0.2", "0.3", "0.4", "3", "0.5", "100", "300"]
    )
    assert (args.host, args.port, args.file) == ("127.0.0.1", 5000, "in.pdf")
    config = _sender_config(args)
    assert (config.mws, config.mss, config.gamma, config.seed) == (4096, 1024, 4.0, 300)
    assert config.pld.p_drop == 0.1
    assert config.pld.max_order == 3
    assert config.pld.max_delay_ms == 100
    assert args.event_log == "Sender_log.txt"


def test_recv_arguments():
    args = build_parser().parse_args(["recv", "5000", "out.pdf"])
    assert (args.port, args.file, args.event_log) == (5000, "out.pdf", "Receiver_log.txt")


def test_missing_arguments_exit_with_usage():
    with pytest.raises(SystemExit) as exc:
        build_parser().parse_args(["send", "127.0.0.1"])
    assert exc.value.code == 2


def test_invalid_window_reports_error(tmp_path):
    src = tmp_path / "in.bin"
    src.write_bytes(b"abc")
    argv = ["send", "127.0.0.1", "9", str(src), "100", "1024", "4", "0", "0", "0", "0", "0", "0", "0", "1"]
    assert main(argv) == 1


def test_bench_runs_loopback(capsys):
    assert main(["--json", "bench", "--size-bytes", "5000", "2048", "512", "4", "0", "0", "0", "0", "0", "0", "0", "5"]) == 0
    assert '"role": "bench"' in capsys.readouterr().out
