from __future__ import annotations

import io
import itertools
import threading

from stp.constants import FLAG_SYN
from stp.events import EventLog
from stp.segment import Segment


class FakeClock:
    def __init__(self):
        self.now = 100.0

    def __call__(self):
        return self.now


def test_fixed_width_rows():
    out = io.StringIO()
    clock = FakeClock()
    log = EventLog(out, clock=clock)
    clock.now += 0.25
    log.record("snd", Segment.control(4711, 0, FLAG_SYN))
    log.record("drop", Segment.data(4712, 1, b"x" * 428))
    lines = out.getvalue().splitlines()
    assert lines[0].split() == ["evnt", "time", "flag", "seq", "num", "bytes", "ack", "num"]
    assert lines[1] == ""
    assert lines[2] == "snd     250      S" + "4711".rjust(17) + "0".rjust(7) + "0".rjust(17)
    assert lines[3].split() == ["drop", "250", "D", "4712", "428", "1"]
    assert len(lines[2]) == len(lines[3]) == 4 + 7 + 7 + 17 + 7 + 17


def test_summary_block():
    out = io.StringIO()
    log = EventLog(out)
    log.write_summary([("Number of Segments dropped", 3)])
    last = out.getvalue().splitlines()[-1]
    assert last.startswith("Number of Segments dropped:")
    assert last.endswith(" 3")


def test_rows_from_many_threads_stay_in_time_order():
    out = io.StringIO()
    ticks = itertools.count()
    log = EventLog(out, clock=lambda: float(next(ticks)))
    seg = Segment.data(1, 1, b"x")

    def writer():
        for _ in range(200):
            log.record("snd", seg)

    threads = [threading.Thread(target=writer) for _ in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    stamps = [int(line.split()[1]) for line in out.getvalue().splitlines()[2:]]
    assert len(stamps) == 800
    assert stamps == sorted(stamps)
    assert len(set(stamps)) == 800
