from __future__ import annotations

import pytest

from stp.segment import Segment
from stp.window import AckEvent, SendLedger, SendWindow


def test_admission_gate_keeps_unacked_within_mws():
    w = SendWindow(file_size=10_000, mss=1024, mws=3000)
    sent = 0
    while w.can_send():
        w.on_sent(w.next_length)
        sent += 1
        assert w.unacked <= w.mws
    assert sent == 2
    assert w.unacked == 2048


def test_short_final_segment():
    w = SendWindow(file_size=3500, mss=1024, mws=4096)
    lengths = []
    while w.can_send():
        lengths.append(w.next_length)
        w.on_sent(w.next_length)
    assert lengths == [1024, 1024, 1024, 428]
    assert w.remaining == 0
    assert not w.done()
    assert w.on_ack(3500) is AckEvent.PROGRESS
    assert w.done()


def test_three_duplicates_trigger_exactly_one_fast_retransmit():
    w = SendWindow(file_size=8192, mss=1024, mws=8192)
    w.on_sent(4096)
    assert w.on_ack(1024) is AckEvent.PROGRESS
    assert w.on_ack(1024) is AckEvent.DUPLICATE
    assert w.on_ack(1024) is AckEvent.DUPLICATE
    assert w.on_ack(1024) is AckEvent.FAST_RETRANSMIT
    assert w.duplicate_acks == 0
    assert w.last_byte_acked == 1024
    assert w.on_ack(1024) is AckEvent.DUPLICATE


def test_progress_resets_duplicate_counter():
    w = SendWindow(file_size=8192, mss=1024, mws=8192)
    w.on_sent(4096)
    w.on_ack(1024)
    w.on_ack(1024)
    w.on_ack(1024)
    assert w.on_ack(2048) is AckEvent.PROGRESS
    assert w.duplicate_acks == 0
    assert w.on_ack(2048) is AckEvent.DUPLICATE


def test_stale_and_bogus_acks_are_ignored():
    w = SendWindow(file_size=4096, mss=1024, mws=4096)
    w.on_sent(2048)
    w.on_ack(2048)
    assert w.on_ack(1024) is AckEvent.IGNORED
    assert w.on_ack(5000) is AckEvent.IGNORED
    assert w.last_byte_acked == 2048


def test_ledger_sized_by_segment_count():
    ledger = SendLedger(file_size=3500, mss=1024)
    assert len(ledger) == 4
    seg = Segment.data(seq=1, ack=1, payload=b"a" * 1024)
    ledger.record(0, seg, seg.encode(), sent_at=1.0)
    assert ledger.covering(1023).segment is seg
    assert ledger[0].retransmitted is False
    with pytest.raises(KeyError):
        ledger.covering(1024)


def test_ledger_finds_segments_by_real_offset():
    ledger = SendLedger(file_size=3000, mss=1024)
    first = Segment.data(seq=1, ack=1, payload=b"a" * 1024)
    second = Segment.data(seq=1025, ack=1, payload=b"b" * 1024)
    tail = Segment.data(seq=2049, ack=1, payload=b"c" * 952)
    for offset, seg in ((0, first), (2048, tail), (1024, second)):
        ledger.record(offset, seg, seg.encode(), sent_at=1.0)
    assert ledger[1024].segment is second
    assert ledger.covering(2047).segment is second
    assert ledger.covering(2999).segment is tail
    with pytest.raises(KeyError):
        ledger[1000]
    with pytest.raises(KeyError):
        ledger.covering(3000)
