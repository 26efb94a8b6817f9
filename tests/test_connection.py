from __future__ import annotations

import io
import random
import threading

import pytest

from stp.connection import (
    Connection,
    Role,
    State,
    close_active,
    close_passive,
    open_active,
    open_passive,
)
from stp.errors import ConnectionTimeout, ProtocolError
from stp.events import EventLog
from stp.net import SegmentLink, UdpEndpoint
from stp.receiver import Receiver


@pytest.fixture
def endpoints():
    server = UdpEndpoint.listening("127.0.0.1", 0)
    client = UdpEndpoint.sending()
    yield server, client
    server.close()
    client.close()


def test_handshake_and_teardown(endpoints):
    server, client = endpoints
    responder = Connection(Role.RESPONDER)
    server_link = SegmentLink(server, EventLog(io.StringIO()))
    errors = []
    established = threading.Event()
    cursors = {}

    def serve():
        try:
            open_passive(responder, server_link, timeout_s=5)
            cursors.update(snd_nxt=responder.snd_nxt, rcv_nxt=responder.rcv_nxt)
            established.set()
            fin = server_link.receive_until(lambda s: s.is_fin, 5).segment
            close_passive(responder, server_link, fin, timeout_s=5)
        except Exception as exc:  # surfaced by the assertion below
            errors.append(exc)

    t = threading.Thread(target=serve, daemon=True)
    t.start()

    initiator = Connection(Role.INITIATOR)
    client_log = io.StringIO()
    client_link = SegmentLink(client, EventLog(client_log), peer=server.address)
    rng = random.Random(3)
    expected_isn = random.Random(3).randint(1, 100_000)

    open_active(initiator, client_link, rng, timeout_s=5)
    assert initiator.state is State.ESTABLISHED
    assert initiator.local_isn == expected_isn
    assert initiator.peer_isn == 0
    assert initiator.rcv_nxt == initiator.peer_isn + 1
    assert initiator.snd_nxt == expected_isn + 1

    assert established.wait(5)
    assert cursors == {"snd_nxt": initiator.rcv_nxt, "rcv_nxt": initiator.snd_nxt}

    close_active(initiator, client_link, timeout_s=5)
    t.join(5)
    assert not errors
    assert initiator.state is State.CLOSED
    assert responder.state is State.CLOSED
    assert responder.peer_isn == expected_isn
    assert responder.peer == ("127.0.0.1", client.address[1])

    flags = [line.split()[2] for line in client_log.getvalue().splitlines()[2:]]
    assert flags == ["S", "SA", "A", "F", "A", "F", "A"]


def test_handshake_times_out_without_peer(endpoints):
    server, client = endpoints
    link = SegmentLink(client, EventLog(io.StringIO()), peer=server.address)
    conn = Connection(Role.INITIATOR)
    with pytest.raises(ConnectionTimeout):
        open_active(conn, link, random.Random(0), timeout_s=0.2)
    assert conn.state is State.SYN_SENT


def test_receiver_gives_up_when_no_syn_arrives(endpoints):
    server, _ = endpoints
    receiver = Receiver(server, io.BytesIO(), EventLog(io.StringIO()), idle_timeout_s=0.2)
    with pytest.raises(ConnectionTimeout):
        receiver.run()
    assert receiver.conn.state is State.LISTEN


def test_illegal_transition():
    conn = Connection(Role.INITIATOR)
    with pytest.raises(ProtocolError):
        conn.transition(State.ESTABLISHED)
    with pytest.raises(ProtocolError):
        Connection(Role.RESPONDER).transition(State.SYN_SENT)
