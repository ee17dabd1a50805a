from __future__ import annotations

import logging

from server.core.connection import WebSocketEndpoint
from server.core.repeater import Repeater, Subscription
from shared.protocol import Codec, Subprotocol, decode_json, encode_json
from shared.protocol.messages import Message


def _sub(n: int, channel: str = "moo") -> Subscription:
    return Subscription(n, channel)


def _drain(endpoint: WebSocketEndpoint):
    frames = []
    while endpoint.backlog():
        frames.append(endpoint._outbox.get_nowait())
    return frames


def test_join_broadcasts_listener_count_to_everyone(endpoint_factory, fixed_clock):
    repeater = Repeater("moo", clock=fixed_clock)
    a, b = endpoint_factory("a"), endpoint_factory("b")

    repeater.join(_sub(1), a)
    assert a.summary() == [(1, [])]
    assert a.received[0].timestamp == fixed_clock()

    repeater.join(_sub(2), b)
    assert a.summary() == [(1, []), (2, [])]
    assert b.summary() == [(2, [])]
    assert repeater.listeners() == 2


def test_send_overwrites_client_supplied_count(endpoint_factory, fixed_clock):
    repeater = Repeater("moo", clock=fixed_clock)
    a = endpoint_factory()
    repeater.join(_sub(1), a)
    a.clear()

    delivered = repeater.send(Message(timestamp=7, clients=999, duration=[22, 33]))

    assert delivered == 1
    assert a.summary() == [(1, [22, 33])]
    assert a.received[0].timestamp == 7


def test_part_updates_remaining_subscribers(endpoint_factory, fixed_clock):
    repeater = Repeater("moo", clock=fixed_clock)
    a, b = endpoint_factory(), endpoint_factory()
    repeater.join(_sub(1), a)
    repeater.join(_sub(2), b)
    a.clear()
    b.clear()

    assert repeater.part(_sub(1)) is True
    assert b.summary() == [(1, [])]
    assert a.received == []
    assert _sub(1) not in repeater

    repeater.send(Message(timestamp=8, duration=[44]))
    assert a.received == []
    assert b.summary() == [(1, []), (1, [44])]


def test_part_last_subscriber_sends_nothing(endpoint_factory, fixed_clock):
    repeater = Repeater("moo", clock=fixed_clock)
    a = endpoint_factory()
    repeater.join(_sub(1), a)
    a.clear()

    assert repeater.part(_sub(1)) is True
    assert repeater.listeners() == 0
    assert a.received == []


def test_part_unknown_subscription_is_a_noop(endpoint_factory, fixed_clock):
    repeater = Repeater("moo", clock=fixed_clock)
    a = endpoint_factory()
    repeater.join(_sub(1), a)
    a.clear()

    assert repeater.part(_sub(99)) is False
    assert repeater.listeners() == 1
    assert a.received == []


def test_same_endpoint_joined_twice_gets_two_copies(endpoint_factory, fixed_clock):
    repeater = Repeater("moo", clock=fixed_clock)
    a = endpoint_factory()
    repeater.join(_sub(1), a)
    repeater.join(_sub(2), a)
    a.clear()

    repeater.send(Message(timestamp=1, duration=[5]))
    assert a.summary() == [(2, [5]), (2, [5])]


def test_failed_delivery_does_not_stop_or_remove(endpoint_factory, fixed_clock):
    repeater = Repeater("moo", clock=fixed_clock)
    refusing = endpoint_factory(accept=False)
    raising = endpoint_factory(raise_error=True)
    healthy = endpoint_factory()
    repeater.join(_sub(1), refusing)
    repeater.join(_sub(2), raising)
    repeater.join(_sub(3), healthy)
    healthy.clear()

    delivered = repeater.send(Message(timestamp=1, duration=[5]))

    assert delivered == 1
    assert healthy.summary() == [(3, [5])]
    assert repeater.listeners() == 3


def test_unencodable_message_is_dropped_and_logged(endpoint_factory, fixed_clock, caplog):
    repeater = Repeater("moo", clock=fixed_clock)
    a = endpoint_factory()
    repeater.join(_sub(1), a)
    a.clear()
    broken = Message.model_construct(timestamp=2**63, clients=0, duration=[1])

    with caplog.at_level(logging.ERROR, logger="server.core.repeater"):
        assert repeater.send(broken) == 0

    assert a.received == []
    assert "unencodable" in caplog.text
    # the repeater keeps working afterwards
    assert repeater.send(Message(timestamp=1, duration=[2])) == 1


def test_endpoint_crash_does_not_stop_the_broadcast(endpoint_factory, fixed_clock, caplog):
    repeater = Repeater("moo", clock=fixed_clock)
    reset = endpoint_factory(raise_error=ConnectionResetError("peer reset"))
    healthy = endpoint_factory()
    repeater.join(_sub(1), reset)
    repeater.join(_sub(2), healthy)
    healthy.clear()

    with caplog.at_level(logging.ERROR, logger="server.core.repeater"):
        delivered = repeater.send(Message(timestamp=1, duration=[5]))

    assert delivered == 1
    assert healthy.summary() == [(2, [5])]
    assert _sub(1) in repeater
    assert "peer reset" in caplog.text


def test_broadcast_is_encoded_once_per_codec(fixed_clock):
    calls = []

    def counting_encode(message):
        calls.append(message)
        return encode_json(message)

    codec = Codec(Subprotocol.JSON, False, counting_encode, decode_json)
    endpoints = [WebSocketEndpoint(None, codec, outbox_size=8) for _ in range(5)]
    repeater = Repeater("moo", clock=fixed_clock)
    for n, endpoint in enumerate(endpoints):
        repeater.join(_sub(n), endpoint)
    calls.clear()

    assert repeater.send(Message(timestamp=1, duration=[5])) == 5

    assert len(calls) == 1
    last = [_drain(endpoint)[-1] for endpoint in endpoints]
    assert len(set(last)) == 1
    assert decode_json(last[0]).duration == [5]

