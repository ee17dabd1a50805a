from __future__ import annotations

import asyncio
import logging

import pytest

from server.core.registry import ChannelRegistry
from server.core.repeater import Repeater
from shared.protocol.messages import Message


def _registry(fixed_clock, **kwargs) -> ChannelRegistry:
    return ChannelRegistry(repeater_factory=lambda name: Repeater(name, clock=fixed_clock), **kwargs)


@pytest.mark.asyncio
async def test_moo_merf_scenario(endpoint_factory, fixed_clock):
    registry = _registry(fixed_clock)
    a, b = endpoint_factory("a"), endpoint_factory("b")

    sub_a = await registry.join("moo", a)
    await registry.step()
    assert registry.channels() == ["moo"]
    assert a.summary() == [(1, [])]

    await registry.send("merf", Message(timestamp=1, duration=[22, 33]))
    await registry.step()
    assert a.summary() == [(1, [])]

    await registry.send("moo", Message(timestamp=1, duration=[22, 33]))
    await registry.step()
    assert a.summary()[-1] == (1, [22, 33])

    await registry.join("moo", b)
    await registry.step()
    assert a.summary()[-1] == (2, [])
    assert b.summary() == [(2, [])]

    await registry.send("moo", Message(timestamp=2, duration=[22, 33, 44]))
    await registry.step()
    assert a.summary()[-1] == (2, [22, 33, 44])
    assert b.summary()[-1] == (2, [22, 33, 44])

    a_seen = len(a.received)
    await registry.part(sub_a)
    await registry.step()
    assert b.summary()[-1] == (1, [])

    await registry.send("moo", Message(timestamp=3, duration=[55]))
    await registry.step()
    assert b.summary()[-1] == (1, [55])
    assert len(a.received) == a_seen


@pytest.mark.asyncio
async def test_empty_channel_is_collected_and_recreated(endpoint_factory, fixed_clock):
    registry = _registry(fixed_clock)
    a, b = endpoint_factory(), endpoint_factory()

    sub_a = await registry.join("moo", a)
    await registry.step()
    await registry.part(sub_a)
    await registry.step()
    assert registry.channels() == []
    assert registry.listeners("moo") == 0

    await registry.join("moo", b)
    await registry.step()
    assert registry.channels() == ["moo"]
    assert b.summary() == [(1, [])]


@pytest.mark.asyncio
async def test_channels_are_isolated(endpoint_factory, fixed_clock):
    registry = _registry(fixed_clock)
    a, b = endpoint_factory(), endpoint_factory()
    await registry.join("moo", a)
    await registry.join("Moo", b)
    await registry.send("moo", Message(timestamp=1, duration=[1]))
    for _ in range(3):
        await registry.step()

    assert a.summary() == [(1, []), (1, [1])]
    assert b.summary() == [(1, [])]
    assert sorted(registry.channels()) == ["Moo", "moo"]


@pytest.mark.asyncio
async def test_unknown_channel_requests_only_log(endpoint_factory, fixed_clock, caplog):
    registry = _registry(fixed_clock)
    stale = registry.subscription("ghost")

    with caplog.at_level(logging.WARNING, logger="server.core.registry"):
        await registry.part(stale)
        await registry.step()
        await registry.send("ghost", Message(timestamp=1, duration=[1]))
        await registry.step()

    assert registry.channels() == []
    assert "Part of unknown channel 'ghost'" in caplog.text
    assert "Send to unknown channel 'ghost'" in caplog.text


@pytest.mark.asyncio
async def test_subscriptions_are_unique(fixed_clock):
    registry = _registry(fixed_clock)
    first = registry.subscription("moo")
    second = registry.subscription("moo")
    assert first != second
    assert first.channel == second.channel == "moo"


@pytest.mark.asyncio
async def test_full_queue_blocks_producers(fixed_clock):
    registry = _registry(fixed_clock, queue_size=1)
    await registry.send("moo", Message(timestamp=1, duration=[1]))

    blocked = asyncio.create_task(registry.send("moo", Message(timestamp=2, duration=[2])))
    await asyncio.sleep(0.01)
    assert not blocked.done()

    await registry.step()
    await asyncio.wait_for(blocked, timeout=1)
    assert registry.pending() == 1


@pytest.mark.asyncio
async def test_worker_applies_requests_in_order(endpoint_factory, fixed_clock):
    registry = _registry(fixed_clock)
    registry.start()
    try:
        a = endpoint_factory()
        sub_a = await registry.join("moo", a)
        for n in range(10):
            await registry.send("moo", Message(timestamp=n, duration=[n]))
        await registry.part(sub_a)
        await registry.send("moo", Message(timestamp=99, duration=[99]))
        await registry.flush()
    finally:
        await registry.stop()

    assert [m.timestamp for m in a.received[1:]] == list(range(10))
    assert registry.channels() == []
    assert not registry.running


@pytest.mark.asyncio
async def test_worker_survives_a_failing_request(endpoint_factory, fixed_clock, caplog):
    def factory(name):
        if name == "bad":
            raise RuntimeError("boom")
        return Repeater(name, clock=fixed_clock)

    registry = ChannelRegistry(repeater_factory=factory)
    registry.start()
    try:
        with caplog.at_level(logging.ERROR, logger="server.core.registry"):
            await registry.join("bad", endpoint_factory())
            await registry.flush()
        good = endpoint_factory()
        await registry.join("good", good)
        await registry.flush()
    finally:
        await registry.stop()

    assert "boom" in caplog.text
    assert good.summary() == [(1, [])]
    assert registry.channels() == ["good"]


@pytest.mark.asyncio
async def test_join_rejects_a_handle_for_another_channel(endpoint_factory, fixed_clock):
    registry = _registry(fixed_clock)
    handle = registry.subscription("merf")

    with pytest.raises(ValueError):
        await registry.join("moo", endpoint_factory(), handle)

    assert registry.pending() == 0
    registry.start()
    try:
        joined = await registry.join("merf", endpoint_factory(), handle)
        await registry.flush()
        assert registry.channels() == ["merf"]
        await registry.part(joined)
        await registry.flush()
    finally:
        await registry.stop()

    assert registry.channels() == []
