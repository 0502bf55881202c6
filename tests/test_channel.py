from __future__ import annotations

import asyncio

import pytest

from validator_monitor import channel
from validator_monitor.channel import ChannelClosed, ChannelFull, OneshotError, TrySendError


def test_capacity_must_be_positive() -> None:
    with pytest.raises(ValueError):
        channel.new(0)


@pytest.mark.asyncio
async def test_try_send_on_full_channel_fails_fast() -> None:
    sender, receiver = channel.new(1)
    sender.try_send("a")

    with pytest.raises(ChannelFull) as excinfo:
        sender.try_send("b")
    assert isinstance(excinfo.value, TrySendError)
    assert len(sender) == 1

    assert await receiver.__anext__() == "a"
    sender.try_send("c")
    assert len(sender) == 1


@pytest.mark.asyncio
async def test_receiver_drains_then_ends_when_all_senders_closed() -> None:
    sender, receiver = channel.new(8)
    other = sender.clone()
    sender.try_send(1)
    other.try_send(2)
    sender.close()
    other.try_send(3)
    other.close()

    received = [message async for message in receiver]
    assert received == [1, 2, 3]


@pytest.mark.asyncio
async def test_closed_receiver_rejects_sends_and_drops_buffer() -> None:
    sender, receiver = channel.new(4)
    sender.try_send("queued")
    receiver.close()

    assert sender.is_closed()
    with pytest.raises(ChannelClosed):
        sender.try_send("late")
    with pytest.raises(ChannelClosed):
        await sender.send("late")
    assert len(sender) == 0


@pytest.mark.asyncio
async def test_closed_sender_cannot_send_or_clone() -> None:
    sender, receiver = channel.new(4)
    other = sender.clone()
    sender.close()
    sender.close()

    with pytest.raises(ChannelClosed, match="sender is closed"):
        sender.try_send("x")
    with pytest.raises(ChannelClosed, match="sender is closed"):
        await sender.send("x")
    with pytest.raises(ChannelClosed, match="sender is closed"):
        sender.clone()

    # The other producer and the receiver are unaffected.
    other.try_send("y")
    assert await receiver.__anext__() == "y"
    receiver.close()
    with pytest.raises(ChannelClosed, match="receiver is closed"):
        other.try_send("z")


@pytest.mark.asyncio
async def test_pending_send_fails_when_receiver_closes() -> None:
    sender, receiver = channel.new(1)
    sender.try_send("first")

    pending = asyncio.create_task(sender.send("second"))
    await asyncio.sleep(0)
    receiver.close()

    with pytest.raises(ChannelClosed):
        await asyncio.wait_for(pending, timeout=1)
    assert len(sender) == 0


@pytest.mark.asyncio
async def test_send_waits_for_capacity() -> None:
    sender, receiver = channel.new(1)
    sender.try_send("first")

    pending = asyncio.create_task(sender.send("second"))
    await asyncio.sleep(0)
    assert not pending.done()

    assert await receiver.__anext__() == "first"
    await asyncio.wait_for(pending, timeout=1)
    assert await receiver.__anext__() == "second"


@pytest.mark.asyncio
async def test_receiver_waits_for_messages() -> None:
    sender, receiver = channel.new(2)

    async def consume() -> list[str]:
        return [message async for message in receiver]

    consumer = asyncio.create_task(consume())
    await asyncio.sleep(0)
    sender.try_send("x")
    await asyncio.sleep(0)
    sender.try_send("y")
    sender.close()

    assert await asyncio.wait_for(consumer, timeout=1) == ["x", "y"]


@pytest.mark.asyncio
async def test_oneshot_is_single_use() -> None:
    ack_sender, ack_receiver = channel.oneshot()
    assert not ack_receiver.received()

    ack_sender.send()
    await asyncio.wait_for(ack_receiver.wait(), timeout=1)
    assert ack_receiver.received()

    with pytest.raises(OneshotError):
        ack_sender.send()
