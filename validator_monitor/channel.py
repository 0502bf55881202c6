"""Bounded multi-producer / single-consumer queues for checker commands.

``new`` returns a ``(Sender, Receiver)`` pair backed by one ``asyncio.Queue``. Senders
enqueue without blocking through ``try_send``; the receiver is consumed with
``async for`` and ends once every sender is closed and the buffer is drained.

``oneshot`` returns a single-use acknowledgement pair used by the shutdown
handshake.
"""

from __future__ import annotations

import asyncio
from typing import Generic, TypeVar

T = TypeVar("T")


class TrySendError(Exception):
    """A message could not be enqueued."""


class ChannelFull(TrySendError):
    def __init__(self, capacity: int):
        super().__init__(f"channel is full (capacity {capacity})")
        self.capacity = capacity


class ChannelClosed(TrySendError):
    def __init__(self, message: str = "channel receiver is closed"):
        super().__init__(message)


class OneshotError(Exception):
    """A oneshot channel was used more than once."""


class _Shared(Generic[T]):
    def __init__(self, capacity: int):
        self.capacity = capacity
        self.queue: asyncio.Queue[T] = asyncio.Queue(maxsize=capacity)
        self.senders = 1
        self.receiver_open = True
        # Set once every sender is closed or the receiver is closed.
        self.finished = asyncio.Event()

    def drain(self) -> None:
        while not self.queue.empty():
            self.queue.get_nowait()


class Sender(Generic[T]):
    """Producer side of a bounded channel. Cheap to clone."""

    def __init__(self, shared: _Shared[T]):
        self._shared = shared
        self._closed = False

    @property
    def capacity(self) -> int:
        return self._shared.capacity

    def __len__(self) -> int:
        return self._shared.queue.qsize()

    def is_closed(self) -> bool:
        """True once the receiver is gone; further sends will fail."""
        return not self._shared.receiver_open

    def _check_open(self) -> None:
        if self._closed:
            raise ChannelClosed("sender is closed")
        if not self._shared.receiver_open:
            raise ChannelClosed()

    def try_send(self, message: T) -> None:
        """Enqueue ``message`` or raise immediately. Never blocks."""
        self._check_open()
        try:
            self._shared.queue.put_nowait(message)
        except asyncio.QueueFull:
            raise ChannelFull(self._shared.capacity) from None

    async def send(self, message: T) -> None:
        """Enqueue ``message``, waiting for free capacity if needed."""
        self._check_open()
        await self._shared.queue.put(message)
        if not self._shared.receiver_open:
            self._shared.drain()
            raise ChannelClosed()

    def clone(self) -> Sender[T]:
        if self._closed:
            raise ChannelClosed("sender is closed")
        self._shared.senders += 1
        return Sender(self._shared)

    def close(self) -> None:
        """Release this producer. The receiver ends when all producers are closed."""
        if self._closed:
            return
        self._closed = True
        self._shared.senders -= 1
        if self._shared.senders == 0:
            self._shared.finished.set()


class Receiver(Generic[T]):
    """Consumer side of a bounded channel, iterated with ``async for``."""

    def __init__(self, shared: _Shared[T]):
        self._shared = shared

    def __aiter__(self) -> Receiver[T]:
        return self

    async def __anext__(self) -> T:
        shared = self._shared
        if not shared.queue.empty():
            return shared.queue.get_nowait()
        if shared.finished.is_set():
            raise StopAsyncIteration

        getter = asyncio.ensure_future(shared.queue.get())
        finished = asyncio.ensure_future(shared.finished.wait())
        try:
            await asyncio.wait({getter, finished}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            finished.cancel()
            if not getter.done():
                getter.cancel()
        if getter.done() and not getter.cancelled():
            return getter.result()
        raise StopAsyncIteration

    def close(self) -> None:
        """Stop receiving. Buffered messages are dropped and senders see ``ChannelClosed``."""
        shared = self._shared
        shared.receiver_open = False
        shared.finished.set()
        shared.drain()


def new(capacity: int) -> tuple[Sender[T], Receiver[T]]:
    if capacity < 1:
        raise ValueError(f"channel capacity must be positive, got {capacity}")
    shared: _Shared[T] = _Shared(capacity)
    return Sender(shared), Receiver(shared)


class OneshotSender:
    def __init__(self, future: asyncio.Future[None]):
        self._future = future

    def send(self) -> None:
        """Deliver the single acknowledgement."""
        if self._future.done():
            raise OneshotError("acknowledgement already sent")
        self._future.set_result(None)


class OneshotReceiver:
    def __init__(self, future: asyncio.Future[None]):
        self._future = future

    def received(self) -> bool:
        return self._future.done()

    async def wait(self) -> None:
        await asyncio.shield(self._future)


def oneshot() -> tuple[OneshotSender, OneshotReceiver]:
    """Create a single-use acknowledgement channel. Must be called inside a running loop."""
    future: asyncio.Future[None] = asyncio.get_running_loop().create_future()
    return OneshotSender(future), OneshotReceiver(future)
