"""Receive loop shared by every checker."""

from __future__ import annotations

from typing import Any, Generic, TypeVar, Union

import structlog

from ..channel import Receiver
from ..errors import RpcError
from .messages import Check, Terminate

logger = structlog.get_logger(__name__)

P = TypeVar("P")

Command = Union[Check[Any], Terminate]


class Checker(Generic[P]):
    """A long-running actor consuming ``Check`` / ``Terminate`` commands.

    Subclasses implement ``check``. ``run`` owns the receive loop: each ``Check``
    is handled to completion in FIFO order, an ``RpcError`` is logged and the loop
    continues, and the first ``Terminate`` is acknowledged and ends the loop for
    good. Any other exception escapes ``run`` and fails the task.
    """

    name = "checker"

    def __init__(self, endpoint: str, receiver: Receiver[Command]):
        self.endpoint = endpoint
        self.receiver = receiver

    async def check(self, payload: P) -> None:
        raise NotImplementedError

    async def run(self) -> None:
        try:
            async for command in self.receiver:
                if isinstance(command, Terminate):
                    logger.info(f"{self.name} checker will be terminated soon...", endpoint=self.endpoint)
                    command.ack.send()
                    return
                if not isinstance(command, Check):
                    raise TypeError(f"unexpected command for {self.name} checker: {command!r}")
                try:
                    await self.check(command.payload)
                except RpcError as err:
                    logger.error(str(err), checker=self.name, endpoint=self.endpoint)
        finally:
            self.receiver.close()
