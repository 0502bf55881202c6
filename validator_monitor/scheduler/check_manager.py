"""Per-endpoint orchestration of the checker actors.

A ``CheckManager`` owns one bounded queue and one task per enabled checker.
Every tick (``next``) it dispatches the unconditional checks, walks the block
heights it has not seen yet and fans each block out to the block checkers.
``terminate`` performs the shutdown handshake with each checker in turn.
"""

from __future__ import annotations

import asyncio
from typing import Any, Callable, Optional

import structlog

from .. import channel
from ..channel import ChannelClosed, OneshotReceiver, Sender, TrySendError
from ..checkers import (
    BlockMessage,
    Check,
    Checker,
    IsSyncingChecker,
    MissedBlockChecker,
    NewProposalChecker,
    SlashesChecker,
    SlashesRange,
    Terminate,
    ValidatorStatusChecker,
)
from ..checkers.base import Command
from ..config import CheckerConfig
from ..errors import CheckerCrashed, DispatchError, RpcError
from ..rpc.models import BlockResponse
from ..rpc.pool import GuardedClient

logger = structlog.get_logger(__name__)

CHANNEL_CAPACITY = 1024

IS_SYNCING = "is syncing"
NEW_PROPOSAL = "new proposal"
MISSED_BLOCK = "missed block"
VALIDATOR_STATUS = "validator status"
SLASHES = "slashes"

# Shutdown order.
CHECKER_ORDER = (IS_SYNCING, NEW_PROPOSAL, MISSED_BLOCK, VALIDATOR_STATUS, SLASHES)

CrashHandler = Callable[[CheckerCrashed], None]


class CheckManager:
    """Drives the checkers of a single node endpoint."""

    def __init__(self, config: CheckerConfig, client: GuardedClient, *, capacity: int = CHANNEL_CAPACITY):
        self.config = config
        self.endpoint = config.endpoint
        self.client = client
        self.capacity = capacity
        self.validator_account = config.account_id()
        self.validator_address = config.validator_address
        self.last_checked_height: Optional[int] = None

        self._senders: dict[str, Sender[Command]] = {}
        self._tasks: dict[str, asyncio.Task[None]] = {}
        self._on_crash: Optional[CrashHandler] = None
        self._terminated = False

    def enabled_checkers(self) -> list[str]:
        flags = {
            IS_SYNCING: self.config.syncing,
            NEW_PROPOSAL: self.config.new_proposal,
            MISSED_BLOCK: self.config.missed_block,
            VALIDATOR_STATUS: self.config.validator_status,
            SLASHES: self.config.slashes,
        }
        return [name for name in CHECKER_ORDER if flags[name]]

    def setup(self, on_crash: Optional[CrashHandler] = None) -> None:
        """Spawn one task per enabled checker. Must run inside the event loop."""
        if self._tasks:
            raise RuntimeError(f"check manager for {self.endpoint} is already set up")
        self._on_crash = on_crash

        for name in self.enabled_checkers():
            sender, receiver = channel.new(self.capacity)
            checker = self._build_checker(name, receiver)
            task = asyncio.create_task(checker.run(), name=f"{name} checker ({self.endpoint})")
            task.add_done_callback(self._make_done_callback(name))
            self._senders[name] = sender
            self._tasks[name] = task
            logger.info(f"{name} checker started", endpoint=self.endpoint)

    def _build_checker(self, name: str, receiver: channel.Receiver[Command]) -> Checker[Any]:
        if name == IS_SYNCING:
            return IsSyncingChecker(self.endpoint, self.client, receiver)
        if name == NEW_PROPOSAL:
            return NewProposalChecker(self.endpoint, self.client, receiver)
        if name == MISSED_BLOCK:
            if self.validator_account is None:
                raise ValueError("validator_account is required by the missed block checker")
            return MissedBlockChecker(self.validator_account, self.config.threshold(), self.endpoint, receiver)
        if self.validator_address is None:
            raise ValueError(f"validator_address is required by the {name} checker")
        if name == VALIDATOR_STATUS:
            return ValidatorStatusChecker(self.validator_address, self.endpoint, self.client, receiver)
        if name == SLASHES:
            return SlashesChecker(self.validator_address, self.endpoint, self.client, receiver)
        raise ValueError(f"unknown checker: {name}")

    def _make_done_callback(self, name: str) -> Callable[[asyncio.Task[None]], None]:
        def _on_done(task: asyncio.Task[None]) -> None:
            if task.cancelled():
                return
            exc = task.exception()
            if exc is None:
                return
            crash = CheckerCrashed(name, self.endpoint, exc)
            logger.critical(str(crash), checker=name, endpoint=self.endpoint, exc_info=exc)
            if self._on_crash is not None:
                self._on_crash(crash)

        return _on_done

    def _dispatch(self, name: str, command: Command, failures: list[tuple[str, Exception]]) -> None:
        sender = self._senders.get(name)
        if sender is None:
            return
        try:
            sender.try_send(command)
        except TrySendError as err:
            logger.error(f"failed to dispatch to {name} checker: {err}", checker=name, endpoint=self.endpoint)
            failures.append((name, err))

    async def _fetch_latest_block(self) -> BlockResponse:
        async with self.client.acquire() as client:
            return await client.fetch_latest_block()

    async def _fetch_block(self, height: int) -> BlockResponse:
        async with self.client.acquire() as client:
            return await client.fetch_block_by_height(height)

    async def next(self) -> None:
        """Run one tick.

        Raises ``RpcError`` when the latest block or an intermediate block cannot
        be fetched, after everything dispatchable has been dispatched, and
        ``DispatchError`` when any checker queue refused a command.
        """
        failures: list[tuple[str, Exception]] = []

        if IS_SYNCING in self._senders:
            logger.info("let's check whether the node is syncing...", endpoint=self.endpoint)
            self._dispatch(IS_SYNCING, Check(), failures)
        if VALIDATOR_STATUS in self._senders:
            logger.info("let's check the validator status...", endpoint=self.endpoint)
            self._dispatch(VALIDATOR_STATUS, Check(), failures)

        fetch_error: Optional[RpcError] = None
        try:
            latest = await self._fetch_latest_block()
            latest_height = latest.block.height if latest.block is not None else None
            if latest_height is None:
                raise RpcError("latest block response has no header", endpoint=self.endpoint)
        except RpcError as err:
            self._raise_tick_errors(err, failures)
            return

        from_height = latest_height if self.last_checked_height is None else self.last_checked_height + 1
        if from_height > latest_height:
            logger.debug("no new block since the last tick", endpoint=self.endpoint, height=latest_height)
        else:
            logger.info(
                f"let's check blocks from {from_height} to {latest_height}...",
                endpoint=self.endpoint,
                from_height=from_height,
                to_height=latest_height,
            )

        last_processed: Optional[int] = None
        for height in range(from_height, latest_height + 1):
            if height == latest_height:
                response = latest
            else:
                try:
                    response = await self._fetch_block(height)
                except RpcError as err:
                    fetch_error = err
                    break

            message = BlockMessage.from_response(response)
            self._dispatch(NEW_PROPOSAL, Check(message), failures)
            self._dispatch(MISSED_BLOCK, Check(message), failures)
            self.last_checked_height = height
            last_processed = height

        if SLASHES in self._senders and last_processed is not None:
            logger.info(
                f"let's check slashes between {from_height} and {last_processed}...",
                endpoint=self.endpoint,
            )
            self._dispatch(SLASHES, Check(SlashesRange(from_height, last_processed)), failures)

        self._raise_tick_errors(fetch_error, failures)

    def _raise_tick_errors(self, fetch_error: Optional[RpcError], failures: list[tuple[str, Exception]]) -> None:
        if fetch_error is not None:
            if failures:
                # The fetch error wins; each dispatch failure was logged as it happened.
                raise fetch_error from DispatchError(failures)
            raise fetch_error
        if failures:
            raise DispatchError(failures)

    async def terminate(self) -> None:
        """Stop every checker and return once each loop has exited."""
        if self._terminated:
            return
        self._terminated = True

        for name in CHECKER_ORDER:
            sender = self._senders.pop(name, None)
            task = self._tasks.get(name)
            if sender is None or task is None:
                continue

            if task.done():
                logger.warning(f"{name} checker has already stopped", endpoint=self.endpoint)
                sender.close()
                continue

            ack_sender, ack_receiver = channel.oneshot()
            try:
                await sender.send(Terminate(ack_sender))
            except ChannelClosed:
                logger.warning(f"{name} checker is no longer receiving", endpoint=self.endpoint)
            else:
                await self._wait_for_ack(name, ack_receiver, task)
            finally:
                sender.close()

            # Only awaits loop exit; a crash is reported through the done callback.
            await asyncio.wait({task})
            logger.info(f"{name} checker has been terminated", endpoint=self.endpoint)

    async def _wait_for_ack(self, name: str, ack: OneshotReceiver, task: asyncio.Task[None]) -> None:
        ack_task = asyncio.create_task(ack.wait())
        try:
            await asyncio.wait({ack_task, task}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            if not ack_task.done():
                ack_task.cancel()
        if not ack.received():
            logger.error(f"{name} checker stopped without acknowledging termination", endpoint=self.endpoint)

    @property
    def tasks(self) -> dict[str, asyncio.Task[None]]:
        return dict(self._tasks)
