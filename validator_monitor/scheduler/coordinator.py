"""Top-level tick loop over every configured endpoint."""

from __future__ import annotations

import asyncio
import signal
from typing import Optional

import structlog

from ..config import ApplicationConfig
from ..errors import CheckerCrashed, DispatchError, RpcError
from ..rpc.pool import ClientPool
from .check_manager import CheckManager

logger = structlog.get_logger(__name__)

SHUTDOWN_SIGNALS = (signal.SIGINT, signal.SIGTERM)


class Coordinator:
    """Ticks every ``CheckManager`` on a fixed interval until asked to stop.

    The first tick runs immediately. SIGINT and SIGTERM (when ``handle_signals``
    is set) and ``request_stop`` end the loop between ticks; a crashed checker
    ends it too, and ``run`` then raises ``CheckerCrashed`` once every manager
    has been terminated.
    """

    def __init__(self, config: ApplicationConfig, pool: ClientPool, *, handle_signals: bool = True):
        self.config = config
        self.interval = config.interval_seconds
        self.handle_signals = handle_signals
        self.managers = [CheckManager(checker, pool.get(checker.endpoint)) for checker in config.checkers]
        self.ticks = 0

        self._stop: Optional[asyncio.Event] = None
        self._stop_requested = False
        self._crash: Optional[CheckerCrashed] = None

    def request_stop(self) -> None:
        self._stop_requested = True
        if self._stop is not None:
            self._stop.set()

    def _on_crash(self, crash: CheckerCrashed) -> None:
        if self._crash is None:
            self._crash = crash
        self.request_stop()

    def _on_signal(self, sig: signal.Signals) -> None:
        logger.info(f"received {sig.name}, shutting down...")
        self.request_stop()

    def _install_signal_handlers(self, loop: asyncio.AbstractEventLoop) -> list[signal.Signals]:
        installed = []
        for sig in SHUTDOWN_SIGNALS:
            try:
                loop.add_signal_handler(sig, self._on_signal, sig)
            except (NotImplementedError, ValueError, RuntimeError):
                logger.warning(f"cannot install a handler for {sig.name} on this platform")
                continue
            installed.append(sig)
        return installed

    async def tick(self) -> None:
        self.ticks += 1
        for manager in self.managers:
            try:
                await manager.next()
            except RpcError as err:
                logger.error(f"tick failed: {err}", endpoint=manager.endpoint)
            except DispatchError:
                # Each failed delivery was already logged by the manager.
                continue

    async def run(self, once: bool = False) -> None:
        """Tick until stopped. With ``once`` a single tick runs before shutdown."""
        loop = asyncio.get_running_loop()
        self._stop = asyncio.Event()
        if self._stop_requested:
            self._stop.set()

        installed = self._install_signal_handlers(loop) if self.handle_signals else []
        try:
            for manager in self.managers:
                manager.setup(on_crash=self._on_crash)

            logger.info(
                "validator monitor started",
                endpoints=[manager.endpoint for manager in self.managers],
                interval=self.config.interval,
            )
            while not self._stop.is_set():
                await self.tick()
                if once:
                    break
                try:
                    await asyncio.wait_for(self._stop.wait(), timeout=self.interval)
                except asyncio.TimeoutError:
                    continue
        finally:
            for manager in self.managers:
                await manager.terminate()
            for sig in installed:
                loop.remove_signal_handler(sig)
            logger.info("validator monitor stopped", ticks=self.ticks)

        if self._crash is not None:
            raise self._crash
