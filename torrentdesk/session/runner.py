"""Session loop: periodic ticks and metadata completions."""

import asyncio
from typing import Dict, List, Optional

from ..engine.base import DownloadEngine
from ..utils.logger import logger
from .coordinator import SessionCoordinator
from .models import ChangeEvent, ChangeKind, TorrentRow


class SessionRunner:
    """
    Drives a SessionCoordinator on the running event loop.

    Metadata waits run as detached tasks and post their identity onto an
    inbox; the session task consumes the inbox between ticks, so the
    coordinator only ever runs one operation at a time.
    """

    def __init__(self, coordinator: SessionCoordinator, engine: Optional[DownloadEngine] = None):
        """
        Initialize runner.

        Args:
            coordinator: Coordinator to drive
            engine: Engine to refresh before each tick (defaults to the coordinator's)
        """
        self.coordinator = coordinator
        self.engine = engine or coordinator.engine
        self.rows: List[TorrentRow] = []
        self._running = False
        self._task: Optional[asyncio.Task] = None
        self._inbox: "asyncio.Queue[str]" = asyncio.Queue()
        self._waiters: Dict[str, asyncio.Task] = {}
        self._unsubscribe = None

    @property
    def running(self) -> bool:
        return self._running

    async def start(self):
        """Start the session loop."""
        if self._running:
            return

        self._running = True
        self._unsubscribe = self.coordinator.subscribe(self._on_change)
        self._task = asyncio.create_task(self._run())
        logger.info("Session loop started")

    async def stop(self):
        """Stop the session loop and abandon pending metadata waits."""
        self._running = False
        if self._unsubscribe:
            self._unsubscribe()
            self._unsubscribe = None

        for waiter in self._waiters.values():
            waiter.cancel()
        if self._waiters:
            await asyncio.gather(*self._waiters.values(), return_exceptions=True)
        self._waiters.clear()

        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("Session loop stopped")

    def _on_change(self, event: ChangeEvent):
        if event.kind is ChangeKind.ADDED and event.identity:
            self.watch_metadata(event.identity)

    def watch_metadata(self, identity: str):
        """Start a detached wait for the torrent's metadata."""
        if identity in self._waiters:
            return
        self._waiters[identity] = asyncio.create_task(self._wait_metadata(identity))

    async def _wait_metadata(self, identity: str):
        try:
            await self.engine.metadata_ready(identity)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"Metadata wait failed for {identity}: {e}", extra={"identity": identity})
            return
        finally:
            self._waiters.pop(identity, None)

        self._inbox.put_nowait(identity)

    async def _run(self):
        """Main session loop."""
        loop = asyncio.get_running_loop()
        interval = self.coordinator.tick_interval
        deadline = loop.time() + interval

        while self._running:
            try:
                timeout = max(0.0, deadline - loop.time())
                try:
                    identity = await asyncio.wait_for(self._inbox.get(), timeout)
                except asyncio.TimeoutError:
                    deadline = loop.time() + interval
                    await self.tick()
                    continue

                self.coordinator.metadata_resolved(identity)
                # Deliver completions that arrived together in one batch
                await self.drain()

            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error(f"Error in session loop: {e}", exc_info=True)

    async def tick(self) -> List[TorrentRow]:
        """Refresh the engine snapshot and tick the coordinator."""
        await self.engine.refresh()
        self.rows = self.coordinator.tick()
        return self.rows

    async def drain(self):
        """Deliver every metadata completion already posted."""
        while not self._inbox.empty():
            self.coordinator.metadata_resolved(self._inbox.get_nowait())
