"""Debounced background push of local changes."""
import asyncio
import logging
from typing import Callable, Optional, Set

from activevocab.config import settings
from activevocab.exceptions import ActiveVocabError, NotAuthenticatedError
from activevocab.services.local_store import LOCAL, LocalStore, StoreEvent
from activevocab.services.sync_service import SyncService

logger = logging.getLogger(__name__)


class AutoSyncService:
    """Pushes the store to the remote store shortly after local mutations.

    Bursts of mutations inside the debounce window collapse into a single
    push. A push that has started is never cancelled.
    """

    def __init__(self, store: LocalStore, sync: SyncService, debounce_seconds: Optional[float] = None):
        self.store = store
        self.sync = sync
        self.debounce_seconds = settings.sync.debounce_seconds if debounce_seconds is None else debounce_seconds
        self.running = False
        self.pushes = 0
        self.tasks: Set[asyncio.Task] = set()
        self._timer: Optional[asyncio.Task] = None
        self._unsubscribe: Optional[Callable[[], None]] = None

    async def start(self) -> None:
        """Start listening for store mutations."""
        if self.running:
            return
        self.running = True
        self._unsubscribe = self.store.subscribe(self._on_event)
        logger.info(f"Auto-sync started (debounce {self.debounce_seconds}s)")

    async def stop(self) -> None:
        """Stop listening; a pending push that has not started is dropped."""
        if not self.running:
            return
        self.running = False
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        await asyncio.gather(*self.tasks, return_exceptions=True)
        self.tasks.clear()
        logger.info("Auto-sync stopped")

    async def wait_idle(self) -> None:
        """Wait for scheduled pushes to finish."""
        while self.tasks:
            await asyncio.gather(*list(self.tasks), return_exceptions=True)

    def _on_event(self, event: StoreEvent) -> None:
        if not self.running or event.origin != LOCAL:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug(f"No running event loop, {event.kind} change will sync on the next push")
            return

        if self._timer is not None:
            self._timer.cancel()
        task = loop.create_task(self._push_later())
        self.tasks.add(task)
        task.add_done_callback(self.tasks.discard)
        self._timer = task

    async def _push_later(self) -> None:
        await asyncio.sleep(self.debounce_seconds)
        # Past the debounce window the push can no longer be cancelled
        if self._timer is asyncio.current_task():
            self._timer = None
        try:
            report = await self.sync.push_all()
            self.pushes += 1
            if not report.ok:
                logger.warning(f"Auto-sync push had failures: {report.failures}")
        except NotAuthenticatedError:
            logger.debug("Auto-sync skipped, no signed-in user")
        except ActiveVocabError as e:
            logger.error(f"Auto-sync push failed: {e}")
