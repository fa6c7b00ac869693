"""
Classifier pool: looks each contact up in the directory and routes it to
the create or update channel.

The directory lookup is serialized process-wide with a single lock and
optionally paced, which is how the pipeline keeps under the search
endpoint's request rate. Only the lookup runs under the lock.
"""

import asyncio
from collections.abc import Awaitable, Callable

from contact_sync.infrastructure.observability.logging import get_logger
from contact_sync.models.domain.contact_domain import Contact, PendingUpdate
from contact_sync.pipeline.channel import Channel
from contact_sync.services.directory_client import DirectoryAuthError

logger = get_logger(__name__)

# phone -> remote id, or None when the directory has no match
LookupFn = Callable[[str], Awaitable[str | None]]

ROUTE_CREATE = "create"
ROUTE_UPDATE = "update"
ROUTE_DROPPED = "dropped"


class ClassifierStats:
    """Routing counters across all workers."""

    def __init__(self):
        self.processed = 0
        self.created = 0
        self.updated = 0
        self.dropped = 0

    def record(self, route: str) -> None:
        self.processed += 1
        if route == ROUTE_CREATE:
            self.created += 1
        elif route == ROUTE_UPDATE:
            self.updated += 1
        else:
            self.dropped += 1

    def to_dict(self) -> dict:
        return {
            "processed": self.processed,
            "created": self.created,
            "updated": self.updated,
            "dropped": self.dropped,
        }


class ClassifierPool:
    """Fixed-size pool of workers draining the intake channel."""

    def __init__(self, lookup: LookupFn, workers: int, lookup_interval: float = 0.0):
        if workers < 1:
            raise ValueError(f"workers must be at least 1, got {workers}")
        if lookup_interval < 0:
            raise ValueError(f"lookup_interval cannot be negative, got {lookup_interval}")

        self.workers = workers
        self.lookup_interval = lookup_interval
        self.stats = ClassifierStats()
        self._lookup = lookup
        self._lookup_lock = asyncio.Lock()
        self._last_lookup_done: float | None = None
        self._tasks: list[asyncio.Task] = []

    def start(
        self,
        intake: Channel[Contact],
        create_out: Channel[Contact],
        update_out: Channel[PendingUpdate],
    ) -> None:
        """Spawn the worker tasks. Call once, from inside the event loop."""
        if self._tasks:
            raise RuntimeError("Classifier pool already started")

        self._tasks = [
            asyncio.create_task(
                self._worker(worker_id, intake, create_out, update_out),
                name=f"classifier-{worker_id}",
            )
            for worker_id in range(self.workers)
        ]
        logger.info("Started classifier workers", workers=self.workers)

    async def wait(self) -> None:
        """Return once every worker has drained the closed intake channel and exited."""
        await asyncio.gather(*self._tasks)
        logger.info("All classifier workers finished", **self.stats.to_dict())

    async def cancel(self) -> None:
        """Cancel all workers and wait for them to unwind."""
        for task in self._tasks:
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)

    async def _worker(
        self,
        worker_id: int,
        intake: Channel[Contact],
        create_out: Channel[Contact],
        update_out: Channel[PendingUpdate],
    ) -> None:
        logger.debug("Classifier worker started", worker=worker_id)
        async for contact in intake:
            await self.classify(contact, create_out, update_out)
        logger.debug("Classifier worker finished", worker=worker_id)

    async def classify(
        self,
        contact: Contact,
        create_out: Channel[Contact],
        update_out: Channel[PendingUpdate],
    ) -> str:
        """
        Route a single contact.

        Lookup failures drop the contact: it is logged and not retried.

        Returns:
            str: The route taken (create, update or dropped)
        """
        try:
            remote_id = await self.lookup(contact.phone)
        except DirectoryAuthError as e:
            self.stats.record(ROUTE_DROPPED)
            logger.error(
                "Lookup unauthorized, dropping contact",
                phone=contact.phone,
                error=str(e),
                status_code=e.status_code,
            )
            return ROUTE_DROPPED
        except Exception as e:
            self.stats.record(ROUTE_DROPPED)
            logger.error(
                "Lookup failed, dropping contact",
                phone=contact.phone,
                error=str(e),
                error_type=type(e).__name__,
                status_code=getattr(e, "status_code", None),
            )
            return ROUTE_DROPPED

        if remote_id is not None:
            logger.info("Contact found, queuing update", phone=contact.phone, contact_id=remote_id)
            await update_out.put(PendingUpdate(remote_id=remote_id, contact=contact))
            self.stats.record(ROUTE_UPDATE)
            return ROUTE_UPDATE

        logger.info("Contact not found, queuing create", phone=contact.phone)
        await create_out.put(contact)
        self.stats.record(ROUTE_CREATE)
        return ROUTE_CREATE

    async def lookup(self, phone: str) -> str | None:
        """Run the lookup with at most one call in flight across the pool."""
        async with self._lookup_lock:
            loop = asyncio.get_running_loop()
            if self.lookup_interval and self._last_lookup_done is not None:
                wait = self._last_lookup_done + self.lookup_interval - loop.time()
                if wait > 0:
                    await asyncio.sleep(wait)
            try:
                return await self._lookup(phone)
            finally:
                self._last_lookup_done = loop.time()
