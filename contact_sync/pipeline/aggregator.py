"""
Batch aggregator: accumulates items from a channel and hands them to a
bulk call when the batch is full, when the flush timer fires, or when the
channel closes.

One aggregator runs as one task and is the only owner of its batch, so a
size flush and a timer flush can never overlap.
"""

import asyncio
from collections.abc import Awaitable, Callable, Sequence
from typing import Generic, TypeVar

from contact_sync.infrastructure.observability.logging import get_logger
from contact_sync.pipeline.channel import Channel, ChannelClosedError

logger = get_logger(__name__)

T = TypeVar("T")

FlushFn = Callable[[Sequence[T]], Awaitable[None]]

# Flush triggers
FLUSH_SIZE = "size"
FLUSH_TIMER = "timer"
FLUSH_CLOSED = "closed"
FLUSH_CANCELLED = "cancelled"


class AggregatorStats:
    """Flush counters for one aggregator."""

    def __init__(self):
        self.flushes = 0
        self.items_flushed = 0
        self.failed_flushes = 0
        self.items_failed = 0
        self.by_reason: dict[str, int] = {}

    def record_flush(self, size: int, reason: str, success: bool) -> None:
        self.flushes += 1
        self.by_reason[reason] = self.by_reason.get(reason, 0) + 1
        if success:
            self.items_flushed += size
        else:
            self.failed_flushes += 1
            self.items_failed += size

    def to_dict(self) -> dict:
        return {
            "flushes": self.flushes,
            "items_flushed": self.items_flushed,
            "failed_flushes": self.failed_flushes,
            "items_failed": self.items_failed,
            "by_reason": dict(self.by_reason),
        }


class BatchAggregator(Generic[T]):
    """
    Size-or-timeout batcher for one destination.

    The flush timer is recurring with period flush_timeout. A size-triggered
    flush restarts the period so a full batch is not followed by a spurious
    timer flush of the emptied batch.
    """

    def __init__(
        self,
        name: str,
        channel: Channel[T],
        flush_fn: FlushFn,
        batch_size: int,
        flush_timeout: float,
    ):
        if batch_size < 1:
            raise ValueError(f"batch_size must be at least 1, got {batch_size}")
        if flush_timeout <= 0:
            raise ValueError(f"flush_timeout must be positive, got {flush_timeout}")

        self.name = name
        self.batch_size = batch_size
        self.flush_timeout = flush_timeout
        self.stats = AggregatorStats()
        self._channel = channel
        self._flush_fn = flush_fn
        self._batch: list[T] = []

    @property
    def pending(self) -> int:
        """Items accumulated and not yet flushed."""
        return len(self._batch)

    async def run(self) -> AggregatorStats:
        """
        Consume the channel until it is closed, then flush what remains.

        Cancelling the task also performs a final flush before the
        cancellation propagates.
        """
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.flush_timeout
        receive: asyncio.Future | None = None

        logger.info(
            "Aggregator started",
            aggregator=self.name,
            batch_size=self.batch_size,
            flush_timeout=self.flush_timeout,
        )

        try:
            while True:
                if receive is None:
                    receive = asyncio.ensure_future(self._channel.get())

                # wait() leaves the pending get() intact on timeout, so no item is lost
                done, _ = await asyncio.wait({receive}, timeout=max(0.0, deadline - loop.time()))
                if not done:
                    await self.flush(FLUSH_TIMER)
                    deadline = loop.time() + self.flush_timeout
                    continue

                try:
                    item = receive.result()
                except ChannelClosedError:
                    receive = None
                    await self.flush(FLUSH_CLOSED)
                    logger.info("Aggregator done", aggregator=self.name, **self.stats.to_dict())
                    return self.stats
                receive = None

                self._batch.append(item)
                if len(self._batch) >= self.batch_size:
                    await self.flush(FLUSH_SIZE)
                    deadline = loop.time() + self.flush_timeout

        except asyncio.CancelledError:
            if receive is not None:
                if receive.done() and not receive.cancelled() and receive.exception() is None:
                    self._batch.append(receive.result())
                else:
                    receive.cancel()
            await self.flush(FLUSH_CANCELLED)
            logger.warning("Aggregator cancelled", aggregator=self.name, **self.stats.to_dict())
            raise

    async def flush(self, reason: str) -> bool:
        """
        Send the current batch to flush_fn.

        Empty batches are never sent. The batch is cleared whether or not
        the call succeeds; failed batches are logged and discarded.

        Returns:
            bool: True if a batch was sent successfully
        """
        if not self._batch:
            return False

        batch, self._batch = self._batch, []
        logger.info(
            "Flushing batch", aggregator=self.name, batch_size=len(batch), reason=reason
        )

        try:
            await self._flush_fn(batch)
        except Exception as e:
            self.stats.record_flush(len(batch), reason, success=False)
            logger.error(
                "Bulk call failed, batch discarded",
                aggregator=self.name,
                batch_size=len(batch),
                reason=reason,
                error=str(e),
                error_type=type(e).__name__,
                status_code=getattr(e, "status_code", None),
            )
            return False

        self.stats.record_flush(len(batch), reason, success=True)
        return True
