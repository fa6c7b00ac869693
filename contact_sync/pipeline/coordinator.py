"""
Contact sync pipeline: wires the record source, classifier pool and the
two batch aggregators together and runs the ordered shutdown.

Shutdown order (each step waits for the previous one):
    source exhausted -> intake closed -> classifier workers drained ->
    create/update channels closed -> aggregators final-flush and exit
"""

import asyncio
import time
from collections.abc import Awaitable, Callable, Iterable, Sequence
from dataclasses import dataclass

from contact_sync.infrastructure.observability.logging import get_logger
from contact_sync.models.domain.contact_domain import Contact, PendingUpdate
from contact_sync.pipeline.aggregator import AggregatorStats, BatchAggregator
from contact_sync.pipeline.channel import Channel
from contact_sync.pipeline.classifier import ClassifierPool, LookupFn
from contact_sync.sources.csv_source import RecordSourceError

logger = get_logger(__name__)

BulkCreateFn = Callable[[Sequence[Contact]], Awaitable[None]]
BulkUpdateFn = Callable[[Sequence[PendingUpdate]], Awaitable[None]]

_EXHAUSTED = object()


@dataclass(slots=True)
class PipelineConfig:
    """Batching and concurrency knobs for one pipeline run."""

    batch_size: int = 2
    flush_timeout: float = 60.0
    workers: int = 4
    intake_capacity: int = 100
    create_capacity: int = 500
    update_capacity: int = 500
    lookup_interval: float = 0.0

    @classmethod
    def from_settings(cls, settings) -> "PipelineConfig":
        return cls(**settings.get_pipeline_config())


@dataclass(slots=True)
class PipelineSummary:
    """Outcome of a completed run."""

    records_read: int
    created: int
    updated: int
    dropped: int
    create_stats: AggregatorStats
    update_stats: AggregatorStats
    duration_seconds: float = 0.0

    def to_dict(self) -> dict:
        return {
            "records_read": self.records_read,
            "created": self.created,
            "updated": self.updated,
            "dropped": self.dropped,
            "create_batches": self.create_stats.flushes,
            "create_items_flushed": self.create_stats.items_flushed,
            "create_items_failed": self.create_stats.items_failed,
            "update_batches": self.update_stats.flushes,
            "update_items_flushed": self.update_stats.items_flushed,
            "update_items_failed": self.update_stats.items_failed,
            "duration_seconds": round(self.duration_seconds, 2),
        }


class ContactSyncPipeline:
    """
    One-shot pipeline. Build a new instance for every run; channels are
    closed as part of shutdown and cannot be reused.
    """

    def __init__(
        self,
        lookup: LookupFn,
        bulk_create: BulkCreateFn,
        bulk_update: BulkUpdateFn,
        config: PipelineConfig | None = None,
    ):
        self.config = config or PipelineConfig()
        self.intake: Channel[Contact] = Channel(self.config.intake_capacity, name="intake")
        self.create_queue: Channel[Contact] = Channel(self.config.create_capacity, name="create")
        self.update_queue: Channel[PendingUpdate] = Channel(
            self.config.update_capacity, name="update"
        )
        self.pool = ClassifierPool(lookup, self.config.workers, self.config.lookup_interval)
        self.create_aggregator: BatchAggregator[Contact] = BatchAggregator(
            "create", self.create_queue, bulk_create, self.config.batch_size, self.config.flush_timeout
        )
        self.update_aggregator: BatchAggregator[PendingUpdate] = BatchAggregator(
            "update", self.update_queue, bulk_update, self.config.batch_size, self.config.flush_timeout
        )
        self.records_read = 0

    @classmethod
    def from_client(cls, client, config: PipelineConfig | None = None) -> "ContactSyncPipeline":
        """Build a pipeline backed by a DirectoryClient."""
        return cls(client.search_contact, client.bulk_create, client.bulk_update, config)

    async def run(self, source: Iterable[Contact]) -> PipelineSummary:
        """
        Push every contact from source through the pipeline.

        Returns:
            PipelineSummary: Counts of routed, flushed and dropped records

        Raises:
            RecordSourceError: If the source fails; the run is aborted
        """
        start_time = time.monotonic()
        logger.info("Starting contact sync pipeline", **_config_fields(self.config))

        aggregators = [
            asyncio.create_task(self.create_aggregator.run(), name="create-aggregator"),
            asyncio.create_task(self.update_aggregator.run(), name="update-aggregator"),
        ]
        self.pool.start(self.intake, self.create_queue, self.update_queue)

        try:
            await self._feed(source)
            self.intake.close()

            await self.pool.wait()
            logger.info("All lookups done, closing batch queues")

            self.create_queue.close()
            self.update_queue.close()
            await asyncio.gather(*aggregators)
        except BaseException as e:
            logger.error(
                "Contact sync pipeline aborted",
                error=str(e) or type(e).__name__,
                error_type=type(e).__name__,
                records_read=self.records_read,
            )
            await self._abort(aggregators)
            raise

        summary = self._summary(time.monotonic() - start_time)
        logger.info("All contacts processed", **summary.to_dict())
        return summary

    async def _feed(self, source: Iterable[Contact]) -> None:
        """
        Copy the source into the intake channel; blocks while intake is full.

        Records are pulled in a worker thread so file reads never stall the
        event loop.
        """
        iterator = iter(source)
        while True:
            try:
                contact = await asyncio.to_thread(next, iterator, _EXHAUSTED)
            except RecordSourceError:
                raise
            except Exception as e:
                raise RecordSourceError(f"Record source failed: {e}") from e

            if contact is _EXHAUSTED:
                break

            await self.intake.put(contact)
            self.records_read += 1

        logger.info("Record source exhausted", records_read=self.records_read)

    async def _abort(self, aggregators: list[asyncio.Task]) -> None:
        """Stop the workers, then let both aggregators flush what they hold."""
        self.intake.close()
        await self.pool.cancel()
        for task in aggregators:
            task.cancel()
        await asyncio.gather(*aggregators, return_exceptions=True)

    def _summary(self, duration_seconds: float) -> PipelineSummary:
        return PipelineSummary(
            records_read=self.records_read,
            created=self.pool.stats.created,
            updated=self.pool.stats.updated,
            dropped=self.pool.stats.dropped,
            create_stats=self.create_aggregator.stats,
            update_stats=self.update_aggregator.stats,
            duration_seconds=duration_seconds,
        )


def _config_fields(config: PipelineConfig) -> dict:
    return {
        "batch_size": config.batch_size,
        "flush_timeout": config.flush_timeout,
        "workers": config.workers,
        "lookup_interval": config.lookup_interval,
    }
