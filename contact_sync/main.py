"""
Contact sync runner.

Reads the CSV path from CLI args or the CSV_FILE_PATH setting, runs the
pipeline against the configured directory and exits non-zero on a fatal
error.
"""

import asyncio
import sys

from contact_sync.config import Settings, settings
from contact_sync.infrastructure.observability.logging import get_logger, setup_logging
from contact_sync.pipeline.coordinator import ContactSyncPipeline, PipelineConfig, PipelineSummary
from contact_sync.services.directory_client import DirectoryClient
from contact_sync.sources.csv_source import CsvContactSource, RecordSourceError

logger = get_logger(__name__)


def _resolve_csv_path(argv: list[str] | None = None) -> str:
    """Pick the input file from CLI args or the CSV_FILE_PATH setting."""
    args = sys.argv[1:] if argv is None else argv
    if args:
        return args[0].strip()
    return settings.CSV_FILE_PATH


async def run_sync(csv_path: str, config: Settings | None = None) -> PipelineSummary:
    """Run one sync of csv_path against the directory."""
    config = config or settings
    if not config.DIRECTORY_API_KEY:
        raise ValueError("DIRECTORY_API_KEY is not set. Add it to the environment or .env.local.")

    async with DirectoryClient(
        config.DIRECTORY_BASE_URL,
        config.DIRECTORY_API_KEY,
        timeout=config.REQUEST_TIMEOUT_SECONDS,
    ) as client:
        pipeline = ContactSyncPipeline.from_client(client, PipelineConfig.from_settings(config))
        source = CsvContactSource(csv_path)

        if config.RUN_TIMEOUT_SECONDS:
            async with asyncio.timeout(config.RUN_TIMEOUT_SECONDS):
                return await pipeline.run(source)
        return await pipeline.run(source)


def main() -> None:
    """CLI entrypoint."""
    setup_logging(log_level=settings.LOG_LEVEL)
    csv_path = _resolve_csv_path()
    logger.info("Starting contact sync", csv_path=csv_path, environment=settings.environment)

    try:
        summary = asyncio.run(run_sync(csv_path))
    except RecordSourceError as e:
        logger.error("Contact sync failed reading input", error=str(e), source=e.source)
        sys.exit(1)
    except TimeoutError:
        logger.error("Contact sync exceeded run timeout", timeout_seconds=settings.RUN_TIMEOUT_SECONDS)
        sys.exit(1)
    except ValueError as e:
        logger.error("Contact sync misconfigured", error=str(e))
        sys.exit(1)

    print(
        f"All contacts processed: {summary.created} created, "
        f"{summary.updated} updated, {summary.dropped} dropped."
    )


if __name__ == "__main__":
    main()
