"""
CSV contact source.

Streams Contact records from a CSV export one row at a time so the
pipeline's intake queue applies backpressure to file reading.
"""

import csv
from collections.abc import Iterator
from pathlib import Path
from typing import Protocol

from contact_sync.infrastructure.observability.logging import get_logger
from contact_sync.models.domain.contact_domain import Contact

logger = get_logger(__name__)

# Header name -> Contact field, in the export's column order
CSV_COLUMNS = {
    "MOBILE": "phone",
    "FIRST_NAME": "first_name",
    "LAST_NAME": "last_name",
    "RASHI": "rashi",
    "AGE": "age",
}


class RecordSourceError(Exception):
    """The record source could not be read. Fatal for a pipeline run."""

    def __init__(self, message: str, source: str | None = None):
        super().__init__(message)
        self.source = source


class RecordSource(Protocol):
    """A lazy, finite, single-pass stream of contacts."""

    def __iter__(self) -> Iterator[Contact]: ...


class CsvContactSource:
    """Reads contacts from a CSV file with a header row."""

    def __init__(self, path: str | Path, encoding: str = "utf-8-sig"):
        self.path = Path(path)
        self.encoding = encoding
        self.rows_read = 0
        self.skipped_rows = 0

    def __iter__(self) -> Iterator[Contact]:
        logger.info("Starting CSV read", path=str(self.path))
        try:
            handle = self.path.open(newline="", encoding=self.encoding)
        except OSError as e:
            raise RecordSourceError(f"Cannot open CSV file: {e}", source=str(self.path)) from e

        with handle:
            reader = csv.reader(handle)
            try:
                header = next(reader)
            except StopIteration:
                raise RecordSourceError("CSV file is empty", source=str(self.path)) from None
            except (csv.Error, UnicodeDecodeError) as e:
                raise RecordSourceError(f"Cannot read CSV header: {e}", source=str(self.path)) from e

            positions = self._resolve_positions(header)

            row_num = 1
            while True:
                try:
                    row = next(reader)
                except StopIteration:
                    break
                except csv.Error as e:
                    row_num += 1
                    self.skipped_rows += 1
                    logger.warning("Skipping unreadable CSV row", row=row_num, error=str(e))
                    continue
                except UnicodeDecodeError as e:
                    raise RecordSourceError(
                        f"CSV file is not valid {self.encoding}: {e}", source=str(self.path)
                    ) from e

                row_num += 1
                if not any(cell.strip() for cell in row):
                    continue

                contact = self._to_contact(row, positions)
                if contact is None:
                    self.skipped_rows += 1
                    logger.warning("Skipping CSV row without a phone number", row=row_num)
                    continue

                self.rows_read += 1
                logger.debug("Queuing contact", row=row_num, phone=contact.phone)
                yield contact

        logger.info(
            "Finished reading CSV",
            path=str(self.path),
            rows_read=self.rows_read,
            skipped_rows=self.skipped_rows,
        )

    def _resolve_positions(self, header: list[str]) -> dict[str, int]:
        """Map Contact fields to column indexes, by header name or by position."""
        normalized = [h.strip().upper() for h in header]
        positions = {
            field: normalized.index(name)
            for name, field in CSV_COLUMNS.items()
            if name in normalized
        }
        if not positions:
            logger.warning("CSV header has no known column names, using column order", header=header)
            return {field: i for i, field in enumerate(CSV_COLUMNS.values())}
        if "phone" not in positions:
            raise RecordSourceError("CSV header has no MOBILE column", source=str(self.path))
        return positions

    @staticmethod
    def _to_contact(row: list[str], positions: dict[str, int]) -> Contact | None:
        values = {
            field: row[index].strip() if index < len(row) else ""
            for field, index in positions.items()
        }
        if not values.get("phone"):
            return None
        return Contact(**values)
