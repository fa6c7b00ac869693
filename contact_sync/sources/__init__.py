"""
Record sources feeding the sync pipeline.
"""

from contact_sync.sources.csv_source import CsvContactSource, RecordSource, RecordSourceError

__all__ = ["CsvContactSource", "RecordSource", "RecordSourceError"]
