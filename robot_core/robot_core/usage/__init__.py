"""Robot usage-log ingestion."""

from robot_core.usage.ingestion import UsageLogIngestor, parse_entries

__all__ = ["UsageLogIngestor", "parse_entries"]
