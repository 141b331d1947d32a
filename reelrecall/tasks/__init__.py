"""
Background processing.
"""

from reelrecall.tasks.ingestion_queue import IngestionJobQueue

__all__ = ["IngestionJobQueue"]
