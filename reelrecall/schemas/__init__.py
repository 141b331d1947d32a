"""
Pydantic schemas for request/response validation.

Import all schemas here for easy access.
"""

from reelrecall.schemas.analysis import (
    AudioSummary,
    SourceAnalysis,
    SubmissionMetadata,
    TechnicalDetails,
    TopicEntry,
    VisualEntry,
)
from reelrecall.schemas.chunk import Chunk, ChunkMetadata, MatchResult, VectorRecord
from reelrecall.schemas.job import IngestionJob, JobStatus, SubmitResult
from reelrecall.schemas.search import AggregatedResult, EnhancedQuery, TemporalContext

__all__ = [
    # Analysis
    "SourceAnalysis",
    "VisualEntry",
    "AudioSummary",
    "TopicEntry",
    "TechnicalDetails",
    "SubmissionMetadata",
    # Chunks and records
    "Chunk",
    "ChunkMetadata",
    "VectorRecord",
    "MatchResult",
    # Search
    "EnhancedQuery",
    "TemporalContext",
    "AggregatedResult",
    # Jobs
    "IngestionJob",
    "JobStatus",
    "SubmitResult",
]
