"""
Ingestion Pipeline

    SourceAnalysis -> VideoChunkBuilder -> EmbeddingService (parallel fan-out)
                   -> VectorStore.upsert (namespace = user id)

Failures propagate unchanged; the ingestion queue owns retries.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional

from reelrecall.core.exceptions import ConfigurationError
from reelrecall.schemas.analysis import SourceAnalysis, SubmissionMetadata
from reelrecall.schemas.chunk import VectorRecord
from reelrecall.services.processors.chunker import VideoChunkBuilder
from reelrecall.services.processors.embedder import EmbeddingService
from reelrecall.services.vector_store.base import VectorStore
from reelrecall.services.video_analysis import VideoAnalyzer

logger = logging.getLogger(__name__)


@dataclass
class IngestionResult:
    video_id: str
    chunk_ids: List[str] = field(default_factory=list)


class IngestionService:
    """
    Usage:
    ------
    ingestion = IngestionService(chunk_builder, embedder, vector_store, analyzer)
    result = await ingestion.process_video("user_123", url, metadata)
    """

    def __init__(
        self,
        chunk_builder: VideoChunkBuilder,
        embedder: EmbeddingService,
        vector_store: VectorStore,
        analyzer: Optional[VideoAnalyzer] = None,
    ):
        self.chunk_builder = chunk_builder
        self.embedder = embedder
        self.vector_store = vector_store
        self.analyzer = analyzer

    async def ingest(
        self,
        user_id: str,
        video_url: str,
        analysis: SourceAnalysis,
        metadata: Optional[SubmissionMetadata] = None,
    ) -> IngestionResult:
        """Chunk, embed and store one analyzed video."""
        chunks = self.chunk_builder.build_chunks(user_id, video_url, analysis, metadata)
        embeddings = await self.embedder.embed_texts_batch([c.content for c in chunks])

        records = [
            VectorRecord.from_chunk(chunk, vector)
            for chunk, vector in zip(chunks, embeddings)
        ]
        await self.vector_store.upsert(user_id, records)

        video_id = chunks[0].metadata.video_id
        logger.info(f"Ingested video {video_id} for user {user_id} ({len(records)} records)")
        return IngestionResult(video_id=video_id, chunk_ids=[c.id for c in chunks])

    async def process_video(
        self,
        user_id: str,
        video_url: str,
        metadata: Optional[SubmissionMetadata] = None,
        analysis: Optional[SourceAnalysis] = None,
    ) -> IngestionResult:
        """
        Analyze (unless an analysis is supplied) and ingest one video.

        Raises:
            ConfigurationError: No analysis supplied and no analyzer configured
        """
        if analysis is None:
            if self.analyzer is None:
                raise ConfigurationError(
                    "No video analyzer configured; submit a precomputed analysis "
                    "or set VIDEO_ANALYSIS_URL"
                )
            analysis = await self.analyzer.analyze(video_url)

        return await self.ingest(user_id, video_url, analysis, metadata)
