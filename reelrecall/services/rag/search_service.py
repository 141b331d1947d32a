"""
Search orchestration.

    raw query -> QueryEnhancer -> EmbeddingService (once, on enhanced text)
              -> MultiStageRetriever -> CrossChunkAggregator -> HybridReranker

The user id is the vector store namespace, so a search can only ever see
the caller's own videos.
"""

import logging
from dataclasses import dataclass, field
from typing import List

from reelrecall.core.config import settings
from reelrecall.schemas.search import AggregatedResult, EnhancedQuery
from reelrecall.services.processors.embedder import EmbeddingService
from reelrecall.services.rag.aggregator import CrossChunkAggregator
from reelrecall.services.rag.query_service import QueryEnhancer
from reelrecall.services.rag.reranker import HybridReranker
from reelrecall.services.rag.retriever import MultiStageRetriever

logger = logging.getLogger(__name__)


@dataclass
class SearchOutcome:
    enhanced_query: EnhancedQuery
    stage: str
    results: List[AggregatedResult] = field(default_factory=list)


class SearchService:
    """
    Retrieval entry point.

    Usage:
    ------
    search = SearchService(enhancer, embedder, retriever)
    results = await search.search("user_123", "How do you make pizza dough?")
    """

    def __init__(
        self,
        enhancer: QueryEnhancer,
        embedder: EmbeddingService,
        retriever: MultiStageRetriever,
        aggregator: CrossChunkAggregator = None,
        reranker: HybridReranker = None,
        min_score: float = None,
    ):
        self.enhancer = enhancer
        self.embedder = embedder
        self.retriever = retriever
        self.aggregator = aggregator or CrossChunkAggregator()
        self.reranker = reranker or HybridReranker()
        self.min_score = settings.RAG_SEARCH_MIN_SCORE if min_score is None else min_score

    async def search(self, user_id: str, query: str, top_k: int = 5) -> List[AggregatedResult]:
        """
        Ranked videos for ``query`` in the user's namespace.

        Args:
            user_id: Owner namespace
            query: Natural-language request
            top_k: Videos to keep after aggregation (re-ranking caps at 5)

        Returns:
            AggregatedResults after re-ranking, best first
        """
        outcome = await self.search_with_details(user_id, query, top_k)
        return outcome.results

    async def search_with_details(self, user_id: str, query: str, top_k: int = 5) -> SearchOutcome:
        """Same as ``search`` but also reports the enhanced query and retrieval stage."""
        if not user_id:
            raise ValueError("user_id is required")

        enhanced = await self.enhancer.enhance(query)
        query_vector = await self.embedder.embed_text(enhanced.search_text)

        retrieval = await self.retriever.retrieve(
            namespace=user_id,
            query_vector=query_vector,
            enhanced_query=enhanced,
            k=top_k,
        )

        aggregated = self.aggregator.aggregate(retrieval.matches, top_k=top_k)
        ranked = self.reranker.rerank(aggregated, enhanced)
        if self.min_score is None:
            results = ranked
        else:
            results = [r for r in ranked if r.max_score >= self.min_score]

        logger.info(
            f"Search for user {user_id}: stage={retrieval.stage}, "
            f"matches={len(retrieval.matches)}, videos={len(results)}, "
            f"fallback_enhancement={enhanced.fallback}"
        )
        return SearchOutcome(enhanced_query=enhanced, stage=retrieval.stage, results=results)
