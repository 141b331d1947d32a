"""
Multi-Stage Retriever for RAG

This module runs a tiered fallback vector search. Each stage is tried only
when the previous one produced no matches:

1. Filtered search
   - requires non-empty title and summary metadata
   - AND a topic, visual-element or keyword match from the EnhancedQuery
   - AND, for "recent" queries, processedAt within RAG_RECENT_DAYS
2. Metadata-existence fallback
   - only the title/summary requirement
3. Pure vector fallback
   - no filter at all

All stages over-fetch (``top_k = k * RAG_OVERFETCH_FACTOR``) because several
chunks of one video tend to match together and are collapsed later by the
aggregator.

Transport errors in stages 1 and 2 count as "no matches"; an error in
stage 3 propagates to the caller.
"""

import logging
import re
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from reelrecall.core.config import settings
from reelrecall.core.exceptions import TransientServiceError
from reelrecall.schemas.chunk import MatchResult
from reelrecall.schemas.search import EnhancedQuery, Recency
from reelrecall.services.vector_store.base import VectorStore

logger = logging.getLogger(__name__)

STAGE_FILTERED = "filtered"
STAGE_METADATA = "metadata_exists"
STAGE_PURE_VECTOR = "pure_vector"

SECONDS_PER_DAY = 86400


# ========================================
# Filter Construction
# ========================================

def _normalize_terms(values: List[str]) -> List[str]:
    """Lower-case terms, adding a punctuation-stripped variant ("dough?" -> "dough")."""
    terms = []
    for value in values:
        lowered = value.strip().lower()
        for candidate in (lowered, re.sub(r"[^\w\s-]", "", lowered).strip()):
            if candidate and candidate not in terms:
                terms.append(candidate)
    return terms


def build_metadata_filter() -> Dict[str, Any]:
    """Require non-empty title and summary."""
    return {
        "$and": [
            {"title": {"$exists": True}},
            {"title": {"$ne": ""}},
            {"summary": {"$exists": True}},
            {"summary": {"$ne": ""}},
        ]
    }


def build_semantic_conditions(enhanced: EnhancedQuery) -> List[Dict[str, Any]]:
    """Topic, visual-element and keyword membership conditions (ORed by the caller)."""
    topics = _normalize_terms(enhanced.topics)
    visual = _normalize_terms(enhanced.visual_elements)
    keywords = _normalize_terms(enhanced.search_terms + enhanced.topics + enhanced.visual_elements)

    conditions = []
    if topics:
        conditions.append({"topicNames": {"$in": topics}})
    if visual:
        conditions.append({"keyElements": {"$in": visual}})
    if keywords:
        conditions.append({"keywords": {"$in": keywords}})
    return conditions


def build_search_filter(
    enhanced: EnhancedQuery,
    recent_days: int = None,
    now: Optional[float] = None,
) -> Optional[Dict[str, Any]]:
    """
    Stage-1 filter for an EnhancedQuery.

    Returns:
        The filter, or None when the query carries no semantic hints
    """
    conditions = build_semantic_conditions(enhanced)
    if not conditions:
        return None

    clauses = list(build_metadata_filter()["$and"])
    clauses.append({"$or": conditions})

    if enhanced.temporal_context.recency == Recency.RECENT:
        days = recent_days or settings.RAG_RECENT_DAYS
        cutoff = (now if now is not None else time.time()) - days * SECONDS_PER_DAY
        clauses.append({"processedAtEpoch": {"$gte": cutoff}})

    return {"$and": clauses}


# ========================================
# Retriever
# ========================================

@dataclass
class RetrievalOutcome:
    """Matches plus the stage that produced them."""

    stage: str
    matches: List[MatchResult] = field(default_factory=list)
    attempted: List[str] = field(default_factory=list)


@dataclass
class _Stage:
    name: str
    filter: Optional[Dict[str, Any]]
    final: bool = False


class MultiStageRetriever:
    """
    Tiered fallback search against one namespace.

    Usage:
    ------
    retriever = MultiStageRetriever(vector_store)

    outcome = await retriever.retrieve(
        namespace="user_123",
        query_vector=embedding,
        enhanced_query=enhanced,
        k=5,
    )
    outcome.stage    # "filtered" | "metadata_exists" | "pure_vector"
    outcome.matches  # up to 4 * k chunk matches
    """

    def __init__(
        self,
        vector_store: VectorStore,
        overfetch_factor: int = None,
        recent_days: int = None,
        clock: Callable[[], float] = time.time,
    ):
        self.vector_store = vector_store
        self.overfetch_factor = overfetch_factor or settings.RAG_OVERFETCH_FACTOR
        self.recent_days = recent_days or settings.RAG_RECENT_DAYS
        self._clock = clock

    def plan_stages(self, enhanced_query: EnhancedQuery) -> List[_Stage]:
        stages = []
        search_filter = build_search_filter(enhanced_query, self.recent_days, now=self._clock())
        if search_filter is not None:
            stages.append(_Stage(STAGE_FILTERED, search_filter))
        stages.append(_Stage(STAGE_METADATA, build_metadata_filter()))
        stages.append(_Stage(STAGE_PURE_VECTOR, None, final=True))
        return stages

    async def retrieve(
        self,
        namespace: str,
        query_vector: List[float],
        enhanced_query: EnhancedQuery,
        k: int = None,
    ) -> RetrievalOutcome:
        """
        Run the stages in order until one returns matches.

        Args:
            namespace: Owner namespace (user id)
            query_vector: Embedding of the enhanced search text
            enhanced_query: Source of the stage-1 filter
            k: Desired number of videos; each stage fetches ``k * overfetch_factor``

        Returns:
            RetrievalOutcome from the first non-empty stage, or the
            (possibly empty) pure vector stage

        Raises:
            TransientServiceError: The pure vector stage itself failed
        """
        k = k or settings.RAG_TOP_K
        top_k = k * self.overfetch_factor
        attempted = []

        for stage in self.plan_stages(enhanced_query):
            attempted.append(stage.name)
            matches = await self._run_stage(namespace, query_vector, top_k, stage)

            if matches:
                logger.info(
                    f"Retrieval stage '{stage.name}' returned {len(matches)} matches "
                    f"for namespace {namespace}"
                )
                return RetrievalOutcome(stage=stage.name, matches=matches, attempted=attempted)

            if stage.final:
                return RetrievalOutcome(stage=stage.name, matches=[], attempted=attempted)

            logger.info(f"Retrieval stage '{stage.name}' empty, falling back")

        # plan_stages always ends with a final stage
        raise RuntimeError("retrieval plan has no final stage")

    async def _run_stage(
        self,
        namespace: str,
        query_vector: List[float],
        top_k: int,
        stage: _Stage,
    ) -> List[MatchResult]:
        try:
            return await self.vector_store.query(
                namespace, query_vector, top_k=top_k, filter=stage.filter
            )
        except TransientServiceError as e:
            if stage.final:
                logger.error(f"Retrieval stage '{stage.name}' failed: {e}")
                raise
            logger.warning(f"Retrieval stage '{stage.name}' failed, treating as empty: {e}")
            return []
