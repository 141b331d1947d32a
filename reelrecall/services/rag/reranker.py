"""
Hybrid Re-Ranker for RAG

Re-scores aggregated video results with keyword, visual and topic overlap
between the EnhancedQuery and each video:

    score = max_score * (1 + 0.2 * keyword_hits + 0.15 * visual_hits + 0.1 * topic_hits)

Hits are case-insensitive substring matches:
- keyword hits: search terms found in title, summary or keywords
- visual hits: visual hints found in scene key elements or keywords
- topic hits: topic hints found in topic names

The output is capped at RAG_RERANK_CAP, never more than 5, regardless of
how many results were supplied; downstream synthesis only uses a handful of candidates.
"""

import logging
import re
from typing import Iterable, List

from reelrecall.core.config import settings
from reelrecall.schemas.search import AggregatedResult, EnhancedQuery

logger = logging.getLogger(__name__)

KEYWORD_WEIGHT = 0.2
VISUAL_WEIGHT = 0.15
TOPIC_WEIGHT = 0.1

# Hard ceiling on returned results, whatever the configured cap
MAX_RERANK_CAP = 5


def _variants(term: str) -> List[str]:
    lowered = term.strip().lower()
    stripped = re.sub(r"[^\w\s-]", "", lowered).strip()
    return [v for v in dict.fromkeys((lowered, stripped)) if v]


def count_hits(terms: Iterable[str], haystacks: Iterable[str]) -> int:
    """Number of distinct terms that occur in any haystack."""
    haystacks = [h.lower() for h in haystacks if h]
    hits = 0
    seen = set()
    for term in terms:
        variants = _variants(term)
        if not variants or variants[-1] in seen:
            continue
        seen.add(variants[-1])
        if any(v in h for v in variants for h in haystacks):
            hits += 1
    return hits


class HybridReranker:
    """
    Keyword/visual/topic boosted re-ranking of aggregated results.

    Usage:
    ------
    reranker = HybridReranker()
    ranked = reranker.rerank(results, enhanced_query)
    """

    def __init__(self, cap: int = None):
        self.cap = min(cap or settings.RAG_RERANK_CAP, MAX_RERANK_CAP)

    def score(self, result: AggregatedResult, enhanced_query: EnhancedQuery) -> AggregatedResult:
        keyword_hits = count_hits(
            enhanced_query.search_terms,
            [result.title, result.summary, *result.keywords],
        )
        visual_hits = count_hits(
            enhanced_query.visual_elements,
            # Keywords carry every scene's key elements when no visual chunk matched
            [
                *(element for entry in result.visual_content for element in entry.key_elements),
                *result.keywords,
            ],
        )
        topic_hits = count_hits(
            enhanced_query.topics,
            [topic.name for topic in result.topics],
        )

        boost = (
            1
            + KEYWORD_WEIGHT * keyword_hits
            + VISUAL_WEIGHT * visual_hits
            + TOPIC_WEIGHT * topic_hits
        )
        return result.model_copy(update={
            "score": result.max_score * boost,
            "match_counts": {
                "keyword": keyword_hits,
                "visual": visual_hits,
                "topic": topic_hits,
            },
        })

    def rerank(
        self,
        results: List[AggregatedResult],
        enhanced_query: EnhancedQuery,
    ) -> List[AggregatedResult]:
        """
        Args:
            results: Aggregated results (any number)
            enhanced_query: Source of the match terms

        Returns:
            At most ``cap`` results, highest hybrid score first
        """
        rescored = [self.score(result, enhanced_query) for result in results]
        rescored.sort(key=lambda r: r.score, reverse=True)

        if rescored:
            logger.debug(
                f"Re-ranked {len(results)} results; top={rescored[0].video_id} "
                f"score={rescored[0].score:.4f}"
            )
        return rescored[: self.cap]
