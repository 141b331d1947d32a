"""
RAG (Retrieval-Augmented Generation) Services

This package contains all services for the search pipeline:
- Query enhancement (Claude structured output)
- Multi-stage retrieval with filter relaxation
- Cross-chunk aggregation per video
- Hybrid re-ranking (vector score + lexical boosts)
- Reply generation
"""

from reelrecall.services.rag.aggregator import CrossChunkAggregator
from reelrecall.services.rag.generator import AnswerGenerator, Reply
from reelrecall.services.rag.query_service import QueryEnhancer
from reelrecall.services.rag.reranker import HybridReranker
from reelrecall.services.rag.retriever import MultiStageRetriever, RetrievalOutcome
from reelrecall.services.rag.search_service import SearchOutcome, SearchService

__all__ = [
    "QueryEnhancer",
    "MultiStageRetriever",
    "RetrievalOutcome",
    "CrossChunkAggregator",
    "HybridReranker",
    "SearchService",
    "SearchOutcome",
    "AnswerGenerator",
    "Reply",
]
