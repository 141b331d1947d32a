"""
Query Enhancement for RAG

This module expands a raw user query into an EnhancedQuery:
- expanded search text for embedding
- search terms for keyword matching
- visual-element hints (objects, actions, scenes, people)
- topic hints
- temporal hints (timeframe, recency)

The language model is optional. Any call or parse failure produces the
deterministic fallback (search text = query, terms = whitespace tokens of
the lower-cased query), so enhancement never raises.
"""

import logging
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from reelrecall.core.exceptions import LanguageModelError
from reelrecall.schemas.search import EnhancedQuery, TemporalContext
from reelrecall.services.llm import LanguageModel

logger = logging.getLogger(__name__)


ENHANCED_QUERY_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "searchText": {
            "type": "string",
            "description": "Enhanced search text optimized for retrieval",
        },
        "searchTerms": {
            "type": "array",
            "items": {
                "type": "string",
                "description": "Individual search terms extracted from the query",
            },
            "minItems": 1,
        },
        "visualElements": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "type": {"type": "string", "enum": ["object", "action", "scene", "person"]},
                    "value": {"type": "string"},
                },
                "required": ["type", "value"],
            },
        },
        "temporalContext": {
            "type": "object",
            "properties": {
                "timeframe": {"type": "string"},
                "recency": {"type": "string", "enum": ["recent", "old", "any"]},
            },
        },
        "topics": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "name": {"type": "string"},
                    "relevance": {"type": "number"},
                },
                "required": ["name"],
            },
        },
    },
    "required": ["searchText", "searchTerms"],
}


ENHANCEMENT_PROMPT = """You help a user find short videos they saved earlier.
Each saved video was analyzed into a title, summary, visual scenes with key
elements, speech and audio, topics and searchable keywords.

Rewrite the user's request for retrieval over those analyses:
- searchText: a descriptive sentence capturing what the video probably shows or says
- searchTerms: the important words and short phrases, lower-case
- visualElements: concrete things likely visible on screen
- topics: subjects the video is likely about
- temporalContext: any time reference ("last week", "a while ago"); use
  recency "recent" only when the user clearly means recently saved videos

User request: {query}"""


class QueryEnhancer:
    """
    Turns raw queries into EnhancedQuery objects.

    Usage:
    ------
    enhancer = QueryEnhancer(llm)
    enhanced = await enhancer.enhance("that pasta video from last week")
    """

    def __init__(self, llm: Optional[LanguageModel] = None):
        """
        Args:
            llm: Language model; None means every query uses the fallback
        """
        self.llm = llm

    async def enhance(self, query: str) -> EnhancedQuery:
        """
        Enhance a query. Never raises.

        Args:
            query: The user's search request

        Returns:
            EnhancedQuery (``fallback=True`` when the model was not used)
        """
        query = (query or "").strip()
        if not query or self.llm is None:
            return EnhancedQuery.from_raw_query(query)

        try:
            parsed = await self.llm.generate_structured(
                ENHANCEMENT_PROMPT.format(query=query),
                ENHANCED_QUERY_SCHEMA,
            )
        except LanguageModelError as e:
            logger.warning(f"Query enhancement failed, using fallback: {e}")
            return EnhancedQuery.from_raw_query(query)
        except Exception as e:
            # Any failure degrades to the raw query
            logger.error(f"Unexpected error during query enhancement: {e}", exc_info=True)
            return EnhancedQuery.from_raw_query(query)

        enhanced = self._from_response(query, parsed)
        logger.debug(
            f"Enhanced query '{query[:50]}': terms={enhanced.search_terms}, "
            f"visual={enhanced.visual_elements}, topics={enhanced.topics}"
        )
        return enhanced

    def _from_response(self, query: str, parsed: Any) -> EnhancedQuery:
        """Validate each field independently, falling back per field."""
        if not isinstance(parsed, dict):
            logger.warning("Query enhancement returned a non-object, using fallback")
            return EnhancedQuery.from_raw_query(query)

        search_text = parsed.get("searchText")
        if not isinstance(search_text, str) or not search_text.strip():
            search_text = query

        search_terms = self._strings(parsed.get("searchTerms"))
        if not search_terms:
            search_terms = query.lower().split()

        visual_elements = self._strings(
            item.get("value") if isinstance(item, dict) else item
            for item in self._list(parsed.get("visualElements"))
        )
        topics = self._strings(
            item.get("name") if isinstance(item, dict) else item
            for item in self._list(parsed.get("topics"))
        )

        temporal = parsed.get("temporalContext")
        try:
            temporal_context = TemporalContext.model_validate(
                temporal if isinstance(temporal, dict) else {}
            )
        except ValidationError:
            temporal_context = TemporalContext()

        return EnhancedQuery(
            original_query=query,
            search_text=search_text.strip(),
            search_terms=search_terms,
            visual_elements=visual_elements,
            topics=topics,
            temporal_context=temporal_context,
        )

    @staticmethod
    def _list(value: Any) -> list:
        return value if isinstance(value, list) else []

    @staticmethod
    def _strings(values) -> List[str]:
        if values is None or isinstance(values, (str, dict)):
            return []
        return [v.strip() for v in values if isinstance(v, str) and v.strip()]
