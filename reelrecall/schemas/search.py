"""
Schemas for query enhancement, retrieval results and the search API.
"""

from enum import Enum
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field, field_validator

from reelrecall.schemas.analysis import TechnicalDetails, TopicEntry, VisualEntry


# ========================================
# Query Enhancement
# ========================================

class Recency(str, Enum):
    RECENT = "recent"
    OLD = "old"
    ANY = "any"


class TemporalContext(BaseModel):
    timeframe: str = ""
    recency: Recency = Recency.ANY

    @field_validator("recency", mode="before")
    @classmethod
    def unknown_recency_is_any(cls, v):
        try:
            return Recency(str(v).lower()) if v else Recency.ANY
        except ValueError:
            return Recency.ANY


class EnhancedQuery(BaseModel):
    """Language-model-expanded form of a raw user query. Never persisted."""

    original_query: str
    search_text: str
    search_terms: List[str] = Field(default_factory=list)
    visual_elements: List[str] = Field(default_factory=list)
    topics: List[str] = Field(default_factory=list)
    temporal_context: TemporalContext = Field(default_factory=TemporalContext)
    fallback: bool = Field(False, description="True when produced without the language model")

    @classmethod
    def from_raw_query(cls, query: str) -> "EnhancedQuery":
        """Deterministic enhancement used whenever the language model is unavailable."""
        return cls(
            original_query=query,
            search_text=query,
            search_terms=query.lower().split(),
            fallback=True,
        )

    def has_semantic_hints(self) -> bool:
        return bool(self.search_terms or self.visual_elements or self.topics)


# ========================================
# Aggregated Results
# ========================================

class AggregatedAudio(BaseModel):
    speech: str = ""
    music: List[str] = Field(default_factory=list)
    sound_effects: List[str] = Field(default_factory=list)
    timestamps: List[str] = Field(default_factory=list)


class RelevantChunk(BaseModel):
    chunk_id: str
    content: str = ""
    score: float
    timestamp: str = ""
    sequence_number: int = 0
    section_title: str = ""
    content_type: str = ""


class AggregatedResult(BaseModel):
    """Per-video merged view of all chunk-level matches for that video."""

    video_id: str
    video_url: str = ""
    title: str = ""
    summary: str = ""
    visual_content: List[VisualEntry] = Field(default_factory=list)
    audio_content: AggregatedAudio = Field(default_factory=AggregatedAudio)
    topics: List[TopicEntry] = Field(default_factory=list)
    technical_details: TechnicalDetails = Field(default_factory=TechnicalDetails)
    keywords: List[str] = Field(default_factory=list)
    relevant_chunks: List[RelevantChunk] = Field(default_factory=list)
    max_score: float
    avg_score: float
    score: float = Field(..., description="Ranking score; hybrid score after re-ranking")
    match_counts: Dict[str, int] = Field(default_factory=dict)


# ========================================
# API Schemas
# ========================================

class SearchRequest(BaseModel):
    user_id: str = Field(..., min_length=1, max_length=200, description="Owner namespace")
    query: str = Field(..., min_length=1, max_length=2000, examples=["How do you make pizza dough?"])
    top_k: int = Field(5, ge=1, le=50)

    @field_validator("query", "user_id")
    @classmethod
    def strip_text(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Value cannot be empty")
        return v


class SearchResponse(BaseModel):
    query: str
    enhanced_query: EnhancedQuery
    stage: str = Field(..., description="Retrieval stage that produced the matches")
    results: List[AggregatedResult]


class AskRequest(SearchRequest):
    pass


class AskResponse(BaseModel):
    kind: Literal["video", "answer", "no_results"]
    intent: Literal["find_video", "question"]
    message: str
    video_url: Optional[str] = None
    results: List[AggregatedResult] = Field(default_factory=list)
    details: Dict[str, Any] = Field(default_factory=dict)
