"""
Schemas for chunks and vector records.

ChunkMetadata is the typed view of what each vector record carries. The
vector store only accepts flat metadata (strings, numbers, booleans and
lists of strings), so nested sections are serialized to JSON strings by
``to_record_metadata()`` and parsed back by ``from_record_metadata()``.
"""

import json
import logging
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from reelrecall.schemas.analysis import (
    AudioSummary,
    TechnicalDetails,
    TopicEntry,
    VisualEntry,
)

logger = logging.getLogger(__name__)


# Chunk kinds, stored as metadata.contentType
OVERVIEW = "overview"
VISUAL = "visual"
AUDIO = "audio"
TOPICS = "topics"

CHUNK_KINDS = (OVERVIEW, VISUAL, AUDIO, TOPICS)


def _load_json(raw: Any, default: Any) -> Any:
    """Parse a JSON-string metadata field, returning ``default`` when malformed."""
    if raw is None or raw == "":
        return default
    if not isinstance(raw, str):
        return raw
    try:
        return json.loads(raw)
    except (TypeError, ValueError):
        logger.debug(f"Ignoring malformed JSON metadata field: {raw[:80]!r}")
        return default


def _parse_list(model, raw: Any) -> list:
    items = _load_json(raw, [])
    if not isinstance(items, list):
        return []
    parsed = []
    for item in items:
        try:
            parsed.append(model.model_validate(item))
        except ValidationError:
            continue
    return parsed


def _parse_one(model, raw: Any):
    data = _load_json(raw, None)
    if not isinstance(data, dict):
        return None
    try:
        return model.model_validate(data)
    except ValidationError:
        return None


class ChunkMetadata(BaseModel):
    """Denormalized metadata carried by every chunk of a video."""

    model_config = ConfigDict(frozen=True)

    video_id: str
    video_url: str
    user_id: str = ""
    timestamp: str = Field("", description="ISO time the video was processed")
    processed_at_epoch: float = 0.0
    sequence_number: int = 1
    total_chunks: int = 1
    content_type: str = OVERVIEW
    section_title: str = ""

    title: str = ""
    summary: str = ""
    content: str = Field("", description="Preview of the chunk text")
    searchable_text: str = ""

    keywords: List[str] = Field(default_factory=list)
    topic_names: List[str] = Field(default_factory=list)
    key_elements: List[str] = Field(default_factory=list)

    visual_content: List[VisualEntry] = Field(default_factory=list)
    audio_content: Optional[AudioSummary] = None
    topics: List[TopicEntry] = Field(default_factory=list)
    technical_details: Optional[TechnicalDetails] = None

    media_type: str = ""
    external_id: str = ""
    username: str = ""
    display_name: str = ""

    def to_record_metadata(self) -> Dict[str, Any]:
        """Flatten to the vector store metadata model."""
        metadata = {
            "videoId": self.video_id,
            "videoUrl": self.video_url.strip(),
            "userId": self.user_id,
            "timestamp": self.timestamp,
            "processedAtEpoch": float(self.processed_at_epoch),
            "sequenceNumber": self.sequence_number,
            "totalChunks": self.total_chunks,
            "contentType": self.content_type,
            "sectionTitle": self.section_title,
            "title": self.title,
            "summary": self.summary,
            "content": self.content,
            "searchableText": self.searchable_text,
            "keywords": list(self.keywords),
            "topicNames": list(self.topic_names),
            "keyElements": list(self.key_elements),
            "visualContent": json.dumps([v.to_payload() for v in self.visual_content]),
            "topics": json.dumps([t.to_payload() for t in self.topics]),
            "mediaType": self.media_type,
            "externalId": self.external_id,
            "username": self.username,
            "displayName": self.display_name,
        }
        if self.audio_content is not None:
            metadata["audioContent"] = json.dumps(self.audio_content.to_payload())
        if self.technical_details is not None:
            metadata["technicalDetails"] = json.dumps(self.technical_details.to_payload())
        return metadata

    @classmethod
    def from_record_metadata(cls, metadata: Dict[str, Any]) -> "ChunkMetadata":
        """
        Rebuild typed metadata from a stored record.

        Malformed JSON fields are treated as empty rather than failing the
        whole match.
        """
        metadata = metadata or {}

        def _str(key: str) -> str:
            value = metadata.get(key)
            return "" if value is None else str(value)

        def _str_list(key: str) -> List[str]:
            value = metadata.get(key)
            if isinstance(value, list):
                return [str(v) for v in value]
            return []

        def _int(key: str, default: int) -> int:
            try:
                return int(metadata.get(key, default))
            except (TypeError, ValueError):
                return default

        try:
            epoch = float(metadata.get("processedAtEpoch") or 0.0)
        except (TypeError, ValueError):
            epoch = 0.0

        return cls(
            video_id=_str("videoId"),
            video_url=_str("videoUrl"),
            user_id=_str("userId"),
            timestamp=_str("timestamp"),
            processed_at_epoch=epoch,
            sequence_number=_int("sequenceNumber", 0),
            total_chunks=_int("totalChunks", 0),
            content_type=_str("contentType") or OVERVIEW,
            section_title=_str("sectionTitle"),
            title=_str("title"),
            summary=_str("summary"),
            content=_str("content"),
            searchable_text=_str("searchableText"),
            keywords=_str_list("keywords"),
            topic_names=_str_list("topicNames"),
            key_elements=_str_list("keyElements"),
            visual_content=_parse_list(VisualEntry, metadata.get("visualContent")),
            audio_content=_parse_one(AudioSummary, metadata.get("audioContent")),
            topics=_parse_list(TopicEntry, metadata.get("topics")),
            technical_details=_parse_one(TechnicalDetails, metadata.get("technicalDetails")),
            media_type=_str("mediaType"),
            external_id=_str("externalId"),
            username=_str("username"),
            display_name=_str("displayName"),
        )


class Chunk(BaseModel):
    """A bounded unit of embeddable text plus its metadata."""

    model_config = ConfigDict(frozen=True)

    id: str
    content: str
    metadata: ChunkMetadata
    token_count: int = 0


class VectorRecord(BaseModel):
    """(id, embedding, flat metadata) as persisted in one namespace."""

    id: str
    values: List[float]
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_chunk(cls, chunk: Chunk, values: List[float]) -> "VectorRecord":
        return cls(id=chunk.id, values=list(values), metadata=chunk.metadata.to_record_metadata())


class MatchResult(BaseModel):
    """A scored match returned by a vector query."""

    id: str
    score: float
    metadata: ChunkMetadata
