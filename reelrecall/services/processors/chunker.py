"""
Video Chunk Builder

Turns one video's structured analysis into a small set of embeddable chunks.

Chunk layout:
-------------
1. Overview: title, summary, visual, audio, topics and technical sections
   as one comprehensive text block (sequence 1)
2. Visual parts: the visual timeline split into parts whose serialized
   payload stays under CHUNK_VISUAL_BYTE_BUDGET (``<videoId>_visual_<i>``)
3. Audio: speech, instructions and sound effects (``<videoId>_audio``)
4. Topics: topic names and context (``<videoId>_topics``)

Every chunk carries title, a summary snippet, keywords and owner
identifiers so it is useful as a retrieval hit on its own.

Configuration from settings:
- CHUNK_MAX_TOKENS: 512 (focused chunks)
- CHUNK_MAX_CONTENT_TOKENS: 8000 (overview and visual parts)
- CHUNK_VISUAL_BYTE_BUDGET: 35000
"""

import hashlib
import json
import logging
from datetime import datetime, timezone
from typing import Iterable, Optional

from reelrecall.core.config import settings
from reelrecall.schemas.analysis import SourceAnalysis, SubmissionMetadata, VisualEntry
from reelrecall.schemas.chunk import AUDIO, OVERVIEW, TOPICS, VISUAL, Chunk, ChunkMetadata
from reelrecall.services.processors.tokens import TokenCounter

logger = logging.getLogger(__name__)

# Upper bound for list-valued metadata fields
MAX_METADATA_LIST_ITEMS = 100
SUMMARY_SNIPPET_CHARS = 300
# Upper bound used when sizing fragments of an oversized scene
MAX_FRAGMENT_NUMBER = 10 ** 6


def make_video_id(user_id: str, video_url: str) -> str:
    """Stable id so re-ingesting a URL overwrites the same records."""
    digest = hashlib.sha1(video_url.strip().encode("utf-8")).hexdigest()[:16]
    return f"{user_id}_video_{digest}"


def visual_payload_size(entries: Iterable[VisualEntry]) -> int:
    """Bytes of the JSON array stored in a record's ``visualContent`` field."""
    return len(json.dumps([e.to_payload() for e in entries]).encode("utf-8"))


def _entry_size(entry: VisualEntry) -> int:
    return len(json.dumps(entry.to_payload()).encode("utf-8"))


def _char_cost(ch: str) -> int:
    return len(json.dumps(ch).encode("utf-8")) - 2


def _split_text_by_bytes(text: str, limit: int) -> list[str]:
    """Split ``text`` into ordered pieces whose JSON-escaped size is at most ``limit``."""
    pieces = []
    current = []
    used = 0
    for ch in text:
        cost = _char_cost(ch)
        if used + cost > limit and current:
            pieces.append("".join(current))
            current = []
            used = 0
        current.append(ch)
        used += cost
    if current:
        pieces.append("".join(current))
    return pieces


def _dedupe_lower(values: Iterable[str]) -> list[str]:
    seen = set()
    result = []
    for value in values:
        if not value:
            continue
        cleaned = str(value).strip().lower()
        if cleaned and cleaned not in seen:
            seen.add(cleaned)
            result.append(cleaned)
    return result


class VideoChunkBuilder:
    """
    Builds chunks for one SourceAnalysis.

    Missing sections never abort construction: an absent audio summary or
    topic list yields a placeholder chunk instead.

    Usage:
    ------
    builder = VideoChunkBuilder()
    chunks = builder.build_chunks(
        user_id="user_123",
        video_url="https://instagram.com/reel/abc",
        analysis=analysis,
        metadata=submission_metadata,
    )
    """

    def __init__(
        self,
        max_tokens: int = None,
        max_content_tokens: int = None,
        visual_byte_budget: int = None,
        searchable_text_chars: int = None,
        token_counter: Optional[TokenCounter] = None,
    ):
        """
        Initialize the builder with configuration.

        Args:
            max_tokens: Token cap for audio/topics chunks (default from settings)
            max_content_tokens: Token cap for overview/visual chunks (default from settings)
            visual_byte_budget: Max serialized visual payload per record (default from settings)
            searchable_text_chars: Cap for searchable/preview text (default from settings)
            token_counter: Tokenizer shared with the embedding client (default cl100k_base)
        """
        self.max_tokens = max_tokens or settings.CHUNK_MAX_TOKENS
        # Overview and visual parts must fit the embedding input limit
        self.max_content_tokens = min(
            max_content_tokens or settings.CHUNK_MAX_CONTENT_TOKENS,
            settings.EMBEDDING_MAX_TOKENS,
        )
        self.visual_byte_budget = visual_byte_budget or settings.CHUNK_VISUAL_BYTE_BUDGET
        self.searchable_text_chars = searchable_text_chars or settings.CHUNK_SEARCHABLE_TEXT_CHARS

        self.token_counter = token_counter or TokenCounter()

    def count_tokens(self, text: str) -> int:
        return self.token_counter.count(text)

    def truncate_to_tokens(self, text: str, max_tokens: int) -> str:
        return self.token_counter.truncate(text, max_tokens)

    # ========================================
    # Public API
    # ========================================

    def build_chunks(
        self,
        user_id: str,
        video_url: str,
        analysis: SourceAnalysis,
        metadata: Optional[SubmissionMetadata] = None,
        processed_at: Optional[datetime] = None,
    ) -> list[Chunk]:
        """
        Build every chunk for one video.

        Args:
            user_id: Owner namespace
            video_url: Source URL (trimmed before use)
            analysis: Structured analysis of the video
            metadata: Submission metadata (account, username, display name)
            processed_at: Processing time shared by all chunks (default now, UTC)

        Returns:
            Chunks in sequence order: overview, visual parts, audio, topics
        """
        if not user_id:
            raise ValueError("user_id is required to build chunks")

        video_url = video_url.strip()
        metadata = metadata or SubmissionMetadata()
        processed_at = processed_at or datetime.now(timezone.utc)
        video_id = make_video_id(user_id, video_url)

        keywords = self.collect_keywords(analysis)[:MAX_METADATA_LIST_ITEMS]
        topic_names = _dedupe_lower(t.name for t in analysis.topics)[:MAX_METADATA_LIST_ITEMS]
        all_key_elements = _dedupe_lower(
            element for entry in analysis.visual_content for element in entry.key_elements
        )[:MAX_METADATA_LIST_ITEMS]

        visual_parts = self.split_visual_content(analysis.visual_content)
        total_chunks = 1 + len(visual_parts) + 2

        base = dict(
            video_id=video_id,
            video_url=video_url,
            user_id=user_id,
            timestamp=processed_at.isoformat(),
            processed_at_epoch=processed_at.timestamp(),
            total_chunks=total_chunks,
            title=analysis.title,
            keywords=keywords,
            topic_names=topic_names,
            media_type=metadata.media_type,
            external_id=metadata.external_id,
            username=metadata.username,
            display_name=metadata.display_name,
        )
        summary_snippet = analysis.summary[:SUMMARY_SNIPPET_CHARS]

        chunks = []

        # Overview
        overview_text = self.truncate_to_tokens(
            self.build_comprehensive_text(analysis), self.max_content_tokens
        )
        chunks.append(self._make_chunk(
            chunk_id=video_id,
            content=overview_text,
            searchable=" ".join(filter(None, [analysis.title, analysis.summary])),
            metadata=ChunkMetadata(
                **base,
                sequence_number=1,
                content_type=OVERVIEW,
                section_title="Overview",
                summary=analysis.summary,
                key_elements=all_key_elements,
                audio_content=analysis.audio_content,
                topics=list(analysis.topics),
                technical_details=analysis.technical_details,
            ),
        ))

        # Visual parts
        for index, part in enumerate(visual_parts):
            part_text = self.truncate_to_tokens(
                self.build_visual_text(part), self.max_content_tokens
            )
            chunks.append(self._make_chunk(
                chunk_id=f"{video_id}_visual_{index}",
                content=part_text,
                searchable=part_text,
                metadata=ChunkMetadata(
                    **base,
                    sequence_number=2 + index,
                    content_type=VISUAL,
                    section_title=f"Visual Analysis Part {index + 1}",
                    summary=summary_snippet,
                    key_elements=_dedupe_lower(
                        element for entry in part for element in entry.key_elements
                    )[:MAX_METADATA_LIST_ITEMS],
                    visual_content=part,
                ),
            ))

        # Audio
        audio_text = self.truncate_to_tokens(self.build_audio_text(analysis), self.max_tokens)
        chunks.append(self._make_chunk(
            chunk_id=f"{video_id}_audio",
            content=audio_text,
            searchable=audio_text,
            metadata=ChunkMetadata(
                **base,
                sequence_number=total_chunks - 1,
                content_type=AUDIO,
                section_title="Audio Analysis",
                summary=summary_snippet,
                key_elements=all_key_elements,
                audio_content=analysis.audio_content,
            ),
        ))

        # Topics
        topics_text = self.truncate_to_tokens(self.build_topics_text(analysis), self.max_tokens)
        chunks.append(self._make_chunk(
            chunk_id=f"{video_id}_topics",
            content=topics_text,
            searchable=topics_text,
            metadata=ChunkMetadata(
                **base,
                sequence_number=total_chunks,
                content_type=TOPICS,
                section_title="Topics Analysis",
                summary=summary_snippet,
                key_elements=all_key_elements,
                topics=list(analysis.topics),
            ),
        ))

        logger.info(
            f"Built {len(chunks)} chunks for video {video_id} "
            f"({len(visual_parts)} visual parts)"
        )
        return chunks

    def _make_chunk(
        self,
        chunk_id: str,
        content: str,
        searchable: str,
        metadata: ChunkMetadata,
    ) -> Chunk:
        limit = self.searchable_text_chars
        metadata = metadata.model_copy(update={
            "content": content[:limit],
            "searchable_text": searchable.lower()[:limit],
        })
        return Chunk(
            id=chunk_id,
            content=content,
            metadata=metadata,
            token_count=self.count_tokens(content),
        )

    # ========================================
    # Keywords
    # ========================================

    def collect_keywords(self, analysis: SourceAnalysis) -> list[str]:
        """
        Combined keyword list: searchable keywords, scene key elements,
        topic names and technical effects, lower-cased and deduplicated.
        """
        return _dedupe_lower([
            *analysis.searchable_keywords,
            *(element for entry in analysis.visual_content for element in entry.key_elements),
            *(topic.name for topic in analysis.topics),
            *analysis.technical_details.effects,
        ])

    # ========================================
    # Text Sections
    # ========================================

    def build_comprehensive_text(self, analysis: SourceAnalysis) -> str:
        """Concatenate every analysis section into one text block."""
        sections = [
            f"Title: {analysis.title}",
            f"Summary: {analysis.summary}",
        ]

        if analysis.visual_content:
            lines = ["\nVisual Content Analysis:"]
            for index, entry in enumerate(analysis.visual_content, start=1):
                lines.append("\n".join([
                    f"\nScene {index} ({entry.timestamp}):",
                    f"Description: {entry.scene}",
                    f"Key Elements: {', '.join(entry.key_elements)}",
                ]))
            sections.append("\n".join(lines))

        audio = analysis.audio_content
        if not audio.is_empty():
            sections.append("\n".join([
                "\nAudio Analysis:",
                f"Speech: {audio.speech or 'None'}",
                f"Music: {audio.music or 'None'}",
                f"Sound Effects: {', '.join(audio.sound_effects) or 'None'}",
            ]))

        if analysis.topics:
            sections.append("\n".join([
                "\nTopics Analysis:",
                *(
                    f"{topic.name} (Relevance: {topic.relevance}): {topic.context}"
                    for topic in analysis.topics
                ),
            ]))

        technical = analysis.technical_details
        if technical.quality or technical.effects or technical.editing:
            sections.append("\n".join([
                "\nTechnical Analysis:",
                f"Quality: {technical.quality}",
                f"Effects: {', '.join(technical.effects) or 'None'}",
                f"Editing: {technical.editing}",
            ]))

        return "\n\n".join(s for s in sections if s)

    def build_visual_text(self, entries: list[VisualEntry]) -> str:
        return " ".join(
            f"{e.timestamp} {e.scene} {e.text or ''} {' '.join(e.key_elements)}".strip()
            for e in entries
        )

    def build_audio_text(self, analysis: SourceAnalysis) -> str:
        audio = analysis.audio_content
        text = " ".join(filter(None, [
            audio.speech,
            audio.instructions,
            audio.music,
            " ".join(audio.sound_effects),
        ])).strip()
        return text or f"{analysis.title} audio: None"

    def build_topics_text(self, analysis: SourceAnalysis) -> str:
        text = " ".join(f"{t.name} {t.context}".strip() for t in analysis.topics).strip()
        return text or f"{analysis.title} topics: None"

    # ========================================
    # Visual Splitting
    # ========================================

    def split_visual_content(self, entries: list[VisualEntry]) -> list[list[VisualEntry]]:
        """
        Group visual entries into parts under the byte budget.

        Entries keep their order. An entry that is too large on its own is
        split into fragments of its scene (and on-screen) text; the
        fragments concatenate back to the original strings.
        """
        budget = self.visual_byte_budget
        # Room for the surrounding "[...]"
        entry_budget = budget - 2

        parts = []
        current = []
        current_size = 2

        for entry in entries:
            for piece in self._fragment_entry(entry, entry_budget):
                size = _entry_size(piece)
                added = size if not current else size + 2  # ", " separator
                if current and current_size + added > budget:
                    parts.append(current)
                    current = []
                    current_size = 2
                    added = size
                current.append(piece)
                current_size += added

        if current:
            parts.append(current)
        return parts

    def _fragment_entry(self, entry: VisualEntry, limit: int) -> list[VisualEntry]:
        if _entry_size(entry) <= limit:
            return [entry]

        # Sized with a wide fragment number so the real index always fits
        base = entry.model_copy(update={"scene": "", "text": None, "fragment": MAX_FRAGMENT_NUMBER})
        while _entry_size(base) > limit // 2 and base.key_elements:
            # Pathological key element lists are trimmed rather than failing the build
            base = base.model_copy(update={"key_elements": base.key_elements[:-1]})
            logger.warning(f"Dropped key element from oversized scene at {entry.timestamp}")

        pieces = []
        scene_room = limit - _entry_size(base)
        for piece in _split_text_by_bytes(entry.scene, scene_room):
            pieces.append({"scene": piece})

        if entry.text:
            text_room = limit - (_entry_size(base.model_copy(update={"text": "x"})) - 1)
            for piece in _split_text_by_bytes(entry.text, text_room):
                pieces.append({"text": piece})

        fragments = [
            base.model_copy(update={**piece, "fragment": index})
            for index, piece in enumerate(pieces, start=1)
        ]

        logger.debug(
            f"Split oversized scene at {entry.timestamp} into {len(fragments)} fragments"
        )
        return fragments or [base.model_copy(update={"fragment": 1})]
