"""
Cross-Chunk Aggregation

Groups chunk-level matches by video and merges them into one
AggregatedResult per video. Each content type has its own merge rule:

- visual entries: keyed by (timestamp, scene, fragment); the last-seen
  entry wins, position follows first appearance
- audio: unique speech by chunk timestamp, ordered union of music and
  sound effects
- topics: keyed by name; the highest relevance wins
- keywords: ordered union
- relevant chunks: keyed by (timestamp, sequence number), best score first
"""

import logging
from collections import OrderedDict
from typing import Dict, List

from reelrecall.schemas.analysis import TechnicalDetails, TopicEntry, VisualEntry
from reelrecall.schemas.chunk import MatchResult
from reelrecall.schemas.search import AggregatedAudio, AggregatedResult, RelevantChunk

logger = logging.getLogger(__name__)


def _ordered_union(groups) -> List[str]:
    seen = OrderedDict()
    for group in groups:
        for value in group:
            if value and value not in seen:
                seen[value] = None
    return list(seen)


def select_overview(chunks: List[MatchResult]) -> MatchResult:
    """Sequence 1 or an "overview" section title, else the first chunk."""
    for chunk in chunks:
        metadata = chunk.metadata
        if metadata.sequence_number == 1 or "overview" in metadata.section_title.lower():
            return chunk
    return chunks[0]


def merge_visual(chunks: List[MatchResult]) -> List[VisualEntry]:
    merged: "OrderedDict[tuple, VisualEntry]" = OrderedDict()
    for chunk in chunks:
        for entry in chunk.metadata.visual_content:
            # Assignment to an existing key keeps its original position
            merged[entry.dedupe_key()] = entry
    return list(merged.values())


def merge_audio(chunks: List[MatchResult]) -> AggregatedAudio:
    speech_by_timestamp: "OrderedDict[str, str]" = OrderedDict()
    music = []
    sound_effects = []
    timestamps = []

    for chunk in chunks:
        audio = chunk.metadata.audio_content
        if audio is None:
            continue
        key = chunk.metadata.timestamp
        if audio.speech and key not in speech_by_timestamp:
            speech_by_timestamp[key] = audio.speech
        music.append([audio.music] if audio.music else [])
        sound_effects.append(audio.sound_effects)
        timestamps.append([key])

    unique_speech = _ordered_union([speech_by_timestamp.values()])
    return AggregatedAudio(
        speech="\n".join(unique_speech),
        music=_ordered_union(music),
        sound_effects=_ordered_union(sound_effects),
        timestamps=_ordered_union(timestamps),
    )


def merge_topics(chunks: List[MatchResult]) -> List[TopicEntry]:
    merged: "OrderedDict[str, TopicEntry]" = OrderedDict()
    for chunk in chunks:
        for topic in chunk.metadata.topics:
            existing = merged.get(topic.name)
            if existing is None or topic.relevance > existing.relevance:
                merged[topic.name] = topic
    return list(merged.values())


def merge_technical(chunks: List[MatchResult]) -> TechnicalDetails:
    quality = editing = ""
    effects = []
    for chunk in chunks:
        details = chunk.metadata.technical_details
        if details is None:
            continue
        quality = details.quality or quality
        editing = details.editing or editing
        effects.append(details.effects)
    return TechnicalDetails(quality=quality, effects=_ordered_union(effects), editing=editing)


def collect_relevant_chunks(chunks: List[MatchResult]) -> List[RelevantChunk]:
    by_key: "OrderedDict[tuple, RelevantChunk]" = OrderedDict()
    for chunk in chunks:
        metadata = chunk.metadata
        key = (metadata.timestamp, metadata.sequence_number)
        existing = by_key.get(key)
        if existing is not None and existing.score >= chunk.score:
            continue
        by_key[key] = RelevantChunk(
            chunk_id=chunk.id,
            content=metadata.content or metadata.searchable_text,
            score=chunk.score,
            timestamp=metadata.timestamp,
            sequence_number=metadata.sequence_number,
            section_title=metadata.section_title,
            content_type=metadata.content_type,
        )
    return sorted(by_key.values(), key=lambda c: c.score, reverse=True)


class CrossChunkAggregator:
    """
    Collapses chunk matches into per-video results.

    Usage:
    ------
    aggregator = CrossChunkAggregator()
    results = aggregator.aggregate(outcome.matches, top_k=5)
    """

    def group_by_video(self, matches: List[MatchResult]) -> "OrderedDict[str, List[MatchResult]]":
        groups: "OrderedDict[str, List[MatchResult]]" = OrderedDict()
        for match in matches:
            video_id = match.metadata.video_id
            if not video_id:
                logger.debug(f"Skipping match {match.id} without videoId")
                continue
            groups.setdefault(video_id, []).append(match)
        return groups

    def aggregate_group(self, video_id: str, chunks: List[MatchResult]) -> AggregatedResult:
        chunks = sorted(
            chunks,
            key=lambda c: (c.metadata.sequence_number, c.metadata.timestamp),
        )
        overview = select_overview(chunks)

        scores = [c.score for c in chunks]
        max_score = max(scores)
        avg_score = sum(scores) / len(scores)

        title = overview.metadata.title or next((c.metadata.title for c in chunks if c.metadata.title), "")
        summary = overview.metadata.summary or next(
            (c.metadata.summary for c in chunks if c.metadata.summary), ""
        )

        return AggregatedResult(
            video_id=video_id,
            video_url=overview.metadata.video_url,
            title=title,
            summary=summary,
            visual_content=merge_visual(chunks),
            audio_content=merge_audio(chunks),
            topics=merge_topics(chunks),
            technical_details=merge_technical(chunks),
            keywords=_ordered_union(c.metadata.keywords for c in chunks),
            relevant_chunks=collect_relevant_chunks(chunks),
            max_score=max_score,
            avg_score=avg_score,
            score=max_score,
        )

    def aggregate(self, matches: List[MatchResult], top_k: int) -> List[AggregatedResult]:
        """
        Args:
            matches: Flat chunk matches from the retriever
            top_k: Number of videos to keep

        Returns:
            One result per video, highest max_score first, at most ``top_k``
        """
        groups = self.group_by_video(matches)
        results: Dict[str, AggregatedResult] = {
            video_id: self.aggregate_group(video_id, chunks)
            for video_id, chunks in groups.items()
        }
        ranked = sorted(results.values(), key=lambda r: r.max_score, reverse=True)

        logger.debug(f"Aggregated {len(matches)} matches into {len(ranked)} videos")
        return ranked[:top_k]
