"""
Tests for CrossChunkAggregator.

This test module verifies:
1. Grouping by video and per-video scores
2. Overview selection for title, summary and URL
3. Merge rules for visual, audio, topic and technical sections
4. Relevant chunk deduplication and ordering
5. Ranking and truncation to top_k
"""

import pytest

from reelrecall.schemas.analysis import AudioSummary, TechnicalDetails, TopicEntry, VisualEntry
from reelrecall.schemas.chunk import ChunkMetadata, MatchResult
from reelrecall.services.processors.chunker import VideoChunkBuilder
from reelrecall.services.rag.aggregator import (
    CrossChunkAggregator,
    collect_relevant_chunks,
    merge_audio,
    merge_topics,
    merge_visual,
    select_overview,
)


def _match(match_id: str, video_id: str, score: float, **metadata) -> MatchResult:
    options = dict(video_id=video_id, video_url=f"https://x/{video_id}")
    options.update(metadata)
    return MatchResult(id=match_id, score=score, metadata=ChunkMetadata(**options))


def _scene(timestamp: str, scene: str, *elements) -> VisualEntry:
    return VisualEntry(timestamp=timestamp, scene=scene, key_elements=list(elements))


# ========================================
# Grouping and Scores
# ========================================

class TestAggregation:
    """Test grouping, scoring and ranking."""

    def test_one_result_per_video(self):
        matches = [
            _match("v1_audio", "v1", 0.6, sequence_number=3),
            _match("v2", "v2", 0.9, sequence_number=1),
            _match("v1", "v1", 0.8, sequence_number=1),
        ]

        results = CrossChunkAggregator().aggregate(matches, top_k=5)

        assert [r.video_id for r in results] == ["v2", "v1"]

    def test_max_and_average_scores(self):
        matches = [
            _match("v1", "v1", 0.8, sequence_number=1),
            _match("v1_audio", "v1", 0.6, sequence_number=3),
            _match("v1_topics", "v1", 0.4, sequence_number=4),
        ]

        result = CrossChunkAggregator().aggregate(matches, top_k=5)[0]

        assert result.max_score == pytest.approx(0.8)
        assert result.avg_score == pytest.approx(0.6)
        assert result.score == result.max_score

    def test_truncated_to_top_k(self):
        matches = [_match(f"v{i}", f"v{i}", i / 10, sequence_number=1) for i in range(1, 8)]

        results = CrossChunkAggregator().aggregate(matches, top_k=3)

        assert [r.video_id for r in results] == ["v7", "v6", "v5"]

    def test_matches_without_video_id_skipped(self):
        matches = [
            _match("orphan", "", 0.99),
            _match("v1", "v1", 0.5, sequence_number=1),
        ]

        results = CrossChunkAggregator().aggregate(matches, top_k=5)

        assert [r.video_id for r in results] == ["v1"]

    def test_empty_matches(self):
        assert CrossChunkAggregator().aggregate([], top_k=5) == []


# ========================================
# Overview Selection
# ========================================

class TestOverviewSelection:
    """Test which chunk supplies title, summary and URL."""

    def test_sequence_one_is_overview(self):
        chunks = [
            _match("v1_audio", "v1", 0.9, sequence_number=3, title="Audio title"),
            _match("v1", "v1", 0.5, sequence_number=1, title="Overview title"),
        ]
        assert select_overview(chunks).id == "v1"

    def test_section_title_marks_overview(self):
        chunks = [
            _match("a", "v1", 0.9, sequence_number=4),
            _match("b", "v1", 0.5, sequence_number=2, section_title="Overview"),
        ]
        assert select_overview(chunks).id == "b"

    def test_first_chunk_when_no_overview(self):
        chunks = [
            _match("a", "v1", 0.9, sequence_number=3),
            _match("b", "v1", 0.5, sequence_number=4),
        ]
        assert select_overview(chunks).id == "a"

    def test_summary_from_overview_when_only_snippets_elsewhere(self):
        matches = [
            _match("v1_audio", "v1", 0.9, sequence_number=3, title="Pizza", summary="Short"),
            _match("v1", "v1", 0.5, sequence_number=1, title="Pizza", summary="Full summary of the pizza video"),
        ]

        result = CrossChunkAggregator().aggregate(matches, top_k=1)[0]

        assert result.summary == "Full summary of the pizza video"
        assert result.video_url == "https://x/v1"


# ========================================
# Section Merging
# ========================================

class TestSectionMerging:
    """Test per-section merge rules."""

    def test_visual_dedupe_keeps_first_position(self):
        chunks = [
            _match("p1", "v1", 0.9, visual_content=[
                _scene("00:00", "mixing", "flour"),
                _scene("00:10", "kneading", "dough"),
            ]),
            _match("p2", "v1", 0.8, visual_content=[
                _scene("00:00", "mixing", "flour", "bowl"),
                _scene("00:20", "baking", "oven"),
            ]),
        ]

        merged = merge_visual(chunks)

        assert [(e.timestamp, e.scene) for e in merged] == [
            ("00:00", "mixing"),
            ("00:10", "kneading"),
            ("00:20", "baking"),
        ]
        # Later occurrence replaces the value
        assert merged[0].key_elements == ["flour", "bowl"]

    def test_fragments_of_one_scene_survive_merging(self):
        """Pieces of an oversized scene share timestamp and scene but are not duplicates."""
        text = "On screen words. " * 100
        entry = VisualEntry(timestamp="00:10", scene="Chef at the counter", text=text, key_elements=["chef"])
        parts = VideoChunkBuilder(visual_byte_budget=300).split_visual_content([entry])
        chunks = [
            _match(f"v1_visual_{i}", "v1", 0.9 - i / 100, sequence_number=i + 2, visual_content=part)
            for i, part in enumerate(parts)
        ]
        stored = [
            chunk.model_copy(update={
                "metadata": ChunkMetadata.from_record_metadata(chunk.metadata.to_record_metadata()),
            })
            for chunk in chunks
        ]

        merged = merge_visual(stored)

        fragment_count = sum(len(part) for part in parts)
        assert fragment_count > 2
        assert len(merged) == fragment_count
        assert [e.fragment for e in merged] == list(range(1, fragment_count + 1))
        assert "".join(e.text or "" for e in merged) == text
        assert merged[0].scene == "Chef at the counter"

    def test_repeated_fragment_deduplicated(self):
        fragment = VisualEntry(timestamp="00:10", text="Knead", fragment=2)
        chunks = [
            _match("p1", "v1", 0.9, visual_content=[fragment]),
            _match("p2", "v1", 0.8, visual_content=[fragment]),
        ]

        assert merge_visual(chunks) == [fragment]

    def test_audio_union(self):
        chunks = [
            _match("a", "v1", 0.9, timestamp="t1", audio_content=AudioSummary(
                speech="Use 500g flour", music="Italian", sound_effects=["fire"],
            )),
            _match("b", "v1", 0.8, timestamp="t1", audio_content=AudioSummary(
                speech="Use 500g flour", music="Italian", sound_effects=["fire", "sizzle"],
            )),
            _match("c", "v1", 0.7, timestamp="t2", audio_content=AudioSummary(speech="Bake hot")),
            _match("d", "v1", 0.6),
        ]

        audio = merge_audio(chunks)

        assert audio.speech == "Use 500g flour\nBake hot"
        assert audio.music == ["Italian"]
        assert audio.sound_effects == ["fire", "sizzle"]
        assert audio.timestamps == ["t1", "t2"]

    def test_topics_keep_highest_relevance(self):
        chunks = [
            _match("a", "v1", 0.9, topics=[TopicEntry(name="Cooking", relevance=0.4, context="low")]),
            _match("b", "v1", 0.8, topics=[
                TopicEntry(name="Cooking", relevance=0.9, context="high"),
                TopicEntry(name="Travel", relevance=0.2),
            ]),
        ]

        topics = merge_topics(chunks)

        assert [(t.name, t.relevance, t.context) for t in topics] == [
            ("Cooking", 0.9, "high"),
            ("Travel", 0.2, ""),
        ]

    def test_keywords_and_technical_merged(self):
        matches = [
            _match("v1", "v1", 0.9, sequence_number=1, keywords=["pizza", "dough"],
                   technical_details=TechnicalDetails(quality="HD", effects=["slow motion"])),
            _match("v1_topics", "v1", 0.5, sequence_number=4, keywords=["dough", "oven"]),
        ]

        result = CrossChunkAggregator().aggregate(matches, top_k=1)[0]

        assert result.keywords == ["pizza", "dough", "oven"]
        assert result.technical_details.quality == "HD"
        assert result.technical_details.effects == ["slow motion"]


# ========================================
# Relevant Chunks
# ========================================

class TestRelevantChunks:
    """Test the relevant chunk list."""

    def test_deduplicated_by_timestamp_and_sequence(self):
        chunks = [
            _match("first", "v1", 0.5, timestamp="t", sequence_number=2, content="low"),
            _match("second", "v1", 0.7, timestamp="t", sequence_number=2, content="high"),
            _match("third", "v1", 0.6, timestamp="t", sequence_number=3, content="other"),
        ]

        relevant = collect_relevant_chunks(chunks)

        assert [c.chunk_id for c in relevant] == ["second", "third"]
        assert relevant[0].content == "high"

    def test_sorted_by_score(self):
        matches = [
            _match("v1", "v1", 0.3, sequence_number=1),
            _match("v1_audio", "v1", 0.9, sequence_number=3),
            _match("v1_visual_0", "v1", 0.6, sequence_number=2),
        ]

        result = CrossChunkAggregator().aggregate(matches, top_k=1)[0]

        assert [c.score for c in result.relevant_chunks] == [0.9, 0.6, 0.3]
