"""
Tests for the complete search pipeline.

Runs the real components end to end with a fake embedder and the
in-memory vector store:
- Analysis -> Chunking -> Embedding -> Storage
- Query -> Enhancement -> Retrieval -> Aggregation -> Re-ranking -> Reply
"""

import pytest
import pytest_asyncio

from reelrecall.services.ingestion import IngestionService
from reelrecall.services.notifier import MESSAGES
from reelrecall.services.rag.generator import AnswerGenerator
from reelrecall.services.rag.query_service import QueryEnhancer
from reelrecall.services.rag.retriever import STAGE_FILTERED, STAGE_PURE_VECTOR, MultiStageRetriever
from reelrecall.services.rag.search_service import SearchService

USER_ID = "user_123"
PIZZA_URL = "https://instagram.com/reel/pizza"
SALAD_URL = "https://instagram.com/reel/salad"


# ================================
# Fixtures
# ================================

@pytest_asyncio.fixture
async def seeded_store(memory_store, fake_embedder, chunk_builder, pizza_analysis, salad_analysis):
    """Memory store holding the pizza and salad videos for USER_ID."""
    ingestion = IngestionService(chunk_builder, fake_embedder, memory_store)
    await ingestion.ingest(USER_ID, PIZZA_URL, pizza_analysis)
    await ingestion.ingest(USER_ID, SALAD_URL, salad_analysis)
    return memory_store


def _search_service(store, embedder, llm=None, **kwargs) -> SearchService:
    return SearchService(
        enhancer=QueryEnhancer(llm),
        embedder=embedder,
        retriever=MultiStageRetriever(store),
        **kwargs,
    )


# ================================
# Search
# ================================

@pytest.mark.asyncio
class TestSearchPipeline:
    """End-to-end search over ingested videos."""

    async def test_pizza_query_finds_pizza_video(self, seeded_store, fake_embedder):
        search = _search_service(seeded_store, fake_embedder)

        outcome = await search.search_with_details(USER_ID, "How do you make pizza dough?")

        assert outcome.stage == STAGE_FILTERED
        assert outcome.enhanced_query.fallback is True
        assert outcome.results[0].title == "Pizza Making Tutorial"
        assert outcome.results[0].video_url == PIZZA_URL
        assert outcome.results[0].match_counts["keyword"] >= 2

    async def test_one_result_per_video(self, seeded_store, fake_embedder):
        search = _search_service(seeded_store, fake_embedder)

        results = await search.search(USER_ID, "chef kitchen video with vegetables and dough")

        video_ids = [r.video_id for r in results]
        assert len(video_ids) == len(set(video_ids))
        assert len(results) <= 5

    async def test_enhanced_query_drives_filter(self, seeded_store, fake_embedder, mock_llm):
        mock_llm.generate_structured.return_value = {
            "searchText": "fresh vegetable salad with lemon vinaigrette",
            "searchTerms": ["salad", "vinaigrette"],
            "visualElements": [{"type": "object", "value": "cucumber"}],
            "topics": [{"name": "healthy eating"}],
        }
        search = _search_service(seeded_store, fake_embedder, llm=mock_llm)

        outcome = await search.search_with_details(USER_ID, "that salad one")

        assert outcome.stage == STAGE_FILTERED
        assert [r.title for r in outcome.results] == ["Summer Salad Ideas"]
        fake_embedder.embed_text.assert_awaited_with("fresh vegetable salad with lemon vinaigrette")

    async def test_query_embedded_once(self, seeded_store, fake_embedder):
        search = _search_service(seeded_store, fake_embedder)
        fake_embedder.embed_text.reset_mock()

        await search.search(USER_ID, "pizza")

        assert fake_embedder.embed_text.await_count == 1

    async def test_other_users_see_nothing(self, seeded_store, fake_embedder):
        search = _search_service(seeded_store, fake_embedder)

        outcome = await search.search_with_details("someone_else", "How do you make pizza dough?")

        assert outcome.results == []
        assert outcome.stage == STAGE_PURE_VECTOR

    async def test_min_score_filters_results(self, seeded_store, fake_embedder):
        search = _search_service(seeded_store, fake_embedder, min_score=1.01)

        assert await search.search(USER_ID, "pizza dough") == []

    async def test_user_id_required(self, seeded_store, fake_embedder):
        search = _search_service(seeded_store, fake_embedder)

        with pytest.raises(ValueError):
            await search.search("", "pizza")

    async def test_reingest_overwrites_records(self, seeded_store, fake_embedder, chunk_builder, pizza_analysis):
        before = seeded_store.record_ids(USER_ID)

        await IngestionService(chunk_builder, fake_embedder, seeded_store).ingest(
            USER_ID, PIZZA_URL, pizza_analysis
        )

        assert seeded_store.record_ids(USER_ID) == before


# ================================
# Replies
# ================================

@pytest.mark.asyncio
class TestAnswerPipeline:
    """End-to-end replies from the answer generator."""

    async def test_find_video_reply(self, seeded_store, fake_embedder):
        generator = AnswerGenerator(_search_service(seeded_store, fake_embedder), llm=None, min_score=0.1)

        reply = await generator.respond(USER_ID, "pizza dough tutorial")

        assert reply.kind == "video"
        assert reply.video_url == PIZZA_URL
        assert reply.message == MESSAGES["VIDEO_FOUND"]

    async def test_question_answered_from_context(self, seeded_store, fake_embedder, mock_llm):
        mock_llm.generate_structured.side_effect = [
            {"intent": "question"},
            {"searchText": "pizza dough yeast amount", "searchTerms": ["pizza", "dough", "yeast"]},
        ]
        mock_llm.generate_text.return_value = "Use 7 grams of yeast (Pizza Making Tutorial)."
        search = _search_service(seeded_store, fake_embedder, llm=mock_llm)
        generator = AnswerGenerator(search, llm=mock_llm, min_score=0.1)

        reply = await generator.respond(USER_ID, "how much yeast goes in the pizza dough?")

        assert reply.kind == "answer"
        assert reply.message == "Use 7 grams of yeast (Pizza Making Tutorial)."
        prompt = mock_llm.generate_text.await_args.args[0]
        assert "[Source 1] Pizza Making Tutorial" in prompt
        assert "7 grams of yeast" in prompt

    async def test_nothing_relevant(self, seeded_store, fake_embedder):
        generator = AnswerGenerator(_search_service(seeded_store, fake_embedder), min_score=1.01)

        reply = await generator.respond(USER_ID, "pizza")

        assert reply.kind == "no_results"
        assert reply.message == MESSAGES["VIDEO_NOT_FOUND"]
