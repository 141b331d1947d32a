"""
Tests for reply generation.

This module tests:
- AnthropicLanguageModel request shaping and error mapping (mocked client)
- AnswerGenerator intent handling, score threshold and fallbacks
"""

from types import SimpleNamespace
from unittest.mock import AsyncMock, Mock

import httpx
import pytest
from anthropic import APIConnectionError

from reelrecall.core.exceptions import LanguageModelError
from reelrecall.schemas.analysis import VisualEntry
from reelrecall.schemas.search import AggregatedResult
from reelrecall.services.llm import STRUCTURED_TOOL_NAME, AnthropicLanguageModel
from reelrecall.services.notifier import MESSAGES
from reelrecall.services.rag.generator import AnswerGenerator
from reelrecall.services.rag.search_service import SearchService


def _connection_error() -> APIConnectionError:
    return APIConnectionError(request=httpx.Request("POST", "https://api.anthropic.com/v1/messages"))


def _response(*blocks):
    return SimpleNamespace(
        content=list(blocks),
        usage=SimpleNamespace(input_tokens=10, output_tokens=5),
    )


def _result(video_id: str, max_score: float, **kwargs) -> AggregatedResult:
    return AggregatedResult(
        video_id=video_id,
        video_url=f"https://instagram.com/reel/{video_id}",
        max_score=max_score,
        avg_score=max_score,
        score=max_score,
        **kwargs,
    )


# ========================================
# Fixtures
# ========================================

@pytest.fixture
def anthropic_client():
    client = Mock()
    client.messages.create = AsyncMock()
    client.close = AsyncMock()
    return client


@pytest.fixture
def search_service():
    service = Mock(spec=SearchService)
    service.search = AsyncMock(return_value=[])
    return service


# ========================================
# Language Model
# ========================================

@pytest.mark.asyncio
class TestAnthropicLanguageModel:
    """Test the Claude adapter."""

    async def test_structured_output_from_tool_call(self, anthropic_client):
        anthropic_client.messages.create.return_value = _response(
            SimpleNamespace(type="tool_use", input={"intent": "question"})
        )
        llm = AnthropicLanguageModel(model="claude-test", client=anthropic_client)

        result = await llm.generate_structured("classify", {"type": "object"})

        assert result == {"intent": "question"}
        kwargs = anthropic_client.messages.create.await_args.kwargs
        assert kwargs["model"] == "claude-test"
        assert kwargs["tool_choice"] == {"type": "tool", "name": STRUCTURED_TOOL_NAME}
        assert kwargs["tools"][0]["input_schema"] == {"type": "object"}

    async def test_structured_output_missing(self, anthropic_client):
        anthropic_client.messages.create.return_value = _response(SimpleNamespace(type="text", text="hi"))
        llm = AnthropicLanguageModel(client=anthropic_client)

        with pytest.raises(LanguageModelError):
            await llm.generate_structured("classify", {"type": "object"})

    async def test_text_joined_and_stripped(self, anthropic_client):
        anthropic_client.messages.create.return_value = _response(
            SimpleNamespace(type="text", text=" Use 7 grams"),
            SimpleNamespace(type="text", text=" of yeast. "),
        )
        llm = AnthropicLanguageModel(client=anthropic_client)

        text = await llm.generate_text("question", system="be brief")

        assert text == "Use 7 grams of yeast."
        assert anthropic_client.messages.create.await_args.kwargs["system"] == "be brief"

    async def test_empty_text_raises(self, anthropic_client):
        anthropic_client.messages.create.return_value = _response()
        llm = AnthropicLanguageModel(client=anthropic_client)

        with pytest.raises(LanguageModelError):
            await llm.generate_text("question")

    async def test_api_error_mapped(self, anthropic_client):
        anthropic_client.messages.create.side_effect = _connection_error()
        llm = AnthropicLanguageModel(client=anthropic_client)

        with pytest.raises(LanguageModelError):
            await llm.generate_text("question")


# ========================================
# Answer Generator
# ========================================

@pytest.mark.asyncio
class TestAnswerGenerator:
    """Test reply selection."""

    async def test_intent_defaults_without_llm(self, search_service):
        generator = AnswerGenerator(search_service, llm=None)

        assert await generator.classify_intent("how much yeast?") == "find_video"

    async def test_unknown_intent_defaults(self, search_service, mock_llm):
        mock_llm.generate_structured.return_value = {"intent": "chitchat"}
        generator = AnswerGenerator(search_service, llm=mock_llm)

        assert await generator.classify_intent("hello") == "find_video"

    async def test_intent_failure_defaults(self, search_service, mock_llm):
        mock_llm.generate_structured.side_effect = LanguageModelError("down")
        generator = AnswerGenerator(search_service, llm=mock_llm)

        assert await generator.classify_intent("how much yeast?") == "find_video"

    async def test_results_below_threshold_ignored(self, search_service):
        search_service.search.return_value = [_result("weak", 0.3)]
        generator = AnswerGenerator(search_service, llm=None, min_score=0.5)

        reply = await generator.respond("user_123", "pizza")

        assert reply.kind == "no_results"
        assert reply.message == MESSAGES["VIDEO_NOT_FOUND"]

    async def test_best_video_sent(self, search_service):
        search_service.search.return_value = [_result("best", 0.8), _result("other", 0.6)]
        generator = AnswerGenerator(search_service, llm=None, min_score=0.5)

        reply = await generator.respond("user_123", "pizza")

        assert reply.kind == "video"
        assert reply.video_url == "https://instagram.com/reel/best"
        assert [r.video_id for r in reply.results] == ["best", "other"]

    async def test_answer_falls_back_to_video(self, search_service, mock_llm):
        search_service.search.return_value = [_result("best", 0.8)]
        mock_llm.generate_structured.return_value = {"intent": "question"}
        mock_llm.generate_text.side_effect = LanguageModelError("down")
        generator = AnswerGenerator(search_service, llm=mock_llm, min_score=0.5)

        reply = await generator.respond("user_123", "how much yeast?")

        assert reply.kind == "video"
        assert reply.intent == "question"


class TestContextAssembly:
    """Test source formatting for the answer prompt."""

    def test_context_lists_sources(self, search_service):
        generator = AnswerGenerator(search_service, llm=None)
        results = [
            _result("a", 0.9, title="Pizza", summary="Dough basics",
                    visual_content=[VisualEntry(timestamp="00:05", scene="kneading", key_elements=["dough"])]),
            _result("b", 0.8),
        ]

        context = generator.assemble_context(results)

        assert "[Source 1] Pizza" in context
        assert "Scene (00:05): kneading [dough]" in context
        assert "[Source 2] Untitled video" in context

    def test_context_truncated_to_budget(self, search_service):
        generator = AnswerGenerator(search_service, llm=None, max_context_tokens=10)
        results = [_result(f"v{i}", 0.9, summary="x" * 200) for i in range(3)]

        context = generator.assemble_context(results)

        assert "[Source 1]" in context
        assert "[Source 2]" not in context
