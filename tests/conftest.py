"""
Pytest configuration and fixtures.

This file is automatically discovered by pytest and provides
shared fixtures for all test modules.

External services (OpenAI, Anthropic, Pinecone, the messaging relay) are
replaced by mocks or in-process fakes; the in-memory vector store stands in
for the index.

References:
-----------
- Pytest Fixtures: https://docs.pytest.org/en/stable/fixture.html
- FastAPI Testing: https://fastapi.tiangolo.com/tutorial/testing/
"""

import hashlib
import re
from typing import List
from unittest.mock import AsyncMock, Mock

import numpy as np
import pytest

from reelrecall.schemas.analysis import SourceAnalysis, SubmissionMetadata
from reelrecall.services.llm import LanguageModel
from reelrecall.services.notifier import Notifier
from reelrecall.services.processors.chunker import VideoChunkBuilder
from reelrecall.services.processors.embedder import EmbeddingService
from reelrecall.services.vector_store.memory_store import InMemoryVectorStore

TEST_DIMENSION = 64


# ================================
# Fake Embeddings
# ================================

def hashed_embedding(text: str, dimension: int = TEST_DIMENSION) -> List[float]:
    """
    Deterministic bag-of-words embedding.

    Each lower-cased word increments one hashed bucket, so texts that share
    words have a higher cosine similarity.
    """
    vector = np.zeros(dimension, dtype=np.float32)
    for word in re.findall(r"\w+", text.lower()):
        bucket = int(hashlib.md5(word.encode("utf-8")).hexdigest(), 16) % dimension
        vector[bucket] += 1.0
    norm = np.linalg.norm(vector)
    if norm == 0:
        vector[0] = 1.0
        norm = 1.0
    return (vector / norm).tolist()


@pytest.fixture
def fake_embedder() -> Mock:
    """EmbeddingService stand-in backed by ``hashed_embedding``."""
    embedder = Mock(spec=EmbeddingService)
    embedder.dimension = TEST_DIMENSION

    async def _embed_text(text):
        if not text or not text.strip():
            raise ValueError("Cannot embed empty text")
        return hashed_embedding(text)

    async def _embed_batch(texts):
        return [hashed_embedding(t) for t in texts]

    embedder.embed_text = AsyncMock(side_effect=_embed_text)
    embedder.embed_texts_batch = AsyncMock(side_effect=_embed_batch)
    embedder.shutdown = AsyncMock()
    return embedder


# ================================
# Service Fixtures
# ================================

@pytest.fixture
def memory_store() -> InMemoryVectorStore:
    return InMemoryVectorStore(dimension=TEST_DIMENSION)


@pytest.fixture
def chunk_builder() -> VideoChunkBuilder:
    return VideoChunkBuilder()


@pytest.fixture
def mock_llm() -> Mock:
    """LanguageModel with async mocks; configure return values per test."""
    llm = Mock(spec=LanguageModel)
    llm.generate_structured = AsyncMock()
    llm.generate_text = AsyncMock()
    llm.close = AsyncMock()
    return llm


class RecordingNotifier(Notifier):
    """Notifier that keeps every message in memory."""

    def __init__(self):
        self.messages = []
        self.videos = []

    async def send_message(self, user_id: str, text: str) -> None:
        self.messages.append((user_id, text))

    async def send_video(self, user_id: str, video_url: str) -> None:
        self.videos.append((user_id, video_url))


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


# ================================
# Sample Analyses
# ================================

@pytest.fixture
def pizza_analysis() -> SourceAnalysis:
    """Analysis payload as emitted by the video analysis service (camelCase)."""
    return SourceAnalysis.model_validate({
        "title": "Pizza Making Tutorial",
        "summary": "A chef shows how to make pizza dough from scratch and bake a margherita pizza.",
        "visualContent": [
            {
                "timestamp": "00:00",
                "scene": "Chef mixes flour, water and yeast in a bowl",
                "keyElements": ["flour", "yeast", "bowl"],
            },
            {
                "timestamp": "00:20",
                "scene": "Chef kneads the pizza dough on a wooden board",
                "text": "Knead 10 minutes",
                "keyElements": ["dough", "wooden board"],
            },
            {
                "timestamp": "00:45",
                "scene": "Pizza goes into a wood-fired oven",
                "keyElements": ["oven", "pizza"],
            },
        ],
        "audioContent": {
            "speech": "Use 500 grams of flour and 7 grams of yeast for the dough.",
            "music": "Upbeat Italian music",
            "soundEffects": ["crackling fire"],
        },
        "topics": [
            {"name": "Cooking", "relevance": 0.9, "context": "Making pizza at home"},
            {"name": "Italian Food", "relevance": 0.8, "context": "Neapolitan margherita"},
        ],
        "technicalDetails": {
            "quality": "HD",
            "effects": ["slow motion"],
            "editing": "Quick cuts",
        },
        "searchableKeywords": ["pizza", "dough", "recipe", "margherita"],
    })


@pytest.fixture
def salad_analysis() -> SourceAnalysis:
    return SourceAnalysis.model_validate({
        "title": "Summer Salad Ideas",
        "summary": "Three quick salads with fresh vegetables and a lemon vinaigrette.",
        "visualContent": [
            {
                "timestamp": "00:05",
                "scene": "Tomatoes and cucumbers are chopped on a cutting board",
                "keyElements": ["tomato", "cucumber", "knife"],
            },
        ],
        "audioContent": {"speech": "Whisk lemon juice with olive oil.", "music": "Acoustic guitar"},
        "topics": [{"name": "Healthy Eating", "relevance": 0.7, "context": "Light summer meals"}],
        "searchableKeywords": ["salad", "vegetables", "vinaigrette"],
    })


@pytest.fixture
def submission_metadata() -> SubmissionMetadata:
    return SubmissionMetadata.model_validate({
        "mediaType": "VIDEO",
        "instaId": "1784",
        "username": "chef_anna",
        "name": "Anna",
    })


# ================================
# Pytest Hooks
# ================================

def pytest_addoption(parser):
    """Add custom pytest options."""
    parser.addoption(
        "--run-integration",
        action="store_true",
        default=False,
        help="Run integration tests that require network access and real API keys"
    )


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line(
        "markers", "integration: mark test as integration test (requires network and API keys)"
    )


def pytest_collection_modifyitems(config, items):
    """Skip integration tests unless --run-integration is given."""
    if config.getoption("--run-integration"):
        return
    skip_integration = pytest.mark.skip(reason="needs --run-integration")
    for item in items:
        if item.get_closest_marker("integration") is not None:
            item.add_marker(skip_integration)
