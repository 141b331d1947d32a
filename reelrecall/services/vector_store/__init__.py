"""
Vector Store Package

- base: VectorStore interface (namespace is mandatory on every call)
- pinecone_store: Pinecone-backed implementation
- memory_store: numpy implementation for development and tests
- filters: metadata filter evaluation used by the in-memory store
"""

from reelrecall.core.config import Settings, settings as default_settings
from reelrecall.services.vector_store.base import VectorStore
from reelrecall.services.vector_store.memory_store import InMemoryVectorStore


def create_vector_store(settings: Settings = None) -> VectorStore:
    """Build the store selected by VECTOR_DB_TYPE."""
    settings = settings or default_settings

    if settings.VECTOR_DB_TYPE == "memory":
        return InMemoryVectorStore(dimension=settings.EMBEDDING_DIMENSION)

    from reelrecall.services.vector_store.pinecone_store import PineconeVectorStore

    return PineconeVectorStore(
        api_key=settings.PINECONE_API_KEY,
        index_name=settings.PINECONE_INDEX_NAME,
        dimension=settings.EMBEDDING_DIMENSION,
        batch_size=settings.PINECONE_UPSERT_BATCH_SIZE,
    )


__all__ = ["VectorStore", "InMemoryVectorStore", "create_vector_store"]
