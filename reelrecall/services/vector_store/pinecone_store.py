"""
Pinecone vector store.

The Pinecone SDK is synchronous; every call runs in a worker thread via
``asyncio.to_thread`` so the event loop is never blocked.

Records are written in batches of at most PINECONE_UPSERT_BATCH_SIZE (100)
to stay under the request size limit.
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional

from pinecone import Pinecone

from reelrecall.core.config import settings
from reelrecall.core.exceptions import ConfigurationError, VectorStoreError
from reelrecall.schemas.chunk import ChunkMetadata, MatchResult, VectorRecord
from reelrecall.services.vector_store.base import VectorStore, require_namespace

logger = logging.getLogger(__name__)


def _field(obj: Any, name: str, default: Any = None) -> Any:
    """Read a field from an SDK response object or a plain dict."""
    if isinstance(obj, dict):
        return obj.get(name, default)
    return getattr(obj, name, default)


class PineconeVectorStore(VectorStore):
    """
    Vector store backed by a Pinecone index (cosine metric).

    Usage:
    ------
    store = PineconeVectorStore(api_key=settings.PINECONE_API_KEY)
    await store.verify()
    await store.upsert("user_123", records)
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        index_name: str = None,
        dimension: int = None,
        batch_size: int = None,
        index: Any = None,
    ):
        """
        Args:
            api_key: Pinecone API key (default from settings)
            index_name: Index to use (default from settings)
            dimension: Expected index dimension (default from settings)
            batch_size: Records per upsert request, at most 100 (default from settings)
            index: Pre-built index handle
        """
        self.index_name = index_name or settings.PINECONE_INDEX_NAME
        self.dimension = dimension or settings.EMBEDDING_DIMENSION
        self.batch_size = min(batch_size or settings.PINECONE_UPSERT_BATCH_SIZE, 100)

        if index is not None:
            self.index = index
        else:
            api_key = api_key or settings.PINECONE_API_KEY
            if not api_key:
                raise ConfigurationError(
                    "Pinecone API key is required. Set PINECONE_API_KEY in environment."
                )
            self._client = Pinecone(api_key=api_key)
            self.index = self._client.Index(self.index_name)

        logger.info(f"PineconeVectorStore using index={self.index_name}, dimension={self.dimension}")

    def _filter_only_vector(self) -> List[float]:
        # Cosine indexes reject all-zero query vectors
        return [1.0] + [0.0] * (self.dimension - 1)

    async def upsert(self, namespace: str, records: List[VectorRecord]) -> int:
        require_namespace(namespace)
        if not records:
            return 0

        total_batches = (len(records) + self.batch_size - 1) // self.batch_size

        for batch_index in range(total_batches):
            batch = records[batch_index * self.batch_size:(batch_index + 1) * self.batch_size]
            vectors = [
                {"id": r.id, "values": r.values, "metadata": r.metadata}
                for r in batch
            ]
            try:
                await asyncio.to_thread(self.index.upsert, vectors=vectors, namespace=namespace)
            except Exception as e:
                logger.error(
                    f"Upsert batch {batch_index + 1}/{total_batches} failed "
                    f"for namespace {namespace}: {e}"
                )
                raise VectorStoreError(f"Pinecone upsert failed: {e}") from e

        logger.info(f"Upserted {len(records)} records into namespace {namespace}")
        return len(records)

    async def query(
        self,
        namespace: str,
        vector: List[float],
        top_k: int,
        filter: Optional[Dict[str, Any]] = None,
    ) -> List[MatchResult]:
        require_namespace(namespace)

        kwargs = {
            "vector": vector,
            "top_k": top_k,
            "namespace": namespace,
            "include_metadata": True,
        }
        if filter:
            kwargs["filter"] = filter

        try:
            response = await asyncio.to_thread(self.index.query, **kwargs)
        except Exception as e:
            raise VectorStoreError(f"Pinecone query failed: {e}") from e

        return [
            MatchResult(
                id=_field(match, "id"),
                score=float(_field(match, "score") or 0.0),
                metadata=ChunkMetadata.from_record_metadata(_field(match, "metadata") or {}),
            )
            for match in (_field(response, "matches") or [])
        ]

    async def exists_by_url(self, namespace: str, url: str) -> bool:
        require_namespace(namespace)
        try:
            response = await asyncio.to_thread(
                self.index.query,
                vector=self._filter_only_vector(),
                top_k=1,
                namespace=namespace,
                filter={"videoUrl": {"$eq": url.strip()}},
                include_metadata=False,
            )
            return bool(_field(response, "matches"))
        except Exception as e:
            logger.warning(f"Duplicate check failed for {url!r}, treating as new: {e}")
            return False

    async def delete_video(self, namespace: str, video_id: str) -> None:
        require_namespace(namespace)

        def _delete() -> None:
            ids = [record_id for page in self.index.list(prefix=video_id, namespace=namespace)
                   for record_id in page]
            if ids:
                self.index.delete(ids=ids, namespace=namespace)

        try:
            await asyncio.to_thread(_delete)
        except Exception as e:
            raise VectorStoreError(f"Pinecone delete failed: {e}") from e

    async def describe(self) -> Dict[str, Any]:
        try:
            stats = await asyncio.to_thread(self.index.describe_index_stats)
        except Exception as e:
            raise VectorStoreError(f"Pinecone stats request failed: {e}") from e

        namespaces = _field(stats, "namespaces") or {}
        return {
            "dimension": _field(stats, "dimension"),
            "namespaces": {
                name: _field(summary, "vector_count", 0) for name, summary in namespaces.items()
            },
            "total_vector_count": _field(stats, "total_vector_count", 0),
        }

    async def verify(self) -> None:
        stats = await self.describe()
        index_dimension = stats.get("dimension")
        if index_dimension and index_dimension != self.dimension:
            raise ConfigurationError(
                f"Index {self.index_name} has dimension {index_dimension}, "
                f"expected {self.dimension}. Recreate the index or change the embedding model."
            )
        logger.info(f"Pinecone index {self.index_name} verified (dimension {index_dimension})")
