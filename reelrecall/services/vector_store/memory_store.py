"""
In-memory vector store.

Keeps records per namespace in process memory and scores them with numpy
cosine similarity. Used for local development (VECTOR_DB_TYPE=memory) and
tests; records are lost when the process exits.
"""

import asyncio
import copy
import logging
from typing import Any, Dict, List, Optional

import numpy as np

from reelrecall.core.config import settings
from reelrecall.core.exceptions import ConfigurationError, VectorStoreError
from reelrecall.schemas.chunk import ChunkMetadata, MatchResult, VectorRecord
from reelrecall.services.vector_store.base import VectorStore, require_namespace
from reelrecall.services.vector_store.filters import matches_filter

logger = logging.getLogger(__name__)


class InMemoryVectorStore(VectorStore):
    """
    Namespaced vector store held in a dict of dicts.

    Usage:
    ------
    store = InMemoryVectorStore(dimension=3072)
    await store.upsert("user_123", records)
    matches = await store.query("user_123", vector, top_k=20)
    """

    def __init__(self, dimension: int = None, batch_size: int = None):
        self.dimension = dimension or settings.EMBEDDING_DIMENSION
        self.batch_size = batch_size or settings.PINECONE_UPSERT_BATCH_SIZE
        # namespace -> id -> (unit vector, metadata)
        self._namespaces: Dict[str, Dict[str, tuple]] = {}
        self._lock = asyncio.Lock()

    def _normalize(self, values: List[float]) -> np.ndarray:
        vector = np.asarray(values, dtype=np.float32)
        if vector.shape != (self.dimension,):
            raise VectorStoreError(
                f"Vector dimension {vector.shape[-1] if vector.ndim else 0} "
                f"does not match index dimension {self.dimension}"
            )
        norm = np.linalg.norm(vector)
        return vector / norm if norm > 0 else vector

    async def upsert(self, namespace: str, records: List[VectorRecord]) -> int:
        require_namespace(namespace)
        if not records:
            return 0

        # Validate everything first so a bad record leaves the namespace untouched
        prepared = [
            (record.id, self._normalize(record.values), copy.deepcopy(record.metadata))
            for record in records
        ]

        async with self._lock:
            bucket = self._namespaces.setdefault(namespace, {})
            for record_id, vector, metadata in prepared:
                bucket[record_id] = (vector, metadata)

        logger.debug(f"Upserted {len(prepared)} records into namespace {namespace}")
        return len(prepared)

    async def query(
        self,
        namespace: str,
        vector: List[float],
        top_k: int,
        filter: Optional[Dict[str, Any]] = None,
    ) -> List[MatchResult]:
        require_namespace(namespace)
        query_vector = self._normalize(vector)
        bucket = self._namespaces.get(namespace, {})

        candidates = [
            (record_id, stored, metadata)
            for record_id, (stored, metadata) in bucket.items()
            if matches_filter(metadata, filter)
        ]
        if not candidates or top_k <= 0:
            return []

        matrix = np.stack([stored for _, stored, _ in candidates])
        scores = matrix @ query_vector
        order = np.argsort(-scores, kind="stable")[:top_k]

        return [
            MatchResult(
                id=candidates[i][0],
                score=float(scores[i]),
                metadata=ChunkMetadata.from_record_metadata(candidates[i][2]),
            )
            for i in order
        ]

    async def exists_by_url(self, namespace: str, url: str) -> bool:
        require_namespace(namespace)
        target = url.strip()
        bucket = self._namespaces.get(namespace, {})
        return any(
            str(metadata.get("videoUrl", "")).strip() == target
            for _, metadata in bucket.values()
        )

    async def delete_video(self, namespace: str, video_id: str) -> None:
        require_namespace(namespace)
        async with self._lock:
            bucket = self._namespaces.get(namespace, {})
            for record_id in [rid for rid, (_, md) in bucket.items() if md.get("videoId") == video_id]:
                del bucket[record_id]

    async def describe(self) -> Dict[str, Any]:
        return {
            "dimension": self.dimension,
            "namespaces": {ns: len(bucket) for ns, bucket in self._namespaces.items()},
            "total_vector_count": sum(len(b) for b in self._namespaces.values()),
        }

    async def verify(self) -> None:
        if self.dimension <= 0:
            raise ConfigurationError("In-memory index dimension must be positive")

    def record_ids(self, namespace: str) -> List[str]:
        """Ids stored in ``namespace`` (test and debugging helper)."""
        return sorted(self._namespaces.get(require_namespace(namespace), {}))
