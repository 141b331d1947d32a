"""
Vector store interface.

Every operation takes the caller's namespace as its first argument. There
is no default namespace and no way to infer one, so a record can only be
written to or read from the namespace the caller names.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from reelrecall.schemas.chunk import MatchResult, VectorRecord


def require_namespace(namespace: str) -> str:
    """Reject empty namespaces before any request is made."""
    if not namespace or not str(namespace).strip():
        raise ValueError("namespace is required for every vector store operation")
    return namespace


class VectorStore(ABC):
    """Namespaced upsert/query/existence-check over a vector index."""

    dimension: int

    @abstractmethod
    async def upsert(self, namespace: str, records: List[VectorRecord]) -> int:
        """
        Insert or overwrite records by id.

        Returns:
            Number of records written

        Raises:
            VectorStoreError: Any batch failed; the whole call fails
        """

    @abstractmethod
    async def query(
        self,
        namespace: str,
        vector: List[float],
        top_k: int,
        filter: Optional[Dict[str, Any]] = None,
    ) -> List[MatchResult]:
        """Nearest records by cosine similarity, best first."""

    @abstractmethod
    async def exists_by_url(self, namespace: str, url: str) -> bool:
        """
        Whether any record's ``videoUrl`` equals ``url`` (trimmed).

        Lookup failures return False so new content is re-processed rather
        than silently dropped.
        """

    @abstractmethod
    async def delete_video(self, namespace: str, video_id: str) -> None:
        """Remove every record belonging to ``video_id``."""

    @abstractmethod
    async def describe(self) -> Dict[str, Any]:
        """Index statistics: dimension and per-namespace record counts."""

    async def verify(self) -> None:
        """
        Check the index dimension against the configured one.

        Raises:
            ConfigurationError: The index was created with another dimension
        """

    async def close(self) -> None:
        """Release client resources."""
