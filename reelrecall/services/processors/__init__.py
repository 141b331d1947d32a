"""
Content Processors Package

Turns a video analysis into embeddable records.

Modules:
--------
- chunker: Overview / visual / audio / topics chunk construction
- embedder: Embedding generation using the OpenAI embeddings API
"""

from reelrecall.services.processors.chunker import VideoChunkBuilder, make_video_id
from reelrecall.services.processors.embedder import EmbeddingService

__all__ = ["VideoChunkBuilder", "make_video_id", "EmbeddingService"]
