"""
Embedding Service

This module provides embedding generation through the OpenAI embeddings API.

Model: text-embedding-3-large
- 3072 dimensions (fixed system-wide; the vector index is created with it)
- 8191 input token limit

Features:
---------
- Process-wide request ceiling (fixed window, blocking by default)
- Retry with exponential backoff on transient failures
- Dimension check on every response
- Parallel fan-out within fixed-size batches, with a pause between batches
"""

import asyncio
import logging
from typing import List, Optional

import numpy as np
import openai
from openai import AsyncOpenAI

from reelrecall.core.config import settings
from reelrecall.core.exceptions import ConfigurationError, EmbeddingError, EmbeddingInputError
from reelrecall.core.rate_limit import WindowRateLimiter
from reelrecall.services.processors.tokens import TokenCounter

logger = logging.getLogger(__name__)

# Transport failures worth another attempt
RETRYABLE_ERRORS = (
    openai.APIConnectionError,  # includes APITimeoutError
    openai.RateLimitError,
    openai.InternalServerError,
)

MAX_BACKOFF_SECONDS = 8.0


class EmbeddingService:
    """
    Service for generating embeddings with the OpenAI API.

    One instance is constructed at startup and shared by ingestion and
    search, so its rate limiter covers every embedding call in the process.

    Usage:
    ------
    embedder = EmbeddingService(api_key=settings.OPENAI_API_KEY)

    # Single text
    embedding = await embedder.embed_text("pizza dough tutorial")

    # Batch processing
    embeddings = await embedder.embed_texts_batch(["Text 1", "Text 2"])
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        model_name: str = None,
        dimension: int = None,
        max_tokens: int = None,
        max_attempts: int = None,
        batch_size: int = None,
        batch_pause_seconds: float = None,
        retry_base_delay: float = 1.0,
        rate_limiter: Optional[WindowRateLimiter] = None,
        normalize: bool = True,
        client: Optional[AsyncOpenAI] = None,
        token_counter: Optional[TokenCounter] = None,
    ):
        """
        Initialize the embedding service.

        Args:
            api_key: OpenAI API key (default from settings)
            model_name: Embedding model (default from settings)
            dimension: Expected vector dimension (default from settings)
            max_tokens: Input token limit (default from settings)
            max_attempts: Attempts per text before giving up (default from settings)
            batch_size: Texts embedded concurrently per batch (default from settings)
            batch_pause_seconds: Pause between batches (default from settings)
            retry_base_delay: First backoff delay in seconds, doubled per retry
            rate_limiter: Shared request limiter (default built from settings)
            normalize: L2-normalize returned vectors (default True)
            client: Pre-built AsyncOpenAI client
            token_counter: Tokenizer for the input guard (default cl100k_base, as in chunking)
        """
        self.model_name = model_name or settings.EMBEDDING_MODEL
        self.dimension = dimension or settings.EMBEDDING_DIMENSION
        self.max_tokens = max_tokens or settings.EMBEDDING_MAX_TOKENS
        self.max_attempts = max_attempts or settings.EMBEDDING_MAX_ATTEMPTS
        self.batch_size = batch_size or settings.EMBEDDING_BATCH_SIZE
        self.batch_pause_seconds = (
            settings.EMBEDDING_BATCH_PAUSE_SECONDS
            if batch_pause_seconds is None
            else batch_pause_seconds
        )
        self.retry_base_delay = retry_base_delay
        self.rate_limiter = rate_limiter or WindowRateLimiter()
        self.normalize = normalize
        self.token_counter = token_counter or TokenCounter()

        if client is not None:
            self.client = client
        else:
            api_key = api_key or settings.OPENAI_API_KEY
            if not api_key:
                raise ConfigurationError(
                    "OpenAI API key is required. Set OPENAI_API_KEY in environment."
                )
            self.client = AsyncOpenAI(
                api_key=api_key,
                timeout=settings.EMBEDDING_REQUEST_TIMEOUT,
                max_retries=0,
            )

        logger.info(
            f"EmbeddingService initialized with model={self.model_name}, "
            f"dimension={self.dimension}"
        )

    def get_embedding_dimension(self) -> int:
        return self.dimension

    def count_tokens(self, text: str) -> int:
        """Input tokens as the provider counts them (cl100k_base)."""
        return self.token_counter.count(text)

    async def embed_text(self, text: str) -> List[float]:
        """
        Generate embedding for a single text.

        Args:
            text: Text to embed

        Returns:
            Embedding vector as list of floats

        Raises:
            ValueError: Empty text
            EmbeddingInputError: Input too long or rejected by the provider
            EmbeddingError: The provider kept failing
            ConfigurationError: Credentials rejected or dimension mismatch
        """
        if not text or not text.strip():
            raise ValueError("Cannot embed empty text")

        token_count = self.count_tokens(text)
        if token_count > self.max_tokens:
            raise EmbeddingInputError(
                f"Text too long for embedding: {token_count} tokens "
                f"(limit {self.max_tokens})",
                details={"tokens": token_count},
            )

        last_error: Optional[Exception] = None

        for attempt in range(1, self.max_attempts + 1):
            try:
                await self.rate_limiter.acquire()
                return await self._request_embedding(text)

            except openai.AuthenticationError as e:
                raise ConfigurationError(f"Embedding provider rejected credentials: {e}")

            except RETRYABLE_ERRORS as e:
                last_error = e
                if attempt >= self.max_attempts:
                    break
                delay = min(self.retry_base_delay * 2 ** (attempt - 1), MAX_BACKOFF_SECONDS)
                logger.warning(
                    f"Embedding attempt {attempt}/{self.max_attempts} failed: {e}. "
                    f"Retrying in {delay:.1f}s"
                )
                await asyncio.sleep(delay)

            except openai.APIError as e:
                # Bad request and similar: retrying cannot help
                raise EmbeddingInputError(f"Embedding request rejected: {e}") from e

        logger.error(f"Embedding failed after {self.max_attempts} attempts: {last_error}")
        raise EmbeddingError(
            f"Embedding failed after {self.max_attempts} attempts: {last_error}"
        ) from last_error

    async def _request_embedding(self, text: str) -> List[float]:
        response = await self.client.embeddings.create(model=self.model_name, input=text)
        embedding = response.data[0].embedding

        if len(embedding) != self.dimension:
            raise ConfigurationError(
                f"Embedding dimension mismatch: got {len(embedding)}, "
                f"expected {self.dimension}. Recreate the index or change the model."
            )

        if not self.normalize:
            return list(embedding)

        vector = np.asarray(embedding, dtype=np.float32)
        norm = np.linalg.norm(vector)
        if norm > 0:
            vector = vector / norm
        return vector.tolist()

    async def embed_texts_batch(self, texts: List[str]) -> List[List[float]]:
        """
        Generate embeddings for multiple texts.

        Texts within a batch are embedded concurrently; batches run one
        after another with ``batch_pause_seconds`` between them.

        Args:
            texts: List of texts to embed

        Returns:
            Embeddings in input order
        """
        if not texts:
            return []

        embeddings: List[List[float]] = []
        total_batches = (len(texts) + self.batch_size - 1) // self.batch_size

        for batch_index in range(total_batches):
            start = batch_index * self.batch_size
            batch = texts[start:start + self.batch_size]

            batch_embeddings = await asyncio.gather(*(self.embed_text(t) for t in batch))
            embeddings.extend(batch_embeddings)

            logger.debug(f"Embedded batch {batch_index + 1}/{total_batches} ({len(batch)} texts)")

            if batch_index < total_batches - 1 and self.batch_pause_seconds > 0:
                await asyncio.sleep(self.batch_pause_seconds)

        return embeddings

    async def shutdown(self) -> None:
        """Close the underlying HTTP client."""
        await self.client.close()
        logger.info("Embedding service shut down")
