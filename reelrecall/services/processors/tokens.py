"""
Token counting shared by the chunk builder and the embedding client.

Both use the cl100k_base encoding of the OpenAI embedding models, so text
the chunk builder trims to N tokens is measured as N tokens by the embedding
input guard. If tiktoken cannot load its encoding files, both sides fall
back to the same estimate of 4 characters per token.
"""

import logging
from functools import lru_cache
from typing import Optional

import tiktoken

logger = logging.getLogger(__name__)

ENCODING_NAME = "cl100k_base"
CHARS_PER_TOKEN = 4


@lru_cache(maxsize=1)
def load_encoding() -> Optional[tiktoken.Encoding]:
    try:
        return tiktoken.get_encoding(ENCODING_NAME)
    except Exception as e:
        logger.warning(f"tiktoken encoding {ENCODING_NAME} unavailable, estimating tokens: {e}")
        return None


class TokenCounter:
    """
    Usage:
    ------
    counter = TokenCounter()
    counter.count("pizza dough")
    counter.truncate(long_text, 8000)
    """

    def __init__(self, encoding: Optional[tiktoken.Encoding] = None, use_tiktoken: bool = True):
        self.encoding = encoding or (load_encoding() if use_tiktoken else None)

    def count(self, text: str) -> int:
        if self.encoding is not None:
            return len(self.encoding.encode(text))
        # Rounded up so truncate() output never counts above its limit
        return -(-len(text) // CHARS_PER_TOKEN)

    def truncate(self, text: str, max_tokens: int) -> str:
        """Trim text so that ``count()`` of the result is at most ``max_tokens``."""
        if self.encoding is not None:
            tokens = self.encoding.encode(text)
            if len(tokens) <= max_tokens:
                return text
            trimmed = self.encoding.decode(tokens[:max_tokens])
            # Decoding a cut multi-byte sequence can re-encode longer
            while trimmed and self.count(trimmed) > max_tokens:
                trimmed = trimmed[:-1]
            return trimmed
        return text[: max_tokens * CHARS_PER_TOKEN]
