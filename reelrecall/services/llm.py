"""
Language Model Service

Thin adapter over the Claude API exposing the two calls the retrieval
pipeline needs:

- ``generate_structured(prompt, schema)``: JSON object matching ``schema``
- ``generate_text(prompt)``: free text

Structured output uses a forced tool call whose ``input_schema`` is the
requested JSON schema, so the response is already parsed JSON.

Both calls are optional enhancements. Callers catch LanguageModelError and
fall back to deterministic behavior.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

from anthropic import APIError, AsyncAnthropic

from reelrecall.core.config import settings
from reelrecall.core.exceptions import ConfigurationError, LanguageModelError

logger = logging.getLogger(__name__)

STRUCTURED_TOOL_NAME = "structured_response"


class LanguageModel(ABC):
    """Text-in / JSON-or-text-out service."""

    @abstractmethod
    async def generate_structured(self, prompt: str, schema: Dict[str, Any]) -> Dict[str, Any]:
        ...

    @abstractmethod
    async def generate_text(self, prompt: str, system: Optional[str] = None) -> str:
        ...

    async def close(self) -> None:
        """Release client resources."""


class AnthropicLanguageModel(LanguageModel):
    """
    Claude-backed language model.

    Usage:
    ------
    llm = AnthropicLanguageModel(api_key=settings.ANTHROPIC_API_KEY)
    data = await llm.generate_structured(prompt, schema)
    text = await llm.generate_text(prompt)
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = None,
        max_tokens: int = None,
        temperature: float = 0.2,
        client: Optional[AsyncAnthropic] = None,
    ):
        """
        Args:
            api_key: Anthropic API key (default from settings)
            model: Claude model (default from settings)
            max_tokens: Maximum tokens in a response (default from settings)
            temperature: Sampling temperature 0-1 (default: 0.2)
            client: Pre-built AsyncAnthropic client
        """
        self.model = model or settings.ANTHROPIC_MODEL
        self.max_tokens = max_tokens or settings.ANTHROPIC_MAX_TOKENS
        self.temperature = temperature

        if client is not None:
            self.client = client
        else:
            api_key = api_key or settings.ANTHROPIC_API_KEY
            if not api_key:
                raise ConfigurationError(
                    "Anthropic API key is required. Set ANTHROPIC_API_KEY in environment."
                )
            self.client = AsyncAnthropic(
                api_key=api_key,
                timeout=settings.LLM_REQUEST_TIMEOUT,
                max_retries=1,
            )

        logger.info(f"AnthropicLanguageModel initialized with model={self.model}")

    async def generate_structured(self, prompt: str, schema: Dict[str, Any]) -> Dict[str, Any]:
        """
        Generate a JSON object that follows ``schema``.

        Raises:
            LanguageModelError: The call failed or no tool output came back
        """
        try:
            response = await self.client.messages.create(
                model=self.model,
                max_tokens=self.max_tokens,
                temperature=self.temperature,
                tools=[{
                    "name": STRUCTURED_TOOL_NAME,
                    "description": "Return the answer as structured data.",
                    "input_schema": schema,
                }],
                tool_choice={"type": "tool", "name": STRUCTURED_TOOL_NAME},
                messages=[{"role": "user", "content": prompt}],
            )
        except APIError as e:
            raise LanguageModelError(f"Structured generation failed: {e}") from e

        for block in response.content:
            if getattr(block, "type", None) == "tool_use":
                if isinstance(block.input, dict):
                    return block.input
                break

        raise LanguageModelError("Structured generation returned no tool output")

    async def generate_text(self, prompt: str, system: Optional[str] = None) -> str:
        """
        Generate free text.

        Raises:
            LanguageModelError: The call failed or the response was empty
        """
        kwargs = {
            "model": self.model,
            "max_tokens": self.max_tokens,
            "temperature": self.temperature,
            "messages": [{"role": "user", "content": prompt}],
        }
        if system:
            kwargs["system"] = system

        try:
            response = await self.client.messages.create(**kwargs)
        except APIError as e:
            raise LanguageModelError(f"Text generation failed: {e}") from e

        text = "".join(
            block.text for block in response.content if getattr(block, "type", None) == "text"
        ).strip()
        if not text:
            raise LanguageModelError("Text generation returned an empty response")

        logger.debug(
            f"Generated {len(text)} chars "
            f"(input_tokens={response.usage.input_tokens}, output_tokens={response.usage.output_tokens})"
        )
        return text

    async def close(self) -> None:
        await self.client.close()
