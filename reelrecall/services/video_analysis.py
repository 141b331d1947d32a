"""
Video Analysis Client

Calls the external analysis service that turns a video URL into a
SourceAnalysis. Analysis of a short video can take minutes, so the request
timeout is much longer than for embedding or search calls.
"""

import logging
from abc import ABC, abstractmethod
from typing import Optional

import httpx
from pydantic import ValidationError

from reelrecall.core.config import settings
from reelrecall.core.exceptions import ConfigurationError, VideoAnalysisError
from reelrecall.schemas.analysis import SourceAnalysis

logger = logging.getLogger(__name__)


class VideoAnalyzer(ABC):
    @abstractmethod
    async def analyze(self, video_url: str) -> SourceAnalysis:
        """Return the structured analysis of ``video_url``."""

    async def close(self) -> None:
        """Release client resources."""


class HttpVideoAnalyzer(VideoAnalyzer):
    """
    Posts ``{"videoUrl": ...}`` to VIDEO_ANALYSIS_URL and validates the
    JSON response (either the analysis itself or ``{"analysis": {...}}``).
    """

    def __init__(
        self,
        endpoint: Optional[str] = None,
        timeout: float = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.endpoint = endpoint or settings.VIDEO_ANALYSIS_URL
        if not self.endpoint:
            raise ConfigurationError("VIDEO_ANALYSIS_URL is required for HttpVideoAnalyzer")
        self.client = client or httpx.AsyncClient(
            timeout=timeout or settings.VIDEO_ANALYSIS_TIMEOUT
        )

    async def analyze(self, video_url: str) -> SourceAnalysis:
        """
        Raises:
            VideoAnalysisError: Transport failure, error status or invalid payload
        """
        logger.info(f"Requesting analysis for {video_url}")
        try:
            response = await self.client.post(self.endpoint, json={"videoUrl": video_url.strip()})
            response.raise_for_status()
            payload = response.json()
        except httpx.HTTPError as e:
            raise VideoAnalysisError(f"Video analysis request failed: {e}") from e
        except ValueError as e:
            raise VideoAnalysisError(f"Video analysis returned invalid JSON: {e}") from e

        if isinstance(payload, dict) and isinstance(payload.get("analysis"), dict):
            payload = payload["analysis"]

        try:
            return SourceAnalysis.model_validate(payload)
        except ValidationError as e:
            raise VideoAnalysisError(f"Video analysis payload is malformed: {e}") from e

    async def close(self) -> None:
        await self.client.aclose()
