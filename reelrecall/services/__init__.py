"""Business logic services."""

from reelrecall.services.ingestion import IngestionResult, IngestionService
from reelrecall.services.llm import AnthropicLanguageModel, LanguageModel
from reelrecall.services.notifier import MESSAGES, LoggingNotifier, Notifier, WebhookNotifier
from reelrecall.services.video_analysis import HttpVideoAnalyzer, VideoAnalyzer

__all__ = [
    "IngestionService",
    "IngestionResult",
    "LanguageModel",
    "AnthropicLanguageModel",
    "Notifier",
    "LoggingNotifier",
    "WebhookNotifier",
    "MESSAGES",
    "VideoAnalyzer",
    "HttpVideoAnalyzer",
]
