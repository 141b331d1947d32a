"""
Tests for user notifications and the video analysis client.

HTTP calls go through httpx.MockTransport; no network access.
"""

import json

import httpx
import pytest

from reelrecall.core.exceptions import ConfigurationError, NotificationError, VideoAnalysisError
from reelrecall.services.notifier import MESSAGES, WebhookNotifier, split_message
from reelrecall.services.video_analysis import HttpVideoAnalyzer

MESSAGE_HOOK = "https://relay.test/message"
VIDEO_HOOK = "https://relay.test/video"


def _recording_client(requests: list, status_code: int = 200, body=None) -> httpx.AsyncClient:
    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(status_code, json=body if body is not None else {"ok": True})

    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


# ========================================
# Message Splitting
# ========================================

class TestSplitMessage:
    """Test word-boundary splitting."""

    def test_short_message_unchanged(self):
        assert split_message("hello there", 950) == ["hello there"]

    def test_empty_message(self):
        assert split_message("   ", 950) == []

    def test_split_on_words(self):
        parts = split_message("aaa bbb ccc ddd", 7)

        assert parts == ["aaa bbb", "ccc ddd"]

    def test_every_part_within_limit(self):
        text = " ".join(["word"] * 600)

        parts = split_message(text, 950)

        assert len(parts) > 1
        assert all(len(p) <= 950 for p in parts)
        assert " ".join(parts) == text

    def test_long_word_cut(self):
        assert split_message("abcdefghij", 4) == ["abcd", "efgh", "ij"]


# ========================================
# Webhook Notifier
# ========================================

@pytest.mark.asyncio
class TestWebhookNotifier:
    """Test webhook payloads and failures."""

    async def test_send_message_payload(self):
        requests = []
        notifier = WebhookNotifier(MESSAGE_HOOK, VIDEO_HOOK, client=_recording_client(requests))

        await notifier.send_message("user_123", MESSAGES["VIDEO_PROCESSED"])

        assert len(requests) == 1
        assert str(requests[0].url) == MESSAGE_HOOK
        assert json.loads(requests[0].content) == {
            "user_ns": "user_123",
            "message": MESSAGES["VIDEO_PROCESSED"],
            "type": "text",
        }

    async def test_long_message_sent_in_parts(self):
        requests = []
        notifier = WebhookNotifier(MESSAGE_HOOK, max_length=20, client=_recording_client(requests))

        await notifier.send_message("user_123", "one two three four five six seven eight nine")

        sent = [json.loads(r.content)["message"] for r in requests]
        assert len(sent) == 3
        assert all(len(m) <= 20 for m in sent)
        assert " ".join(sent) == "one two three four five six seven eight nine"

    async def test_send_video_payload(self):
        requests = []
        notifier = WebhookNotifier(MESSAGE_HOOK, VIDEO_HOOK, client=_recording_client(requests))

        await notifier.send_video("user_123", "https://instagram.com/reel/pizza")

        assert str(requests[0].url) == VIDEO_HOOK
        assert json.loads(requests[0].content) == {
            "user_ns": "user_123",
            "url": "https://instagram.com/reel/pizza",
            "type": "video",
        }

    async def test_video_without_video_hook_sent_as_text(self):
        requests = []
        notifier = WebhookNotifier(MESSAGE_HOOK, client=_recording_client(requests))
        notifier.video_url = None

        await notifier.send_video("user_123", "https://instagram.com/reel/pizza")

        assert str(requests[0].url) == MESSAGE_HOOK
        assert json.loads(requests[0].content)["message"] == "https://instagram.com/reel/pizza"

    async def test_error_status_raises(self):
        notifier = WebhookNotifier(MESSAGE_HOOK, client=_recording_client([], status_code=502))

        with pytest.raises(NotificationError):
            await notifier.send_message("user_123", "hi")


# ========================================
# Video Analysis Client
# ========================================

@pytest.mark.asyncio
class TestHttpVideoAnalyzer:
    """Test the analysis service client."""

    async def test_analysis_parsed(self, pizza_analysis):
        requests = []
        body = pizza_analysis.model_dump(by_alias=True)
        analyzer = HttpVideoAnalyzer(
            "https://analysis.test/analyze", client=_recording_client(requests, body=body)
        )

        analysis = await analyzer.analyze(" https://instagram.com/reel/pizza ")

        assert analysis.title == "Pizza Making Tutorial"
        assert json.loads(requests[0].content) == {"videoUrl": "https://instagram.com/reel/pizza"}

    async def test_wrapped_analysis_parsed(self, pizza_analysis):
        body = {"analysis": pizza_analysis.model_dump(by_alias=True)}
        analyzer = HttpVideoAnalyzer("https://analysis.test/analyze", client=_recording_client([], body=body))

        analysis = await analyzer.analyze("https://instagram.com/reel/pizza")

        assert analysis.title == "Pizza Making Tutorial"

    async def test_error_status(self):
        analyzer = HttpVideoAnalyzer(
            "https://analysis.test/analyze", client=_recording_client([], status_code=500)
        )

        with pytest.raises(VideoAnalysisError):
            await analyzer.analyze("https://instagram.com/reel/pizza")

    async def test_malformed_payload(self):
        analyzer = HttpVideoAnalyzer(
            "https://analysis.test/analyze",
            client=_recording_client([], body={"visualContent": "not a list"}),
        )

        with pytest.raises(VideoAnalysisError):
            await analyzer.analyze("https://instagram.com/reel/pizza")


class TestHttpVideoAnalyzerConfig:
    def test_endpoint_required(self, monkeypatch):
        monkeypatch.setattr("reelrecall.services.video_analysis.settings.VIDEO_ANALYSIS_URL", None)

        with pytest.raises(ConfigurationError):
            HttpVideoAnalyzer()
