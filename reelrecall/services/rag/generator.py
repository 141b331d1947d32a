"""
Answer Generator

Turns a user request into a reply:

1. Classify intent: ``find_video`` (send the video back) or ``question``
   (answer from the video's content). Falls back to ``find_video``.
2. Search the user's videos.
3. Keep results whose max_score reaches RAG_ANSWER_MIN_SCORE.
4. Reply with the top video, a synthesized answer, or "not found".

Answer synthesis is optional: if the language model fails, the reply
degrades to sending the top video.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from reelrecall.core.config import settings
from reelrecall.core.exceptions import LanguageModelError
from reelrecall.schemas.search import AggregatedResult
from reelrecall.services.llm import LanguageModel
from reelrecall.services.notifier import MESSAGES
from reelrecall.services.rag.search_service import SearchService

logger = logging.getLogger(__name__)

INTENT_FIND_VIDEO = "find_video"
INTENT_QUESTION = "question"

INTENT_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "intent": {
            "type": "string",
            "enum": [INTENT_FIND_VIDEO, INTENT_QUESTION],
            "description": (
                "find_video when the user wants a saved video back, "
                "question when they want information from it"
            ),
        },
    },
    "required": ["intent"],
}

INTENT_PROMPT = """A user is talking to an assistant that remembers short videos they saved.
Decide whether the user wants one of their saved videos sent back to them
(find_video) or wants an answer to a question about what a video contained
(question).

User message: {query}"""

SYSTEM_PROMPT = """You are ReelRecall, an assistant that remembers short videos the user saved.

Your task is to:
1. Answer the user's question using ONLY the video analyses provided in the context
2. Be accurate and factual - don't make up steps, quantities or names
3. If the context doesn't contain the answer, say so
4. Keep the answer short enough to read in a chat message
5. Mention which video the answer comes from using its title"""


@dataclass
class Reply:
    kind: str  # "video" | "answer" | "no_results"
    intent: str
    message: str
    video_url: Optional[str] = None
    results: List[AggregatedResult] = field(default_factory=list)


class AnswerGenerator:
    """
    Usage:
    ------
    generator = AnswerGenerator(search_service, llm)
    reply = await generator.respond("user_123", "how much yeast goes in the pizza dough?")
    """

    def __init__(
        self,
        search_service: SearchService,
        llm: Optional[LanguageModel] = None,
        min_score: float = None,
        max_context_tokens: int = None,
    ):
        self.search_service = search_service
        self.llm = llm
        self.min_score = settings.RAG_ANSWER_MIN_SCORE if min_score is None else min_score
        self.max_context_tokens = max_context_tokens or settings.RAG_MAX_CONTEXT_TOKENS

    async def classify_intent(self, query: str) -> str:
        """Return ``find_video`` or ``question``; never raises."""
        if self.llm is None:
            return INTENT_FIND_VIDEO
        try:
            parsed = await self.llm.generate_structured(
                INTENT_PROMPT.format(query=query), INTENT_SCHEMA
            )
        except LanguageModelError as e:
            logger.warning(f"Intent classification failed, assuming find_video: {e}")
            return INTENT_FIND_VIDEO

        intent = parsed.get("intent") if isinstance(parsed, dict) else None
        if intent not in (INTENT_FIND_VIDEO, INTENT_QUESTION):
            logger.warning(f"Unrecognized intent {intent!r}, assuming find_video")
            return INTENT_FIND_VIDEO
        return intent

    async def respond(self, user_id: str, query: str, top_k: int = 5) -> Reply:
        intent = await self.classify_intent(query)
        results = await self.search_service.search(user_id, query, top_k=top_k)
        relevant = [r for r in results if r.max_score >= self.min_score]

        logger.info(
            f"Answering for user {user_id}: intent={intent}, "
            f"results={len(results)}, above_threshold={len(relevant)}"
        )

        if not relevant:
            return Reply(kind="no_results", intent=intent, message=MESSAGES["VIDEO_NOT_FOUND"])

        top = relevant[0]
        video_reply = Reply(
            kind="video",
            intent=intent,
            message=MESSAGES["VIDEO_FOUND"],
            video_url=top.video_url,
            results=relevant,
        )

        if intent != INTENT_QUESTION or self.llm is None:
            return video_reply

        try:
            answer = await self.llm.generate_text(
                self._build_user_message(query, self.assemble_context(relevant)),
                system=SYSTEM_PROMPT,
            )
        except LanguageModelError as e:
            logger.warning(f"Answer synthesis failed, sending video instead: {e}")
            return video_reply

        return Reply(
            kind="answer",
            intent=intent,
            message=answer,
            video_url=top.video_url,
            results=relevant,
        )

    def assemble_context(self, results: List[AggregatedResult]) -> str:
        """
        Format results as numbered sources, truncated to fit the token budget.
        """
        context_parts = []
        current_tokens = 0

        for i, result in enumerate(results):
            lines = [f"[Source {i + 1}] {result.title or 'Untitled video'}"]
            if result.summary:
                lines.append(f"Summary: {result.summary}")
            for entry in result.visual_content:
                elements = ", ".join(entry.key_elements)
                lines.append(f"Scene ({entry.timestamp}): {entry.scene}" + (f" [{elements}]" if elements else ""))
            if result.audio_content.speech:
                lines.append(f"Speech: {result.audio_content.speech}")
            for topic in result.topics:
                lines.append(f"Topic: {topic.name} - {topic.context}")
            formatted = "\n".join(lines) + "\n"

            # Estimate tokens (rough: 4 chars = 1 token)
            chunk_tokens = len(formatted) // 4
            if context_parts and current_tokens + chunk_tokens > self.max_context_tokens:
                logger.info(f"Context truncated at {i} sources ({current_tokens} tokens)")
                break

            context_parts.append(formatted)
            current_tokens += chunk_tokens

        return "\n---\n\n".join(context_parts)

    @staticmethod
    def _build_user_message(query: str, context: str) -> str:
        return f"""Saved video analyses:

{context}

---

Question: {query}

Please answer the question based on the videos above."""
