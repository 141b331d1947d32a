"""
Search API Routes

- POST /search: ranked videos for a query (no reply is sent)
- POST /ask: answer a user's request and deliver the reply to their chat
"""

import logging

from fastapi import APIRouter, Depends

from reelrecall.api.deps import get_answer_generator, get_notifier, get_search_service
from reelrecall.core.exceptions import NotificationError
from reelrecall.schemas.search import AskRequest, AskResponse, SearchRequest, SearchResponse
from reelrecall.services.notifier import Notifier
from reelrecall.services.rag.generator import AnswerGenerator, Reply
from reelrecall.services.rag.search_service import SearchService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["search"])


@router.post("/search", response_model=SearchResponse)
async def search_videos(
    request: SearchRequest,
    search_service: SearchService = Depends(get_search_service),
):
    """
    Search the user's saved videos.

    Args:
        request: User id (namespace), query text and number of videos

    Returns:
        Enhanced query, retrieval stage used, and re-ranked results
    """
    logger.info(f"Search request from {request.user_id}: '{request.query[:50]}'")

    outcome = await search_service.search_with_details(
        request.user_id, request.query, top_k=request.top_k
    )

    return SearchResponse(
        query=request.query,
        enhanced_query=outcome.enhanced_query,
        stage=outcome.stage,
        results=outcome.results,
    )


@router.post("/ask", response_model=AskResponse)
async def ask(
    request: AskRequest,
    generator: AnswerGenerator = Depends(get_answer_generator),
    notifier: Notifier = Depends(get_notifier),
):
    """
    Reply to a user's request: send back the matching video, answer a
    question about it, or say nothing matched.
    """
    reply = await generator.respond(request.user_id, request.query, top_k=request.top_k)
    delivered = await deliver_reply(notifier, request.user_id, reply)

    return AskResponse(
        kind=reply.kind,
        intent=reply.intent,
        message=reply.message,
        video_url=reply.video_url,
        results=reply.results,
        details={"delivered": delivered},
    )


async def deliver_reply(notifier: Notifier, user_id: str, reply: Reply) -> bool:
    """
    Send a reply through the notifier.

    Returns:
        False if delivery failed (the failure is logged, not raised)
    """
    try:
        await notifier.send_message(user_id, reply.message)
        if reply.kind == "video" and reply.video_url:
            await notifier.send_video(user_id, reply.video_url)
    except NotificationError as e:
        logger.warning(f"Could not deliver reply to {user_id}: {e}")
        return False
    return True
