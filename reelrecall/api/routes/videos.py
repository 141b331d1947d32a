"""
Video Submission API Routes

- Submit a video for ingestion (deduplicated per user by URL)
- Check a job's status
- Inspect the ingestion queue
- Forget a stored video
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import JSONResponse

from reelrecall.api.deps import get_ingestion_queue, get_notifier, get_vector_store
from reelrecall.core.exceptions import NotificationError
from reelrecall.schemas.job import (
    JobStatusResponse,
    QueueStatusResponse,
    SubmitVideoRequest,
    SubmitVideoResponse,
)
from reelrecall.services.notifier import MESSAGES, Notifier
from reelrecall.services.vector_store.base import VectorStore
from reelrecall.tasks.ingestion_queue import IngestionJobQueue

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/videos", tags=["videos"])


@router.post(
    "",
    response_model=SubmitVideoResponse,
    status_code=status.HTTP_202_ACCEPTED,
    responses={200: {"model": SubmitVideoResponse, "description": "Video already stored"}},
)
async def submit_video(
    request: SubmitVideoRequest,
    queue: IngestionJobQueue = Depends(get_ingestion_queue),
    notifier: Notifier = Depends(get_notifier),
):
    """
    Queue a video for ingestion.

    Returns 202 with a job id, or 200 when the user already has this video.
    """
    result = await queue.submit(
        request.user_id,
        request.video_url,
        metadata=request.metadata,
        analysis=request.analysis,
    )

    if result.already_processed:
        message = MESSAGES["VIDEO_ALREADY_PROCESSED"]
        await _notify(notifier, request.user_id, message)
        return JSONResponse(
            status_code=status.HTTP_200_OK,
            content=SubmitVideoResponse(status="already_processed", message=message).model_dump(),
        )

    message = MESSAGES["VIDEO_RECEIVED"]
    await _notify(notifier, request.user_id, message)
    return SubmitVideoResponse(status="queued", job_id=result.job_id, message=message)


@router.get("/jobs/{job_id}", response_model=JobStatusResponse)
async def get_job_status(
    job_id: str,
    queue: IngestionJobQueue = Depends(get_ingestion_queue),
):
    """Status of an active or recently finished job."""
    job = queue.get_job(job_id)
    if job is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Job not found"
        )

    return JobStatusResponse(
        job_id=job.job_id,
        status=job.status,
        attempts=job.attempts,
        max_attempts=job.max_attempts,
        last_error=job.last_error,
    )


@router.get("/queue", response_model=QueueStatusResponse)
async def get_queue_status(queue: IngestionJobQueue = Depends(get_ingestion_queue)):
    return QueueStatusResponse(
        pending=queue.pending_count,
        draining=queue.is_draining,
        job_ids=queue.active_job_ids,
    )


@router.delete("/{video_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_video(
    video_id: str,
    user_id: str = Query(..., min_length=1),
    vector_store: VectorStore = Depends(get_vector_store),
):
    """Forget a stored video (all of its records) for one user."""
    await vector_store.delete_video(user_id, video_id)
    logger.info(f"Deleted video {video_id} for user {user_id}")
    return None


async def _notify(notifier: Notifier, user_id: str, message: str) -> None:
    try:
        await notifier.send_message(user_id, message)
    except NotificationError as e:
        logger.warning(f"Could not notify user {user_id}: {e}")
