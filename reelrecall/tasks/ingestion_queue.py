"""
In-process ingestion job queue.

Drives IngestionService for submitted videos with duplicate suppression and
retry-with-delay:

    PENDING -> PROCESSING -> COMPLETED
                          -> RETRY_SCHEDULED -> PROCESSING ...
                          -> FAILED (after max_attempts, or at once for a non-retryable
                                     error; user is notified once)

Layout:
- ``_pending``: FIFO of job ids in submission order
- ``_retries``: heap of (ready_at, seq, job_id) for jobs waiting out the delay
- ``_jobs``: side-table with each active job's state

A single drain task processes one job at a time. It prefers a retry whose
delay has elapsed, then the oldest pending job, and otherwise sleeps until
the next retry is due or a new job arrives. It exits when nothing is left
and is restarted by the next submission.

Jobs live only in process memory; a restart drops them.
"""

import asyncio
import heapq
import itertools
import logging
import time
from collections import OrderedDict, deque
from datetime import datetime, timezone
from typing import Callable, Deque, Dict, List, Optional, Tuple
from uuid import uuid4

from reelrecall.core.config import settings
from reelrecall.schemas.analysis import SourceAnalysis, SubmissionMetadata
from reelrecall.schemas.job import IngestionJob, JobStatus, SubmitResult
from reelrecall.services.ingestion import IngestionService
from reelrecall.services.notifier import MESSAGES, Notifier
from reelrecall.services.vector_store.base import VectorStore

logger = logging.getLogger(__name__)

# Finished jobs kept for status lookups
HISTORY_SIZE = 200


class IngestionJobQueue:
    """
    Usage:
    ------
    queue = IngestionJobQueue(ingestion, vector_store, notifier)

    result = await queue.submit("user_123", "https://instagram.com/reel/abc", metadata)
    if result.already_processed:
        ...
    await queue.wait_until_idle()
    """

    def __init__(
        self,
        ingestion: IngestionService,
        vector_store: VectorStore,
        notifier: Notifier,
        max_attempts: int = None,
        retry_delay: float = None,
        notify_on_success: bool = True,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Args:
            ingestion: Pipeline run for each attempt
            vector_store: Used for duplicate checks
            notifier: Receives the terminal-failure (and success) messages
            max_attempts: Attempts before a job fails (default from settings)
            retry_delay: Seconds between a failed attempt and its retry (default from settings)
            notify_on_success: Tell the user when their video is ready
            clock: Monotonic time source
        """
        self.ingestion = ingestion
        self.vector_store = vector_store
        self.notifier = notifier
        self.max_attempts = max_attempts or settings.QUEUE_MAX_ATTEMPTS
        self.retry_delay = settings.QUEUE_RETRY_DELAY_SECONDS if retry_delay is None else retry_delay
        self.notify_on_success = notify_on_success
        self._clock = clock

        self._jobs: Dict[str, IngestionJob] = {}
        self._pending: Deque[str] = deque()
        self._retries: List[Tuple[float, int, str]] = []
        self._seq = itertools.count()
        self._history: "OrderedDict[str, IngestionJob]" = OrderedDict()

        self._drain_task: Optional[asyncio.Task] = None
        self._wakeup = asyncio.Event()

    # ========================================
    # Public API
    # ========================================

    async def submit(
        self,
        user_id: str,
        video_url: str,
        metadata: Optional[SubmissionMetadata] = None,
        analysis: Optional[SourceAnalysis] = None,
    ) -> SubmitResult:
        """
        Queue a video for ingestion unless it is already stored.

        Returns:
            SubmitResult with ``job_id``, or ``already_processed=True``
        """
        video_url = video_url.strip()
        if not user_id or not video_url:
            raise ValueError("user_id and video_url are required")

        if await self.vector_store.exists_by_url(user_id, video_url):
            logger.info(f"Video already processed for user {user_id}: {video_url}")
            return SubmitResult(already_processed=True)

        job = IngestionJob(
            job_id=f"job_{uuid4().hex}",
            user_id=user_id,
            video_url=video_url,
            metadata=metadata or SubmissionMetadata(),
            analysis=analysis,
            max_attempts=self.max_attempts,
            created_at=datetime.now(timezone.utc),
        )
        self._jobs[job.job_id] = job
        self._pending.append(job.job_id)
        logger.info(f"Queued job {job.job_id} for user {user_id}: {video_url}")

        self._ensure_draining()
        return SubmitResult(job_id=job.job_id)

    def get_job(self, job_id: str) -> Optional[IngestionJob]:
        """Active job, or a recently finished one."""
        return self._jobs.get(job_id) or self._history.get(job_id)

    @property
    def pending_count(self) -> int:
        return len(self._jobs)

    @property
    def active_job_ids(self) -> List[str]:
        return list(self._jobs)

    @property
    def is_draining(self) -> bool:
        return self._drain_task is not None and not self._drain_task.done()

    async def wait_until_idle(self) -> None:
        """Wait for the current drain loop (if any) to finish."""
        while self.is_draining:
            await self._drain_task

    async def shutdown(self) -> None:
        """Stop draining. Jobs still queued are dropped."""
        if self.is_draining:
            self._drain_task.cancel()
            try:
                await self._drain_task
            except asyncio.CancelledError:
                pass
        if self._jobs:
            logger.warning(f"Dropping {len(self._jobs)} unfinished ingestion jobs on shutdown")

    # ========================================
    # Drain Loop
    # ========================================

    def _ensure_draining(self) -> None:
        self._wakeup.set()
        if not self.is_draining:
            self._drain_task = asyncio.create_task(self._drain())

    def _next_ready_job(self) -> Optional[str]:
        if self._retries and self._retries[0][0] <= self._clock():
            return heapq.heappop(self._retries)[2]
        if self._pending:
            return self._pending.popleft()
        return None

    async def _drain(self) -> None:
        logger.debug("Ingestion drain loop started")
        while True:
            self._wakeup.clear()
            job_id = self._next_ready_job()

            if job_id is None:
                if not self._retries:
                    break
                delay = max(0.0, self._retries[0][0] - self._clock())
                try:
                    # A new submission interrupts the wait
                    await asyncio.wait_for(self._wakeup.wait(), timeout=delay)
                except asyncio.TimeoutError:
                    pass
                continue

            job = self._jobs.get(job_id)
            if job is not None:
                await self._process(job)

        logger.debug("Ingestion drain loop finished")

    async def _process(self, job: IngestionJob) -> None:
        # Another job may have stored this URL while this one waited
        if await self.vector_store.exists_by_url(job.user_id, job.video_url):
            logger.info(f"Job {job.job_id}: video already stored, skipping")
            self._finish(job, JobStatus.COMPLETED)
            return

        job.status = JobStatus.PROCESSING
        attempt = job.attempts + 1
        logger.info(f"Job {job.job_id}: attempt {attempt}/{job.max_attempts}")

        try:
            await self.ingestion.process_video(
                job.user_id, job.video_url, job.metadata, analysis=job.analysis
            )
        except asyncio.CancelledError:
            raise
        except Exception as e:
            job.attempts = attempt
            job.last_attempt_time = self._clock()
            job.last_error = f"{type(e).__name__}: {e}"

            if not getattr(e, "retryable", True) or job.attempts >= job.max_attempts:
                logger.error(
                    f"Job {job.job_id} failed after {job.attempts} attempts: {job.last_error}"
                )
                self._finish(job, JobStatus.FAILED)
                await self._notify(job.user_id, MESSAGES["VIDEO_PROCESSING_ERROR"])
                return

            ready_at = job.last_attempt_time + self.retry_delay
            job.status = JobStatus.RETRY_SCHEDULED
            heapq.heappush(self._retries, (ready_at, next(self._seq), job.job_id))
            logger.warning(
                f"Job {job.job_id} attempt {job.attempts} failed ({job.last_error}); "
                f"retrying in {self.retry_delay:g}s"
            )
            return

        job.attempts = attempt
        job.last_attempt_time = self._clock()
        self._finish(job, JobStatus.COMPLETED)
        logger.info(f"Job {job.job_id} completed")
        if self.notify_on_success:
            await self._notify(job.user_id, MESSAGES["VIDEO_PROCESSED"])

    def _finish(self, job: IngestionJob, status: JobStatus) -> None:
        job.status = status
        self._jobs.pop(job.job_id, None)
        self._history[job.job_id] = job
        while len(self._history) > HISTORY_SIZE:
            self._history.popitem(last=False)

    async def _notify(self, user_id: str, text: str) -> None:
        try:
            await self.notifier.send_message(user_id, text)
        except Exception as e:
            logger.error(f"Failed to notify user {user_id}: {e}")
