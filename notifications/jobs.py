"""
Job Service — Starts, lists and completes jobs on the Job Log.

A job is started when the issue flow finishes: the current conversation
reference is stored so the completion event, which arrives later and
out of band, can resume that conversation and tell the user.
"""
from __future__ import annotations

import structlog
from typing import Awaitable, Callable, Optional

from channels.base import TurnContext, TurnLogic
from models.schemas import ConversationReference, JobRecord
from notifications.job_log import JobLog

logger = structlog.get_logger()

ResumeConversation = Callable[[ConversationReference, TurnLogic], Awaitable[Optional[TurnContext]]]


class JobService:

    def __init__(self, job_log: JobLog, resume: ResumeConversation = None):
        if job_log is None:
            raise ValueError("JobService requires a job log")
        self.job_log = job_log
        self._resume = resume

    async def start_job(self, turn: TurnContext) -> JobRecord:
        job = await self.job_log.create(turn.activity.conversation_reference())
        await turn.send_activity(
            f"We're starting job {job.id} for you. We'll notify you when it's complete."
        )
        logger.info("job_started", job_id=job.id, conversation_id=turn.activity.conversation.id)
        return job

    async def list_jobs(self, turn: TurnContext) -> None:
        await turn.send_activity(await self.job_log.render())

    async def complete_job(self, job_id: str, message: str = "") -> Optional[JobRecord]:
        """
        Mark a job completed and tell its conversation.

        Returns None for an unknown job id. A failed delivery is logged;
        the job stays completed.
        """
        job = await self.job_log.mark_completed(job_id)
        if job is None:
            logger.warning("job_complete_unknown", job_id=job_id)
            return None

        if self._resume is None:
            logger.info("job_completed_no_transport", job_id=job_id)
            return job

        text = f"Job {job.id} is complete."
        if message:
            text = f"{text} {message}"

        async def deliver(turn: TurnContext) -> None:
            await turn.send_activity(text)

        try:
            await self._resume(job.conversation, deliver)
            logger.info("job_completed", job_id=job_id, conversation_id=job.conversation.conversation.id)
        except Exception as e:
            logger.error("job_completion_delivery_failed", job_id=job_id, error=str(e))
        return job
