"""
Create-Issue Flow — Collects repo, title and body, then starts a job.

Steps:
  1. initialize    merge incoming options (recognizer entities) into user state
  2. ask_repo      prompt for the repo unless already set
  3. ask_title     save the repo reply, prompt for the title unless set
  4. ask_body      save the title reply, prompt for the body unless set
  5. finalize      save the body reply, summarize, start the job, post the issue

Fields are write-once: a non-empty value is never overwritten, so
re-entering the flow part way through never asks for a field twice.
A blank reply leaves the field empty, so the same prompt is asked again
and the reply is routed back into the same step.
"Already set" is always checked against the persisted user state.
"""
from __future__ import annotations

import structlog
from typing import Any

from context.state import StatePropertyAccessor
from dialogs.engine import (
    StepOutcome, WaterfallDialog, WaterfallStepContext, complete, proceed, retry, suspend,
)
from models.schemas import IssueCollectionState, IssuePayload

logger = structlog.get_logger()

DIALOG_ID = "CreateIssueDialog"

REPO_PROMPT = "In what repo would you like to create the issue?"
TITLE_PROMPT = "What should the title of the issue be?"
BODY_PROMPT = "What would you like to include in the body?"

ISSUE_FIELDS = ("repo_name", "title", "body")


def fill_empty(state: IssueCollectionState, field_name: str, value: Any) -> bool:
    """Set a field only if it is still empty and the value has content."""
    if getattr(state, field_name) or not isinstance(value, str):
        return False
    value = value.strip()
    if not value:
        return False
    setattr(state, field_name, value)
    return True


def summarize(state: IssueCollectionState) -> str:
    return (
        f"Creating new issue with title: {state.title}\n"
        f"And body: {state.body}\n"
        f"In the {state.repo_name} repo."
    )


class CreateIssueDialog(WaterfallDialog):

    def __init__(self, issue_state: StatePropertyAccessor, job_service, issue_service):
        if issue_state is None:
            raise ValueError("CreateIssueDialog requires an issue state accessor")
        if job_service is None:
            raise ValueError("CreateIssueDialog requires a job service")
        if issue_service is None:
            raise ValueError("CreateIssueDialog requires an issue service")

        super().__init__(DIALOG_ID, [
            self.initialize,
            self.ask_repo,
            self.ask_title,
            self.ask_body,
            self.finalize,
        ])
        self.issue_state = issue_state
        self.job_service = job_service
        self.issue_service = issue_service

    async def _state(self, step: WaterfallStepContext) -> IssueCollectionState:
        return await self.issue_state.get(step.turn, IssueCollectionState)

    # ── Steps ─────────────────────────────────────────────────

    async def initialize(self, step: WaterfallStepContext) -> StepOutcome:
        state = await self._state(step)
        for name in ISSUE_FIELDS:
            fill_empty(state, name, step.options.get(name))
        logger.info("issue_flow_started",
                    conversation_id=step.turn.activity.conversation.id,
                    prefilled=[n for n in ISSUE_FIELDS if getattr(state, n)])
        return proceed()

    async def ask_repo(self, step: WaterfallStepContext) -> StepOutcome:
        state = await self._state(step)
        if not state.repo_name:
            return suspend(REPO_PROMPT)
        return proceed()

    async def ask_title(self, step: WaterfallStepContext) -> StepOutcome:
        state = await self._state(step)
        fill_empty(state, "repo_name", step.result)
        if not state.repo_name:
            return retry(REPO_PROMPT)
        if not state.title:
            return suspend(TITLE_PROMPT)
        return proceed()

    async def ask_body(self, step: WaterfallStepContext) -> StepOutcome:
        state = await self._state(step)
        fill_empty(state, "title", step.result)
        if not state.title:
            return retry(TITLE_PROMPT)
        if not state.body:
            return suspend(BODY_PROMPT)
        return proceed()

    async def finalize(self, step: WaterfallStepContext) -> StepOutcome:
        state = await self._state(step)
        fill_empty(state, "body", step.result)
        if not state.body:
            return retry(BODY_PROMPT)
        collected = state.model_copy()

        await step.turn.send_activity(summarize(collected))
        job = await self.job_service.start_job(step.turn)
        await self.issue_service.post_issue(IssuePayload(job_id=job.id, issue=collected.title))

        await self.issue_state.delete(step.turn)
        logger.info("issue_flow_completed", job_id=job.id, repo=collected.repo_name)
        return complete(collected)
