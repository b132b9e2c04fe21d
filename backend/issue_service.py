"""
Issue Service — Posts new issues to the external automation webhook.

The webhook receives `{"jobId": ..., "issue": <title>}` and later reports
back through the trusted-sender path or the job completion endpoint.
Posting is fire-and-forget: failures are logged and reported as False,
never raised, and never retried.

Implementations:
  - IssueServiceClient  (httpx POST to issue_service.webhook_url)
  - MockIssueService    (records payloads; used when no URL is configured)
"""
from __future__ import annotations

import structlog
from abc import ABC, abstractmethod
from typing import Any, Optional

import httpx

from config.settings import IssueServiceConfig
from models.schemas import IssuePayload

logger = structlog.get_logger()


class IssueService(ABC):

    @abstractmethod
    async def post_issue(self, payload: IssuePayload) -> bool:
        """Send the payload. Returns False on any failure; never raises."""
        ...

    async def close(self) -> None:
        pass


class IssueServiceClient(IssueService):

    def __init__(self, config: IssueServiceConfig, client: httpx.AsyncClient = None):
        if not config or not config.webhook_url:
            raise ValueError("IssueServiceClient requires issue_service.webhook_url")
        self.config = config
        self.client: Optional[httpx.AsyncClient] = client

    async def _get_client(self) -> httpx.AsyncClient:
        if self.client is None or self.client.is_closed:
            headers = {"Content-Type": "application/json"}
            if self.config.auth_token:
                headers["Authorization"] = f"Bearer {self.config.auth_token}"
            self.client = httpx.AsyncClient(headers=headers, timeout=self.config.timeout_seconds)
        return self.client

    async def post_issue(self, payload: IssuePayload) -> bool:
        body = payload.model_dump(by_alias=True)
        try:
            client = await self._get_client()
            response = await client.post(self.config.webhook_url, json=body)
            response.raise_for_status()
            logger.info("issue_posted", job_id=payload.job_id, status_code=response.status_code)
            return True
        except Exception as e:
            logger.error("issue_post_failed", job_id=payload.job_id, error=str(e))
            return False

    async def close(self) -> None:
        if self.client:
            await self.client.aclose()


class MockIssueService(IssueService):
    """Keeps posted payloads in memory for local runs and tests."""

    def __init__(self):
        self.posted: list[dict[str, Any]] = []

    async def post_issue(self, payload: IssuePayload) -> bool:
        self.posted.append(payload.model_dump(by_alias=True))
        logger.info("mock_issue_posted", job_id=payload.job_id, issue=payload.issue)
        return True


def create_issue_service(config: IssueServiceConfig = None) -> IssueService:
    config = config or IssueServiceConfig()
    if config.webhook_url:
        logger.info("issue_service_created", type="webhook", url=config.webhook_url)
        return IssueServiceClient(config)
    logger.info("issue_service_created", type="mock")
    return MockIssueService()
