"""Tests for the webhook issue client and the mock service."""
import json
import httpx
import pytest

from backend.issue_service import (
    IssueServiceClient, MockIssueService, create_issue_service,
)
from config.settings import IssueServiceConfig
from models.schemas import IssuePayload


def client_with(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


class TestIssueServiceClient:
    @pytest.mark.asyncio
    async def test_posts_payload_by_alias(self):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(202)

        config = IssueServiceConfig(webhook_url="https://hooks.example.com/issues")
        service = IssueServiceClient(config, client=client_with(handler))

        assert await service.post_issue(IssuePayload(job_id="job_1", issue="Fix login")) is True
        assert seen[0].method == "POST"
        assert str(seen[0].url) == "https://hooks.example.com/issues"
        assert json.loads(seen[0].content) == {"jobId": "job_1", "issue": "Fix login"}
        await service.close()

    @pytest.mark.asyncio
    async def test_bearer_token_header(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200)

        config = IssueServiceConfig(webhook_url="https://hooks.example.com/issues", auth_token="s3cret")
        service = IssueServiceClient(config)
        # Build the real client, then swap in the mock transport keeping its headers
        real = await service._get_client()
        service.client = httpx.AsyncClient(headers=real.headers, transport=httpx.MockTransport(handler))
        await real.aclose()

        await service.post_issue(IssuePayload(job_id="job_2", issue="x"))
        assert seen[0].headers["Authorization"] == "Bearer s3cret"
        await service.close()

    @pytest.mark.asyncio
    async def test_http_error_returns_false(self):
        config = IssueServiceConfig(webhook_url="https://hooks.example.com/issues")
        service = IssueServiceClient(config, client=client_with(lambda r: httpx.Response(500)))
        assert await service.post_issue(IssuePayload(job_id="job_3", issue="x")) is False

    @pytest.mark.asyncio
    async def test_network_error_returns_false(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        config = IssueServiceConfig(webhook_url="https://hooks.example.com/issues")
        service = IssueServiceClient(config, client=client_with(handler))
        assert await service.post_issue(IssuePayload(job_id="job_4", issue="x")) is False

    def test_requires_url(self):
        with pytest.raises(ValueError):
            IssueServiceClient(IssueServiceConfig(webhook_url=""))


class TestMockAndFactory:
    @pytest.mark.asyncio
    async def test_mock_records_posts(self):
        service = MockIssueService()
        assert await service.post_issue(IssuePayload(job_id="job_5", issue="y"))
        assert service.posted == [{"jobId": "job_5", "issue": "y"}]

    def test_factory_without_url_uses_mock(self):
        assert isinstance(create_issue_service(IssueServiceConfig()), MockIssueService)

    def test_factory_with_url(self):
        service = create_issue_service(IssueServiceConfig(webhook_url="http://localhost:9/x"))
        assert isinstance(service, IssueServiceClient)
