import json

import httpx
import pytest
from mcp.server import FastMCP

from smartbear_api_mcp.pactflow import FIELD_POLICIES, PactflowAgent

from .conftest import BASE_URL


class TestPactflowAgent:
    @pytest.fixture
    def requests(self):
        return []

    @pytest.fixture
    def agent_for(self, make_client, requests):
        def factory(respond):
            def handler(request: httpx.Request) -> httpx.Response:
                requests.append(request)
                return respond(request)

            return PactflowAgent(FastMCP("test"), make_client(handler, policies=FIELD_POLICIES))

        return factory

    @pytest.mark.asyncio
    async def test_generate_pact_tests_polls_until_ready(self, agent_for, requests):
        checks = []

        def respond(request: httpx.Request) -> httpx.Response:
            if request.url.path == "/api/ai/generate":
                return httpx.Response(202, json={
                    "status_url": f"{BASE_URL}/api/ai/jobs/1/status",
                    "result_url": f"{BASE_URL}/api/ai/jobs/1/result",
                })
            if request.url.path == "/api/ai/jobs/1/status":
                checks.append(request.method)
                return httpx.Response(202 if len(checks) == 1 else 200)
            return httpx.Response(200, json={"code": "describe('API')", "language": "typescript"})

        agent = agent_for(respond)

        result = await agent.generate_pact_tests(
            "typescript", openapi={"document": {"openapi": "3.0.0"}, "matcher": {"path": "/users"}}
        )

        assert result == {"code": "describe('API')", "language": "typescript"}
        assert checks == ["HEAD", "HEAD"]
        assert json.loads(requests[0].content) == {
            "language": "typescript",
            "openapi": {"document": {"openapi": "3.0.0"}, "matcher": {"path": "/users"}},
        }
        assert requests[0].headers["authorization"] == "token secret-token"

    @pytest.mark.asyncio
    async def test_unauthorized_generation_suggests_entitlement_check(self, agent_for):
        agent = agent_for(lambda request: httpx.Response(401, text="no credits"))

        result = await agent.generate_pact_tests("java", code=[{"filename": "Client.java", "body": "..."}])

        assert result["status_code"] == 401
        assert result["body"] == "no credits"
        assert "check_ai_entitlements" in result["suggestion"]

    @pytest.mark.asyncio
    async def test_unsupported_language(self, agent_for, requests):
        agent = agent_for(lambda request: httpx.Response(200, json={}))

        result = await agent.generate_pact_tests("cobol")

        assert result["error"] == "Unsupported language: cobol"
        assert requests == []

    @pytest.mark.asyncio
    async def test_can_i_deploy_strips_hal_links(self, agent_for, requests):
        decision = {
            "summary": {"deployable": True, "reason": "All required verification results are published"},
            "_links": {"self": {"href": "x"}},
            "matrix": [{"consumer": {"name": "web", "_links": {"self": {"href": "y"}}}}],
        }
        agent = agent_for(lambda request: httpx.Response(200, json=decision))

        result = await agent.can_i_deploy("web", "1.2.3", "production")

        assert result == {
            "summary": {"deployable": True, "reason": "All required verification results are published"},
            "matrix": [{"consumer": {"name": "web"}}],
        }
        assert dict(requests[0].url.params) == {"pacticipant": "web", "version": "1.2.3", "environment": "production"}

    @pytest.mark.asyncio
    async def test_get_matrix_encodes_selectors(self, agent_for, requests):
        agent = agent_for(lambda request: httpx.Response(200, json={"matrix": []}))

        await agent.get_matrix([{"pacticipant": "web", "latest": True}, {"pacticipant": "api"}], latestby="cvp")

        assert requests[0].url.params.multi_items() == [
            ("q[][pacticipant]", "web"),
            ("q[][latest]", "true"),
            ("q[][pacticipant]", "api"),
            ("latestby", "cvp"),
        ]

    @pytest.mark.asyncio
    async def test_get_matrix_needs_a_selector(self, agent_for, requests):
        agent = agent_for(lambda request: httpx.Response(200, json={}))

        assert await agent.get_matrix([]) == {"error": "At least one selector is required"}
        assert requests == []
