import pytest
from mcp.server import FastMCP

from smartbear_api_mcp.bugsnag import BugsnagAgent
from smartbear_api_mcp.main import build_agents
from smartbear_api_mcp.zephyr import ZephyrAgent


class TestBuildAgents:
    @pytest.mark.asyncio
    async def test_only_configured_products_are_registered(self):
        mcp = FastMCP("test")

        agents = build_agents(mcp, {"BUGSNAG_AUTH_TOKEN": "abc", "ZEPHYR_API_TOKEN": "z"})

        assert [type(agent) for agent in agents] == [BugsnagAgent, ZephyrAgent]
        names = {tool.name for tool in await mcp.list_tools()}
        assert "bugsnag_list_projects" in names
        assert "zephyr_list_projects" in names
        assert not any(name.startswith("pactflow_") for name in names)
        for agent in agents:
            await agent.aclose()

    @pytest.mark.asyncio
    async def test_mcp_clients_filter(self):
        agents = build_agents(
            FastMCP("test"),
            {"BUGSNAG_AUTH_TOKEN": "abc", "ZEPHYR_API_TOKEN": "z", "MCP_CLIENTS": "zephyr"},
        )

        assert [agent.prefix for agent in agents] == ["zephyr"]
        await agents[0].aclose()

    @pytest.mark.asyncio
    async def test_retry_setting_reaches_the_client(self):
        agents = build_agents(
            FastMCP("test"), {"BUGSNAG_AUTH_TOKEN": "abc", "SMARTBEAR_RATE_LIMIT_RETRIES": "unlimited"}
        )

        assert agents[0].client.guard.max_retries is None
        await agents[0].aclose()

    def test_nothing_configured(self):
        with pytest.raises(ValueError, match="No product is configured"):
            build_agents(FastMCP("test"), {})
