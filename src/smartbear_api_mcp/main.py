import logging
import os
import sys
from typing import List, Mapping

from mcp.server import FastMCP

from . import bugsnag, config, pactflow, zephyr
from .agent import ProductAgent
from .client import ResourceClient

logging.basicConfig(
    level=logging.INFO,
    stream=sys.stderr,
    format=">>>>>>>>>>>>%(levelname)s: %(message)s",
)

PRODUCTS = {
    "bugsnag": (config.bugsnag_configuration, bugsnag.FIELD_POLICIES, bugsnag.BugsnagAgent),
    "pactflow": (config.pactflow_configuration, pactflow.FIELD_POLICIES, pactflow.PactflowAgent),
    "zephyr": (config.zephyr_configuration, zephyr.FIELD_POLICIES, zephyr.ZephyrAgent),
}


def build_agents(mcp_server: FastMCP, env: Mapping[str, str] = os.environ) -> List[ProductAgent]:
    """
    Registers every product that has credentials in the environment and is enabled by
    MCP_CLIENTS (all of them when it is unset).
    """
    enabled = config.enabled_clients(env)
    retries = config.rate_limit_retries(env)

    agents = []
    for name, (load_configuration, policies, agent_class) in PRODUCTS.items():
        if enabled is not None and name not in enabled:
            logging.info("%s disabled by MCP_CLIENTS.", name)
            continue
        client_configuration = load_configuration(env)
        if client_configuration is None:
            logging.info("%s credentials not set, skipping.", name)
            continue
        client = ResourceClient(client_configuration, policies, max_rate_limit_retries=retries)
        agents.append(agent_class(mcp_server, client))

    if not agents:
        raise ValueError(
            "No product is configured. Set BUGSNAG_AUTH_TOKEN, PACT_BROKER_BASE_URL with "
            "PACT_BROKER_TOKEN (or PACT_BROKER_USERNAME/PACT_BROKER_PASSWORD), or ZEPHYR_API_TOKEN."
        )
    return agents


# If run directly from a TTY, this server could be compromised (STDIO hijacking, etc)
def check_stdio_is_not_tty():
    """
    Checks if stdin, stdout, and stderr are not connected to a TTY.
    Returns True if safe, False otherwise.
    """
    if sys.stdin.isatty() or sys.stdout.isatty() or sys.stderr.isatty():
        print("Error: This server is not meant to be run interactively.", file=sys.stderr)
        return False
    return True


def main():
    if not check_stdio_is_not_tty():
        sys.exit(1)

    mcp_server_instance = FastMCP("SmartBearAgent")
    build_agents(mcp_server_instance)

    mcp_server_instance.run(transport="stdio")


if __name__ == "__main__":
    main()
