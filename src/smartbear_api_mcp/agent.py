import logging
from typing import Any, Callable, Dict

from mcp.server import FastMCP

from .client import ResourceClient
from .errors import ApiClientError, HttpError, DecodeError
from .models import ErrorResponse


def error_response(e: ApiClientError) -> Dict[str, Any]:
    """What a tool hands back to the host when the upstream call failed: the message,
    and for HTTP failures the status and the server's own text, untouched."""
    if isinstance(e, (HttpError, DecodeError)):
        return ErrorResponse(error=str(e), status_code=e.status, body=e.body_text).model_dump(exclude_none=True)
    return ErrorResponse(error=str(e)).model_dump(exclude_none=True)


class ProductAgent:
    """
    Registers one product's operations as MCP tools on top of a ResourceClient.

    Subclasses set ``name``/``prefix`` and call ``register_tools`` from ``__init__``.
    """
    name = "product"
    prefix = "product"

    def __init__(self, mcp_server: FastMCP, client: ResourceClient):
        self.mcp = mcp_server
        self.client = client
        self.mcp.resource(f"{self.prefix}://field-policies")(self.field_policies)

    def register_tools(self, *tools: Callable) -> None:
        # Products share operation names (list_projects...), so tool names carry the prefix
        for tool in tools:
            self.mcp.tool(name=f"{self.prefix}_{tool.__name__}")(tool)
        logging.getLogger(__name__).info(
            "%s client initialized with %d tools.", self.name, len(tools)
        )

    async def field_policies(self) -> Dict[str, str]:
        """The field redaction applied to each resource type this product returns."""
        return self.client.policies.describe()

    async def aclose(self) -> None:
        await self.client.aclose()
