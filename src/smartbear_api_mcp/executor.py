import logging
from typing import Any, Dict, Optional

import httpx

from .errors import DecodeError, HttpError, TransportError
from .models import ClientConfiguration, RequestDescriptor

logger = logging.getLogger(__name__)


class ExecutedResponse:
    """A successful, decoded response from a single request."""

    __slots__ = ("status", "headers", "body")

    def __init__(self, status: int, headers: httpx.Headers, body: Any):
        self.status = status
        self.headers = headers
        self.body = body


class RequestExecutor:
    """
    Issues exactly one HTTP request per call, with the configuration's headers and
    authentication applied, and classifies the outcome.

    Relative URLs resolve against the client's ``base_url``; absolute URLs are sent as-is.
    Throttling is not handled here; see RateLimitGuard.
    """

    def __init__(self, config: ClientConfiguration, http_client: httpx.AsyncClient):
        self.config = config
        self.client = http_client
        self.auth = config.auth.http_auth()

    def build_headers(self, descriptor: RequestDescriptor) -> Dict[str, str]:
        headers = dict(self.config.default_headers)
        for name, value in descriptor.headers.items():
            if name.lower() == "authorization":
                logger.warning(
                    "Ignoring Authorization header supplied for %s %s; the configured credentials are used",
                    descriptor.method, descriptor.url,
                )
                continue
            headers[name] = value
        return headers

    def build_request(self, descriptor: RequestDescriptor) -> httpx.Request:
        return self.client.build_request(
            descriptor.method,
            descriptor.url,
            headers=self.build_headers(descriptor),
            params=descriptor.params,
            json=descriptor.body,
            timeout=self.config.timeout,
        )

    async def send(self, descriptor: RequestDescriptor) -> httpx.Response:
        request = self.build_request(descriptor)
        logger.debug("%s %s", request.method, request.url)
        try:
            # Auth runs after the headers are merged, so it always wins
            return await self.client.send(request, auth=self.auth)
        except httpx.RequestError as e:
            logger.error("Network error requesting %s: %s", request.url, e)
            raise TransportError(str(request.url), e) from e

    @staticmethod
    def classify(response: httpx.Response) -> ExecutedResponse:
        if not response.is_success:
            raise HttpError(response.status_code, response.text)

        if not response.content:
            return ExecutedResponse(response.status_code, response.headers, None)

        try:
            body = response.json()
        except ValueError as e:
            raise DecodeError(response.status_code, response.text) from e
        return ExecutedResponse(response.status_code, response.headers, body)

    async def execute(self, descriptor: RequestDescriptor) -> ExecutedResponse:
        return self.classify(await self.send(descriptor))


def new_http_client(config: ClientConfiguration, transport: Optional[httpx.AsyncBaseTransport] = None) -> httpx.AsyncClient:
    return httpx.AsyncClient(base_url=config.base_path, timeout=config.timeout, transport=transport)
