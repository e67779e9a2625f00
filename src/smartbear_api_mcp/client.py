import asyncio
import logging
from typing import Any, Mapping, Optional

import httpx

from .cancellation import CancellationToken
from .errors import ShapeError
from .executor import RequestExecutor, new_http_client
from .models import ClientConfiguration, FieldPolicy, RequestDescriptor, ResponseEnvelope
from .pagination import PaginationWalker
from .poller import DEFAULT_POLL_INTERVAL, DEFAULT_POLL_TIMEOUT, AsyncJobPoller
from .ratelimit import DEFAULT_MAX_RETRIES, RateLimitGuard, Sleep
from .sanitizer import FieldPolicyRegistry

logger = logging.getLogger(__name__)


class ResourceClient:
    """
    The request / pagination / redaction / polling core shared by every product agent.

    Product code only builds RequestDescriptors and declares one FieldPolicy per resource
    type it returns.

    :param http_client: Optional. A client built with ``base_url=config.base_path``; one is
        created from the configuration when omitted.
    """

    def __init__(
            self,
            config: ClientConfiguration,
            policies: Mapping[str, FieldPolicy],
            http_client: Optional[httpx.AsyncClient] = None,
            max_rate_limit_retries: Optional[int] = DEFAULT_MAX_RETRIES,
            max_pages: Optional[int] = None,
            poll_interval: float = DEFAULT_POLL_INTERVAL,
            poll_timeout: float = DEFAULT_POLL_TIMEOUT,
            sleep: Sleep = asyncio.sleep,
    ):
        self.config = config
        self.policies = FieldPolicyRegistry(policies)
        self.http = http_client or new_http_client(config)
        self.executor = RequestExecutor(config, self.http)
        self.guard = RateLimitGuard(self.executor, max_retries=max_rate_limit_retries, sleep=sleep)
        self.walker = PaginationWalker(self.guard, config.base_path, max_pages=max_pages)
        self.poller = AsyncJobPoller(self.guard, interval=poll_interval, timeout=poll_timeout, sleep=sleep)

    async def request_object(
            self,
            descriptor: RequestDescriptor,
            resource_type: str,
            cancel: Optional[CancellationToken] = None,
    ) -> ResponseEnvelope:
        """Single resource. An empty body (e.g. 204) is returned as None."""
        self.policies.policy_for(resource_type)
        response = await self.guard.call(descriptor, cancel)
        if response.body is not None and not isinstance(response.body, dict):
            raise ShapeError(
                f"Expected object from {descriptor.method} {descriptor.url}, got {type(response.body).__name__}"
            )
        body, redacted = self.policies.apply(resource_type, response.body)
        return ResponseEnvelope(status=response.status, headers=response.headers, body=body, redacted=redacted)

    async def fetch_collection(
            self,
            descriptor: RequestDescriptor,
            resource_type: str,
            fetch_all: bool = False,
            cancel: Optional[CancellationToken] = None,
    ) -> ResponseEnvelope:
        # An undeclared type fails before any request is sent
        self.policies.policy_for(resource_type)
        envelope = await self.walker.fetch_collection(descriptor, fetch_all=fetch_all, cancel=cancel)
        body, redacted = self.policies.apply(resource_type, envelope.body)
        return envelope.model_copy(update={"body": body, "redacted": redacted})

    async def run_job(
            self,
            descriptor: RequestDescriptor,
            operation: str,
            cancel: Optional[CancellationToken] = None,
    ) -> Any:
        return await self.poller.run(descriptor, operation, cancel)

    async def aclose(self) -> None:
        logger.info("Closing HTTPX client session for %s.", self.config.base_path)
        await self.http.aclose()
