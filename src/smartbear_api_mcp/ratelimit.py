import asyncio
import logging
from typing import Awaitable, Callable, Optional

import httpx

from .cancellation import CancellationToken, check
from .errors import RateLimitExceeded
from .executor import ExecutedResponse, RequestExecutor
from .models import RequestDescriptor

logger = logging.getLogger(__name__)

TOO_MANY_REQUESTS = 429
DEFAULT_RETRY_AFTER_SECONDS = 1
DEFAULT_MAX_RETRIES = 5
NON_IDEMPOTENT_METHODS = {"POST", "PATCH"}

Sleep = Callable[[float], Awaitable[None]]


def retry_after_seconds(headers: httpx.Headers) -> int:
    """Retry-After as whole seconds; anything unusable falls back to the default."""
    value = headers.get("retry-after")
    if value is None:
        return DEFAULT_RETRY_AFTER_SECONDS
    try:
        seconds = int(value.strip())
    except ValueError:
        return DEFAULT_RETRY_AFTER_SECONDS
    return max(seconds, 0)


class RateLimitGuard:
    """
    Replays a request, unchanged, for as long as the server answers 429 Too Many Requests,
    waiting the number of seconds given in Retry-After between attempts.

    :param max_retries: how many throttled responses to absorb before giving up with
        RateLimitExceeded. None retries forever.
    """

    def __init__(
            self,
            executor: RequestExecutor,
            max_retries: Optional[int] = DEFAULT_MAX_RETRIES,
            sleep: Sleep = asyncio.sleep,
    ):
        self.executor = executor
        self.max_retries = max_retries
        self.sleep = sleep

    async def send(
            self, descriptor: RequestDescriptor, cancel: Optional[CancellationToken] = None
    ) -> httpx.Response:
        retries = 0
        while True:
            check(cancel)
            response = await self.executor.send(descriptor)
            if response.status_code != TOO_MANY_REQUESTS:
                return response

            if self.max_retries is not None and retries >= self.max_retries:
                raise RateLimitExceeded(response.status_code, response.text, retries + 1)

            delay = retry_after_seconds(response.headers)
            retries += 1
            if descriptor.method in NON_IDEMPOTENT_METHODS:
                logger.warning(
                    "Replaying non-idempotent %s %s after throttling", descriptor.method, descriptor.url
                )
            logger.warning(
                "Rate limited on %s %s, retrying in %ss (retry %d)",
                descriptor.method, descriptor.url, delay, retries,
            )
            check(cancel)
            await self.sleep(delay)

    async def call(
            self, descriptor: RequestDescriptor, cancel: Optional[CancellationToken] = None
    ) -> ExecutedResponse:
        return self.executor.classify(await self.send(descriptor, cancel))
