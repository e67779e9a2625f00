import asyncio
import logging
import time
from typing import Any, Callable, Optional

from pydantic import ValidationError

from .cancellation import CancellationToken, check
from .errors import JobFailedError, PollTimeoutError, ShapeError
from .models import AsyncJobHandle, RequestDescriptor
from .ratelimit import RateLimitGuard, Sleep

logger = logging.getLogger(__name__)

STILL_WORKING = 202
DEFAULT_POLL_INTERVAL = 1.0
DEFAULT_POLL_TIMEOUT = 120.0


class AsyncJobPoller:
    """
    Drives a long-running server-side job: submit it, check its status URL with HEAD until
    it is ready, then fetch the result once.

    A 202 from the status URL means the job is still working; any other 2xx means it is
    done. The remote job is not cancelled when the time budget runs out.
    """

    def __init__(
            self,
            guard: RateLimitGuard,
            interval: float = DEFAULT_POLL_INTERVAL,
            timeout: float = DEFAULT_POLL_TIMEOUT,
            sleep: Sleep = asyncio.sleep,
            clock: Callable[[], float] = time.monotonic,
    ):
        self.guard = guard
        self.interval = interval
        self.timeout = timeout
        self.sleep = sleep
        self.clock = clock

    async def submit(
            self, descriptor: RequestDescriptor, cancel: Optional[CancellationToken] = None
    ) -> AsyncJobHandle:
        response = await self.guard.call(descriptor, cancel)
        try:
            return AsyncJobHandle.model_validate(response.body)
        except ValidationError as e:
            raise ShapeError(
                f"Job submission to {descriptor.url} did not return status_url and result_url: {response.body!r}"
            ) from e

    def _check_budget(self, started: float, operation: str) -> None:
        # Throttling inside a guarded call also counts against the budget
        if self.clock() - started >= self.timeout:
            raise PollTimeoutError(operation, self.timeout)

    async def wait(
            self,
            handle: AsyncJobHandle,
            operation: str = "Job",
            cancel: Optional[CancellationToken] = None,
    ) -> Any:
        started = self.clock()
        while self.clock() - started < self.timeout:
            status = await self.guard.send(RequestDescriptor(method="HEAD", url=handle.status_url), cancel)
            self._check_budget(started, operation)

            if status.status_code != STILL_WORKING:
                if not status.is_success:
                    raise JobFailedError(
                        status.status_code,
                        status.text,
                        f"{operation} failed with status: {status.status_code}",
                    )
                logger.info("%s complete, fetching result", operation)
                result = await self.guard.send(RequestDescriptor(method="GET", url=handle.result_url), cancel)
                self._check_budget(started, operation)
                if not result.is_success:
                    raise JobFailedError(
                        result.status_code,
                        result.text,
                        f"{operation} result could not be fetched, status: {result.status_code} - {result.text}",
                    )
                return self.guard.executor.classify(result).body

            check(cancel)
            await self.sleep(self.interval)

        raise PollTimeoutError(operation, self.timeout)

    async def run(
            self,
            descriptor: RequestDescriptor,
            operation: str = "Job",
            cancel: Optional[CancellationToken] = None,
    ) -> Any:
        handle = await self.submit(descriptor, cancel)
        logger.info("%s submitted, polling %s", operation, handle.status_url)
        return await self.wait(handle, operation, cancel)
