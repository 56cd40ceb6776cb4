"""View counter HTTP client and the interval poller used by feed pages"""

import asyncio
import logging
import httpx
from typing import Awaitable, Callable, Optional
from policy_gateway.domain.exceptions import UpstreamError
from policy_gateway.config import settings

logger = logging.getLogger(__name__)


class ViewCounterClient:
    """Client for the /v1/views endpoints"""

    def __init__(
        self,
        base_url: str,
        timeout: float = 5.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    async def _request(self, method: str, path: str) -> int:
        async with httpx.AsyncClient(base_url=self.base_url, timeout=self.timeout, transport=self._transport) as client:
            try:
                response = await client.request(method, path)
                response.raise_for_status()
                return int(response.json()["count"])

            except httpx.TimeoutException as e:
                raise UpstreamError(f"View counter timeout after {self.timeout}s") from e
            except httpx.HTTPStatusError as e:
                raise UpstreamError(f"View counter error: {e.response.status_code}") from e
            except httpx.RequestError as e:
                raise UpstreamError("View counter unreachable") from e
            except (KeyError, ValueError, TypeError) as e:
                raise UpstreamError(f"Invalid view counter response: {e}") from e

    async def increment(self, resource_id: str) -> int:
        return await self._request("POST", f"/v1/views/{resource_id}/increment")

    async def read(self, resource_id: str) -> int:
        return await self._request("GET", f"/v1/views/{resource_id}")


class ViewCountPoller:
    """
    Poll a resource's view count on a fixed interval.

    Guarantees for the page that owns it:
    - stop() cancels the background task and waits for it to finish
    - a response that lands after stop() (or a restart) is dropped
    - failed reads keep the last known count
    - the published count never goes down
    """

    def __init__(
        self,
        read: Callable[[str], Awaitable[int]],
        resource_id: str,
        interval: float | None = None,
        on_update: Optional[Callable[[int], None]] = None,
    ):
        self._read = read
        self.resource_id = resource_id
        self.interval = interval if interval is not None else settings.view_poll_interval_seconds
        self._on_update = on_update
        self._count = 0
        self._generation = 0
        self._task: Optional[asyncio.Task] = None

    @property
    def count(self) -> int:
        return self._count

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._generation += 1
        self._task = asyncio.create_task(self._run(self._generation))

    async def stop(self) -> None:
        # Bump first so an in-flight read cannot publish
        self._generation += 1
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def refresh(self) -> int:
        """Read once outside the interval, e.g. right after page load"""
        await self._poll_once(self._generation)
        return self._count

    async def _run(self, generation: int) -> None:
        while generation == self._generation:
            await self._poll_once(generation)
            await asyncio.sleep(self.interval)

    async def _poll_once(self, generation: int) -> None:
        try:
            value = await self._read(self.resource_id)
        except UpstreamError as e:
            logger.debug("View count poll failed, keeping last count", extra={"resource_id": self.resource_id, "error": str(e)})
            return
        except Exception:
            # A broken reader must not end the polling loop
            logger.warning("Unexpected view count read error", exc_info=True, extra={"resource_id": self.resource_id})
            return

        if generation != self._generation:
            return
        self._publish(value)

    def _publish(self, value: int) -> None:
        if value <= self._count:
            return
        self._count = value
        if self._on_update is not None:
            self._on_update(value)
