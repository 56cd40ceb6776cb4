"""Unit tests for the view count poller used by feed pages"""

import asyncio
import httpx
import pytest
from policy_gateway.domain.exceptions import UpstreamError
from policy_gateway.infrastructure.clients.views import ViewCountPoller, ViewCounterClient


class ScriptedReads:
    """Return queued values; an exception instance in the queue is raised instead"""

    def __init__(self, *values):
        self.values = list(values)
        self.calls = 0

    async def __call__(self, resource_id: str) -> int:
        self.calls += 1
        value = self.values.pop(0) if len(self.values) > 1 else self.values[0]
        if isinstance(value, Exception):
            raise value
        return value


async def test_refresh_publishes_count():
    updates = []
    poller = ViewCountPoller(ScriptedReads(7), "visitor-42", interval=0.01, on_update=updates.append)

    assert await poller.refresh() == 7
    assert updates == [7]


async def test_count_never_decreases():
    poller = ViewCountPoller(ScriptedReads(10, 8, 12), "visitor-42", interval=0.01)

    await poller.refresh()
    await poller.refresh()
    assert poller.count == 10

    await poller.refresh()
    assert poller.count == 12


async def test_failed_read_keeps_last_known_count():
    poller = ViewCountPoller(ScriptedReads(5, UpstreamError("down"), 5), "visitor-42", interval=0.01)

    await poller.refresh()
    await poller.refresh()

    assert poller.count == 5


async def test_polls_on_interval_until_stopped():
    reads = ScriptedReads(1, 2, 3, 4)
    poller = ViewCountPoller(reads, "visitor-42", interval=0.01)

    poller.start()
    await asyncio.sleep(0.08)
    await poller.stop()
    calls_at_stop = reads.calls
    await asyncio.sleep(0.05)

    assert calls_at_stop >= 2
    assert reads.calls == calls_at_stop
    assert not poller.running
    assert poller.count == 4


async def test_unexpected_read_error_keeps_polling():
    reads = ScriptedReads(RuntimeError("decoder bug"), 6)
    poller = ViewCountPoller(reads, "visitor-42", interval=0.01)

    poller.start()
    await asyncio.sleep(0.05)
    assert poller.running
    await poller.stop()

    assert reads.calls >= 2
    assert poller.count == 6


async def test_late_response_after_stop_is_discarded():
    release = asyncio.Event()
    started = asyncio.Event()
    updates = []

    async def slow_read(resource_id: str) -> int:
        started.set()
        await release.wait()
        return 99

    poller = ViewCountPoller(slow_read, "visitor-42", interval=0.01, on_update=updates.append)
    # A read already in flight that cancellation does not reach
    in_flight = asyncio.create_task(poller._poll_once(poller._generation))
    await started.wait()

    await poller.stop()
    release.set()
    await in_flight

    assert updates == []
    assert poller.count == 0


async def test_stop_without_start_is_noop():
    poller = ViewCountPoller(ScriptedReads(1), "visitor-42", interval=0.01)
    await poller.stop()
    assert not poller.running


async def test_client_reads_and_increments_over_http():
    counts = {"visitor-42": 3}

    def handler(request: httpx.Request) -> httpx.Response:
        if request.method == "POST":
            counts["visitor-42"] += 1
        return httpx.Response(200, json={"resource_id": "visitor-42", "count": counts["visitor-42"]})

    client = ViewCounterClient("http://gateway.test", transport=httpx.MockTransport(handler))

    assert await client.read("visitor-42") == 3
    assert await client.increment("visitor-42") == 4


async def test_client_error_status_is_upstream():
    client = ViewCounterClient("http://gateway.test", transport=httpx.MockTransport(lambda r: httpx.Response(503)))

    with pytest.raises(UpstreamError):
        await client.read("visitor-42")
