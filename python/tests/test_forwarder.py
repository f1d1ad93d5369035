"""
Tests for EventForwarder using httpx.MockTransport.
"""

import json

import httpx
import pytest

from xnotify.forwarder import EventForwarder
from xnotify.watcher import Event, Operation


def make_forwarder(handler, url="http://localhost:8090"):
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return EventForwarder(url, client=client)


@pytest.mark.asyncio
async def test_forward_posts_event_as_json():
    """Test: The event is POSTed as {"operation","path","time"} JSON."""
    requests = []

    def handler(request):
        requests.append(request)
        return httpx.Response(200)

    forwarder = make_forwarder(handler)
    event = Event(Operation.WRITE, "src/main.c", occurred_at=1700000000000)

    assert await forwarder.forward(event) is True
    await forwarder.aclose()

    assert len(requests) == 1
    request = requests[0]
    assert request.method == "POST"
    assert (request.url.host, request.url.port) == ("localhost", 8090)
    assert request.headers["content-type"] == "application/json"
    assert json.loads(request.content) == {
        "operation": "write",
        "path": "src/main.c",
        "time": 1700000000000,
    }
    assert forwarder.sent == 1


@pytest.mark.asyncio
async def test_forward_connection_error_is_logged(caplog):
    """Test: An unreachable listener → False, logged, nothing raised."""

    def handler(request):
        raise httpx.ConnectError("Connection refused", request=request)

    forwarder = make_forwarder(handler)

    assert await forwarder.forward(Event(Operation.WRITE, "a.txt")) is False
    assert forwarder.failed == 1
    assert "Failed to forward 'write a.txt'" in caplog.text


@pytest.mark.asyncio
async def test_forward_error_status_is_failure(caplog):
    """Test: A non-2xx answer counts as a failed forward."""
    forwarder = make_forwarder(lambda request: httpx.Response(500))

    assert await forwarder.forward(Event(Operation.WRITE, "a.txt")) is False
    assert forwarder.sent == 0
    assert "500" in caplog.text


@pytest.mark.asyncio
async def test_failure_does_not_stop_later_forwards():
    """Test: Each forward is independent; one failure does not poison the next."""
    answers = iter([httpx.Response(503), httpx.Response(200)])
    forwarder = make_forwarder(lambda request: next(answers))

    assert await forwarder.forward(Event(Operation.WRITE, "a.txt")) is False
    assert await forwarder.forward(Event(Operation.WRITE, "b.txt")) is True


@pytest.mark.asyncio
async def test_aclose_is_idempotent():
    """Test: aclose() on an unused or already closed forwarder is safe."""
    forwarder = EventForwarder("http://localhost:8090")

    await forwarder.aclose()
    await forwarder.aclose()
