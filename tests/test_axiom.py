import asyncio
import json

import httpx

from gatekeeper.security.axiom import AxiomClient, create_event


def event(**overrides):
    fields = dict(ip="198.51.100.1", method="GET", path="/page", user_agent="curl/8.0", action="deny", reason=14)
    fields.update(overrides)
    return create_event(**fields)


def test_event_drops_empty_fields():
    data = event(hostname="", referer="").to_dict()

    assert data["reason"] == 14
    assert "hostname" not in data
    assert "referer" not in data
    assert data["site"]


def test_disabled_client_buffers_nothing():
    client = AxiomClient(token="")

    asyncio.run(client.log_event(event()))

    assert client._buffer == []


def test_flush_sends_ndjson():
    received = []

    def handler(request: httpx.Request) -> httpx.Response:
        received.append(request)
        return httpx.Response(200)

    client = AxiomClient(token="t", dataset="edge", flush_interval=3600, transport=httpx.MockTransport(handler))

    async def scenario():
        await client.log_event(event(ip="198.51.100.1"))
        await client.log_event(event(ip="198.51.100.2"))
        await client.flush()

    asyncio.run(scenario())

    assert len(received) == 1
    request = received[0]
    assert request.url.path == "/v1/datasets/edge/ingest"
    lines = [json.loads(line) for line in request.content.decode().splitlines()]
    assert [line["ip"] for line in lines] == ["198.51.100.1", "198.51.100.2"]
    assert client.events_sent == 2
    assert client._buffer == []


def test_failed_flush_requeues():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(503)

    client = AxiomClient(token="t", flush_interval=3600, transport=httpx.MockTransport(handler))

    async def scenario():
        await client.log_event(event())
        await client.flush()

    asyncio.run(scenario())

    assert client.events_failed == 1
    assert len(client._buffer) == 1


def test_network_error_requeues():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("unreachable", request=request)

    client = AxiomClient(token="t", flush_interval=3600, transport=httpx.MockTransport(handler))

    async def scenario():
        await client.log_event(event())
        await client.flush()

    asyncio.run(scenario())

    assert len(client._buffer) == 1
