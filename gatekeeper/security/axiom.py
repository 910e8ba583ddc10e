"""
Ships deny decisions to Axiom.

Events are buffered in memory and posted as NDJSON once the batch fills or
the flush interval passes. A failed post puts the batch back at the front of
the buffer for the next attempt. Without ``AXIOM_TOKEN`` the client is a no-op.
"""

import asyncio
import json
import logging
import os
import time
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any

import httpx

from gatekeeper.config import SITE_NAME

logger = logging.getLogger(__name__)

AXIOM_INGEST_URL = "https://api.axiom.co/v1/datasets/{dataset}/ingest"


def _utcnow() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class DecisionEvent:
    ip: str
    method: str
    path: str
    user_agent: str
    action: str
    reason: int | None = None
    hostname: str | None = None
    referer: str | None = None
    store_error: str | None = None
    site: str = SITE_NAME
    timestamp: str = field(default_factory=_utcnow)

    def to_dict(self) -> dict[str, Any]:
        # Axiom treats a missing field and null alike; leave them out.
        return {k: v for k, v in asdict(self).items() if v is not None}


def create_event(
    *,
    ip: str,
    method: str,
    path: str,
    user_agent: str,
    action: str,
    reason: int | None = None,
    hostname: str | None = None,
    referer: str | None = None,
    store_error: str | None = None,
    site: str = SITE_NAME,
) -> DecisionEvent:
    """Build an event, turning empty strings into absent fields."""
    return DecisionEvent(
        ip=ip,
        method=method,
        path=path,
        user_agent=user_agent or "Unknown",
        action=action,
        reason=reason,
        hostname=hostname or None,
        referer=referer or None,
        store_error=store_error,
        site=site,
    )


class AxiomClient:
    def __init__(
        self,
        token: str | None = None,
        dataset: str = "gatekeeper",
        batch_size: int = 100,
        flush_interval: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.token = os.getenv("AXIOM_TOKEN", "") if token is None else token
        self.ingest_url = AXIOM_INGEST_URL.format(dataset=dataset)
        self.batch_size = batch_size
        self.flush_interval = flush_interval
        self._transport = transport
        self._buffer: list[dict] = []
        self._last_flush = time.time()
        self._flush_lock = asyncio.Lock()
        self.events_sent = 0
        self.events_failed = 0

    @property
    def is_enabled(self) -> bool:
        return bool(self.token)

    def _due(self) -> bool:
        return (
            len(self._buffer) >= self.batch_size
            or time.time() - self._last_flush >= self.flush_interval
        )

    async def log_event(self, event: DecisionEvent) -> None:
        if not self.is_enabled:
            return
        self._buffer.append(event.to_dict())
        if self._due():
            asyncio.create_task(self._background_flush())

    async def _background_flush(self) -> None:
        # Nobody awaits this task, so failures end here.
        try:
            await self.flush()
        except Exception as e:
            logger.warning(f"Axiom flush failed: {e}")

    async def flush(self) -> None:
        if not self.is_enabled:
            return
        async with self._flush_lock:
            batch, self._buffer = self._buffer, []
            if not batch:
                return
            self._last_flush = time.time()
            if await self._post(batch):
                self.events_sent += len(batch)
            else:
                self.events_failed += len(batch)
                self._buffer = batch + self._buffer

    async def _post(self, batch: list[dict]) -> bool:
        body = "\n".join(json.dumps(event) for event in batch)
        headers = {
            "Authorization": f"Bearer {self.token}",
            "Content-Type": "application/x-ndjson",
        }
        try:
            async with httpx.AsyncClient(timeout=5.0, transport=self._transport) as client:
                response = await client.post(self.ingest_url, headers=headers, content=body)
        except httpx.HTTPError as e:
            logger.warning(f"Axiom ingest error, {len(batch)} events requeued: {e}")
            return False
        if response.status_code != 200:
            logger.warning(f"Axiom ingest returned {response.status_code}, {len(batch)} events requeued")
            return False
        return True


_axiom_client: AxiomClient | None = None


def get_axiom_client() -> AxiomClient:
    global _axiom_client
    if _axiom_client is None:
        _axiom_client = AxiomClient(dataset=os.getenv("AXIOM_DATASET", "gatekeeper"))
    return _axiom_client
