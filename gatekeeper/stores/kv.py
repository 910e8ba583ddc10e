"""
Cloudflare KV-backed store.

Shares counters and rules across instances and survives deploys. Each
record is one JSON value under ``<channel>:<kind>:<ip>``. Counter records
get a TTL so identities that stop visiting fall out of the namespace on
their own; rules never expire.

KV is eventually consistent across edge locations, so a rule written in one
region may take up to a minute to be seen in another.
"""

import json
import logging
from typing import Any, Optional
from urllib.parse import quote

import httpx

from gatekeeper.config import CF_ACCOUNT_ID, CF_API_TOKEN, KV_NAMESPACE_ID
from gatekeeper.security.codes import RecordKind
from gatekeeper.security.errors import ConfigurationError, StoreError

logger = logging.getLogger(__name__)

KV_API_BASE = "https://api.cloudflare.com/client/v4"

# One day past the longest pageview bucket
LOG_TTL_SECONDS = 86400 * 2


class KVStore:
    """Store backed by the Cloudflare KV REST API."""

    def __init__(
        self,
        account_id: str = CF_ACCOUNT_ID,
        namespace_id: str = KV_NAMESPACE_ID,
        api_token: str = CF_API_TOKEN,
        channel: str = "gatekeeper",
        timeout: float = 2.0,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        if not (account_id and namespace_id and api_token):
            raise ConfigurationError(
                "KVStore needs CF_ACCOUNT_ID, KV_SHIELD_NAMESPACE and CF_API_TOKEN"
            )
        self.channel = channel
        self._client = httpx.Client(
            base_url=(
                f"{KV_API_BASE}/accounts/{account_id}"
                f"/storage/kv/namespaces/{namespace_id}/values/"
            ),
            headers={"Authorization": f"Bearer {api_token}"},
            timeout=timeout,
            transport=transport,
        )

    def set_channel(self, channel: str) -> None:
        self.channel = channel

    def init(self, create_schema: bool) -> None:
        # KV namespaces have no schema.
        return None

    def _path(self, ip: str, kind: str) -> str:
        return quote(f"{self.channel}:{RecordKind(kind).value}:{ip}", safe="")

    def get(self, ip: str, kind: str) -> dict[str, Any]:
        try:
            resp = self._client.get(self._path(ip, kind))
        except httpx.HTTPError as e:
            raise StoreError(f"KV read failed: {e}", ip=ip, kind=kind) from e

        if resp.status_code == 404:
            return {}
        if resp.status_code != 200:
            raise StoreError(f"KV read returned {resp.status_code}", ip=ip, kind=kind)
        try:
            return json.loads(resp.text)
        except ValueError as e:
            raise StoreError(f"Corrupt KV value: {e}", ip=ip, kind=kind) from e

    def save(self, ip: str, data: dict[str, Any], kind: str) -> None:
        params = {}
        if RecordKind(kind) == RecordKind.LOG:
            params["expiration_ttl"] = LOG_TTL_SECONDS
        try:
            resp = self._client.put(
                self._path(ip, kind),
                content=json.dumps(data),
                params=params,
                headers={"Content-Type": "text/plain"},
            )
        except httpx.HTTPError as e:
            raise StoreError(f"KV write failed: {e}", ip=ip, kind=kind) from e
        if resp.status_code != 200:
            raise StoreError(f"KV write returned {resp.status_code}", ip=ip, kind=kind)

    def delete(self, ip: str, kind: str) -> None:
        try:
            resp = self._client.delete(self._path(ip, kind))
        except httpx.HTTPError as e:
            raise StoreError(f"KV delete failed: {e}", ip=ip, kind=kind) from e
        if resp.status_code not in (200, 404):
            raise StoreError(f"KV delete returned {resp.status_code}", ip=ip, kind=kind)

    def close(self) -> None:
        self._client.close()
