import logging
from typing import Any, Dict, Optional

import httpx

from errors import TransportError

logger = logging.getLogger(__name__)


class Http:
    """One async HTTP session, scoped to a single report request. No retries."""

    def __init__(self, timeout: float = 30.0, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.timeout = timeout
        self.client = httpx.AsyncClient(timeout=httpx.Timeout(timeout), transport=transport)

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def close(self):
        await self.client.aclose()

    async def request(self, method: str, url: str, headers: Optional[Dict] = None, json: Any = None) -> Any:
        logger.debug(f"{method} {url}")
        try:
            r = await self.client.request(method, url, headers=headers, json=json)
        except httpx.RequestError as e:
            logger.error(f"Request error for {method} {url}: {e}")
            raise TransportError(None, str(e) or type(e).__name__) from e

        if not r.is_success:
            raise TransportError(r.status_code, _error_message(r))
        if not r.content:
            return None
        try:
            return r.json()
        except ValueError as e:
            raise TransportError(r.status_code, "Response body is not valid JSON") from e

    async def get(self, url: str, headers: Optional[Dict] = None) -> Any:
        return await self.request("GET", url, headers=headers)

    async def post(self, url: str, headers: Optional[Dict] = None, json: Any = None) -> Any:
        return await self.request("POST", url, headers=headers, json=json)


def _error_message(r: httpx.Response) -> str:
    """Best-effort `message` from a JSON error body, else the reason phrase."""
    try:
        body = r.json()
    except ValueError:
        body = None
    if isinstance(body, dict) and isinstance(body.get("message"), str) and body["message"]:
        return body["message"]
    return r.reason_phrase or f"HTTP {r.status_code}"
