"""togglebox HTTP トランスポート実装"""

from __future__ import annotations

from typing import Any

import httpx

from .exceptions import NetworkError, ToggleBoxErrorCodes
from .transport import Transport


class HttpTransport(Transport):
    """httpx を使った HTTP トランスポート。"""

    def __init__(
        self,
        base_url: str,
        api_key: str | None = None,
        timeout_seconds: float = 30.0,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout_seconds
        headers: dict[str, str] = {
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        if api_key:
            headers["X-API-Key"] = api_key
        self._headers = headers

    @property
    def base_url(self) -> str:
        return self._base_url

    def _make_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self._base_url,
            headers=self._headers,
            timeout=self._timeout,
        )

    def _decode(self, resp: httpx.Response, context: str) -> Any:
        if resp.status_code >= 400:
            raise NetworkError(
                code=ToggleBoxErrorCodes.HTTP_ERROR,
                message=f"{context}: HTTP {resp.status_code}: {resp.text}",
                status_code=resp.status_code,
            )
        if not resp.content:
            return {}
        return resp.json()

    async def get(self, path: str) -> Any:
        try:
            async with self._make_client() as client:
                resp = await client.get(path)
            return self._decode(resp, f"GET {path}")
        except NetworkError:
            raise
        except Exception as e:
            raise NetworkError(
                code=ToggleBoxErrorCodes.NETWORK_ERROR,
                message=f"Failed to fetch from {path}: {e}",
                cause=e,
            ) from e

    async def post(self, path: str, body: dict[str, Any]) -> Any:
        try:
            async with self._make_client() as client:
                resp = await client.post(path, json=body)
            return self._decode(resp, f"POST {path}")
        except NetworkError:
            raise
        except Exception as e:
            raise NetworkError(
                code=ToggleBoxErrorCodes.NETWORK_ERROR,
                message=f"Failed to post to {path}: {e}",
                cause=e,
            ) from e
