"""テスト共通フィクスチャ"""

from __future__ import annotations

import asyncio
from typing import Any

import pytest
from k1s0_togglebox import NetworkError, ToggleBoxErrorCodes, Transport


class FakeTransport(Transport):
    """パスごとに固定レスポンスを返すテスト用トランスポート。"""

    def __init__(self) -> None:
        self.responses: dict[str, Any] = {}
        self.get_calls: list[str] = []
        self.post_calls: list[tuple[str, dict[str, Any]]] = []
        self.fail_posts = False
        # None でなければ post はこのイベントが set されるまで待機する
        self.post_gate: asyncio.Event | None = None

    async def get(self, path: str) -> Any:
        self.get_calls.append(path)
        if path not in self.responses:
            raise NetworkError(
                code=ToggleBoxErrorCodes.HTTP_ERROR,
                message=f"GET {path}: HTTP 404",
                status_code=404,
            )
        return self.responses[path]

    async def post(self, path: str, body: dict[str, Any]) -> Any:
        self.post_calls.append((path, body))
        if self.post_gate is not None:
            await self.post_gate.wait()
        if self.fail_posts:
            raise NetworkError(
                code=ToggleBoxErrorCodes.NETWORK_ERROR,
                message=f"Failed to post to {path}: connection refused",
            )
        return {"success": True}


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()
