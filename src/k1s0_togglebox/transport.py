"""Transport 抽象基底クラス"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any


class Transport(ABC):
    """togglebox API へのトランスポート抽象基底クラス。

    失敗時は NetworkError を送出する。リトライは行わない。
    """

    @abstractmethod
    async def get(self, path: str) -> Any:
        """GET してデコード済みの JSON ボディを返す。"""
        ...

    @abstractmethod
    async def post(self, path: str, body: dict[str, Any]) -> Any:
        """JSON ボディを POST してデコード済みのレスポンスを返す。"""
        ...
