"""統計イベントバッファ"""

from __future__ import annotations

import asyncio
from collections import deque
from datetime import datetime, timezone
from typing import Any

import structlog

from .models import QueuedEvent
from .options import StatsOptions
from .transport import Transport

logger = structlog.get_logger(__name__)


class EventBuffer:
    """上限付きの統計イベントキュー。

    上限に達すると最も古いイベントを捨てる。batch_size に達するとバックグラウンドで
    送信タスクを起動し、enqueue は送信の完了を待たない。送信は同時に 1 つだけ実行する。
    送信失敗はリトライ後に諦め、呼び出し元には例外を伝えない。
    """

    def __init__(self, transport: Transport, path: str, options: StatsOptions | None = None) -> None:
        self._transport = transport
        self._path = path
        self._options = options or StatsOptions()
        self._events: deque[QueuedEvent] = deque(maxlen=self._options.max_queue_size)
        self._flush_task: asyncio.Task[bool] | None = None

    def __len__(self) -> int:
        return len(self._events)

    @property
    def pending(self) -> list[QueuedEvent]:
        return list(self._events)

    @property
    def flushing(self) -> bool:
        return self._flush_task is not None and not self._flush_task.done()

    def retry_delay(self, attempt: int) -> float:
        """attempt 回目の失敗後の待機秒数。base, base*2, base*4, ..."""
        return self._options.retry_base_delay * (2**attempt)

    async def enqueue(self, event_type: str, payload: dict[str, Any]) -> None:
        if not self._options.enabled:
            return
        if len(self._events) == self._events.maxlen:
            dropped = self._events[0]
            logger.debug("stats queue full, dropping oldest event", event_type=dropped.type)
        # deque(maxlen) が最古の要素を押し出す
        self._events.append(
            QueuedEvent(
                type=event_type,
                timestamp=datetime.now(timezone.utc).isoformat(),
                payload=payload,
            )
        )
        if len(self._events) >= self._options.batch_size and not self.flushing:
            self._flush_task = asyncio.create_task(self._send())

    async def flush(self) -> bool:
        """実行中の送信を待ってから残りのイベントを送信する。送信できたら True。"""
        if self.flushing:
            await self._flush_task
        self._flush_task = asyncio.create_task(self._send())
        return await self._flush_task

    async def _send(self) -> bool:
        if not self._events:
            return True
        batch = list(self._events)
        body = {"events": [event.to_dict() for event in batch]}
        attempts = self._options.max_retries
        for attempt in range(attempts):
            try:
                await self._transport.post(self._path, body)
                break
            except Exception as e:
                if attempt + 1 >= attempts:
                    logger.warning(
                        "failed to flush stats events",
                        attempts=attempts,
                        pending=len(batch),
                        error=str(e),
                    )
                    return False
                await asyncio.sleep(self.retry_delay(attempt))
        sent = {id(event) for event in batch}
        remaining = [event for event in self._events if id(event) not in sent]
        self._events.clear()
        self._events.extend(remaining)
        logger.debug("flushed stats events", count=len(batch))
        return True
