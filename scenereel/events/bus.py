from __future__ import annotations

import asyncio
import logging
from typing import Any

from scenereel.schemas.events import PipelineEvent

logger = logging.getLogger(__name__)

_CLOSED = object()


class Subscription:
    """单个订阅者的事件队列，可用 ``async for`` 逐条消费"""

    def __init__(self, bus: "EventBus", maxsize: int = 0) -> None:
        self._bus = bus
        self._queue: asyncio.Queue[Any] = asyncio.Queue(maxsize=maxsize)
        self.closed = False

    def _offer(self, item: Any) -> None:
        try:
            self._queue.put_nowait(item)
        except asyncio.QueueFull:
            logger.warning("Subscriber queue full; dropping event %s", getattr(item, "type", item))

    def __aiter__(self) -> "Subscription":
        return self

    async def __anext__(self) -> PipelineEvent:
        item = await self._queue.get()
        if item is _CLOSED:
            raise StopAsyncIteration
        return item

    def drain(self) -> list[PipelineEvent]:
        """取出当前已排队的全部事件（不等待）"""
        events: list[PipelineEvent] = []
        while True:
            try:
                item = self._queue.get_nowait()
            except asyncio.QueueEmpty:
                return events
            if item is _CLOSED:
                return events
            events.append(item)

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        self._bus.unsubscribe(self)
        self._offer(_CLOSED)


class EventBus:
    """流水线事件的扇出通道：发布方不关心谁在消费，每个订阅者独立排队"""

    def __init__(self) -> None:
        self._subs: set[Subscription] = set()

    def subscribe(self, maxsize: int = 0) -> Subscription:
        sub = Subscription(self, maxsize=maxsize)
        self._subs.add(sub)
        return sub

    def unsubscribe(self, sub: Subscription) -> None:
        self._subs.discard(sub)

    @property
    def subscriber_count(self) -> int:
        return len(self._subs)

    def publish(self, event: dict[str, Any] | PipelineEvent, *, pipeline_id: str | None = None) -> PipelineEvent:
        """校验并投递给所有订阅者（不阻塞发布方）"""
        if isinstance(event, dict):
            event = PipelineEvent.model_validate(event)
        if pipeline_id is not None and event.pipeline_id is None:
            event = event.model_copy(update={"pipeline_id": pipeline_id})
        for sub in list(self._subs):
            sub._offer(event)
        return event

    async def send_event(self, event: dict[str, Any] | PipelineEvent, *, pipeline_id: str | None = None) -> PipelineEvent:
        return self.publish(event, pipeline_id=pipeline_id)

    def close(self) -> None:
        """结束所有订阅（消费者的 ``async for`` 会正常退出）"""
        for sub in list(self._subs):
            sub.close()
