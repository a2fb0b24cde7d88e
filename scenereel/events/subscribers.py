from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from scenereel.events.bus import Subscription
from scenereel.schemas.events import PipelineEvent
from scenereel.services.project_store import ProjectStore

if TYPE_CHECKING:
    from scenereel.agents.orchestrator import ProductionPipeline

logger = logging.getLogger(__name__)

_LEVELS = {
    "info": logging.INFO,
    "success": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}

# 场景进入这些状态时写一次快照
SNAPSHOT_STATES = {"image_validated", "image_failed_retries", "image_failed", "video_failed", "complete"}
RUN_END_EVENTS = {"run_paused", "run_completed", "run_failed"}


class LogSink:
    """把流水线事件写到标准 logging（只读消费者）"""

    def __init__(self, subscription: Subscription, logger_name: str = "scenereel.pipeline"):
        self.subscription = subscription
        self.logger = logging.getLogger(logger_name)

    def handle(self, event: PipelineEvent) -> None:
        data = event.data
        if event.type == "log":
            self.logger.log(_LEVELS.get(data.get("level", "info"), logging.INFO), "%s", data.get("message", ""))
        elif event.type == "progress":
            self.logger.info(
                "scene %s/%s: %s",
                data.get("current_scene_index", 0) + 1,
                data.get("total_scenes"),
                data.get("phase"),
            )
        elif event.type == "scene_update":
            self.logger.debug("scene %s updated: %s", data.get("scene_index"), sorted(data.get("patch", {})))
        else:
            self.logger.info("%s %s", event.type, data)

    async def run(self) -> None:
        async for event in self.subscription:
            self.handle(event)


class SnapshotWriter:
    """场景落定或运行结束时保存整份项目快照"""

    def __init__(self, pipeline: "ProductionPipeline", store: ProjectStore, subscription: Subscription | None = None):
        self.pipeline = pipeline
        self.store = store
        self.subscription = subscription or pipeline.subscribe()
        self.saves = 0

    def should_save(self, event: PipelineEvent) -> bool:
        if event.type in RUN_END_EVENTS:
            return True
        if event.type != "scene_update":
            return False
        state = event.data.get("patch", {}).get("state")
        return getattr(state, "status", None) in SNAPSHOT_STATES

    async def flush(self) -> None:
        await self.store.save(self.pipeline.snapshot())
        self.saves += 1

    async def run(self) -> None:
        async for event in self.subscription:
            if not self.should_save(event):
                continue
            try:
                await self.flush()
            except Exception:
                logger.exception("Failed to save snapshot for project %s", self.pipeline.project_id)
