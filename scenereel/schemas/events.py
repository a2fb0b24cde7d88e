from __future__ import annotations

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, Field

from scenereel.models.base import utcnow

PipelineEventType = Literal[
    "run_started",
    "progress",       # 阶段切换
    "log",            # 每个关键步骤的日志
    "scene_update",   # 场景字段变更（补丁）
    "run_paused",     # 用户暂停或等待人工介入
    "run_completed",
    "run_failed",
]

ProgressPhase = Literal["image_generation", "image_validation", "video_generation", "complete"]
LogLevel = Literal["info", "success", "warning", "error"]


class PipelineEvent(BaseModel):
    type: PipelineEventType
    data: dict[str, Any] = Field(default_factory=dict)
    pipeline_id: str | None = None
    created_at: datetime = Field(default_factory=utcnow)


def progress_event(current_scene_index: int, total_scenes: int, phase: ProgressPhase) -> dict[str, Any]:
    return {
        "type": "progress",
        "data": {
            "current_scene_index": current_scene_index,
            "total_scenes": total_scenes,
            "phase": phase,
        },
    }


def log_event(message: str, level: LogLevel = "info", **extra: Any) -> dict[str, Any]:
    data: dict[str, Any] = {"message": message, "level": level}
    if extra:
        data.update(extra)
    return {"type": "log", "data": data}


def scene_update_event(scene_index: int, scene_id: str, patch: dict[str, Any]) -> dict[str, Any]:
    return {
        "type": "scene_update",
        "data": {"scene_index": scene_index, "scene_id": scene_id, "patch": patch},
    }
