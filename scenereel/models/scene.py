"""Scene units and their per-scene generation state.

A scene's lifecycle is modelled as a tagged union on ``status`` so that
payloads travel with the state that needs them: a scene can only be
``video_generating`` or ``complete`` while holding an accepted image.
"""
from __future__ import annotations

from datetime import datetime
from typing import Annotated, Any, Literal, Union
from uuid import uuid4

from pydantic import ConfigDict, Field, PrivateAttr, model_validator

from scenereel.models.base import DomainModel, utcnow

Horizon = Literal["IMMEDIATE", "SHORT_TERM", "MEDIUM_TERM", "LONG_TERM"]

SceneStatus = Literal[
    "pending",
    "planning_failed",
    "image_generating",
    "image_failed",
    "image_validated",
    "image_failed_retries",
    "video_generating",
    "video_failed",
    "complete",
]


class ImageData(DomainModel):
    model_config = ConfigDict(frozen=True)

    data: bytes
    continuity_token: str | None = None
    attempt_count: int = Field(default=1, ge=1)
    status: Literal["done", "rejected", "user_intervention_needed"] = "done"


class VideoData(DomainModel):
    model_config = ConfigDict(frozen=True)

    handle_or_uri: str = ""
    status: Literal["done", "pending", "error"] = "done"
    attempt_count: int = Field(default=1, ge=1)


class ValidationRecord(DomainModel):
    """评审日志条目（只追加，不修改）"""

    model_config = ConfigDict(frozen=True)

    timestamp: datetime = Field(default_factory=utcnow)
    horizon: Horizon
    reference_scene_index: int
    score: float = Field(ge=0, le=10)
    critique: str = ""
    passed: bool
    fix_instructions: str | None = None
    attempt: int = Field(ge=1)


class _State(DomainModel):
    model_config = ConfigDict(frozen=True)


class Pending(_State):
    status: Literal["pending"] = "pending"


class PlanningFailed(_State):
    status: Literal["planning_failed"] = "planning_failed"
    reason: str = ""


class ImageGenerating(_State):
    status: Literal["image_generating"] = "image_generating"
    attempts: int = 0
    image: ImageData | None = None


class ImageFailed(_State):
    status: Literal["image_failed"] = "image_failed"
    error: str = ""
    image: ImageData | None = None


class ImageValidated(_State):
    status: Literal["image_validated"] = "image_validated"
    # 仅当人工强制通过一个尚无图片的场景时为空
    image: ImageData | None = None


class ImageFailedRetries(_State):
    status: Literal["image_failed_retries"] = "image_failed_retries"
    attempts: int
    image: ImageData | None = None


class VideoGenerating(_State):
    status: Literal["video_generating"] = "video_generating"
    image: ImageData


class VideoFailed(_State):
    status: Literal["video_failed"] = "video_failed"
    image: ImageData
    video: VideoData
    error: str = ""


class Complete(_State):
    status: Literal["complete"] = "complete"
    image: ImageData
    video: VideoData


SceneState = Annotated[
    Union[
        Pending,
        PlanningFailed,
        ImageGenerating,
        ImageFailed,
        ImageValidated,
        ImageFailedRetries,
        VideoGenerating,
        VideoFailed,
        Complete,
    ],
    Field(discriminator="status"),
]


class SceneUnit(DomainModel):
    id: str = Field(default_factory=lambda: uuid4().hex, frozen=True)
    index: int = Field(ge=0, frozen=True)
    narrative_segment: str = Field(frozen=True)
    base_prompt: str = Field(frozen=True)
    current_image_prompt: str = ""
    validation_log: list[ValidationRecord] = Field(default_factory=list)
    state: SceneState = Field(default_factory=Pending)

    # 正在驱动该场景的流水线句柄（运行期独占标记，不序列化）
    _lease: Any = PrivateAttr(default=None)

    @model_validator(mode="after")
    def _default_prompt(self) -> "SceneUnit":
        if not self.current_image_prompt:
            self.current_image_prompt = self.base_prompt
        return self

    @property
    def overall_status(self) -> SceneStatus:
        return self.state.status

    @property
    def image_data(self) -> ImageData | None:
        return getattr(self.state, "image", None)

    @property
    def video_data(self) -> VideoData | None:
        return getattr(self.state, "video", None)
