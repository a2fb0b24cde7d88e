"""Sequential production pipeline: image → multi-horizon review → retry/repair → video."""
from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from typing import Any, Literal
from uuid import uuid4

from scenereel.agents.context_assembler import assemble_context
from scenereel.agents.critic import PASS_THRESHOLD
from scenereel.agents.prompts.image import build_image_prompt
from scenereel.agents.repair import RetryPolicy
from scenereel.agents.tiering import select_horizons
from scenereel.agents.utils import shorten
from scenereel.config import Settings, get_settings
from scenereel.events.bus import EventBus, Subscription
from scenereel.exceptions import ConfigurationError, PipelineAlreadyRunningError, SceneNotFoundError
from scenereel.models.base import utcnow
from scenereel.models.project import ProjectState
from scenereel.models.scene import (
    Complete,
    ImageData,
    ImageFailed,
    ImageFailedRetries,
    ImageGenerating,
    ImageValidated,
    SceneState,
    SceneUnit,
    ValidationRecord,
    VideoData,
    VideoFailed,
    VideoGenerating,
)
from scenereel.models.style import StyleSpecification
from scenereel.schemas.events import LogLevel, ProgressPhase, log_event, progress_event, scene_update_event
from scenereel.services.backends import CriticBackend, ImageBackend, VideoBackend

logger = logging.getLogger(__name__)

PipelineStatus = Literal["idle", "running", "paused", "complete", "error"]

SleepFunc = Callable[[float], Awaitable[Any]]

_LOG_LEVELS: dict[str, int] = {
    "info": logging.INFO,
    "success": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}

# 恢复运行时直接跳过的状态
_SETTLED = {"complete", "video_failed"}


@dataclass(slots=True)
class AttemptOutcome:
    """一次生成 + 评审的结果（不修改场景，由调度器负责落地）"""

    image: ImageData | None = None
    records: list[ValidationRecord] = field(default_factory=list)
    accepted: bool = False
    error: str | None = None

    @property
    def fix_instructions(self) -> str | None:
        # 本次尝试中最后一条带修正说明的评审
        for record in reversed(self.records):
            if record.fix_instructions:
                return record.fix_instructions
        return None


class ProductionPipeline:
    """按场景顺序驱动生成流水线

    - 每个场景：生成图片 → 多视野评审（全部通过才算通过）→ 失败则修 prompt 重试
    - 重试耗尽时整次运行暂停，等待人工处理（强制通过或自定义 prompt 重新生成）
    - 状态变化通过 EventBus 广播，调用方自行订阅
    """

    def __init__(
        self,
        scenes: Sequence[SceneUnit],
        style: StyleSpecification,
        *,
        image: ImageBackend,
        video: VideoBackend,
        critic: CriticBackend,
        settings: Settings,
        bus: EventBus | None = None,
        sleep: SleepFunc = asyncio.sleep,
        retry_policy: RetryPolicy | None = None,
        project_id: str | None = None,
        name: str = "",
    ):
        self.id = uuid4().hex
        self.project_id = project_id or style.id
        self.name = name or style.name
        self.scenes: list[SceneUnit] = sorted(scenes, key=lambda s: s.index)
        # 场景 index 即其在列表中的位置，视野间隔与连续性锚点都按位置计算
        if [s.index for s in self.scenes] != list(range(len(self.scenes))):
            raise ValueError(
                f"Scene indices must be 0..{len(self.scenes) - 1}, got {[s.index for s in self.scenes]}"
            )
        self.style = style
        self.image = image
        self.video = video
        self.critic = critic
        self.settings = settings
        self.bus = bus or EventBus()
        self.retry_policy = retry_policy or RetryPolicy.from_settings(style.max_image_retries, settings)
        self._sleep = sleep

        self._status: PipelineStatus = "idle"
        self._stop_requested = False
        self._videos_issued = 0
        self.intervention_scene_index: int | None = None

    # ------------------------------------------------------------------ events

    def subscribe(self, maxsize: int = 0) -> Subscription:
        return self.bus.subscribe(maxsize=maxsize)

    def _emit(self, event: dict[str, Any]) -> None:
        self.bus.publish(event, pipeline_id=self.id)

    def _log(self, message: str, level: LogLevel = "info", **extra: Any) -> None:
        logger.log(_LOG_LEVELS[level], message)
        self._emit(log_event(message, level, **extra))

    def _progress(self, index: int, phase: ProgressPhase) -> None:
        self._emit(progress_event(index, len(self.scenes), phase))

    def _patch(self, index: int, **patch: Any) -> None:
        self._emit(scene_update_event(index, self.scenes[index].id, patch))

    def _set_state(self, index: int, state: SceneState) -> None:
        self.scenes[index].state = state
        self._patch(index, state=state)

    def _set_prompt(self, index: int, prompt: str) -> None:
        self.scenes[index].current_image_prompt = prompt
        self._patch(index, current_image_prompt=prompt)

    def _append_records(self, index: int, records: list[ValidationRecord]) -> None:
        if not records:
            return
        scene = self.scenes[index]
        scene.validation_log.extend(records)
        self._patch(index, validation_log=list(scene.validation_log))

    # ----------------------------------------------------------------- control

    def get_status(self) -> PipelineStatus:
        return self._status

    @property
    def is_running(self) -> bool:
        return self._status == "running"

    def pause(self) -> None:
        """协作式暂停：当前场景处理完后才生效"""
        self._stop_requested = True
        self._log("Pausing pipeline...")

    def snapshot(self) -> ProjectState:
        return ProjectState(
            id=self.project_id,
            name=self.name,
            style=self.style,
            scenes=[scene.model_copy(update={"validation_log": list(scene.validation_log)}) for scene in self.scenes],
            last_updated=utcnow(),
        )

    def _resolve(self, scene_ref: str | int) -> int:
        if isinstance(scene_ref, int):
            for i, scene in enumerate(self.scenes):
                if scene.index == scene_ref:
                    return i
        else:
            for i, scene in enumerate(self.scenes):
                if scene.id == scene_ref:
                    return i
        raise SceneNotFoundError(f"Scene {scene_ref!r} not found", details={"scene_ref": scene_ref})

    def _acquire_scenes(self) -> None:
        for scene in self.scenes:
            holder = scene._lease
            if holder is not None and holder is not self and holder.is_running:
                raise PipelineAlreadyRunningError(
                    f"Scene {scene.index + 1} is being processed by another pipeline",
                    details={"scene_id": scene.id, "pipeline_id": holder.id},
                )
        for scene in self.scenes:
            scene._lease = self

    def _release_scenes(self) -> None:
        for scene in self.scenes:
            if scene._lease is self:
                scene._lease = None

    async def start(self) -> PipelineStatus:
        """从第一个未完成的场景开始顺序处理（也用于暂停后的恢复）"""
        if self._status == "running":
            raise PipelineAlreadyRunningError("Pipeline already running", details={"pipeline_id": self.id})
        self._acquire_scenes()

        self._status = "running"
        self._stop_requested = False
        self.intervention_scene_index = None
        self._emit({"type": "run_started", "data": {"project_id": self.project_id, "total_scenes": len(self.scenes)}})
        self._log("Starting production pipeline...")

        try:
            for index in range(len(self.scenes)):
                if self._stop_requested:
                    self._status = "paused"
                    self._log("Pipeline paused by user", "warning")
                    self._emit({"type": "run_paused", "data": {"reason": "user", "scene_index": index}})
                    return self._status

                if not await self._process_scene(index):
                    self._status = "paused"
                    self.intervention_scene_index = index
                    self._emit(
                        {"type": "run_paused", "data": {"reason": "intervention_required", "scene_index": index}}
                    )
                    return self._status

            self._status = "complete"
            self._progress(max(len(self.scenes) - 1, 0), "complete")
            self._log("Pipeline complete!", "success")
            self._emit({"type": "run_completed", "data": {"project_id": self.project_id}})
            return self._status
        except Exception as exc:
            self._status = "error"
            self._log(f"Pipeline error: {exc}", "error")
            self._emit({"type": "run_failed", "data": {"error": str(exc)}})
            raise
        finally:
            self._release_scenes()

    # ------------------------------------------------------------ scene steps

    async def _process_scene(self, index: int) -> bool:
        """返回 False 表示该场景需要人工介入，整次运行停止"""
        scene = self.scenes[index]
        status = scene.overall_status

        if status in _SETTLED:
            return True

        if status in ("image_validated", "video_generating"):
            image = scene.image_data
            if image is None:
                self._log(f"Scene {index + 1} was approved without an image; skipping video", "warning")
                return True
        else:
            self._log(
                f'Processing scene {index + 1}/{len(self.scenes)}: "{shorten(scene.narrative_segment)}"'
            )
            image = await self._generate_image_with_retry(index)
            if image is None:
                return False

        await self._generate_video(index, image)
        return True

    async def _run_attempt(self, index: int, attempt: int) -> AttemptOutcome:
        scene = self.scenes[index]
        aspect_ratio = self.style.target_output_aspect_ratio
        context = assemble_context(index, self.scenes, self.style)

        try:
            result = await self.image.generate_image(
                build_image_prompt(scene.current_image_prompt, self.style, aspect_ratio),
                context,
                aspect_ratio,
            )
        except ConfigurationError:
            raise
        except Exception as exc:
            self._log(f"Image generation error (attempt {attempt}): {exc}", "error")
            return AttemptOutcome(error=str(exc))

        image = ImageData(data=result.data, continuity_token=result.continuity_token, attempt_count=attempt)
        self._progress(index, "image_validation")

        records: list[ValidationRecord] = []
        all_passed = True
        for check in select_horizons(index, self.style.validation_strides):
            reference = None
            if check.horizon != "IMMEDIATE":
                ref_image = self.scenes[check.reference_scene_index].image_data
                reference = ref_image.data if ref_image is not None else None

            self._log(f"Running {check.horizon} validation for scene {index + 1}")
            try:
                verdict = await self.critic.validate(image.data, scene, reference, self.style, check.horizon)
            except ConfigurationError:
                raise
            except Exception as exc:
                all_passed = False
                self._log(f"Validation error: {exc}", "error")
                continue

            # 评审后端可能给出 0..10 以外的分数
            score = min(max(float(verdict.score), 0.0), 10.0)
            passed = score >= PASS_THRESHOLD
            records.append(
                ValidationRecord(
                    horizon=check.horizon,
                    reference_scene_index=check.reference_scene_index,
                    score=score,
                    critique=verdict.critique,
                    passed=passed,
                    fix_instructions=None if passed else verdict.fix_instructions,
                    attempt=attempt,
                )
            )
            if passed:
                self._log(f"{check.horizon} validation PASSED (score: {score:g}/10)", "success")
            else:
                all_passed = False
                self._log(
                    f"{check.horizon} validation FAILED (score: {score:g}/10): {verdict.critique}", "warning"
                )

        return AttemptOutcome(image=image, records=records, accepted=all_passed)

    async def _generate_image_with_retry(self, index: int) -> ImageData | None:
        policy = self.retry_policy
        last_image = self.scenes[index].image_data

        for attempt in policy.attempts():
            delay = policy.delay_before(attempt)
            if delay > 0:
                await self._sleep(delay)

            self._set_state(index, ImageGenerating(attempts=attempt, image=last_image))
            self._progress(index, "image_generation")
            self._log(f"Generating image for scene {index + 1}, attempt {attempt}/{policy.max_attempts}")

            outcome = await self._run_attempt(index, attempt)
            self._append_records(index, outcome.records)

            if outcome.accepted and outcome.image is not None:
                self._set_state(index, ImageValidated(image=outcome.image))
                self._log(f"Scene {index + 1} image validated", "success")
                return outcome.image

            if outcome.image is not None:
                last_image = outcome.image.model_copy(update={"status": "rejected"})
                self._set_state(index, ImageGenerating(attempts=attempt, image=last_image))

            fix = outcome.fix_instructions
            if fix:
                self._set_prompt(index, policy.repair(self.scenes[index].current_image_prompt, fix))
                self._log(f'Rewriting prompt based on critique: "{shorten(fix, 100)}"')

        if last_image is not None:
            last_image = last_image.model_copy(update={"status": "user_intervention_needed"})
        self._set_state(index, ImageFailedRetries(attempts=policy.max_attempts, image=last_image))
        self._log(f"Scene {index + 1} requires user intervention", "warning")
        return None

    async def _generate_video(self, index: int, image: ImageData) -> None:
        scene = self.scenes[index]

        delay = self.style.video_generation_delay_seconds
        if self._videos_issued and delay > 0:
            await self._sleep(delay)

        self._set_state(index, VideoGenerating(image=image))
        self._progress(index, "video_generation")

        references = assemble_context(index, self.scenes, self.style).character_references
        self._videos_issued += 1
        try:
            result = await self.video.generate_video(
                image.data,
                scene.current_image_prompt,
                references,
                self.settings.video_duration_s,
            )
        except ConfigurationError:
            raise
        except Exception as exc:
            self._log(f"Video generation failed for scene {index + 1}: {exc}", "error")
            self._set_state(
                index,
                VideoFailed(image=image, video=VideoData(status="error"), error=str(exc)),
            )
            return

        if result.uri:
            video = VideoData(handle_or_uri=result.uri, status="done")
        else:
            video = VideoData(handle_or_uri=result.pending_operation_handle or "", status="pending")
        self._set_state(index, Complete(image=image, video=video))
        self._log(f"Scene {index + 1} video generated", "success")

    # ----------------------------------------------------------- side channel

    def force_approve(self, scene_ref: str | int) -> SceneUnit:
        """人工强制通过：不调用评审，也不写评审日志"""
        index = self._resolve(scene_ref)
        image = self.scenes[index].image_data
        if image is not None:
            image = image.model_copy(update={"status": "done"})
        self._set_state(index, ImageValidated(image=image))
        if self.intervention_scene_index == index:
            self.intervention_scene_index = None
        self._log(f"Scene {index + 1} force-approved by user", "warning")
        return self.scenes[index]

    async def regenerate_scene(self, scene_ref: str | int, custom_prompt: str | None = None) -> SceneUnit:
        """单次人工重新生成（不计入重试次数，不经过评审）

        带自定义 prompt 且已有图片时走编辑模式，沿用原图与连续性令牌。
        """
        index = self._resolve(scene_ref)
        scene = self.scenes[index]
        prior = scene.image_data
        previous_prompt = scene.current_image_prompt
        edit_mode = bool(custom_prompt) and prior is not None

        self._log(f"Regenerating scene {index + 1}{' with custom prompt' if custom_prompt else ''}...")
        self._set_prompt(index, custom_prompt or scene.base_prompt)
        self._set_state(index, ImageGenerating(attempts=0, image=prior))

        aspect_ratio = self.style.target_output_aspect_ratio
        context = assemble_context(index, self.scenes, self.style)
        try:
            if edit_mode:
                result = await self.image.generate_image(
                    previous_prompt,
                    context,
                    aspect_ratio,
                    prior_image=prior.data,
                    continuity_token=prior.continuity_token,
                    edit_instruction=custom_prompt,
                )
            else:
                result = await self.image.generate_image(
                    build_image_prompt(scene.current_image_prompt, self.style, aspect_ratio),
                    context,
                    aspect_ratio,
                )
        except Exception as exc:
            self._set_state(index, ImageFailed(error=str(exc), image=prior))
            self._log(f"Scene {index + 1} regeneration failed: {exc}", "error")
            if isinstance(exc, ConfigurationError):
                raise
            return scene

        attempt_count = min((prior.attempt_count if prior else 0) + 1, self.style.max_image_retries)
        image = ImageData(data=result.data, continuity_token=result.continuity_token, attempt_count=attempt_count)
        self._set_state(index, ImageValidated(image=image))
        if self.intervention_scene_index == index:
            self.intervention_scene_index = None
        self._log(f"Scene {index + 1} regenerated successfully", "success")
        return scene

    async def inject_feedback(self, scene_ref: str | int, feedback: str) -> SceneUnit:
        index = self._resolve(scene_ref)
        self._log(f'Processing feedback for scene {index + 1}: "{shorten(feedback)}"')
        return await self.regenerate_scene(scene_ref, feedback)


def create_pipeline(
    scenes: Sequence[SceneUnit],
    style: StyleSpecification,
    *,
    image: ImageBackend,
    video: VideoBackend,
    critic: CriticBackend,
    settings: Settings | None = None,
    bus: EventBus | None = None,
    sleep: SleepFunc = asyncio.sleep,
    **kwargs: Any,
) -> ProductionPipeline:
    """创建一个独立的流水线句柄；调用方持有并负责其生命周期"""
    return ProductionPipeline(
        scenes,
        style,
        image=image,
        video=video,
        critic=critic,
        settings=settings or get_settings(),
        bus=bus,
        sleep=sleep,
        **kwargs,
    )
