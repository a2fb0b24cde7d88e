"""后端协议与工厂

流水线只依赖这里的协议；默认实现是 OpenAI 兼容的图像/视频接口和 Anthropic 评审。
测试或其他供应商只需提供结构上兼容的对象。
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from scenereel.config import Settings
from scenereel.models.context import ContextBundle
from scenereel.models.scene import Horizon, SceneUnit
from scenereel.models.style import StyleSpecification

if TYPE_CHECKING:
    from scenereel.agents.critic import ValidationResult
    from scenereel.services.image import ImageResult
    from scenereel.services.video import VideoResult


@runtime_checkable
class ImageBackend(Protocol):
    async def generate_image(
        self,
        prompt: str,
        context: ContextBundle,
        aspect_ratio: str,
        *,
        prior_image: bytes | None = None,
        continuity_token: str | None = None,
        edit_instruction: str | None = None,
    ) -> "ImageResult":
        """生成（或编辑）一张场景图；失败时抛异常，不做业务级重试"""
        ...


@runtime_checkable
class VideoBackend(Protocol):
    async def generate_video(
        self,
        image: bytes,
        prompt: str,
        reference_images: list[bytes] | None = None,
        duration_s: int = 5,
    ) -> "VideoResult":
        """以场景图为首帧生成视频，返回 URI 或异步任务句柄"""
        ...


@runtime_checkable
class CriticBackend(Protocol):
    async def validate(
        self,
        image: bytes,
        scene: SceneUnit,
        reference_image: bytes | None,
        style: StyleSpecification,
        horizon: Horizon,
    ) -> "ValidationResult":
        """按指定视野评审候选图"""
        ...


@dataclass(slots=True)
class Backends:
    image: ImageBackend
    video: VideoBackend
    critic: CriticBackend


def create_backends(settings: Settings) -> Backends:
    """根据配置创建默认后端实例

    Args:
        settings: 应用配置

    Returns:
        图像 / 视频 / 评审三个后端
    """
    from scenereel.agents.critic import CriticAgent
    from scenereel.services.image import ImageService
    from scenereel.services.llm import LLMService
    from scenereel.services.video import VideoService

    return Backends(
        image=ImageService(settings),
        video=VideoService(settings),
        critic=CriticAgent(LLMService(settings), settings),
    )
