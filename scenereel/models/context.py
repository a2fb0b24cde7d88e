from __future__ import annotations

from pydantic import ConfigDict, Field

from scenereel.models.base import DomainModel


class ContextBundle(DomainModel):
    """一次图片生成请求携带的上下文"""

    model_config = ConfigDict(frozen=True)

    narrative: str
    # 所有角色的正面 + 左侧设定图（不按场景过滤）
    character_references: list[bytes] = Field(default_factory=list)
    # 之前场景的已生成图片，最近的在前，最多 3 张
    continuity_anchors: list[bytes] = Field(default_factory=list)
