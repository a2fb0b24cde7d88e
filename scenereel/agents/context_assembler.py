"""Builds the per-scene generation context (character references + continuity anchors)."""
from __future__ import annotations

from collections.abc import Sequence

from scenereel.models.context import ContextBundle
from scenereel.models.scene import SceneUnit
from scenereel.models.style import StyleSpecification

MAX_CONTINUITY_ANCHORS = 3


def character_references(style: StyleSpecification) -> list[bytes]:
    """所有角色的正面 + 左侧设定图，按角色字典顺序展开"""
    refs: list[bytes] = []
    for character in style.characters.values():
        turnaround = character.turnaround
        if turnaround is None:
            continue
        for view in (turnaround.front, turnaround.side_left):
            if view is not None and view.image:
                refs.append(view.image)
    return refs


def continuity_anchors(index: int, scenes: Sequence[SceneUnit], limit: int = MAX_CONTINUITY_ANCHORS) -> list[bytes]:
    """从 index-1 往前找已有图片的场景，最近的在前"""
    anchors: list[bytes] = []
    for prior in range(min(index, len(scenes)) - 1, -1, -1):
        if len(anchors) >= limit:
            break
        image = scenes[prior].image_data
        if image is not None and image.data:
            anchors.append(image.data)
    return anchors


def assemble_context(index: int, scenes: Sequence[SceneUnit], style: StyleSpecification) -> ContextBundle:
    if not 0 <= index < len(scenes):
        raise IndexError(f"scene index {index} out of range for {len(scenes)} scenes")
    return ContextBundle(
        narrative=scenes[index].narrative_segment,
        character_references=character_references(style),
        continuity_anchors=continuity_anchors(index, scenes),
    )
