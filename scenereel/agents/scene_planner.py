from __future__ import annotations

import json
import logging
from typing import Any

from scenereel.agents.prompts.planner import (
    ANALYZE_SYSTEM_PROMPT,
    DECOMPOSE_SYSTEM_PROMPT,
    GRANULARITY_INSTRUCTIONS,
)
from scenereel.agents.utils import extract_json
from scenereel.exceptions import BackendError
from scenereel.models.scene import SceneUnit
from scenereel.models.style import StyleSpecification
from scenereel.services.llm import LLMService

logger = logging.getLogger(__name__)


class ScenePlanner:
    """上游规划：从叙述文本提取风格说明、拆分场景（流水线本身不调用）"""

    name = "scene_planner"

    def __init__(self, llm: LLMService, *, max_tokens: int = 8192):
        self.llm = llm
        self.max_tokens = max_tokens

    async def _ask_json(self, system: str, user_prompt: str) -> dict[str, Any]:
        resp = await self.llm.generate(
            messages=[{"role": "user", "content": user_prompt}],
            system=system,
            max_tokens=self.max_tokens,
        )
        try:
            return extract_json(resp.text)
        except ValueError as exc:
            raise BackendError(f"Invalid JSON response from planner: {exc}") from exc

    async def analyze_narrative(self, text: str, style_notes: str = "") -> dict[str, Any]:
        """返回可直接合并进 StyleSpecification 的字段（camelCase 键）"""
        user_prompt = f"**Narrative:**\n{text}\n\n**Style Notes:**\n{style_notes or 'None'}"
        data = await self._ask_json(ANALYZE_SYSTEM_PROMPT, user_prompt)

        # 角色名缺失时用 ID 兜底，避免后续校验失败
        characters = data.get("characters")
        if isinstance(characters, dict):
            for char_id, char in characters.items():
                if isinstance(char, dict) and not char.get("name"):
                    char["name"] = char_id
        settings = data.get("settings")
        if isinstance(settings, dict):
            for setting_id, setting in settings.items():
                if isinstance(setting, dict) and not setting.get("name"):
                    setting["name"] = setting_id
        return data

    def _style_context(self, style: StyleSpecification) -> str:
        dump = style.model_dump(
            mode="json",
            by_alias=True,
            include={"characters", "settings", "cinematography", "color_palette"},
        )
        # 不把参考图发给规划模型
        for char in dump.get("characters", {}).values():
            char.pop("turnaround", None)
            char.get("appearance", {}).pop("visualReferences", None)
        return json.dumps(dump, ensure_ascii=False, indent=2)

    async def decompose_into_scenes(self, text: str, style: StyleSpecification) -> list[SceneUnit]:
        camera = style.cinematography
        user_prompt = (
            f"**Granularity Level**: {style.granularity_level}\n"
            f"{GRANULARITY_INSTRUCTIONS[style.granularity_level]}\n\n"
            f"Cinematography style: {camera.lens_type}, {camera.lighting_style}\n"
            f"Color palette mood: {style.color_palette.mood}\n\n"
            f"**Visual Bible Context:**\n{self._style_context(style)}\n\n"
            f"**Narrative:**\n{text}"
        )
        data = await self._ask_json(DECOMPOSE_SYSTEM_PROMPT, user_prompt)

        raw_scenes = data.get("scenes")
        if not isinstance(raw_scenes, list):
            raise BackendError("Planner response missing `scenes` array")

        scenes: list[SceneUnit] = []
        for item in raw_scenes:
            if not isinstance(item, dict):
                continue
            segment = item.get("narrativeSegment") or item.get("narrative_segment")
            prompt = item.get("basePrompt") or item.get("base_prompt")
            if not isinstance(segment, str) or not isinstance(prompt, str) or not prompt.strip():
                logger.warning("Skipping malformed scene from planner: %s", str(item)[:200])
                continue
            scenes.append(SceneUnit(index=len(scenes), narrative_segment=segment, base_prompt=prompt.strip()))

        logger.info("Decomposed narrative into %d scenes (%s)", len(scenes), style.granularity_level)
        return scenes
