from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from scenereel.agents.prompts.critic import SYSTEM_PROMPT, build_critic_prompt
from scenereel.agents.utils import extract_json
from scenereel.config import Settings
from scenereel.models.scene import Horizon, SceneUnit
from scenereel.models.style import StyleSpecification
from scenereel.services.llm import LLMService, image_block, text_block

logger = logging.getLogger(__name__)

# 固定通过线，不开放配置
PASS_THRESHOLD = 7


@dataclass(frozen=True, slots=True)
class ValidationResult:
    passed: bool
    score: float
    critique: str = ""
    fix_instructions: str | None = None


PARSE_FAILURE = ValidationResult(passed=False, score=0, critique="Validation parsing failed")


def _coerce_score(value: Any) -> float | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(min(max(value, 0), 10))
    if isinstance(value, str):
        try:
            return float(min(max(float(value.strip()), 0), 10))
        except ValueError:
            return None
    return None


def interpret_verdict(data: dict[str, Any]) -> ValidationResult:
    """把模型返回的 JSON 归一化；是否通过只看分数，不信任模型给的 passed"""
    score = _coerce_score(data.get("score"))
    if score is None:
        return PARSE_FAILURE

    passed = score >= PASS_THRESHOLD
    critique = data.get("critique")
    fix = data.get("fixInstructions") or data.get("fix_instructions")
    return ValidationResult(
        passed=passed,
        score=score,
        critique=critique if isinstance(critique, str) else "",
        fix_instructions=fix.strip() if not passed and isinstance(fix, str) and fix.strip() else None,
    )


class CriticAgent:
    """多视野画面评审（Anthropic 多模态）

    评审本身不修改场景；结果由调度器写入场景的评审日志。
    """

    name = "critic"

    def __init__(self, llm: LLMService, settings: Settings):
        self.llm = llm
        self.settings = settings

    async def validate(
        self,
        image: bytes,
        scene: SceneUnit,
        reference_image: bytes | None,
        style: StyleSpecification,
        horizon: Horizon,
    ) -> ValidationResult:
        prompt = build_critic_prompt(scene, style, horizon, has_reference=reference_image is not None)

        content: list[dict[str, Any]] = []
        if reference_image is not None:
            content.append(image_block(reference_image))
        content.append(image_block(image))
        content.append(text_block(prompt))

        resp = await self.llm.generate(
            messages=[{"role": "user", "content": content}],
            system=SYSTEM_PROMPT,
            max_tokens=self.settings.critic_max_tokens,
        )

        try:
            data = extract_json(resp.text)
        except ValueError:
            logger.warning("Failed to parse %s validation JSON for scene %d: %s", horizon, scene.index, resp.text[:200])
            return PARSE_FAILURE
        return interpret_verdict(data)
