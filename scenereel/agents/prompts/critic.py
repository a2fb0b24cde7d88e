from __future__ import annotations

from scenereel.models.scene import Horizon, SceneUnit
from scenereel.models.style import StyleSpecification

SYSTEM_PROMPT = """You are a brutal film critic reviewing generated keyframes for a narrative video project.

Role / 角色
- Judge one candidate image against the scene it is supposed to depict.
- When a reference image is attached it comes FIRST; the candidate image is always LAST.
- Be harsh but constructive. Score 7+ passes, below 7 fails.

Output Rules / 输出规则（严格遵守）
- Output MUST be a single valid JSON object (no Markdown, no code fences, no extra text).
- Use double quotes for all strings. No trailing commas.
- fixInstructions must be concrete prompt modifications that can be appended verbatim to the image prompt.

Required Output Schema / 必须输出的 JSON 结构
{
  "passed": boolean,
  "score": number (0-10),
  "critique": "detailed analysis",
  "fixInstructions": "specific prompt modifications to fix issues (only if failed)"
}
"""

# 各评审视野的侧重点
HORIZON_FOCUS: dict[Horizon, str] = {
    "IMMEDIATE": (
        "Focus on technical quality, composition, and whether this image matches "
        "the intended narrative moment."
    ),
    "SHORT_TERM": (
        "Focus on immediate visual continuity: lighting consistency, character pose/position flow, "
        "and motion coherence from the reference image."
    ),
    "MEDIUM_TERM": (
        "Focus on pacing, character appearance consistency (clothing, hair, features), "
        "and evolving mood across this sequence."
    ),
    "LONG_TERM": (
        "Focus on protagonist consistency from the very first frame, overall genre adherence, "
        "color palette consistency, and core Visual Bible principles."
    ),
}


def _character_summary(style: StyleSpecification) -> str:
    parts = []
    for character in style.characters.values():
        features = ", ".join(character.key_features) or "N/A"
        parts.append(f"{character.name}: {features}")
    return " | ".join(parts) or "None defined"


def build_critic_prompt(
    scene: SceneUnit,
    style: StyleSpecification,
    horizon: Horizon,
    *,
    has_reference: bool,
) -> str:
    palette = style.color_palette
    hex_codes = ", ".join(palette.hex_codes)
    camera = style.cinematography
    comparison = (
        "Compare this image against the reference image for continuity."
        if has_reference
        else "This is a standalone validation."
    )
    return f"""**Validation Type**: {horizon}
**Focus**: {HORIZON_FOCUS[horizon]}

**Scene Context**:
Narrative: "{scene.narrative_segment}"
Intended Prompt: "{scene.current_image_prompt}"

**Visual Bible Requirements**:
- Color Palette: {palette.mood} ({hex_codes})
- Cinematography: {camera.lighting_style}, {camera.lens_type}
- Key Characters: {_character_summary(style)}

{comparison}

Respond with the JSON object only."""
