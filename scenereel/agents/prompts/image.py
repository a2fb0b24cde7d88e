from __future__ import annotations

from scenereel.models.style import StyleSpecification


def build_image_prompt(prompt: str, style: StyleSpecification, aspect_ratio: str) -> str:
    """把场景 prompt 与风格说明拼成完整的生成请求文本（参考图随请求另附）"""
    camera = style.cinematography
    return f"""Generate a high-fidelity cinematic image based on the following scene.

SCENE PROMPT: "{prompt}"

CRITICAL VISUAL CONTEXT (YOU MUST ADHERE TO THIS):
- Cinematography: {camera.lighting_style}, {camera.lens_type}
- Color Palette: {style.color_palette.mood}

REFERENCE ADHERENCE:
- The character in the generated image MUST visually match the provided Character Reference images EXACTLY.
- The lighting and color grading MUST be consistent with the Previous Frames (if provided).

Output the image in {aspect_ratio} aspect ratio."""


def build_edit_prompt(narrative: str, current_prompt: str, instruction: str) -> str:
    """编辑模式：叙述为不可改动的事实，只按指令修改当前画面"""
    return (
        f"Scene Context (IMMUTABLE TRUTH): {narrative}\n\n"
        f"Current Visual State: {current_prompt}\n\n"
        f"Edit Instruction: {instruction}"
    )
