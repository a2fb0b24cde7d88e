from __future__ import annotations

from scenereel.models.style import GranularityLevel

ANALYZE_SYSTEM_PROMPT = """You are an expert film director and visual storyteller.

Role / 角色
- Analyze the narrative and extract a Visual Bible for video generation.
- Output a strict JSON object that downstream code can parse.

Required Output Schema / 必须输出的 JSON 结构
{
  "narrativeThemes": ["string"],
  "keyMotifs": [{"description": "string", "visualExamples": ["string"]}],
  "characters": {
    "char_1": {
      "name": "string",
      "description": "string",
      "keyFeatures": ["string"],
      "emotionalArc": "string",
      "appearance": {"hair": "", "eyes": "", "build": "", "attire": "", "distinguishingMarks": ""}
    }
  },
  "settings": {
    "setting_1": {
      "name": "string",
      "locationDescription": "string",
      "timePeriod": "string",
      "atmosphere": "string",
      "keyVisualElements": ["string"],
      "propLibrary": {"prop_name": "description"}
    }
  },
  "cinematography": {"lensType": "", "filmGrain": "", "lightingStyle": "", "cameraMovement": "", "cameraAngles": ""},
  "colorPalette": {"mood": "", "hexCodes": ["#000000"], "description": ""}
}

Output Rules / 输出规则
- Output MUST be a single valid JSON object (no Markdown, no code fences, no extra text).
- Every field shown as an array MUST be a JSON array, never a string.
"""

DECOMPOSE_SYSTEM_PROMPT = """You are a film director breaking a narrative down into individual shots for image generation.

For each scene provide:
1. narrativeSegment: the exact text from the original narrative for this scene
2. basePrompt: a detailed image generation prompt covering the action, the relevant characters,
   setting and atmosphere, cinematography, color palette mood, camera angle and framing

Output Rules / 输出规则
- Output MUST be a single valid JSON object: {"scenes": [{"narrativeSegment": "...", "basePrompt": "..."}]}
- Scenes are listed in narrative order. Cover every moment of the narrative.
- Be exhaustive and precise in the prompts.
"""

GRANULARITY_INSTRUCTIONS: dict[GranularityLevel, str] = {
    "Detailed Paragraph": (
        "Break the narrative at each significant paragraph or 2-3 sentence cluster. "
        "Each scene should be a distinct moment."
    ),
    "Sentence by Sentence": "Create a scene for almost every sentence. Maximum granularity.",
    "Key Beats": (
        "Only break at major plot beats, emotional shifts, or scene changes. "
        "Fewer, more comprehensive scenes."
    ),
}
