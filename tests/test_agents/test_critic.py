from __future__ import annotations

import base64
import json

import pytest

from scenereel.agents.critic import PASS_THRESHOLD, CriticAgent, interpret_verdict
from tests.agent_fixtures import FakeLLM
from tests.factories import create_scenes, create_style


def _critic(test_settings, payload) -> tuple[CriticAgent, FakeLLM]:
    text = payload if isinstance(payload, str) else json.dumps(payload)
    llm = FakeLLM(text)
    return CriticAgent(llm, test_settings), llm  # type: ignore[arg-type]


def _image_payloads(call: dict) -> list[bytes]:
    content = call["messages"][0]["content"]
    return [base64.b64decode(block["source"]["data"]) for block in content if block["type"] == "image"]


def _prompt_text(call: dict) -> str:
    content = call["messages"][0]["content"]
    return "".join(block["text"] for block in content if block["type"] == "text")


def test_pass_threshold_is_seven():
    assert PASS_THRESHOLD == 7
    assert interpret_verdict({"score": 7}).passed is True
    assert interpret_verdict({"score": 6.9}).passed is False


def test_passed_flag_from_model_is_ignored():
    verdict = interpret_verdict({"passed": True, "score": 5, "fixInstructions": "brighten"})
    assert verdict.passed is False
    assert verdict.fix_instructions == "brighten"

    verdict = interpret_verdict({"passed": False, "score": 9, "fixInstructions": "nothing"})
    assert verdict.passed is True
    assert verdict.fix_instructions is None


def test_score_is_clamped_and_coerced():
    assert interpret_verdict({"score": 12}).score == 10
    assert interpret_verdict({"score": "8"}).passed is True
    assert interpret_verdict({"score": "high"}).critique == "Validation parsing failed"


@pytest.mark.asyncio
async def test_validate_standalone_sends_candidate_only(test_settings):
    critic, llm = _critic(test_settings, {"passed": True, "score": 8, "critique": "solid"})
    scene = create_scenes(1)[0]

    verdict = await critic.validate(b"candidate", scene, None, create_style(), "IMMEDIATE")

    assert verdict.passed is True
    assert verdict.score == 8
    assert verdict.critique == "solid"
    call = llm.calls[0]
    assert _image_payloads(call) == [b"candidate"]
    prompt = _prompt_text(call)
    assert "This is a standalone validation." in prompt
    assert "**Validation Type**: IMMEDIATE" in prompt
    assert 'Narrative: "Narrative beat 0"' in prompt
    assert "neo-noir (#0a0a0a, #c4a747)" in prompt
    assert "Hero: Hero scarf" in prompt
    assert call["max_tokens"] == test_settings.critic_max_tokens


@pytest.mark.asyncio
async def test_validate_sends_reference_before_candidate(test_settings):
    critic, llm = _critic(
        test_settings,
        {"passed": False, "score": 4, "critique": "hair changed", "fixInstructions": "keep short black hair"},
    )
    scene = create_scenes(8)[7]

    verdict = await critic.validate(b"candidate", scene, b"reference", create_style(), "SHORT_TERM")

    assert verdict.passed is False
    assert verdict.fix_instructions == "keep short black hair"
    assert _image_payloads(llm.calls[0]) == [b"reference", b"candidate"]
    prompt = _prompt_text(llm.calls[0])
    assert "Compare this image against the reference image for continuity." in prompt
    assert "lighting consistency" in prompt


@pytest.mark.asyncio
async def test_validate_handles_fenced_json(test_settings):
    critic, _ = _critic(test_settings, '```json\n{"score": 9, "critique": "great",}\n```')

    verdict = await critic.validate(b"img", create_scenes(1)[0], None, create_style(), "IMMEDIATE")

    assert verdict.passed is True
    assert verdict.critique == "great"


@pytest.mark.asyncio
async def test_unparseable_response_fails_validation(test_settings):
    critic, _ = _critic(test_settings, "I cannot review this image.")

    verdict = await critic.validate(b"img", create_scenes(1)[0], None, create_style(), "LONG_TERM")

    assert verdict.passed is False
    assert verdict.score == 0
    assert verdict.critique == "Validation parsing failed"
    assert verdict.fix_instructions is None
