"""Agent 工具函数。"""
from __future__ import annotations

import json
import re
from typing import Any


def shorten(text: str, limit: int = 50) -> str:
    """日志里展示长文本时截断"""
    text = " ".join(text.split())
    if len(text) <= limit:
        return text
    return text[:limit] + "..."


def extract_json(text: str) -> dict[str, Any]:
    """从模型响应中提取 JSON 对象（兼容 markdown 代码块、尾随逗号、被截断的输出）。"""
    text = _strip_code_fence(text.strip())

    try:
        data = json.loads(text)
        if isinstance(data, dict):
            return data
    except json.JSONDecodeError:
        pass

    start = text.find("{")
    if start == -1:
        raise ValueError("No JSON object found in model response")

    end = text.rfind("}")
    # 没有闭合括号时按截断处理
    json_text = text[start:] if end <= start else text[start : end + 1]

    for fix in (
        lambda x: x,
        _fix_common_json_errors,
        _close_truncated_json,
        lambda x: _close_truncated_json(_fix_common_json_errors(x)),
    ):
        try:
            data = json.loads(fix(json_text))
        except (json.JSONDecodeError, ValueError):
            continue
        if isinstance(data, dict):
            return data

    raise ValueError(f"Unable to parse JSON from model response: {json_text[:200]}...")


def _strip_code_fence(text: str) -> str:
    if not text.startswith("```"):
        return text
    lines = text.split("\n")[1:]
    if lines and lines[-1].strip() == "```":
        lines = lines[:-1]
    return "\n".join(lines).strip()


def _fix_common_json_errors(text: str) -> str:
    """修复模型输出 JSON 的常见错误。"""
    # 注释
    text = re.sub(r"//[^\n]*", "", text)
    text = re.sub(r"/\*.*?\*/", "", text, flags=re.DOTALL)

    # 尾随逗号
    text = re.sub(r",\s*]", "]", text)
    text = re.sub(r",\s*}", "}", text)

    # 换行分隔但缺少逗号的相邻成员
    text = re.sub(r'"\s*\n\s*"', '",\n"', text)
    text = re.sub(r"}\s*\n\s*{", "},\n{", text)
    text = re.sub(r'([}\]])\s*\n\s*"', r'\1,\n"', text)
    text = re.sub(r'(\d|true|false|null)\s*\n\s*"', r'\1,\n"', text)
    return text


def _close_truncated_json(text: str) -> str:
    """补齐被截断的字符串与括号。"""
    open_braces = 0
    open_brackets = 0
    in_string = False
    escape_next = False

    for char in text:
        if escape_next:
            escape_next = False
            continue
        if char == "\\":
            escape_next = True
            continue
        if char == '"':
            in_string = not in_string
            continue
        if in_string:
            continue
        if char == "{":
            open_braces += 1
        elif char == "}":
            open_braces -= 1
        elif char == "[":
            open_brackets += 1
        elif char == "]":
            open_brackets -= 1

    if in_string:
        text += '"'
    return text + "]" * max(open_brackets, 0) + "}" * max(open_braces, 0)
