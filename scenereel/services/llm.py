from __future__ import annotations

import asyncio
import base64
import logging
from dataclasses import dataclass
from typing import Any

from scenereel.config import Settings
from scenereel.exceptions import BackendError, ConfigurationError

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class LLMResponse:
    text: str
    raw: Any


def detect_media_type(data: bytes) -> str:
    """按文件头识别图片格式（识别不了时按 PNG 处理）"""
    if data.startswith(b"\xff\xd8\xff"):
        return "image/jpeg"
    if data[:4] == b"RIFF" and data[8:12] == b"WEBP":
        return "image/webp"
    if data.startswith((b"GIF87a", b"GIF89a")):
        return "image/gif"
    return "image/png"


def image_block(data: bytes, media_type: str | None = None) -> dict[str, Any]:
    """把图片字节包装成 Messages API 的 image content block"""
    return {
        "type": "image",
        "source": {
            "type": "base64",
            "media_type": media_type or detect_media_type(data),
            "data": base64.b64encode(data).decode("utf-8"),
        },
    }


def text_block(text: str) -> dict[str, Any]:
    return {"type": "text", "text": text}


class LLMService:
    """Claude (Anthropic Messages API) 服务包装器。

    - 直接使用 `anthropic` SDK
    - 支持多模态输入（评审时附带候选图与参考图）
    - 可重试错误在这里做指数退避；业务层的重试预算由调度器负责
    """

    def __init__(self, settings: Settings, *, max_retries: int = 3):
        self.settings = settings
        self.max_retries = max_retries
        self._client: Any | None = None
        self._anthropic: Any | None = None

    def _import_anthropic(self) -> Any:
        if self._anthropic is not None:
            return self._anthropic
        try:
            import anthropic  # type: ignore
        except ModuleNotFoundError as exc:  # pragma: no cover
            raise ConfigurationError(
                "Missing dependency `anthropic`. Install it with `pip install anthropic`."
            ) from exc
        self._anthropic = anthropic
        return anthropic

    def _get_client(self) -> Any:
        if self._client is not None:
            return self._client

        anthropic = self._import_anthropic()

        api_key = self.settings.anthropic_api_key or self.settings.anthropic_auth_token
        if not api_key:
            raise ConfigurationError(
                "Anthropic credentials missing: set `anthropic_api_key` or `anthropic_auth_token`."
            )

        default_headers: dict[str, str] = {}
        if self.settings.anthropic_auth_token:
            # 兼容一些中转站使用 Bearer Token 的鉴权方式
            default_headers["Authorization"] = f"Bearer {self.settings.anthropic_auth_token}"

        kwargs: dict[str, Any] = {
            "api_key": api_key,
            "timeout": self.settings.request_timeout_s,
            # 我们在外层自己做重试，避免双重重试导致等待过长
            "max_retries": 0,
        }
        if self.settings.anthropic_base_url:
            kwargs["base_url"] = self.settings.anthropic_base_url
        if default_headers:
            kwargs["default_headers"] = default_headers

        self._client = anthropic.AsyncAnthropic(**kwargs)
        return self._client

    def _parse_message(self, message: Any) -> LLMResponse:
        text_parts: list[str] = []
        for block in getattr(message, "content", []) or []:
            if getattr(block, "type", None) == "text":
                text_parts.append(getattr(block, "text", ""))
        return LLMResponse(text="".join(text_parts), raw=message)

    def _is_retryable_error(self, exc: Exception) -> bool:
        anthropic = self._import_anthropic()
        retryable_types: tuple[type[BaseException], ...] = (
            getattr(anthropic, "RateLimitError", Exception),
            getattr(anthropic, "APIConnectionError", Exception),
            getattr(anthropic, "APITimeoutError", Exception),
        )
        if isinstance(exc, retryable_types):
            return True

        status_code = getattr(exc, "status_code", None)
        if isinstance(status_code, int) and status_code in {408, 429, 500, 502, 503, 504}:
            return True

        return False

    async def generate(
        self,
        *,
        messages: list[dict[str, Any]],
        system: str | None = None,
        model: str | None = None,
        max_tokens: int = 1024,
        temperature: float | None = None,
        **kwargs: Any,
    ) -> LLMResponse:
        client = self._get_client()

        payload: dict[str, Any] = {
            "model": model or self.settings.anthropic_model,
            "max_tokens": max_tokens,
            "messages": messages,
            **kwargs,
        }
        if system is not None:
            payload["system"] = system
        if temperature is not None:
            payload["temperature"] = temperature

        delay_s = 0.5
        for attempt in range(self.max_retries + 1):
            try:
                message = await client.messages.create(**payload)
                return self._parse_message(message)
            except Exception as exc:
                if attempt >= self.max_retries or not self._is_retryable_error(exc):
                    raise BackendError(f"LLM request failed: {exc}") from exc
                logger.info("Retryable LLM error (attempt %d): %s", attempt + 1, exc)
                await asyncio.sleep(delay_s)
                delay_s = min(delay_s * 2, 8.0)

        raise RuntimeError("unreachable")  # pragma: no cover
