from __future__ import annotations

import asyncio
import base64
import logging
from dataclasses import dataclass
from typing import Any

import httpx

from scenereel.agents.prompts.image import build_edit_prompt
from scenereel.config import Settings
from scenereel.exceptions import BackendError, ConfigurationError
from scenereel.models.context import ContextBundle

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class ImageResult:
    data: bytes
    continuity_token: str | None = None


class ImageService:
    """图像生成/编辑服务（OpenAI 兼容接口，b64_json 返回）

    只做传输层重试（408/429/5xx）；生成结果是否可用、是否重新生成由调度器决定。
    """

    def __init__(self, settings: Settings, *, max_retries: int = 3):
        self.settings = settings
        self.max_retries = max_retries

    def _build_url(self, endpoint: str) -> str:
        base = self.settings.image_base_url.rstrip("/")
        if not endpoint.startswith("/"):
            endpoint = "/" + endpoint
        return f"{base}{endpoint}"

    def _is_retryable_status(self, status_code: int) -> bool:
        return status_code in {408, 429, 500, 502, 503, 504}

    def _ensure_configured(self) -> None:
        if not self.settings.image_api_key:
            raise ConfigurationError("Image backend credentials missing: set `image_api_key`.")

    async def _post_json_with_retry(self, url: str, payload: dict[str, Any]) -> dict[str, Any]:
        delay_s = 0.5
        last_exc: Exception | None = None

        async with httpx.AsyncClient(timeout=self.settings.request_timeout_s) as client:
            for attempt in range(self.max_retries + 1):
                try:
                    res = await client.post(url, headers=self.settings.image_headers(), json=payload)
                    if self._is_retryable_status(res.status_code) and attempt < self.max_retries:
                        await asyncio.sleep(delay_s)
                        delay_s = min(delay_s * 2, 8.0)
                        continue
                    res.raise_for_status()
                    return res.json()
                except (httpx.TimeoutException, httpx.NetworkError, httpx.HTTPStatusError) as exc:
                    last_exc = exc
                    if attempt >= self.max_retries:
                        break
                    status = getattr(getattr(exc, "response", None), "status_code", None)
                    if isinstance(status, int) and not self._is_retryable_status(status):
                        break
                    await asyncio.sleep(delay_s)
                    delay_s = min(delay_s * 2, 8.0)

        raise BackendError(f"Image generation request failed after retries: {last_exc}") from last_exc

    async def _download(self, url: str) -> bytes:
        try:
            async with httpx.AsyncClient(timeout=self.settings.request_timeout_s) as client:
                res = await client.get(url)
                res.raise_for_status()
                return res.content
        except httpx.HTTPError as exc:
            raise BackendError(f"Failed to download generated image: {exc}") from exc

    async def _parse_result(self, data: dict[str, Any]) -> ImageResult:
        items = data.get("data") or []
        first = items[0] if isinstance(items, list) and items and isinstance(items[0], dict) else {}

        token = first.get("thought_signature") or first.get("continuity_token")
        token = token if isinstance(token, str) and token else None

        b64 = first.get("b64_json")
        if isinstance(b64, str) and b64:
            return ImageResult(data=base64.b64decode(b64), continuity_token=token)

        url = first.get("url")
        if isinstance(url, str) and url:
            return ImageResult(data=await self._download(url), continuity_token=token)

        raise BackendError(f"Image API response missing image data: {str(data)[:200]}")

    async def generate_image(
        self,
        prompt: str,
        context: ContextBundle,
        aspect_ratio: str,
        *,
        prior_image: bytes | None = None,
        continuity_token: str | None = None,
        edit_instruction: str | None = None,
    ) -> ImageResult:
        """生成一张场景图；带原图 + 编辑指令时走编辑模式

        Args:
            prompt: 当前场景 prompt（编辑模式下作为“当前画面状态”）
            context: 场景叙述、角色设定图与连续性锚点
            aspect_ratio: 透传给后端的画幅比例
            prior_image: 已接受的当前画面（编辑模式）
            continuity_token: 上次生成返回的连续性令牌，编辑时原样带回
            edit_instruction: 人工编辑指令
        """
        self._ensure_configured()

        if prior_image is not None and edit_instruction:
            payload: dict[str, Any] = {
                "model": self.settings.image_model,
                "prompt": build_edit_prompt(context.narrative, prompt, edit_instruction),
                "image": base64.b64encode(prior_image).decode("utf-8"),
                "n": 1,
                "response_format": "b64_json",
            }
            if continuity_token:
                payload["thought_signature"] = continuity_token
            url = self._build_url(self.settings.image_edit_endpoint)
        else:
            references = [*context.character_references, *context.continuity_anchors]
            payload = {
                "model": self.settings.image_model,
                "prompt": prompt,
                "n": 1,
                "response_format": "b64_json",
                "aspect_ratio": aspect_ratio,
            }
            if references:
                payload["reference_images"] = [base64.b64encode(ref).decode("utf-8") for ref in references]
            url = self._build_url(self.settings.image_endpoint)

        data = await self._post_json_with_retry(url, payload)
        return await self._parse_result(data)
