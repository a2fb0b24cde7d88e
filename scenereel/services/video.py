from __future__ import annotations

import asyncio
import base64
from dataclasses import dataclass
from typing import Any

import httpx

from scenereel.config import Settings
from scenereel.exceptions import BackendError, ConfigurationError


@dataclass(slots=True)
class VideoResult:
    uri: str | None = None
    # 异步任务句柄（后端尚未出片时返回；句柄的后续轮询不在流水线范围内）
    pending_operation_handle: str | None = None


class VideoService:
    """视频生成服务（OpenAI 兼容接口，图生视频）"""

    def __init__(self, settings: Settings, *, max_retries: int = 3):
        self.settings = settings
        self.max_retries = max_retries

    def _build_url(self) -> str:
        base = self.settings.video_base_url.rstrip("/")
        endpoint = self.settings.video_endpoint
        if not endpoint.startswith("/"):
            endpoint = "/" + endpoint
        return f"{base}{endpoint}"

    def _is_retryable_status(self, status_code: int) -> bool:
        return status_code in {408, 429, 500, 502, 503, 504}

    async def _post_json_with_retry(self, url: str, payload: dict[str, Any]) -> dict[str, Any]:
        delay_s = 0.5
        last_exc: Exception | None = None

        # 视频生成需要更长的超时时间
        timeout = httpx.Timeout(max(self.settings.request_timeout_s, 600.0), connect=30.0)

        async with httpx.AsyncClient(timeout=timeout) as client:
            for attempt in range(self.max_retries + 1):
                try:
                    res = await client.post(url, headers=self.settings.video_headers(), json=payload)
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

        raise BackendError(f"Video generation request failed after retries: {last_exc}") from last_exc

    def _parse_result(self, data: dict[str, Any]) -> VideoResult:
        items = data.get("data") or []
        if isinstance(items, list) and items:
            first = items[0] if isinstance(items[0], dict) else {}
            result_url = first.get("url")
            if isinstance(result_url, str) and result_url:
                return VideoResult(uri=result_url)

        video_uri = data.get("video_uri") or data.get("videoUri")
        if isinstance(video_uri, str) and video_uri:
            return VideoResult(uri=video_uri)

        # 异步任务：只返回句柄
        handle = data.get("name") or data.get("id") or data.get("task_id")
        if isinstance(handle, str) and handle:
            return VideoResult(pending_operation_handle=handle)

        raise BackendError(f"Video API response missing URL or operation handle: {str(data)[:200]}")

    async def generate_video(
        self,
        image: bytes,
        prompt: str,
        reference_images: list[bytes] | None = None,
        duration_s: int = 5,
    ) -> VideoResult:
        """以场景图为首帧生成视频"""
        if not self.settings.video_api_key:
            raise ConfigurationError("Video backend credentials missing: set `video_api_key`.")

        payload: dict[str, Any] = {
            "model": self.settings.video_model,
            "prompt": prompt,
            "image": base64.b64encode(image).decode("utf-8"),
            "duration": duration_s,
        }
        if reference_images:
            payload["reference_images"] = [
                {"image": base64.b64encode(ref).decode("utf-8"), "reference_type": "asset"}
                for ref in reference_images
            ]

        data = await self._post_json_with_retry(self._build_url(), payload)
        return self._parse_result(data)
