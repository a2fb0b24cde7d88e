from __future__ import annotations

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Note: do not hardcode env_file here; tests instantiate Settings() directly and
    # should not implicitly read the repo's .env. Runtime uses get_settings().
    model_config = SettingsConfigDict(extra="ignore")

    app_name: str = "scenereel"
    environment: str = Field(default="dev", description="dev|staging|prod")
    log_level: str = Field(default="INFO", description="日志级别")

    # 项目快照存储（默认本地 SQLite）
    database_url: str = Field(default="sqlite+aiosqlite:///./scenereel.db")
    db_echo: bool = False

    # ============================================
    # 评审服务 (Anthropic Messages API，多模态)
    # ============================================
    anthropic_api_key: str | None = None
    anthropic_auth_token: str | None = Field(
        default=None,
        description="中转站 Token（Bearer 鉴权）",
    )
    anthropic_base_url: str | None = Field(
        default=None,
        description="Anthropic 中转站/代理地址",
    )
    anthropic_model: str = Field(
        default="claude-sonnet-4-5-20250929",
        description="评审与分镜规划使用的模型名称",
    )
    critic_max_tokens: int = Field(default=1024, description="评审响应的最大 token 数")

    # ============================================
    # 图像生成服务 (OpenAI 兼容接口)
    # ============================================
    image_base_url: str = Field(
        default="https://api.openai.com/v1",
        description="图像生成服务基础地址",
    )
    image_api_key: str | None = None
    image_model: str = Field(default="gpt-image-1", description="图像生成模型名称")
    image_endpoint: str = Field(
        default="/images/generations",
        description="图像生成 API 端点路径",
    )
    image_edit_endpoint: str = Field(
        default="/images/edits",
        description="图像编辑 API 端点路径（带原图 + 编辑指令）",
    )

    # ============================================
    # 视频生成服务 (OpenAI 兼容接口)
    # ============================================
    video_base_url: str = Field(
        default="https://api.example.com/v1",
        description="视频生成服务基础地址",
    )
    video_api_key: str | None = None
    video_model: str = Field(default="video-gen-1", description="视频生成模型名称")
    video_endpoint: str = Field(
        default="/videos/generations",
        description="视频生成 API 端点路径",
    )
    video_duration_s: int = Field(default=5, description="每个场景视频的时长（秒）")

    request_timeout_s: float = 120.0

    # 场景级图片重试的退避策略（传输层重试由各服务自己处理）
    image_retry_backoff: str = Field(default="none", description="none|fixed")
    image_retry_backoff_s: float = Field(default=0.0, ge=0.0)

    def image_headers(self) -> dict[str, str]:
        """图像服务请求头"""
        headers: dict[str, str] = {"User-Agent": self.app_name}
        if self.image_api_key:
            headers["Authorization"] = f"Bearer {self.image_api_key}"
        return headers

    def video_headers(self) -> dict[str, str]:
        """视频服务请求头"""
        headers: dict[str, str] = {"User-Agent": self.app_name}
        if self.video_api_key:
            headers["Authorization"] = f"Bearer {self.video_api_key}"
        return headers


@lru_cache
def get_settings() -> Settings:
    return Settings(_env_file=".env", _env_file_encoding="utf-8")
