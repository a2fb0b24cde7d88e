"""Error taxonomy shared by services and the production pipeline."""
from __future__ import annotations

from typing import Any


class ScenereelError(Exception):
    """所有业务异常的基类"""

    code: str = "SCENEREEL_ERROR"

    def __init__(self, message: str, *, code: str | None = None, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code
        self.details = details or {}

    def __str__(self) -> str:
        return self.message


class ConfigurationError(ScenereelError):
    """缺少凭据或必要配置；调度器不会在缺失后端的情况下继续运行"""

    code = "CONFIGURATION_ERROR"


class BackendError(ScenereelError):
    """外部生成/评审服务调用失败（网络、HTTP 状态、响应格式）"""

    code = "BACKEND_ERROR"


class PipelineAlreadyRunningError(ScenereelError):
    code = "PIPELINE_ALREADY_RUNNING"


class SceneNotFoundError(ScenereelError):
    code = "SCENE_NOT_FOUND"
