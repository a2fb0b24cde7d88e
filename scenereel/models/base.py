from __future__ import annotations

from datetime import datetime, UTC

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


def utcnow() -> datetime:
    return datetime.now(UTC)


class DomainModel(BaseModel):
    """领域模型基类

    - 接受 camelCase（上游创作工具导出的 JSON）与 snake_case 两种字段名
    - bytes 字段在 JSON 中以 base64 往返，便于整份项目快照落库
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        ser_json_bytes="base64",
        val_json_bytes="base64",
    )
