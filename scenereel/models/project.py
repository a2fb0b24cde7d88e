from datetime import datetime
from typing import List

from pydantic import Field as PydanticField
from sqlalchemy import DateTime
from sqlmodel import Field, SQLModel

from scenereel.models.base import DomainModel, utcnow
from scenereel.models.scene import SceneUnit
from scenereel.models.style import StyleSpecification


class ProjectState(DomainModel):
    """一次运行可落库的完整状态：风格说明 + 全部场景"""

    id: str
    name: str = ""
    style: StyleSpecification
    scenes: List[SceneUnit] = PydanticField(default_factory=list)
    last_updated: datetime = PydanticField(default_factory=utcnow)


class ProjectSnapshot(SQLModel, table=True):
    """项目快照（整份 ProjectState 的 JSON）"""

    __tablename__ = "project_snapshot"

    id: str = Field(primary_key=True)
    name: str = ""
    payload: str
    scene_count: int = 0
    # 带时区的 UTC 时间
    created_at: datetime = Field(default_factory=utcnow, sa_type=DateTime(timezone=True))
    updated_at: datetime = Field(default_factory=utcnow, sa_type=DateTime(timezone=True))
