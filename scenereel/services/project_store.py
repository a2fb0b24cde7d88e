from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from scenereel.models.base import utcnow
from scenereel.models.project import ProjectSnapshot, ProjectState

logger = logging.getLogger(__name__)


class ProjectStore:
    """以整份 JSON 快照保存/读取项目（风格说明 + 全部场景）"""

    def __init__(self, session_maker: async_sessionmaker[AsyncSession]):
        self.session_maker = session_maker

    async def save(self, state: ProjectState) -> ProjectSnapshot:
        now = utcnow()
        payload = state.model_dump_json(by_alias=True)
        async with self.session_maker() as session:
            row = await session.get(ProjectSnapshot, state.id)
            if row is None:
                row = ProjectSnapshot(id=state.id, payload=payload, created_at=now)
            row.name = state.name
            row.payload = payload
            row.scene_count = len(state.scenes)
            row.updated_at = now
            session.add(row)
            await session.commit()
            await session.refresh(row)
        logger.debug("Saved project snapshot %s (%d scenes)", state.id, len(state.scenes))
        return row

    async def load(self, project_id: str) -> ProjectState | None:
        async with self.session_maker() as session:
            row = await session.get(ProjectSnapshot, project_id)
            if row is None:
                return None
            return ProjectState.model_validate_json(row.payload)

    async def list_projects(self) -> list[ProjectSnapshot]:
        async with self.session_maker() as session:
            res = await session.execute(select(ProjectSnapshot).order_by(ProjectSnapshot.updated_at.desc()))
            return list(res.scalars().all())

    async def delete(self, project_id: str) -> bool:
        async with self.session_maker() as session:
            row = await session.get(ProjectSnapshot, project_id)
            if row is None:
                return False
            await session.delete(row)
            await session.commit()
            return True
