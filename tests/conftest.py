from __future__ import annotations

from typing import AsyncGenerator

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from scenereel.config import Settings
from scenereel.db.session import build_engine, build_session_maker, init_db


@pytest.fixture()
def test_settings() -> Settings:
    return Settings(
        database_url="sqlite+aiosqlite:///:memory:",
        anthropic_api_key="test-key",
        image_api_key="test-key",
        image_base_url="http://image.test/v1",
        video_api_key="test-key",
        video_base_url="http://video.test/v1",
        video_duration_s=5,
        image_retry_backoff="none",
        image_retry_backoff_s=0.0,
    )


@pytest_asyncio.fixture(scope="function")
async def session_maker(test_settings: Settings) -> AsyncGenerator[async_sessionmaker[AsyncSession], None]:
    engine = build_engine(test_settings)
    await init_db(engine)
    yield build_session_maker(engine)
    await engine.dispose()
