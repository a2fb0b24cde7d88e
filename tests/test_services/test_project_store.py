from __future__ import annotations

from datetime import timedelta

import pytest

from scenereel.models.project import ProjectSnapshot, ProjectState
from scenereel.models.scene import ImageData, ImageFailedRetries, ValidationRecord
from scenereel.services.project_store import ProjectStore
from tests.factories import completed, create_scenes, create_style


def _project(project_id: str = "proj-1") -> ProjectState:
    scenes = create_scenes(3)
    completed(scenes[0], b"\x00\xffimage-0", token="tok-0")
    scenes[1].state = ImageFailedRetries(
        attempts=2,
        image=ImageData(data=b"rejected", attempt_count=2, status="user_intervention_needed"),
    )
    scenes[1].validation_log.append(
        ValidationRecord(
            horizon="IMMEDIATE",
            reference_scene_index=1,
            score=4,
            critique="too dark",
            passed=False,
            fix_instructions="brighten",
            attempt=2,
        )
    )
    return ProjectState(id=project_id, name="Noir", style=create_style(), scenes=scenes)


@pytest.mark.asyncio
async def test_save_and_load_round_trip(session_maker):
    store = ProjectStore(session_maker)
    await store.save(_project())

    loaded = await store.load("proj-1")

    assert loaded is not None
    assert [s.overall_status for s in loaded.scenes] == ["complete", "image_failed_retries", "pending"]
    assert loaded.scenes[0].image_data.data == b"\x00\xffimage-0"
    assert loaded.scenes[0].image_data.continuity_token == "tok-0"
    assert loaded.scenes[1].state.attempts == 2
    assert loaded.scenes[1].validation_log[0].fix_instructions == "brighten"
    assert loaded.style.characters["hero"].turnaround.front.image == b"hero-front"


@pytest.mark.asyncio
async def test_save_upserts_existing_row(session_maker):
    store = ProjectStore(session_maker)
    state = _project()
    first = await store.save(state)

    state.name = "Noir v2"
    state.scenes = state.scenes[:1]
    second = await store.save(state)

    assert second.id == first.id
    assert second.name == "Noir v2"
    assert second.scene_count == 1
    rows = await store.list_projects()
    assert [r.id for r in rows] == ["proj-1"]


@pytest.mark.asyncio
async def test_list_orders_by_most_recent(session_maker):
    store = ProjectStore(session_maker)
    await store.save(_project("older"))
    await store.save(_project("newer"))

    rows = await store.list_projects()

    assert {r.id for r in rows} == {"newer", "older"}
    assert rows[0].updated_at >= rows[1].updated_at


@pytest.mark.asyncio
async def test_load_and_delete_missing(session_maker):
    store = ProjectStore(session_maker)

    assert await store.load("nope") is None
    assert await store.delete("nope") is False


@pytest.mark.asyncio
async def test_delete(session_maker):
    store = ProjectStore(session_maker)
    await store.save(_project())

    assert await store.delete("proj-1") is True
    assert await store.load("proj-1") is None


def test_snapshot_timestamps_are_timezone_aware():
    row = ProjectSnapshot(id="p", payload="{}")

    assert row.created_at.tzinfo is not None
    assert row.updated_at.utcoffset() == timedelta(0)


@pytest.mark.asyncio
async def test_save_minimal_project(session_maker):
    store = ProjectStore(session_maker)

    row = await store.save(ProjectState(id="p1", style=create_style(), scenes=create_scenes(2)))

    assert row.scene_count == 2
    loaded = await store.load("p1")
    assert [s.overall_status for s in loaded.scenes] == ["pending", "pending"]
    assert loaded.last_updated.tzinfo is not None
