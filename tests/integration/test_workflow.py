from __future__ import annotations

import asyncio

import pytest

from scenereel.events.subscribers import SnapshotWriter
from scenereel.services.project_store import ProjectStore
from tests.agent_fixtures import FakeCritic, FakeImageBackend, FakeVideoBackend, failing, make_pipeline, passing
from tests.factories import create_scenes, create_style


def _scene_two_always_fails(scene, horizon):
    if scene.index == 2 and horizon == "IMMEDIATE":
        return failing("show the lighthouse beam")
    return passing()


@pytest.mark.asyncio
async def test_full_workflow_halts_then_resumes(test_settings, session_maker):
    scenes = create_scenes(5)
    style = create_style(max_image_retries=2)
    image = FakeImageBackend()
    video = FakeVideoBackend()
    critic = FakeCritic(judge=_scene_two_always_fails)
    pipeline = make_pipeline(scenes, style, test_settings, image=image, video=video, critic=critic)

    store = ProjectStore(session_maker)
    writer = SnapshotWriter(pipeline, store)
    task = asyncio.create_task(writer.run())

    status = await pipeline.start()

    assert status == "paused"
    assert pipeline.intervention_scene_index == 2
    assert [s.overall_status for s in pipeline.scenes] == [
        "complete",
        "complete",
        "image_failed_retries",
        "pending",
        "pending",
    ]
    failed = pipeline.scenes[2]
    assert failed.state.attempts == 2
    assert failed.image_data.status == "user_intervention_needed"
    assert [r.attempt for r in failed.validation_log] == [1, 2]
    assert failed.current_image_prompt.count("IMPORTANT CORRECTIONS: show the lighthouse beam") == 2
    # 0, 1 各一次 + 场景 2 两次
    assert image.count == 4
    assert video.count == 2

    # 人工放行后从中断处继续
    pipeline.force_approve(failed.id)
    status = await pipeline.start()

    assert status == "complete"
    assert [s.overall_status for s in pipeline.scenes] == ["complete"] * 5
    assert image.count == 6
    assert video.count == 5
    # 放行不产生新的评审记录
    assert len(pipeline.scenes[2].validation_log) == 2

    pipeline.bus.close()
    await task

    loaded = await store.load(pipeline.project_id)
    assert loaded is not None
    assert [s.overall_status for s in loaded.scenes] == ["complete"] * 5
    assert loaded.scenes[2].image_data.data == b"img-4"
    assert loaded.scenes[4].video_data.handle_or_uri == "http://video.test/5.mp4"
