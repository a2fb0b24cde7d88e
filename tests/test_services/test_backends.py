from __future__ import annotations

from scenereel.agents.critic import CriticAgent
from scenereel.services.backends import CriticBackend, ImageBackend, VideoBackend, create_backends
from scenereel.services.image import ImageService
from scenereel.services.video import VideoService
from tests.agent_fixtures import FakeCritic, FakeImageBackend, FakeVideoBackend


def test_create_backends_uses_default_services(test_settings):
    backends = create_backends(test_settings)

    assert isinstance(backends.image, ImageService)
    assert isinstance(backends.video, VideoService)
    assert isinstance(backends.critic, CriticAgent)
    assert backends.critic.llm.settings is test_settings


def test_fakes_satisfy_backend_protocols():
    assert isinstance(FakeImageBackend(), ImageBackend)
    assert isinstance(FakeVideoBackend(), VideoBackend)
    assert isinstance(FakeCritic(), CriticBackend)
