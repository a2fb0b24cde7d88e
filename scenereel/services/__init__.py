from .image import ImageResult, ImageService
from .llm import LLMService
from .project_store import ProjectStore
from .video import VideoResult, VideoService

__all__ = ["ImageResult", "ImageService", "LLMService", "ProjectStore", "VideoResult", "VideoService"]
