from scenereel.agents.orchestrator import PipelineStatus, ProductionPipeline, create_pipeline
from scenereel.models.project import ProjectState
from scenereel.models.scene import SceneUnit
from scenereel.models.style import StyleSpecification

__version__ = "0.1.0"

__all__ = [
    "PipelineStatus",
    "ProductionPipeline",
    "ProjectState",
    "SceneUnit",
    "StyleSpecification",
    "create_pipeline",
]
