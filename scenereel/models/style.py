"""Style specification ("Visual Bible") shared read-only by every scene of a run."""
from __future__ import annotations

from datetime import datetime
from typing import Literal
from uuid import uuid4

from pydantic import Field

from scenereel.models.base import DomainModel, utcnow

GranularityLevel = Literal["Detailed Paragraph", "Sentence by Sentence", "Key Beats"]
CharacterRole = Literal["protagonist", "antagonist", "supporting", "tertiary"]


class TurnaroundView(DomainModel):
    image: bytes
    # 生成后端返回的不透明连续性令牌，后续编辑同一主体时原样带回
    thought_signature: str | None = None


class CharacterTurnaround(DomainModel):
    """四视图角色设定（正/左/右/背）"""

    front: TurnaroundView | None = None
    side_left: TurnaroundView | None = None
    side_right: TurnaroundView | None = None
    back: TurnaroundView | None = None
    status: Literal["idle", "generating", "complete", "error"] = "idle"


class CharacterAppearance(DomainModel):
    hair: str = ""
    eyes: str = ""
    build: str = ""
    attire: str = ""
    distinguishing_marks: str = ""
    visual_references: list[bytes] = Field(default_factory=list)


class CharacterProfile(DomainModel):
    name: str
    description: str = ""
    role_in_narrative: CharacterRole = "supporting"
    key_features: list[str] = Field(default_factory=list)
    emotional_arc: str = ""
    appearance: CharacterAppearance = Field(default_factory=CharacterAppearance)
    turnaround: CharacterTurnaround | None = None


class SettingProfile(DomainModel):
    name: str
    location_description: str = ""
    time_period: str = ""
    atmosphere: str = ""
    key_visual_elements: list[str] = Field(default_factory=list)
    prop_library: dict[str, str] = Field(default_factory=dict)


class PropItem(DomainModel):
    name: str
    description: str = ""
    significance: str = ""
    associated_characters: list[str] = Field(default_factory=list)


class KeyMotif(DomainModel):
    description: str
    visual_examples: list[str] = Field(default_factory=list)


class Cinematography(DomainModel):
    overall_style: str = ""
    lens_type: str = ""
    film_grain: str = ""
    lighting_style: str = ""
    camera_movement: str = ""
    camera_angles: str = ""


class ColorPalette(DomainModel):
    mood: str = ""
    hex_codes: list[str] = Field(default_factory=list)
    description: str = ""


class ValidationStrides(DomainModel):
    """各评审视野额外触发的间隔（以场景数计）"""

    short: int = Field(default=4, ge=1)
    medium: int = Field(default=12, ge=1)
    long: int = Field(default=24, ge=1)


class StyleSpecification(DomainModel):
    id: str = Field(default_factory=lambda: uuid4().hex)
    name: str = "Untitled"
    creation_timestamp: datetime = Field(default_factory=utcnow)
    last_updated_timestamp: datetime = Field(default_factory=utcnow)

    narrative_themes: list[str] = Field(default_factory=list)
    key_motifs: list[KeyMotif] = Field(default_factory=list)
    characters: dict[str, CharacterProfile] = Field(default_factory=dict)
    settings: dict[str, SettingProfile] = Field(default_factory=dict)
    props: dict[str, PropItem] = Field(default_factory=dict)
    cinematography: Cinematography = Field(default_factory=Cinematography)
    color_palette: ColorPalette = Field(default_factory=ColorPalette)

    # 只影响上游的场景拆分，流水线本身不读取
    granularity_level: GranularityLevel = "Detailed Paragraph"

    validation_strides: ValidationStrides = Field(default_factory=ValidationStrides)
    max_image_retries: int = Field(default=3, ge=1)
    video_generation_delay_seconds: float = Field(default=0.0, ge=0.0)
    target_output_aspect_ratio: str = "16:9"
