"""Schemas exchanged with the generation collaborators and populators."""

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class SceneContent(BaseModel):
    """Fields returned by the content-generation collaborator for one scene."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    visuals: str = Field(..., description="Action happening in the scene")
    camera_work: str = Field(..., description="Camera movement and angles")
    lighting_mood: str = Field(..., description="Lighting style and color palette")
    section_title: str = Field(..., description="Logical name, e.g. Verse 1")

    @field_validator("visuals", "camera_work", "lighting_mood", "section_title")
    @classmethod
    def strip_text(cls, v: str) -> str:
        return v.strip()


class FrameKind(str, Enum):
    """Which moment of a scene a reference frame depicts."""
    FIRST = "FIRST"
    LAST = "LAST"

    @property
    def instruction(self) -> str:
        if self is FrameKind.FIRST:
            return "Capture the starting moment."
        return "Capture the peak of motion."


class FramePair(BaseModel):
    """Opening and climactic reference frames for one scene, as data URIs."""

    first_frame: str
    last_frame: str


class FailedScene(BaseModel):
    """Scene that could not be populated."""

    scene_id: str
    error_code: str
    error: str


class PopulationReport(BaseModel):
    """Outcome of one populate batch."""

    total_scenes: int = Field(..., ge=0)
    successful_scenes: int = Field(..., ge=0)
    failed_scenes: List[FailedScene] = Field(default_factory=list)
    quota_warning: Optional[str] = Field(
        None,
        description="Single user-facing message when any request hit a quota limit"
    )

    @property
    def success_rate(self) -> float:
        if self.total_scenes == 0:
            return 1.0
        return self.successful_scenes / self.total_scenes
