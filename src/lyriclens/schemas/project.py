"""Project document schema: characters, scene segments and the workflow state.

The JSON bundle keeps the camelCase keys used by the original studio
(``rawText``, ``sectionTitle``, ``cameraWork``...). Python code works with the
snake_case attribute names; ``model_dump(by_alias=True)`` produces the bundle
layout.
"""

from enum import Enum
from typing import Dict, FrozenSet, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


SCHEMA_VERSION = "1.1.0"
MAX_CHARACTER_IMAGES = 5


class WorkflowTransitionError(Exception):
    """Raised when a workflow step change is not allowed from the current step."""

    def __init__(self, current: "WorkflowStep", target: "WorkflowStep"):
        self.current = current
        self.target = target
        super().__init__(f"Cannot move from {current.value} to {target.value}")


class WorkflowStep(str, Enum):
    """Position of the project in the authoring workflow."""
    PASTE_LYRICS = "PASTE_LYRICS"
    DEFINE_SCENES = "DEFINE_SCENES"
    PRODUCTION = "PRODUCTION"
    RESOURCES = "RESOURCES"
    PRESENTATION = "PRESENTATION"

    def allowed_targets(self) -> FrozenSet["WorkflowStep"]:
        return _TRANSITIONS[self]

    def can_transition_to(self, target: "WorkflowStep") -> bool:
        return target in _TRANSITIONS[self]

    def transition_to(self, target: "WorkflowStep") -> "WorkflowStep":
        """Return ``target`` if the move is legal, raise otherwise."""
        if not self.can_transition_to(target):
            raise WorkflowTransitionError(self, target)
        return target

    def resting_step(self) -> "WorkflowStep":
        """Step a saved project may be restored into.

        Presentation is a modal overlay on top of production, so it is never a
        resting state.
        """
        if self is WorkflowStep.PRESENTATION:
            return WorkflowStep.PRODUCTION
        return self


_TRANSITIONS: Dict[WorkflowStep, FrozenSet[WorkflowStep]] = {
    WorkflowStep.PASTE_LYRICS: frozenset({WorkflowStep.DEFINE_SCENES}),
    WorkflowStep.DEFINE_SCENES: frozenset({
        WorkflowStep.PASTE_LYRICS,
        WorkflowStep.PRODUCTION,
    }),
    WorkflowStep.PRODUCTION: frozenset({
        WorkflowStep.PASTE_LYRICS,
        WorkflowStep.DEFINE_SCENES,
        WorkflowStep.RESOURCES,
    }),
    WorkflowStep.RESOURCES: frozenset({
        WorkflowStep.PASTE_LYRICS,
        WorkflowStep.PRODUCTION,
        WorkflowStep.PRESENTATION,
    }),
    WorkflowStep.PRESENTATION: frozenset({WorkflowStep.PRODUCTION}),
}


class BundleModel(BaseModel):
    """Base model for everything written into the project bundle."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


class Character(BundleModel):
    """A cast member with up to five reference images (newest last)."""

    id: str = Field(..., description="Opaque identifier")
    name: str = Field(..., description="Display name used for mention matching")
    images: List[str] = Field(
        default_factory=list,
        description="Reference images as data URIs, oldest first"
    )

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        """Strip surrounding whitespace and reject empty names."""
        v = v.strip()
        if not v:
            raise ValueError("character name cannot be empty")
        return v

    @field_validator("images")
    @classmethod
    def cap_images(cls, v: List[str]) -> List[str]:
        """Keep only the most recent reference images."""
        return list(v[-MAX_CHARACTER_IMAGES:])

    def with_image(self, data_uri: str) -> "Character":
        images = (self.images + [data_uri])[-MAX_CHARACTER_IMAGES:]
        return self.model_copy(update={"images": images})

    def without_image(self, index: int) -> "Character":
        if not 0 <= index < len(self.images):
            raise IndexError(f"character {self.id} has no image at index {index}")
        images = self.images[:index] + self.images[index + 1:]
        return self.model_copy(update={"images": images})


class SceneSegment(BundleModel):
    """One scene of the storyboard.

    ``lyrics`` is fixed when the segment is created. ``characters`` is derived
    from the descriptive fields and is recomputed whenever the project is saved.
    """

    id: str = Field(..., description="Stable identifier, scene-<n>")
    section_title: str = Field("", description="Human label, AI-suggested or edited")
    lyrics: str = Field(..., description="Source text for this scene")
    visuals: str = ""
    camera_work: str = ""
    lighting_mood: str = ""
    mermaid_diagram: Optional[str] = None
    first_frame: Optional[str] = None
    last_frame: Optional[str] = None
    characters: Optional[List[str]] = None

    @field_validator("id")
    @classmethod
    def validate_id(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("segment id cannot be empty")
        return v

    @property
    def is_populated(self) -> bool:
        return bool(self.visuals or self.camera_work or self.lighting_mood)


class StoryboardProject(BundleModel):
    """Complete project state as persisted in a bundle."""

    raw_text: str = Field(..., description="Lyrics or script as pasted")
    narrative_seed: str = ""
    scene_markers: List[int] = Field(
        default_factory=list,
        description="Line indices that start a new scene"
    )
    segments: List[SceneSegment] = Field(default_factory=list)
    characters: List[Character] = Field(default_factory=list)
    step: WorkflowStep = WorkflowStep.PASTE_LYRICS
    version: str = SCHEMA_VERSION

    @field_validator("scene_markers")
    @classmethod
    def normalize_markers(cls, v: List[int]) -> List[int]:
        """Markers form a strictly increasing set of positive indices."""
        return sorted({marker for marker in v if marker > 0})

    @field_validator("segments")
    @classmethod
    def validate_segment_id_uniqueness(cls, v: List[SceneSegment]) -> List[SceneSegment]:
        ids = [segment.id for segment in v]
        if len(ids) != len(set(ids)):
            duplicates = {sid for sid in ids if ids.count(sid) > 1}
            raise ValueError(f"Duplicate segment ids found: {duplicates}")
        return v

    def character_by_id(self, character_id: str) -> Character:
        for character in self.characters:
            if character.id == character_id:
                return character
        raise KeyError(character_id)
