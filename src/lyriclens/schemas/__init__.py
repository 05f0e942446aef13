"""Pydantic schemas for the project bundle and generation results."""

from lyriclens.schemas.generation import (
    FailedScene,
    FrameKind,
    FramePair,
    PopulationReport,
    SceneContent,
)
from lyriclens.schemas.project import (
    MAX_CHARACTER_IMAGES,
    SCHEMA_VERSION,
    Character,
    SceneSegment,
    StoryboardProject,
    WorkflowStep,
    WorkflowTransitionError,
)

__all__ = [
    # Project
    "Character",
    "SceneSegment",
    "StoryboardProject",
    "WorkflowStep",
    "WorkflowTransitionError",
    "SCHEMA_VERSION",
    "MAX_CHARACTER_IMAGES",
    # Generation
    "SceneContent",
    "FrameKind",
    "FramePair",
    "FailedScene",
    "PopulationReport",
]
