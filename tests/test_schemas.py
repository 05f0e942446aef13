"""Unit tests for project and generation schemas."""

import pytest
from pydantic import ValidationError

from lyriclens.schemas import (
    MAX_CHARACTER_IMAGES,
    SCHEMA_VERSION,
    Character,
    FrameKind,
    PopulationReport,
    SceneContent,
    SceneSegment,
    StoryboardProject,
    WorkflowStep,
    WorkflowTransitionError,
)


class TestCharacter:
    """Test Character schema validation."""

    def test_name_is_stripped(self):
        character = Character(id="char-1", name="  Jo  ")
        assert character.name == "Jo"

    def test_empty_name_rejected(self):
        with pytest.raises(ValidationError):
            Character(id="char-1", name="   ")

    def test_sixth_image_keeps_five_most_recent(self):
        character = Character(id="char-1", name="Jo", images=[f"img{i}" for i in range(5)])

        updated = character.with_image("img5")

        assert len(updated.images) == MAX_CHARACTER_IMAGES
        assert updated.images == ["img1", "img2", "img3", "img4", "img5"]
        assert character.images[0] == "img0"

    def test_construction_caps_images(self):
        character = Character(id="char-1", name="Jo", images=[f"img{i}" for i in range(7)])
        assert character.images == ["img2", "img3", "img4", "img5", "img6"]

    def test_without_image(self):
        character = Character(id="char-1", name="Jo", images=["a", "b", "c"])
        assert character.without_image(1).images == ["a", "c"]

    def test_without_image_out_of_range(self):
        character = Character(id="char-1", name="Jo", images=["a"])
        with pytest.raises(IndexError):
            character.without_image(3)

    def test_bundle_aliases(self):
        segment = SceneSegment(id="scene-0", lyrics="x", camera_work="dolly")
        dumped = segment.model_dump(by_alias=True)
        assert dumped["cameraWork"] == "dolly"
        assert "sectionTitle" in dumped
        assert SceneSegment.model_validate({"id": "scene-0", "lyrics": "x", "cameraWork": "pan"}).camera_work == "pan"


class TestSceneSegment:
    """Test SceneSegment schema."""

    def test_transient_fields_ignored(self):
        segment = SceneSegment.model_validate({"id": "scene-0", "lyrics": "x", "isProcessing": True})
        assert "isProcessing" not in segment.model_dump(by_alias=True)

    def test_is_populated(self):
        assert not SceneSegment(id="scene-0", lyrics="x").is_populated
        assert SceneSegment(id="scene-0", lyrics="x", visuals="rain").is_populated

    def test_empty_id_rejected(self):
        with pytest.raises(ValidationError):
            SceneSegment(id=" ", lyrics="x")


class TestStoryboardProject:
    """Test StoryboardProject schema."""

    def test_defaults(self):
        project = StoryboardProject(raw_text="A")
        assert project.segments == []
        assert project.characters == []
        assert project.scene_markers == []
        assert project.step == WorkflowStep.PASTE_LYRICS
        assert project.version == SCHEMA_VERSION

    def test_markers_normalized(self):
        project = StoryboardProject(raw_text="A", scene_markers=[4, 0, 2, 4, -1])
        assert project.scene_markers == [2, 4]

    def test_duplicate_segment_ids_rejected(self):
        with pytest.raises(ValidationError) as exc_info:
            StoryboardProject(
                raw_text="A",
                segments=[
                    SceneSegment(id="scene-0", lyrics="A"),
                    SceneSegment(id="scene-0", lyrics="B"),
                ],
            )
        assert "Duplicate segment ids" in str(exc_info.value)

    def test_character_by_id(self):
        jo = Character(id="char-1", name="Jo")
        project = StoryboardProject(raw_text="A", characters=[jo])
        assert project.character_by_id("char-1") == jo
        with pytest.raises(KeyError):
            project.character_by_id("missing")


class TestWorkflowStep:
    """Test the workflow state machine."""

    @pytest.mark.parametrize("current,target", [
        (WorkflowStep.PASTE_LYRICS, WorkflowStep.DEFINE_SCENES),
        (WorkflowStep.DEFINE_SCENES, WorkflowStep.PRODUCTION),
        (WorkflowStep.PRODUCTION, WorkflowStep.RESOURCES),
        (WorkflowStep.RESOURCES, WorkflowStep.PRESENTATION),
        (WorkflowStep.PRESENTATION, WorkflowStep.PRODUCTION),
        (WorkflowStep.PRODUCTION, WorkflowStep.PASTE_LYRICS),
    ])
    def test_allowed_transitions(self, current, target):
        assert current.transition_to(target) is target

    @pytest.mark.parametrize("current,target", [
        (WorkflowStep.PASTE_LYRICS, WorkflowStep.PRODUCTION),
        (WorkflowStep.PRODUCTION, WorkflowStep.PRESENTATION),
        (WorkflowStep.PRESENTATION, WorkflowStep.RESOURCES),
        (WorkflowStep.DEFINE_SCENES, WorkflowStep.DEFINE_SCENES),
    ])
    def test_illegal_transitions(self, current, target):
        assert not current.can_transition_to(target)
        with pytest.raises(WorkflowTransitionError) as exc_info:
            current.transition_to(target)
        assert exc_info.value.current is current

    def test_presentation_is_not_a_resting_step(self):
        assert WorkflowStep.PRESENTATION.resting_step() is WorkflowStep.PRODUCTION
        assert WorkflowStep.RESOURCES.resting_step() is WorkflowStep.RESOURCES

    def test_presentation_only_reachable_from_resources(self):
        sources = [s for s in WorkflowStep if s.can_transition_to(WorkflowStep.PRESENTATION)]
        assert sources == [WorkflowStep.RESOURCES]


class TestGenerationSchemas:
    """Test generation-side models."""

    def test_scene_content_from_camel_case(self):
        content = SceneContent.model_validate({
            "visuals": " rain ",
            "cameraWork": "crane",
            "lightingMood": "blue",
            "sectionTitle": "Verse 1",
        })
        assert content.visuals == "rain"
        assert content.camera_work == "crane"

    def test_scene_content_requires_all_fields(self):
        with pytest.raises(ValidationError):
            SceneContent.model_validate({"visuals": "rain"})

    def test_frame_kind_instruction(self):
        assert "starting moment" in FrameKind.FIRST.instruction
        assert "peak of motion" in FrameKind.LAST.instruction

    def test_population_report_success_rate(self):
        assert PopulationReport(total_scenes=0, successful_scenes=0).success_rate == 1.0
        assert PopulationReport(total_scenes=4, successful_scenes=3).success_rate == 0.75
