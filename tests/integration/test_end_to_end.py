"""Integration tests for the storyboard studio.

Tests a full session against mocked OpenAI and Anthropic clients:
- Paste lyrics, define scenes and draft the storyboard
- Draft diagrams and generate conditioned frame pairs
- Partial failure with a quota warning
- Save, reload into a fresh session and export the PDF
"""

import asyncio
import json
from types import SimpleNamespace
from unittest.mock import AsyncMock, Mock

import fitz
import pytest

from lyriclens.agents.base import FRAME_GENERATION_FAILED, AgentExecutionError
from lyriclens.orchestrator.logger import StructuredJSONLogger
from lyriclens.orchestrator.pipeline import ServiceClients, StoryboardStudio, StudioConfig
from lyriclens.schemas.project import WorkflowStep


LYRICS = """Streetlights flicker on the avenue
Mia counts the minutes

Thunder in the distance
Leo runs to catch the train
Final chorus rising
"""


class RateLimited(Exception):
    status_code = 429


def chat_reply(lyrics):
    first_line = lyrics.split("\n")[0]
    return json.dumps({
        "visuals": f"Mia and Leo: {first_line}",
        "cameraWork": "Handheld tracking shot",
        "lightingMood": "Wet neon reflections",
        "sectionTitle": f"Scene for {first_line}",
    })


def make_openai(fail_on=None):
    """OpenAI client whose chat replies echo the lyrics and whose images are fixed."""
    client = Mock()

    async def create(**kwargs):
        prompt = kwargs["messages"][-1]["content"]
        if fail_on and fail_on in prompt:
            raise RateLimited("429 Too Many Requests")
        lyrics = prompt.split("SEGMENT LYRICS: ", 1)[1]
        message = SimpleNamespace(content=chat_reply(lyrics))
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])

    image = SimpleNamespace(data=[SimpleNamespace(b64_json=None)])
    client.chat.completions.create = AsyncMock(side_effect=create)
    client.images.generate = AsyncMock(return_value=image)
    client.images.edit = AsyncMock(return_value=image)
    client.close = AsyncMock()
    return client


def make_anthropic():
    client = Mock()
    message = SimpleNamespace(content=[SimpleNamespace(type="text", text="graph TD\nA[Mia] --> B[Leo]")])
    client.messages.create = AsyncMock(return_value=message)
    client.close = AsyncMock()
    return client


async def no_sleep(delay):
    return None


@pytest.fixture
def png_b64(png_data_uri):
    return png_data_uri.split(",", 1)[1]


@pytest.fixture
def session(tmp_path, png_b64):
    openai_client = make_openai()
    image = SimpleNamespace(data=[SimpleNamespace(b64_json=png_b64)])
    openai_client.images.generate.return_value = image
    openai_client.images.edit.return_value = image
    clients = ServiceClients(openai_client, make_anthropic())
    structured_logger = StructuredJSONLogger(log_directory=str(tmp_path / "logs"))
    studio = StoryboardStudio(
        clients,
        StudioConfig(output_dir=str(tmp_path / "out"), max_concurrent_requests=2),
        structured_logger=structured_logger,
        sleep=no_sleep,
    )
    yield studio, clients
    studio.close()


class TestEndToEnd:
    """Full authoring sessions."""

    def test_full_session(self, session, tmp_path, png_data_uri):
        studio, clients = session

        studio.set_raw_text(LYRICS)
        studio.set_narrative_seed("One rainy night, two strangers")
        assert studio.toggle_marker(2) == [2]
        assert studio.toggle_marker(4) == [2, 4]
        studio.start_defining()
        mia = studio.add_character("Mia")
        studio.add_reference_image(mia.id, png_data_uri)

        report = asyncio.run(studio.draft_storyboard())

        assert report.successful_scenes == 3
        assert [s.lyrics.split("\n")[0] for s in studio.segments] == [
            "Streetlights flicker on the avenue",
            "Thunder in the distance",
            "Final chorus rising",
        ]
        assert all(s.is_populated for s in studio.segments)
        assert clients.openai.chat.completions.create.await_count == 3

        for segment in studio.segments:
            asyncio.run(studio.generate_diagram(segment.id))
        assert studio.segments[0].mermaid_diagram == 'graph TD\nA[Mia] --> B[Leo]'

        asyncio.run(studio.generate_frames("scene-1"))
        assert studio.segments[1].first_frame.startswith("data:image/png;base64,")
        assert clients.openai.images.edit.await_count == 2
        clients.openai.images.generate.assert_not_called()

        studio.go_to(WorkflowStep.RESOURCES)
        studio.go_to(WorkflowStep.PRESENTATION)
        assert studio.active_characters("scene-1") == {"Mia"}

        bundle = studio.save()
        document = json.loads(bundle.read_text(encoding="utf-8"))
        assert document["step"] == "PRESENTATION"
        assert document["segments"][0]["characters"] == ["Mia"]

        restored = StoryboardStudio(
            config=StudioConfig(output_dir=str(tmp_path / "out")),
            structured_logger=studio.structured_logger,
        )
        restored.load(str(bundle))
        assert restored.step == WorkflowStep.PRODUCTION
        assert [s.model_dump(exclude={"characters"}) for s in restored.segments] == [
            s.model_dump(exclude={"characters"}) for s in studio.segments
        ]
        assert restored.segments[1].characters == ["Mia"]
        assert restored.characters == studio.characters

        pdf_path = restored.export_pdf(str(tmp_path / "out" / "storyboard.pdf"))
        with fitz.open(str(pdf_path)) as doc:
            assert doc.page_count == 4
            assert "Scene for Thunder in the distance" in doc[2].get_text()
            assert doc[2].get_images()

    def test_quota_failure_is_isolated(self, tmp_path):
        clients = ServiceClients(make_openai(fail_on="Thunder in the distance"), make_anthropic())
        studio = StoryboardStudio(
            clients,
            StudioConfig(output_dir=str(tmp_path), quota_max_attempts=2, quota_base_delay_seconds=0.01),
            structured_logger=StructuredJSONLogger(log_directory=str(tmp_path)),
            sleep=no_sleep,
        )
        try:
            studio.set_raw_text(LYRICS)
            studio.toggle_marker(2)
            studio.start_defining()

            report = asyncio.run(studio.draft_storyboard())

            assert report.successful_scenes == 1
            assert report.failed_scenes[0].scene_id == "scene-1"
            assert studio.warning is not None
            assert studio.segments[0].is_populated
            assert not studio.segments[1].is_populated
            # one initial call per scene plus one quota retry
            assert clients.openai.chat.completions.create.await_count == 3
        finally:
            studio.close()

        events = [json.loads(line) for line in (tmp_path / "studio.log").read_text().splitlines()]
        assert any(e["event"] == "quota_warning" for e in events)

    def test_missing_image_fails_frame_pair(self, tmp_path):
        clients = ServiceClients(make_openai(), make_anthropic())
        studio = StoryboardStudio(
            clients,
            StudioConfig(output_dir=str(tmp_path)),
            structured_logger=StructuredJSONLogger(),
            sleep=no_sleep,
        )
        studio.set_raw_text(LYRICS)
        studio.start_defining()
        asyncio.run(studio.draft_storyboard())

        with pytest.raises(AgentExecutionError) as exc_info:
            asyncio.run(studio.generate_frames("scene-0"))

        assert exc_info.value.error_code == FRAME_GENERATION_FAILED
        assert exc_info.value.message.startswith("Frame generation failed")
        assert studio.segments[0].first_frame is None
        studio.close()
