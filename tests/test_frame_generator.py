"""Unit tests for the Frame Generator Agent."""

import asyncio
from types import SimpleNamespace
from unittest.mock import AsyncMock, Mock

import pytest

from lyriclens.agents.base import (
    FRAME_GENERATION_FAILED,
    INVALID_REFERENCE_IMAGES,
    QUOTA_EXHAUSTED,
    AgentExecutionError,
)
from lyriclens.agents.frame_generator import FRAME_SIZE, FrameGeneratorAgent, FrameRequest
from lyriclens.agents.images import DecodedImage
from lyriclens.schemas.generation import FrameKind
from lyriclens.schemas.project import SceneSegment


SEGMENT = SceneSegment(
    id="scene-1",
    lyrics="x",
    visuals="Mia on a rooftop",
    camera_work="slow orbit",
    lighting_mood="golden hour",
)
REFERENCE = DecodedImage(mime_type="image/png", data=b"\x89PNG...")


def image_response(b64="QUJD"):
    return SimpleNamespace(data=[SimpleNamespace(b64_json=b64)])


def make_client(response=None, side_effect=None):
    client = Mock()
    client.images.generate = AsyncMock(return_value=response or image_response(), side_effect=side_effect)
    client.images.edit = AsyncMock(return_value=response or image_response(), side_effect=side_effect)
    return client


class BadRequest(Exception):
    status_code = 400


class TestFrameGenerator:
    """Test single-frame requests."""

    def test_generate_without_references(self):
        client = make_client()
        agent = FrameGeneratorAgent(client)

        uri = asyncio.run(agent.execute(FrameRequest(SEGMENT, FrameKind.FIRST, "noir")))

        assert uri == "data:image/png;base64,QUJD"
        client.images.edit.assert_not_called()
        kwargs = client.images.generate.call_args.kwargs
        assert kwargs["size"] == FRAME_SIZE
        assert "Capture the starting moment." in kwargs["prompt"]
        assert "NARRATIVE DIRECTION: noir" in kwargs["prompt"]

    def test_edit_with_references(self):
        client = make_client()
        agent = FrameGeneratorAgent(client)

        asyncio.run(agent.execute(FrameRequest(SEGMENT, FrameKind.LAST, "", [REFERENCE, REFERENCE])))

        client.images.generate.assert_not_called()
        kwargs = client.images.edit.call_args.kwargs
        assert kwargs["image"] == [
            ("reference-0.png", REFERENCE.data, "image/png"),
            ("reference-1.png", REFERENCE.data, "image/png"),
        ]
        assert "Capture the peak of motion." in kwargs["prompt"]
        assert "character references" in kwargs["prompt"]

    def test_no_image_in_response(self):
        agent = FrameGeneratorAgent(make_client(SimpleNamespace(data=[])))

        with pytest.raises(AgentExecutionError) as exc_info:
            asyncio.run(agent.execute(FrameRequest(SEGMENT, FrameKind.FIRST)))

        assert exc_info.value.error_code == FRAME_GENERATION_FAILED
        assert exc_info.value.message == "No image generated"

    def test_quota(self):
        agent = FrameGeneratorAgent(make_client(side_effect=Exception("Error code: 429")))

        with pytest.raises(AgentExecutionError) as exc_info:
            asyncio.run(agent.execute(FrameRequest(SEGMENT, FrameKind.FIRST)))

        assert exc_info.value.error_code == QUOTA_EXHAUSTED

    def test_rejected_references(self):
        agent = FrameGeneratorAgent(make_client(side_effect=BadRequest("Invalid image file")))

        with pytest.raises(AgentExecutionError) as exc_info:
            asyncio.run(agent.execute(FrameRequest(SEGMENT, FrameKind.FIRST, "", [REFERENCE])))

        assert exc_info.value.error_code == INVALID_REFERENCE_IMAGES

    def test_bad_request_without_references_is_generic(self):
        agent = FrameGeneratorAgent(make_client(side_effect=BadRequest("prompt rejected")))

        with pytest.raises(AgentExecutionError) as exc_info:
            asyncio.run(agent.execute(FrameRequest(SEGMENT, FrameKind.FIRST)))

        assert exc_info.value.error_code == FRAME_GENERATION_FAILED

    def test_prompt_omits_reference_line_without_images(self):
        prompt = FrameGeneratorAgent(Mock()).build_prompt(FrameRequest(SEGMENT, FrameKind.FIRST))
        assert "character references" not in prompt
        assert "SCENE DESCRIPTION: Mia on a rooftop" in prompt
        assert prompt.endswith("Style: Photorealistic, cinematic 35mm film.")
