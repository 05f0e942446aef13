"""Frame Generator Agent: one cinematic reference frame for one scene.

Character reference images, when present, are sent to the image edit endpoint
as conditioning inputs; otherwise a plain generation request is made. The
result is always returned as a PNG data URI.
"""

import logging
from typing import List, Sequence

import openai

from lyriclens.agents.base import (
    FRAME_GENERATION_FAILED,
    INVALID_INPUT,
    INVALID_REFERENCE_IMAGES,
    Agent,
    AgentExecutionError,
    AgentInput,
    RetryPolicy,
    classify_remote_error,
)
from lyriclens.agents.images import DecodedImage
from lyriclens.schemas.generation import FrameKind
from lyriclens.schemas.project import SceneSegment

logger = logging.getLogger(__name__)


FRAME_SIZE = "1536x1024"
STYLE_LINE = "Style: Photorealistic, cinematic 35mm film."
REFERENCE_LINE = (
    "The provided images are character references. "
    "Ensure characters match these references exactly."
)


class FrameRequest(AgentInput):
    """Input for the Frame Generator Agent

    Attributes:
        segment: Populated scene to depict
        kind: Which moment of the scene to capture
        narrative_seed: Project-wide narrative direction
        reference_images: Decoded conditioning images, already validated
    """

    def __init__(
        self,
        segment: SceneSegment,
        kind: FrameKind,
        narrative_seed: str = "",
        reference_images: Sequence[DecodedImage] = ()
    ):
        self.segment = segment
        self.kind = kind
        self.narrative_seed = narrative_seed
        self.reference_images: List[DecodedImage] = list(reference_images)


class FrameGeneratorAgent(Agent):
    """Agent that asks the image collaborator for a single frame."""

    DEFAULT_MODEL = "gpt-image-1"

    def __init__(self, client: openai.AsyncOpenAI, model: str = DEFAULT_MODEL):
        self.client = client
        self.model = model

    async def execute(self, input_data: AgentInput) -> str:
        if not self.validate_input(input_data):
            raise AgentExecutionError(
                INVALID_INPUT,
                "Input must be a FrameRequest",
                {"input_type": type(input_data).__name__}
            )

        prompt = self.build_prompt(input_data)
        context = {"scene_id": input_data.segment.id, "kind": input_data.kind.value}

        try:
            if input_data.reference_images:
                files = [
                    (f"reference-{i}.{image.extension}", image.data, image.mime_type)
                    for i, image in enumerate(input_data.reference_images)
                ]
                response = await self.client.images.edit(
                    model=self.model,
                    image=files,
                    prompt=prompt,
                    size=FRAME_SIZE,
                )
            else:
                response = await self.client.images.generate(
                    model=self.model,
                    prompt=prompt,
                    size=FRAME_SIZE,
                    n=1,
                )
        except Exception as e:
            fallback = FRAME_GENERATION_FAILED
            # The edit endpoint rejects unusable conditioning images with a 400
            if input_data.reference_images and getattr(e, "status_code", None) == 400:
                fallback = INVALID_REFERENCE_IMAGES
            error = classify_remote_error(e, fallback, context)
            logger.warning(
                f"{input_data.kind.value} frame for {input_data.segment.id} failed "
                f"[{error.error_code}]: {error.message}"
            )
            raise error from e

        for image in response.data or []:
            if getattr(image, "b64_json", None):
                return f"data:image/png;base64,{image.b64_json}"

        raise AgentExecutionError(FRAME_GENERATION_FAILED, "No image generated", context)

    def build_prompt(self, request: FrameRequest) -> str:
        segment = request.segment
        lines = [
            f"Generate a high-quality cinematic {request.kind.value} FRAME for a music video scene.",
            f"SCENE DESCRIPTION: {segment.visuals}",
            f"CAMERA WORK: {segment.camera_work}",
            f"LIGHTING & MOOD: {segment.lighting_mood}",
            f"NARRATIVE DIRECTION: {request.narrative_seed}",
            "",
        ]
        if request.reference_images:
            lines.append(REFERENCE_LINE)
        lines += [request.kind.instruction, "", STYLE_LINE]
        return "\n".join(lines)

    def validate_input(self, input_data: AgentInput) -> bool:
        return (
            isinstance(input_data, FrameRequest)
            and isinstance(input_data.segment, SceneSegment)
            and isinstance(input_data.kind, FrameKind)
        )

    def get_retry_policy(self) -> RetryPolicy:
        return RetryPolicy(max_attempts=1)
