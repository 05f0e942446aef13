"""Frame Populator Agent: opening and climactic frames for one scene.

Both frames are requested concurrently with the same conditioning images and
either both are returned or a single error describes the pair's failure.
"""

import asyncio
import logging
from typing import List, Sequence

from lyriclens.agents.base import (
    FRAME_GENERATION_FAILED,
    INVALID_INPUT,
    INVALID_REFERENCE_IMAGES,
    QUOTA_EXHAUSTED,
    Agent,
    AgentExecutionError,
    AgentInput,
    RetryPolicy,
    classify_remote_error,
)
from lyriclens.agents.frame_generator import FrameGeneratorAgent, FrameRequest
from lyriclens.agents.images import DecodedImage, parse_data_uri, validate_reference_image
from lyriclens.agents.mentions import find_loose_mentions
from lyriclens.schemas.generation import FrameKind, FramePair
from lyriclens.schemas.project import Character, SceneSegment

logger = logging.getLogger(__name__)


REFERENCES_PER_CHARACTER = 2

USER_MESSAGES = {
    QUOTA_EXHAUSTED: "Image generation is rate limited right now. Please try again shortly.",
    INVALID_REFERENCE_IMAGES: "Frame generation failed. Please check your reference images.",
    FRAME_GENERATION_FAILED: "Frame generation failed. Please try again shortly.",
}

# Most actionable failure wins when the two frames fail differently
_ERROR_PRIORITY = (QUOTA_EXHAUSTED, INVALID_REFERENCE_IMAGES, FRAME_GENERATION_FAILED)


class FramePopulatorInput(AgentInput):
    """Input for the Frame Populator Agent"""

    def __init__(
        self,
        segment: SceneSegment,
        characters: Sequence[Character] = (),
        narrative_seed: str = ""
    ):
        self.segment = segment
        self.characters = list(characters)
        self.narrative_seed = narrative_seed


def collect_reference_images(segment: SceneSegment, roster: Sequence[Character]) -> List[DecodedImage]:
    """Up to the first two reference images of every loosely mentioned character.

    Raises:
        AgentExecutionError: INVALID_REFERENCE_IMAGES if a selected image cannot be read
    """
    references: List[DecodedImage] = []
    for character in find_loose_mentions(segment, roster):
        for data_uri in character.images[:REFERENCES_PER_CHARACTER]:
            try:
                references.append(parse_data_uri(validate_reference_image(data_uri)))
            except AgentExecutionError as e:
                raise AgentExecutionError(
                    INVALID_REFERENCE_IMAGES,
                    USER_MESSAGES[INVALID_REFERENCE_IMAGES],
                    {"character": character.name, "detail": e.message}
                ) from e
    return references


class FramePopulatorAgent(Agent):
    """Agent that produces a FramePair for exactly one scene.

    Never applies anything itself: the caller receives either a complete pair
    or one AgentExecutionError carrying a user-facing message.
    """

    def __init__(self, generator: FrameGeneratorAgent):
        self.generator = generator

    async def execute(self, input_data: AgentInput) -> FramePair:
        if not self.validate_input(input_data):
            raise AgentExecutionError(
                INVALID_INPUT,
                "Input must be a FramePopulatorInput with a populated segment",
                {"input_type": type(input_data).__name__}
            )

        segment = input_data.segment
        references = collect_reference_images(segment, input_data.characters)
        logger.info(f"Generating frames for {segment.id} with {len(references)} reference image(s)")

        requests = [
            FrameRequest(segment, kind, input_data.narrative_seed, references)
            for kind in (FrameKind.FIRST, FrameKind.LAST)
        ]
        results = await asyncio.gather(
            *(self.generator.execute(request) for request in requests),
            return_exceptions=True,
        )

        errors = [
            classify_remote_error(result, FRAME_GENERATION_FAILED, {"scene_id": segment.id})
            for result in results if isinstance(result, Exception)
        ]
        if errors:
            raise self._pair_error(segment, errors)

        first_frame, last_frame = results
        return FramePair(first_frame=first_frame, last_frame=last_frame)

    def _pair_error(self, segment: SceneSegment, errors: List[AgentExecutionError]) -> AgentExecutionError:
        codes = {error.error_code for error in errors}
        code = next((c for c in _ERROR_PRIORITY if c in codes), FRAME_GENERATION_FAILED)
        return AgentExecutionError(
            code,
            USER_MESSAGES[code],
            {
                "scene_id": segment.id,
                "failed_frames": len(errors),
                "details": [error.message for error in errors],
            }
        )

    def validate_input(self, input_data: AgentInput) -> bool:
        return (
            isinstance(input_data, FramePopulatorInput)
            and isinstance(input_data.segment, SceneSegment)
            and input_data.segment.is_populated
        )

    def get_retry_policy(self) -> RetryPolicy:
        # Retries are user-initiated per scene
        return RetryPolicy(max_attempts=1)
