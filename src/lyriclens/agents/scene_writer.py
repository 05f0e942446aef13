"""Scene Writer Agent: drafts visual direction for one lyric segment.

This is the content-generation collaborator. Given a segment's lyrics, the
shared context label, the narrative seed and the cast, it asks a chat model for
visuals, camera work, lighting mood and a section title as a JSON object.
"""

import json
import logging
from typing import List, Sequence

import openai
from pydantic import ValidationError

from lyriclens.agents.base import (
    GENERATION_FAILED,
    INVALID_INPUT,
    INVALID_JSON,
    QUOTA_EXHAUSTED,
    Agent,
    AgentExecutionError,
    AgentInput,
    BackoffStrategy,
    RetryPolicy,
    classify_remote_error,
)
from lyriclens.schemas.generation import SceneContent
from lyriclens.schemas.project import Character

logger = logging.getLogger(__name__)


DEFAULT_CONTEXT_LABEL = "Musical Video Storyboard"
DEFAULT_SEED = "Cinematic and faithful to the lyrics"

SYSTEM_PROMPT = (
    "You are a music video director writing a pre-production storyboard. "
    "Reply with a single JSON object with the string keys "
    "\"visuals\", \"cameraWork\", \"lightingMood\" and \"sectionTitle\"."
)


class SceneWriterInput(AgentInput):
    """Input for the Scene Writer Agent"""

    def __init__(
        self,
        lyrics: str,
        context_label: str = DEFAULT_CONTEXT_LABEL,
        narrative_seed: str = "",
        characters: Sequence[Character] = ()
    ):
        self.lyrics = lyrics
        self.context_label = context_label
        self.narrative_seed = narrative_seed
        self.characters: List[Character] = list(characters)


class SceneWriterAgent(Agent):
    """Agent that turns one segment's lyrics into scene direction.

    The OpenAI client is injected; the agent never reads credentials itself.
    Rate-limit failures come back as QUOTA_EXHAUSTED so the populator can back
    off; malformed replies are INVALID_JSON.
    """

    DEFAULT_MODEL = "gpt-4o-mini"

    def __init__(self, client: openai.AsyncOpenAI, model: str = DEFAULT_MODEL, temperature: float = 0.7):
        self.client = client
        self.model = model
        self.temperature = temperature

    async def execute(self, input_data: AgentInput) -> SceneContent:
        if not self.validate_input(input_data):
            raise AgentExecutionError(
                error_code=INVALID_INPUT,
                message="Input must be a SceneWriterInput with non-empty lyrics",
                context={"input_type": type(input_data).__name__}
            )

        prompt = self.build_prompt(input_data)

        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {"role": "user", "content": prompt},
                ],
                response_format={"type": "json_object"},
                temperature=self.temperature,
            )
        except Exception as e:
            error = classify_remote_error(e, GENERATION_FAILED)
            logger.warning(f"Scene content request failed [{error.error_code}]: {error.message}")
            raise error from e

        text = response.choices[0].message.content if response.choices else None
        return self.parse_response(text)

    def build_prompt(self, input_data: SceneWriterInput) -> str:
        seed = input_data.narrative_seed or DEFAULT_SEED
        lines = [
            "As a video director, provide visual instructions for this specific song segment.",
            "",
            f"NARRATIVE ANGLE/DIRECTION: {seed}",
        ]
        if input_data.characters:
            names = ", ".join(c.name for c in input_data.characters)
            lines.append(f"CHARACTERS IN STORY: {names}. Use character names in the visuals where they appear.")
        lines += [
            "",
            f"CONTEXT: {input_data.context_label}",
            f"SEGMENT LYRICS: {input_data.lyrics}",
            "",
            "visuals: action happening in the scene.",
            "cameraWork: camera movement and angles.",
            "lightingMood: lighting style and color palette.",
            "sectionTitle: logical name such as Verse 1 or Chorus.",
        ]
        return "\n".join(lines)

    @staticmethod
    def parse_response(text: str) -> SceneContent:
        """Parse the model's JSON reply into SceneContent.

        Raises:
            AgentExecutionError: INVALID_JSON for empty, non-JSON or incomplete replies
        """
        if not text or not text.strip():
            raise AgentExecutionError(INVALID_JSON, "No response from AI")
        try:
            data = json.loads(text.strip())
            return SceneContent.model_validate(data)
        except (json.JSONDecodeError, ValidationError) as e:
            raise AgentExecutionError(
                INVALID_JSON,
                f"Scene content reply did not match the expected schema: {e}",
                {"response_preview": text[:200]}
            )

    def validate_input(self, input_data: AgentInput) -> bool:
        return (
            isinstance(input_data, SceneWriterInput)
            and isinstance(input_data.lyrics, str)
            and bool(input_data.lyrics.strip())
        )

    def get_retry_policy(self) -> RetryPolicy:
        """Quota exhaustion is retried with exponential backoff; nothing else is."""
        return RetryPolicy(
            max_attempts=3,
            backoff_strategy=BackoffStrategy.EXPONENTIAL,
            base_delay_seconds=2.0,
            max_delay_seconds=30.0,
            retryable_errors=[QUOTA_EXHAUSTED]
        )
