"""Diagram Generator Agent for turning a scene into a Mermaid flowchart.

The agent asks a Claude model for a ``graph TD`` flowchart describing the
cinematic flow of a populated scene, then normalizes the markup so it renders
even when the model wraps it in code fences or forgets to quote labels.
"""

import logging

import anthropic

from lyriclens.agents.base import (
    DIAGRAM_GENERATION_FAILED,
    INVALID_INPUT,
    Agent,
    AgentExecutionError,
    AgentInput,
    RetryPolicy,
    classify_remote_error,
)
from lyriclens.agents.diagram_renderer import normalize_mermaid
from lyriclens.schemas.project import SceneSegment

logger = logging.getLogger(__name__)


DIAGRAM_PROMPT = """Create a Mermaid.js flowchart (graph TD) representing the cinematic flow of the following film scene.

STRICT SYNTAX RULES:
1. Use 'graph TD'.
2. ALL node labels MUST be wrapped in double quotes.
   - CORRECT: A["Character @Name"]
   - INCORRECT: A[Character @Name]
3. Do not use special characters outside of quotes.
4. If a name starts with @, it MUST be inside double quotes.
5. Return only the diagram markup.

SCENE DESCRIPTION: {visuals}
CAMERA: {camera_work}"""


class DiagramGeneratorInput(AgentInput):
    """Input for the Diagram Generator Agent"""

    def __init__(self, segment: SceneSegment):
        self.segment = segment


class DiagramGeneratorAgent(Agent):
    """Agent that drafts diagram markup for one populated scene."""

    DEFAULT_MODEL = "claude-3-5-haiku-latest"
    MAX_TOKENS = 1024

    def __init__(self, client: anthropic.AsyncAnthropic, model: str = DEFAULT_MODEL):
        self.client = client
        self.model = model

    async def execute(self, input_data: AgentInput) -> str:
        if not self.validate_input(input_data):
            raise AgentExecutionError(
                INVALID_INPUT,
                "Diagram generation needs a segment with visuals",
                {"input_type": type(input_data).__name__}
            )

        segment = input_data.segment
        prompt = DIAGRAM_PROMPT.format(
            visuals=segment.visuals,
            camera_work=segment.camera_work,
        )

        try:
            message = await self.client.messages.create(
                model=self.model,
                max_tokens=self.MAX_TOKENS,
                messages=[{"role": "user", "content": prompt}],
            )
        except Exception as e:
            error = classify_remote_error(e, DIAGRAM_GENERATION_FAILED, {"scene_id": segment.id})
            logger.warning(f"Diagram request for {segment.id} failed [{error.error_code}]")
            raise error from e

        text = "".join(
            block.text for block in message.content
            if getattr(block, "type", None) == "text"
        )
        markup = normalize_mermaid(text)
        if not markup:
            raise AgentExecutionError(
                DIAGRAM_GENERATION_FAILED,
                "Model returned no diagram markup",
                {"scene_id": segment.id}
            )
        return markup

    def validate_input(self, input_data: AgentInput) -> bool:
        return (
            isinstance(input_data, DiagramGeneratorInput)
            and isinstance(input_data.segment, SceneSegment)
            and bool(input_data.segment.visuals.strip())
        )

    def get_retry_policy(self) -> RetryPolicy:
        # Regenerating is user-initiated
        return RetryPolicy(max_attempts=1)
