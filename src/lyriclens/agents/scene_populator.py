"""Scene Populator Agent for filling scene stubs with generated direction.

This agent fans out one content request per stub through a bounded worker
pool, merges successful replies onto their stubs and leaves failed stubs
exactly as they were. Failures are isolated to their own scene.
"""

import logging
from typing import Awaitable, Callable, List, Optional, Sequence, Tuple

from lyriclens.agents.base import (
    INVALID_INPUT,
    QUOTA_MESSAGE,
    Agent,
    AgentExecutionError,
    AgentInput,
    AgentOutput,
    RetryPolicy,
    classify_remote_error,
)
from lyriclens.agents.scene_writer import DEFAULT_CONTEXT_LABEL, SceneWriterAgent, SceneWriterInput
from lyriclens.orchestrator.retry_policy import execute_with_retry
from lyriclens.orchestrator.worker_pool import run_bounded
from lyriclens.schemas.generation import FailedScene, PopulationReport, SceneContent
from lyriclens.schemas.project import Character, SceneSegment

logger = logging.getLogger(__name__)


class ScenePopulatorInput(AgentInput):
    """Input for the Scene Populator Agent.

    Attributes:
        stubs: Segments to populate, in scene order
        context_label: Shared label sent with every request
        narrative_seed: Project-wide narrative direction
        characters: Roster passed to every request
    """

    def __init__(
        self,
        stubs: Sequence[SceneSegment],
        context_label: str = DEFAULT_CONTEXT_LABEL,
        narrative_seed: str = "",
        characters: Sequence[Character] = ()
    ):
        self.stubs = list(stubs)
        self.context_label = context_label
        self.narrative_seed = narrative_seed
        self.characters = list(characters)


class ScenePopulatorOutput(AgentOutput):
    """Output from the Scene Populator Agent.

    Attributes:
        segments: Index-aligned with the input stubs
        report: Success/failure statistics and the collapsed quota warning
    """

    def __init__(self, segments: List[SceneSegment], report: PopulationReport):
        self.segments = segments
        self.report = report


def merge_content(stub: SceneSegment, content: SceneContent) -> SceneSegment:
    return stub.model_copy(update={
        "visuals": content.visuals,
        "camera_work": content.camera_work,
        "lighting_mood": content.lighting_mood,
        "section_title": content.section_title,
    })


class ScenePopulatorAgent(Agent):
    """Agent responsible for populating every stub of a storyboard draft.

    The populator:
    - Queues one content request per stub
    - Drains the queue with at most ``max_concurrent_requests`` workers
    - Backs off exponentially when a request reports quota exhaustion
    - Keeps the stub unchanged when its request ultimately fails
    - Collapses every quota failure into a single warning

    Without an explicit ``retry_policy`` the writer's own policy applies.
    """

    def __init__(
        self,
        writer: SceneWriterAgent,
        max_concurrent_requests: int = 4,
        retry_policy: Optional[RetryPolicy] = None,
        sleep: Optional[Callable[[float], Awaitable[None]]] = None
    ):
        if max_concurrent_requests < 1:
            raise ValueError("max_concurrent_requests must be at least 1")
        self.writer = writer
        self.max_concurrent_requests = max_concurrent_requests
        self.retry_policy = retry_policy or writer.get_retry_policy()
        self.sleep = sleep

    async def execute(self, input_data: AgentInput) -> ScenePopulatorOutput:
        if not self.validate_input(input_data):
            raise AgentExecutionError(
                INVALID_INPUT,
                "Input must be a ScenePopulatorInput",
                {"input_type": type(input_data).__name__}
            )

        async def populate(index: int, stub: SceneSegment) -> Tuple[SceneSegment, Optional[AgentExecutionError]]:
            request = SceneWriterInput(
                lyrics=stub.lyrics,
                context_label=input_data.context_label,
                narrative_seed=input_data.narrative_seed,
                characters=input_data.characters,
            )
            try:
                content = await execute_with_retry(
                    lambda: self.writer.execute(request),
                    self.retry_policy,
                    context_name=f"populate {stub.id}",
                    sleep=self.sleep,
                )
            except Exception as e:
                error = classify_remote_error(e, context={"scene_id": stub.id})
                logger.warning(f"Scene {index} ({stub.id}) left unpopulated: {error}")
                return stub, error
            return merge_content(stub, content), None

        outcomes = await run_bounded(input_data.stubs, populate, self.max_concurrent_requests)

        segments: List[SceneSegment] = []
        failed_scenes: List[FailedScene] = []
        quota_hit = False
        for segment, error in outcomes:
            segments.append(segment)
            if error is not None:
                failed_scenes.append(FailedScene(
                    scene_id=segment.id,
                    error_code=error.error_code,
                    error=error.message,
                ))
                quota_hit = quota_hit or error.is_quota

        report = PopulationReport(
            total_scenes=len(segments),
            successful_scenes=len(segments) - len(failed_scenes),
            failed_scenes=failed_scenes,
            quota_warning=QUOTA_MESSAGE if quota_hit else None,
        )
        logger.info(
            f"Populated {report.successful_scenes}/{report.total_scenes} scenes"
            + (" (quota limited)" if quota_hit else "")
        )
        return ScenePopulatorOutput(segments=segments, report=report)

    def validate_input(self, input_data: AgentInput) -> bool:
        if not isinstance(input_data, ScenePopulatorInput):
            return False
        return all(isinstance(stub, SceneSegment) for stub in input_data.stubs)

    def get_retry_policy(self) -> RetryPolicy:
        return self.retry_policy
