"""Storyboard studio session and command-line entry point.

The studio owns one project and drives the authoring workflow:
Paste lyrics → Define scenes → Production (populate, diagrams, frames) →
Resources (cast) → Presentation.

The studio handles:
- Workflow transitions through the explicit WorkflowStep state machine
- Bounded, quota-aware fan-out for scene population
- Generation-checked writes so late results never clobber newer edits
- Structured logging of every remote stage

Error Handling Strategy:
- **Isolate**: a scene whose content request fails keeps its stub; siblings
  are unaffected
- **Warn**: any quota failure raises one dismissible warning
- **Surface**: diagram and frame failures are re-raised with a user-facing
  message; nothing is applied
- **Reject**: a malformed bundle never replaces the current project
"""

import argparse
import asyncio
import logging
import os
import sys
import time
import uuid
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Mapping, Optional, Set, Tuple

import anthropic
import openai
from pydantic import ValidationError

from lyriclens.agents.base import (
    INVALID_CONFIGURATION,
    QUOTA_MESSAGE,
    Agent,
    AgentExecutionError,
    AgentInput,
)
from lyriclens.agents.diagram_generator import DiagramGeneratorAgent, DiagramGeneratorInput
from lyriclens.agents.diagram_renderer import DiagramRenderer, RenderFn, RenderResult, mermaid_cli_render
from lyriclens.agents.frame_generator import FrameGeneratorAgent
from lyriclens.agents.frame_populator import FramePopulatorAgent, FramePopulatorInput
from lyriclens.agents.images import validate_reference_image
from lyriclens.agents.mentions import CharacterMatcher, active_characters
from lyriclens.agents.pdf_exporter import export_pdf
from lyriclens.agents.persistence import ProjectLoadError, default_filename, load_project, save_project
from lyriclens.agents.scene_populator import ScenePopulatorAgent, ScenePopulatorInput, merge_content
from lyriclens.agents.scene_writer import DEFAULT_CONTEXT_LABEL, SceneWriterAgent, SceneWriterInput
from lyriclens.agents.segmenter import segment_text, split_lines, toggle_marker
from lyriclens.orchestrator.logger import StructuredJSONLogger
from lyriclens.orchestrator.retry_policy import create_quota_retry_policy, execute_with_retry
from lyriclens.orchestrator.segment_board import SegmentBoard, SegmentConflictError
from lyriclens.schemas.generation import PopulationReport
from lyriclens.schemas.project import (
    Character,
    SceneSegment,
    StoryboardProject,
    WorkflowStep,
    WorkflowTransitionError,
)


logger = logging.getLogger(__name__)


# Fields a user may edit on a populated scene; lyrics are fixed at segmentation
EDITABLE_FIELDS = frozenset({
    "section_title", "visuals", "camera_work", "lighting_mood", "mermaid_diagram",
})


def _env_int(environ: Mapping[str, str], key: str, default: int) -> int:
    raw = environ.get(key)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise AgentExecutionError(INVALID_CONFIGURATION, f"{key} must be an integer, got {raw!r}")


def _env_float(environ: Mapping[str, str], key: str, default: float) -> float:
    raw = environ.get(key)
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError:
        raise AgentExecutionError(INVALID_CONFIGURATION, f"{key} must be a number, got {raw!r}")


@dataclass
class StudioConfig:
    """Configuration for a studio session.

    Attributes:
        content_model: Chat model used for scene direction
        diagram_model: Claude model used for diagram markup
        image_model: Image model used for reference frames
        context_label: Label sent with every scene content request
        max_concurrent_requests: Worker count for scene population
        quota_max_attempts: Attempts per scene when quota is exhausted (1 disables backoff)
        quota_base_delay_seconds: First backoff delay
        quota_max_delay_seconds: Backoff ceiling
        output_dir: Default directory for saved bundles and exports
        log_dir: Directory for studio.log (None logs to console only)
    """
    content_model: str = SceneWriterAgent.DEFAULT_MODEL
    diagram_model: str = DiagramGeneratorAgent.DEFAULT_MODEL
    image_model: str = FrameGeneratorAgent.DEFAULT_MODEL
    context_label: str = DEFAULT_CONTEXT_LABEL
    max_concurrent_requests: int = 4
    quota_max_attempts: int = 3
    quota_base_delay_seconds: float = 2.0
    quota_max_delay_seconds: float = 30.0
    output_dir: str = "output"
    log_dir: Optional[str] = None

    def __post_init__(self):
        if self.max_concurrent_requests < 1:
            raise AgentExecutionError(INVALID_CONFIGURATION, "max_concurrent_requests must be at least 1")
        if self.quota_max_attempts < 1:
            raise AgentExecutionError(INVALID_CONFIGURATION, "quota_max_attempts must be at least 1")

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "StudioConfig":
        """Build a config from ``LYRICLENS_*`` environment variables."""
        env = os.environ if environ is None else environ
        defaults = cls()
        return cls(
            content_model=env.get("LYRICLENS_CONTENT_MODEL", defaults.content_model),
            diagram_model=env.get("LYRICLENS_DIAGRAM_MODEL", defaults.diagram_model),
            image_model=env.get("LYRICLENS_IMAGE_MODEL", defaults.image_model),
            context_label=env.get("LYRICLENS_CONTEXT_LABEL", defaults.context_label),
            max_concurrent_requests=_env_int(env, "LYRICLENS_MAX_CONCURRENCY", defaults.max_concurrent_requests),
            quota_max_attempts=_env_int(env, "LYRICLENS_QUOTA_MAX_ATTEMPTS", defaults.quota_max_attempts),
            quota_base_delay_seconds=_env_float(env, "LYRICLENS_QUOTA_BASE_DELAY", defaults.quota_base_delay_seconds),
            quota_max_delay_seconds=_env_float(env, "LYRICLENS_QUOTA_MAX_DELAY", defaults.quota_max_delay_seconds),
            output_dir=env.get("LYRICLENS_OUTPUT_DIR", defaults.output_dir),
            log_dir=env.get("LYRICLENS_LOG_DIR") or None,
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class ServiceClients:
    """Remote API clients shared by every agent of a session.

    Constructed once at startup and closed at shutdown::

        async with ServiceClients.from_env() as clients:
            studio = StoryboardStudio(clients)
    """

    def __init__(self, openai_client: openai.AsyncOpenAI, anthropic_client: anthropic.AsyncAnthropic):
        self.openai = openai_client
        self.anthropic = anthropic_client

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "ServiceClients":
        """Create clients from OPENAI_API_KEY and ANTHROPIC_API_KEY.

        Raises:
            AgentExecutionError: INVALID_CONFIGURATION if a key is missing
        """
        env = os.environ if environ is None else environ
        missing = [key for key in ("OPENAI_API_KEY", "ANTHROPIC_API_KEY") if not env.get(key)]
        if missing:
            raise AgentExecutionError(
                INVALID_CONFIGURATION,
                f"Missing API key(s): {', '.join(missing)}",
                {"missing": missing}
            )
        return cls(
            openai.AsyncOpenAI(api_key=env["OPENAI_API_KEY"]),
            anthropic.AsyncAnthropic(api_key=env["ANTHROPIC_API_KEY"]),
        )

    async def aclose(self) -> None:
        await self.openai.close()
        await self.anthropic.close()

    async def __aenter__(self) -> "ServiceClients":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> bool:
        await self.aclose()
        return False


class StoryboardStudio:
    """One authoring session over one storyboard project.

    Agents are built from ``clients`` unless passed in explicitly, so tests
    can inject agents wrapping mocked clients.
    """

    def __init__(
        self,
        clients: Optional[ServiceClients] = None,
        config: Optional[StudioConfig] = None,
        scene_writer: Optional[SceneWriterAgent] = None,
        diagram_generator: Optional[DiagramGeneratorAgent] = None,
        frame_generator: Optional[FrameGeneratorAgent] = None,
        render_fn: RenderFn = mermaid_cli_render,
        structured_logger: Optional[StructuredJSONLogger] = None,
        sleep: Optional[Callable[[float], Awaitable[None]]] = None
    ):
        self.config = config or StudioConfig()
        self.clients = clients
        self.structured_logger = structured_logger or StructuredJSONLogger(self.config.log_dir)

        if scene_writer is None and clients is not None:
            scene_writer = SceneWriterAgent(clients.openai, model=self.config.content_model)
        if diagram_generator is None and clients is not None:
            diagram_generator = DiagramGeneratorAgent(clients.anthropic, model=self.config.diagram_model)
        if frame_generator is None and clients is not None:
            frame_generator = FrameGeneratorAgent(clients.openai, model=self.config.image_model)

        self.scene_writer = scene_writer
        self.diagram_generator = diagram_generator
        self.frame_populator = FramePopulatorAgent(frame_generator) if frame_generator else None
        self.retry_policy = create_quota_retry_policy(
            max_attempts=self.config.quota_max_attempts,
            base_delay_seconds=self.config.quota_base_delay_seconds,
            max_delay_seconds=self.config.quota_max_delay_seconds,
        )
        self.scene_populator = ScenePopulatorAgent(
            scene_writer,
            max_concurrent_requests=self.config.max_concurrent_requests,
            retry_policy=self.retry_policy,
            sleep=sleep,
        ) if scene_writer else None
        self.renderer = DiagramRenderer(render_fn)
        self._sleep = sleep

        self.raw_text = ""
        self.narrative_seed = ""
        self.scene_markers: List[int] = []
        self.characters: List[Character] = []
        self.step = WorkflowStep.PASTE_LYRICS
        self.board = SegmentBoard()
        self.warning: Optional[str] = None
        self.last_report: Optional[PopulationReport] = None

    # -- project state ---------------------------------------------------

    @property
    def lines(self) -> List[str]:
        return split_lines(self.raw_text)

    @property
    def segments(self) -> List[SceneSegment]:
        return self.board.segments

    @property
    def project(self) -> StoryboardProject:
        return StoryboardProject(
            raw_text=self.raw_text,
            narrative_seed=self.narrative_seed,
            scene_markers=self.scene_markers,
            segments=self.board.segments,
            characters=self.characters,
            step=self.step,
        )

    def set_raw_text(self, raw_text: str) -> None:
        self.raw_text = raw_text
        line_count = len(self.lines)
        self.scene_markers = [m for m in self.scene_markers if m < line_count]

    def set_narrative_seed(self, seed: str) -> None:
        self.narrative_seed = seed

    def toggle_marker(self, index: int) -> List[int]:
        self.scene_markers = toggle_marker(self.scene_markers, index, len(self.lines))
        return list(self.scene_markers)

    def set_scene_markers(self, markers: Iterable[int]) -> List[int]:
        """Replace every scene break at once.

        Duplicates collapse; indices outside ``1 .. len(lines) - 1`` cannot
        start a scene and are dropped.
        """
        line_count = len(self.lines)
        self.scene_markers = sorted({m for m in markers if 0 < m < line_count})
        return list(self.scene_markers)

    def go_to(self, step: WorkflowStep) -> WorkflowStep:
        """Move the workflow to ``step``.

        Raises:
            WorkflowTransitionError: If ``step`` is not reachable from the current step
        """
        self.step = self.step.transition_to(step)
        logger.info(f"Workflow step is now {self.step.value}")
        return self.step

    def start_defining(self) -> WorkflowStep:
        if not self.lines:
            raise ValueError("Paste some lyrics before defining scenes")
        return self.go_to(WorkflowStep.DEFINE_SCENES)

    def dismiss_warning(self) -> None:
        self.warning = None

    # -- remote stages ---------------------------------------------------

    def _require(self, agent: Optional[Any], name: str) -> Any:
        if agent is None:
            raise AgentExecutionError(
                INVALID_CONFIGURATION,
                f"No {name} configured; pass ServiceClients or an agent instance",
            )
        return agent

    async def _execute_agent(self, stage: str, agent: Agent, input_data: AgentInput, summary: str):
        """Run one agent with structured start/complete/failure logging."""
        self.structured_logger.log_stage_start(stage, summary)
        start_time = time.perf_counter()
        try:
            output = await agent.execute(input_data)
        except AgentExecutionError as e:
            duration_ms = (time.perf_counter() - start_time) * 1000
            self.structured_logger.log_stage_failure(
                stage, e.message, e.error_code, summary, duration_ms
            )
            if e.is_quota:
                self._raise_warning(stage, QUOTA_MESSAGE)
            raise
        duration_ms = (time.perf_counter() - start_time) * 1000
        self.structured_logger.log_stage_complete(stage, duration_ms, self._summarize_output(output))
        return output

    def _summarize_output(self, output: Any) -> str:
        if isinstance(output, str):
            return f"{len(output)} chars"
        return type(output).__name__

    def _raise_warning(self, stage: str, message: str) -> None:
        if self.warning != message:
            self.structured_logger.log_quota_warning(stage, message)
        self.warning = message

    async def draft_storyboard(self) -> PopulationReport:
        """Segment the text, move to production and populate every scene.

        Scenes edited while population is in flight keep the edit; their
        generated content is dropped.
        """
        populator = self._require(self.scene_populator, "scene writer")
        stubs = segment_text(self.raw_text, self.scene_markers)
        if not stubs:
            raise ValueError("Nothing to storyboard: the text has no non-blank lines")

        self.go_to(WorkflowStep.PRODUCTION)
        self.board.replace_all(stubs)
        generations = {stub.id: self.board.generation(stub.id) for stub in stubs}

        stage = "draft_storyboard"
        summary = f"{len(stubs)} scenes, markers={self.scene_markers}"
        self.structured_logger.log_stage_start(stage, summary)
        start_time = time.perf_counter()

        try:
            output = await populator.execute(ScenePopulatorInput(
                stubs=stubs,
                context_label=self.config.context_label,
                narrative_seed=self.narrative_seed,
                characters=self.characters,
            ))
        except Exception as e:
            # The fan-out itself broke; stubs stay as they are
            logger.exception("Scene population crashed")
            self.structured_logger.log_session_error(type(e).__name__, str(e), stage)
            report = PopulationReport(
                total_scenes=len(stubs),
                successful_scenes=0,
                failed_scenes=[],
            )
            self.last_report = report
            return report

        failed_ids = {failed.scene_id for failed in output.report.failed_scenes}
        dropped = 0
        for segment in output.segments:
            if segment.id in failed_ids:
                continue
            updates = {
                "visuals": segment.visuals,
                "camera_work": segment.camera_work,
                "lighting_mood": segment.lighting_mood,
                "section_title": segment.section_title,
            }
            try:
                self.board.apply(segment.id, updates, expected_generation=generations[segment.id])
            except (SegmentConflictError, KeyError):
                dropped += 1

        report = output.report
        if dropped:
            logger.info(f"Dropped generated content for {dropped} scene(s) edited during population")
        if report.quota_warning:
            self._raise_warning(stage, report.quota_warning)

        duration_ms = (time.perf_counter() - start_time) * 1000
        status = "SUCCESS" if not report.failed_scenes else "PARTIAL_SUCCESS"
        self.structured_logger.log_stage_complete(
            stage,
            duration_ms,
            f"{report.successful_scenes}/{report.total_scenes} scenes populated",
            status,
        )
        self.last_report = report
        return report

    def update_segment(
        self,
        segment_id: str,
        expected_generation: Optional[int] = None,
        **fields: Any
    ) -> SceneSegment:
        """Apply a user edit to one scene.

        Raises:
            ValueError: For fields that are not user-editable (including lyrics)
                or values of the wrong type
            SegmentConflictError: If ``expected_generation`` is stale
        """
        invalid = set(fields) - EDITABLE_FIELDS
        if invalid:
            raise ValueError(f"Fields not editable: {sorted(invalid)}")
        try:
            return self.board.apply(segment_id, fields, expected_generation)
        except ValidationError as e:
            problems = "; ".join(
                f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}" for error in e.errors()
            )
            raise ValueError(f"Invalid edit to {segment_id}: {problems}") from e

    async def generate_diagram(self, segment_id: str) -> SceneSegment:
        """Draft diagram markup for one scene and apply it.

        Raises:
            AgentExecutionError: If the diagram request fails
            SegmentConflictError: If the scene changed while the request was in flight
        """
        agent = self._require(self.diagram_generator, "diagram generator")
        segment, generation = self.board.snapshot(segment_id)
        markup = await self._execute_agent(
            "generate_diagram", agent, DiagramGeneratorInput(segment), segment_id
        )
        return self.board.apply(segment_id, {"mermaid_diagram": markup}, generation)

    async def generate_frames(self, segment_id: str) -> SceneSegment:
        """Generate and atomically apply both reference frames for one scene.

        Raises:
            AgentExecutionError: QUOTA_EXHAUSTED, INVALID_REFERENCE_IMAGES or
                FRAME_GENERATION_FAILED with a user-facing message
            SegmentConflictError: If another update to the scene landed first
        """
        agent = self._require(self.frame_populator, "frame generator")
        segment, generation = self.board.snapshot(segment_id)
        pair = await self._execute_agent(
            "generate_frames",
            agent,
            FramePopulatorInput(segment, self.characters, self.narrative_seed),
            segment_id,
        )
        try:
            return self.board.apply(
                segment_id,
                {"first_frame": pair.first_frame, "last_frame": pair.last_frame},
                generation,
            )
        except SegmentConflictError as e:
            self.structured_logger.log_stage_complete(
                "generate_frames", 0.0, f"{segment_id} discarded: {e}", status="CONFLICT"
            )
            raise

    async def redraft_scene(self, segment_id: str) -> SceneSegment:
        """Regenerate direction and diagram for a single scene."""
        writer = self._require(self.scene_writer, "scene writer")
        segment, generation = self.board.snapshot(segment_id)
        request = SceneWriterInput(
            lyrics=segment.lyrics,
            context_label=self.config.context_label,
            narrative_seed=self.narrative_seed,
            characters=self.characters,
        )
        self.structured_logger.log_stage_start("redraft_scene", segment_id)
        start_time = time.perf_counter()
        try:
            content = await execute_with_retry(
                lambda: writer.execute(request),
                self.retry_policy,
                context_name=f"redraft {segment_id}",
                sleep=self._sleep,
            )
        except AgentExecutionError as e:
            self.structured_logger.log_stage_failure("redraft_scene", e.message, e.error_code, segment_id)
            if e.is_quota:
                self._raise_warning("redraft_scene", QUOTA_MESSAGE)
            raise

        merged = merge_content(segment, content)
        self.board.apply(
            segment_id,
            {
                "visuals": merged.visuals,
                "camera_work": merged.camera_work,
                "lighting_mood": merged.lighting_mood,
                "section_title": merged.section_title,
            },
            generation,
        )
        self.structured_logger.log_stage_complete(
            "redraft_scene", (time.perf_counter() - start_time) * 1000, merged.section_title
        )
        return await self.generate_diagram(segment_id)

    async def render_diagram(self, segment_id: str) -> RenderResult:
        """Render a scene's diagram into the mount point named after the scene."""
        segment = self.board.get(segment_id)
        return await self.renderer.render(segment_id, segment.mermaid_diagram or "")

    # -- roster ------------------------------------------------------------

    def _character_index(self, character_id: str) -> int:
        for index, character in enumerate(self.characters):
            if character.id == character_id:
                return index
        raise KeyError(character_id)

    def add_character(self, name: str) -> Character:
        character = Character(id=f"char-{uuid.uuid4().hex[:12]}", name=name)
        self.characters.append(character)
        logger.info(f"Added character {character.name} ({character.id})")
        return character

    def remove_character(self, character_id: str) -> None:
        del self.characters[self._character_index(character_id)]

    def add_reference_image(self, character_id: str, data_uri: str) -> Character:
        """Attach a reference image; the oldest is dropped past five.

        Raises:
            AgentExecutionError: INVALID_REFERENCE_IMAGES if the image cannot be read
        """
        index = self._character_index(character_id)
        image = validate_reference_image(data_uri)
        self.characters[index] = self.characters[index].with_image(image)
        return self.characters[index]

    def remove_reference_image(self, character_id: str, image_index: int) -> Character:
        index = self._character_index(character_id)
        self.characters[index] = self.characters[index].without_image(image_index)
        return self.characters[index]

    # -- display helpers ---------------------------------------------------

    def highlight(self, text: str) -> List[Tuple[str, bool]]:
        return CharacterMatcher(self.characters).highlight(text)

    def active_characters(self, segment_id: str) -> Set[str]:
        return active_characters(self.board.get(segment_id), self.characters)

    # -- persistence -------------------------------------------------------

    def save(self, path: Optional[str] = None) -> Path:
        target = save_project(self.project, path or Path(self.config.output_dir) / default_filename())
        project = self.project
        self.structured_logger.log_project_saved(str(target), len(project.segments), project.version)
        return target

    def load(self, path: str) -> StoryboardProject:
        """Replace the session's project with the bundle at ``path``.

        Raises:
            ProjectLoadError: If the bundle is malformed; current state is kept
        """
        try:
            project = load_project(path)
        except ProjectLoadError as e:
            self.structured_logger.log_stage_failure("load", e.message, "INVALID_BUNDLE", str(path))
            raise

        self.raw_text = project.raw_text
        self.narrative_seed = project.narrative_seed
        self.scene_markers = list(project.scene_markers)
        self.characters = list(project.characters)
        self.step = project.step
        self.board.replace_all(project.segments)
        self.warning = None
        self.structured_logger.log_project_loaded(str(path), len(project.segments), project.version)
        return project

    def export_pdf(self, path: Optional[str] = None) -> Path:
        target = path or Path(self.config.output_dir) / default_filename().replace(".json", ".pdf")
        return export_pdf(self.project, target)

    def close(self) -> None:
        self.structured_logger.close()


# -- command line ------------------------------------------------------------

def _parse_markers(value: str) -> List[int]:
    try:
        return [int(part) for part in value.split(",") if part.strip()]
    except ValueError:
        raise argparse.ArgumentTypeError(f"markers must be comma-separated integers, got {value!r}")


def _resolve_scene(studio: StoryboardStudio, scene: str) -> str:
    ids = [segment.id for segment in studio.segments]
    if scene in ids:
        return scene
    try:
        number = int(scene)
    except ValueError:
        raise SystemExit(f"Unknown scene {scene!r}")
    if not 1 <= number <= len(ids):
        raise SystemExit(f"Scene number must be between 1 and {len(ids)}")
    return ids[number - 1]


async def _draft(args: argparse.Namespace, config: StudioConfig) -> int:
    async with ServiceClients.from_env() as clients:
        studio = StoryboardStudio(clients, config)
        try:
            studio.set_raw_text(Path(args.text_file).read_text(encoding="utf-8"))
            studio.set_narrative_seed(args.seed)
            for name in args.character:
                studio.add_character(name)
            studio.set_scene_markers(args.markers)
            studio.start_defining()
            report = await studio.draft_storyboard()
            if args.diagrams:
                for segment in studio.segments:
                    if segment.is_populated:
                        try:
                            await studio.generate_diagram(segment.id)
                        except AgentExecutionError as e:
                            print(f"Diagram for {segment.id} skipped: {e.message}", file=sys.stderr)
            target = studio.save(args.out)
        finally:
            studio.close()
    print(f"Populated {report.successful_scenes}/{report.total_scenes} scenes -> {target}")
    if report.quota_warning:
        print(report.quota_warning, file=sys.stderr)
    return 0 if not report.failed_scenes else 2


async def _frames(args: argparse.Namespace, config: StudioConfig) -> int:
    async with ServiceClients.from_env() as clients:
        studio = StoryboardStudio(clients, config)
        try:
            studio.load(args.project)
            segment_id = _resolve_scene(studio, args.scene)
            try:
                await studio.generate_frames(segment_id)
            except AgentExecutionError as e:
                print(e.message, file=sys.stderr)
                return 1
            studio.save(args.project)
        finally:
            studio.close()
    print(f"Frames generated for {segment_id}")
    return 0


def _export(args: argparse.Namespace, config: StudioConfig) -> int:
    studio = StoryboardStudio(config=config)
    try:
        studio.load(args.project)
        target = studio.export_pdf(args.pdf)
    finally:
        studio.close()
    print(f"Exported {len(studio.segments)} scenes -> {target}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="lyriclens",
        description="Turn lyrics into a storyboard with generated direction, diagrams and frames",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    draft = subparsers.add_parser("draft", help="Segment lyrics and populate every scene")
    draft.add_argument("text_file", help="Lyrics or script text file")
    draft.add_argument("--markers", type=_parse_markers, default=[],
                       help="Comma-separated line indices that start a new scene, e.g. 4,9")
    draft.add_argument("--seed", default="", help="Narrative direction for the whole video")
    draft.add_argument("--character", action="append", default=[],
                       help="Character name to add to the cast (repeatable)")
    draft.add_argument("--diagrams", action="store_true", help="Also draft a diagram per scene")
    draft.add_argument("--out", default=None, help="Bundle path (default: timestamped file in output dir)")

    frames = subparsers.add_parser("frames", help="Generate reference frames for one scene")
    frames.add_argument("project", help="Project bundle to update in place")
    frames.add_argument("--scene", required=True, help="Scene number (1-based) or scene id")

    export = subparsers.add_parser("export", help="Export a project bundle as PDF")
    export.add_argument("project", help="Project bundle")
    export.add_argument("--pdf", default=None, help="Output PDF path")

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        config = StudioConfig.from_env()
        if args.command == "draft":
            return asyncio.run(_draft(args, config))
        if args.command == "frames":
            return asyncio.run(_frames(args, config))
        return _export(args, config)
    except (AgentExecutionError, ProjectLoadError, WorkflowTransitionError, ValueError, OSError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
