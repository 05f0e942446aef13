"""Project bundle persistence.

Save:
- Recomputes every segment's derived ``characters`` list from its own
  descriptive fields, so the bundle never carries a stale mention list
- Writes the full document, tagged with the schema version, atomically

Load:
- Accepts documents from earlier schema versions by defaulting every optional
  field and migrating the legacy single ``imageUrl`` character field
- Clamps the workflow step to a resting step
- Rejects the whole document on any parse or validation failure
"""

import json
import logging
import os
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional, Union

from pydantic import ValidationError

from lyriclens.agents.mentions import CharacterMatcher, scene_mention_text
from lyriclens.schemas.project import SCHEMA_VERSION, StoryboardProject, WorkflowStep

logger = logging.getLogger(__name__)


PathLike = Union[str, Path]


class ProjectLoadError(Exception):
    """Raised when a bundle cannot be turned into a project.

    Attributes:
        message: Human-readable reason
        source: File path or other description of where the bundle came from
    """

    def __init__(self, message: str, source: Optional[str] = None):
        self.message = message
        self.source = source
        where = f" ({source})" if source else ""
        super().__init__(f"Failed to load project file{where}: {message}")


def default_filename(timestamp: Optional[datetime] = None) -> str:
    """Advisory bundle name, e.g. ``storyboard-project-20240501T120000.json``."""
    timestamp = timestamp or datetime.now(timezone.utc)
    return f"storyboard-project-{timestamp.strftime('%Y%m%dT%H%M%S')}.json"


def refresh_derived_fields(project: StoryboardProject) -> StoryboardProject:
    """Return a copy whose segments carry a freshly computed ``characters`` list."""
    matcher = CharacterMatcher(project.characters)
    segments = [
        segment.model_copy(update={"characters": matcher.find(scene_mention_text(segment))})
        for segment in project.segments
    ]
    return project.model_copy(update={"segments": segments, "version": SCHEMA_VERSION})


def build_document(project: StoryboardProject) -> Dict[str, Any]:
    """Full bundle document for ``project`` with camelCase keys."""
    return refresh_derived_fields(project).model_dump(mode="json", by_alias=True)


def dumps_project(project: StoryboardProject) -> str:
    return json.dumps(build_document(project), indent=2, ensure_ascii=False)


def save_project(project: StoryboardProject, path: PathLike) -> Path:
    """Write ``project`` to ``path`` atomically and return the path.

    If ``path`` is an existing directory, a timestamped file name is used
    inside it.
    """
    target = Path(path)
    if target.is_dir():
        target = target / default_filename()
    target.parent.mkdir(parents=True, exist_ok=True)
    _write_atomic(target, dumps_project(project))
    logger.info(f"Saved project with {len(project.segments)} scenes to {target}")
    return target


def _write_atomic(file_path: Path, content: str) -> None:
    """Write via a temp file in the same directory, then rename over the target."""
    temp_file_path = None
    try:
        with tempfile.NamedTemporaryFile(
            mode='w',
            dir=file_path.parent,
            delete=False,
            encoding='utf-8',
            suffix='.tmp'
        ) as temp_file:
            temp_file.write(content)
            temp_file.flush()
            os.fsync(temp_file.fileno())
            temp_file_path = temp_file.name
        os.replace(temp_file_path, file_path)
    except Exception:
        if temp_file_path and os.path.exists(temp_file_path):
            os.unlink(temp_file_path)
        raise


def _clamp_step(value: Any) -> WorkflowStep:
    try:
        step = WorkflowStep(value)
    except ValueError:
        logger.info(f"Unknown workflow step {value!r}, restoring to {WorkflowStep.PASTE_LYRICS.value}")
        return WorkflowStep.PASTE_LYRICS
    return step.resting_step()


def _migrate_character(raw: Any) -> Any:
    if not isinstance(raw, dict):
        return raw
    character = dict(raw)
    legacy = character.pop("imageUrl", None)
    if legacy and not character.get("images"):
        character["images"] = [legacy]
    if character.get("images") is None:
        character["images"] = []
    return character


def migrate_document(data: Dict[str, Any]) -> Dict[str, Any]:
    """Fill defaults for fields that older bundles may lack."""
    migrated = dict(data)
    migrated["narrativeSeed"] = data.get("narrativeSeed") or ""
    migrated["sceneMarkers"] = data.get("sceneMarkers") or []
    migrated["segments"] = data.get("segments") or []
    migrated["characters"] = [_migrate_character(c) for c in data.get("characters") or []]
    migrated["step"] = _clamp_step(data.get("step"))
    migrated["version"] = data.get("version") or SCHEMA_VERSION
    return migrated


def parse_document(text: str, source: Optional[str] = None) -> StoryboardProject:
    """Parse bundle text into a project.

    Raises:
        ProjectLoadError: If the text is not JSON, not an object, or fails validation
    """
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise ProjectLoadError(f"invalid JSON: {e}", source) from e

    if not isinstance(data, dict):
        raise ProjectLoadError("bundle must be a JSON object", source)
    if "rawText" not in data:
        raise ProjectLoadError("bundle is missing rawText", source)

    try:
        return StoryboardProject.model_validate(migrate_document(data))
    except ValidationError as e:
        raise ProjectLoadError(f"invalid project structure: {e}", source) from e


def load_project(path: PathLike) -> StoryboardProject:
    """Read and parse a bundle file.

    Raises:
        ProjectLoadError: If the file cannot be read or parsed
    """
    try:
        text = Path(path).read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise ProjectLoadError(str(e), str(path)) from e
    project = parse_document(text, str(path))
    logger.info(f"Loaded project v{project.version} with {len(project.segments)} scenes from {path}")
    return project
