"""Mermaid diagram normalization and render coordination.

Model-written Mermaid markup often arrives wrapped in code fences, without a
diagram-type declaration, or with unquoted labels that break the parser.
``normalize_mermaid`` repairs those before rendering. ``DiagramRenderer``
guarantees that only the most recent render request for a mount point takes
effect and turns render failures into an inline error indicator.
"""

import asyncio
import logging
import re
import shutil
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Awaitable, Callable, Dict, Optional


logger = logging.getLogger(__name__)


ERROR_INDICATOR = '<div class="diagram-error">Invalid diagram markup</div>'
DEFAULT_DECLARATION = "graph TD"

DIAGRAM_TYPES = (
    "graph", "flowchart", "sequenceDiagram", "classDiagram", "stateDiagram",
    "erDiagram", "journey", "gantt", "pie", "mindmap", "timeline", "gitGraph",
    "quadrantChart",
)

_FENCE_RE = re.compile(r"```\s*(?:mermaid)?", re.IGNORECASE)

# Single-bracket node shapes only; [[..]], ((..)), {{..}}, [(..)] etc. are left alone
_LABEL_PATTERNS = (
    re.compile(r'(?<![\w"])(\w+)\[(?![\[(/\\>"])([^\[\]"\n]+)\]'),
    re.compile(r'(?<![\w"])(\w+)\((?![(\["])([^()"\n]+)\)'),
    re.compile(r'(?<![\w"])(\w+)\{(?![{"])([^{}"\n]+)\}'),
)
_BRACKETS = {"[": "]", "(": ")", "{": "}"}
_SPECIAL_RE = re.compile(r"[^\w\s.,'!?-]")


def strip_code_fences(markup: str) -> str:
    return _FENCE_RE.sub("", markup).strip()


def _declaration(markup: str) -> Optional[str]:
    for line in markup.splitlines():
        stripped = line.strip()
        if not stripped or stripped.startswith("%%"):
            continue
        for diagram_type in DIAGRAM_TYPES:
            if stripped.startswith(diagram_type):
                return diagram_type
        return None
    return None


def _quote(match: "re.Match[str]") -> str:
    node, label = match.group(1), match.group(2)
    if not _SPECIAL_RE.search(label):
        return match.group(0)
    opener = match.group(0)[len(node)]
    return f'{node}{opener}"{label.strip()}"{_BRACKETS[opener]}'


def _quote_labels(markup: str) -> str:
    for pattern in _LABEL_PATTERNS:
        # Odd pieces sit inside existing double quotes and are left untouched
        pieces = markup.split('"')
        for i in range(0, len(pieces), 2):
            pieces[i] = pattern.sub(_quote, pieces[i])
        markup = '"'.join(pieces)
    return markup


def normalize_mermaid(markup: str) -> str:
    """Repair common formatting mistakes in model-written Mermaid markup.

    Idempotent: normalizing already-normalized markup returns it unchanged.
    """
    cleaned = strip_code_fences(markup or "")
    if not cleaned:
        return ""
    declaration = _declaration(cleaned)
    if declaration is None:
        cleaned = f"{DEFAULT_DECLARATION}\n{cleaned}"
        declaration = "graph"
    if declaration in ("graph", "flowchart"):
        cleaned = _quote_labels(cleaned)
    return cleaned


@dataclass
class RenderResult:
    """Outcome of one render request."""
    mount_id: str
    request_id: int
    output: Optional[str]
    error: Optional[str] = None
    superseded: bool = False

    @property
    def ok(self) -> bool:
        return self.error is None and not self.superseded


RenderFn = Callable[[str], Awaitable[str]]


class DiagramRenderer:
    """Coordinates renders so each mount point shows only its latest request.

    ``render_fn`` turns normalized markup into SVG text and may raise on
    invalid markup. ``mounted`` holds what each mount point currently shows.
    """

    def __init__(self, render_fn: RenderFn):
        self.render_fn = render_fn
        self.mounted: Dict[str, str] = {}
        self._latest: Dict[str, int] = {}

    async def render(self, mount_id: str, markup: str) -> RenderResult:
        request_id = self._latest.get(mount_id, 0) + 1
        self._latest[mount_id] = request_id
        self.mounted.pop(mount_id, None)

        cleaned = normalize_mermaid(markup)
        error = None
        try:
            if not cleaned:
                raise ValueError("empty diagram markup")
            output = await self.render_fn(cleaned)
        except Exception as e:
            logger.error(f"Diagram render failed for {mount_id}: {e}")
            output, error = ERROR_INDICATOR, str(e)

        if self._latest.get(mount_id) != request_id:
            logger.debug(f"Discarding stale render {request_id} for {mount_id}")
            return RenderResult(mount_id, request_id, None, error, superseded=True)

        self.mounted[mount_id] = output
        return RenderResult(mount_id, request_id, output, error)


async def mermaid_cli_render(markup: str, theme: str = "dark") -> str:
    """Render markup to SVG with the Mermaid CLI (``mmdc``).

    Raises:
        RuntimeError: If mmdc is missing or rejects the markup
    """
    executable = shutil.which("mmdc")
    if executable is None:
        raise RuntimeError("mermaid-cli (mmdc) is not installed")

    with tempfile.TemporaryDirectory() as tmpdir:
        source = Path(tmpdir) / "diagram.mmd"
        target = Path(tmpdir) / "diagram.svg"
        source.write_text(markup, encoding="utf-8")

        process = await asyncio.create_subprocess_exec(
            executable, "-i", str(source), "-o", str(target), "-t", theme,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        _, stderr = await process.communicate()
        if process.returncode != 0 or not target.exists():
            raise RuntimeError(stderr.decode("utf-8", errors="replace").strip() or "mmdc failed")
        return target.read_text(encoding="utf-8")
