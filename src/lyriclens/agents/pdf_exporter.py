"""Printable storyboard export with PyMuPDF.

The document has a cover page (title, narrative direction, cast) followed by
one A4 page per scene: lyrics, direction notes, mentioned characters, both
reference frames when present and the diagram markup.
"""

import logging
from pathlib import Path
from typing import Optional, Union

import fitz

from lyriclens.agents.images import parse_data_uri
from lyriclens.agents.mentions import derive_scene_characters
from lyriclens.schemas.project import SceneSegment, StoryboardProject

logger = logging.getLogger(__name__)


PAGE_WIDTH, PAGE_HEIGHT = fitz.paper_size("a4")
MARGIN = 48
BODY_FONT = "helv"
MONO_FONT = "cour"
FONT_SIZES = (11, 9, 7)
FRAME_HEIGHT = 150


def _fit_text(page: "fitz.Page", rect: fitz.Rect, text: str, fontname: str = BODY_FONT) -> None:
    """Write ``text`` into ``rect``, shrinking and finally truncating to fit.

    insert_textbox writes nothing when the text overflows, so each size is
    tried until one fits.
    """
    for fontsize in FONT_SIZES:
        if page.insert_textbox(rect, text, fontsize=fontsize, fontname=fontname) >= 0:
            return
    words = text.split(" ")
    while words:
        words = words[:max(1, len(words) * 3 // 4)] if len(words) > 1 else []
        clipped = " ".join(words) + " ..."
        if page.insert_textbox(rect, clipped, fontsize=FONT_SIZES[-1], fontname=fontname) >= 0:
            return
    logger.warning(f"Dropped text that does not fit on page {page.number + 1}")


def _heading(page: "fitz.Page", y: float, text: str, fontsize: float = 16) -> float:
    page.insert_text((MARGIN, y), text, fontsize=fontsize, fontname="hebo")
    return y + fontsize + 8


def _section(page: "fitz.Page", y: float, label: str, body: str, height: float,
             fontname: str = BODY_FONT) -> float:
    page.insert_text((MARGIN, y), label.upper(), fontsize=8, fontname="hebo", color=(0.4, 0.4, 0.4))
    rect = fitz.Rect(MARGIN, y + 4, PAGE_WIDTH - MARGIN, y + 4 + height)
    _fit_text(page, rect, body or "-", fontname)
    return rect.y1 + 14


def _insert_frame(page: "fitz.Page", rect: fitz.Rect, data_uri: Optional[str], label: str) -> None:
    page.draw_rect(rect, color=(0.75, 0.75, 0.75), width=0.5)
    if data_uri:
        try:
            page.insert_image(rect, stream=parse_data_uri(data_uri).data, keep_proportion=True)
            return
        except (ValueError, RuntimeError) as e:
            logger.warning(f"Could not embed {label} frame: {e}")
    page.insert_textbox(rect, f"{label} frame not generated", fontsize=8,
                        fontname=BODY_FONT, align=fitz.TEXT_ALIGN_CENTER)


def _cover_page(doc: "fitz.Document", project: StoryboardProject) -> None:
    page = doc.new_page(width=PAGE_WIDTH, height=PAGE_HEIGHT)
    y = _heading(page, MARGIN + 40, "Storyboard", fontsize=28)
    y = _section(page, y + 10, "Narrative direction", project.narrative_seed, 80)
    y = _section(page, y, "Scenes", str(len(project.segments)), 16)
    cast = ", ".join(character.name for character in project.characters)
    _section(page, y, "Cast", cast, 120)


def _scene_page(doc: "fitz.Document", index: int, segment: SceneSegment,
                project: StoryboardProject) -> None:
    page = doc.new_page(width=PAGE_WIDTH, height=PAGE_HEIGHT)
    y = _heading(page, MARGIN + 12, f"{index + 1}. {segment.section_title or segment.id}")

    y = _section(page, y, "Lyrics", segment.lyrics, 70)
    y = _section(page, y, "Visuals", segment.visuals, 70)
    y = _section(page, y, "Camera", segment.camera_work, 40)
    y = _section(page, y, "Lighting & mood", segment.lighting_mood, 40)
    names = derive_scene_characters(segment, project.characters)
    y = _section(page, y, "Characters", ", ".join(names), 16)

    half = (PAGE_WIDTH - 2 * MARGIN - 12) / 2
    _insert_frame(page, fitz.Rect(MARGIN, y, MARGIN + half, y + FRAME_HEIGHT),
                  segment.first_frame, "First")
    _insert_frame(page, fitz.Rect(MARGIN + half + 12, y, PAGE_WIDTH - MARGIN, y + FRAME_HEIGHT),
                  segment.last_frame, "Last")
    y += FRAME_HEIGHT + 18

    if segment.mermaid_diagram:
        remaining = PAGE_HEIGHT - MARGIN - y - 4
        _section(page, y, "Diagram", segment.mermaid_diagram, remaining, MONO_FONT)


def render_pdf(project: StoryboardProject) -> bytes:
    """Build the storyboard document and return it as PDF bytes."""
    doc = fitz.open()
    try:
        _cover_page(doc, project)
        for index, segment in enumerate(project.segments):
            _scene_page(doc, index, segment, project)
        doc.set_metadata({"title": "Storyboard", "creator": "LyricLens Studio"})
        return doc.tobytes(garbage=3, deflate=True)
    finally:
        doc.close()


def export_pdf(project: StoryboardProject, path: Union[str, Path]) -> Path:
    """Write the storyboard document for ``project`` to ``path``."""
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    data = render_pdf(project)
    target.write_bytes(data)
    logger.info(f"Exported {len(project.segments)} scenes to {target} ({len(data)} bytes)")
    return target
