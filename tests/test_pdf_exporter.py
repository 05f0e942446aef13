"""Unit tests for PDF export."""

import fitz

from lyriclens.agents.pdf_exporter import export_pdf, render_pdf
from lyriclens.agents.segmenter import segment_text
from lyriclens.schemas.project import Character, StoryboardProject


def make_project(first_frame=None, last_frame=None, visuals="Mia walks under neon signs"):
    segments = segment_text("Verse line one\nVerse line two\nChorus line", {2})
    segments[0] = segments[0].model_copy(update={
        "section_title": "Verse 1",
        "visuals": visuals,
        "camera_work": "steady tracking",
        "lighting_mood": "magenta",
        "mermaid_diagram": 'graph TD\nA["Mia"] --> B["Neon"]',
        "first_frame": first_frame,
        "last_frame": last_frame,
    })
    return StoryboardProject(
        raw_text="Verse line one\nVerse line two\nChorus line",
        narrative_seed="A lonely night in the city",
        scene_markers=[2],
        segments=segments,
        characters=[Character(id="char-1", name="Mia")],
    )


def page_texts(data):
    with fitz.open(stream=data, filetype="pdf") as doc:
        return [page.get_text() for page in doc]


class TestPdfExport:
    """Test document structure."""

    def test_cover_plus_one_page_per_scene(self):
        texts = page_texts(render_pdf(make_project()))

        assert len(texts) == 3
        assert "Storyboard" in texts[0]
        assert "A lonely night in the city" in texts[0]
        assert "Mia" in texts[0]

    def test_scene_page_contents(self):
        texts = page_texts(render_pdf(make_project()))

        assert "1. Verse 1" in texts[1]
        assert "Verse line one" in texts[1]
        assert "steady tracking" in texts[1]
        assert "graph TD" in texts[1]
        assert "frame not generated" in texts[1]

    def test_frames_embedded(self, png_data_uri):
        data = render_pdf(make_project(png_data_uri, png_data_uri))

        with fitz.open(stream=data, filetype="pdf") as doc:
            assert len(doc[1].get_images()) >= 1
            assert "frame not generated" not in doc[1].get_text()

    def test_long_text_still_written(self):
        texts = page_texts(render_pdf(make_project(visuals="rain " * 400)))
        assert "rain" in texts[1]

    def test_export_writes_file(self, tmp_path):
        target = export_pdf(make_project(), tmp_path / "out" / "board.pdf")

        assert target.exists()
        assert target.read_bytes().startswith(b"%PDF")

    def test_empty_project(self):
        project = StoryboardProject(raw_text="")
        assert len(page_texts(render_pdf(project))) == 1
