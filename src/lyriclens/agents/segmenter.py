"""Text segmentation: raw lyrics + scene break markers -> scene stubs."""

from typing import Iterable, List

from lyriclens.schemas.project import SceneSegment


def split_lines(raw_text: str) -> List[str]:
    """Canonical line sequence that marker indices refer to.

    Lines are trimmed and blank lines dropped.
    """
    return [line.strip() for line in raw_text.split("\n") if line.strip()]


def make_stub(ordinal: int, lyrics: str) -> SceneSegment:
    return SceneSegment(
        id=f"scene-{ordinal}",
        section_title=f"Scene {ordinal + 1}",
        lyrics=lyrics,
        visuals="",
        camera_work="",
        lighting_mood="",
        characters=[],
    )


def segment_text(raw_text: str, scene_markers: Iterable[int]) -> List[SceneSegment]:
    """Split ``raw_text`` into scene stubs at the given line indices.

    A marker only closes a scene when lines have accumulated since the last
    break, so markers at index 0 or on consecutive lines never produce empty
    scenes.
    """
    markers = set(scene_markers)
    segments: List[SceneSegment] = []
    buffer: List[str] = []

    for index, line in enumerate(split_lines(raw_text)):
        if index in markers and buffer:
            segments.append(make_stub(len(segments), "\n".join(buffer)))
            buffer = []
        buffer.append(line)

    if buffer:
        segments.append(make_stub(len(segments), "\n".join(buffer)))

    return segments


def toggle_marker(scene_markers: Iterable[int], index: int, line_count: int) -> List[int]:
    """Add or remove a scene break before line ``index``.

    Breaks sit between lines, so the valid range is ``1 .. line_count - 1``.
    """
    if not 0 < index < line_count:
        raise ValueError(f"marker index {index} out of range for {line_count} lines")
    markers = set(scene_markers)
    if index in markers:
        markers.remove(index)
    else:
        markers.add(index)
    return sorted(markers)
