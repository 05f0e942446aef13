"""Unit tests for generation-checked segment updates."""

import pytest
from pydantic import ValidationError

from lyriclens.agents.segmenter import segment_text
from lyriclens.orchestrator.segment_board import SegmentBoard, SegmentConflictError


@pytest.fixture
def board():
    return SegmentBoard(segment_text("A\nB\nC", {1, 2}))


class TestSegmentBoard:
    """Test the per-segment generation counter."""

    def test_initial_generations(self, board):
        assert len(board) == 3
        assert [board.generation(s.id) for s in board] == [1, 1, 1]

    def test_apply_bumps_generation(self, board):
        updated = board.apply("scene-1", {"visuals": "rain"}, expected_generation=1)

        assert updated.visuals == "rain"
        assert board.get("scene-1").visuals == "rain"
        assert board.generation("scene-1") == 2
        assert board.generation("scene-0") == 1

    def test_stale_update_rejected_and_discarded(self, board):
        board.apply("scene-0", {"visuals": "first"}, expected_generation=1)

        with pytest.raises(SegmentConflictError) as exc_info:
            board.apply("scene-0", {"visuals": "late"}, expected_generation=1)

        assert exc_info.value.segment_id == "scene-0"
        assert exc_info.value.current_generation == 2
        assert board.get("scene-0").visuals == "first"

    def test_unchecked_apply(self, board):
        board.apply("scene-2", {"visuals": "x"})
        board.apply("scene-2", {"visuals": "y"})
        assert board.generation("scene-2") == 3

    def test_frames_applied_together(self, board):
        board.apply("scene-0", {"first_frame": "data:a", "last_frame": "data:b"}, 1)
        segment = board.get("scene-0")
        assert (segment.first_frame, segment.last_frame) == ("data:a", "data:b")
        assert board.generation("scene-0") == 2

    def test_replace_all_invalidates_old_generations(self, board):
        _, generation = board.snapshot("scene-0")
        board.replace_all(segment_text("X\nY", {1}))

        with pytest.raises(SegmentConflictError):
            board.apply("scene-0", {"visuals": "old"}, generation)
        assert [s.lyrics for s in board.segments] == ["X", "Y"]

    def test_invalid_update_rejected(self, board):
        with pytest.raises(ValidationError):
            board.apply("scene-0", {"visuals": None}, expected_generation=1)

        assert board.get("scene-0").visuals == ""
        assert board.generation("scene-0") == 1

    def test_unknown_segment(self, board):
        with pytest.raises(KeyError):
            board.get("scene-9")
        with pytest.raises(KeyError):
            board.apply("scene-9", {"visuals": "x"})

    def test_segments_returns_copy(self, board):
        board.segments.clear()
        assert len(board) == 3
