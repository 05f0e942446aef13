"""Versioned segment store shared by concurrent studio operations.

Every segment carries a monotonic generation number. Writers read the
generation before starting remote work and present it when applying the
result; if anything else was applied to that segment in between, the write
is discarded and the writer gets a SegmentConflictError.
"""

import logging
from typing import Dict, Iterator, List, Optional, Sequence

from lyriclens.schemas.project import SceneSegment

logger = logging.getLogger(__name__)


class SegmentConflictError(Exception):
    """Raised when an update was computed against an outdated segment.

    Attributes:
        segment_id: Segment the update targeted
        expected_generation: Generation the writer started from
        current_generation: Generation at apply time
    """

    def __init__(self, segment_id: str, expected_generation: int, current_generation: int):
        self.segment_id = segment_id
        self.expected_generation = expected_generation
        self.current_generation = current_generation
        super().__init__(
            f"Segment {segment_id} changed while the update was in flight "
            f"(expected generation {expected_generation}, now {current_generation})"
        )


class SegmentBoard:
    """Ordered segments plus a generation counter per segment id."""

    def __init__(self, segments: Sequence[SceneSegment] = ()):
        self._segments: List[SceneSegment] = []
        self._generations: Dict[str, int] = {}
        self.replace_all(segments)

    def __len__(self) -> int:
        return len(self._segments)

    def __iter__(self) -> Iterator[SceneSegment]:
        return iter(list(self._segments))

    @property
    def segments(self) -> List[SceneSegment]:
        return list(self._segments)

    def index_of(self, segment_id: str) -> int:
        for index, segment in enumerate(self._segments):
            if segment.id == segment_id:
                return index
        raise KeyError(segment_id)

    def get(self, segment_id: str) -> SceneSegment:
        return self._segments[self.index_of(segment_id)]

    def generation(self, segment_id: str) -> int:
        if segment_id not in self._generations:
            raise KeyError(segment_id)
        return self._generations[segment_id]

    def snapshot(self, segment_id: str):
        """Current segment together with its generation."""
        return self.get(segment_id), self.generation(segment_id)

    def replace_all(self, segments: Sequence[SceneSegment]) -> None:
        """Swap in a new segment list.

        Generations keep increasing for ids that survive, so updates issued
        against the previous list are rejected.
        """
        previous = self._generations
        self._segments = list(segments)
        self._generations = {
            segment.id: previous.get(segment.id, 0) + 1 for segment in self._segments
        }

    def apply(
        self,
        segment_id: str,
        updates: Dict[str, object],
        expected_generation: Optional[int] = None
    ) -> SceneSegment:
        """Merge ``updates`` into one segment in a single step.

        Args:
            segment_id: Target segment
            updates: Field values keyed by attribute name
            expected_generation: Generation the caller read; None skips the check

        Returns:
            The updated segment

        Raises:
            KeyError: If the segment no longer exists
            SegmentConflictError: If the segment moved past ``expected_generation``
            pydantic.ValidationError: If the merged segment is not a valid SceneSegment;
                nothing is applied
        """
        index = self.index_of(segment_id)
        current = self._generations[segment_id]
        if expected_generation is not None and expected_generation != current:
            logger.warning(
                f"Discarding stale update to {segment_id} "
                f"(generation {expected_generation} < {current})"
            )
            raise SegmentConflictError(segment_id, expected_generation, current)

        updated = SceneSegment.model_validate({**self._segments[index].model_dump(), **updates})
        self._segments[index] = updated
        self._generations[segment_id] = current + 1
        return updated
