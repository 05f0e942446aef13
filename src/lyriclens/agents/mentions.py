"""Character mention detection.

Highlighting, save-time derivation of ``SceneSegment.characters`` and
presentation emphasis all go through ``CharacterMatcher`` so they agree on the
same text. Frame conditioning uses the looser substring test in
``find_loose_mentions``.
"""

import re
from typing import List, Pattern, Sequence, Set, Tuple

from lyriclens.schemas.project import Character, SceneSegment


def _name_pattern(name: str) -> Pattern[str]:
    # Lookarounds instead of \b so names that start or end with punctuation
    # ("@Nova", "Dr. K.") still match literally.
    return re.compile(rf"(?<!\w){re.escape(name)}(?!\w)", re.IGNORECASE)


class CharacterMatcher:
    """Whole-word, case-insensitive matcher over a character roster."""

    def __init__(self, roster: Sequence[Character]):
        self.roster = list(roster)
        self._patterns: List[Tuple[str, Pattern[str]]] = [
            (character.name, _name_pattern(character.name))
            for character in self.roster
            if character.name
        ]
        # Longest names first so "Jo Anne" wins over "Jo" when highlighting
        alternatives = sorted(
            {name for name, _ in self._patterns},
            key=len,
            reverse=True,
        )
        self._any: Pattern[str] = re.compile(
            "|".join(rf"(?<!\w){re.escape(name)}(?!\w)" for name in alternatives),
            re.IGNORECASE,
        ) if alternatives else None

    def find(self, text: str) -> List[str]:
        """Names (in roster order) that appear in ``text`` as whole words."""
        if not text:
            return []
        found: List[str] = []
        for name, pattern in self._patterns:
            if name not in found and pattern.search(text):
                found.append(name)
        return found

    def highlight(self, text: str) -> List[Tuple[str, bool]]:
        """Split ``text`` into ``(fragment, is_character_name)`` spans."""
        if not text:
            return []
        if self._any is None:
            return [(text, False)]
        spans: List[Tuple[str, bool]] = []
        position = 0
        for match in self._any.finditer(text):
            if match.start() > position:
                spans.append((text[position:match.start()], False))
            spans.append((match.group(0), True))
            position = match.end()
        if position < len(text):
            spans.append((text[position:], False))
        return spans


def scene_mention_text(segment: SceneSegment) -> str:
    """Descriptive text a scene's derived character list is computed from."""
    return f"{segment.visuals} {segment.camera_work} {segment.lighting_mood}"


def find_mentions(text: str, roster: Sequence[Character]) -> List[str]:
    return CharacterMatcher(roster).find(text)


def derive_scene_characters(segment: SceneSegment, roster: Sequence[Character]) -> List[str]:
    return find_mentions(scene_mention_text(segment), roster)


def highlight(text: str, roster: Sequence[Character]) -> List[Tuple[str, bool]]:
    return CharacterMatcher(roster).highlight(text)


def active_characters(segment: SceneSegment, roster: Sequence[Character]) -> Set[str]:
    """Names to emphasize while presenting ``segment``."""
    return set(derive_scene_characters(segment, roster))


def find_loose_mentions(segment: SceneSegment, roster: Sequence[Character]) -> List[Character]:
    """Characters whose name occurs as a substring of the visuals or camera notes.

    Used only to pick conditioning images for frame generation.
    """
    visuals = segment.visuals.lower()
    camera = segment.camera_work.lower()
    return [
        character for character in roster
        if character.name.lower() in visuals or character.name.lower() in camera
    ]
