"""LyricLens Studio: lyrics-to-storyboard pipeline."""

__version__ = "1.1.0"
